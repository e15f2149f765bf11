from dataclasses import dataclass, fields, replace
from decimal import Decimal

from nextride.domain.errors import InvalidStateError

MAX_SETTING_LENGTH = 256


@dataclass(frozen=True)
class SystemSettings:
    """Admin-tunable site settings. Only commission_rate feeds the listing core."""

    site_name: str = "NextRide"
    allow_registration: bool = True
    commission_rate: Decimal = Decimal("0.05")
    max_listings_per_user: int = 10
    contact_email: str = "support@nextride.com"
    maintenance_mode: bool = False
    home_banner_text: str = ""

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def merged(self, changes: dict[str, object]) -> "SystemSettings":
        unknown = sorted(set(changes) - set(self.field_names()))
        if unknown:
            raise InvalidStateError(f"Unknown settings: {', '.join(unknown)}.")
        updated = replace(self, **changes)  # type: ignore[arg-type]
        updated.validate()
        return updated

    def validate(self) -> None:
        if not Decimal("0") <= self.commission_rate <= Decimal("1"):
            raise InvalidStateError("Commission rate must be between 0 and 1.")
        if self.max_listings_per_user < 0:
            raise InvalidStateError("Max listings per user cannot be negative.")
        for name in ("site_name", "contact_email", "home_banner_text"):
            if len(getattr(self, name)) > MAX_SETTING_LENGTH:
                raise InvalidStateError(f"{name} is longer than {MAX_SETTING_LENGTH} characters.")
