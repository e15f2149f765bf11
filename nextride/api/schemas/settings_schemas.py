from decimal import Decimal

from pydantic import BaseModel

from nextride.domain.entities.system_settings import SystemSettings


class SystemSettingsResponse(BaseModel):
    site_name: str
    allow_registration: bool
    commission_rate: Decimal
    max_listings_per_user: int
    contact_email: str
    maintenance_mode: bool
    home_banner_text: str

    @classmethod
    def from_domain(cls, values: SystemSettings) -> "SystemSettingsResponse":
        return cls(**{name: getattr(values, name) for name in SystemSettings.field_names()})


class UpdateSystemSettingsRequest(BaseModel):
    """Partial update; omitted or null fields keep their stored value."""

    site_name: str | None = None
    allow_registration: bool | None = None
    commission_rate: Decimal | None = None
    max_listings_per_user: int | None = None
    contact_email: str | None = None
    maintenance_mode: bool | None = None
    home_banner_text: str | None = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)
