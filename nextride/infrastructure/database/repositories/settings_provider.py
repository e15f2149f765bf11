from collections.abc import Callable
from dataclasses import replace
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.application.interfaces.collaborators import SettingsStore
from nextride.domain.entities.system_settings import SystemSettings
from nextride.domain.errors import InvalidStateError
from nextride.infrastructure.database.models import SystemSettingModel

logger = structlog.get_logger(__name__)

COMMISSION_RATE_KEY = "commission_rate"


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


# Stored values are strings; these parse them back per field
_PARSERS: dict[str, Callable[[str], object]] = {
    "site_name": str,
    "allow_registration": _parse_bool,
    "commission_rate": Decimal,
    "max_listings_per_user": int,
    "contact_email": str,
    "maintenance_mode": _parse_bool,
    "home_banner_text": str,
}


def _format(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SystemSettingsProvider(SettingsStore):
    """Reads and writes admin-tunable settings as rows of the system_settings table."""

    def __init__(self, session: AsyncSession, default_commission_rate: Decimal) -> None:
        self._session = session
        self._default_commission_rate = Decimal(default_commission_rate)

    async def commission_rate(self) -> Decimal:
        result = await self._session.execute(
            select(SystemSettingModel.value).where(SystemSettingModel.key == COMMISSION_RATE_KEY)
        )
        raw = result.scalar_one_or_none()
        if raw is None:
            return self._default_commission_rate
        try:
            rate = Decimal(raw)
        except InvalidOperation:
            logger.warning("commission_rate_invalid", value=raw)
            return self._default_commission_rate
        if rate < 0 or rate > 1:
            logger.warning("commission_rate_out_of_range", value=raw)
            return self._default_commission_rate
        return rate

    async def load(self) -> SystemSettings:
        """Stored settings over the defaults. Unparseable rows keep their default."""
        result = await self._session.execute(select(SystemSettingModel.key, SystemSettingModel.value))
        stored = dict(result.tuples().all())

        defaults = SystemSettings(commission_rate=self._default_commission_rate)
        loaded = defaults
        for name, parse in _PARSERS.items():
            raw = stored.get(name)
            if raw is None:
                continue
            try:
                candidate = replace(loaded, **{name: parse(raw)})
                candidate.validate()
            except (ValueError, InvalidOperation, InvalidStateError):
                logger.warning("system_setting_invalid", key=name, value=raw)
                continue
            loaded = candidate
        return loaded

    async def save(self, values: SystemSettings) -> None:
        rows = [{"key": name, "value": _format(getattr(values, name))} for name in _PARSERS]
        stmt = pg_insert(SystemSettingModel).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SystemSettingModel.key],
            set_={"value": stmt.excluded.value, "updated_at": func.now()},
        )
        await self._session.execute(stmt)
        logger.info("system_settings_saved", keys=sorted(_PARSERS))
