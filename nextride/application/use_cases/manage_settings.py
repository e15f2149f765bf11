import structlog

from nextride.application.interfaces.collaborators import Actor, SettingsStore
from nextride.domain.entities.system_settings import SystemSettings
from nextride.domain.errors import ForbiddenError

logger = structlog.get_logger(__name__)


class GetSystemSettings:
    """Use case: read the site settings, defaults filled in for anything never saved."""

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

    async def execute(self, actor: Actor) -> SystemSettings:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can read system settings.")
        return await self._store.load()


class UpdateSystemSettings:
    """Use case: merge a partial update into the stored settings.

    The new commission rate applies to fees computed after the update;
    fees already stored on listings are left alone.
    """

    def __init__(self, store: SettingsStore) -> None:
        self._store = store

    async def execute(self, actor: Actor, changes: dict[str, object]) -> SystemSettings:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can change system settings.")
        current = await self._store.load()
        updated = current.merged(changes)
        await self._store.save(updated)
        logger.info("system_settings_updated", admin_id=actor.id, fields=sorted(changes))
        return updated
