"""
Notifier that holds messages until the request's unit of work commits.

Services call send() in the middle of a transaction. Queued messages are
handed to the wrapped transport by flush(), which the API runs only after
the session commit succeeds; a rolled back request never notifies.
"""
from typing import Any

import structlog

from nextride.application.interfaces.collaborators import Notifier

logger = structlog.get_logger(__name__)


class PostCommitNotifier(Notifier):
    def __init__(self, transport: Notifier) -> None:
        self._transport = transport
        self._queued: list[tuple[str, str, dict[str, Any]]] = []

    @property
    def pending(self) -> int:
        return len(self._queued)

    async def send(self, owner_id: str, template_id: str, data: dict[str, Any]) -> None:
        self._queued.append((owner_id, template_id, dict(data)))

    def discard(self) -> None:
        if self._queued:
            logger.info("notifications_discarded", count=len(self._queued))
        self._queued = []

    async def flush(self) -> None:
        queued, self._queued = self._queued, []
        for owner_id, template_id, data in queued:
            try:
                await self._transport.send(owner_id, template_id, data)
            except Exception as exc:
                logger.error(
                    "notification_failed", owner_id=owner_id, template_id=template_id, error=str(exc)
                )
