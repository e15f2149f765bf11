"""
No-op notifier, used when notifications are disabled or RabbitMQ is unavailable.
"""
from typing import Any

import structlog

from nextride.application.interfaces.collaborators import Notifier

logger = structlog.get_logger(__name__)


class NoOpNotifier(Notifier):
    async def send(self, owner_id: str, template_id: str, data: dict[str, Any]) -> None:
        logger.debug("noop_notification_discarded", owner_id=owner_id, template_id=template_id)
