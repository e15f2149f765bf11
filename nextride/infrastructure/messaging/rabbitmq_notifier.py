"""
RabbitMQ owner notifier.

Publishes one message per notification to a topic exchange; the mail
worker consuming it renders the template. pika is blocking, so the publish
runs in a thread-pool executor and opens a connection per message.
"""
import asyncio
import json
from datetime import datetime, timezone
from functools import partial
from typing import Any

import pika
import structlog

from nextride.application.interfaces.collaborators import Notifier
from nextride.config import settings
from nextride.domain.identifiers import new_record_id

logger = structlog.get_logger(__name__)

EXCHANGE_NAME = "nextride.notifications"


def _routing_key(template_id: str) -> str:
    return f"notify.{template_id}"


def _serialise_notification(owner_id: str, template_id: str, data: dict[str, Any]) -> str:
    payload = {
        "notification_id": new_record_id(),
        "owner_id": owner_id,
        "template_id": template_id,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }
    return json.dumps(payload, default=str)


def _blocking_publish(rabbitmq_url: str, routing_key: str, body: str) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(rabbitmq_url))
    try:
        channel = connection.channel()
        channel.exchange_declare(exchange=EXCHANGE_NAME, exchange_type="topic", durable=True)
        channel.basic_publish(
            exchange=EXCHANGE_NAME,
            routing_key=routing_key,
            body=body.encode(),
            properties=pika.BasicProperties(
                delivery_mode=pika.DeliveryMode.Persistent,
                content_type="application/json",
            ),
        )
    finally:
        connection.close()


class RabbitMQNotifier(Notifier):
    def __init__(self, rabbitmq_url: str = settings.rabbitmq_url) -> None:
        self._url = rabbitmq_url

    async def send(self, owner_id: str, template_id: str, data: dict[str, Any]) -> None:
        routing_key = _routing_key(template_id)
        body = _serialise_notification(owner_id, template_id, data)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(_blocking_publish, self._url, routing_key, body))
            logger.debug("notification_published", routing_key=routing_key, owner_id=owner_id)
        except Exception as exc:
            # Notifications never fail the request that triggered them
            logger.error(
                "failed_to_publish_notification",
                routing_key=routing_key,
                owner_id=owner_id,
                error=str(exc),
            )
