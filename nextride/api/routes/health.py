import asyncio

import pika
from fastapi import APIRouter
from sqlalchemy import text

from nextride.config import settings
from nextride.infrastructure.database.connection import AsyncSessionLocal

router = APIRouter(tags=["health"])


def _probe_rabbitmq(url: str) -> None:
    connection = pika.BlockingConnection(pika.URLParameters(url))
    connection.close()


@router.get("/health")
async def health_check() -> dict:  # type: ignore[type-arg]
    """Liveness plus database and broker reachability."""
    db_status = "connected"
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        db_status = f"error: {exc}"

    if settings.notifications_enabled:
        rabbitmq_status = "connected"
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, _probe_rabbitmq, settings.rabbitmq_url
            )
        except Exception as exc:
            rabbitmq_status = f"error: {exc}"
    else:
        rabbitmq_status = "disabled"

    healthy = db_status == "connected" and rabbitmq_status in ("connected", "disabled")
    return {
        "status": "healthy" if healthy else "degraded",
        "database": db_status,
        "rabbitmq": rabbitmq_status,
    }
