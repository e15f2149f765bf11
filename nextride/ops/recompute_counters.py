"""
Recompute owner counters from listings and report drift.

    python -m nextride.ops.recompute_counters [--owner ID] [--persist]

Exits 0 when every stored row matches its recompute, 2 when any drift was
found (with --persist the drifted rows are repaired before exiting).
"""
import argparse
import asyncio
import json
import sys
from typing import Any

import structlog

from nextride.application.services.counter_ledger import CounterLedger

logger = structlog.get_logger(__name__)


async def reconcile(ledger: CounterLedger, owner_ids: list[str], *, persist: bool) -> dict[str, Any]:
    drifted: dict[str, dict[str, int]] = {}
    for owner_id in owner_ids:
        drift = await ledger.drift(owner_id)
        if not drift.has_drift:
            continue
        drifted[owner_id] = drift.differences
        logger.warning("counter_drift_detected", owner_id=owner_id, differences=drift.differences)
        if persist:
            await ledger.recompute(owner_id, persist=True)

    return {
        "owners_checked": len(owner_ids),
        "drift_count": len(drifted),
        "drift": drifted,
        "repaired": persist and bool(drifted),
    }


async def _run(owner_id: str | None, persist: bool) -> dict[str, Any]:
    from nextride.infrastructure.database.connection import dispose_engine, session_scope
    from nextride.infrastructure.database.repositories.listing_repository import (
        SqlAlchemyListingRepository,
    )
    from nextride.infrastructure.database.repositories.owner_counters_repository import (
        SqlAlchemyOwnerCountersRepository,
    )

    try:
        async with session_scope() as session:
            ledger = CounterLedger(
                SqlAlchemyOwnerCountersRepository(session),
                SqlAlchemyListingRepository(session),
            )
            owner_ids = [owner_id] if owner_id else await ledger.owner_ids()
            return await reconcile(ledger, owner_ids, persist=persist)
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute owner counters from listings and report drift.")
    parser.add_argument("--owner", default="", help="Only check this owner id.")
    parser.add_argument("--persist", action="store_true", help="Overwrite drifted rows with the recomputed counters.")
    args = parser.parse_args(argv)

    from nextride.config import settings
    from nextride.log_config import configure_logging

    configure_logging(settings.log_level)
    summary = asyncio.run(_run(args.owner or None, args.persist))

    print(json.dumps(summary, indent=2))
    return 0 if summary["drift_count"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
