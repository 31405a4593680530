"""
Notification Cleanup Job: purge read notifications past retention.

Runs as a scheduled job (cron or similar):

    python -m apsar_api.jobs.notification_cleanup --retention-days 90

Typical cron schedule: 0 3 * * * (daily at 3 AM)
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core import build_engine, build_session_factory, get_session_context, get_settings
from ..services import NotificationService

logger = logging.getLogger(__name__)


async def run_cleanup_job(
    retention_days: int | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    database_url: str | None = None,
) -> dict[str, Any]:
    """
    Delete read notifications older than ``retention_days``.

    Unread notifications are never purged.

    Returns:
        Job result summary
    """
    start_time = datetime.now(timezone.utc)
    retention_days = retention_days or get_settings().notification_retention_days
    logger.info(
        f"Starting notification cleanup at {start_time.isoformat()} "
        f"(retention {retention_days} days)"
    )

    engine = None
    if session_factory is None and database_url:
        engine = build_engine(database_url)
        session_factory = build_session_factory(engine)

    try:
        async with get_session_context(session_factory) as session:
            purged = await NotificationService(session).purge_expired(retention_days)
    finally:
        if engine is not None:
            await engine.dispose()

    end_time = datetime.now(timezone.utc)
    results = {
        "started_at": start_time.isoformat(),
        "completed_at": end_time.isoformat(),
        "retention_days": retention_days,
        "purged_count": purged,
        "duration_seconds": (end_time - start_time).total_seconds(),
    }
    logger.info(
        f"Notification cleanup completed in {results['duration_seconds']:.2f}s: "
        f"{purged} purged"
    )
    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for the cleanup job."""
    import argparse

    parser = argparse.ArgumentParser(description="Purge read notifications past retention")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (defaults to DATABASE_URL from settings)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Age in days after which read notifications are deleted",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        results = asyncio.run(
            run_cleanup_job(retention_days=args.retention_days, database_url=args.database_url)
        )
    except Exception:
        logger.exception("Notification cleanup failed")
        sys.exit(1)
    logger.info(f"Job completed: {results}")


if __name__ == "__main__":
    main()
