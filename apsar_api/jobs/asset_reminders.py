"""
Asset Reminder Job: maintenance and inspection notifications.

Notifies officers about overdue or upcoming vehicle maintenance and
equipment inspections. Push delivery happens after the commit, through
a dispatcher owned by the job.

    python -m apsar_api.jobs.asset_reminders --inspection-window-days 7

Typical cron schedule: 0 8 * * * (daily at 8 AM)
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core import get_session_context
from ..services import AssetService, NotificationDispatcher

logger = logging.getLogger(__name__)


async def run_asset_reminder_job(
    inspection_window_days: int = 7,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict[str, Any]:
    """Send due/overdue asset reminders and wait for their delivery."""
    start_time = datetime.now(timezone.utc)
    owns_dispatcher = dispatcher is None
    dispatcher = dispatcher or NotificationDispatcher.from_settings()

    try:
        async with get_session_context(session_factory, dispatcher=dispatcher) as session:
            sent = await AssetService(session).send_due_reminders(
                inspection_window_days=inspection_window_days
            )
        await dispatcher.drain()
    finally:
        if owns_dispatcher:
            await dispatcher.aclose()

    end_time = datetime.now(timezone.utc)
    results = {
        "started_at": start_time.isoformat(),
        "completed_at": end_time.isoformat(),
        "reminders_sent": sent,
        "duration_seconds": (end_time - start_time).total_seconds(),
    }
    logger.info(f"Asset reminders completed: {sent} sent")
    return results


def main():
    """CLI entry point for the asset reminder job."""
    import argparse

    parser = argparse.ArgumentParser(description="Send maintenance and inspection reminders")
    parser.add_argument(
        "--inspection-window-days",
        type=int,
        default=7,
        help="Remind about inspections due within this many days",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        results = asyncio.run(
            run_asset_reminder_job(inspection_window_days=args.inspection_window_days)
        )
    except Exception:
        logger.exception("Asset reminder job failed")
        sys.exit(1)
    logger.info(f"Job completed: {results}")


if __name__ == "__main__":
    main()
