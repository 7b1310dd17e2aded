"""
Pre-created check-in cleanup job.

Removes incomplete placeholder assignments that were created up front for
future weeks. Keeps every completed assignment and one incomplete template
per (client, form); the recurrence resolver creates later weeks on demand.

Usage:
    Report only:
        python -m jobs.cleanup_precreated_checkins --dry-run

    Delete:
        python -m jobs.cleanup_precreated_checkins
"""

import asyncio
import logging
import sys

from common.database import MongoDB
from app.config import settings
from app.dependencies import build_window_policy
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.series_service import SeriesService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run(dry_run: bool) -> dict:
    """Connect, clean up and disconnect."""
    database = MongoDB()
    await database.connect(uri=settings.MONGODB_URI, database_name=settings.MONGODB_DATABASE)

    try:
        series_service = SeriesService(
            db=database.db,
            identity_resolver=ClientIdentityResolver(database.db),
            policy=build_window_policy(settings),
            default_total_weeks=settings.DEFAULT_TOTAL_WEEKS,
            cleanup_batch_size=settings.CLEANUP_BATCH_SIZE,
        )
        return await series_service.cleanup_precreated(dry_run=dry_run)
    finally:
        await database.disconnect()


async def main():
    """Main entry point for the cleanup job."""
    dry_run = "--dry-run" in sys.argv[1:]

    summary = await run(dry_run)

    print("\n=== Pre-created Check-in Cleanup ===")
    print(f"Dry Run: {summary['dryRun']}")
    print(f"Assignments Scanned: {summary['totalAssignmentsScanned']}")
    print(f"Completed Kept: {summary['completedKept']}")
    print(f"Templates Kept: {summary['templateKept']}")
    print(f"Deleted: {summary['deleted']}")
    print(summary["message"])


if __name__ == "__main__":
    asyncio.run(main())
