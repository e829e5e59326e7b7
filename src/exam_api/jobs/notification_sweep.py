"""
One-shot notification sweep for cron or a container job.

Usage:
    exam-notification-sweep
    exam-notification-sweep --limit 25
"""

import argparse
import asyncio
import sys
from typing import List
from typing import Optional

from loguru import logger

from exam_api.exceptions import PersistenceFailure
from exam_api.exceptions import PortalError
from exam_api.main import build_email_client
from exam_api.main import build_notification_dispatcher
from exam_api.monitoring.logger import configure_logger
from exam_api.portal.db.pool import DomainDBPool
from exam_api.portal.db.repository_base import DATABASE_ERRORS
from exam_api.portal.notifications.dispatcher import SweepResult
from exam_api.settings import Settings


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deliver pending examination portal email notifications")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum notifications to process (default: NOTIFICATION_SWEEP_LIMIT)",
    )
    return parser.parse_args(argv)


async def run_sweep(settings: Settings, limit: Optional[int] = None) -> SweepResult:
    """Open the portal database, sweep once and close it again."""
    pool = DomainDBPool(settings.domain_db_connection_string)
    try:
        await pool.initialize()
    except DATABASE_ERRORS + (asyncio.TimeoutError,) as e:
        raise PersistenceFailure(f"Portal database unavailable: {e}") from e

    try:
        dispatcher = build_notification_dispatcher(settings, pool, build_email_client(settings))
        return await dispatcher.sweep(limit)
    finally:
        await pool.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings()
    configure_logger(level=settings.log_level, json_logs=settings.log_json)

    try:
        result = asyncio.run(run_sweep(settings, args.limit))
    except PortalError as e:
        logger.error(f"Notification sweep failed: {e}")
        return 1

    logger.info("Notification sweep finished", trigger="cli", **result.model_dump())
    return 0 if result.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
