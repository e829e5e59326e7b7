"""
Notification Sweeper

Triggers for dispatcher.sweep() outside of a lifecycle transition: the
opportunistic sweep when an admin loads their profile, and a periodic
background task for deployments that enable it.
"""

import asyncio
from typing import Optional

from loguru import logger

from exam_api.exceptions import PortalError
from exam_api.portal.notifications.dispatcher import NotificationDispatcher
from exam_api.portal.notifications.dispatcher import SweepResult


async def run_sweep_once(dispatcher: NotificationDispatcher, trigger: str, limit: Optional[int] = None) -> Optional[SweepResult]:
    """
    Run one sweep pass, logging instead of raising.

    Returns:
        SweepResult, or None when pending notifications could not be listed
    """
    try:
        result = await dispatcher.sweep(limit)
    except PortalError as e:
        logger.error(f"Notification sweep failed: {e}", trigger=trigger)
        return None

    if result.processed:
        logger.info("Notification sweep finished", trigger=trigger, **result.model_dump())
    return result


async def start_notification_sweeper(dispatcher: NotificationDispatcher, interval_seconds: float) -> None:
    """
    Run a sweep every `interval_seconds` until cancelled.

    Args:
        dispatcher: NotificationDispatcher bound to the live database pool
        interval_seconds: Pause between sweep passes
    """
    logger.info("Notification sweeper started", interval_seconds=interval_seconds)

    while True:
        await run_sweep_once(dispatcher, trigger="periodic")
        await asyncio.sleep(interval_seconds)
