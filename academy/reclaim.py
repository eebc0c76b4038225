"""
Academy Admin - Background Reclamation

Periodic physical cleanup of dead invitations, reset tokens and sessions
using an APScheduler background scheduler.

Validity checks compare expiry timestamps at read time, so this job only
reclaims storage; nothing depends on it having run.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session as DBSession

from academy.auth.sessions import cleanup_expired_sessions
from academy.invitations.service import reclaim_expired_invitations
from academy.password_reset.service import reclaim_password_reset_tokens


logger = logging.getLogger(__name__)

JOB_ID = "reclaim_expired_records"


def reclaim_expired_records(session_factory: Callable[[], DBSession]) -> Dict[str, int]:
    """
    Run one reclamation pass.

    Must be called from a thread without a running event loop
    (the scheduler's worker threads qualify).

    Returns:
        Per-table counts of reclaimed rows
    """
    db = session_factory()
    try:
        counts = {
            "invitations": reclaim_expired_invitations(db),
            "password_reset_tokens": reclaim_password_reset_tokens(db),
            "sessions": asyncio.run(cleanup_expired_sessions(db)),
        }
    except Exception:
        db.rollback()
        logger.error("Reclamation pass failed", exc_info=True)
        raise
    finally:
        db.close()

    logger.info(
        "Reclaimed %s invitations, %s reset tokens, %s sessions",
        counts["invitations"], counts["password_reset_tokens"], counts["sessions"],
    )
    return counts


def start_reclaim_scheduler(
    session_factory: Callable[[], DBSession],
    interval_minutes: int,
) -> Optional[BackgroundScheduler]:
    """
    Start the reclamation job every ``interval_minutes``.

    Returns:
        The running scheduler, or None when the interval is not positive
    """
    if interval_minutes <= 0:
        logger.info("Reclamation job disabled")
        return None

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        reclaim_expired_records,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[session_factory],
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Reclamation job scheduled every %s minutes", interval_minutes)
    return scheduler


def stop_reclaim_scheduler(scheduler: Optional[BackgroundScheduler]) -> None:
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Reclamation scheduler stopped")
