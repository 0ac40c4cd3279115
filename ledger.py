"""
Points Ledger

The only place user points and report counters change. Each application is
an in-database increment plus a PointEvent row, so a user's balance can be
audited against the recorded events.

Nothing here commits: the caller owns the transaction so the counter change
lands together with the report write that caused it.
"""
import logging
from typing import NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)


class PointsDelta(NamedTuple):
    points: int
    reports_submitted: int = 0
    reports_validated: int = 0


POINTS_FOR_SUBMISSION = 10
POINTS_FOR_APPROVAL = 50

# Deleting a report reverses the submission award only, approval points are kept
LEDGER_RULES = {
    models.LedgerReason.report_submitted: PointsDelta(POINTS_FOR_SUBMISSION, reports_submitted=1),
    models.LedgerReason.report_approved: PointsDelta(POINTS_FOR_APPROVAL, reports_validated=1),
    models.LedgerReason.report_deleted: PointsDelta(-POINTS_FOR_SUBMISSION, reports_submitted=-1),
}


def apply_points_delta(
    db: Session,
    user_id: int,
    delta: PointsDelta,
    reason: models.LedgerReason,
    report_id: Optional[int] = None,
) -> models.PointEvent:
    """
    Apply a points/counter delta to a user and record it.

    Args:
        db: Database session (not committed here)
        user_id: User whose counters change
        delta: Amounts to add (negative values subtract)
        reason: Why the change happened
        report_id: Report that triggered the change, if any

    Returns:
        The PointEvent added to the session
    """
    db.query(models.User).filter(models.User.id == user_id).update(
        {
            models.User.points: models.User.points + delta.points,
            models.User.reports_submitted: models.User.reports_submitted + delta.reports_submitted,
            models.User.reports_validated: models.User.reports_validated + delta.reports_validated,
        },
        synchronize_session=False,
    )
    event = models.PointEvent(
        user_id=user_id,
        report_id=report_id,
        reason=reason,
        points=delta.points,
        reports_submitted=delta.reports_submitted,
        reports_validated=delta.reports_validated,
    )
    db.add(event)
    logger.debug("Ledger %s for user %s: %+d points", reason.value, user_id, delta.points)
    return event


def record(db: Session, user_id: int, reason: models.LedgerReason, report_id: Optional[int] = None):
    return apply_points_delta(db, user_id, LEDGER_RULES[reason], reason, report_id=report_id)


def balance(db: Session, user_id: int) -> int:
    total = db.query(func.coalesce(func.sum(models.PointEvent.points), 0)).filter(
        models.PointEvent.user_id == user_id
    ).scalar()
    return int(total)
