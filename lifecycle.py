"""
Report Lifecycle

Submission, validation, editing and deletion of reports together with the
point awards they trigger.

Status transitions:
    pending -> approved | rejected | under_investigation

approved and rejected are final. under_investigation may still be moved
through validate_report (but not through review_report, which only accepts
pending reports).

Every report write and its ledger entry are committed in one transaction.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import ledger
import models
from errors import (
    AlreadyValidatedError,
    ForbiddenError,
    ReportLockedError,
    ReportNotFoundError,
    StoreUnavailableError,
    ValidationFailedError,
)
from policy import can_edit, can_validate, can_view, is_admin

logger = logging.getLogger(__name__)

VALIDATION_LOCKED = frozenset({models.ReportStatus.approved, models.ReportStatus.rejected})
VALIDATION_DECISIONS = frozenset({
    models.ReportStatus.approved,
    models.ReportStatus.rejected,
    models.ReportStatus.under_investigation,
})
REVIEW_ACTIONS = {
    "approve": models.ReportStatus.approved,
    "reject": models.ReportStatus.rejected,
}
UPDATABLE_FIELDS = (
    "title",
    "description",
    "category",
    "severity",
    "tags",
    "estimated_area",
    "impact_assessment",
)
ADMIN_UPDATABLE_FIELDS = ("follow_up_required", "follow_up_notes")
NON_NULLABLE_FIELDS = frozenset({"title", "description", "category", "severity", "tags", "follow_up_required"})


@contextmanager
def _transaction(db: Session, action: str):
    """Commit on success, roll back on any failure."""
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to %s", action)
        raise StoreUnavailableError() from exc
    except Exception:
        db.rollback()
        raise


def _load_report(db: Session, report_id: int) -> models.Report:
    try:
        report = db.query(models.Report).filter(models.Report.id == report_id).first()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load report %s", report_id)
        raise StoreUnavailableError() from exc
    if report is None:
        raise ReportNotFoundError()
    return report


def _report_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten nested payload parts onto Report column names."""
    columns = dict(fields)
    if "estimated_area" in columns:
        area = columns.pop("estimated_area") or {}
        columns["estimated_area_value"] = area.get("value")
        columns["estimated_area_unit"] = area.get("unit", models.AreaUnit.sq_meters)
    if "impact_assessment" in columns:
        impact = columns.pop("impact_assessment") or {}
        columns["impact_biodiversity"] = impact.get("biodiversity")
        columns["impact_carbon_storage"] = impact.get("carbon_storage")
        columns["impact_coastal_protection"] = impact.get("coastal_protection")
    return columns


def get_report(db: Session, report_id: int, actor: models.User) -> models.Report:
    report = _load_report(db, report_id)
    if not can_view(actor, report):
        raise ForbiddenError()
    return report


def submit_report(db: Session, reporter: models.User, payload, photos: Iterable = ()) -> models.Report:
    """
    Create a pending report owned by reporter and award submission points.

    Args:
        db: Database session
        reporter: Submitting user
        payload: schemas.ReportCreate (or anything with model_dump())
        photos: storage.StoredPhoto records already written to storage

    Returns:
        The persisted report
    """
    data = _report_columns(payload.model_dump())
    report = models.Report(**data, reporter_id=reporter.id, status=models.ReportStatus.pending)
    report.photos = [
        models.ReportPhoto(filename=p.filename, original_name=p.original_name, path=p.path)
        for p in photos
    ]

    with _transaction(db, "submit report"):
        db.add(report)
        db.flush()
        ledger.record(db, reporter.id, models.LedgerReason.report_submitted, report_id=report.id)

    db.refresh(report)
    logger.info("Report %s submitted by user %s", report.id, reporter.id)
    return report


def _transition(db: Session, report: models.Report, validator: models.User,
                decision: models.ReportStatus, notes: Optional[str]) -> models.Report:
    observed = report.status
    with _transaction(db, "validate report"):
        # Conditional on the status we read, so two validators cannot both win
        changed = db.query(models.Report).filter(
            models.Report.id == report.id,
            models.Report.status == observed,
        ).update(
            {
                models.Report.status: decision,
                models.Report.validator_id: validator.id,
                models.Report.validation_notes: notes,
                models.Report.validated_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
        if not changed:
            raise AlreadyValidatedError()
        if decision == models.ReportStatus.approved:
            ledger.record(db, report.reporter_id, models.LedgerReason.report_approved, report_id=report.id)

    db.refresh(report)
    logger.info("Report %s moved %s -> %s by user %s", report.id, observed.value, decision.value, validator.id)
    return report


def validate_report(db: Session, report_id: int, validator: models.User, decision,
                    notes: Optional[str] = None) -> models.Report:
    """
    Set the validation outcome of a report.

    Reports already approved or rejected are refused. A report under
    investigation can be validated again.

    Raises:
        ForbiddenError: validator is not an admin role
        ReportNotFoundError: report_id does not resolve
        AlreadyValidatedError: report is approved/rejected, or changed concurrently
    """
    if not can_validate(validator):
        raise ForbiddenError("Access denied. Required roles: ngo, government")
    try:
        decision = models.ReportStatus(decision)
    except ValueError:
        raise ValidationFailedError("Invalid status")
    if decision not in VALIDATION_DECISIONS:
        raise ValidationFailedError("Invalid status")

    report = _load_report(db, report_id)
    if report.status in VALIDATION_LOCKED:
        raise AlreadyValidatedError()
    return _transition(db, report, validator, decision, notes)


def review_report(db: Session, report_id: int, validator: models.User, action: str,
                  notes: Optional[str] = None) -> models.Report:
    """Approve or reject a report that is still pending."""
    if not can_validate(validator):
        raise ForbiddenError("Access denied. Required roles: ngo, government")
    if action not in REVIEW_ACTIONS:
        raise ValidationFailedError("Action must be either approve or reject")

    report = _load_report(db, report_id)
    if report.status != models.ReportStatus.pending:
        raise AlreadyValidatedError("Can only validate pending reports")
    return _transition(db, report, validator, REVIEW_ACTIONS[action], notes)


def update_report(db: Session, report_id: int, actor: models.User, fields: Dict[str, Any]) -> models.Report:
    """
    Apply allow-listed edits to a report. Follow-up fields are only
    applied for admins; anything else is ignored.
    """
    report = _load_report(db, report_id)
    if not can_edit(actor, report.reporter_id):
        raise ForbiddenError("Access denied. You can only edit your own resources.")
    if report.status != models.ReportStatus.pending and not is_admin(actor):
        raise ReportLockedError()

    permitted = UPDATABLE_FIELDS + ADMIN_UPDATABLE_FIELDS if is_admin(actor) else UPDATABLE_FIELDS
    allowed = {k: v for k, v in fields.items() if k in permitted}
    cleared = sorted(k for k, v in allowed.items() if v is None and k in NON_NULLABLE_FIELDS)
    if cleared:
        raise ValidationFailedError(f"Fields cannot be empty: {', '.join(cleared)}")

    with _transaction(db, "update report"):
        for column, value in _report_columns(allowed).items():
            setattr(report, column, value)

    db.refresh(report)
    return report


def delete_report(db: Session, report_id: int, actor: models.User, storage) -> None:
    """
    Delete a report, reverse its submission award and remove its photos.

    Photo removal happens after the commit; a photo that cannot be removed
    is logged and skipped.
    """
    report = _load_report(db, report_id)
    if not can_edit(actor, report.reporter_id):
        raise ForbiddenError("Access denied. You can only edit your own resources.")

    reporter_id = report.reporter_id
    filenames = [photo.filename for photo in report.photos]

    with _transaction(db, "delete report"):
        db.delete(report)
        ledger.record(db, reporter_id, models.LedgerReason.report_deleted, report_id=report_id)

    logger.info("Report %s deleted by user %s", report_id, actor.id)

    for filename in filenames:
        try:
            removed = storage.delete(filename)
        except OSError:
            logger.warning("Could not delete photo %s of report %s", filename, report_id, exc_info=True)
            continue
        if not removed:
            logger.warning("Photo %s of report %s was already gone", filename, report_id)
