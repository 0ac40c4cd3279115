"""
Query/Filter Layer

Role-scoped, filtered and paginated views over reports, plus the
aggregates behind dashboards and leaderboards.

The role scope and the free-text search are independent clauses that are
always joined with AND. Flattening them into one OR would let a community
user see other people's private reports that match a search term.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, extract, func, or_, true
from sqlalchemy.orm import Session

import models
from errors import ForbiddenError
from policy import ANALYST_ROLES, ListScope, SummaryScope, list_scope, require_role, summary_scope

SORTABLE_FIELDS = {
    "created_at": models.Report.created_at,
    "createdAt": models.Report.created_at,
    "updated_at": models.Report.updated_at,
    "updatedAt": models.Report.updated_at,
    "title": models.Report.title,
    "category": models.Report.category,
    "severity": models.Report.severity,
    "status": models.Report.status,
}

POINT_BADGES = [
    (100, "First Steps", "Earned 100 points"),
    (500, "Growing Strong", "Earned 500 points"),
    (1000, "Mangrove Guardian", "Earned 1000 points"),
    (2500, "Conservation Hero", "Earned 2500 points"),
]
SUBMISSION_BADGES = [
    (5, "Active Reporter", "Submitted 5 reports"),
    (20, "Dedicated Monitor", "Submitted 20 reports"),
    (50, "Mangrove Expert", "Submitted 50 reports"),
]
VALIDATION_BADGES = [
    (10, "Quality Contributor", "Had 10 reports validated"),
    (25, "Trusted Source", "Had 25 reports validated"),
]
MILESTONES = [100, 500, 1000, 2500, 5000, 10000]


@dataclass
class ReportFilters:
    status: Optional[models.ReportStatus] = None
    category: Optional[models.ReportCategory] = None
    reporter_id: Optional[int] = None
    search: Optional[str] = None


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    page_size: int
    skip: int = 0
    total_pages: int = field(init=False)
    has_next: bool = field(init=False)
    has_prev: bool = field(init=False)

    def __post_init__(self):
        self.total_pages = math.ceil(self.total / self.page_size) if self.page_size else 0
        self.has_next = self.skip + len(self.items) < self.total
        self.has_prev = self.page > 1

    def pagination(self) -> Dict[str, Any]:
        return {
            "current_page": self.page,
            "total_pages": self.total_pages,
            "total_reports": self.total,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


def visibility_filter(actor):
    """Base clause restricting which reports actor may list, or None for no restriction."""
    scope = list_scope(actor)
    if scope == ListScope.ALL:
        return None
    if scope == ListScope.APPROVED:
        return models.Report.status == models.ReportStatus.approved
    if scope == ListScope.OWN_OR_PUBLIC_APPROVED:
        return or_(
            models.Report.reporter_id == actor.id,
            and_(
                models.Report.status == models.ReportStatus.approved,
                models.Report.is_public.is_(True),
            ),
        )
    raise ValueError(f"Unhandled list scope: {scope}")


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_filter(term: Optional[str]):
    """Case-insensitive substring match on title, description and city."""
    if not term or not term.strip():
        return None
    pattern = _like_pattern(term.strip())
    return or_(
        models.Report.title.ilike(pattern, escape="\\"),
        models.Report.description.ilike(pattern, escape="\\"),
        models.Report.city.ilike(pattern, escape="\\"),
    )


def report_conditions(actor, filters: Optional[ReportFilters] = None) -> list:
    filters = filters or ReportFilters()
    conditions = [
        visibility_filter(actor),
        search_filter(filters.search),
    ]
    if filters.status is not None:
        conditions.append(models.Report.status == filters.status)
    if filters.category is not None:
        conditions.append(models.Report.category == filters.category)
    if filters.reporter_id is not None:
        conditions.append(models.Report.reporter_id == filters.reporter_id)
    return [c for c in conditions if c is not None]


def _paginate(query, page: int, page_size: int) -> Page:
    skip = (page - 1) * page_size
    total = query.order_by(None).count()
    items = query.offset(skip).limit(page_size).all()
    return Page(items=items, total=total, page=page, page_size=page_size, skip=skip)


def list_reports(db: Session, actor, filters: Optional[ReportFilters] = None, page: int = 1,
                 page_size: int = 20, sort_field: str = "created_at", sort_order: str = "desc") -> Page:
    """
    List the reports actor may see, filtered, sorted and paginated.

    Args:
        db: Database session
        actor: Requesting user
        filters: Optional status/category/reporter/search filters
        page: 1-indexed page number
        page_size: Reports per page
        sort_field: One of SORTABLE_FIELDS
        sort_order: "asc" or "desc"

    Returns:
        Page of Report rows
    """
    column = SORTABLE_FIELDS.get(sort_field, models.Report.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()

    query = db.query(models.Report).filter(and_(true(), *report_conditions(actor, filters)))
    query = query.order_by(ordering, models.Report.id.desc())
    return _paginate(query, page, page_size)


def user_reports(db: Session, user, status: Optional[models.ReportStatus] = None,
                 page: int = 1, page_size: int = 20) -> Page:
    query = db.query(models.Report).filter(models.Report.reporter_id == user.id)
    if status is not None:
        query = query.filter(models.Report.status == status)
    query = query.order_by(models.Report.created_at.desc(), models.Report.id.desc())
    return _paginate(query, page, page_size)


def _count_by(db: Session, column, base_conditions: list) -> List[tuple]:
    count = func.count(models.Report.id)
    return (
        db.query(column, count)
        .filter(and_(true(), *base_conditions))
        .group_by(column)
        .order_by(count.desc(), column)
        .all()
    )


def _status_counts(db: Session, base_conditions: list) -> Dict[models.ReportStatus, int]:
    counts = {status: 0 for status in models.ReportStatus}
    for status, count in _count_by(db, models.Report.status, base_conditions):
        counts[models.ReportStatus(status)] = count
    return counts


def category_breakdown(db: Session, base_conditions: Optional[list] = None) -> List[Dict[str, Any]]:
    return [
        {"category": models.ReportCategory(category).value, "count": count}
        for category, count in _count_by(db, models.Report.category, base_conditions or [])
    ]


def monthly_breakdown(db: Session, base_conditions: Optional[list] = None, months: int = 12) -> List[Dict[str, int]]:
    """Report counts for the most recent year/month buckets, newest first."""
    year = extract("year", models.Report.created_at)
    month = extract("month", models.Report.created_at)
    rows = (
        db.query(year.label("year"), month.label("month"), func.count(models.Report.id))
        .filter(and_(true(), *(base_conditions or [])))
        .group_by(year, month)
        .order_by(year.desc(), month.desc())
        .limit(months)
        .all()
    )
    return [{"year": int(y), "month": int(m), "count": count} for y, m, count in rows]


def summary(db: Session, actor) -> Dict[str, Any]:
    """Dashboard counts; community users only see their own reports here."""
    conditions = []
    if summary_scope(actor) == SummaryScope.OWN:
        conditions.append(models.Report.reporter_id == actor.id)

    counts = _status_counts(db, conditions)
    return {
        "summary": {
            "total": sum(counts.values()),
            "pending": counts[models.ReportStatus.pending],
            "approved": counts[models.ReportStatus.approved],
            "rejected": counts[models.ReportStatus.rejected],
        },
        "category_stats": category_breakdown(db, conditions),
        "monthly_stats": monthly_breakdown(db, conditions),
    }


def admin_stats(db: Session, actor) -> Dict[str, Any]:
    if not require_role(actor, ANALYST_ROLES):
        raise ForbiddenError("Access denied. Required roles: ngo, government, researcher")

    counts = _status_counts(db, [])
    status_stats = [
        {"name": models.ReportStatus(status).value.replace("_", " "), "count": count}
        for status, count in _count_by(db, models.Report.status, [])
    ]
    return {
        "total_reports": sum(counts.values()),
        "pending_reports": counts[models.ReportStatus.pending],
        "approved_reports": counts[models.ReportStatus.approved],
        "rejected_reports": counts[models.ReportStatus.rejected],
        "under_investigation_reports": counts[models.ReportStatus.under_investigation],
        "category_stats": category_breakdown(db),
        "status_stats": status_stats,
    }


def leaderboard(db: Session, limit: int = 20) -> List[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.is_active.is_(True))
        .order_by(models.User.points.desc(), models.User.reports_submitted.desc(), models.User.id)
        .limit(limit)
        .all()
    )


def search_users(db: Session, actor, q: str, role: Optional[models.UserRole] = None,
                 limit: int = 20) -> List[models.User]:
    if not require_role(actor, ANALYST_ROLES):
        raise ForbiddenError("Access denied. Required roles: ngo, government, researcher")

    pattern = _like_pattern(q.strip())
    query = db.query(models.User).filter(
        models.User.is_active.is_(True),
        or_(
            models.User.first_name.ilike(pattern, escape="\\"),
            models.User.last_name.ilike(pattern, escape="\\"),
            models.User.username.ilike(pattern, escape="\\"),
            models.User.organization.ilike(pattern, escape="\\"),
        ),
    )
    if role is not None:
        query = query.filter(models.User.role == role)
    return query.order_by(models.User.points.desc(), models.User.id).limit(limit).all()


def user_stats(db: Session, actor) -> Dict[str, Any]:
    if not require_role(actor, ANALYST_ROLES):
        raise ForbiddenError("Access denied. Required roles: ngo, government, researcher")

    total_users = db.query(models.User).count()
    active = db.query(models.User).filter(models.User.is_active.is_(True))
    active_users = active.count()

    count = func.count(models.User.id)
    role_rows = (
        db.query(models.User.role, count)
        .filter(models.User.is_active.is_(True))
        .group_by(models.User.role)
        .order_by(count.desc(), models.User.role)
        .all()
    )
    return {
        "summary": {
            "total_users": total_users,
            "active_users": active_users,
            "inactive_users": total_users - active_users,
        },
        "role_distribution": [{"role": models.UserRole(r).value, "count": c} for r, c in role_rows],
        "top_contributors": active.order_by(models.User.points.desc(), models.User.id).limit(10).all(),
        "recent_registrations": active.order_by(models.User.created_at.desc(), models.User.id.desc()).limit(10).all(),
    }


def next_milestone(points: int) -> Optional[Dict[str, int]]:
    for milestone in MILESTONES:
        if milestone > points:
            return {"points": milestone, "remaining": milestone - points}
    return None


def achievements(db: Session, user) -> Dict[str, Any]:
    earned = []
    for badges, value in (
        (POINT_BADGES, user.points),
        (SUBMISSION_BADGES, user.reports_submitted),
        (VALIDATION_BADGES, user.reports_validated),
    ):
        earned.extend({"name": name, "description": description}
                      for threshold, name, description in badges if value >= threshold)

    rank = db.query(models.User).filter(
        models.User.points > user.points,
        models.User.is_active.is_(True),
    ).count() + 1

    return {
        "user": {
            "points": user.points,
            "reports_submitted": user.reports_submitted,
            "reports_validated": user.reports_validated,
            "role": models.UserRole(user.role).value,
            "member_since": user.created_at,
        },
        "achievements": earned,
        "rank": rank,
        "next_milestone": next_milestone(user.points),
    }
