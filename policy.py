"""
Access Policy

Pure role-based predicates for reports. No database access happens here;
callers turn a False answer into a ForbiddenError.

Every role has an explicit row in ROLE_POLICIES. Adding a UserRole member
without a row fails at import time.
"""
import enum
from typing import Iterable, NamedTuple

from models import ReportStatus, UserRole


class ListScope(str, enum.Enum):
    """Base filter applied to report listings before any user filter"""
    ALL = "all"
    APPROVED = "approved"
    OWN_OR_PUBLIC_APPROVED = "own_or_public_approved"


class SummaryScope(str, enum.Enum):
    ALL = "all"
    OWN = "own"


class RolePolicy(NamedTuple):
    sees_all: bool
    can_edit_any: bool
    can_validate: bool
    list_scope: ListScope
    summary_scope: SummaryScope


ROLE_POLICIES = {
    UserRole.community: RolePolicy(
        sees_all=False,
        can_edit_any=False,
        can_validate=False,
        list_scope=ListScope.OWN_OR_PUBLIC_APPROVED,
        summary_scope=SummaryScope.OWN,
    ),
    UserRole.researcher: RolePolicy(
        sees_all=True,
        can_edit_any=False,
        can_validate=False,
        list_scope=ListScope.APPROVED,
        summary_scope=SummaryScope.ALL,
    ),
    UserRole.ngo: RolePolicy(
        sees_all=True,
        can_edit_any=True,
        can_validate=True,
        list_scope=ListScope.ALL,
        summary_scope=SummaryScope.ALL,
    ),
    UserRole.government: RolePolicy(
        sees_all=True,
        can_edit_any=True,
        can_validate=True,
        list_scope=ListScope.ALL,
        summary_scope=SummaryScope.ALL,
    ),
}

_missing = set(UserRole) - set(ROLE_POLICIES)
if _missing:
    raise KeyError(f"No access policy for roles: {sorted(r.value for r in _missing)}")

ADMIN_ROLES = frozenset(role for role, p in ROLE_POLICIES.items() if p.can_validate)
ANALYST_ROLES = frozenset({UserRole.ngo, UserRole.government, UserRole.researcher})


def policy_for(actor) -> RolePolicy:
    return ROLE_POLICIES[UserRole(actor.role)]


def is_admin(actor) -> bool:
    return UserRole(actor.role) in ADMIN_ROLES


def can_view(actor, report) -> bool:
    """
    Decide whether actor may read a single report.

    Staff roles see everything, reporters see their own reports, and anyone
    may see a report that is both approved and public.
    """
    if policy_for(actor).sees_all:
        return True
    if actor.id == report.reporter_id:
        return True
    return report.status == ReportStatus.approved and bool(report.is_public)


def can_edit(actor, resource_owner_id) -> bool:
    if policy_for(actor).can_edit_any:
        return True
    return resource_owner_id is not None and actor.id == resource_owner_id


def can_validate(actor) -> bool:
    return policy_for(actor).can_validate


def require_role(actor, allowed_roles: Iterable[UserRole]) -> bool:
    return UserRole(actor.role) in {UserRole(r) for r in allowed_roles}


def list_scope(actor) -> ListScope:
    return policy_for(actor).list_scope


def summary_scope(actor) -> SummaryScope:
    return policy_for(actor).summary_scope
