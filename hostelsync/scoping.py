"""Role-dependent row visibility for list endpoints.

Students see what they authored, a domain's worker sees work assigned to them
plus the unassigned pending pool, admins see everything, and any other role
falls back to its own rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import and_, or_, true
from sqlalchemy.orm import InstrumentedAttribute

from .models import (
    CleaningRequest,
    CleaningStatus,
    IssueStatus,
    MealFeedback,
    NetworkIssue,
    RoleEnum,
    TransportBooking,
    User,
    WaterIssue,
)


@dataclass(frozen=True)
class Scope:
    owner: InstrumentedAttribute
    assignee: Optional[InstrumentedAttribute] = None
    status: Optional[InstrumentedAttribute] = None
    pool_status: Any = None
    worker_role: Optional[RoleEnum] = None
    unrestricted_roles: frozenset[RoleEnum] = frozenset({RoleEnum.ADMIN})


WATER_SCOPE = Scope(
    owner=WaterIssue.reporter_id,
    assignee=WaterIssue.plumber_id,
    status=WaterIssue.status,
    pool_status=IssueStatus.PENDING,
    worker_role=RoleEnum.PLUMBER,
)
NETWORK_SCOPE = Scope(
    owner=NetworkIssue.reporter_id,
    assignee=NetworkIssue.assigned_to_id,
    status=NetworkIssue.status,
    pool_status=IssueStatus.PENDING,
    worker_role=RoleEnum.IT_STAFF,
)
CLEANING_SCOPE = Scope(
    owner=CleaningRequest.student_id,
    assignee=CleaningRequest.cleaner_id,
    status=CleaningRequest.status,
    pool_status=CleaningStatus.PENDING,
    worker_role=RoleEnum.CLEANER,
)
BOOKING_SCOPE = Scope(owner=TransportBooking.user_id)
MEAL_FEEDBACK_SCOPE = Scope(
    owner=MealFeedback.user_id,
    unrestricted_roles=frozenset({RoleEnum.ADMIN, RoleEnum.STAFF}),
)


def visibility_clause(scope: Scope, user: User):
    """Return the WHERE clause restricting ``scope`` to rows ``user`` may see."""

    if user.role in scope.unrestricted_roles:
        return true()
    if scope.worker_role is not None and user.role == scope.worker_role:
        return or_(
            scope.assignee == user.id,
            and_(scope.assignee.is_(None), scope.status == scope.pool_status),
        )
    return scope.owner == user.id


def can_view(scope: Scope, user: User, row: Any) -> bool:
    """Python-side twin of ``visibility_clause`` for a single loaded row."""

    if user.role in scope.unrestricted_roles:
        return True
    if scope.worker_role is not None and user.role == scope.worker_role:
        assignee_id = getattr(row, scope.assignee.key)
        if assignee_id == user.id:
            return True
        return assignee_id is None and getattr(row, scope.status.key) == scope.pool_status
    return getattr(row, scope.owner.key) == user.id
