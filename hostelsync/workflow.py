"""Status transition tables and assignee checks for issue-style workflows."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, TypeVar

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .models import CleaningStatus, IssueStatus, RoleEnum, User

S = TypeVar("S", bound=Enum)

ISSUE_TRANSITIONS: Dict[IssueStatus, FrozenSet[IssueStatus]] = {
    IssueStatus.PENDING: frozenset({IssueStatus.IN_PROGRESS, IssueStatus.CANCELLED}),
    IssueStatus.IN_PROGRESS: frozenset({IssueStatus.RESOLVED, IssueStatus.CANCELLED}),
    IssueStatus.RESOLVED: frozenset(),
    IssueStatus.CANCELLED: frozenset(),
}

CLEANING_TRANSITIONS: Dict[CleaningStatus, FrozenSet[CleaningStatus]] = {
    CleaningStatus.PENDING: frozenset({CleaningStatus.ASSIGNED, CleaningStatus.IN_PROGRESS, CleaningStatus.CANCELLED}),
    CleaningStatus.ASSIGNED: frozenset({CleaningStatus.IN_PROGRESS, CleaningStatus.CANCELLED}),
    CleaningStatus.IN_PROGRESS: frozenset({CleaningStatus.COMPLETED, CleaningStatus.CANCELLED}),
    CleaningStatus.COMPLETED: frozenset(),
    CleaningStatus.CANCELLED: frozenset(),
}


def can_transition(transitions: Dict[S, FrozenSet[S]], current: S, target: S) -> bool:
    return current == target or target in transitions[current]


def ensure_transition(transitions: Dict[S, FrozenSet[S]], current: S, target: S) -> None:
    if not can_transition(transitions, current, target):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change status from {current.value} to {target.value}",
        )


def is_terminal(transitions: Dict[S, FrozenSet[S]], current: S) -> bool:
    return not transitions[current]


def resolve_assignee(db: Session, user_id: int, roles: Iterable[RoleEnum]) -> User:
    """Load the user being assigned and check they can take the work."""

    allowed = set(roles)
    assignee: Optional[User] = db.get(User, user_id)
    if assignee is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assigned user not found")
    if assignee.role not in allowed:
        names = " or ".join(sorted(role.value for role in allowed))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Assigned user must be {names}")
    return assignee
