import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from hostelsync.app_factory import build_app
from hostelsync.database import get_db
from hostelsync.dependencies import require_permission
from hostelsync.models import CleaningRequest, CleaningStatus, RoleEnum, User
from hostelsync.policy import is_allowed
from hostelsync.rate_limit import limiter
from hostelsync.schemas import (
    CleanerDirectory,
    CleaningFeedbackCreate,
    CleaningRequestCreate,
    CleaningRequestRead,
    CleaningStatusUpdate,
    UserRead,
)
from hostelsync.scoping import CLEANING_SCOPE, can_view, visibility_clause
from hostelsync.workflow import CLEANING_TRANSITIONS, ensure_transition, is_terminal, resolve_assignee

logger = logging.getLogger("hostelsync.cleaning_service")

app = build_app("Cleaning Service", "cleaning")


def _visible_request(db: Session, request_id: int, user: User) -> CleaningRequest:
    cleaning = db.get(CleaningRequest, request_id)
    if not cleaning or not can_view(CLEANING_SCOPE, user, cleaning):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cleaning request not found")
    return cleaning


@app.post("/cleaning/requests", response_model=CleaningRequestRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_request(
    request: Request,
    request_in: CleaningRequestCreate,
    current_user: User = Depends(require_permission("cleaning.request", "create")),
    db: Session = Depends(get_db),
) -> CleaningRequest:
    if request_in.scheduled_date < date.today():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Scheduled date cannot be in the past")
    cleaning = CleaningRequest(student_id=current_user.id, **request_in.model_dump())
    db.add(cleaning)
    db.commit()
    db.refresh(cleaning)
    logger.info("User %s requested cleaning %s for %s", current_user.id, cleaning.id, cleaning.scheduled_date)
    return cleaning


@app.get("/cleaning/requests", response_model=List[CleaningRequestRead])
@limiter.limit("30/minute")
def list_requests(
    request: Request,
    status_filter: Optional[CleaningStatus] = Query(None, alias="status"),
    current_user: User = Depends(require_permission("cleaning.request", "read")),
    db: Session = Depends(get_db),
) -> List[CleaningRequest]:
    query = db.query(CleaningRequest).filter(visibility_clause(CLEANING_SCOPE, current_user))
    if status_filter:
        query = query.filter(CleaningRequest.status == status_filter)
    return query.order_by(CleaningRequest.scheduled_date, CleaningRequest.id).all()


@app.get("/cleaning/requests/{request_id}", response_model=CleaningRequestRead)
@limiter.limit("30/minute")
def get_request(
    request: Request,
    request_id: int,
    current_user: User = Depends(require_permission("cleaning.request", "read")),
    db: Session = Depends(get_db),
) -> CleaningRequest:
    return _visible_request(db, request_id, current_user)


@app.patch("/cleaning/requests/{request_id}/status", response_model=CleaningRequestRead)
@limiter.limit("20/minute")
def update_request_status(
    request: Request,
    request_id: int,
    update_in: CleaningStatusUpdate,
    current_user: User = Depends(require_permission("cleaning.request", "update")),
    db: Session = Depends(get_db),
) -> CleaningRequest:
    cleaning = _visible_request(db, request_id, current_user)
    target = update_in.status
    if update_in.cleaner_id is not None:
        if not is_allowed(current_user.role, "cleaning.request", "assign"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can assign cleaners")
        if is_terminal(CLEANING_TRANSITIONS, cleaning.status):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot reassign a closed request")
        cleaning.cleaner_id = resolve_assignee(db, update_in.cleaner_id, [RoleEnum.CLEANER]).id
        if target is None and cleaning.status == CleaningStatus.PENDING:
            target = CleaningStatus.ASSIGNED

    if target is not None:
        ensure_transition(CLEANING_TRANSITIONS, cleaning.status, target)
        if current_user.role == RoleEnum.CLEANER and cleaning.cleaner_id is None and target != cleaning.status:
            cleaning.cleaner_id = current_user.id
        if target != cleaning.status:
            if target == CleaningStatus.COMPLETED:
                cleaning.completed_at = datetime.utcnow()
            elif target == CleaningStatus.CANCELLED:
                cleaning.cancelled_at = datetime.utcnow()
        cleaning.status = target
    db.commit()
    db.refresh(cleaning)
    logger.info("Cleaning request %s now %s (user %s)", cleaning.id, cleaning.status.value, current_user.id)
    return cleaning


@app.post("/cleaning/requests/{request_id}/feedback", response_model=CleaningRequestRead)
@limiter.limit("10/minute")
def submit_feedback(
    request: Request,
    request_id: int,
    feedback_in: CleaningFeedbackCreate,
    current_user: User = Depends(require_permission("cleaning.feedback", "create")),
    db: Session = Depends(get_db),
) -> CleaningRequest:
    cleaning = db.get(CleaningRequest, request_id)
    if not cleaning:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cleaning request not found")
    if cleaning.student_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only give feedback on your own requests",
        )
    if cleaning.status != CleaningStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Feedback can only be given for completed requests",
        )

    # Write-once: only the first submission finds rating still NULL.
    result = db.execute(
        update(CleaningRequest)
        .where(CleaningRequest.id == cleaning.id, CleaningRequest.rating.is_(None))
        .values(rating=feedback_in.rating, feedback=feedback_in.feedback, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Feedback has already been submitted")
    db.commit()
    db.refresh(cleaning)
    return cleaning


@app.get("/cleaning/cleaners", response_model=CleanerDirectory)
@limiter.limit("30/minute")
def list_cleaners(
    request: Request,
    current_user: User = Depends(require_permission("cleaning.cleaners", "read")),
    db: Session = Depends(get_db),
) -> CleanerDirectory:
    cleaners = (
        db.query(User)
        .filter(User.role == RoleEnum.CLEANER, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
    return CleanerDirectory(count=len(cleaners), data=[UserRead.model_validate(user) for user in cleaners])
