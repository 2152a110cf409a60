import logging
import math
from typing import Dict, List, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from hostelsync import auth
from hostelsync.app_factory import build_app
from hostelsync.database import get_db
from hostelsync.dependencies import require_permission
from hostelsync.models import (
    CleaningRequest,
    MealFeedback,
    NetworkComment,
    NetworkIssue,
    RoleEnum,
    TransportBooking,
    User,
    Vehicle,
    WaterIssue,
)
from hostelsync.rate_limit import limiter
from hostelsync.schemas import AdminUserCreate, Pagination, UserPage, UserRead, UserUpdate
from hostelsync.updates import apply_update

logger = logging.getLogger("hostelsync.admin_service")

app = build_app("Admin Service", "admin")

manage_users = require_permission("admin.users", "manage")

# Relations that keep a user from being deleted, keyed by the name reported back.
_DEPENDENTS = {
    "transport_bookings": TransportBooking.user_id,
    "water_issues_reported": WaterIssue.reporter_id,
    "water_issues_assigned": WaterIssue.plumber_id,
    "network_issues_reported": NetworkIssue.reporter_id,
    "network_issues_assigned": NetworkIssue.assigned_to_id,
    "network_comments": NetworkComment.author_id,
    "cleaning_requests": CleaningRequest.student_id,
    "cleaning_assignments": CleaningRequest.cleaner_id,
    "meal_feedback": MealFeedback.user_id,
    "vehicles_driven": Vehicle.driver_id,
}


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(User).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists with this email")


def dependent_counts(db: Session, user_id: int) -> Dict[str, int]:
    counts = {
        name: db.execute(select(func.count()).where(column == user_id)).scalar_one()
        for name, column in _DEPENDENTS.items()
    }
    return {name: count for name, count in counts.items() if count}


@app.get("/admin/users", response_model=UserPage)
@limiter.limit("30/minute")
def list_users(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[RoleEnum] = None,
    search: Optional[str] = None,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db),
) -> UserPage:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(
            or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(User.room_number).like(pattern),
            )
        )
    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return UserPage(
        data=[UserRead.model_validate(user) for user in users],
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)),
    )


@app.get("/admin/users/role/{role}", response_model=List[UserRead])
@limiter.limit("30/minute")
def list_users_by_role(
    request: Request,
    role: RoleEnum,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db),
) -> List[User]:
    return db.query(User).filter(User.role == role).order_by(User.name).all()


@app.get("/admin/users/{user_id}", response_model=UserRead)
@limiter.limit("30/minute")
def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db),
) -> User:
    return _get_user_or_404(db, user_id)


@app.post("/admin/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_user(
    request: Request,
    user_in: AdminUserCreate,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db),
) -> User:
    _ensure_email_free(db, user_in.email)
    user = User(
        name=user_in.name,
        email=user_in.email,
        room_number=user_in.room_number,
        role=user_in.role,
        hashed_password=auth.get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Admin %s created user %s (%s)", current_user.id, user.id, user.role.value)
    return user


@app.put("/admin/users/{user_id}", response_model=UserRead)
@limiter.limit("20/minute")
def update_user(
    request: Request,
    user_id: int,
    user_update: UserUpdate,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db),
) -> User:
    user = _get_user_or_404(db, user_id)
    if user_update.email and user_update.email != user.email:
        _ensure_email_free(db, user_update.email, exclude_id=user.id)
    apply_update(user, user_update, exclude=("password",), nullable=("room_number",))
    if user_update.password:
        user.hashed_password = auth.get_password_hash(user_update.password)
    db.commit()
    db.refresh(user)
    return user


@app.delete("/admin/users/{user_id}")
@limiter.limit("10/minute")
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(manage_users),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    user = _get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    counts = dependent_counts(db, user.id)
    if counts:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Cannot delete user with related records", "related": counts},
        )
    db.delete(user)
    db.commit()
    logger.info("Admin %s deleted user %s", current_user.id, user_id)
    return {"message": "User deleted successfully"}
