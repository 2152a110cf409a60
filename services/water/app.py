import logging
from typing import List, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from hostelsync.app_factory import build_app
from hostelsync.database import get_db
from hostelsync.dependencies import require_permission
from hostelsync.models import IssuePriority, IssueStatus, RoleEnum, User, WaterIssue
from hostelsync.policy import is_allowed
from hostelsync.rate_limit import limiter
from hostelsync.schemas import UserRead, WaterIssueCreate, WaterIssueRead, WaterIssueStatusUpdate
from hostelsync.scoping import WATER_SCOPE, can_view, visibility_clause
from hostelsync.workflow import ISSUE_TRANSITIONS, ensure_transition, resolve_assignee

logger = logging.getLogger("hostelsync.water_service")

app = build_app("Water Service", "water")


def _visible_issue(db: Session, issue_id: int, user: User) -> WaterIssue:
    issue = db.get(WaterIssue, issue_id)
    if not issue or not can_view(WATER_SCOPE, user, issue):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Water issue not found")
    return issue


@app.post("/water/issues", response_model=WaterIssueRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def report_issue(
    request: Request,
    issue_in: WaterIssueCreate,
    current_user: User = Depends(require_permission("water.issue", "create")),
    db: Session = Depends(get_db),
) -> WaterIssue:
    issue = WaterIssue(
        reporter_id=current_user.id,
        title=issue_in.title,
        description=issue_in.description,
        location=issue_in.location,
        priority=issue_in.priority,
        images=[str(url) for url in issue_in.images],
    )
    db.add(issue)
    db.commit()
    db.refresh(issue)
    logger.info("User %s reported water issue %s", current_user.id, issue.id)
    return issue


@app.get("/water/issues", response_model=List[WaterIssueRead])
@limiter.limit("30/minute")
def list_issues(
    request: Request,
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    priority: Optional[IssuePriority] = None,
    current_user: User = Depends(require_permission("water.issue", "read")),
    db: Session = Depends(get_db),
) -> List[WaterIssue]:
    query = db.query(WaterIssue).filter(visibility_clause(WATER_SCOPE, current_user))
    if status_filter:
        query = query.filter(WaterIssue.status == status_filter)
    if priority:
        query = query.filter(WaterIssue.priority == priority)
    return query.order_by(WaterIssue.created_at.desc(), WaterIssue.id.desc()).all()


@app.get("/water/issues/{issue_id}", response_model=WaterIssueRead)
@limiter.limit("30/minute")
def get_issue(
    request: Request,
    issue_id: int,
    current_user: User = Depends(require_permission("water.issue", "read")),
    db: Session = Depends(get_db),
) -> WaterIssue:
    return _visible_issue(db, issue_id, current_user)


@app.patch("/water/issues/{issue_id}/status", response_model=WaterIssueRead)
@limiter.limit("20/minute")
def update_issue_status(
    request: Request,
    issue_id: int,
    update_in: WaterIssueStatusUpdate,
    current_user: User = Depends(require_permission("water.issue", "update")),
    db: Session = Depends(get_db),
) -> WaterIssue:
    issue = _visible_issue(db, issue_id, current_user)
    if update_in.plumber_id is not None:
        if not is_allowed(current_user.role, "water.issue", "assign"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can assign plumbers")
        issue.plumber_id = resolve_assignee(db, update_in.plumber_id, [RoleEnum.PLUMBER, RoleEnum.ADMIN]).id

    ensure_transition(ISSUE_TRANSITIONS, issue.status, update_in.status)
    if current_user.role == RoleEnum.PLUMBER and issue.plumber_id is None and update_in.status != issue.status:
        issue.plumber_id = current_user.id
    previous = issue.status
    issue.status = update_in.status
    db.commit()
    db.refresh(issue)
    logger.info("Water issue %s: %s -> %s by user %s", issue.id, previous.value, issue.status.value, current_user.id)
    return issue


@app.get("/water/plumbers", response_model=List[UserRead])
@limiter.limit("30/minute")
def list_plumbers(
    request: Request,
    current_user: User = Depends(require_permission("water.plumbers", "read")),
    db: Session = Depends(get_db),
) -> List[User]:
    return (
        db.query(User)
        .filter(User.role == RoleEnum.PLUMBER, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
