import logging
from typing import List, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from hostelsync.app_factory import build_app
from hostelsync.database import get_db
from hostelsync.dependencies import require_permission
from hostelsync.models import IssuePriority, IssueStatus, NetworkComment, NetworkIssue, NetworkIssueType, RoleEnum, User
from hostelsync.policy import is_allowed
from hostelsync.rate_limit import limiter
from hostelsync.schemas import (
    CommentCreate,
    CommentRead,
    NetworkIssueCreate,
    NetworkIssueRead,
    NetworkIssueUpdate,
    UserRead,
)
from hostelsync.scoping import NETWORK_SCOPE, can_view, visibility_clause
from hostelsync.workflow import ISSUE_TRANSITIONS, ensure_transition, resolve_assignee

logger = logging.getLogger("hostelsync.network_service")

app = build_app("Network Service", "network")


def _visible_issue(db: Session, issue_id: int, user: User) -> NetworkIssue:
    issue = db.get(NetworkIssue, issue_id)
    if not issue or not can_view(NETWORK_SCOPE, user, issue):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Network issue not found")
    return issue


@app.post("/network/issues", response_model=NetworkIssueRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def report_issue(
    request: Request,
    issue_in: NetworkIssueCreate,
    current_user: User = Depends(require_permission("network.issue", "create")),
    db: Session = Depends(get_db),
) -> NetworkIssue:
    data = issue_in.model_dump()
    if data["ip_address"] is not None:
        data["ip_address"] = str(data["ip_address"])
    issue = NetworkIssue(reporter_id=current_user.id, **data)
    db.add(issue)
    db.commit()
    db.refresh(issue)
    logger.info("User %s reported network issue %s", current_user.id, issue.id)
    return issue


@app.get("/network/issues", response_model=List[NetworkIssueRead])
@limiter.limit("30/minute")
def list_issues(
    request: Request,
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    issue_type: Optional[NetworkIssueType] = None,
    priority: Optional[IssuePriority] = None,
    current_user: User = Depends(require_permission("network.issue", "read")),
    db: Session = Depends(get_db),
) -> List[NetworkIssue]:
    query = db.query(NetworkIssue).filter(visibility_clause(NETWORK_SCOPE, current_user))
    if status_filter:
        query = query.filter(NetworkIssue.status == status_filter)
    if issue_type:
        query = query.filter(NetworkIssue.issue_type == issue_type)
    if priority:
        query = query.filter(NetworkIssue.priority == priority)
    return query.order_by(NetworkIssue.created_at.desc(), NetworkIssue.id.desc()).all()


@app.get("/network/issues/{issue_id}", response_model=NetworkIssueRead)
@limiter.limit("30/minute")
def get_issue(
    request: Request,
    issue_id: int,
    current_user: User = Depends(require_permission("network.issue", "read")),
    db: Session = Depends(get_db),
) -> NetworkIssue:
    return _visible_issue(db, issue_id, current_user)


@app.patch("/network/issues/{issue_id}", response_model=NetworkIssueRead)
@limiter.limit("20/minute")
def update_issue(
    request: Request,
    issue_id: int,
    update_in: NetworkIssueUpdate,
    current_user: User = Depends(require_permission("network.issue", "update")),
    db: Session = Depends(get_db),
) -> NetworkIssue:
    issue = _visible_issue(db, issue_id, current_user)
    if update_in.assigned_to_id is not None:
        if not is_allowed(current_user.role, "network.issue", "assign"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can assign IT staff")
        assignee = resolve_assignee(db, update_in.assigned_to_id, [RoleEnum.IT_STAFF, RoleEnum.ADMIN])
        issue.assigned_to_id = assignee.id

    if update_in.status is not None:
        ensure_transition(ISSUE_TRANSITIONS, issue.status, update_in.status)
        if current_user.role == RoleEnum.IT_STAFF and issue.assigned_to_id is None and update_in.status != issue.status:
            issue.assigned_to_id = current_user.id
        issue.status = update_in.status
    db.commit()
    db.refresh(issue)
    logger.info("Network issue %s updated by user %s (status=%s)", issue.id, current_user.id, issue.status.value)
    return issue


@app.post(
    "/network/issues/{issue_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
def add_comment(
    request: Request,
    issue_id: int,
    comment_in: CommentCreate,
    current_user: User = Depends(require_permission("network.comment", "create")),
    db: Session = Depends(get_db),
) -> NetworkComment:
    issue = _visible_issue(db, issue_id, current_user)
    comment = NetworkComment(issue_id=issue.id, author_id=current_user.id, content=comment_in.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


@app.get("/network/issues/{issue_id}/comments", response_model=List[CommentRead])
@limiter.limit("30/minute")
def list_comments(
    request: Request,
    issue_id: int,
    current_user: User = Depends(require_permission("network.issue", "read")),
    db: Session = Depends(get_db),
) -> List[NetworkComment]:
    return _visible_issue(db, issue_id, current_user).comments


@app.get("/network/it-staff", response_model=List[UserRead])
@limiter.limit("30/minute")
def list_it_staff(
    request: Request,
    current_user: User = Depends(require_permission("network.it_staff", "read")),
    db: Session = Depends(get_db),
) -> List[User]:
    return (
        db.query(User)
        .filter(User.role == RoleEnum.IT_STAFF, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
