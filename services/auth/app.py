import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from hostelsync import auth
from hostelsync.app_factory import build_app
from hostelsync.database import get_db
from hostelsync.dependencies import get_current_active_user
from hostelsync.models import RoleEnum, User
from hostelsync.policy import landing_page, pages_for, permissions_for
from hostelsync.rate_limit import limiter
from hostelsync.schemas import LoginRequest, PermissionsRead, RegisterRequest, Token, UserRead

logger = logging.getLogger("hostelsync.auth_service")

app = build_app("Auth Service", "auth")


@app.post("/auth/register", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, user_in: RegisterRequest, db: Session = Depends(get_db)) -> Token:
    if db.query(User).filter(User.email == user_in.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists with this email")

    admins_exist = db.query(User).filter(User.role == RoleEnum.ADMIN).first() is not None
    if user_in.role != RoleEnum.STUDENT and admins_exist:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can assign elevated roles")

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
    logger.info("Registered user %s with role %s", user.id, user.role.value)
    return Token(access_token=auth.create_user_token(user), user=UserRead.model_validate(user))


@app.post("/auth/login", response_model=Token)
@limiter.limit("10/minute")
def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)) -> Token:
    user = auth.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    return Token(access_token=auth.create_user_token(user), user=UserRead.model_validate(user))


@app.get("/auth/me", response_model=UserRead)
@limiter.limit("60/minute")
def me(request: Request, current_user: User = Depends(get_current_active_user)) -> User:
    return current_user


@app.post("/auth/logout")
@limiter.limit("30/minute")
def logout(request: Request, current_user: User = Depends(get_current_active_user)) -> dict[str, str]:
    # Tokens are stateless; the client drops its copy.
    return {"message": "Logged out successfully"}


@app.get("/auth/permissions", response_model=PermissionsRead)
@limiter.limit("60/minute")
def permissions(request: Request, current_user: User = Depends(get_current_active_user)) -> PermissionsRead:
    return PermissionsRead(
        role=current_user.role,
        permissions=permissions_for(current_user.role),
        pages=pages_for(current_user.role),
        landing_page=landing_page(current_user.role),
    )
