import os
from typing import Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("LOG_DIR", "logs/test")
os.environ.setdefault("EXPORT_DIR", "exports/test")
os.environ.setdefault("UPLOAD_DIR", "uploads/test")

from hostelsync.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from hostelsync import auth  # noqa: E402
from hostelsync.cache import weekly_menu_cache  # noqa: E402
from hostelsync.database import Base, SessionLocal, engine  # noqa: E402
from hostelsync.models import RoleEnum, User  # noqa: E402
from services.admin.app import app as admin_app  # noqa: E402
from services.auth.app import app as auth_app  # noqa: E402
from services.cleaning.app import app as cleaning_app  # noqa: E402
from services.mess.app import app as mess_app  # noqa: E402
from services.network.app import app as network_app  # noqa: E402
from services.transport.app import app as transport_app  # noqa: E402
from services.water.app import app as water_app  # noqa: E402

PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    weekly_menu_cache.clear()
    yield
    weekly_menu_cache.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    """Insert a user directly, bypassing the registration rules."""

    counter = {"n": 0}

    def _make(role: RoleEnum = RoleEnum.STUDENT, email: str | None = None, **fields) -> User:
        counter["n"] += 1
        user = User(
            name=fields.pop("name", f"{role.value.title()} {counter['n']}"),
            email=email or f"{role.value.lower()}{counter['n']}@example.com",
            role=role,
            hashed_password=auth.get_password_hash(PASSWORD),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


def auth_header(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {auth.create_user_token(user)}"}


@pytest.fixture()
def headers_for() -> Callable[[User], Dict[str, str]]:
    return auth_header


@pytest.fixture()
def auth_client() -> Generator[TestClient, None, None]:
    with TestClient(auth_app) as client:
        yield client


@pytest.fixture()
def mess_client() -> Generator[TestClient, None, None]:
    with TestClient(mess_app) as client:
        yield client


@pytest.fixture()
def transport_client() -> Generator[TestClient, None, None]:
    with TestClient(transport_app) as client:
        yield client


@pytest.fixture()
def water_client() -> Generator[TestClient, None, None]:
    with TestClient(water_app) as client:
        yield client


@pytest.fixture()
def network_client() -> Generator[TestClient, None, None]:
    with TestClient(network_app) as client:
        yield client


@pytest.fixture()
def cleaning_client() -> Generator[TestClient, None, None]:
    with TestClient(cleaning_app) as client:
        yield client


@pytest.fixture()
def admin_client() -> Generator[TestClient, None, None]:
    with TestClient(admin_app) as client:
        yield client
