from __future__ import annotations

import os
import tempfile
import uuid
from typing import Callable, Generator

# The app reads these at import time
_DB_DIR = tempfile.mkdtemp(prefix="funfarm-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/funfarm.db"
os.environ["REDIS_URL"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-funfarm-tests-0123456789"
os.environ["FUN_PROFILE_CLIENT_SECRET"] = "test-fun-profile-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from funfarm import fun_profile  # noqa: E402
from funfarm.auth import create_access_token  # noqa: E402
from funfarm.db import SessionLocal  # noqa: E402
from funfarm.main import app, run_startup_tasks  # noqa: E402
from funfarm.models import Profile, UserRole  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    run_startup_tasks()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., Profile]:
    """Factory for committed profiles with a unique email."""

    def _make_user(display_name: str = "Nông dân", roles: tuple[str, ...] = ("user",), **fields) -> Profile:
        fields.setdefault("email", f"user-{uuid.uuid4().hex[:12]}@example.com")
        user = Profile(
            display_name=display_name,
            roles=[UserRole(role=r) for r in roles],
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def admin_user(make_user) -> Profile:
    return make_user(display_name="Admin", roles=("user", "admin"))


def _auth_headers(user: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_headers() -> Callable[[Profile], dict[str, str]]:
    return _auth_headers


@pytest.fixture()
def fun_profile_transport() -> Generator[Callable, None, None]:
    """Install an httpx.MockTransport for outbound Fun Profile calls."""
    import httpx

    def _install(handler) -> None:
        fun_profile.configure_transport(httpx.MockTransport(handler))

    yield _install
    fun_profile.configure_transport(None)
