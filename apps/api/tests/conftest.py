"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite database per test
- A small company hierarchy (super admin, company admin, manager, employees)
- JWT bearer headers for authenticated tests
- HTTPX AsyncClient (REST) and Starlette TestClient (websockets)
- A fake WebSocket for registry/relay unit tests
"""
import itertools
import json
import os
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Settings are read at import time, so the environment goes first
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["WS_HEARTBEAT_SECONDS"] = "0"
for _name in ("ZOOM_ACCOUNT_ID", "ZOOM_CLIENT_ID", "ZOOM_CLIENT_SECRET", "SENTRY_DSN"):
    os.environ[_name] = ""

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

from corphub.core.deps import get_db
from corphub.core.security import create_token_for_user, hash_password
from corphub.core.websocket import ConnectionManager
from corphub.db.base import Base
from corphub.db.enums import Role
from corphub.db.models import Company, User
from corphub.db.session import enable_sqlite_foreign_keys
from corphub.main import app
from corphub.services.relay_service import MessageRelay

TEST_PASSWORD = "password123"
PASSWORD_HASH = hash_password(TEST_PASSWORD)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared by every thread of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def make_company(db: Session):
    counter = itertools.count(1)

    def _make(name: str | None = None) -> Company:
        company = Company(name=name or f"Company {next(counter)}")
        db.add(company)
        db.commit()
        db.refresh(company)
        return company

    return _make


@pytest.fixture(scope="function")
def make_user(db: Session):
    counter = itertools.count(1)

    def _make(
        role: Role,
        company: Company | None = None,
        manager: User | None = None,
        username: str | None = None,
    ) -> User:
        n = next(counter)
        name = username or f"{role.value.replace('_', '')}{n}"
        user = User(
            username=name,
            email=f"{name}@example.com",
            password_hash=PASSWORD_HASH,
            first_name=name.capitalize(),
            last_name="Tester",
            role=role.value,
            company_id=company.id if company else None,
            manager_id=manager.id if manager else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@dataclass
class Org:
    """A company with one of each role, plus a second company."""
    company: Company
    super_admin: User
    admin: User
    manager: User
    employee: User  # reports to manager
    other_manager: User
    other_employee: User  # reports to other_manager
    outside_company: Company
    outside_admin: User
    outside_employee: User


@pytest.fixture(scope="function")
def org(make_company, make_user) -> Org:
    company = make_company("Acme")
    outside = make_company("Globex")
    manager = make_user(Role.MANAGER, company, username="manager")
    other_manager = make_user(Role.MANAGER, company, username="othermanager")
    return Org(
        company=company,
        super_admin=make_user(Role.SUPER_ADMIN, username="root"),
        admin=make_user(Role.COMPANY_ADMIN, company, username="admin"),
        manager=manager,
        employee=make_user(Role.EMPLOYEE, company, manager, username="employee"),
        other_manager=other_manager,
        other_employee=make_user(Role.EMPLOYEE, company, other_manager, username="otheremployee"),
        outside_company=outside,
        outside_admin=make_user(Role.COMPANY_ADMIN, outside, username="outsideadmin"),
        outside_employee=make_user(Role.EMPLOYEE, outside, username="outsideemployee"),
    )


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token_for_user(user)}"}


@pytest.fixture
def auth():
    """Bearer header factory: auth(user) -> headers."""
    return auth_headers


# =============================================================================
# Realtime Fixtures
# =============================================================================

class FakeWebSocket:
    """Records frames; mimics the state attributes the registry inspects."""

    def __init__(self):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict] = []
        self.close_code: int | None = None

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        """Simulate the peer going away."""
        self.client_state = WebSocketState.DISCONNECTED

    def frames(self, frame_type: str) -> list[dict]:
        return [f for f in self.sent if f.get("type") == frame_type]


@pytest.fixture
def make_socket():
    return FakeWebSocket


@pytest.fixture(scope="function")
def connections(session_factory) -> Generator[ConnectionManager, None, None]:
    """A fresh registry and relay installed on the app for one test."""
    previous = (app.state.connections, app.state.relay)
    manager = ConnectionManager()
    app.state.connections = manager
    app.state.relay = MessageRelay(manager, session_factory)
    yield manager
    app.state.connections, app.state.relay = previous


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, connections) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient bound to the test database."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def ws_client(session_factory, connections) -> Generator[TestClient, None, None]:
    """TestClient for websocket tests (one portal shared by all sockets)."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
