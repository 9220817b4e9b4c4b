"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (tables and triggers via create_all)
- Organization, staff members of every role and a client
- JWT token minting and HTTPX AsyncClients with cookie + CSRF header
- A ticking clock so timestamps are deterministic
"""
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["TESTING"] = "1"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session, sessionmaker

import firmflow.db.models  # noqa: F401
from firmflow.core.deps import COOKIE_NAME, get_clock, get_db
from firmflow.core.security import create_session_token
from firmflow.db.base import Base
from firmflow.db.enums import Role, ServiceAction, ServiceType
from firmflow.db.models import Client, Membership, Organization, User
from firmflow.db.session import build_engine
from firmflow.main import app
from firmflow.schemas.auth import Actor
from firmflow.schemas.service import ServiceCreate, TransitionInput
from firmflow.services import service_service, service_transition_service


# =============================================================================
# Clock
# =============================================================================


class TickingClock:
    """Returns a strictly increasing time on every call."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock(datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc))


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    """One SQLite file per test; create_all also installs the history triggers."""
    engine = build_engine(f"sqlite:///{tmp_path / 'firmflow.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Tenant Fixtures
# =============================================================================


@dataclass
class Member:
    """A staff user with their workflow actor and session token."""

    user: User
    actor: Actor
    token: str


def _make_org(db: Session, name: str) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name=name,
        slug=f"org-{uuid.uuid4().hex[:8]}",
    )
    db.add(org)
    db.commit()
    return org


def _make_member(db: Session, org: Organization, role: Role, name: str) -> Member:
    user = User(
        id=uuid.uuid4(),
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
        display_name=name,
    )
    db.add(user)
    db.flush()
    db.add(
        Membership(
            id=uuid.uuid4(),
            user_id=user.id,
            organization_id=org.id,
            role=role.value,
        )
    )
    db.commit()
    token = create_session_token(
        user_id=user.id,
        org_id=org.id,
        role=role.value,
        token_version=user.token_version,
    )
    return Member(user=user, actor=Actor(id=user.id, role=role, name=name), token=token)


@pytest.fixture
def org(db: Session) -> Organization:
    return _make_org(db, "Sharma & Associates")


@pytest.fixture
def other_org(db: Session) -> Organization:
    return _make_org(db, "Other Firm")


@pytest.fixture
def super_admin(db, org) -> Member:
    return _make_member(db, org, Role.SUPER_ADMIN, "Owner")


@pytest.fixture
def admin(db, org) -> Member:
    return _make_member(db, org, Role.ADMIN, "Firm Admin")


@pytest.fixture
def manager(db, org) -> Member:
    return _make_member(db, org, Role.PROJECT_MANAGER, "Priya PM")


@pytest.fixture
def manager2(db, org) -> Member:
    return _make_member(db, org, Role.PROJECT_MANAGER, "Second PM")


@pytest.fixture
def member(db, org) -> Member:
    return _make_member(db, org, Role.TEAM_MEMBER, "Tara TM")


@pytest.fixture
def member2(db, org) -> Member:
    return _make_member(db, org, Role.TEAM_MEMBER, "Dev TM")


@pytest.fixture
def outsider(db, other_org) -> Member:
    """Team member in a different organization."""
    return _make_member(db, other_org, Role.TEAM_MEMBER, "Outsider")


@pytest.fixture
def client_record(db, org) -> Client:
    client = Client(id=uuid.uuid4(), organization_id=org.id, name="Acme Traders", email="acme@example.com")
    db.add(client)
    db.commit()
    return client


@pytest.fixture
def client_actor(client_record) -> Actor:
    return Actor(id=client_record.id, role=Role.CLIENT, name=client_record.name)


# =============================================================================
# Workflow Helpers
# =============================================================================


@pytest.fixture
def create_service(db, org, client_record, manager, clock):
    """Factory: a PENDING firm-created service."""

    def _create(title: str = "FY25 ITR filing", **kwargs):
        return service_service.create_service(
            db,
            org.id,
            manager.actor,
            ServiceCreate(
                client_id=client_record.id,
                service_type=ServiceType.ITR_FILING,
                title=title,
                **kwargs,
            ),
            clock,
        )

    return _create


@pytest.fixture
def act(db, org, clock):
    """Factory: run one transition through the engine."""

    def _act(service, action: ServiceAction, actor: Actor, expected_version=None, **input_fields):
        return service_transition_service.attempt(
            db,
            org.id,
            service.id,
            action,
            actor,
            TransitionInput(**input_fields),
            expected_version=expected_version,
            clock=clock,
        )

    return _act


@pytest.fixture
def assigned_service(create_service, act, manager, member):
    """Service assigned by the manager to the team member."""
    service = create_service()
    act(service, ServiceAction.ASSIGN, manager.actor, assignee_id=member.user.id)
    return service


@pytest.fixture
def in_progress_service(assigned_service, act, member):
    act(assigned_service, ServiceAction.START_WORK, member.actor)
    return assigned_service


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@asynccontextmanager
async def _http_client(session_factory, clock, token: str | None):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    cookies = {COOKIE_NAME: token} if token else None
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies,
            headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
        ) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    async with _http_client(session_factory, clock, None) as c:
        yield c


@pytest.fixture
async def manager_client(session_factory, clock, manager) -> AsyncGenerator[AsyncClient, None]:
    async with _http_client(session_factory, clock, manager.token) as c:
        yield c


@pytest.fixture
async def member_client(session_factory, clock, member) -> AsyncGenerator[AsyncClient, None]:
    async with _http_client(session_factory, clock, member.token) as c:
        yield c


@pytest.fixture
async def client_client(
    session_factory, clock, org, client_record
) -> AsyncGenerator[AsyncClient, None]:
    """Logged in as the firm's client."""
    token = create_session_token(
        user_id=client_record.id,
        org_id=org.id,
        role=Role.CLIENT.value,
        token_version=1,
    )
    async with _http_client(session_factory, clock, token) as c:
        yield c
