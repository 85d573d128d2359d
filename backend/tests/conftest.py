# backend/tests/conftest.py
from __future__ import annotations

import threading
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from teamhub.api.deps import get_invite_service
from teamhub.core.security import Principal, get_principal
from teamhub.db.base import Base
from teamhub.db.session import get_db, install_query_timing
from teamhub.main import app
from teamhub.models import Member, MemberRole, Role, Team, User
from teamhub.services.invites import InviteService


class RecordingSender:
    """Stands in for send_invite_email; records every call (thread-safe)."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def __call__(self, **kwargs) -> None:
        with self._lock:
            self.calls.append(kwargs)


@pytest.fixture(scope="function")
def db_session() -> Generator:
    """
    In-memory SQLite DB for each test.
    StaticPool keeps the same in-memory DB across connections within a test.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_query_timing(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def seed(db_session) -> SimpleNamespace:
    """
    Team 1 "Acme":  owner@acme.io (owner role), bob@acme.io (collaborator),
                    carl@acme.io (soft-deleted member).
    Team 2 "Globex": eve@globex.io.
    """
    db = db_session

    owner_role = Role(id=1, name="owner")
    collaborator = Role(id=2, name="collaborator")
    admin = Role(id=3, name="admin")
    db.add_all([owner_role, collaborator, admin])

    acme = Team(id=1, name="Acme")
    globex = Team(id=2, name="Globex")
    db.add_all([acme, globex])
    db.flush()

    # Role owned by another team must never show up on Acme members
    globex_only = Role(id=10, name="globex-auditor", team_id=globex.id)
    db.add(globex_only)

    owner = User(id="u-owner", email="owner@acme.io", name="Olivia Owner", meta={"plan": "pro"})
    bob = User(id="u-bob", email="bob@acme.io", name=None)
    carl = User(id="u-carl", email="carl@acme.io", name="Carl")
    eve = User(id="u-eve", email="eve@globex.io", name="Eve")
    db.add_all([owner, bob, carl, eve])
    db.flush()

    m_owner = Member(team_id=acme.id, user_id=owner.id, admin=True)
    m_bob = Member(team_id=acme.id, user_id=bob.id)
    m_carl = Member(team_id=acme.id, user_id=carl.id, deleted_at=datetime.now(timezone.utc))
    m_eve = Member(team_id=globex.id, user_id=eve.id)
    db.add_all([m_owner, m_bob, m_carl, m_eve])
    db.flush()

    db.add_all(
        [
            MemberRole(member_id=m_owner.id, role_id=owner_role.id),
            MemberRole(member_id=m_bob.id, role_id=collaborator.id),
            MemberRole(member_id=m_bob.id, role_id=globex_only.id),
            MemberRole(member_id=m_eve.id, role_id=collaborator.id),
        ]
    )
    db.commit()

    return SimpleNamespace(
        acme=acme,
        globex=globex,
        owner=owner,
        bob=bob,
        carl=carl,
        eve=eve,
        m_owner=m_owner,
        m_bob=m_bob,
    )


def user_principal(user: User) -> Principal:
    return Principal(auth_type="user", user=user, subject=user.id)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def current(seed, sender) -> SimpleNamespace:
    """Mutable per-test identity + invite service used by the client overrides."""
    return SimpleNamespace(
        principal=user_principal(seed.owner),
        invite_service=InviteService(self_host_mode=False, send_email=sender),
    )


@pytest.fixture(scope="function")
def client(db_session, current) -> Generator[TestClient, None, None]:
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_principal] = lambda: current.principal
    app.dependency_overrides[get_invite_service] = lambda: current.invite_service

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
