"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Iterator

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fanchat.api.deps import get_clock, get_event_hub, get_notifier, get_session_factory
from fanchat.config import Settings
from fanchat.core.clock import FrozenClock
from fanchat.core.security import get_password_hash
from fanchat.database import get_db
from fanchat.main import app
from fanchat.models import Base, FanGroup, GroupMember, GroupRole, User
from fanchat.monitoring.registry import registry
from fanchat.services import ChatEventHub, ChatNotification, FanChatServices, build_services

PASSWORD = "secret123"


class RecordingNotifier:
    """Notification dispatcher that keeps every notification it receives."""

    def __init__(self) -> None:
        self.sent: list[ChatNotification] = []

    def dispatch(self, notification: ChatNotification) -> None:
        self.sent.append(notification)


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    registry.reset()
    yield
    registry.reset()


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, autoflush=False, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, DATABASE_URL="sqlite+pysqlite:///:memory:")


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def event_hub() -> ChatEventHub:
    return ChatEventHub()


@pytest.fixture()
def services(db_session, settings, clock, notifier, event_hub) -> FanChatServices:
    return build_services(db_session, settings, clock=clock, notifier=notifier, events=event_hub)


def create_user(db: Session, login: str, *, main_admin: bool = False) -> User:
    user = User(
        login=login,
        display_name=login.title(),
        hashed_password=get_password_hash(PASSWORD),
        is_main_app_admin=main_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_member(
    db: Session,
    group: FanGroup,
    user: User,
    *,
    role: GroupRole = GroupRole.FAN,
    fan_moderator: bool = False,
) -> GroupMember:
    member = GroupMember(
        group_id=group.id,
        user_id=user.id,
        role=role,
        is_fan_chat_moderator=fan_moderator,
    )
    db.add(member)
    db.commit()
    return member


@pytest.fixture()
def world(db_session) -> SimpleNamespace:
    """A fan group with an admin, a fan moderator, two fans and an outsider."""

    group = FanGroup(name="The Band Fan Club")
    db_session.add(group)
    db_session.commit()
    db_session.refresh(group)

    main_admin = create_user(db_session, "root", main_admin=True)
    admin = create_user(db_session, "manager")
    moderator = create_user(db_session, "keeper")
    fan_a = create_user(db_session, "alice")
    fan_b = create_user(db_session, "bob")
    fan_c = create_user(db_session, "carol")
    outsider = create_user(db_session, "mallory")

    add_member(db_session, group, admin, role=GroupRole.ADMIN)
    add_member(db_session, group, moderator, fan_moderator=True)
    for fan in (fan_a, fan_b, fan_c):
        add_member(db_session, group, fan)

    return SimpleNamespace(
        group=group,
        main_admin=main_admin,
        admin=admin,
        moderator=moderator,
        fan_a=fan_a,
        fan_b=fan_b,
        fan_c=fan_c,
        outsider=outsider,
    )


@pytest.fixture()
def client(session_factory, clock, notifier, event_hub) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with database, clock and hubs overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_event_hub] = lambda: event_hub
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
