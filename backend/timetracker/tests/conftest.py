"""
Pytest configuration and fixtures for backend testing.

Provides an in-memory database per test, the FastAPI test client bound to
it, record factories and bearer tokens for acting members.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Generator, Iterable, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from timetracker.api.main import app
from timetracker.auth.jwt_handler import JWTHandler
from timetracker.database.connection import build_engine, create_tables, drop_tables, get_db
from timetracker.database.models import (
    Client, Member, Organization, Project, Role, Tag, Task, TimeEntry,
    TimeEntryTag, User, Weekday
)


@pytest.fixture(scope="function")
def engine():
    """Create a fresh in-memory database for a test."""
    test_engine = build_engine("sqlite://")
    create_tables(bind=test_engine)
    yield test_engine
    drop_tables(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Create FastAPI test client with database dependency override."""
    def override_get_db():
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers_for(user: User) -> Dict[str, str]:
    """Authentication headers with a real JWT for ``user``."""
    token = JWTHandler.create_user_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@dataclass
class Actor:
    """A user acting within an organization."""
    organization: Organization
    user: User
    member: Member

    @property
    def headers(self) -> Dict[str, str]:
        return auth_headers_for(self.user)

    @property
    def url(self) -> str:
        return f"/api/v1/organizations/{self.organization.id}/time-entries"


class RecordFactory:
    """Inserts committed records for tests."""

    def __init__(self, db: Session):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def _save(self, record):
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def organization(self, billable_rate: Optional[int] = None) -> Organization:
        return self._save(Organization(name=f"Organization {self._next()}", billable_rate=billable_rate))

    def user(self, timezone_name: str = "UTC", week_start: Weekday = Weekday.MONDAY) -> User:
        number = self._next()
        return self._save(User(
            name=f"User {number}",
            email=f"user{number}@example.com",
            timezone=timezone_name,
            week_start=week_start,
        ))

    def member(
        self,
        organization: Organization,
        user: Optional[User] = None,
        role: Role = Role.EMPLOYEE,
        permissions: Optional[List[str]] = None,
        billable_rate: Optional[int] = None,
    ) -> Member:
        user = user or self.user()
        return self._save(Member(
            organization_id=organization.id,
            user_id=user.id,
            role=role,
            permissions=permissions,
            billable_rate=billable_rate,
        ))

    def client(self, organization: Organization) -> Client:
        return self._save(Client(organization_id=organization.id, name=f"Client {self._next()}"))

    def project(
        self,
        organization: Organization,
        client: Optional[Client] = None,
        billable_rate: Optional[int] = None,
    ) -> Project:
        return self._save(Project(
            organization_id=organization.id,
            client_id=client.id if client else None,
            name=f"Project {self._next()}",
            billable_rate=billable_rate,
        ))

    def task(self, project: Project) -> Task:
        return self._save(Task(
            organization_id=project.organization_id,
            project_id=project.id,
            name=f"Task {self._next()}",
        ))

    def tag(self, organization: Organization) -> Tag:
        return self._save(Tag(organization_id=organization.id, name=f"Tag {self._next()}"))

    def time_entry(
        self,
        member: Member,
        start: datetime = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc),
        end: Optional[datetime] = None,
        active: bool = False,
        project: Optional[Project] = None,
        task: Optional[Task] = None,
        billable: bool = False,
        billable_rate: Optional[int] = None,
        description: str = "",
        tags: Iterable[Tag] = (),
    ) -> TimeEntry:
        if end is None and not active:
            end = start + timedelta(hours=1)
        entry = TimeEntry(
            organization_id=member.organization_id,
            member_id=member.id,
            user_id=member.user_id,
            project_id=project.id if project else None,
            task_id=task.id if task else None,
            client_id=project.client_id if project else None,
            description=description,
            billable=billable,
            billable_rate=billable_rate,
            start=start,
            end=end,
        )
        entry.tag_links = [TimeEntryTag(tag_id=tag.id) for tag in tags]
        return self._save(entry)

    def actor(
        self,
        permissions: Iterable[str] = (),
        organization: Optional[Organization] = None,
        timezone_name: str = "UTC",
        week_start: Weekday = Weekday.MONDAY,
        billable_rate: Optional[int] = None,
    ) -> Actor:
        """Create a user whose membership grants exactly ``permissions``."""
        organization = organization or self.organization()
        user = self.user(timezone_name=timezone_name, week_start=week_start)
        member = self.member(organization, user=user, permissions=list(permissions), billable_rate=billable_rate)
        return Actor(organization=organization, user=user, member=member)


@pytest.fixture
def factory(db_session) -> RecordFactory:
    """Provide the record factory bound to the test session."""
    return RecordFactory(db_session)
