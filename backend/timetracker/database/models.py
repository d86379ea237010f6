"""
SQLAlchemy database models for the multitenant time tracker.

Defines organizations, users, memberships, clients, projects, tasks, tags,
time entries and the time entry/tag association.
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, Index, Enum, Uuid, TypeDecorator
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that is always stored and returned in UTC.

    SQLite drops tzinfo on the way back, so naive values read from the
    database are interpreted as UTC.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Role(str, enum.Enum):
    """Member roles within an organization."""
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    PLACEHOLDER = "placeholder"


class Weekday(str, enum.Enum):
    """Day a user's week starts on."""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def iso_index(self) -> int:
        """Index compatible with ``date.weekday()`` (Monday == 0)."""
        return list(Weekday).index(self)


class Organization(Base):
    """Organization (tenant) owning members and all tracked data."""
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    billable_rate = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    # Relationships
    members = relationship("Member", back_populates="organization", cascade="all, delete-orphan")
    clients = relationship("Client", back_populates="organization", cascade="all, delete-orphan")
    projects = relationship("Project", back_populates="organization", cascade="all, delete-orphan")
    tags = relationship("Tag", back_populates="organization", cascade="all, delete-orphan")
    time_entries = relationship("TimeEntry", back_populates="organization", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.name}')>"


class User(Base):
    """User account with its calendar preferences."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    week_start = Column(Enum(Weekday), nullable=False, default=Weekday.MONDAY)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    # Relationships
    memberships = relationship("Member", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"


class Member(Base):
    """Membership of a user in an organization."""
    __tablename__ = "members"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.EMPLOYEE)
    # Explicit grant overriding the role defaults when set
    permissions = Column(JSON, nullable=True)
    billable_rate = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    # Relationships
    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships")
    time_entries = relationship("TimeEntry", back_populates="member")

    # Constraints
    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_member_user_per_organization'),
        Index('idx_member_organization', 'organization_id'),
    )

    def __repr__(self):
        return f"<Member(id={self.id}, user_id={self.user_id}, organization_id={self.organization_id})>"


class Client(Base):
    """Client a project is billed to."""
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    # Relationships
    organization = relationship("Organization", back_populates="clients")
    projects = relationship("Project", back_populates="client")

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}', organization_id={self.organization_id})>"


class Project(Base):
    """Project time is tracked against."""
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)
    name = Column(String(255), nullable=False)
    billable_rate = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    # Relationships
    organization = relationship("Organization", back_populates="projects")
    client = relationship("Client", back_populates="projects")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_project_organization', 'organization_id'),
    )

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}', client_id={self.client_id})>"


class Task(Base):
    """Task belonging to a project."""
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    project_id = Column(Uuid, ForeignKey("projects.id"), nullable=False)
    name = Column(String(500), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    # Relationships
    project = relationship("Project", back_populates="tasks")

    def __repr__(self):
        return f"<Task(id={self.id}, name='{self.name}', project_id={self.project_id})>"


class Tag(Base):
    """Tag for labelling time entries."""
    __tablename__ = "tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    # Relationships
    organization = relationship("Organization", back_populates="tags")

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_tag_name_per_organization'),
    )

    def __repr__(self):
        return f"<Tag(id={self.id}, name='{self.name}', organization_id={self.organization_id})>"


class TimeEntry(Base):
    """Time entry model for tracking work sessions.

    ``end`` is null while the entry is running. ``client_id`` mirrors the
    project's client and ``user_id`` mirrors the member's user.
    """
    __tablename__ = "time_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    member_id = Column(Uuid, ForeignKey("members.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    project_id = Column(Uuid, ForeignKey("projects.id"), nullable=True)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=True)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)
    description = Column(Text, nullable=False, default="")
    billable = Column(Boolean, nullable=False, default=False)
    billable_rate = Column(Integer, nullable=True)
    start = Column(UTCDateTime, nullable=False)
    end = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    # Relationships
    organization = relationship("Organization", back_populates="time_entries")
    member = relationship("Member", back_populates="time_entries")
    project = relationship("Project")
    task = relationship("Task")
    tag_links = relationship("TimeEntryTag", back_populates="time_entry", cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        Index('idx_time_entry_organization_member', 'organization_id', 'member_id'),
        Index('idx_time_entry_start', 'start'),
        # One running entry per member
        Index(
            'uq_time_entry_active_member', 'member_id', unique=True,
            sqlite_where=end.is_(None), postgresql_where=end.is_(None)
        ),
    )

    @property
    def tags(self) -> list:
        return [link.tag_id for link in self.tag_links]

    @property
    def duration(self):
        """Duration in whole seconds, ``None`` while running."""
        if self.end is None:
            return None
        return max(int((self.end - self.start).total_seconds()), 0)

    def __repr__(self):
        return f"<TimeEntry(id={self.id}, member_id={self.member_id}, project_id={self.project_id})>"


class TimeEntryTag(Base):
    """Association table for time entries and tags."""
    __tablename__ = "time_entry_tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    time_entry_id = Column(Uuid, ForeignKey("time_entries.id"), nullable=False)
    tag_id = Column(Uuid, ForeignKey("tags.id"), nullable=False)

    # Relationships
    time_entry = relationship("TimeEntry", back_populates="tag_links")
    tag = relationship("Tag")

    # Constraints
    __table_args__ = (
        UniqueConstraint('time_entry_id', 'tag_id', name='uq_time_entry_tag'),
        Index('idx_time_entry_tag_tag', 'tag_id'),
    )

    def __repr__(self):
        return f"<TimeEntryTag(time_entry_id={self.time_entry_id}, tag_id={self.tag_id})>"
