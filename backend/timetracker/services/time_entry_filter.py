"""
Scope filter for time entry listings and reports.

Turns the acting member's permission grant and the request's query
parameters into a SQLAlchemy query over the organization's time entries.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Query, Session, selectinload

from ..auth.dependencies import OrganizationActor
from ..auth.permissions import VIEW_ALL, VIEW_OWN
from ..database.models import TimeEntry, TimeEntryTag
from ..exceptions import ForbiddenError, ValidationFailedError
from .references import OrganizationReferences


@dataclass
class TimeEntryFilterParams:
    """Filters accepted by the listing and aggregation endpoints."""
    member_id: Optional[UUID] = None
    member_ids: List[UUID] = field(default_factory=list)
    user_id: Optional[UUID] = None
    project_ids: List[UUID] = field(default_factory=list)
    task_ids: List[UUID] = field(default_factory=list)
    tag_ids: List[UUID] = field(default_factory=list)
    client_ids: List[UUID] = field(default_factory=list)
    billable: Optional[bool] = None
    active: Optional[bool] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class TimeEntryFilter:
    """Builds scoped time entry queries for one acting member."""

    def __init__(self, db: Session, actor: OrganizationActor):
        self.db = db
        self.actor = actor
        self.references = OrganizationReferences(db, actor.organization_id)

    def _validate_members(self, params: TimeEntryFilterParams) -> Optional[UUID]:
        """Check member references and return the member a user_id maps to."""
        errors = {}
        user_member_id = None

        if params.member_id is not None and self.references.member(params.member_id) is None:
            errors["member_id"] = "The selected member is invalid."

        if params.user_id is not None:
            member = self.references.member_for_user(params.user_id)
            if member is None:
                errors["user_id"] = "The selected user is invalid."
            else:
                user_member_id = member.id

        if any(self.references.member(member_id) is None for member_id in params.member_ids):
            errors["member_ids"] = "The selected members are invalid."

        if errors:
            raise ValidationFailedError(errors, source="query")
        return user_member_id

    # PUBLIC_INTERFACE
    def query(self, params: TimeEntryFilterParams) -> Query:
        """
        Build the filtered, sorted query for the acting member.

        Entries are ordered most recent start first; ties keep the order in
        which they were stored.

        Args:
            params: Requested filters

        Returns:
            Query: Query over TimeEntry, without a limit

        Raises:
            ForbiddenError: If the actor may not view any time entries
            ValidationFailedError: If a member or user filter is outside the organization
        """
        can_view_all = self.actor.has_permission(VIEW_ALL)
        if not can_view_all and not self.actor.has_permission(VIEW_OWN):
            raise ForbiddenError()

        user_member_id = self._validate_members(params)

        query = self.db.query(TimeEntry).filter(
            TimeEntry.organization_id == self.actor.organization_id
        )

        if not can_view_all:
            query = query.filter(TimeEntry.member_id == self.actor.member_id)

        if params.member_id is not None:
            query = query.filter(TimeEntry.member_id == params.member_id)
        if user_member_id is not None:
            query = query.filter(TimeEntry.member_id == user_member_id)
        if params.member_ids:
            query = query.filter(TimeEntry.member_id.in_(params.member_ids))
        if params.project_ids:
            query = query.filter(TimeEntry.project_id.in_(params.project_ids))
        if params.task_ids:
            query = query.filter(TimeEntry.task_id.in_(params.task_ids))
        if params.client_ids:
            query = query.filter(TimeEntry.client_id.in_(params.client_ids))
        if params.tag_ids:
            query = query.filter(TimeEntry.tag_links.any(TimeEntryTag.tag_id.in_(params.tag_ids)))
        if params.billable is not None:
            query = query.filter(TimeEntry.billable == params.billable)

        if params.active is True:
            query = query.filter(TimeEntry.end.is_(None))
        elif params.active is False:
            query = query.filter(TimeEntry.end.isnot(None))

        if params.start is not None:
            query = query.filter(TimeEntry.start >= params.start)
        if params.end is not None:
            query = query.filter(TimeEntry.start <= params.end)

        return query.options(selectinload(TimeEntry.tag_links)).order_by(
            TimeEntry.start.desc(),
            TimeEntry.created_at.asc(),
            TimeEntry.id.asc()
        )
