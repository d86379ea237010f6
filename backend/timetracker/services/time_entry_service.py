"""
Time entry operations for an acting organization member.

Covers listing, aggregation and the single-entry create, update and delete
operations together with the rules they share: permission scope, the
one-active-entry-per-member guard and the restart guard.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.dependencies import OrganizationActor
from ..auth.permissions import (
    CREATE_ALL, CREATE_OWN, DELETE_ALL, DELETE_OWN, UPDATE_ALL, UPDATE_OWN
)
from ..database.models import TimeEntry, TimeEntryTag, utc_now
from ..exceptions import (
    ForbiddenError, NotFoundError, TimeEntryCanNotBeRestartedError,
    TimeEntryStillRunningError, ValidationFailedError
)
from .aggregation import AggregationNode, GroupKind, TimeEntryAggregator
from .billable_rate import BillableRateResolver
from .full_dates import select_full_days
from .periods import ensure_utc
from .references import (
    TASK_NOT_IN_PROJECT, OrganizationReferences, ResolvedReferences,
    check_task_matches_project
)
from .time_entry_filter import TimeEntryFilter, TimeEntryFilterParams

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500

END_BEFORE_START = "The end must be a date after or equal to start."
RATE_FIELDS = frozenset({"billable", "project_id", "member_id"})


def can_modify_entry(
    actor: OrganizationActor,
    entry: TimeEntry,
    own_permission: str,
    all_permission: str,
    new_member_id: Optional[UUID] = None,
) -> bool:
    """Check whether the actor may change (or remove) a specific entry.

    With only the "own" permission the entry must belong to the actor and may
    not be handed over to another member.
    """
    if actor.has_permission(all_permission):
        return True
    if not actor.has_permission(own_permission):
        return False
    if entry.member_id != actor.member_id:
        return False
    return new_member_id is None or new_member_id == actor.member_id


class TimeEntryService:
    """Time entry operations performed by one acting member.

    Args:
        db: Request database session
        actor: Acting member and its organization
        clock: Returns the current instant, used for running entries
    """

    def __init__(
        self,
        db: Session,
        actor: OrganizationActor,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.actor = actor
        self.clock = clock
        self.references = OrganizationReferences(db, actor.organization_id)
        self.rates = BillableRateResolver(db)

    # PUBLIC_INTERFACE
    def list_entries(
        self,
        params: TimeEntryFilterParams,
        only_full_dates: bool = False,
        limit: int = DEFAULT_LIMIT,
    ) -> List[TimeEntry]:
        """
        List entries in scope, most recent first.

        Args:
            params: Requested filters
            only_full_dates: Return whole days only
            limit: Maximum number of entries

        Returns:
            List[TimeEntry]: Matching entries
        """
        query = TimeEntryFilter(self.db, self.actor).query(params)
        if only_full_dates:
            return select_full_days(query.all(), limit, self.actor.timezone)
        return query.limit(limit).all()

    # PUBLIC_INTERFACE
    def aggregate(
        self,
        params: TimeEntryFilterParams,
        group: Optional[GroupKind] = None,
        sub_group: Optional[GroupKind] = None,
        fill_gaps: bool = False,
    ) -> AggregationNode:
        """
        Aggregate the entries in scope.

        Gap filling uses the ``start`` and ``end`` filters as its range.

        Returns:
            AggregationNode: Root of the aggregation tree
        """
        entries = TimeEntryFilter(self.db, self.actor).query(params).all()
        aggregator = TimeEntryAggregator(self.actor.timezone, self.actor.week_start, clock=self.clock)
        return aggregator.aggregate(
            entries,
            group=group,
            sub_group=sub_group,
            fill_gaps=fill_gaps,
            start=params.start,
            end=params.end,
        )

    # PUBLIC_INTERFACE
    def create(self, values: Dict[str, Any]) -> TimeEntry:
        """
        Create a time entry.

        Args:
            values: Validated store request fields

        Returns:
            TimeEntry: The persisted entry

        Raises:
            ForbiddenError: If the actor may not create entries for the member
            ValidationFailedError: On foreign references, task/project mismatch or end before start
            TimeEntryStillRunningError: If an active entry is created for a member who already has one
        """
        if not (self.actor.has_permission(CREATE_OWN) or self.actor.has_permission(CREATE_ALL)):
            raise ForbiddenError()

        resolved = self.references.resolve_changes(values)
        member = resolved.member
        if member.id != self.actor.member_id and not self.actor.has_permission(CREATE_ALL):
            raise ForbiddenError()

        check_task_matches_project(values, resolved)
        start, end = ensure_utc(values["start"]), ensure_utc(values.get("end"))
        if end is not None and end < start:
            raise ValidationFailedError.for_field("end", END_BEFORE_START)

        if end is None:
            self._ensure_no_other_active_entry(member.id)

        project = resolved.project
        entry = TimeEntry(
            organization_id=self.actor.organization_id,
            member_id=member.id,
            user_id=member.user_id,
            project_id=project.id if project else None,
            task_id=resolved.task.id if resolved.task else None,
            client_id=project.client_id if project else None,
            description=values.get("description") or "",
            billable=bool(values.get("billable")),
            start=start,
            end=end,
        )
        entry.billable_rate = self.rates.resolve(entry)
        entry.tag_links = [TimeEntryTag(tag_id=tag.id) for tag in resolved.tags]

        self.db.add(entry)
        self._commit_guarding_active_entry()
        self.db.refresh(entry)

        logger.info(f"Time entry {entry.id} created for member {entry.member_id}")
        return entry

    # PUBLIC_INTERFACE
    def update(self, entry_id: UUID, values: Dict[str, Any]) -> TimeEntry:
        """
        Update a time entry with the fields that were sent.

        Args:
            entry_id: Time entry ID
            values: Submitted fields only

        Returns:
            TimeEntry: The updated entry

        Raises:
            NotFoundError: If the entry does not exist
            ForbiddenError: If the entry is in another organization or the actor may not change it
            ValidationFailedError: On foreign references, task/project mismatch or end before start
            TimeEntryCanNotBeRestartedError: If a completed entry would become active again
        """
        entry = self.get_entry(entry_id)
        resolved = self.references.resolve_changes(values)

        if not can_modify_entry(self.actor, entry, UPDATE_OWN, UPDATE_ALL, values.get("member_id")):
            raise ForbiddenError()

        check_task_matches_project(values, resolved)

        if "end" in values and values["end"] is None and entry.end is not None:
            raise TimeEntryCanNotBeRestartedError()

        start = ensure_utc(values.get("start")) or entry.start
        end = ensure_utc(values["end"]) if "end" in values else entry.end
        if end is not None and end < start:
            raise ValidationFailedError.for_field("end", END_BEFORE_START)
        entry.start = start
        entry.end = end

        self.apply_changes(entry, values, resolved)
        self._commit_guarding_active_entry()
        self.db.refresh(entry)
        return entry

    # PUBLIC_INTERFACE
    def delete(self, entry_id: UUID) -> None:
        """
        Delete a time entry.

        Raises:
            NotFoundError: If the entry does not exist
            ForbiddenError: If the entry is in another organization or the actor may not delete it
        """
        entry = self.get_entry(entry_id)
        if not can_modify_entry(self.actor, entry, DELETE_OWN, DELETE_ALL):
            raise ForbiddenError()

        self.db.delete(entry)
        self.db.commit()
        logger.info(f"Time entry {entry_id} deleted by member {self.actor.member_id}")

    def get_entry(self, entry_id: UUID) -> TimeEntry:
        entry = self.db.get(TimeEntry, entry_id)
        if entry is None:
            raise NotFoundError("Time entry not found")
        if entry.organization_id != self.actor.organization_id:
            raise ForbiddenError()
        return entry

    def apply_changes(
        self,
        entry: TimeEntry,
        values: Dict[str, Any],
        resolved: ResolvedReferences,
        prefix: str = "",
    ) -> None:
        """
        Apply submitted member, project, task, billing, description and tag
        changes to an entry.

        The client always follows the project; removing the project removes
        the task, and a task that does not belong to a new project is
        dropped unless a task is sent along.

        Raises:
            ValidationFailedError: If the resulting task is not part of the resulting project
            TimeEntryStillRunningError: If an active entry moves to a member who already has one
        """
        member_changed = False
        if values.get("member_id") is not None and resolved.member.id != entry.member_id:
            entry.member_id = resolved.member.id
            entry.user_id = resolved.member.user_id
            member_changed = True

        if "project_id" in values:
            project = resolved.project
            if project is None:
                entry.project_id = None
                entry.client_id = None
                entry.task_id = None
            else:
                if "task_id" not in values and entry.task is not None and entry.task.project_id != project.id:
                    entry.task_id = None
                entry.project_id = project.id
                entry.client_id = project.client_id

        if "task_id" in values:
            task = resolved.task
            if task is not None and task.project_id != entry.project_id:
                raise ValidationFailedError.for_field(f"{prefix}task_id", TASK_NOT_IN_PROJECT)
            entry.task_id = task.id if task is not None else None

        if values.get("billable") is not None:
            entry.billable = values["billable"]

        if "description" in values:
            entry.description = values["description"] or ""

        if values.get("tags") is not None:
            self._sync_tags(entry, [tag.id for tag in resolved.tags])

        if RATE_FIELDS & values.keys():
            entry.billable_rate = self.rates.resolve(entry)

        if member_changed and entry.end is None:
            self._ensure_no_other_active_entry(entry.member_id, exclude_id=entry.id)

    def _sync_tags(self, entry: TimeEntry, tag_ids: List[UUID]) -> None:
        wanted = set(tag_ids)
        for link in list(entry.tag_links):
            if link.tag_id not in wanted:
                entry.tag_links.remove(link)
        present = {link.tag_id for link in entry.tag_links}
        for tag_id in tag_ids:
            if tag_id not in present:
                entry.tag_links.append(TimeEntryTag(tag_id=tag_id))
                present.add(tag_id)

    def _ensure_no_other_active_entry(self, member_id: UUID, exclude_id: Optional[UUID] = None) -> None:
        query = self.db.query(TimeEntry).filter(
            TimeEntry.member_id == member_id,
            TimeEntry.end.is_(None)
        )
        if exclude_id is not None:
            query = query.filter(TimeEntry.id != exclude_id)
        if query.first() is not None:
            raise TimeEntryStillRunningError()

    def _commit_guarding_active_entry(self) -> None:
        """Commit, reporting a lost race on the active entry index as a conflict."""
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise TimeEntryStillRunningError()
