"""
Batch update of time entries.

Applies one change set to a list of entry ids. Every id is looked up,
authorized and committed on its own, so a failing id never affects the
others.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.dependencies import OrganizationActor
from ..auth.permissions import UPDATE_ALL, UPDATE_OWN
from ..database.models import TimeEntry
from ..exceptions import ForbiddenError, TimeTrackerError
from .time_entry_service import TimeEntryService, can_modify_entry

logger = logging.getLogger(__name__)


@dataclass
class BatchUpdateResult:
    success: List[str] = field(default_factory=list)
    error: List[str] = field(default_factory=list)


class BatchMutationCoordinator:
    """Runs update-multiple requests for one acting member."""

    def __init__(self, db: Session, actor: OrganizationActor):
        self.db = db
        self.actor = actor
        self.entries = TimeEntryService(db, actor)

    # PUBLIC_INTERFACE
    def update_multiple(self, ids: List[str], changes: Dict[str, Any]) -> BatchUpdateResult:
        """
        Apply ``changes`` to every entry in ``ids``.

        Args:
            ids: Entry ids as sent by the caller, duplicates included
            changes: Fields of the change set that were sent

        Returns:
            BatchUpdateResult: Succeeded and failed ids, both in input order

        Raises:
            ForbiddenError: If the actor may not update any entries
            ValidationFailedError: If the change set references records outside the organization
        """
        if not (self.actor.has_permission(UPDATE_OWN) or self.actor.has_permission(UPDATE_ALL)):
            raise ForbiddenError()

        resolved = self.entries.references.resolve_changes(changes, prefix="changes.")
        result = BatchUpdateResult()

        for raw_id in ids:
            entry = self._find(raw_id)
            if entry is None:
                result.error.append(raw_id)
                continue
            if not can_modify_entry(self.actor, entry, UPDATE_OWN, UPDATE_ALL, changes.get("member_id")):
                result.error.append(raw_id)
                continue

            try:
                self.entries.apply_changes(entry, changes, resolved, prefix="changes.")
                self.db.commit()
            except TimeTrackerError as e:
                self.db.rollback()
                logger.warning(f"Time entry {raw_id} rejected: {e.message}")
                result.error.append(raw_id)
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(f"Failed to update time entry {raw_id}")
                result.error.append(raw_id)
                continue
            result.success.append(raw_id)

        logger.info(
            f"Batch update by member {self.actor.member_id}: "
            f"{len(result.success)} updated, {len(result.error)} failed"
        )
        return result

    def _find(self, raw_id: str):
        try:
            entry_id = UUID(str(raw_id))
        except ValueError:
            return None
        entry = self.db.get(TimeEntry, entry_id)
        if entry is None or entry.organization_id != self.actor.organization_id:
            return None
        return entry
