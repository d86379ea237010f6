"""
Lookup of records referenced by time entry requests.

Every referenced member, project, task and tag must belong to the
organization the request addresses; anything else is reported as a
validation error naming the offending field.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..database.models import Member, Project, Tag, Task
from ..exceptions import ValidationFailedError

TASK_REQUIRES_PROJECT = "The project field is required when task is present."
TASK_NOT_IN_PROJECT = "The task is not part of the given project."


@dataclass
class ResolvedReferences:
    """Records resolved from a request; ``None`` when the field was absent or null."""
    member: Optional[Member] = None
    project: Optional[Project] = None
    task: Optional[Task] = None
    tags: List[Tag] = field(default_factory=list)


class OrganizationReferences:
    """Resolves ids against a single organization."""

    def __init__(self, db: Session, organization_id: UUID):
        self.db = db
        self.organization_id = organization_id

    def _scoped(self, model, record_id: Optional[UUID]):
        if record_id is None:
            return None
        return self.db.query(model).filter(
            model.id == record_id,
            model.organization_id == self.organization_id
        ).first()

    def member(self, member_id: Optional[UUID]) -> Optional[Member]:
        return self._scoped(Member, member_id)

    def member_for_user(self, user_id: UUID) -> Optional[Member]:
        return self.db.query(Member).filter(
            Member.user_id == user_id,
            Member.organization_id == self.organization_id
        ).first()

    def project(self, project_id: Optional[UUID]) -> Optional[Project]:
        return self._scoped(Project, project_id)

    def task(self, task_id: Optional[UUID]) -> Optional[Task]:
        return self._scoped(Task, task_id)

    def tags(self, tag_ids: Iterable[UUID]) -> Optional[List[Tag]]:
        """Return the tags for ``tag_ids`` or ``None`` if any is unknown."""
        wanted = list(dict.fromkeys(tag_ids))
        if not wanted:
            return []
        found = self.db.query(Tag).filter(
            Tag.id.in_(wanted),
            Tag.organization_id == self.organization_id
        ).all()
        if len(found) != len(wanted):
            return None
        by_id = {tag.id: tag for tag in found}
        return [by_id[tag_id] for tag_id in wanted]

    # PUBLIC_INTERFACE
    def resolve_changes(self, values: Dict[str, Any], prefix: str = "") -> ResolvedReferences:
        """
        Resolve the references contained in a set of submitted values.

        Only keys present in ``values`` are looked up; a present key with a
        null value resolves to ``None``.

        Args:
            values: Submitted field values (only the fields that were sent)
            prefix: Prefix for error field names, e.g. ``changes.``

        Returns:
            ResolvedReferences: The resolved records

        Raises:
            ValidationFailedError: If any reference is outside the organization
        """
        errors = {}
        resolved = ResolvedReferences()

        if values.get("member_id") is not None:
            resolved.member = self.member(values["member_id"])
            if resolved.member is None:
                errors[f"{prefix}member_id"] = "The selected member is invalid."

        if values.get("project_id") is not None:
            resolved.project = self.project(values["project_id"])
            if resolved.project is None:
                errors[f"{prefix}project_id"] = "The selected project is invalid."

        if values.get("task_id") is not None:
            resolved.task = self.task(values["task_id"])
            if resolved.task is None:
                errors[f"{prefix}task_id"] = "The selected task is invalid."

        if values.get("tags") is not None:
            tags = self.tags(values["tags"])
            if tags is None:
                errors[f"{prefix}tags"] = "The selected tags are invalid."
            else:
                resolved.tags = tags

        if errors:
            raise ValidationFailedError(errors)
        return resolved


def check_task_matches_project(values: Dict[str, Any], resolved: ResolvedReferences) -> None:
    """Validate that a submitted task comes with the project it belongs to.

    Raises:
        ValidationFailedError: On ``project_id`` and ``task_id`` when the task
            is sent without a project, on ``task_id`` when the task belongs
            to another project.
    """
    if resolved.task is None:
        return
    if values.get("project_id") is None:
        raise ValidationFailedError({
            "project_id": TASK_REQUIRES_PROJECT,
            "task_id": TASK_NOT_IN_PROJECT,
        })
    if resolved.task.project_id != resolved.project.id:
        raise ValidationFailedError.for_field("task_id", TASK_NOT_IN_PROJECT)
