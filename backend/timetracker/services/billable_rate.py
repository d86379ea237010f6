"""Billable rate resolution for time entries."""
from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import Member, Organization, Project, TimeEntry


class BillableRateResolver:
    """Picks the hourly rate that applies to a billable entry.

    The project rate wins over the member rate, which wins over the
    organization rate. Non-billable entries carry no rate.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, entry: TimeEntry) -> Optional[int]:
        if not entry.billable:
            return None

        if entry.project_id is not None:
            project = self.db.get(Project, entry.project_id)
            if project is not None and project.billable_rate is not None:
                return project.billable_rate

        member = self.db.get(Member, entry.member_id)
        if member is not None and member.billable_rate is not None:
            return member.billable_rate

        organization = self.db.get(Organization, entry.organization_id)
        if organization is not None:
            return organization.billable_rate
        return None
