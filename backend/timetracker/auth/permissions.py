"""
Permission grants for organization members.

Roles map to a default set of ``time-entries:{action}:{scope}`` permissions;
a member's explicit ``permissions`` list replaces the role default.
"""
from typing import FrozenSet

from ..database.models import Member, Role

VIEW_OWN = "time-entries:view:own"
VIEW_ALL = "time-entries:view:all"
CREATE_OWN = "time-entries:create:own"
CREATE_ALL = "time-entries:create:all"
UPDATE_OWN = "time-entries:update:own"
UPDATE_ALL = "time-entries:update:all"
DELETE_OWN = "time-entries:delete:own"
DELETE_ALL = "time-entries:delete:all"

_OWN = frozenset({VIEW_OWN, CREATE_OWN, UPDATE_OWN, DELETE_OWN})
_ALL = _OWN | frozenset({VIEW_ALL, CREATE_ALL, UPDATE_ALL, DELETE_ALL})

ROLE_PERMISSIONS = {
    Role.OWNER: _ALL,
    Role.ADMIN: _ALL,
    Role.MANAGER: _ALL,
    Role.EMPLOYEE: _OWN,
    Role.PLACEHOLDER: frozenset(),
}


def permissions_for(member: Member) -> FrozenSet[str]:
    """Return the effective permission set of a member."""
    if member.permissions is not None:
        return frozenset(member.permissions)
    return ROLE_PERMISSIONS.get(Role(member.role), frozenset())


# PUBLIC_INTERFACE
def actor_has_permission(member: Member, permission: str) -> bool:
    """Check whether a member holds a permission in its organization."""
    return permission in permissions_for(member)
