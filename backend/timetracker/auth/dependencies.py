"""
Authentication dependencies for FastAPI endpoints.

Provides dependency functions for extracting the current user from the
bearer token and resolving their membership in the organization addressed
by the request path.
"""
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..database.connection import get_db
from ..database.models import Member, Organization, User, Weekday
from .jwt_handler import JWTHandler
from .permissions import actor_has_permission

security = HTTPBearer()


class CurrentUser:
    """Current user information from JWT token."""

    def __init__(self, user_id: UUID, email: str):
        self.user_id = user_id
        self.email = email


class OrganizationActor:
    """The acting member together with its organization and user settings."""

    def __init__(self, organization: Organization, member: Member, user: User):
        self.organization = organization
        self.member = member
        self.user = user

    @property
    def organization_id(self) -> UUID:
        return self.organization.id

    @property
    def member_id(self) -> UUID:
        return self.member.id

    @property
    def timezone(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.user.timezone or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            return ZoneInfo("UTC")

    @property
    def week_start(self) -> Weekday:
        return Weekday(self.user.week_start or Weekday.MONDAY)

    def has_permission(self, permission: str) -> bool:
        return actor_has_permission(self.member, permission)


# PUBLIC_INTERFACE
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CurrentUser:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        CurrentUser: Current user information

    Raises:
        HTTPException: If token is invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = JWTHandler.verify_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        raise credentials_exception

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise credentials_exception

    return CurrentUser(user_id=user_id, email=payload.get("email"))


# PUBLIC_INTERFACE
async def get_organization_actor(
    organization_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> OrganizationActor:
    """
    Resolve the current user's membership in the requested organization.

    Args:
        organization_id: Organization ID from the request path
        current_user: Current authenticated user
        db: Database session

    Returns:
        OrganizationActor: Acting member context

    Raises:
        HTTPException: If the organization is unknown or the user is not a member
    """
    organization = db.get(Organization, organization_id)
    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )

    member = db.query(Member).filter(
        Member.organization_id == organization_id,
        Member.user_id == current_user.user_id
    ).first()
    if member is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this organization is not allowed"
        )

    return OrganizationActor(organization=organization, member=member, user=member.user)
