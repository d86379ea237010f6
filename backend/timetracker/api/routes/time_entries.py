"""
Time entry API routes.

Provides listing, aggregation, creation, update, batch update and deletion
of the time entries of an organization.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ...auth.dependencies import OrganizationActor, get_organization_actor
from ...database.connection import get_db
from ...schemas.time_entry import (
    TimeEntriesListResponse, TimeEntryAggregateResponse, TimeEntryDataResponse,
    TimeEntryResponse, TimeEntryStoreRequest, TimeEntryUpdateMultipleRequest,
    TimeEntryUpdateRequest, UpdateMultipleResponse
)
from ...services.aggregation import GroupKind
from ...services.batch_update import BatchMutationCoordinator
from ...services.time_entry_filter import TimeEntryFilterParams
from ...services.time_entry_service import DEFAULT_LIMIT, MAX_LIMIT, TimeEntryService

router = APIRouter(prefix="/organizations/{organization_id}/time-entries", tags=["Time Entries"])


def get_filter_params(
    member_id: Optional[UUID] = Query(None, description="Filter by member"),
    member_ids: List[UUID] = Query([], description="Filter by any of these members"),
    user_id: Optional[UUID] = Query(None, description="Filter by user"),
    project_ids: List[UUID] = Query([], description="Filter by any of these projects"),
    task_ids: List[UUID] = Query([], description="Filter by any of these tasks"),
    tag_ids: List[UUID] = Query([], description="Filter by entries carrying any of these tags"),
    client_ids: List[UUID] = Query([], description="Filter by any of these clients"),
    billable: Optional[bool] = Query(None, description="Filter by billable flag"),
    active: Optional[bool] = Query(None, description="true: only running entries, false: only completed entries"),
    start: Optional[datetime] = Query(None, description="Entries starting at or after this instant"),
    end: Optional[datetime] = Query(None, description="Entries starting at or before this instant"),
) -> TimeEntryFilterParams:
    """Collect the shared listing/aggregation filters from the query string."""
    return TimeEntryFilterParams(
        member_id=member_id,
        member_ids=member_ids,
        user_id=user_id,
        project_ids=project_ids,
        task_ids=task_ids,
        tag_ids=tag_ids,
        client_ids=client_ids,
        billable=billable,
        active=active,
        start=start,
        end=end,
    )


# PUBLIC_INTERFACE
@router.get("", response_model=TimeEntriesListResponse,
            summary="List time entries",
            description="Get time entries of the organization, most recent first.")
async def list_time_entries(
    params: TimeEntryFilterParams = Depends(get_filter_params),
    only_full_dates: bool = Query(False, description="Return whole days only"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Maximum number of entries"),
    actor: OrganizationActor = Depends(get_organization_actor),
    db: Session = Depends(get_db)
):
    """
    List time entries.

    Actors without the permission to view all entries only ever see their
    own. With ``only_full_dates`` the oldest returned day is never cut off.

    Args:
        params: Listing filters
        only_full_dates: Return whole days only
        limit: Maximum number of entries
        actor: Acting member
        db: Database session

    Returns:
        TimeEntriesListResponse: Matching time entries
    """
    entries = TimeEntryService(db, actor).list_entries(params, only_full_dates=only_full_dates, limit=limit)
    return TimeEntriesListResponse(data=[TimeEntryResponse.model_validate(entry) for entry in entries])


# PUBLIC_INTERFACE
@router.get("/aggregate", response_model=TimeEntryAggregateResponse,
            summary="Aggregate time entries",
            description="Total tracked time and cost, optionally grouped by up to two dimensions.")
async def aggregate_time_entries(
    params: TimeEntryFilterParams = Depends(get_filter_params),
    group: Optional[GroupKind] = Query(None, description="First grouping dimension"),
    sub_group: Optional[GroupKind] = Query(None, description="Second grouping dimension, requires group"),
    fill_gaps_in_time_groups: bool = Query(False, description="Add empty buckets between start and end for time groups"),
    actor: OrganizationActor = Depends(get_organization_actor),
    db: Session = Depends(get_db)
):
    """
    Aggregate time entries.

    Args:
        params: Filters selecting the aggregated entries
        group: First grouping dimension
        sub_group: Second grouping dimension
        fill_gaps_in_time_groups: Fill empty calendar buckets, requires start and end
        actor: Acting member
        db: Database session

    Returns:
        TimeEntryAggregateResponse: Aggregation tree
    """
    node = TimeEntryService(db, actor).aggregate(
        params,
        group=group,
        sub_group=sub_group,
        fill_gaps=fill_gaps_in_time_groups,
    )
    return {"data": node.to_dict(include_key=False)}


# PUBLIC_INTERFACE
@router.post("", response_model=TimeEntryDataResponse, status_code=status.HTTP_201_CREATED,
             summary="Create time entry",
             description="Create a new time entry; omit end to start a running timer.")
async def create_time_entry(
    request: TimeEntryStoreRequest,
    actor: OrganizationActor = Depends(get_organization_actor),
    db: Session = Depends(get_db)
):
    """
    Create a new time entry.

    A member can have only one running time entry at a time.
    """
    entry = TimeEntryService(db, actor).create(request.model_dump())
    return TimeEntryDataResponse(data=TimeEntryResponse.model_validate(entry))


# PUBLIC_INTERFACE
@router.patch("", response_model=UpdateMultipleResponse,
              summary="Update multiple time entries",
              description="Apply the same changes to several time entries.")
async def update_multiple_time_entries(
    request: TimeEntryUpdateMultipleRequest,
    actor: OrganizationActor = Depends(get_organization_actor),
    db: Session = Depends(get_db)
):
    """
    Update multiple time entries.

    Each id succeeds or fails on its own; failures never undo the updates
    of other ids.
    """
    changes = request.changes.model_dump(exclude_unset=True)
    ids = [str(raw_id) for raw_id in request.ids]
    result = BatchMutationCoordinator(db, actor).update_multiple(ids, changes)
    return UpdateMultipleResponse(success=result.success, error=result.error)


# PUBLIC_INTERFACE
@router.put("/{time_entry_id}", response_model=TimeEntryDataResponse,
            summary="Update time entry",
            description="Update the sent fields of a time entry.")
async def update_time_entry(
    time_entry_id: UUID,
    request: TimeEntryUpdateRequest,
    actor: OrganizationActor = Depends(get_organization_actor),
    db: Session = Depends(get_db)
):
    """
    Update a time entry.

    A completed time entry cannot be made running again.
    """
    entry = TimeEntryService(db, actor).update(time_entry_id, request.model_dump(exclude_unset=True))
    return TimeEntryDataResponse(data=TimeEntryResponse.model_validate(entry))


# PUBLIC_INTERFACE
@router.delete("/{time_entry_id}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Delete time entry",
               description="Delete a time entry.")
async def delete_time_entry(
    time_entry_id: UUID,
    actor: OrganizationActor = Depends(get_organization_actor),
    db: Session = Depends(get_db)
):
    """Delete a time entry."""
    TimeEntryService(db, actor).delete(time_entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
