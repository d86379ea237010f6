"""
Time entry Pydantic schemas.

Defines request/response models for listing, aggregating, creating,
updating and batch updating time entries.
"""
from datetime import datetime
from typing import List, Optional, Union
from pydantic import BaseModel, Field
from uuid import UUID


class TimeEntryResponse(BaseModel):
    """Time entry response schema."""
    id: UUID = Field(..., description="Time entry ID")
    start: datetime = Field(..., description="Start (UTC)")
    end: Optional[datetime] = Field(None, description="End (UTC), null while running")
    duration: Optional[int] = Field(None, description="Duration in seconds, null while running")
    description: str = Field(..., description="Work description")
    task_id: Optional[UUID] = Field(None, description="Task ID")
    project_id: Optional[UUID] = Field(None, description="Project ID")
    client_id: Optional[UUID] = Field(None, description="Client ID, derived from the project")
    organization_id: UUID = Field(..., description="Organization ID")
    user_id: UUID = Field(..., description="User ID")
    member_id: UUID = Field(..., description="Member ID")
    tags: List[UUID] = Field(default_factory=list, description="Tag IDs")
    billable: bool = Field(..., description="Whether time is billable")
    billable_rate: Optional[int] = Field(None, description="Hourly rate in cents")

    class Config:
        from_attributes = True


class TimeEntryDataResponse(BaseModel):
    """Single time entry wrapper."""
    data: TimeEntryResponse


class TimeEntriesListResponse(BaseModel):
    """Time entries list response schema."""
    data: List[TimeEntryResponse] = Field(..., description="Time entries, most recent first")


class TimeEntryStoreRequest(BaseModel):
    """Time entry creation request schema."""
    member_id: UUID = Field(..., description="Member the entry is tracked for")
    project_id: Optional[UUID] = Field(None, description="Project ID")
    task_id: Optional[UUID] = Field(None, description="Task ID, requires project_id")
    start: datetime = Field(..., description="Start time")
    end: Optional[datetime] = Field(None, description="End time (null for running timer)")
    billable: bool = Field(..., description="Whether time is billable")
    description: Optional[str] = Field(None, max_length=500, description="Work description")
    tags: Optional[List[UUID]] = Field(default_factory=list, description="Tag IDs")


class TimeEntryUpdateRequest(BaseModel):
    """Time entry update request schema. Only sent fields are changed."""
    member_id: Optional[UUID] = Field(None, description="Member ID")
    project_id: Optional[UUID] = Field(None, description="Project ID, null removes project, task and client")
    task_id: Optional[UUID] = Field(None, description="Task ID")
    start: Optional[datetime] = Field(None, description="Start time")
    end: Optional[datetime] = Field(None, description="End time")
    billable: Optional[bool] = Field(None, description="Whether time is billable")
    description: Optional[str] = Field(None, max_length=500, description="Work description")
    tags: Optional[List[UUID]] = Field(None, description="Tag IDs, replaces the current tags")


class BatchChangeSet(BaseModel):
    """Changes applied to every entry of an update-multiple request."""
    member_id: Optional[UUID] = Field(None, description="Member ID")
    project_id: Optional[UUID] = Field(None, description="Project ID, null removes project, task and client")
    task_id: Optional[UUID] = Field(None, description="Task ID")
    billable: Optional[bool] = Field(None, description="Whether time is billable")
    description: Optional[str] = Field(None, max_length=500, description="Work description")
    tags: Optional[List[UUID]] = Field(None, description="Tag IDs, replaces the current tags")


class TimeEntryUpdateMultipleRequest(BaseModel):
    """Update-multiple request schema."""
    ids: List[Union[str, int]] = Field(..., description="Time entry IDs")
    changes: BatchChangeSet = Field(..., description="Changes to apply")


class UpdateMultipleResponse(BaseModel):
    """Update-multiple response schema."""
    success: List[str] = Field(..., description="Updated IDs in request order")
    error: List[str] = Field(..., description="Failed IDs in request order")


class TimeEntryAggregateNode(BaseModel):
    """Aggregation bucket."""
    key: Optional[str] = Field(None, description="Bucket key, null for entries the group does not apply to")
    seconds: int = Field(..., description="Tracked seconds")
    cost: int = Field(..., description="Cost in cents")
    grouped_type: Optional[str] = Field(None, description="Dimension of the child buckets")
    grouped_data: Optional[List["TimeEntryAggregateNode"]] = Field(None, description="Child buckets")


TimeEntryAggregateNode.model_rebuild()


class TimeEntryAggregate(BaseModel):
    """Aggregation root."""
    seconds: int = Field(..., description="Tracked seconds")
    cost: int = Field(..., description="Cost in cents")
    grouped_type: Optional[str] = Field(None, description="Dimension of the child buckets")
    grouped_data: Optional[List[TimeEntryAggregateNode]] = Field(None, description="Child buckets")


class TimeEntryAggregateResponse(BaseModel):
    """Aggregation response schema."""
    data: TimeEntryAggregate
