"""Request and response bodies for the JSON API."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Inputs
# =============================================================================


class AvailabilityIn(BaseModel):
    status: str = Field(..., examples=["available", "unavailable", "substitute_needed"])
    notes: Optional[str] = None
    # Only needed when the player sits on both rosters of a fixture
    team_id: Optional[int] = None


class RequestUpsertIn(BaseModel):
    team_id: int
    player_id: str = Field(..., min_length=1, max_length=64)
    fixture_id: Optional[int] = None
    needs_substitute: bool = True
    notes: Optional[str] = None
    valid_until: Optional[date] = None


class AssignmentProposalIn(BaseModel):
    team_id: int
    substitute_team_id: int
    substitute_player_id: str = Field(..., min_length=1, max_length=64)
    notes: Optional[str] = None
    request_id: Optional[int] = None


class DecisionIn(BaseModel):
    decision: str = Field(..., examples=["approve", "reject"])


# =============================================================================
# Outputs
# =============================================================================


class AvailabilityOut(OrmModel):
    fixture_id: int
    player_id: str
    team_id: int
    status: str
    notes: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: datetime


class RequestOut(OrmModel):
    id: int
    team_id: int
    team_name: str
    player_id: str
    fixture_id: Optional[int] = None
    needs_substitute: bool
    notes: Optional[str] = None
    valid_until: date
    archived: bool
    marked_by: str
    created_at: datetime
    updated_at: datetime


class AvailabilityChangeOut(OrmModel):
    record: AvailabilityOut
    previous_status: Optional[str] = None
    request: Optional[RequestOut] = None
    request_id: Optional[int] = None
    request_action: Optional[str] = None


class RequestArchivalOut(OrmModel):
    request: RequestOut
    archived_assignment_ids: list[int]


class AssignmentOut(OrmModel):
    id: int
    request_id: Optional[int] = None
    team_id: int
    team_name: str
    substitute_team_id: int
    substitute_team_name: str
    substitute_player_id: str
    requested_by: str
    approved_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    status: str
    notes: Optional[str] = None
    archived: bool
    created_at: datetime
    updated_at: datetime


class CandidateOut(OrmModel):
    id: str
    display_name: str
    is_captain: bool


class ActingUserOut(BaseModel):
    user_id: str
    roles: list[str]
    captain_of: list[int]


class HousekeepingOut(BaseModel):
    archived_request_ids: list[int]
    archived_assignment_ids: list[int]
