"""Session Schemas — booking, transfer and rating payloads plus the session view.

Invariants:
    - Counselors appear by UUID only; chat handles never leave the broker here
    - RatingRequest.score is a strict int so "5" or 4.5 are rejected at the boundary

Design Decisions:
    - consent_given has no default: the client must state it explicitly
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class SessionCreate(BaseModel):
    user_id: UUID
    counselor_id: UUID
    consent_given: bool


class MatchRequest(BaseModel):
    user_id: UUID
    consent_given: bool


class TransferRequest(BaseModel):
    from_counselor_id: UUID
    to_counselor_id: UUID
    reason: str = Field(max_length=2000)


class RatingRequest(BaseModel):
    user_id: UUID
    score: StrictInt


class TransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_counselor_id: UUID
    to_counselor_id: UUID
    reason: str
    timestamp: datetime


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    counselor_id: UUID
    current_counselor_id: UUID
    previous_counselor_id: UUID | None = None
    start_time: datetime
    end_time: datetime | None = None
    is_active: bool
    duration_minutes: int | None = None
    consent_given: bool
    consent_timestamp: datetime
    transfer_count: int
    rating_score: int | None = None
    transfers: list[TransferResponse] = []


class MatchResponse(BaseModel):
    """session is None when every counselor is busy."""
    matched: bool
    session: SessionResponse | None = None


class ConsentDisclosure(BaseModel):
    text: str


class TerminationResponse(BaseModel):
    sessions_ended: int
