"""Directory Schemas — registration payloads and public user/counselor views.

Invariants:
    - external_chat_handle is accepted on registration but never echoed back
    - Counselor profile lists default to empty
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRegister(BaseModel):
    external_chat_handle: str = Field(min_length=1, max_length=64)

    @field_validator("external_chat_handle")
    @classmethod
    def strip_handle(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("external_chat_handle cannot be empty or whitespace")
        return v


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_state: str
    created_at: datetime


class ConversationStateUpdate(BaseModel):
    state: str


class CounselorRegister(UserRegister):
    """Self-registration with an optional profile."""
    full_name: str | None = Field(None, max_length=200)
    username: str | None = Field(None, max_length=100)
    languages_spoken: list[str] = []
    domain_expertise: list[str] = []
    years_experience: int | None = Field(None, ge=0)
    country: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=200)


class CounselorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    availability: str
    is_approved: bool
    is_suspended: bool
    strikes: int
    sessions_handled: int
    full_name: str | None = None
    languages_spoken: list[str] = []
    domain_expertise: list[str] = []
    years_experience: int | None = None
    country: str | None = None
    created_at: datetime


class CounselorPage(BaseModel):
    counselors: list[CounselorResponse]
    page: int
    page_size: int
    total: int
    total_pages: int


class CounselorStatsResponse(BaseModel):
    counselor_id: UUID
    availability: str
    is_approved: bool
    is_suspended: bool
    pending_approval: bool
    strikes: int
    sessions_handled: int
    rating_count: int
    rating_average: float
    last_active_at: datetime


class AvailabilityUpdate(BaseModel):
    """status is validated by the registry so bad literals get its message."""
    status: str


class AvailabilityChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    previous_status: str
    new_status: str
    changed_by: str
    timestamp: datetime
