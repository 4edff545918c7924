"""Moderation Schemas — reports, appeals and the audit log.

Invariants:
    - action / outcome stay plain strings so the engine's ValidationError
      (with the list of accepted values) reaches the client
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReportCreate(BaseModel):
    session_id: UUID
    counselor_id: UUID
    reason: str = Field(max_length=4000)


class ReportProcess(BaseModel):
    action: str


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    counselor_id: UUID
    reason: str
    timestamp: datetime
    processed: bool
    processed_at: datetime | None = None
    processed_by: str | None = None
    action: str | None = None


class ReportPage(BaseModel):
    reports: list[ReportResponse]
    page: int
    page_size: int
    total: int
    total_pages: int


class AppealCreate(BaseModel):
    counselor_id: UUID
    message: str = Field(max_length=4000)


class AppealResolve(BaseModel):
    outcome: str


class AppealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    counselor_id: UUID
    message: str
    strikes_at_filing: int
    timestamp: datetime
    processed: bool
    processed_at: datetime | None = None
    processed_by: str | None = None
    outcome: str | None = None


class AppealPage(BaseModel):
    appeals: list[AppealResponse]
    page: int
    page_size: int
    total: int
    total_pages: int


class AuditRecord(BaseModel):
    """Actions performed outside the broker (e.g. a broadcast)."""
    action: str = Field(min_length=1, max_length=64)
    target_id: str | None = Field(None, max_length=64)
    details: dict[str, Any] | None = None


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    admin_id: str
    action: str
    target_id: str | None = None
    timestamp: datetime
    details: dict[str, Any] | None = None


class AuditPage(BaseModel):
    entries: list[AuditEntryResponse]
    page: int
    page_size: int
    total: int
    total_pages: int
