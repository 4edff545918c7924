"""Message Schemas — routing requests, routed results and history pages."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MessageCreate(BaseModel):
    sender_id: UUID
    sender_type: Literal["user", "counselor"]
    content: str = Field(max_length=4096)


class InboundMessage(BaseModel):
    """Raw line from the chat transport."""
    external_chat_handle: str = Field(min_length=1, max_length=64)
    content: str = Field(max_length=4096)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    sender_id: UUID
    sender_type: str
    content: str
    timestamp: datetime


class RoutedMessageResponse(BaseModel):
    message: MessageResponse
    recipient_id: UUID
    recipient_type: str


class InboundResult(BaseModel):
    routed: bool
    result: RoutedMessageResponse | None = None


class MessagePage(BaseModel):
    messages: list[MessageResponse]
    page: int
    page_size: int
    total: int
    total_pages: int
