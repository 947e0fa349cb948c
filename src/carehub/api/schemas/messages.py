"""
Pydantic schemas for conversations and messages.
"""

from typing import List, Optional

from pydantic import Field, validator

from ...domain.enums import ConversationStatus, ConversationType, MessageType
from .common import CamelModel, PaginationQuery

DEFAULT_MESSAGE_LIMIT = 50


class SendMessageRequest(CamelModel):
    """Request schema for sending a direct message."""

    recipient_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=5000)
    type: MessageType = MessageType.TEXT
    conversation_id: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)

    @validator("content")
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class ConversationListQuery(PaginationQuery):
    status: ConversationStatus = ConversationStatus.ACTIVE
    type: Optional[ConversationType] = None


class UpdateConversationRequest(CamelModel):
    status: ConversationStatus
