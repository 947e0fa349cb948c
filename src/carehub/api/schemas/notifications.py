"""
Pydantic schemas for notifications.
"""

from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from ...domain.enums import NotificationPriority, NotificationType, RecipientType
from .common import CamelModel, PaginationQuery, UtcDateTime, parse_bool_param

BROADCAST_RECIPIENT = "all"


class CreateNotificationRequest(CamelModel):
    """Request schema for an admin notification; ``recipientId="all"`` broadcasts."""

    recipient_id: str = Field(..., min_length=1)
    recipient_type: RecipientType = RecipientType.USER
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    action_url: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    expires_at: Optional[UtcDateTime] = None


class NotificationListQuery(PaginationQuery):
    unread_only: bool = False
    type: Optional[NotificationType] = None
    priority: Optional[NotificationPriority] = None

    @field_validator("unread_only", mode="before")
    @classmethod
    def coerce_bool(cls, v):
        return parse_bool_param(v) or False


class UpdateNotificationRequest(CamelModel):
    is_read: bool = True
