"""
In-app notifications: admin-issued, per user or broadcast.
"""

import logging
from datetime import timedelta
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.pagination import create_pagination_meta, page_offset, validate_pagination
from ...core.auth import AuthContext
from ...core.utils.datetime_utils import get_current_timestamp
from ..deps import AdminUser, CurrentUser, DocumentStoreDep
from ..errors import ForbiddenError, NotificationNotFoundError
from ..schemas.common import ApiResponse, error_responses
from ..schemas.notifications import (
    BROADCAST_RECIPIENT,
    CreateNotificationRequest,
    NotificationListQuery,
    UpdateNotificationRequest,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])

NOTIFICATIONS = "notifications"
USERS = "users"

NOTIFICATION_LIFETIME_DAYS = 30
ROLE_AUDIENCES = ("doctor", "patient", "company")


def _visible_to(caller: AuthContext):
    now = get_current_timestamp()
    return [
        where("recipientId", "in", [caller.uid, BROADCAST_RECIPIENT]),
        where("isDeleted", "==", False),
        where("expiresAt", ">", now),
    ]


async def _get_owned_notification(
    store, notification_id: str, caller: AuthContext, include_deleted: bool = False
) -> Dict[str, Any]:
    notification = await store.get(NOTIFICATIONS, notification_id)
    if notification is None or (notification.get("isDeleted") and not include_deleted):
        raise NotificationNotFoundError(notification_id)
    if caller.role != "admin" and notification.get("recipientId") != caller.uid:
        raise ForbiddenError("Access denied")
    return notification


@router.get("", response_model=ApiResponse[dict], summary="List notifications")
async def fetch_notifications(
    query: Annotated[NotificationListQuery, Query()], caller: CurrentUser, store: DocumentStoreDep
):
    """The caller's live notifications, newest first, with the unread counter."""
    page, limit = validate_pagination(query.page, query.limit)

    filters = _visible_to(caller)
    unread_count = await store.count(NOTIFICATIONS, filters + [where("isRead", "==", False)])
    if query.unread_only:
        filters.append(where("isRead", "==", False))
    if query.type:
        filters.append(where("type", "==", query.type))
    if query.priority:
        filters.append(where("priority", "==", query.priority))

    total = await store.count(NOTIFICATIONS, filters)
    notifications = await store.query(
        NOTIFICATIONS, filters, [("createdAt", DESC)], page_offset(page, limit), limit
    )
    return ok(
        {"notifications": notifications, "unreadCount": unread_count},
        create_pagination_meta(page, limit, total),
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Send a notification",
)
async def create_notification(body: CreateNotificationRequest, caller: AdminUser, store: DocumentStoreDep):
    """
    Notify one user, or every active user when ``recipientId`` is "all".
    A broadcast with a role ``recipientType`` only reaches users with that role.
    """
    data = body.to_document()
    data.setdefault("expiresAt", get_current_timestamp() + timedelta(days=NOTIFICATION_LIFETIME_DAYS))
    data.update({"isRead": False, "isDeleted": False, "createdBy": caller.uid})

    if body.recipient_id != BROADCAST_RECIPIENT:
        notification = await store.add(NOTIFICATIONS, data)
        return created(notification)

    audience = [where("isActive", "==", True)]
    if body.recipient_type in ROLE_AUDIENCES:
        audience.append(where("role", "==", body.recipient_type))
    recipients = await store.query(USERS, audience)
    ids = await store.add_many(NOTIFICATIONS, [{**data, "recipientId": user["id"]} for user in recipients])

    logger.info(f"Broadcast notification '{body.title}' delivered to {len(ids)} users")
    return created({"broadcast": True, "recipientCount": len(ids), "notificationIds": ids})


# Declared before /{notification_id} so the literal path wins
@router.put("/mark-all-read", response_model=ApiResponse[dict], summary="Mark every notification read")
async def mark_all_notifications_read(caller: CurrentUser, store: DocumentStoreDep):
    unread = await store.query(
        NOTIFICATIONS,
        [
            where("recipientId", "==", caller.uid),
            where("isDeleted", "==", False),
            where("isRead", "==", False),
        ],
    )
    marked = 0
    if unread:
        marked = await store.update_many(
            NOTIFICATIONS, [n["id"] for n in unread], {"isRead": True, "readAt": get_current_timestamp()}
        )
    return ok({"markedCount": marked})


@router.get(
    "/{notification_id}", response_model=ApiResponse[dict], responses=error_responses(403), summary="Get a notification"
)
async def fetch_notification(notification_id: str, caller: CurrentUser, store: DocumentStoreDep):
    return ok(await _get_owned_notification(store, notification_id, caller))


@router.put(
    "/{notification_id}",
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Mark a notification read or unread",
)
async def update_notification(
    notification_id: str, body: UpdateNotificationRequest, caller: CurrentUser, store: DocumentStoreDep
):
    await _get_owned_notification(store, notification_id, caller)
    changes = {"isRead": body.is_read, "readAt": get_current_timestamp() if body.is_read else None}
    return ok(await store.update(NOTIFICATIONS, notification_id, changes))


@router.delete(
    "/{notification_id}",
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Delete a notification",
)
async def delete_notification(notification_id: str, caller: CurrentUser, store: DocumentStoreDep):
    """Soft delete. Repeating it keeps the first ``deletedAt``."""
    notification = await _get_owned_notification(store, notification_id, caller, include_deleted=True)
    deleted_at = notification.get("deletedAt")
    if not notification.get("isDeleted") or deleted_at is None:
        deleted_at = get_current_timestamp()
        await store.update(NOTIFICATIONS, notification_id, {"isDeleted": True, "deletedAt": deleted_at})
    return ok({"id": notification_id, "deleted": True, "deletedAt": deleted_at})
