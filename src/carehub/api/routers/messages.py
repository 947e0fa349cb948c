"""
Direct messaging between users, grouped into conversations.
"""

import logging
from collections import Counter
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Query, status

from ...application.ports.document_store import DESC, where
from ...application.services.pagination import create_pagination_meta, page_offset, validate_pagination
from ...core.auth import AuthContext
from ...core.exceptions import DocumentExistsError
from ...core.utils.datetime_utils import get_current_timestamp
from ..deps import CurrentUser, DocumentStoreDep
from ..errors import ConversationNotFoundError, ForbiddenError, NotFoundError
from ..schemas.common import ApiResponse, PaginationQuery, error_responses
from ..schemas.messages import (
    DEFAULT_MESSAGE_LIMIT,
    ConversationListQuery,
    SendMessageRequest,
    UpdateConversationRequest,
)
from ..utils.responses import created, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])

CONVERSATIONS = "conversations"
MESSAGES = "messages"
USERS = "users"


def direct_conversation_id(uid_a: str, uid_b: str) -> str:
    """Stable id for the one direct conversation between two users."""
    return "direct_" + "_".join(sorted((uid_a, uid_b)))


def _participant_details(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user["id"],
        "name": f"{user.get('firstName', '')} {user.get('lastName', '')}".strip(),
        "role": user.get("role"),
        "avatar": user.get("avatar"),
    }


async def _get_conversation(store, conversation_id: str, caller: AuthContext) -> Dict[str, Any]:
    conversation = await store.get(CONVERSATIONS, conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    if caller.uid not in conversation.get("participants", []):
        raise ForbiddenError("You are not a participant in this conversation")
    return conversation


async def _open_direct_conversation(store, sender: Dict[str, Any], recipient: Dict[str, Any]) -> Dict[str, Any]:
    conversation_id = direct_conversation_id(sender["id"], recipient["id"])
    conversation = await store.get(CONVERSATIONS, conversation_id)
    if conversation is not None:
        return conversation
    try:
        return await store.create(
            CONVERSATIONS,
            conversation_id,
            {
                "participants": [sender["id"], recipient["id"]],
                "participantDetails": [_participant_details(sender), _participant_details(recipient)],
                "type": "direct",
                "status": "active",
            },
        )
    except DocumentExistsError:
        # Opened concurrently by the other participant
        return await store.get(CONVERSATIONS, conversation_id)


@router.get("", response_model=ApiResponse[dict], summary="List conversations")
async def fetch_conversations(
    query: Annotated[ConversationListQuery, Query()], caller: CurrentUser, store: DocumentStoreDep
):
    """The caller's conversations, most recently active first, with unread counters."""
    page, limit = validate_pagination(query.page, query.limit)

    filters = [where("participants", "array-contains", caller.uid), where("status", "==", query.status)]
    if query.type:
        filters.append(where("type", "==", query.type))

    total = await store.count(CONVERSATIONS, filters)
    conversations = await store.query(
        CONVERSATIONS, filters, [("updatedAt", DESC)], page_offset(page, limit), limit
    )

    unread = []
    if conversations:
        unread = await store.query(
            MESSAGES,
            [
                where("conversationId", "in", [c["id"] for c in conversations]),
                where("recipientId", "==", caller.uid),
                where("isRead", "==", False),
            ],
        )
    unread_by_conversation = Counter(message["conversationId"] for message in unread)
    total_unread = await store.count(
        MESSAGES, [where("recipientId", "==", caller.uid), where("isRead", "==", False)]
    )

    items = [{**c, "unreadCount": unread_by_conversation[c["id"]]} for c in conversations]
    return ok(
        {"conversations": items, "totalUnread": total_unread},
        create_pagination_meta(page, limit, total),
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Send a message",
)
async def send_message(body: SendMessageRequest, caller: CurrentUser, store: DocumentStoreDep):
    """
    Deliver a message, opening the direct conversation with the recipient
    when no ``conversationId`` is given.
    """
    users = await store.get_many(USERS, [caller.uid, body.recipient_id])
    recipient = users.get(body.recipient_id)
    if recipient is None:
        raise NotFoundError("RECIPIENT_NOT_FOUND", "Recipient not found", {"recipientId": body.recipient_id})
    sender = users.get(caller.uid) or {"id": caller.uid, "email": caller.email, "role": caller.role}

    if body.conversation_id:
        conversation = await _get_conversation(store, body.conversation_id, caller)
        if body.recipient_id not in conversation.get("participants", []):
            raise ForbiddenError("Recipient is not a participant in this conversation")
    else:
        conversation = await _open_direct_conversation(store, sender, recipient)
    if conversation.get("status") == "blocked":
        raise ForbiddenError("This conversation is blocked", code="CONVERSATION_BLOCKED")

    message = await store.add(
        MESSAGES,
        {
            "conversationId": conversation["id"],
            "senderId": caller.uid,
            "sender": _participant_details(sender),
            "recipientId": body.recipient_id,
            "recipient": _participant_details(recipient),
            "content": body.content,
            "type": body.type,
            "attachments": body.attachments,
            "isRead": False,
        },
    )
    await store.update(
        CONVERSATIONS,
        conversation["id"],
        {
            "lastMessage": {
                "content": body.content,
                "senderId": caller.uid,
                "createdAt": message["createdAt"],
            }
        },
    )
    return created(message)


@router.get(
    "/{conversation_id}",
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Read a conversation",
)
async def fetch_conversation_messages(
    conversation_id: str,
    query: Annotated[PaginationQuery, Query()],
    caller: CurrentUser,
    store: DocumentStoreDep,
):
    """
    One page of messages in chronological order; page 1 holds the newest.
    Every unread message addressed to the caller is marked read.
    """
    conversation = await _get_conversation(store, conversation_id, caller)
    page, limit = validate_pagination(query.page, query.limit, default_limit=DEFAULT_MESSAGE_LIMIT)

    filters = [where("conversationId", "==", conversation_id)]
    total = await store.count(MESSAGES, filters)
    newest_first = await store.query(MESSAGES, filters, [("createdAt", DESC)], page_offset(page, limit), limit)

    unread = await store.query(
        MESSAGES, filters + [where("recipientId", "==", caller.uid), where("isRead", "==", False)]
    )
    if unread:
        read_at = get_current_timestamp()
        await store.update_many(MESSAGES, [m["id"] for m in unread], {"isRead": True, "readAt": read_at})
        unread_ids = {m["id"] for m in unread}
        newest_first = [
            {**m, "isRead": True, "readAt": read_at} if m["id"] in unread_ids else m for m in newest_first
        ]

    return ok(
        {"conversation": conversation, "messages": list(reversed(newest_first))},
        create_pagination_meta(page, limit, total),
    )


@router.put(
    "/{conversation_id}",
    response_model=ApiResponse[dict],
    responses=error_responses(403),
    summary="Archive or block a conversation",
)
async def update_conversation(
    conversation_id: str, body: UpdateConversationRequest, caller: CurrentUser, store: DocumentStoreDep
):
    await _get_conversation(store, conversation_id, caller)
    updated = await store.update(CONVERSATIONS, conversation_id, {"status": body.status, "updatedBy": caller.uid})
    logger.info(f"Conversation {conversation_id} set to {body.status} by {caller.uid}")
    return ok(updated)
