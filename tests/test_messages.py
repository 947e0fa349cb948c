"""
Conversations and direct messages.
"""

import pytest

from carehub.api.routers.messages import direct_conversation_id

from conftest import run

MESSAGES = "/api/v1/messages"


@pytest.fixture
def people(seed):
    return {
        "doctor": seed.doctor("doc-1"),
        "patient": seed.patient("pat-1"),
        "outsider": seed.patient("pat-2", "Bruno", "Silva"),
    }


def send(client, headers, recipient_id, content, **extra):
    response = client.post(MESSAGES, json={"recipientId": recipient_id, "content": content, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_direct_conversation_id_is_order_independent():
    assert direct_conversation_id("pat-1", "doc-1") == direct_conversation_id("doc-1", "pat-1") == "direct_doc-1_pat-1"


def test_first_message_opens_the_conversation(client, people, store):
    message = send(client, people["patient"], "doc-1", "Is my lab result in?")
    assert message["conversationId"] == "direct_doc-1_pat-1"
    assert message["sender"] == {"id": "pat-1", "name": "Ana Lopez", "role": "patient", "avatar": None}
    assert message["isRead"] is False

    reply = send(client, people["doctor"], "pat-1", "Yes, all normal.")
    assert reply["conversationId"] == message["conversationId"]

    conversation = run(store.get("conversations", "direct_doc-1_pat-1"))
    assert conversation["participants"] == ["pat-1", "doc-1"]
    assert conversation["lastMessage"]["content"] == "Yes, all normal."


def test_unknown_recipient_and_blank_content(client, people):
    missing = client.post(MESSAGES, json={"recipientId": "ghost", "content": "hi"}, headers=people["patient"])
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "RECIPIENT_NOT_FOUND"

    blank = client.post(MESSAGES, json={"recipientId": "doc-1", "content": "   "}, headers=people["patient"])
    assert blank.status_code == 400


def test_conversation_list_counts_unread(client, people):
    send(client, people["patient"], "doc-1", "one")
    send(client, people["patient"], "doc-1", "two")

    inbox = client.get(MESSAGES, headers=people["doctor"]).json()
    assert inbox["data"]["totalUnread"] == 2
    assert inbox["data"]["conversations"][0]["unreadCount"] == 2

    sender_view = client.get(MESSAGES, headers=people["patient"]).json()
    assert sender_view["data"]["totalUnread"] == 0


def test_reading_marks_messages_read(client, people):
    send(client, people["patient"], "doc-1", "first")
    send(client, people["patient"], "doc-1", "second")
    path = f"{MESSAGES}/direct_doc-1_pat-1"

    page = client.get(path, headers=people["doctor"]).json()
    assert [m["content"] for m in page["data"]["messages"]] == ["first", "second"]
    assert all(m["isRead"] for m in page["data"]["messages"])
    assert page["meta"]["limit"] == 50

    assert client.get(MESSAGES, headers=people["doctor"]).json()["data"]["totalUnread"] == 0


def test_outsiders_cannot_read_or_post(client, people):
    send(client, people["patient"], "doc-1", "private")
    path = f"{MESSAGES}/direct_doc-1_pat-1"

    assert client.get(path, headers=people["outsider"]).status_code == 403
    response = client.post(
        MESSAGES,
        json={"recipientId": "doc-1", "content": "let me in", "conversationId": "direct_doc-1_pat-1"},
        headers=people["outsider"],
    )
    assert response.status_code == 403
    assert client.get(f"{MESSAGES}/missing", headers=people["doctor"]).status_code == 404


def test_blocked_conversation_refuses_messages(client, people):
    send(client, people["patient"], "doc-1", "hello")
    path = f"{MESSAGES}/direct_doc-1_pat-1"

    blocked = client.put(path, json={"status": "blocked"}, headers=people["doctor"]).json()["data"]
    assert blocked["status"] == "blocked"

    response = client.post(MESSAGES, json={"recipientId": "doc-1", "content": "again"}, headers=people["patient"])
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "CONVERSATION_BLOCKED"
    assert client.get(MESSAGES, headers=people["patient"]).json()["meta"]["total"] == 0
    assert client.get(MESSAGES, params={"status": "blocked"}, headers=people["patient"]).json()["meta"]["total"] == 1
