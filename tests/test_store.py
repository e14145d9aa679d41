"""
Tests for the in-memory conversation store.
"""

import asyncio

import pytest

from agentchat.errors import DuplicateSession, SessionNotFound
from agentchat.store import ConversationStore


@pytest.fixture
def store():
    return ConversationStore()


def test_create_and_get(store):
    conv = store.create("s1", "system text", "architect")
    assert store.get("s1") is conv
    assert conv.system_prompt == "system text"
    assert conv.agent_name == "architect"
    assert conv.messages == []
    assert conv.created_at
    assert "s1" in store
    assert len(store) == 1


def test_create_duplicate_rejected(store):
    """Re-creating a live session id is an error, the original survives."""
    store.create("s1", "first", "a")
    store.append("s1", "user", "hello")

    with pytest.raises(DuplicateSession):
        store.create("s1", "second", "b")

    assert store.get("s1").system_prompt == "first"
    assert len(store.get("s1").messages) == 1


def test_append_keeps_order_and_timestamps(store):
    store.create("s1", "sys", "a")
    store.append("s1", "user", "one")
    store.append("s1", "assistant", "two")
    store.append("s1", "user", "three")

    messages = store.get("s1").messages
    assert [m.content for m in messages] == ["one", "two", "three"]
    assert [m.role for m in messages] == ["user", "assistant", "user"]
    stamps = [m.timestamp for m in messages]
    assert stamps == sorted(stamps)


def test_append_unknown_session(store):
    with pytest.raises(SessionNotFound):
        store.append("missing", "user", "hi")


def test_append_rejects_bad_role(store):
    store.create("s1", "sys", "a")
    with pytest.raises(ValueError):
        store.append("s1", "system", "nope")


def test_get_unknown_session(store):
    with pytest.raises(SessionNotFound):
        store.get("missing")


def test_remove_is_idempotent(store):
    store.create("s1", "sys", "a")
    assert store.remove("s1") is True
    assert store.remove("s1") is False
    assert "s1" not in store


def test_list_summaries(store):
    store.create("s1", "sys", "architect")
    store.create("s2", "sys", "pm")
    store.append("s2", "user", "short")

    chats = {c["session_id"]: c for c in store.list()}
    assert chats["s1"]["message_count"] == 0
    assert chats["s1"]["last_message"] is None
    assert chats["s1"]["agent_name"] == "architect"
    assert chats["s2"]["message_count"] == 1
    assert chats["s2"]["last_message"] == "short"


def test_list_preview_truncation(store):
    """Only content longer than the preview limit gets an ellipsis."""
    store.create("s1", "sys", "a")
    store.append("s1", "assistant", "x" * 100)
    assert store.list()[0]["last_message"] == "x" * 100

    store.append("s1", "assistant", "y" * 150)
    assert store.list()[0]["last_message"] == "y" * 100 + "..."


def test_lock_per_session(store):
    store.create("s1", "sys", "a")
    store.create("s2", "sys", "b")
    assert store.lock("s1") is store.lock("s1")
    assert store.lock("s1") is not store.lock("s2")
    assert isinstance(store.lock("s1"), asyncio.Lock)

    with pytest.raises(SessionNotFound):
        store.lock("missing")
