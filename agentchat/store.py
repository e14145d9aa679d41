"""
In-memory conversation store.

Owns the session id → Conversation mapping. Nothing is persisted: sessions
live as long as the process. Message logs are append-only and keep insertion
order; a conversation is only ever removed whole.

Creating a session with an id that already exists raises DuplicateSession
rather than silently replacing the old conversation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from agentchat.errors import DuplicateSession, SessionNotFound

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ChatMessage:
    role: str
    content: str
    timestamp: str = field(default_factory=_now)

    def to_wire(self) -> dict:
        """Role/content pair as sent to providers."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass
class Conversation:
    session_id: str
    agent_name: str
    system_prompt: str
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: str = field(default_factory=_now)


class ConversationStore:
    """Exclusive owner of all live conversations."""

    def __init__(self, preview_length: int = 100):
        self.preview_length = preview_length
        self._conversations: dict[str, Conversation] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def create(self, session_id: str, system_prompt: str, agent_name: str) -> Conversation:
        if session_id in self._conversations:
            raise DuplicateSession(f"Chat session '{session_id}' already exists")
        conv = Conversation(
            session_id=session_id,
            agent_name=agent_name,
            system_prompt=system_prompt,
        )
        self._conversations[session_id] = conv
        logger.debug("Created conversation %s for agent %s", session_id, agent_name)
        return conv

    def get(self, session_id: str) -> Conversation:
        conv = self._conversations.get(session_id)
        if conv is None:
            raise SessionNotFound(f"Chat session '{session_id}' not found")
        return conv

    def append(self, session_id: str, role: str, content: str) -> ChatMessage:
        if role not in ROLES:
            raise ValueError(f"Invalid role '{role}', expected one of {ROLES}")
        message = ChatMessage(role=role, content=content)
        self.get(session_id).messages.append(message)
        return message

    def remove(self, session_id: str) -> bool:
        """Drop a conversation. Returns False if it was already gone."""
        self._locks.pop(session_id, None)
        removed = self._conversations.pop(session_id, None) is not None
        if removed:
            logger.debug("Removed conversation %s", session_id)
        return removed

    def lock(self, session_id: str) -> asyncio.Lock:
        """Per-session lock serializing exchanges on one message log."""
        self.get(session_id)
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _preview(self, content: str) -> str:
        if len(content) <= self.preview_length:
            return content
        return content[: self.preview_length] + "..."

    def list(self) -> list[dict]:
        chats = []
        for session_id, conv in self._conversations.items():
            chats.append({
                "session_id": session_id,
                "agent_name": conv.agent_name,
                "message_count": len(conv.messages),
                "created_at": conv.created_at,
                "last_message": self._preview(conv.messages[-1].content) if conv.messages else None,
            })
        return chats

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)
