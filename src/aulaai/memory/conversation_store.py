"""
Conversation history adapter.

Agents read the last few turns of a conversation before running and write the new exchange back
afterwards.  :class:`InMemoryConversationStore` keeps everything in process memory and can append
each exchange to a flat-file audit trail (JSON lines).
"""

import json
import logging
import threading
from abc import (
    ABC,
    abstractmethod,
)
from datetime import (
    datetime,
    timedelta,
    timezone,
)
from pathlib import Path
from typing import (
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from aulaai.core.schema import Role

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StoredMessage(BaseModel):
    """A persisted message."""

    role: Role
    content: str
    sent_at: datetime = Field(default_factory=_now)


class Conversation(BaseModel):
    """Conversation metadata plus its ordered messages."""

    id: int
    agent_type: str
    model: str
    title: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    messages: List[StoredMessage] = Field(default_factory=list)


def make_title(first_message: str) -> str:
    """Derive a conversation title from its first user message."""
    title = first_message[:TITLE_LENGTH]
    if len(first_message) > TITLE_LENGTH:
        title += "..."
    return title


class ConversationStore(ABC):
    """Interface the agents use to read and persist conversations."""

    @abstractmethod
    def create(self, agent_type: str, model: str) -> Conversation:
        """Start a new, empty conversation."""

    @abstractmethod
    def get(self, conversation_id: int) -> Conversation | None:
        """Return the conversation or *None*."""

    @abstractmethod
    def list_recent(self, limit: int = 50) -> List[Conversation]:
        """Most recently updated conversations first."""

    @abstractmethod
    def history(self, conversation_id: int, limit: int = 20) -> List[StoredMessage]:
        """The last *limit* messages of a conversation, oldest first."""

    @abstractmethod
    def save_exchange(self, conversation_id: int, user_query: str, answer: str) -> None:
        """Persist a user query and its answer; titles the conversation on its first exchange."""


class InMemoryConversationStore(ConversationStore):
    """Thread-safe process-local store."""

    def __init__(self, audit_path: str | Path | None = None) -> None:
        self._conversations: Dict[int, Conversation] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self._audit_path = Path(audit_path) if audit_path else None
        if self._audit_path is not None:
            self._audit_path.parent.mkdir(parents=True, exist_ok=True)
            self._audit_path.touch(exist_ok=True)

    def create(self, agent_type: str, model: str) -> Conversation:
        with self._lock:
            conversation = Conversation(id=self._next_id, agent_type=agent_type, model=model)
            self._conversations[conversation.id] = conversation
            self._next_id += 1
        logger.info("Created conversation %d (%s, %s)", conversation.id, agent_type, model)
        return conversation.model_copy(deep=True)

    def get(self, conversation_id: int) -> Conversation | None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy(deep=True) if conversation else None

    def list_recent(self, limit: int = 50) -> List[Conversation]:
        with self._lock:
            ordered = sorted(
                self._conversations.values(), key=lambda c: (c.updated_at, c.id), reverse=True
            )
            return [c.model_copy(deep=True) for c in ordered[:limit]]

    def history(self, conversation_id: int, limit: int = 20) -> List[StoredMessage]:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None or limit <= 0:
                return []
            return [m.model_copy() for m in conversation.messages[-limit:]]

    def save_exchange(self, conversation_id: int, user_query: str, answer: str) -> None:
        now = _now()
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                raise KeyError(f"Unknown conversation: {conversation_id}")
            conversation.messages.append(StoredMessage(role="user", content=user_query, sent_at=now))
            conversation.messages.append(
                StoredMessage(role="assistant", content=answer, sent_at=now + timedelta(seconds=1))
            )
            conversation.updated_at = now
            if len(conversation.messages) <= 2 and not conversation.title:
                conversation.title = make_title(user_query)

        if self._audit_path is not None:
            # Flat-file audit trail
            with self._audit_path.open("a", encoding="utf-8") as f:
                record = {
                    "conversation_id": conversation_id,
                    "query": user_query,
                    "reply": answer,
                    "sent_at": now.isoformat(),
                }
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
