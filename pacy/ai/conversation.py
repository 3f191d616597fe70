"""
Pacy Training Content Generator
Conversation Store.

Short-lived chat history for the interview intake and debrief Q&A
endpoints, keyed by a string such as ``interview:<session>`` or
``debrief:<project>``:

    - persisted in the ``conversation_turns`` table (survives restarts,
      shared across worker processes)
    - idle conversations expire after ``ttl_seconds``
    - ``lock(key)`` serialises the read → model call → append cycle of one
      conversation within a process
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

from pacy.models import db
from pacy.models.workflow import ConversationTurn

logger = logging.getLogger(__name__)

# Maximum turns sent to the model (context window management)
MAX_HISTORY_MESSAGES = 20


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConversationStore:
    """Keyed conversation history with TTL eviction and per-key locking."""

    def __init__(self, ttl_seconds: int = 6 * 3600):
        self.ttl_seconds = ttl_seconds
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def _last_activity(self, key: str) -> datetime | None:
        value = (
            db.session.query(db.func.max(ConversationTurn.created_at))
            .filter(ConversationTurn.conversation_key == key)
            .scalar()
        )
        return _aware(value)

    def _expire_if_idle(self, key: str) -> bool:
        last = self._last_activity(key)
        if last is None:
            return False
        if datetime.now(timezone.utc) - last > timedelta(seconds=self.ttl_seconds):
            logger.info("Conversation %s idle since %s, evicting", key, last.isoformat())
            self.delete(key)
            return True
        return False

    def exists(self, key: str) -> bool:
        self._expire_if_idle(key)
        return self._last_activity(key) is not None

    def history(self, key: str, limit: int | None = MAX_HISTORY_MESSAGES) -> list[dict]:
        """Return ``[{role, content}]`` oldest first, capped at the last ``limit`` turns."""
        self._expire_if_idle(key)
        turns = (
            ConversationTurn.query
            .filter_by(conversation_key=key)
            .order_by(ConversationTurn.id.asc())
            .all()
        )
        if limit:
            turns = turns[-limit:]
        return [{"role": t.role, "content": t.content} for t in turns]

    def turns(self, key: str) -> list[dict]:
        self._expire_if_idle(key)
        return [
            t.to_dict()
            for t in ConversationTurn.query
            .filter_by(conversation_key=key)
            .order_by(ConversationTurn.id.asc())
            .all()
        ]

    def append(self, key: str, role: str, content: str):
        db.session.add(ConversationTurn(conversation_key=key, role=role, content=content))
        db.session.commit()

    def delete(self, key: str) -> int:
        deleted = ConversationTurn.query.filter_by(conversation_key=key).delete()
        db.session.commit()
        with self._locks_guard:
            self._locks.pop(key, None)
        return deleted

    def purge_expired(self) -> int:
        """Delete every conversation idle longer than the TTL; returns turns removed."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.ttl_seconds)
        rows = (
            db.session.query(
                ConversationTurn.conversation_key,
                db.func.max(ConversationTurn.created_at),
            )
            .group_by(ConversationTurn.conversation_key)
            .all()
        )
        removed = 0
        for key, last in rows:
            if _aware(last) < cutoff:
                removed += self.delete(key)
        return removed
