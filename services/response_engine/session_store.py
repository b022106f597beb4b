"""
session_store.py - In-memory conversation state with LRU and idle-time eviction
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
import logging
import threading

from .engine_models import ConversationSession


class ConversationStateStore:
    """Holds one ConversationSession per conversation id.

    The store is bounded: the least recently used session is evicted once
    ``max_sessions`` is exceeded, and sessions idle for longer than ``ttl``
    are dropped on access or by ``cleanup_expired_sessions``. Callers that
    run concurrently must hold ``lock_for(conversation_id)`` around a
    read-modify-write cycle; the store itself is last-write-wins.
    """

    def __init__(self, max_sessions: int = 1000, ttl: Optional[timedelta] = timedelta(minutes=60),
                 clock: Callable[[], datetime] = datetime.now):
        self.max_sessions = max_sessions
        self.ttl = ttl
        self.clock = clock
        self.active_sessions: "OrderedDict[str, ConversationSession]" = OrderedDict()
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def get(self, conversation_id: str) -> Optional[ConversationSession]:
        """Return the session for a conversation, or None if unknown or expired"""
        with self._guard:
            session = self.active_sessions.get(conversation_id)
            if session is None:
                return None
            if self._is_expired(session):
                self._evict(conversation_id, "expired")
                return None
            self.active_sessions.move_to_end(conversation_id)
            return session

    def get_or_create(self, conversation_id: str) -> ConversationSession:
        session = self.get(conversation_id)
        if session is not None:
            return session

        now = self.clock()
        session = ConversationSession(conversation_id=conversation_id, start_time=now,
                                      last_activity=now)
        self.save(session)
        self.logger.info(f"Initialized conversation session {conversation_id}")
        return session

    def save(self, session: ConversationSession) -> None:
        with self._guard:
            self.active_sessions[session.conversation_id] = session
            self.active_sessions.move_to_end(session.conversation_id)
            while len(self.active_sessions) > self.max_sessions:
                oldest_id = next(iter(self.active_sessions))
                self._evict(oldest_id, "capacity")

    def clear(self, conversation_id: str) -> bool:
        with self._guard:
            if conversation_id not in self.active_sessions:
                return False
            self._evict(conversation_id, "cleared")
            return True

    def all_sessions(self) -> List[ConversationSession]:
        with self._guard:
            return list(self.active_sessions.values())

    def lock_for(self, conversation_id: str) -> threading.RLock:
        """Per-conversation lock serializing updates to one session"""
        with self._guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[conversation_id] = lock
            return lock

    def discard_lock(self, conversation_id: str) -> None:
        """Drop the lock of a conversation that has no stored session"""
        with self._guard:
            if conversation_id not in self.active_sessions:
                self._locks.pop(conversation_id, None)

    def cleanup_expired_sessions(self) -> int:
        """Remove sessions idle for longer than the TTL"""
        if self.ttl is None:
            return 0
        with self._guard:
            expired = [cid for cid, session in self.active_sessions.items()
                       if self._is_expired(session)]
            for conversation_id in expired:
                self._evict(conversation_id, "expired")
        return len(expired)

    def __len__(self) -> int:
        return len(self.active_sessions)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self.active_sessions

    def _is_expired(self, session: ConversationSession) -> bool:
        return self.ttl is not None and self.clock() - session.last_activity > self.ttl

    def _evict(self, conversation_id: str, reason: str) -> None:
        self.active_sessions.pop(conversation_id, None)
        self._locks.pop(conversation_id, None)
        self.logger.info(f"Removed conversation session {conversation_id} ({reason})")
