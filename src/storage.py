"""
In-memory session storage for Podcast Bot.

Note: Data is lost on bot restart. Idle sessions are evicted after
SESSION_TTL_SECONDS so the map does not grow for the process lifetime.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

from config import SESSION_TTL_SECONDS
from models import UserSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Mapping of chat ID -> UserSession with get-or-create semantics.

    The map is guarded by a single lock. Event handling for one chat is
    serialized with `exclusive()`, which hands out one FIFO asyncio lock
    per chat so that different chats never wait on each other.
    """

    def __init__(self, ttl_seconds: int = SESSION_TTL_SECONDS) -> None:
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds > 0 else None
        self._sessions: dict[int, UserSession] = {}
        self._chat_locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, chat_id: int) -> bool:
        with self._lock:
            return chat_id in self._sessions

    def get_or_create(self, chat_id: int) -> UserSession:
        """
        Get or create a session for the given chat ID.

        Args:
            chat_id: Telegram chat ID

        Returns:
            UserSession for this chat
        """
        self.prune_expired()
        with self._lock:
            session = self._sessions.get(chat_id)
            if session is None:
                session = UserSession(chat_id=chat_id)
                self._sessions[chat_id] = session
                logger.info(f"Created session for {chat_id}")
            else:
                session.touch()
            return session

    def reset(self, chat_id: int) -> UserSession:
        """
        Replace the session with a fresh one (e.g., when user sends /new).

        Args:
            chat_id: Telegram chat ID to reset

        Returns:
            The new UserSession at Phase.INITIAL
        """
        session = UserSession(chat_id=chat_id)
        with self._lock:
            self._sessions[chat_id] = session
        logger.info(f"Reset session for {chat_id}")
        return session

    def get(self, chat_id: int) -> UserSession:
        """
        Read-only lookup. Unknown chats get a blank session that is not stored.
        """
        with self._lock:
            session = self._sessions.get(chat_id)
        return session if session is not None else UserSession(chat_id=chat_id)

    @asynccontextmanager
    async def exclusive(self, chat_id: int) -> AsyncIterator[None]:
        """
        Run the enclosed block with no other event of this chat in flight.

        The chat's lock lives only while some event holds or waits for it.
        """
        with self._lock:
            lock = self._chat_locks.setdefault(chat_id, asyncio.Lock())
            self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            with self._lock:
                self._lock_users[chat_id] -= 1
                if not self._lock_users[chat_id]:
                    del self._lock_users[chat_id]
                    del self._chat_locks[chat_id]

    @property
    def active_locks(self) -> int:
        """Number of chats with an event in flight or queued."""
        with self._lock:
            return len(self._chat_locks)

    def prune_expired(self, now: Optional[datetime] = None) -> int:
        """
        Drop sessions idle for longer than the TTL.

        Returns:
            Number of sessions removed
        """
        if self._ttl is None:
            return 0

        cutoff = (now or datetime.now(timezone.utc)) - self._ttl
        with self._lock:
            expired = [
                chat_id for chat_id, session in self._sessions.items()
                if session.updated_at < cutoff
            ]
            for chat_id in expired:
                del self._sessions[chat_id]

        if expired:
            logger.info(f"Evicted {len(expired)} idle session(s)")
        return len(expired)
