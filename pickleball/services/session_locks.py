"""
Per-session locks for round generation and match completion.

Two clients viewing the same session can both ask for a new round. Without
serialisation both would read the same "available" pool before either marks
players unavailable, and the same player would land on two courts. Inside one
process we hold an asyncio lock per session; across processes the round
service also re-checks availability at write time.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)


class SessionLockManager:
    """Hands out one asyncio.Lock per session id.

    A lock is dropped once nobody holds or waits on it, so the map only holds
    sessions with work in flight.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _lock_for(self, session_id: int) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            # Locks are bound to the loop that first waits on them
            self._locks = {}
            self._users = {}
            self._loop = loop
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    @asynccontextmanager
    async def lock(self, session_id: int) -> AsyncIterator[None]:
        lock = self._lock_for(session_id)
        self._users[session_id] = self._users.get(session_id, 0) + 1
        if lock.locked():
            logger.debug(f"Waiting for lock on session {session_id}")
        try:
            async with lock:
                yield
        finally:
            self._release(session_id, lock)

    def _release(self, session_id: int, lock: asyncio.Lock) -> None:
        if self._locks.get(session_id) is not lock:
            return
        remaining = self._users.get(session_id, 1) - 1
        if remaining > 0:
            self._users[session_id] = remaining
        else:
            self._users.pop(session_id, None)
            del self._locks[session_id]

    def clear(self) -> None:
        self._locks = {}
        self._users = {}
        self._loop = None


# Global lock manager instance
_lock_manager: Optional[SessionLockManager] = None


def get_session_lock_manager() -> SessionLockManager:
    """
    Get the global session lock manager instance.

    Returns:
        SessionLockManager instance
    """
    global _lock_manager
    if _lock_manager is None:
        _lock_manager = SessionLockManager()
    return _lock_manager


def session_lock(session_id: int):
    """Async context manager serialising work on one session."""
    return get_session_lock_manager().lock(session_id)
