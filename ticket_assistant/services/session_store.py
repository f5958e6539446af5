"""
Per-session conversational memory.

A Session holds the last N interactions (a ring buffer), the entities the
conversation last touched, the cached result set and any pending
clarification. Sessions are created lazily, touched on every request and
evicted by ``sweep()`` once idle for longer than the TTL.

Access goes through ``async with store.session(session_id)``, which holds a
per-session asyncio.Lock for the duration of the block. Distinct sessions
never share a lock.
"""
import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional

from ticket_assistant.config import SESSION_MAX_HISTORY, SESSION_TTL_HOURS
from ticket_assistant.core.models import ClarificationState, Interaction, QueryPlan, ResultSet

logger = logging.getLogger(__name__)

RECENT_ACTIONS_LIMIT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionContext:
    last_customer: Optional[str] = None
    last_ticket_reference: Optional[str] = None
    last_queue: Optional[str] = None
    last_plan: Optional[QueryPlan] = None
    last_result_set: Optional[ResultSet] = None
    last_action: Optional[str] = None
    recent_actions: Deque[str] = field(default_factory=lambda: deque(maxlen=RECENT_ACTIONS_LIMIT))

    def record_action(self, action: str) -> None:
        self.last_action = action
        self.recent_actions.append(action)

    def as_prompt_context(self) -> Dict[str, Any]:
        """Compact view of the context for language-model prompts."""
        result_set = self.last_result_set
        return {
            "lastCustomer": self.last_customer,
            "lastTicketReference": self.last_ticket_reference,
            "lastQueue": self.last_queue,
            "lastAction": self.last_action,
            "recentActions": list(self.recent_actions),
            "cachedResults": result_set.total if result_set else 0,
            "offset": result_set.offset if result_set else 0,
            "lastQuery": self.last_plan.explanation if self.last_plan else None,
        }


@dataclass
class Session:
    session_id: str
    created_at: datetime
    last_activity: datetime
    history: Deque[Interaction]
    context: SessionContext = field(default_factory=SessionContext)
    clarification: Optional[ClarificationState] = None

    def add_interaction(self, interaction: Interaction) -> None:
        self.history.append(interaction)

    def recent_interactions(self, count: int = 3) -> List[Interaction]:
        if count <= 0:
            return []
        return list(self.history)[-count:]


class SessionStore:
    """In-memory session map with per-session locking and TTL expiry."""

    def __init__(
        self,
        max_history: int = SESSION_MAX_HISTORY,
        ttl: timedelta = timedelta(hours=SESSION_TTL_HOURS),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_history = max_history
        self.ttl = ttl
        self._clock = clock or _utcnow
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def now(self) -> datetime:
        return self._clock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def _new_session(self, session_id: str) -> Session:
        now = self.now()
        logger.info(f"🆕 Creating session {session_id[:8]}...")
        return Session(
            session_id=session_id,
            created_at=now,
            last_activity=now,
            history=deque(maxlen=self.max_history),
        )

    async def _acquire(self, session_id: str) -> asyncio.Lock:
        while True:
            lock = self._locks.setdefault(session_id, asyncio.Lock())
            await lock.acquire()
            if self._locks.get(session_id) is lock:
                return lock
            # The entry was swept or cleared while we waited; take the fresh lock
            lock.release()

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[Session]:
        """Exclusive access to a session, creating it on first use and refreshing its activity time."""
        lock = await self._acquire(session_id)
        try:
            session = self._sessions.get(session_id)
            if session is None:
                session = self._new_session(session_id)
                self._sessions[session_id] = session
            session.last_activity = self.now()
            yield session
        finally:
            lock.release()

    def get_session_info(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Read-only diagnostic projection; None when the session does not exist."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        result_set = session.context.last_result_set
        return {
            "sessionId": session.session_id,
            "messageCount": len(session.history),
            "lastActivity": session.last_activity.isoformat(),
            "hasResults": bool(result_set and result_set.total),
            "lastAction": session.context.last_action,
        }

    async def clear_session(self, session_id: str) -> bool:
        """Delete a session immediately. Returns False when it did not exist."""
        if session_id not in self._sessions:
            return False
        lock = await self._acquire(session_id)
        try:
            existed = self._sessions.pop(session_id, None) is not None
            self._locks.pop(session_id, None)
        finally:
            lock.release()
        if existed:
            logger.info(f"🗑️ Cleared session {session_id[:8]}...")
        return existed

    def is_expired(self, session: Session, now: Optional[datetime] = None) -> bool:
        return ((now or self.now()) - session.last_activity) > self.ttl

    async def sweep(self) -> int:
        """
        Evict sessions idle for longer than the TTL.

        Sessions whose lock is held (a request is in flight) are skipped and
        reconsidered on the next sweep. Returns the number of sessions removed.
        """
        removed = 0
        for session_id, session in list(self._sessions.items()):
            if not self.is_expired(session):
                continue
            lock = self._locks.get(session_id)
            if lock is not None and lock.locked():
                logger.debug(f"Skipping busy session {session_id[:8]}... during sweep")
                continue
            if lock is None:
                self._sessions.pop(session_id, None)
                removed += 1
                continue
            async with lock:
                current = self._sessions.get(session_id)
                if current is not None and self.is_expired(current):
                    del self._sessions[session_id]
                    self._locks.pop(session_id, None)
                    removed += 1

        if removed:
            logger.info(f"🧹 Session sweep removed {removed} expired sessions ({len(self._sessions)} remaining)")
        return removed

    def get_stats(self) -> Dict[str, int]:
        return {
            "total_sessions": len(self._sessions),
            "total_interactions": sum(len(s.history) for s in self._sessions.values()),
        }
