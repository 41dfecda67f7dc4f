from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

from .errors import SessionLimitReached
from .models import StoredMessage

logger = logging.getLogger("support_bot.sessions")


@dataclass
class Session:
    """In-memory conversation for one caller-supplied session id (system prompt excluded)."""
    session_id: str
    last_active: float
    messages: List[StoredMessage] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    leases: int = 0

    def user_turn_count(self) -> int:
        return sum(1 for message in self.messages if message.role == "user")

    def history(self) -> List[dict]:
        return [message.model_dump() for message in self.messages]


class SessionRegistry:
    """Process-wide session map with per-session turn locks and an idle sweep."""

    def __init__(
        self,
        timeout_sec: float,
        max_user_turns: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Purpose: Initialize an empty registry.
        Inputs/Outputs: Inputs are the idle timeout, user-turn cap, and a clock; no return.
        Side Effects / State: Creates the session map and the lock guarding it.
        Dependencies: Session dataclass; clock defaults to time.time.
        Failure Modes: None at init.
        If Removed: Chat turns have nowhere to keep history.
        Testing Notes: Inject a fake clock to drive expiry deterministically.
        """
        self._timeout_sec = timeout_sec
        self._max_user_turns = max_user_turns
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    @contextmanager
    def open_turn(self, session_id: str) -> Iterator[Session]:
        """Purpose: Hold one session exclusively for the duration of a turn.
        Inputs/Outputs: Input is session_id; yields the (possibly new) Session.
        Side Effects / State: Creates unseen sessions, refreshes last_active, and keeps a
            lease so sweep() never drops a session mid-turn.
        Dependencies: Session.lock serializes turns for the same id.
        Failure Modes: Exceptions inside the block release the lock and lease.
        If Removed: Concurrent turns on one session can interleave their appends.
        Testing Notes: A second open_turn on the same id must wait for the first.
        """
        # Take a lease under the map lock, then the session lock outside it.
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id=session_id, last_active=self._clock())
                self._sessions[session_id] = session
                logger.info("session=%s created", session_id)
            session.leases += 1
        try:
            with session.lock:
                session.last_active = self._clock()
                yield session
        finally:
            with self._lock:
                session.leases -= 1

    def ensure_turn_allowed(self, session: Session) -> None:
        """Raise SessionLimitReached once the session has used its user-turn budget."""
        if session.user_turn_count() >= self._max_user_turns:
            logger.info("session=%s turn limit reached", session.session_id)
            raise SessionLimitReached()

    def append_turn(self, session: Session, user_content: str, assistant_content: str) -> None:
        session.messages.append(StoredMessage(role="user", content=user_content))
        session.messages.append(StoredMessage(role="assistant", content=assistant_content))
        session.last_active = self._clock()

    def get_messages(self, session_id: str) -> List[StoredMessage]:
        with self._lock:
            session = self._sessions.get(session_id)
        return list(session.messages) if session else []

    def sweep(self, now: Optional[float] = None) -> int:
        """Purpose: Drop sessions idle longer than the timeout.
        Inputs/Outputs: Optional "now" override; returns the number removed.
        Side Effects / State: Deletes entries from the session map.
        Dependencies: Session.last_active and Session.leases.
        Failure Modes: None; sessions with an open turn are always kept.
        If Removed: Session memory grows for the process lifetime.
        Testing Notes: Advance the clock past the timeout and verify removal.
        """
        # Iterate over a snapshot so deletion is safe while requests run.
        current = self._clock() if now is None else now
        with self._lock:
            expired = [
                session_id
                for session_id, session in list(self._sessions.items())
                if session.leases == 0 and current - session.last_active > self._timeout_sec
            ]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            logger.info("sessions expired=%d remaining=%d", len(expired), len(self))
        return len(expired)
