"""
Server-side state for multi-step games.

A session holds everything that decides the game (mine layout, remaining deck,
hands) and is addressed by an opaque token. Callers only ever send the token
and their action, never game state.
"""

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from fairbet.core.exceptions import NotFoundError


@dataclass
class GameSession:
    id: str
    user_id: int
    game: str
    bet_amount: int
    state: Any
    created_at: float = field(default_factory=time.time)
    last_active: float = field(default_factory=time.time)


class SessionTable:
    """
    Active sessions by token.

    Sessions idle for longer than `timeout_seconds` are reported by
    `expired()`; the owning controller settles them and then calls `close()`.
    Every successful `get()` counts as activity.
    """

    def __init__(self, timeout_seconds: int = 600, clock: Callable[[], float] = time.time):
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, GameSession] = {}

    def create(self, user_id: int, game: str, bet_amount: int, state: Any) -> GameSession:
        now = self._clock()
        session = GameSession(
            id=secrets.token_urlsafe(16),
            user_id=user_id,
            game=game,
            bet_amount=bet_amount,
            state=state,
            created_at=now,
            last_active=now,
        )
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str, user_id: int, game: str) -> GameSession:
        with self._lock:
            session = self._sessions.get(session_id)
            # Someone else's session is reported exactly like a missing one
            if session is None or session.user_id != user_id or session.game != game:
                raise NotFoundError("Game not found or already finished")
            session.last_active = self._clock()
        return session

    def find(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def close(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    def active(self, game: Optional[str] = None) -> List[GameSession]:
        with self._lock:
            return [s for s in self._sessions.values() if game is None or s.game == game]

    def expired(self, game: Optional[str] = None) -> List[GameSession]:
        cutoff = self._clock() - self.timeout_seconds
        return [s for s in self.active(game) if s.last_active < cutoff]

    def count(self, game: Optional[str] = None) -> int:
        return len(self.active(game))
