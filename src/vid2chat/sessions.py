"""
In-memory store for chat sessions.

Each session is bound to one chunked transcript and owns the conversation
history for it. The store is the only component that mutates sessions;
callers get immutable SessionSnapshot copies.

Two locks are involved:
- a table lock (threading.Lock) guarding the dict itself, held only for
  short synchronous sections and never across an await;
- a per-session asyncio.Lock that callers take through `lock()` to run a
  whole chat turn on one session without interleaving with another turn.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Tuple

from vid2chat.chunk import Chunk
from vid2chat.collaborators import Message
from vid2chat.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 2 * 60 * 60


@dataclass
class Session:
    id: str
    chunks: Tuple[Chunk, ...]
    history: List[Message]
    current_chunk_index: int = 0
    source_ref: str = ""
    title: str = ""
    created_at: float = 0.0
    last_active_at: float = 0.0
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


@dataclass(frozen=True)
class SessionSnapshot:
    id: str
    chunks: Tuple[Chunk, ...]
    history: Tuple[Message, ...]
    current_chunk_index: int
    source_ref: str
    title: str

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def current_chunk(self) -> Chunk:
        return self.chunks[self.current_chunk_index]

    @property
    def is_last_chunk(self) -> bool:
        return self.current_chunk_index >= len(self.chunks) - 1


class SessionStore:
    """Owns every live session; all access goes through its methods."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def _get(self, session_id: str) -> Session:
        # Caller holds self._lock
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    @staticmethod
    def _snapshot(session: Session) -> SessionSnapshot:
        return SessionSnapshot(
            id=session.id,
            chunks=session.chunks,
            history=tuple(session.history),
            current_chunk_index=session.current_chunk_index,
            source_ref=session.source_ref,
            title=session.title,
        )

    def start_session(
        self,
        chunks: Sequence[Chunk],
        system_message: str,
        *,
        source_ref: str = "",
        title: str = "",
    ) -> str:
        """
        Store a new session positioned on the first chunk.

        Args:
            chunks: Output of chunk_transcript; must not be empty
            system_message: Instruction seeded as history[0]
            source_ref: Where the transcript came from (echoed to clients)
            title: Human-readable title of the source

        Returns:
            The new session id
        """
        if not chunks:
            raise InvalidInputError("Cannot start a session without transcript chunks")

        now = self._clock()
        with self._lock:
            session_id = uuid.uuid4().hex
            while session_id in self._sessions:
                session_id = uuid.uuid4().hex
            self._sessions[session_id] = Session(
                id=session_id,
                chunks=tuple(chunks),
                history=[Message(role="system", content=system_message)],
                source_ref=source_ref,
                title=title,
                created_at=now,
                last_active_at=now,
            )
        logger.info("Started session %s with %d chunks", session_id, len(chunks))
        return session_id

    def get_session(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._snapshot(self._get(session_id))

    def append_turn(self, session_id: str, user_text: str, assistant_text: str) -> None:
        """Append the user message, then the assistant reply."""
        with self._lock:
            session = self._get(session_id)
            session.history.append(Message(role="user", content=user_text))
            session.history.append(Message(role="assistant", content=assistant_text))
            session.last_active_at = self._clock()

    def advance_chunk(self, session_id: str) -> bool:
        """
        Move the session to its next chunk.

        Returns False, leaving the index unchanged, when the session is
        already on its last chunk. Callers must treat that as the end of the
        transcript rather than retrying.
        """
        with self._lock:
            session = self._get(session_id)
            if session.current_chunk_index >= len(session.chunks) - 1:
                return False
            session.current_chunk_index += 1
            session.last_active_at = self._clock()
            index = session.current_chunk_index
            total = len(session.chunks)
        logger.info("Session %s advanced to chunk %d/%d", session_id, index + 1, total)
        return True

    def reset(self, session_id: str) -> None:
        """Delete the session. A second reset of the same id raises NotFoundError."""
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise NotFoundError("Session", session_id)
        logger.info("Reset session %s", session_id)

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[SessionSnapshot]:
        """
        Hold the session's turn lock and yield a fresh snapshot.

        Raises NotFoundError if the session is unknown, or if it was reset
        while this caller was waiting for the lock.
        """
        with self._lock:
            turn_lock = self._get(session_id).turn_lock

        async with turn_lock:
            with self._lock:
                session = self._get(session_id)
                session.last_active_at = self._clock()
                snapshot = self._snapshot(session)
            yield snapshot

    def evict_idle(self, now: Optional[float] = None) -> int:
        """Remove sessions idle for at least ttl_seconds. Returns the count removed."""
        if self.ttl_seconds <= 0:
            return 0
        now = self._clock() if now is None else now
        with self._lock:
            idle = [
                sid for sid, s in self._sessions.items()
                if now - s.last_active_at >= self.ttl_seconds and not s.turn_lock.locked()
            ]
            for sid in idle:
                del self._sessions[sid]
        for sid in idle:
            logger.info("Evicted idle session %s", sid)
        return len(idle)

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.evict_idle()

    def start(self) -> None:
        """Start idle eviction in the background (no-op when ttl_seconds <= 0)."""
        if self.ttl_seconds <= 0:
            return
        if self._sweeper is None or self._sweeper.done():
            interval = max(1.0, min(self.ttl_seconds / 4, 300.0))
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(interval))

    async def close(self) -> None:
        """Stop the sweeper and drop every session."""
        task, self._sweeper = self._sweeper, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        with self._lock:
            self._sessions.clear()
