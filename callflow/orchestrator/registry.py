"""Session Registry - in-process table of active call sessions.

No persistence; lifetime is bounded by the process. Inserts and removals
are serialized by a lock so concurrent start/cleanup calls for different
calls cannot interleave inside the table.

A start first reserves its call_id, then fetches the initial flow state,
then adds the session. The reservation keeps a second start for the same
call from reaching the Flow State Service while the first is in flight.
"""

import asyncio

from callflow.exceptions import DuplicateSessionError, SessionLimitError
from callflow.orchestrator.models import Session


class SessionRegistry:
    """Maps call_id to its Session. At most one Session per call_id.

    Usage:
        registry = SessionRegistry(max_sessions=100)

        await registry.reserve("call-1")
        try:
            ...  # fetch the first flow state
            await registry.add(session)
        finally:
            registry.release("call-1")

        session = registry.get("call-1")
        await registry.remove("call-1")
    """

    def __init__(self, max_sessions: int | None = None) -> None:
        self._max_sessions = max_sessions
        self._sessions: dict[str, Session] = {}
        self._reserved: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def active_count(self) -> int:
        """Number of active sessions."""
        return len(self._sessions)

    @property
    def reserved_count(self) -> int:
        """Number of starts in flight."""
        return len(self._reserved)

    @property
    def max_sessions(self) -> int | None:
        return self._max_sessions

    def __contains__(self, call_id: str) -> bool:
        return call_id in self._sessions

    def is_reserved(self, call_id: str) -> bool:
        return call_id in self._reserved

    def check_capacity(self) -> None:
        """Raise SessionLimitError if no slot is free."""
        in_use = len(self._sessions) + len(self._reserved)
        if self._max_sessions is not None and in_use >= self._max_sessions:
            raise SessionLimitError(self._max_sessions, in_use)

    async def reserve(self, call_id: str) -> None:
        """Claim call_id and a slot for a start that is in flight.

        Raises:
            DuplicateSessionError: If the call has a session or a pending start
            SessionLimitError: If the registry is full
        """
        async with self._lock:
            if call_id in self._sessions or call_id in self._reserved:
                raise DuplicateSessionError(call_id)
            self.check_capacity()
            self._reserved.add(call_id)

    def release(self, call_id: str) -> None:
        """Drop a reservation. No-op once add has consumed it."""
        self._reserved.discard(call_id)

    async def add(self, session: Session) -> Session:
        """Insert a new session, consuming its reservation if there is one.

        Raises:
            DuplicateSessionError: If the call already has a session
            SessionLimitError: If the registry is full
        """
        async with self._lock:
            call_id = session.call_id
            if call_id in self._sessions:
                raise DuplicateSessionError(call_id)
            if call_id in self._reserved:
                self._reserved.discard(call_id)
            else:
                self.check_capacity()
            self._sessions[call_id] = session
            return session

    def get(self, call_id: str) -> Session | None:
        """Get session by call ID."""
        return self._sessions.get(call_id)

    async def remove(self, call_id: str, session: Session | None = None) -> Session | None:
        """Remove a session.

        Args:
            call_id: Call identifier
            session: If given, remove only if it is still the registered one

        Returns:
            The removed session, or None if nothing was removed
        """
        async with self._lock:
            current = self._sessions.get(call_id)
            if current is None or (session is not None and current is not session):
                return None
            return self._sessions.pop(call_id)

    def list_sessions(self) -> list[Session]:
        """All active sessions."""
        return list(self._sessions.values())

    def list_call_ids(self) -> list[str]:
        """All active call IDs."""
        return list(self._sessions.keys())
