"""In-memory registry of conversation sessions."""
import time
import uuid
from typing import Callable, Dict, Optional

from docquiz.exceptions import SessionNotFoundError
from docquiz.services.conversation import ConversationController, TextGenerator
from docquiz.services.presenter import IncrementalPresenter
from docquiz.utils.logger import logger


class SessionStore:
    """
    Maps session ids to controllers. Nothing is persisted.

    A session that has not been used for ``ttl_seconds`` is ended by the
    next store access. Sessions with a pipeline run in flight are never
    expired.
    """

    def __init__(
        self,
        reveal_interval_seconds: float = 0.0,
        ttl_seconds: Optional[float] = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.reveal_interval_seconds = reveal_interval_seconds
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, ConversationController] = {}
        self._last_seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def detached(self, generator: TextGenerator, session_id: Optional[str] = None) -> ConversationController:
        """Build a controller that is not registered and ends with the request."""
        return ConversationController(
            generator=generator,
            presenter=IncrementalPresenter(self.reveal_interval_seconds),
            session_id=session_id,
        )

    def create(self, generator: TextGenerator, session_id: Optional[str] = None) -> ConversationController:
        """Start a new empty session, generating an id if none is given."""
        self.expire_idle()
        session_id = session_id or str(uuid.uuid4())
        controller = self.detached(generator, session_id)
        self._sessions[session_id] = controller
        self._last_seen[session_id] = self._clock()
        logger.info("Session created", extra={"session_id": session_id})
        return controller

    def get(self, session_id: str) -> ConversationController:
        self.expire_idle()
        try:
            controller = self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Session not found: {session_id}") from None
        self._last_seen[session_id] = self._clock()
        return controller

    def get_or_create(self, session_id: Optional[str], generator: TextGenerator) -> ConversationController:
        if session_id and session_id in self._sessions:
            return self.get(session_id)
        return self.create(generator, session_id)

    def end(self, session_id: str) -> None:
        """Destroy a session and complete its running reveal."""
        if session_id not in self._sessions:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        self.discard(session_id)
        logger.info("Session ended", extra={"session_id": session_id})

    def discard(self, session_id: str) -> None:
        """Remove a session if present."""
        controller = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if controller is not None:
            controller.close()

    def expire_idle(self) -> int:
        """End sessions idle for longer than the TTL. Returns how many were ended."""
        if self.ttl_seconds is None:
            return 0

        cutoff = self._clock() - self.ttl_seconds
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if seen < cutoff and not self._sessions[session_id].busy
        ]
        for session_id in expired:
            self.discard(session_id)
            logger.info("Session expired", extra={"session_id": session_id})
        return len(expired)

    def clear(self) -> None:
        for controller in self._sessions.values():
            controller.close()
        self._sessions.clear()
        self._last_seen.clear()
