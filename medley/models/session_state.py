# medley/models/session_state.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import uuid4

from medley.core.exceptions import session_error
from medley.core.orchestrator import ConsultOrchestrator

logger = logging.getLogger(__name__)


class ConsultSession:
    """One running consultation, addressed by session id"""

    def __init__(
        self,
        orchestrator: ConsultOrchestrator,
        session_id: Optional[str] = None,
        ttl_minutes: int = 30
    ):
        self.session_id = session_id or str(uuid4())
        self.orchestrator = orchestrator
        self.ttl = timedelta(minutes=ttl_minutes)
        self.created_at = datetime.now(timezone.utc)
        self.last_activity = self.created_at
        self.expires_at = self.created_at + self.ttl

    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) > self.expires_at

    def refresh(self) -> None:
        """Extend expiration on activity"""
        now = datetime.now(timezone.utc)
        self.last_activity = now
        self.expires_at = now + self.ttl


class SessionStore:
    """
    In-memory registry of active consultations.

    Sessions expire after ttl_minutes without activity; expired sessions
    are dropped on the next create or lookup. There is no persistence.
    """

    def __init__(self, orchestrator_factory: Callable[[], ConsultOrchestrator], ttl_minutes: int = 30):
        self.orchestrator_factory = orchestrator_factory
        self.ttl_minutes = ttl_minutes
        self.sessions: Dict[str, ConsultSession] = {}

    def create_session(self) -> ConsultSession:
        self._cleanup_expired()
        session = ConsultSession(self.orchestrator_factory(), ttl_minutes=self.ttl_minutes)
        self.sessions[session.session_id] = session
        logger.debug(f"Created session {session.session_id}")
        return session

    def get(self, session_id: str) -> ConsultSession:
        """
        Raises:
            SessionError: If the session id is unknown or expired
        """
        session = self.sessions.get(session_id)
        if session is None:
            raise session_error("Unknown session", session_id=session_id)

        if session.is_expired():
            self.remove(session_id)
            raise session_error("Session expired", session_id=session_id)

        session.refresh()
        return session

    def remove(self, session_id: str) -> bool:
        return self.sessions.pop(session_id, None) is not None

    def _cleanup_expired(self) -> None:
        expired_ids = [sid for sid, session in self.sessions.items() if session.is_expired()]

        for sid in expired_ids:
            self.remove(sid)

        if expired_ids:
            logger.info(f"🧹 Cleaned up {len(expired_ids)} expired sessions")

    def __len__(self) -> int:
        return len(self.sessions)
