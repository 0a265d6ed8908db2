import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from .quiz import QuizSession

logger = logging.getLogger(__name__)


@dataclass
class ActiveSession:
    quiz: QuizSession
    source_id: str
    created_at: datetime = field(default_factory=datetime.now)
    last_seen: datetime = field(default_factory=datetime.now)
    # One owner at a time; request handlers hold this while touching ``quiz``.
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionRegistry:
    """Running quiz sessions keyed by the id stored in the session cookie."""

    def __init__(self, timeout_minutes: int = 120):
        self.timeout = timedelta(minutes=timeout_minutes)
        self._sessions: Dict[str, ActiveSession] = {}
        self._lock = threading.Lock()

    def create(self, quiz: QuizSession, source_id: str) -> str:
        session_id = str(uuid.uuid4())
        with self._lock:
            self._purge_expired()
            self._sessions[session_id] = ActiveSession(quiz=quiz, source_id=source_id)
        logger.info(f"New quiz session: {session_id} [Source: {quiz.source.name}]")
        return session_id

    def get(self, session_id: Optional[str]) -> Optional[ActiveSession]:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if datetime.now() - session.last_seen > self.timeout:
                del self._sessions[session_id]
                logger.info(f"Quiz session {session_id} expired")
                return None
            session.last_seen = datetime.now()
            return session

    def discard(self, session_id: Optional[str]) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)

    def _purge_expired(self) -> None:
        now = datetime.now()
        expired = [
            sid for sid, s in self._sessions.items() if now - s.last_seen > self.timeout
        ]
        for sid in expired:
            del self._sessions[sid]
