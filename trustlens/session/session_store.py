# trustlens/session/session_store.py
"""
Session Storage

A Session is mutated only by the SessionManager, under its own re-entrant
lock. The store only maps ids to sessions; it is injectable so tests can use
a double and a persistent backend can replace the in-memory one.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.results import (
    SessionState,
    AutomationAnalysis,
    BehaviorAnalysis,
    FingerprintAnalysis,
    NetworkAnalysis,
    VerificationResult,
)
from ..core.telemetry import Event, TelemetrySnapshot


@dataclass
class Session:
    """One verification session"""
    session_id: str
    created_at: float  # ms
    snapshot: TelemetrySnapshot
    status: SessionState = SessionState.PENDING
    events: List[Event] = field(default_factory=list)

    # Analyzer cache
    automation: Optional[AutomationAnalysis] = None
    fingerprint: Optional[FingerprintAnalysis] = None
    network: Optional[NetworkAnalysis] = None
    behavior: Optional[BehaviorAnalysis] = None

    # Verdict
    final_score: Optional[float] = None
    reasons: List[str] = field(default_factory=list)
    rejection_reason: Optional[str] = None
    verified_at: Optional[float] = None
    verdict: Optional[VerificationResult] = None

    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def age(self, now: float) -> float:
        return now - self.created_at


class SessionStore(ABC):
    """Storage interface for verification sessions"""

    @abstractmethod
    def insert(self, session: Session) -> None:
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        pass

    @abstractmethod
    def sweep(self, created_before: float) -> int:
        """Delete sessions created before the cutoff (ms); returns the count removed"""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemorySessionStore(SessionStore):
    """Process-local store guarded by a single map lock"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def insert(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def sweep(self, created_before: float) -> int:
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.created_at < created_before]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
