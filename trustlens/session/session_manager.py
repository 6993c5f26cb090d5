# trustlens/session/session_manager.py
"""
Session Lifecycle Manager

Owns session state and decides when each analyzer runs:
- create_session: automation, fingerprint and network analysis run once
- record_event: behavior analysis runs once when the log reaches the trigger size
- evaluate: the decision aggregator produces the final, cached verdict

All work on one session is serialized by that session's lock. Status moves
only pending -> verified | rejected; the event log is truncated to the
retention limit after the transition, never before.
"""

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

from ..analyzers.automation_detector import AutomationDetector
from ..analyzers.behavior_analyzer import BehaviorAnalyzer
from ..analyzers.fingerprint_analyzer import FingerprintAnalyzer
from ..analyzers.network_analyzer import NetworkAnalyzer
from ..analyzers.reputation_lookup import (
    BoundedReputationLookup,
    HttpReputationLookup,
    NullReputationLookup,
)
from ..core.config import VerificationSettings, LOOKUP_MAX_WORKERS
from ..core.exceptions import SessionNotFoundError
from ..core.results import (
    SessionState,
    SessionCreated,
    EventOutcome,
    SessionStatus,
    VerificationResult,
)
from ..core.telemetry import Event, TelemetrySnapshot
from ..utils.logging_utils import VerificationEventType, log_verification_event
from .decision import DecisionAggregator
from .session_store import Session, SessionStore, InMemorySessionStore

logger = logging.getLogger(__name__)

BEHAVIOR_REJECTION_REASON = "Behavior pattern resembles a bot"


def _now_ms() -> float:
    return time.time() * 1000.0


class SessionManager:
    """
    Session Lifecycle Manager

    Every collaborator is injectable; defaults give an in-memory store and
    analyzers with no external reputation source.
    """

    def __init__(self,
                 store: Optional[SessionStore] = None,
                 settings: Optional[VerificationSettings] = None,
                 automation_detector: Optional[AutomationDetector] = None,
                 behavior_analyzer: Optional[BehaviorAnalyzer] = None,
                 fingerprint_analyzer: Optional[FingerprintAnalyzer] = None,
                 network_analyzer: Optional[NetworkAnalyzer] = None,
                 aggregator: Optional[DecisionAggregator] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.settings = settings or VerificationSettings()
        self.store = store if store is not None else InMemorySessionStore()
        self.automation_detector = automation_detector or AutomationDetector(
            score_threshold=self.settings.automation_score_threshold)
        self.behavior_analyzer = behavior_analyzer or BehaviorAnalyzer(
            human_threshold=self.settings.behavior_human_threshold)
        self.fingerprint_analyzer = fingerprint_analyzer or FingerprintAnalyzer()
        self.network_analyzer = network_analyzer or NetworkAnalyzer()
        self.aggregator = aggregator or DecisionAggregator(self.settings)
        self.clock = clock or _now_ms

        self._sweeper: Optional[SessionSweeper] = None

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None, **kwargs) -> "SessionManager":
        """
        Build a manager from a loaded configuration.

        A configured `network.lookup_url` enables the HTTP reputation lookup,
        bounded by `network.lookup_timeout_seconds`.
        """
        config = config or {}
        settings = VerificationSettings.from_config(config)
        network_config = config.get('network', {}) or {}

        lookup_url = network_config.get('lookup_url')
        if lookup_url:
            lookup = BoundedReputationLookup(
                HttpReputationLookup(lookup_url, timeout=settings.lookup_timeout_seconds),
                timeout=settings.lookup_timeout_seconds,
                max_workers=network_config.get('lookup_max_workers', LOOKUP_MAX_WORKERS),
            )
            logger.info("Reputation lookup enabled: %s", lookup_url)
        else:
            lookup = NullReputationLookup()

        kwargs.setdefault('network_analyzer', NetworkAnalyzer(lookup=lookup))
        return cls(settings=settings, **kwargs)

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def create_session(self, snapshot: TelemetrySnapshot) -> SessionCreated:
        """
        Create a session and run the snapshot analyzers.

        Args:
            snapshot: Telemetry snapshot

        Returns:
            SessionCreated; status is rejected when the automation score
            exceeds the auto-reject threshold
        """
        session = Session(
            session_id=str(uuid.uuid4()),
            created_at=self.clock(),
            snapshot=snapshot,
        )

        with session.lock:
            session.automation = self.automation_detector.analyze(snapshot)
            session.fingerprint = self.fingerprint_analyzer.analyze(snapshot)
            session.network = self.network_analyzer.analyze(snapshot)

            automation = session.automation
            if automation.is_automated and automation.score > self.settings.auto_reject_automation_score:
                reason = f"Automation tools detected: {', '.join(automation.detected_tools)}"
                self._reject(session, reason)

            self.store.insert(session)

        log_verification_event(
            VerificationEventType.SESSION_CREATED,
            f"Session created with status {session.status.value}",
            session_id=session.session_id,
            client_ip=session.network.client_ip,
            score=automation.score,
            outcome=session.status.value,
        )

        return SessionCreated(
            session_id=session.session_id,
            status=session.status,
            created_at=session.created_at,
            rejection_reason=session.rejection_reason,
        )

    def record_event(self, session_id: str, event_type: str,
                     data: Optional[Dict[str, Any]] = None) -> EventOutcome:
        """
        Append an interaction event to a pending session.

        Args:
            session_id: Session identifier
            event_type: Event type tag (unknown tags are stored and ignored)
            data: Event payload

        Returns:
            EventOutcome; accepted=False for terminal sessions

        Raises:
            SessionNotFoundError: Unknown session id
        """
        session = self._get(session_id)

        with session.lock:
            if session.is_terminal:
                return EventOutcome(
                    accepted=False,
                    status=session.status,
                    event_count=len(session.events),
                    rejection_reason=session.rejection_reason,
                )

            session.events.append(Event(
                type=str(event_type),
                data=data if data is not None else {},
                timestamp=self.clock(),
            ))

            # One-shot behavior analysis at the trigger size
            if (len(session.events) >= self.settings.behavior_trigger_event_count and
                    session.behavior is None):
                session.behavior = self.behavior_analyzer.analyze(session.events)
                behavior = session.behavior

                if not behavior.is_human and behavior.score < self.settings.behavior_reject_score:
                    event_count = len(session.events)
                    self._reject(session, BEHAVIOR_REJECTION_REASON)
                    log_verification_event(
                        VerificationEventType.BEHAVIOR_REJECTED,
                        BEHAVIOR_REJECTION_REASON,
                        session_id=session.session_id,
                        score=behavior.score,
                        outcome=SessionState.REJECTED.value,
                    )
                    return EventOutcome(
                        accepted=False,
                        status=session.status,
                        event_count=event_count,
                        rejection_reason=session.rejection_reason,
                        behavior_rejected=True,
                    )

            return EventOutcome(
                accepted=True,
                status=session.status,
                event_count=len(session.events),
            )

    def evaluate(self, session_id: str,
                 request_headers: Optional[Mapping[str, Any]] = None) -> VerificationResult:
        """
        Produce (or return the cached) verdict for a session.

        Args:
            session_id: Session identifier
            request_headers: Headers of the evaluation request

        Returns:
            VerificationResult; identical on every call once terminal

        Raises:
            SessionNotFoundError: Unknown session id
        """
        session = self._get(session_id)

        with session.lock:
            if session.is_terminal:
                return session.verdict

            if session.behavior is None and session.events:
                session.behavior = self.behavior_analyzer.analyze(session.events)

            now = self.clock()
            result = self.aggregator.aggregate(session, now, request_headers)

            session.final_score = result.score
            session.reasons = list(result.reasons)
            session.verified_at = now
            session.verdict = result

            if result.is_human:
                session.status = SessionState.VERIFIED
            else:
                session.status = SessionState.REJECTED
                session.rejection_reason = ', '.join(result.reasons)

            self._truncate_events(session)

        log_verification_event(
            VerificationEventType.SESSION_VERIFIED if result.is_human
            else VerificationEventType.SESSION_REJECTED,
            f"Session evaluated: {session.status.value}",
            session_id=session.session_id,
            score=result.score,
            outcome=session.status.value,
        )
        return result

    def get_status(self, session_id: str) -> SessionStatus:
        """
        Raises:
            SessionNotFoundError: Unknown session id
        """
        session = self._get(session_id)

        with session.lock:
            automation = session.automation
            return SessionStatus(
                status=session.status,
                created_at=session.created_at,
                verified_at=session.verified_at,
                event_count=len(session.events),
                rejection_reason=session.rejection_reason,
                automation_detected=bool(automation and automation.is_automated),
                detected_tools=list(automation.detected_tools) if automation else [],
            )

    def sweep(self) -> int:
        """Delete sessions older than the TTL, measured from creation"""
        cutoff = self.clock() - self.settings.session_ttl_seconds * 1000.0
        removed = self.store.sweep(cutoff)

        if removed:
            log_verification_event(
                VerificationEventType.SESSIONS_SWEPT,
                f"Removed {removed} expired sessions",
                details={'remaining': len(self.store)},
            )
        return removed

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self):
        """Start the background TTL sweeper"""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._sweeper = SessionSweeper(self, self.settings.sweep_interval_seconds)
        self._sweeper.start()
        logger.info("Session manager started (sweep every %ss)", self.settings.sweep_interval_seconds)

    def shutdown(self):
        """Stop the sweeper, release the lookup and clear the store"""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None

        self.network_analyzer.lookup.close()
        self.store.clear()
        logger.info("Session manager stopped")

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _get(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _reject(self, session: Session, reason: str):
        """Terminal rejection outside the aggregator; caller holds the lock"""
        session.status = SessionState.REJECTED
        session.rejection_reason = reason
        session.final_score = 0
        session.reasons = [reason]
        session.verdict = self.aggregator.rejected_verdict(session, reason)
        self._truncate_events(session)

    def _truncate_events(self, session: Session):
        limit = self.settings.event_retention_limit
        if len(session.events) > limit:
            del session.events[limit:]


class SessionSweeper(threading.Thread):
    """Daemon thread running SessionManager.sweep on a fixed interval"""

    def __init__(self, manager: SessionManager, interval_seconds: float):
        super().__init__(name="SessionSweeper", daemon=True)
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()

    def run(self):
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.manager.sweep()
            except Exception:
                logger.exception("Session sweep failed")

    def stop(self, timeout: float = 5.0):
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
