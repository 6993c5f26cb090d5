# trustlens/core/results.py
"""
Analysis and Outcome Records

One record per analyzer plus the session-level outcomes returned to the
transport layer. Records are always produced, even on sparse input, and
their to_dict() output is the wire format.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionState(Enum):
    """Verification session status; transitions are pending -> verified | rejected"""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionState.PENDING


# ============================================================================
# ANALYZER RECORDS
# ============================================================================

@dataclass
class AutomationAnalysis:
    """Automation Signature Detector output (score: higher = more automated)"""
    score: float = 0.0
    is_automated: bool = False
    detected_tools: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    fired_rules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'automationScore': self.score,
            'isAutomated': self.is_automated,
            'detectedTools': list(self.detected_tools),
            'reasons': list(self.reasons),
        }


@dataclass
class ClusterAnalysis:
    """KMeans outlier check over consecutive event transitions"""
    anomaly_detected: bool = False
    transition_count: int = 0
    cluster_sizes: List[int] = field(default_factory=list)
    centroids: List[List[float]] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'anomalyDetected': self.anomaly_detected,
            'transitionCount': self.transition_count,
            'clusterSizes': list(self.cluster_sizes),
            'centroids': [list(c) for c in self.centroids],
        }
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class BehaviorAnalysis:
    """Behavior Analyzer output (score: higher = more human)"""
    score: float = 0.0
    is_human: bool = False
    reasons: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    cluster_analysis: ClusterAnalysis = field(default_factory=ClusterAnalysis)
    insufficient_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        metrics = dict(self.metrics)
        metrics['cluster_analysis'] = self.cluster_analysis.to_dict()
        return {
            'score': self.score,
            'isHuman': self.is_human,
            'reasons': list(self.reasons),
            'metrics': metrics,
        }


@dataclass
class FingerprintAnalysis:
    """Fingerprint Consistency Analyzer output"""
    score: float = 50.0
    fingerprint: Optional[str] = None  # SHA-256 of the component set
    anomalies: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    components: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'fingerprint': self.fingerprint,
            'anomalies': list(self.anomalies),
        }


@dataclass
class NetworkAnalysis:
    """Network Reputation Analyzer output"""
    score: float = 0.0
    client_ip: Optional[str] = None
    reasons: List[str] = field(default_factory=list)
    country: Optional[str] = None
    proxied: bool = False
    proxy_headers: List[str] = field(default_factory=list)
    vpn_detected: bool = False
    datacenter_ip: bool = False
    ip_timezone_match: bool = True
    ip_language_match: bool = True
    lookup_status: str = "skipped"  # skipped | ok | unavailable

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'proxied': self.proxied,
            'vpnDetected': self.vpn_detected,
            'datacenterIP': self.datacenter_ip,
            'ipTimezoneMatch': self.ip_timezone_match,
        }


@dataclass
class VerificationResult:
    """Final verdict for a session"""
    is_human: bool
    score: float
    reasons: List[str] = field(default_factory=list)
    details: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isHuman': self.is_human,
            'score': self.score,
            'reasons': list(self.reasons),
            'details': {name: dict(detail) for name, detail in self.details.items()},
        }


# ============================================================================
# SESSION OUTCOMES
# ============================================================================

@dataclass(frozen=True)
class SessionCreated:
    session_id: str
    status: SessionState
    created_at: float
    rejection_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'status': self.status.value,
            'timestamp': self.created_at,
            'rejectionReason': self.rejection_reason,
        }


@dataclass(frozen=True)
class EventOutcome:
    """
    Result of recording an event.

    accepted=False is a business rejection (terminal session), never an error.
    behavior_rejected marks the event that triggered a behavior-based rejection.
    """
    accepted: bool
    status: SessionState
    event_count: int
    rejection_reason: Optional[str] = None
    behavior_rejected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        if self.accepted:
            return {'success': True, 'eventsCount': self.event_count}
        message = ('Session rejected' if self.status is SessionState.REJECTED
                   else 'Session already verified')
        return {
            'success': False,
            'message': message,
            'rejectionReason': self.rejection_reason,
            'behaviorRejected': self.behavior_rejected,
        }


@dataclass(frozen=True)
class SessionStatus:
    status: SessionState
    created_at: float
    event_count: int
    verified_at: Optional[float] = None
    rejection_reason: Optional[str] = None
    automation_detected: bool = False
    detected_tools: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'createdAt': self.created_at,
            'verifiedAt': self.verified_at,
            'eventsCount': self.event_count,
            'rejectionReason': self.rejection_reason,
            'automationDetected': self.automation_detected,
            'detectedTools': list(self.detected_tools),
        }
