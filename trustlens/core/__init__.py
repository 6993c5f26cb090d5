"""
TrustLens Core Package
Shared data model, scoring primitives, configuration and exceptions used by
the analyzers and the session layer.
"""

from .exceptions import TrustLensError, SessionNotFoundError, ConfigurationError
from .config import VerificationSettings, load_config, get_default_config
from .telemetry import TelemetrySnapshot, NetworkOrigin, AutomationMarkers, Event, EventType
from .rules import ScoringRule, RuleOutcome, evaluate_rules, clamp_score
from .results import (
    SessionState,
    AutomationAnalysis,
    BehaviorAnalysis,
    ClusterAnalysis,
    FingerprintAnalysis,
    NetworkAnalysis,
    VerificationResult,
    SessionCreated,
    EventOutcome,
    SessionStatus,
)

__all__ = [
    'TrustLensError',
    'SessionNotFoundError',
    'ConfigurationError',
    'VerificationSettings',
    'load_config',
    'get_default_config',
    'TelemetrySnapshot',
    'NetworkOrigin',
    'AutomationMarkers',
    'Event',
    'EventType',
    'ScoringRule',
    'RuleOutcome',
    'evaluate_rules',
    'clamp_score',
    'SessionState',
    'AutomationAnalysis',
    'BehaviorAnalysis',
    'ClusterAnalysis',
    'FingerprintAnalysis',
    'NetworkAnalysis',
    'VerificationResult',
    'SessionCreated',
    'EventOutcome',
    'SessionStatus',
]
