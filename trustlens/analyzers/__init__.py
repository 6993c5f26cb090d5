"""
TrustLens Analyzers Package
Independent signal detectors whose outputs the decision aggregator fuses:

1. AutomationDetector: automation tool signatures in the telemetry snapshot
2. BehaviorAnalyzer: human-likeness of the interaction event stream
3. FingerprintAnalyzer: fingerprint identity hash and consistency
4. NetworkAnalyzer: network origin reputation (with a bounded external lookup)
"""

from .automation_detector import AutomationDetector, AUTOMATION_RULES
from .behavior_analyzer import BehaviorAnalyzer
from .fingerprint_analyzer import FingerprintAnalyzer, generate_fingerprint_hash
from .network_analyzer import NetworkAnalyzer, resolve_client_ip
from .reputation_lookup import (
    ReputationInfo,
    ReputationLookup,
    NullReputationLookup,
    HttpReputationLookup,
    BoundedReputationLookup,
)

__all__ = [
    'AutomationDetector',
    'AUTOMATION_RULES',
    'BehaviorAnalyzer',
    'FingerprintAnalyzer',
    'generate_fingerprint_hash',
    'NetworkAnalyzer',
    'resolve_client_ip',
    'ReputationInfo',
    'ReputationLookup',
    'NullReputationLookup',
    'HttpReputationLookup',
    'BoundedReputationLookup',
]
