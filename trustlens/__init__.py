"""
TrustLens - Invisible Bot Verification
Main package initialization.

Package Structure:
├── core/       # Data model, configuration, scoring rules, exceptions
├── analyzers/  # Automation, behavior, fingerprint and network analyzers
├── session/    # Session store, decision aggregator, lifecycle manager
├── api/        # Flask REST API
└── utils/      # Logging and user-agent parsing
"""

# ============================================================================
# VERSION INFORMATION
# ============================================================================
__version__ = "1.0.0"
__author__ = "TrustLens Team"

from .core import (
    TelemetrySnapshot,
    Event,
    EventType,
    SessionState,
    VerificationResult,
    TrustLensError,
    SessionNotFoundError,
    ConfigurationError,
    load_config,
)
from .session import SessionManager, DecisionAggregator

__all__ = [
    '__version__',
    'TelemetrySnapshot',
    'Event',
    'EventType',
    'SessionState',
    'VerificationResult',
    'TrustLensError',
    'SessionNotFoundError',
    'ConfigurationError',
    'load_config',
    'SessionManager',
    'DecisionAggregator',
]
