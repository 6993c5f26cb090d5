"""
TrustLens Session Package
Session state, storage and the lifecycle manager that drives the analyzers
and the decision aggregator.
"""

from .session_store import Session, SessionStore, InMemorySessionStore
from .decision import DecisionAggregator, SESSION_RULES, find_suspicious_headers
from .session_manager import SessionManager, SessionSweeper

__all__ = [
    'Session',
    'SessionStore',
    'InMemorySessionStore',
    'DecisionAggregator',
    'SESSION_RULES',
    'find_suspicious_headers',
    'SessionManager',
    'SessionSweeper',
]
