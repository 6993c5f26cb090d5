# trustlens/core/exceptions.py
"""
Exception hierarchy for TrustLens.

Only genuine faults are exceptions. Degraded analysis and business
rejections are reported as values on the analysis/outcome objects.
"""


class TrustLensError(Exception):
    """Base exception for TrustLens operations"""
    pass


class SessionNotFoundError(TrustLensError):
    """Raised when an operation references an unknown session id"""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ConfigurationError(TrustLensError):
    """Raised when the configuration file cannot be parsed or validated"""
    pass
