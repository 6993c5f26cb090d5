"""
Utility modules for TrustLens.

- Structured JSON logging and verification event logging
- User-agent parsing (ua-parser database and signature table)
"""

from .logging_utils import (
    setup_logger,
    get_logger,
    JSONFormatter,
    VerificationEvent,
    VerificationEventType,
    log_verification_event,
)

from .user_agent import (
    ParsedUserAgent,
    parse_user_agent,
    classify_user_agent,
    platform_os_family,
    platform_matches_os,
)

__all__ = [
    'setup_logger',
    'get_logger',
    'JSONFormatter',
    'VerificationEvent',
    'VerificationEventType',
    'log_verification_event',
    'ParsedUserAgent',
    'parse_user_agent',
    'classify_user_agent',
    'platform_os_family',
    'platform_matches_os',
]
