"""
Logging Utilities for TrustLens.

This module provides:
- Structured logging with JSON output
- Verification lifecycle events (session created, rejected, verified, swept)
- Console plus rotating file handlers

Modules log through logging.getLogger(__name__); setup_logger configures the
package root logger once at process start.
"""

import json
import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "trustlens"


class VerificationEventType(Enum):
    """Types of verification lifecycle events"""
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_REJECTED = "SESSION_REJECTED"
    SESSION_VERIFIED = "SESSION_VERIFIED"
    BEHAVIOR_REJECTED = "BEHAVIOR_REJECTED"
    SESSIONS_SWEPT = "SESSIONS_SWEPT"
    LOOKUP_DEGRADED = "LOOKUP_DEGRADED"
    SYSTEM_STARTUP = "SYSTEM_STARTUP"
    SYSTEM_SHUTDOWN = "SYSTEM_SHUTDOWN"


@dataclass
class VerificationEvent:
    """Structured verification event attached to a log record"""
    timestamp: str
    event_type: VerificationEventType
    session_id: Optional[str] = None
    client_ip: Optional[str] = None
    score: Optional[float] = None
    outcome: Optional[str] = None
    description: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        data = asdict(self)
        data['event_type'] = self.event_type.value
        return data


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, with the verification event (if any) nested
    under "verification_event".
    """

    DEFAULT_FIELDS = {
        'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename',
        'funcName', 'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'message', 'msg', 'name', 'pathname', 'process', 'processName',
        'relativeCreated', 'stack_info', 'thread', 'threadName', 'taskName',
        'verification_event',
    }

    def __init__(self, include_context: bool = True):
        """
        Initialize JSON formatter.

        Args:
            include_context: Whether to include thread/process context
        """
        super().__init__()
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        event = getattr(record, 'verification_event', None)
        if isinstance(event, VerificationEvent):
            log_entry['verification_event'] = event.to_dict()

        # Fields passed through `extra=`
        for key, value in record.__dict__.items():
            if key in self.DEFAULT_FIELDS or key.startswith('_'):
                continue
            if isinstance(value, (str, int, float, bool, type(None))):
                log_entry[key] = value
            else:
                log_entry[key] = str(value)

        if self.include_context:
            log_entry.update({
                'thread': record.threadName,
                'process': record.process,
            })

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logger(name: str = ROOT_LOGGER_NAME,
                 log_file: Optional[str] = None,
                 log_level: str = "INFO",
                 enable_json: bool = True) -> logging.Logger:
    """
    Set up and configure logger.

    Args:
        name: Logger name
        log_file: Optional log file path
        log_level: Logging level
        enable_json: Whether to use JSON formatting

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Already configured
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if enable_json:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=10,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_verification_event(event_type: VerificationEventType,
                           description: str,
                           level: int = logging.INFO,
                           logger: Optional[logging.Logger] = None,
                           **kwargs) -> VerificationEvent:
    """
    Log a verification lifecycle event.

    Args:
        event_type: Type of verification event
        description: Human-readable description
        level: Logging level for the record
        logger: Logger to emit on (defaults to trustlens.events)
        **kwargs: Additional VerificationEvent fields

    Returns:
        The logged VerificationEvent
    """
    event = VerificationEvent(
        timestamp=datetime.now().isoformat(),
        event_type=event_type,
        description=description,
        **kwargs
    )

    target = logger or get_logger(f"{ROOT_LOGGER_NAME}.events")
    target.log(level, "%s: %s", event_type.value, description,
               extra={'verification_event': event})
    return event
