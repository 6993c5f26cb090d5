# trustlens/core/config.py
"""
Configuration for TrustLens

Holds the named thresholds used across the verification pipeline and the
YAML loader used at process start. Every value has a built-in default so the
engine runs without a configuration file.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ============================================================================
# VERIFICATION CONSTANTS
# ============================================================================

# Session is rejected at creation when the automation score exceeds this
AUTO_REJECT_AUTOMATION_SCORE = 80

# Final trust score at or above this value classifies the session as human
HUMAN_SCORE_THRESHOLD = 60

# Behavior analysis runs once when the event log first reaches this size
BEHAVIOR_TRIGGER_EVENT_COUNT = 10

# Triggered behavior analysis below this score rejects the session
BEHAVIOR_REJECT_SCORE = 30

# Events kept on a session after it becomes terminal
EVENT_RETENTION_LIMIT = 50

# Automation score at which a session counts as automated without a definitive marker
AUTOMATION_SCORE_THRESHOLD = 50

# Behavior score at which the event stream counts as human
BEHAVIOR_HUMAN_THRESHOLD = 50

# Aggregator weight of the KMeans outlier signal (0 keeps it diagnostic)
CLUSTER_ANOMALY_PENALTY = 0

# ============================================================================
# SESSION LIFECYCLE CONSTANTS
# ============================================================================

SESSION_TTL_SECONDS = 24 * 60 * 60     # Sessions are swept 24h after creation
SWEEP_INTERVAL_SECONDS = 60 * 60       # Sweeper wakes up hourly

# ============================================================================
# NETWORK CONSTANTS
# ============================================================================

LOOKUP_TIMEOUT_SECONDS = 2.0           # Upper bound on the external reputation lookup
LOOKUP_MAX_WORKERS = 4

# ============================================================================
# PROCESS CONSTANTS
# ============================================================================

DEFAULT_CONFIG_PATH = "config/trustlens_config.yaml"
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 3000
DEFAULT_RATE_LIMIT = "100 per 15 minutes"


@dataclass(frozen=True)
class VerificationSettings:
    """Thresholds consumed by the session manager and the analyzers"""
    auto_reject_automation_score: float = AUTO_REJECT_AUTOMATION_SCORE
    human_score_threshold: float = HUMAN_SCORE_THRESHOLD
    behavior_trigger_event_count: int = BEHAVIOR_TRIGGER_EVENT_COUNT
    behavior_reject_score: float = BEHAVIOR_REJECT_SCORE
    event_retention_limit: int = EVENT_RETENTION_LIMIT
    automation_score_threshold: float = AUTOMATION_SCORE_THRESHOLD
    behavior_human_threshold: float = BEHAVIOR_HUMAN_THRESHOLD
    cluster_anomaly_penalty: float = CLUSTER_ANOMALY_PENALTY
    session_ttl_seconds: float = SESSION_TTL_SECONDS
    sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS
    lookup_timeout_seconds: float = LOOKUP_TIMEOUT_SECONDS

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "VerificationSettings":
        """
        Build settings from a loaded configuration dictionary.

        Args:
            config: Full configuration (as returned by load_config)

        Returns:
            VerificationSettings with defaults for anything not configured
        """
        config = config or {}
        verification = config.get('verification', {}) or {}
        sessions = config.get('sessions', {}) or {}
        network = config.get('network', {}) or {}

        return cls(
            auto_reject_automation_score=verification.get(
                'auto_reject_automation_score', AUTO_REJECT_AUTOMATION_SCORE),
            human_score_threshold=verification.get(
                'human_score_threshold', HUMAN_SCORE_THRESHOLD),
            behavior_trigger_event_count=verification.get(
                'behavior_trigger_event_count', BEHAVIOR_TRIGGER_EVENT_COUNT),
            behavior_reject_score=verification.get(
                'behavior_reject_score', BEHAVIOR_REJECT_SCORE),
            automation_score_threshold=verification.get(
                'automation_score_threshold', AUTOMATION_SCORE_THRESHOLD),
            behavior_human_threshold=verification.get(
                'behavior_human_threshold', BEHAVIOR_HUMAN_THRESHOLD),
            cluster_anomaly_penalty=verification.get(
                'cluster_anomaly_penalty', CLUSTER_ANOMALY_PENALTY),
            event_retention_limit=sessions.get(
                'event_retention_limit', EVENT_RETENTION_LIMIT),
            session_ttl_seconds=sessions.get('ttl_seconds', SESSION_TTL_SECONDS),
            sweep_interval_seconds=sessions.get(
                'sweep_interval_seconds', SWEEP_INTERVAL_SECONDS),
            lookup_timeout_seconds=network.get(
                'lookup_timeout_seconds', LOOKUP_TIMEOUT_SECONDS),
        )


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration when no config file is provided.

    Returns:
        Dict[str, Any]: Default configuration dictionary
    """
    return {
        'verification': {
            'auto_reject_automation_score': AUTO_REJECT_AUTOMATION_SCORE,
            'human_score_threshold': HUMAN_SCORE_THRESHOLD,
            'behavior_trigger_event_count': BEHAVIOR_TRIGGER_EVENT_COUNT,
            'behavior_reject_score': BEHAVIOR_REJECT_SCORE,
            'automation_score_threshold': AUTOMATION_SCORE_THRESHOLD,
            'behavior_human_threshold': BEHAVIOR_HUMAN_THRESHOLD,
            'cluster_anomaly_penalty': CLUSTER_ANOMALY_PENALTY,
        },
        'sessions': {
            'ttl_seconds': SESSION_TTL_SECONDS,
            'sweep_interval_seconds': SWEEP_INTERVAL_SECONDS,
            'event_retention_limit': EVENT_RETENTION_LIMIT,
        },
        'network': {
            'lookup_url': None,  # e.g. "http://ip-api.com/json/{ip}?fields=countryCode,proxy,hosting"
            'lookup_timeout_seconds': LOOKUP_TIMEOUT_SECONDS,
            'lookup_max_workers': LOOKUP_MAX_WORKERS,
        },
        'api': {
            'host': DEFAULT_API_HOST,
            'port': DEFAULT_API_PORT,
            'rate_limit': DEFAULT_RATE_LIMIT,
        },
        'logging': {
            'level': 'INFO',
            'file': 'logs/trustlens.log',
            'json': True,
        },
    }


def load_config(config_path: Optional[str] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from a YAML file and merge it over the defaults.

    Args:
        config_path: Path to configuration file

    Returns:
        Dict[str, Any]: Configuration dictionary with every section present

    Raises:
        ConfigurationError: If the file has invalid YAML or a malformed section
    """
    defaults = get_default_config()

    if not config_path or not os.path.exists(config_path):
        logger.warning("Configuration file not found: %s, using defaults", config_path)
        return defaults

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        logger.error("Invalid YAML in configuration file %s: %s", config_path, e)
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    config = copy.deepcopy(loaded)
    for section, section_defaults in defaults.items():
        value = config.setdefault(section, {})
        if value is None:
            value = config[section] = {}
        if not isinstance(value, dict):
            raise ConfigurationError(f"Configuration section '{section}' must be a mapping")
        for key, default in section_defaults.items():
            value.setdefault(key, default)

    logger.info("Configuration loaded from %s", config_path)
    return config
