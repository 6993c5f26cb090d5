# tests/conftest.py
"""
Pytest Configuration and Fixtures for TrustLens Tests

Fixtures defined here are available to all test files in the tests
directory by declaring them as parameters.

Example:
    def test_session_created(session_manager, human_snapshot):
        created = session_manager.create_session(human_snapshot)
        assert created.status.value == 'pending'
"""

import pytest
import sys
from pathlib import Path
from typing import Any, Dict
from unittest.mock import Mock

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tests.test_utils import (
    create_snapshot,
    create_headless_snapshot,
    FakeClock,
    TEST_CONFIG,
)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers"""
    markers = [
        "unit: fast, isolated test",
        "integration: exercises several components together",
        "automation: automation signature detector",
        "behavior: behavior analyzer",
        "fingerprint: fingerprint consistency analyzer",
        "network: network reputation analyzer",
        "session: session lifecycle and decision aggregation",
        "api: REST API",
        "config: configuration and logging",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# Session-scoped fixtures
@pytest.fixture(scope="session")
def test_config() -> Dict[str, Any]:
    """Provide test configuration to all tests"""
    return {section: dict(values) for section, values in TEST_CONFIG.items()}


# Function-scoped fixtures
@pytest.fixture
def human_snapshot():
    return create_snapshot()


@pytest.fixture
def headless_snapshot():
    return create_headless_snapshot()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_lookup():
    """Reputation lookup double returning "unknown" unless configured"""
    lookup = Mock()
    lookup.lookup.return_value = None
    return lookup


@pytest.fixture
def session_manager(clock):
    """SessionManager with an in-memory store and an injectable clock"""
    from trustlens.session import SessionManager
    manager = SessionManager(clock=clock)
    yield manager
    manager.shutdown()


@pytest.fixture
def app(session_manager, test_config):
    """Flask app in testing mode around the session manager fixture"""
    from trustlens.api import create_app
    flask_app = create_app(session_manager, test_config)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
