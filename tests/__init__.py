# tests/__init__.py
"""
TrustLens - Test Suite

1. Analyzer Tests: automation, behavior, fingerprint and network analyzers
2. Session Tests: decision aggregation and the session lifecycle
3. API Tests: REST endpoints through the Flask test client
4. Config Tests: configuration loading, logging and user-agent parsing

Shared factories live in test_utils.py and fixtures in conftest.py.

To run tests:
    python -m pytest tests/ -v                  # Run all tests
    python -m pytest tests/test_api.py          # Run specific test file
    python -m pytest -m unit                    # Run by marker
"""

import sys
import os

# Make the project root importable when running a single test file
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
