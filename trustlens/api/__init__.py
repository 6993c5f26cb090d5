# trustlens/api/__init__.py
"""
TrustLens HTTP API Package

Flask application factory for the verification service.

Security Features:
- Rate limiting per client address (Flask-Limiter)
- JSON-only error responses
- Request size cap
"""

from typing import Any, Dict, Optional

from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from ..core.config import DEFAULT_RATE_LIMIT
from ..session.session_manager import SessionManager
from .rest_api import api_blueprint


def create_app(manager: Optional[SessionManager] = None,
               config: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Factory function to create and configure the TrustLens API application.

    Args:
        manager: SessionManager serving the endpoints (a default one is built
            from `config` when omitted)
        config: Loaded TrustLens configuration (see core.config)

    Returns:
        Flask application instance with the API blueprint registered
    """
    config = config or {}
    api_config = config.get('api', {}) or {}

    if manager is None:
        manager = SessionManager.from_config(config)

    app = Flask(__name__)

    # Default configuration
    default_config = {
        'MAX_CONTENT_LENGTH': 1 * 1024 * 1024,  # 1MB max body
        'RATELIMIT_ENABLED': api_config.get('rate_limit_enabled', True),
        'RATELIMIT_STORAGE_URI': api_config.get('rate_limit_storage_uri', 'memory://'),
        'TESTING': False,
    }
    default_config.update(api_config.get('flask', {}) or {})
    app.config.update(default_config)

    # Rate limiter keyed on the client address
    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        default_limits=[api_config.get('rate_limit', DEFAULT_RATE_LIMIT)],
    )

    app.register_blueprint(api_blueprint)

    # Store components on the app for access in routes
    app.session_manager = manager
    app.limiter = limiter

    register_error_handlers(app)

    return app


def register_error_handlers(app: Flask):
    """Register JSON error handlers for the Flask application"""

    @app.errorhandler(404)
    def not_found(e):
        """Handle 404 Not Found errors"""
        return jsonify({'success': False, 'message': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        """Handle 405 Method Not Allowed errors"""
        return jsonify({'success': False, 'message': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def payload_too_large(e):
        """Handle 413 Payload Too Large errors"""
        return jsonify({'success': False, 'message': 'Request body too large'}), 413

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        """Handle 429 Rate Limit exceeded"""
        return jsonify({'success': False, 'message': 'Too many requests, please try again later'}), 429

    @app.errorhandler(500)
    def internal_server_error(e):
        """Handle 500 Internal Server errors"""
        return jsonify({'success': False, 'message': 'Internal server error'}), 500


__all__ = [
    'create_app',
    'register_error_handlers',
    'api_blueprint',
]
