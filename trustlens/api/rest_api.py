# trustlens/api/rest_api.py
"""
REST API for TrustLens

Thin HTTP adapter over the SessionManager. The collector script talks to
these endpoints; every response is a JSON envelope carrying `success`.

Endpoints:
- POST /api/init              create a session from a telemetry snapshot
- POST /api/event/<id>        record one interaction event
- POST /api/verify/<id>       evaluate (or replay) the session verdict
- GET  /api/status/<id>       session status summary
- GET  /api/health            liveness probe
"""

from datetime import datetime

from flask import Blueprint, request, jsonify, current_app

from ..core.exceptions import SessionNotFoundError
from ..core.telemetry import TelemetrySnapshot

# Create blueprint for API routes
api_blueprint = Blueprint('trustlens_api', __name__, url_prefix='/api')


def _manager():
    """SessionManager attached to the application by create_app"""
    return current_app.session_manager


def _not_found(error: SessionNotFoundError):
    return jsonify({
        'success': False,
        'message': str(error),
    }), 404


def _internal_error(action: str, error: Exception):
    # Log the details, return a generic message
    current_app.logger.error(f"Error while {action}: {error}", exc_info=True)
    return jsonify({
        'success': False,
        'message': f'Internal error while {action}',
    }), 500


# API Routes

@api_blueprint.route('/health', methods=['GET'])
def health_check():
    """
    Health check endpoint for monitoring and load balancers

    Returns:
        JSON response indicating service health status
    """
    return jsonify({
        'success': True,
        'status': 'healthy',
        'timestamp': datetime.now().isoformat(),
        'service': 'trustlens-api',
        'activeSessions': len(_manager().store),
    }), 200


@api_blueprint.route('/init', methods=['POST'])
def init_session():
    """
    Create a verification session

    Expected JSON request body: the collector's telemetry snapshot
    (userAgent, screenResolution, timezone, fonts, plugins, webdriver, ...).
    A missing or malformed body yields a snapshot with every field absent.

    The negotiated cipher and protocol are read from the SSL_CIPHER and
    SSL_PROTOCOL environ keys. Only a TLS-terminating server that exports
    them (mod_ssl, or gunicorn/uwsgi behind a proxy that forwards them)
    supplies these; otherwise the TLS checks are skipped.

    Returns:
        JSON response with the session id and initial status
    """
    payload = request.get_json(silent=True)

    try:
        snapshot = TelemetrySnapshot.from_payload(
            payload,
            headers=dict(request.headers),
            remote_addr=request.remote_addr,
            tls_cipher=request.environ.get('SSL_CIPHER'),
            tls_version=request.environ.get('SSL_PROTOCOL'),
        )
        created = _manager().create_session(snapshot)

        response = {'success': True}
        response.update(created.to_dict())
        return jsonify(response), 200

    except Exception as e:
        return _internal_error('initializing the session', e)


@api_blueprint.route('/event/<session_id>', methods=['POST'])
def record_event(session_id: str):
    """
    Record one interaction event

    Expected JSON request body:
    {
        "type": "mousemove",
        "data": {"x": 120, "y": 340, "timestamp": 1700000000000}
    }

    Returns:
        JSON response with the event count, or success=false when the
        session no longer accepts events
    """
    body = request.get_json(silent=True) or {}

    try:
        event_type = body.get('type') if isinstance(body, dict) else None

        if not isinstance(event_type, str) or not event_type:
            return jsonify({
                'success': False,
                'message': 'Missing required field: type',
            }), 400

        data = body.get('data')
        outcome = _manager().record_event(
            session_id, event_type, data if isinstance(data, dict) else {})
        return jsonify(outcome.to_dict()), 200

    except SessionNotFoundError as e:
        return _not_found(e)
    except Exception as e:
        return _internal_error('recording the event', e)


@api_blueprint.route('/verify/<session_id>', methods=['POST'])
def verify_session(session_id: str):
    """
    Evaluate a session

    The first call on a pending session computes the verdict; later calls
    return the same cached verdict.

    Returns:
        JSON response with the verification result
    """
    try:
        result = _manager().evaluate(session_id, request_headers=dict(request.headers))
        return jsonify({
            'success': True,
            'result': result.to_dict(),
        }), 200

    except SessionNotFoundError as e:
        return _not_found(e)
    except Exception as e:
        return _internal_error('verifying the session', e)


@api_blueprint.route('/status/<session_id>', methods=['GET'])
def session_status(session_id: str):
    """
    Get session status

    Returns:
        JSON response with status, timestamps, event count and automation summary
    """
    try:
        status = _manager().get_status(session_id)

        response = {'success': True}
        response.update(status.to_dict())
        return jsonify(response), 200

    except SessionNotFoundError as e:
        return _not_found(e)
    except Exception as e:
        return _internal_error('reading the session status', e)
