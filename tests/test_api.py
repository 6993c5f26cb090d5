# tests/test_api.py
"""
Tests for the TrustLens REST API

1. Envelope shape of every endpoint
2. Full human and headless flows through the HTTP surface
3. Error mapping: 400, 404, 405, 413, 429, 500
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustlens.api import create_app
from trustlens.session import SessionManager
from tests.test_utils import (
    create_human_payload,
    create_headless_payload,
    create_human_event_stream,
    create_bot_event_stream,
    validate_test_result,
    BROWSER_HEADERS,
    HEADLESS_HEADERS,
)

pytestmark = [
    pytest.mark.api,
    pytest.mark.integration
]


def _init(client, payload=None, headers=None):
    response = client.post('/api/init', json=payload or create_human_payload(),
                           headers=headers or BROWSER_HEADERS)
    return response, response.get_json()


def _send_events(client, session_id, stream, clock=None):
    responses = []
    for event_type, data in stream:
        if clock is not None:
            clock.advance(100)
        responses.append(client.post(f'/api/event/{session_id}',
                                     json={'type': event_type, 'data': data}))
    return responses


class TestHealth:

    def test_health_check(self, client):
        response = client.get('/api/health')
        data = response.get_json()

        assert response.status_code == 200
        assert data['success'] is True
        assert data['status'] == 'healthy'
        assert data['service'] == 'trustlens-api'
        assert data['activeSessions'] == 0

    def test_active_sessions_counted(self, client):
        _init(client)
        _init(client)

        assert client.get('/api/health').get_json()['activeSessions'] == 2


class TestInit:

    def test_human_session(self, client, clock):
        # Act
        response, data = _init(client)

        # Assert
        assert response.status_code == 200
        assert validate_test_result(data, ['success', 'sessionId', 'status', 'timestamp', 'rejectionReason'])
        assert data['success'] is True
        assert data['status'] == 'pending'
        assert data['rejectionReason'] is None
        assert data['timestamp'] == clock.now
        assert data['sessionId']

    def test_headless_session_rejected(self, client):
        response, data = _init(client, create_headless_payload(), HEADLESS_HEADERS)

        assert response.status_code == 200
        assert data['success'] is True
        assert data['status'] == 'rejected'
        assert 'Automation tools detected' in data['rejectionReason']

    def test_empty_body_creates_session(self, client):
        response = client.post('/api/init')
        data = response.get_json()

        assert response.status_code == 200
        assert data['success'] is True
        assert data['status'] == 'pending'

    def test_malformed_body_creates_session(self, client):
        response = client.post('/api/init', data='{not json', content_type='application/json')

        assert response.status_code == 200
        assert response.get_json()['success'] is True

    def test_body_too_large(self, client):
        body = '{"fonts": ["' + 'A' * (2 * 1024 * 1024) + '"]}'

        response = client.post('/api/init', data=body, content_type='application/json')

        assert response.status_code == 413
        assert response.get_json()['success'] is False

    def test_tls_parameters_from_environ(self, client, session_manager):
        # Arrange
        environ = {'REMOTE_ADDR': '81.2.69.160', 'SSL_CIPHER': 'TLS_RSA_WITH_RC4_128_SHA',
                   'SSL_PROTOCOL': 'TLSv1'}

        # Act
        response = client.post('/api/init', json=create_human_payload(),
                               headers=BROWSER_HEADERS, environ_base=environ)
        session = session_manager.store.get(response.get_json()['sessionId'])

        # Assert
        assert session.snapshot.origin.tls_cipher == 'TLS_RSA_WITH_RC4_128_SHA'
        assert session.snapshot.origin.tls_version == 'TLSv1'
        assert any(reason.startswith('TLS anomaly') for reason in session.network.reasons)

    def test_plain_http_skips_tls_checks(self, client, session_manager):
        response = client.post('/api/init', json=create_human_payload(), headers=BROWSER_HEADERS,
                               environ_base={'REMOTE_ADDR': '81.2.69.160'})
        session = session_manager.store.get(response.get_json()['sessionId'])

        assert session.snapshot.origin.tls_version is None
        assert not any('TLS' in reason for reason in session.network.reasons)

    def test_get_not_allowed(self, client):
        response = client.get('/api/init')

        assert response.status_code == 405
        assert response.get_json() == {'success': False, 'message': 'Method not allowed'}


class TestEvent:

    def test_event_recorded(self, client):
        _, created = _init(client)

        response = client.post(f"/api/event/{created['sessionId']}",
                               json={'type': 'mousemove', 'data': {'x': 10, 'y': 20}})

        assert response.status_code == 200
        assert response.get_json() == {'success': True, 'eventsCount': 1}

    def test_missing_type(self, client):
        _, created = _init(client)

        response = client.post(f"/api/event/{created['sessionId']}", json={'data': {}})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Missing required field: type'

    def test_non_dict_data_is_replaced(self, client, session_manager):
        _, created = _init(client)
        session_id = created['sessionId']

        response = client.post(f'/api/event/{session_id}', json={'type': 'scroll', 'data': [1, 2]})

        assert response.status_code == 200
        assert session_manager.store.get(session_id).events[0].data == {}

    def test_unknown_session(self, client):
        response = client.post('/api/event/does-not-exist', json={'type': 'click', 'data': {}})

        assert response.status_code == 404
        data = response.get_json()
        assert data['success'] is False
        assert 'does-not-exist' in data['message']

    def test_rejected_session_refuses_events(self, client):
        _, created = _init(client, create_headless_payload(), HEADLESS_HEADERS)

        response = client.post(f"/api/event/{created['sessionId']}",
                               json={'type': 'click', 'data': {}})
        data = response.get_json()

        assert response.status_code == 200
        assert data['success'] is False
        assert data['message'] == 'Session rejected'
        assert data['behaviorRejected'] is False

    def test_bot_events_rejected_at_trigger(self, client):
        _, created = _init(client)

        responses = _send_events(client, created['sessionId'], create_bot_event_stream(count=10))
        last = responses[-1].get_json()

        assert all(r.get_json()['success'] for r in responses[:9])
        assert last['success'] is False
        assert last['behaviorRejected'] is True
        assert last['rejectionReason'] == 'Behavior pattern resembles a bot'


class TestVerify:

    def test_human_flow(self, client, clock):
        # Arrange
        _, created = _init(client)
        session_id = created['sessionId']
        _send_events(client, session_id, create_human_event_stream(), clock=clock)
        clock.advance(10_000)

        # Act
        response = client.post(f'/api/verify/{session_id}')
        data = response.get_json()

        # Assert
        assert response.status_code == 200
        assert data['success'] is True
        result = data['result']
        assert result['isHuman'] is True, result['reasons']
        assert 0 <= result['score'] <= 100
        assert set(result['details']) == {'automation', 'behavior', 'fingerprint', 'network'}

        status = client.get(f'/api/status/{session_id}').get_json()
        assert status['status'] == 'verified'
        assert status['verifiedAt'] == clock.now

    def test_verdict_replayed(self, client, clock):
        _, created = _init(client)
        session_id = created['sessionId']
        _send_events(client, session_id, create_human_event_stream(), clock=clock)
        clock.advance(10_000)

        first = client.post(f'/api/verify/{session_id}').get_json()
        second = client.post(f'/api/verify/{session_id}',
                             headers={'X-Selenium': 'true'}).get_json()

        assert first == second

    def test_event_after_verification(self, client, clock):
        _, created = _init(client)
        session_id = created['sessionId']
        _send_events(client, session_id, create_human_event_stream(), clock=clock)
        clock.advance(10_000)
        client.post(f'/api/verify/{session_id}')

        data = client.post(f'/api/event/{session_id}', json={'type': 'click'}).get_json()

        assert data['success'] is False
        assert data['message'] == 'Session already verified'

    def test_headless_verdict(self, client):
        _, created = _init(client, create_headless_payload(), HEADLESS_HEADERS)

        result = client.post(f"/api/verify/{created['sessionId']}").get_json()['result']

        assert result['isHuman'] is False
        assert result['score'] == 0
        assert result['reasons'] == [created['rejectionReason']]

    def test_unknown_session(self, client):
        response = client.post('/api/verify/missing')

        assert response.status_code == 404
        assert response.get_json()['success'] is False


class TestStatus:

    def test_pending_status(self, client, clock):
        _, created = _init(client)

        response = client.get(f"/api/status/{created['sessionId']}")
        data = response.get_json()

        assert response.status_code == 200
        assert data == {
            'success': True,
            'status': 'pending',
            'createdAt': clock.now,
            'verifiedAt': None,
            'eventsCount': 0,
            'rejectionReason': None,
            'automationDetected': False,
            'detectedTools': [],
        }

    def test_headless_status_lists_tools(self, client):
        _, created = _init(client, create_headless_payload(), HEADLESS_HEADERS)

        data = client.get(f"/api/status/{created['sessionId']}").get_json()

        assert data['automationDetected'] is True
        assert 'WebDriver' in data['detectedTools']

    def test_unknown_session(self, client):
        assert client.get('/api/status/missing').status_code == 404


class TestErrorHandling:

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')

        assert response.status_code == 404
        assert response.get_json() == {'success': False, 'message': 'Not found'}

    def test_internal_error_is_generic(self, test_config):
        # Arrange
        manager = Mock(spec=SessionManager)
        manager.create_session.side_effect = RuntimeError("store exploded")
        app = create_app(manager, test_config)

        # Act
        response = app.test_client().post('/api/init', json=create_human_payload())
        data = response.get_json()

        # Assert
        assert response.status_code == 500
        assert data == {'success': False, 'message': 'Internal error while initializing the session'}
        assert 'exploded' not in response.get_data(as_text=True)

    def test_rate_limit(self, session_manager, test_config):
        config = dict(test_config, api={'rate_limit': '2 per minute'})
        client = create_app(session_manager, config).test_client()

        statuses = [client.get('/api/health').status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        assert client.get('/api/health').get_json()['success'] is False

    def test_rate_limit_can_be_disabled(self, session_manager, test_config):
        config = dict(test_config, api={'rate_limit': '1 per minute', 'rate_limit_enabled': False})
        client = create_app(session_manager, config).test_client()

        statuses = [client.get('/api/health').status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    def test_default_manager_from_config(self, test_config):
        app = create_app(config=test_config)

        try:
            assert app.session_manager.settings.session_ttl_seconds == 60
        finally:
            app.session_manager.shutdown()
