# tests/test_network_analyzer.py
"""
Tests for the network reputation analyzer and the reputation lookups

1. Client IP resolution and short-circuits
2. Geolocation consistency with a mocked lookup
3. Proxy, datacenter and VPN signals
4. Header and TLS consistency
5. Bounded and HTTP lookups degrade to "unknown"
"""

import threading

import pytest
import requests
import sys
from pathlib import Path
from unittest.mock import Mock

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustlens.analyzers.network_analyzer import (
    NetworkAnalyzer,
    resolve_client_ip,
    is_private_address,
    check_header_consistency,
)
from trustlens.analyzers.reputation_lookup import (
    ReputationInfo,
    ReputationLookup,
    HttpReputationLookup,
    BoundedReputationLookup,
)
from tests.test_utils import (
    create_snapshot,
    create_human_payload,
    BROWSER_HEADERS,
    PUBLIC_IP,
    DATACENTER_IP,
    VPN_IP,
    PRIVATE_IP,
)

pytestmark = [
    pytest.mark.network,
    pytest.mark.unit
]


def _lookup_returning(info):
    lookup = Mock(spec=ReputationLookup)
    lookup.lookup.return_value = info
    return lookup


class TestClientAddress:

    def test_forwarded_for_takes_precedence(self):
        headers = dict(BROWSER_HEADERS, **{'X-Forwarded-For': '8.8.8.8, 10.0.0.1', 'X-Real-IP': '1.1.1.1'})
        snapshot = create_snapshot(headers=headers, remote_addr=PUBLIC_IP)

        assert resolve_client_ip(snapshot) == '8.8.8.8'

    def test_real_ip_before_remote_addr(self):
        headers = dict(BROWSER_HEADERS, **{'X-Real-IP': '1.1.1.1'})
        snapshot = create_snapshot(headers=headers, remote_addr=PUBLIC_IP)

        assert resolve_client_ip(snapshot) == '1.1.1.1'

    def test_garbage_candidates_are_skipped(self):
        headers = dict(BROWSER_HEADERS, **{'X-Forwarded-For': 'unknown'})
        snapshot = create_snapshot(headers=headers, remote_addr=PUBLIC_IP)

        assert resolve_client_ip(snapshot) == PUBLIC_IP

    def test_no_address_scores_zero(self):
        result = NetworkAnalyzer().analyze(create_snapshot(remote_addr=None))

        assert result.score == 0
        assert result.reasons == ['Unable to determine client IP address']

    @pytest.mark.parametrize("address", [PRIVATE_IP, '127.0.0.1', '10.1.2.3', '::1'])
    def test_private_addresses_short_circuit(self, address, mock_lookup):
        analyzer = NetworkAnalyzer(lookup=mock_lookup)

        result = analyzer.analyze(create_snapshot(remote_addr=address))

        assert is_private_address(address)
        assert result.score == 10
        mock_lookup.lookup.assert_not_called()


class TestGeolocation:

    def test_unknown_lookup_is_neutral(self, human_snapshot, mock_lookup):
        # Arrange
        analyzer = NetworkAnalyzer(lookup=mock_lookup)

        # Act
        result = analyzer.analyze(human_snapshot)

        # Assert: only the consistent-headers bonus applies
        assert result.score == 65
        assert result.lookup_status == 'unavailable'
        assert result.reasons == []
        mock_lookup.lookup.assert_called_once_with(PUBLIC_IP)

    def test_matching_country(self, human_snapshot):
        analyzer = NetworkAnalyzer(lookup=_lookup_returning(ReputationInfo(country='US')))

        result = analyzer.analyze(human_snapshot)

        # 50 + timezone 20 + language 10 + headers 15
        assert result.score == 95
        assert result.country == 'US'
        assert result.ip_timezone_match is True
        assert result.ip_language_match is True

    def test_mismatching_country(self, human_snapshot):
        analyzer = NetworkAnalyzer(lookup=_lookup_returning(ReputationInfo(country='JP')))

        result = analyzer.analyze(human_snapshot)

        # 50 - 20 - 10 + 15
        assert result.score == 35
        assert 'IP location does not match timezone' in result.reasons
        assert 'IP location does not match language' in result.reasons
        assert result.ip_timezone_match is False

    def test_unlisted_country_matches(self, human_snapshot):
        analyzer = NetworkAnalyzer(lookup=_lookup_returning(ReputationInfo(country='NZ')))

        result = analyzer.analyze(human_snapshot)

        assert result.ip_timezone_match is True
        assert result.ip_language_match is True

    def test_answer_without_country(self, human_snapshot):
        analyzer = NetworkAnalyzer(lookup=_lookup_returning(ReputationInfo(country=None)))

        result = analyzer.analyze(human_snapshot)

        assert result.score == 55
        assert 'Unable to geolocate IP address' in result.reasons


class TestAddressReputation:

    def test_proxy_headers(self):
        headers = dict(BROWSER_HEADERS, **{'Via': '1.1 proxy', 'CF-Connecting-IP': PUBLIC_IP})
        result = NetworkAnalyzer().analyze(create_snapshot(headers=headers))

        assert result.proxied is True
        assert 'via' in result.proxy_headers
        assert 'cloudflare' in result.proxy_headers
        assert result.score == 35

    def test_datacenter_range(self):
        result = NetworkAnalyzer().analyze(create_snapshot(remote_addr=DATACENTER_IP))

        assert result.datacenter_ip is True
        assert 'Datacenter IP address detected' in result.reasons
        assert result.score == 25

    def test_vpn_range(self):
        result = NetworkAnalyzer().analyze(create_snapshot(remote_addr=VPN_IP))

        assert result.vpn_detected is True
        assert result.score == 45

    def test_hosting_flag_from_lookup(self, human_snapshot):
        info = ReputationInfo(country='US', is_datacenter=True, is_vpn=True)
        result = NetworkAnalyzer(lookup=_lookup_returning(info)).analyze(human_snapshot)

        assert result.datacenter_ip is True
        assert result.vpn_detected is True

    def test_score_is_clamped(self):
        headers = {'User-Agent': 'Mozilla/5.0 Chrome/120.0', 'Accept': 'application/json',
                   'Via': 'proxy', 'X-Forwarded-For': DATACENTER_IP}
        result = NetworkAnalyzer().analyze(
            create_snapshot(headers=headers, tls_cipher='TLS_RSA_WITH_RC4_128_SHA', tls_version='SSLv3'))

        assert result.score == 0


class TestHeaderConsistency:

    def test_browser_headers_are_consistent(self):
        headers = {k.lower(): v for k, v in BROWSER_HEADERS.items()}
        assert check_header_consistency(headers) == []

    def test_json_accept_for_a_browser(self):
        headers = {'user-agent': 'Mozilla/5.0 Chrome/120.0', 'accept': 'application/json',
                   'accept-language': 'en'}
        issues = check_header_consistency(headers)

        assert 'Accept header inconsistent with a browser' in issues
        assert 'User-Agent inconsistent with Accept header' in issues

    def test_wildcard_accept_is_browser_compatible(self):
        headers = {'user-agent': 'Mozilla/5.0 Chrome/120.0', 'accept': '*/*', 'accept-language': 'en'}
        assert check_header_consistency(headers) == []

    def test_missing_accept_language(self):
        headers = {'user-agent': 'Mozilla/5.0 Firefox/121.0', 'accept': 'text/html'}
        assert check_header_consistency(headers) == ['User-Agent inconsistent with missing Accept-Language']


class TestTransport:

    def test_modern_tls(self, human_snapshot):
        snapshot = create_snapshot(tls_cipher='TLS_AES_128_GCM_SHA256', tls_version='TLSv1.3')
        result = NetworkAnalyzer().analyze(snapshot)

        assert result.score == 75

    def test_obsolete_tls(self):
        snapshot = create_snapshot(tls_version='TLSv1')
        result = NetworkAnalyzer().analyze(snapshot)

        assert any(reason.startswith('TLS anomaly') for reason in result.reasons)
        assert result.score == 55

    def test_tls_unknown_is_skipped(self, human_snapshot):
        result = NetworkAnalyzer().analyze(human_snapshot)

        assert not any('TLS' in reason for reason in result.reasons)


class TestReputationLookups:

    def test_bounded_lookup_times_out(self):
        # Arrange: delegate blocks until released
        release = threading.Event()

        class SlowLookup(ReputationLookup):
            def lookup(self, ip):
                release.wait(5)
                return ReputationInfo(country='US')

        bounded = BoundedReputationLookup(SlowLookup(), timeout=0.05, max_workers=1)

        try:
            # Act & Assert
            assert bounded.lookup(PUBLIC_IP) is None
        finally:
            release.set()
            bounded.close()

    def test_bounded_lookup_swallows_errors(self):
        delegate = Mock(spec=ReputationLookup)
        delegate.lookup.side_effect = RuntimeError("boom")
        bounded = BoundedReputationLookup(delegate, timeout=1.0)

        try:
            assert bounded.lookup(PUBLIC_IP) is None
        finally:
            bounded.close()
        delegate.close.assert_called_once()

    def test_bounded_lookup_passes_results(self):
        bounded = BoundedReputationLookup(_lookup_returning(ReputationInfo(country='DE')), timeout=1.0)

        try:
            assert bounded.lookup(PUBLIC_IP) == ReputationInfo(country='DE')
        finally:
            bounded.close()

    def test_http_lookup_maps_fields(self):
        # Arrange
        response = Mock()
        response.json.return_value = {'status': 'success', 'countryCode': 'GB',
                                      'hosting': True, 'proxy': False}
        session = Mock()
        session.get.return_value = response
        lookup = HttpReputationLookup("http://geo.example/json/{ip}", timeout=1.0, session=session)

        # Act
        info = lookup.lookup(PUBLIC_IP)

        # Assert
        session.get.assert_called_once_with(f"http://geo.example/json/{PUBLIC_IP}", timeout=1.0)
        assert info == ReputationInfo(country='GB', is_datacenter=True, is_vpn=False)

    def test_http_lookup_failed_status(self):
        response = Mock()
        response.json.return_value = {'status': 'fail', 'message': 'reserved range'}
        session = Mock()
        session.get.return_value = response

        info = HttpReputationLookup("http://geo.example/{ip}", session=session).lookup(PUBLIC_IP)

        assert info == ReputationInfo(country=None)

    def test_http_lookup_network_error(self):
        session = Mock()
        session.get.side_effect = requests.exceptions.ConnectionError("unreachable")

        info = HttpReputationLookup("http://geo.example/{ip}", session=session).lookup(PUBLIC_IP)

        assert info is None

    def test_http_lookup_invalid_json(self):
        response = Mock()
        response.json.side_effect = ValueError("not json")
        session = Mock()
        session.get.return_value = response

        assert HttpReputationLookup("http://geo.example/{ip}", session=session).lookup(PUBLIC_IP) is None
