# trustlens/analyzers/network_analyzer.py
"""
Network Reputation Analyzer
Purpose: Scores the network origin of a session
Techniques: Client IP resolution, geolocation vs declared locale, proxy
header detection, datacenter/VPN address ranges, header self-consistency,
negotiated TLS inspection
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.results import NetworkAnalysis
from ..core.rules import ScoringRule, evaluate_rules, clamp_score
from ..core.telemetry import TelemetrySnapshot
from .reputation_lookup import ReputationInfo, ReputationLookup, NullReputationLookup

logger = logging.getLogger(__name__)

BASE_SCORE = 50
PRIVATE_ADDRESS_SCORE = 10

# Country -> timezone name prefixes
COUNTRY_TIMEZONES: Dict[str, List[str]] = {
    'US': ['America/'],
    'CA': ['America/'],
    'GB': ['Europe/London'],
    'DE': ['Europe/Berlin'],
    'FR': ['Europe/Paris'],
    'JP': ['Asia/Tokyo'],
    'CN': ['Asia/Shanghai', 'Asia/Chongqing', 'Asia/Harbin', 'Asia/Urumqi'],
    'IN': ['Asia/Kolkata', 'Asia/Calcutta'],
    'AU': ['Australia/'],
    'RU': ['Europe/Moscow', 'Asia/'],
}

# Country -> primary language subtags
COUNTRY_LANGUAGES: Dict[str, List[str]] = {
    'US': ['en'],
    'CA': ['en', 'fr'],
    'GB': ['en'],
    'DE': ['de'],
    'FR': ['fr'],
    'JP': ['ja'],
    'CN': ['zh'],
    'IN': ['hi', 'en'],
    'AU': ['en'],
    'RU': ['ru'],
}

PROXY_HEADERS = (
    'via',
    'forwarded',
    'x-forwarded-for',
    'x-forwarded-host',
    'x-forwarded-proto',
    'x-real-ip',
    'proxy-connection',
    'proxy-authenticate',
    'x-proxy-id',
    'proxy-authorization',
)
CDN_PROXY_HEADERS = ('cf-connecting-ip', 'cf-ipcountry')

INSECURE_CIPHERS = {
    'TLS_RSA_WITH_RC4_128_SHA',
    'TLS_RSA_WITH_RC4_128_MD5',
    'TLS_RSA_WITH_DES_CBC_SHA',
    'TLS_RSA_EXPORT_WITH_RC4_40_MD5',
    'TLS_RSA_EXPORT_WITH_DES40_CBC_SHA',
}
OBSOLETE_TLS_VERSIONS = {'SSLv2', 'SSLv3', 'TLSv1', 'TLSv1.0'}

BROWSER_TOKENS = ('chrome', 'firefox', 'safari')


def _address_ranges(ranges) -> List[ipaddress.IPv4Network]:
    networks = []
    for start, end in ranges:
        networks.extend(ipaddress.summarize_address_range(
            ipaddress.IPv4Address(start), ipaddress.IPv4Address(end)))
    return networks


# Cloud provider ranges (AWS, Google Cloud, Azure, DigitalOcean, Linode)
DATACENTER_NETWORKS = _address_ranges([
    ('3.0.0.0', '3.255.255.255'),
    ('13.32.0.0', '13.35.255.255'),
    ('13.224.0.0', '13.255.255.255'),
    ('52.0.0.0', '52.255.255.255'),
    ('54.0.0.0', '54.255.255.255'),
    ('34.64.0.0', '34.127.255.255'),
    ('35.184.0.0', '35.239.255.255'),
    ('13.64.0.0', '13.107.255.255'),
    ('40.64.0.0', '40.127.255.255'),
    ('45.55.0.0', '45.55.255.255'),
    ('104.131.0.0', '104.131.255.255'),
    ('138.197.0.0', '138.197.255.255'),
    ('45.33.0.0', '45.33.255.255'),
    ('96.126.96.0', '96.126.127.255'),
    ('173.255.192.0', '173.255.255.255'),
])

# Commercial VPN exit ranges (NordVPN, ExpressVPN, Private Internet Access)
VPN_NETWORKS = _address_ranges([
    ('5.254.0.0', '5.254.255.255'),
    ('31.13.191.0', '31.13.191.255'),
    ('172.241.131.0', '172.241.131.255'),
    ('185.159.157.0', '185.159.157.255'),
])


def _parse_ip(value: Optional[str]):
    if not value:
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def resolve_client_ip(snapshot: TelemetrySnapshot) -> Optional[str]:
    """
    Client address with precedence: first X-Forwarded-For entry, X-Real-IP,
    connection address. Unparseable candidates are skipped.
    """
    origin = snapshot.origin
    forwarded_for = origin.header('x-forwarded-for')
    candidates = [
        forwarded_for.split(',')[0] if forwarded_for else None,
        origin.header('x-real-ip'),
        origin.remote_addr,
    ]
    for candidate in candidates:
        address = _parse_ip(candidate)
        if address is not None:
            return str(address)
    return None


def is_private_address(ip: str) -> bool:
    address = _parse_ip(ip)
    return address is not None and (address.is_private or address.is_loopback)


def in_networks(ip: str, networks) -> bool:
    address = _parse_ip(ip)
    if address is None or address.version != 4:
        return False
    return any(address in network for network in networks)


def timezone_matches_country(country: str, timezone: str) -> bool:
    """Unknown countries match by default"""
    expected = COUNTRY_TIMEZONES.get(country)
    if not expected:
        return True
    return any(prefix in timezone for prefix in expected)


def language_matches_country(country: str, language: str) -> bool:
    """Unknown countries match by default"""
    expected = COUNTRY_LANGUAGES.get(country)
    if not expected:
        return True
    return language.split('-')[0].lower() in expected


def detect_proxy_headers(headers: Dict[str, str]) -> List[str]:
    found = [name for name in PROXY_HEADERS if headers.get(name)]
    if any(headers.get(name) for name in CDN_PROXY_HEADERS):
        found.append('cloudflare')
    return found


def check_header_consistency(headers: Dict[str, str]) -> List[str]:
    """Contradictions between a claimed browser UA and its Accept headers"""
    issues = []
    accept = headers.get('accept')
    accept_language = headers.get('accept-language')
    user_agent = (headers.get('user-agent') or '').lower()
    claims_browser = any(token in user_agent for token in BROWSER_TOKENS)

    if accept and accept_language:
        if 'application/json' in accept and 'text/html' not in accept:
            issues.append('Accept header inconsistent with a browser')

    if claims_browser and accept:
        if 'text/html' not in accept and '*/*' not in accept:
            issues.append('User-Agent inconsistent with Accept header')

    if claims_browser and not accept_language:
        issues.append('User-Agent inconsistent with missing Accept-Language')

    return issues


def check_tls(cipher: Optional[str], version: Optional[str]) -> List[str]:
    issues = []
    if cipher in INSECURE_CIPHERS:
        issues.append('insecure cipher suite')
    if version in OBSOLETE_TLS_VERSIONS:
        issues.append('obsolete TLS/SSL version')
    return issues


@dataclass
class NetworkContext:
    """Values derived once for the network rule table"""
    snapshot: TelemetrySnapshot
    ip: str
    reputation: Optional[ReputationInfo]
    proxy_headers: List[str] = field(default_factory=list)
    header_issues: List[str] = field(default_factory=list)
    tls_inspected: bool = False
    tls_issues: List[str] = field(default_factory=list)
    datacenter: bool = False
    vpn: bool = False

    @property
    def country(self) -> Optional[str]:
        return self.reputation.country if self.reputation else None

    def timezone_match(self) -> bool:
        if not self.country or not self.snapshot.timezone:
            return True
        return timezone_matches_country(self.country, self.snapshot.timezone)

    def language_match(self) -> bool:
        if not self.country or not self.snapshot.language:
            return True
        return language_matches_country(self.country, self.snapshot.language)


NETWORK_RULES: List[ScoringRule] = [
    # Geolocation (skipped entirely when the lookup is unknown)
    ScoringRule('geolocation_unavailable',
                lambda c: c.reputation is not None and not c.country, -10,
                'Unable to geolocate IP address'),
    ScoringRule('timezone_mismatch',
                lambda c: bool(c.country and c.snapshot.timezone) and not c.timezone_match(), -20,
                'IP location does not match timezone'),
    ScoringRule('timezone_match',
                lambda c: bool(c.country and c.snapshot.timezone) and c.timezone_match(), 20),
    ScoringRule('language_mismatch',
                lambda c: bool(c.country and c.snapshot.language) and not c.language_match(), -10,
                'IP location does not match language'),
    ScoringRule('language_match',
                lambda c: bool(c.country and c.snapshot.language) and c.language_match(), 10),

    # Address reputation
    ScoringRule('proxy_headers', lambda c: bool(c.proxy_headers), -30,
                lambda c: f"Proxy headers detected: {', '.join(c.proxy_headers)}"),
    ScoringRule('datacenter_ip', lambda c: c.datacenter, -40, 'Datacenter IP address detected'),
    ScoringRule('vpn_ip', lambda c: c.vpn, -20, 'VPN usage detected'),

    # Request headers and transport
    ScoringRule('headers_inconsistent', lambda c: bool(c.header_issues), -15,
                lambda c: f"Inconsistent request headers: {', '.join(c.header_issues)}"),
    ScoringRule('headers_consistent', lambda c: not c.header_issues, 15),
    ScoringRule('tls_obsolete', lambda c: c.tls_inspected and bool(c.tls_issues), -10,
                lambda c: f"TLS anomaly: {', '.join(c.tls_issues)}"),
    ScoringRule('tls_ok', lambda c: c.tls_inspected and not c.tls_issues, 10),
]


class NetworkAnalyzer:
    """
    Network Reputation Analyzer

    Private and loopback addresses short-circuit with a small positive score.
    External lookups are best-effort: an unknown result contributes nothing.
    """

    def __init__(self, lookup: Optional[ReputationLookup] = None,
                 rules: Optional[List[ScoringRule]] = None):
        self.lookup = lookup or NullReputationLookup()
        self.rules = list(rules) if rules is not None else list(NETWORK_RULES)

    def analyze(self, snapshot: TelemetrySnapshot) -> NetworkAnalysis:
        """
        Score the network origin of a snapshot.

        Args:
            snapshot: Telemetry snapshot carrying the network origin

        Returns:
            NetworkAnalysis with score in [0, 100]
        """
        ip = resolve_client_ip(snapshot)
        if ip is None:
            return NetworkAnalysis(score=0, reasons=['Unable to determine client IP address'])

        if is_private_address(ip):
            return NetworkAnalysis(score=PRIVATE_ADDRESS_SCORE, client_ip=ip,
                                   reasons=['Private IP address'])

        reputation = self.lookup.lookup(ip)
        headers = snapshot.origin.headers
        tls_inspected = bool(snapshot.origin.tls_cipher or snapshot.origin.tls_version)

        context = NetworkContext(
            snapshot=snapshot,
            ip=ip,
            reputation=reputation,
            proxy_headers=detect_proxy_headers(headers),
            header_issues=check_header_consistency(headers),
            tls_inspected=tls_inspected,
            tls_issues=check_tls(snapshot.origin.tls_cipher, snapshot.origin.tls_version)
            if tls_inspected else [],
            datacenter=in_networks(ip, DATACENTER_NETWORKS) or bool(reputation and reputation.is_datacenter),
            vpn=in_networks(ip, VPN_NETWORKS) or bool(reputation and reputation.is_vpn),
        )

        outcome = evaluate_rules(self.rules, context)

        if reputation is None:
            lookup_status = 'unavailable'
            logger.debug("No reputation data for %s, geolocation checks skipped", ip)
        else:
            lookup_status = 'ok'

        return NetworkAnalysis(
            score=clamp_score(BASE_SCORE + outcome.score),
            client_ip=ip,
            reasons=outcome.messages,
            country=context.country,
            proxied=bool(context.proxy_headers),
            proxy_headers=context.proxy_headers,
            vpn_detected=context.vpn,
            datacenter_ip=context.datacenter,
            ip_timezone_match=context.timezone_match(),
            ip_language_match=context.language_match(),
            lookup_status=lookup_status,
        )
