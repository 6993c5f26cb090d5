# trustlens/analyzers/reputation_lookup.py
"""
IP Reputation / Geolocation Lookup

The network analyzer consumes a lookup `ip -> ReputationInfo | None`, where
None means "unknown". Implementations:
- NullReputationLookup: no external source configured
- HttpReputationLookup: JSON HTTP endpoint (ip-api.com style fields)
- BoundedReputationLookup: wraps any lookup with a hard timeout so a slow
  source degrades to "unknown" instead of stalling session creation
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from ..core.config import LOOKUP_TIMEOUT_SECONDS, LOOKUP_MAX_WORKERS
from ..utils.logging_utils import VerificationEventType, log_verification_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReputationInfo:
    """What an external source knows about an address"""
    country: Optional[str] = None  # ISO 3166-1 alpha-2
    is_datacenter: bool = False
    is_vpn: bool = False


class ReputationLookup(ABC):
    """Lookup interface; implementations must not raise for unknown addresses"""

    @abstractmethod
    def lookup(self, ip: str) -> Optional[ReputationInfo]:
        pass

    def close(self):
        """Release resources held by the lookup"""
        pass


class NullReputationLookup(ReputationLookup):
    """Lookup used when no external source is configured"""

    def lookup(self, ip: str) -> Optional[ReputationInfo]:
        return None


class HttpReputationLookup(ReputationLookup):
    """
    Query a JSON endpoint for country and hosting/proxy flags.

    The URL template receives the address as `{ip}`, e.g.
    "http://ip-api.com/json/{ip}?fields=status,countryCode,proxy,hosting".
    """

    def __init__(self, url_template: str, timeout: float = LOOKUP_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or self._init_session()

    @staticmethod
    def _init_session() -> requests.Session:
        """HTTP session without retries; the caller bounds total time"""
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=0, pool_connections=4, pool_maxsize=16)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({'Accept': 'application/json'})
        return session

    def lookup(self, ip: str) -> Optional[ReputationInfo]:
        try:
            response = self.session.get(self.url_template.format(ip=ip), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning("Reputation lookup for %s failed: %s", ip, e)
            return None
        except ValueError as e:
            logger.warning("Reputation lookup for %s returned invalid JSON: %s", ip, e)
            return None

        if not isinstance(payload, dict):
            return None

        # A failed query still answered; the source simply has no location
        if payload.get('status') == 'fail':
            return ReputationInfo(country=None)

        country = payload.get('countryCode') or payload.get('country_code')
        return ReputationInfo(
            country=country if isinstance(country, str) and country else None,
            is_datacenter=bool(payload.get('hosting', False)),
            is_vpn=bool(payload.get('proxy', False)),
        )

    def close(self):
        self.session.close()


class BoundedReputationLookup(ReputationLookup):
    """
    Run a lookup on a worker pool and wait at most `timeout` seconds.

    Timeouts and errors both yield None (unknown) and are logged at warning
    level; they never propagate to the analyzer.
    """

    def __init__(self, delegate: ReputationLookup,
                 timeout: float = LOOKUP_TIMEOUT_SECONDS,
                 max_workers: int = LOOKUP_MAX_WORKERS):
        self.delegate = delegate
        self.timeout = timeout
        self.executor = ThreadPoolExecutor(max_workers=max_workers,
                                           thread_name_prefix="ReputationLookup")

    def lookup(self, ip: str) -> Optional[ReputationInfo]:
        future = self.executor.submit(self.delegate.lookup, ip)
        try:
            return future.result(timeout=self.timeout)
        except TimeoutError:
            future.cancel()
            log_verification_event(
                VerificationEventType.LOOKUP_DEGRADED,
                f"Reputation lookup timed out after {self.timeout}s",
                level=logging.WARNING,
                client_ip=ip,
                outcome="timeout",
            )
            return None
        except Exception as e:
            log_verification_event(
                VerificationEventType.LOOKUP_DEGRADED,
                f"Reputation lookup failed: {e}",
                level=logging.WARNING,
                client_ip=ip,
                outcome="error",
            )
            return None

    def close(self):
        self.executor.shutdown(wait=False)
        self.delegate.close()
