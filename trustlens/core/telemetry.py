# trustlens/core/telemetry.py
"""
Telemetry Data Model

Records consumed by the analyzers:
- TelemetrySnapshot: one-time device/browser/network descriptor captured at
  session creation. Every field is optional and None means "not reported",
  which is distinct from False, 0 or an empty list.
- Event: a single interaction record from the browser collector.
"""

import math
import numbers
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..utils.user_agent import ParsedUserAgent, parse_user_agent


class EventType(Enum):
    """Interaction event vocabulary understood by the analyzers"""
    MOUSEMOVE = "mousemove"
    CLICK = "click"
    KEYPRESS = "keypress"
    SCROLL = "scroll"
    TOUCHSTART = "touchstart"
    TOUCHMOVE = "touchmove"
    TOUCHEND = "touchend"
    VISIBILITYCHANGE = "visibilitychange"

    @classmethod
    def is_known(cls, value: str) -> bool:
        return value in cls._value2member_map_


@dataclass
class Event:
    """
    One user-interaction record.

    Attributes:
        type: Event type tag; unknown tags are kept but ignored by analyzers
        data: Type-specific payload (x/y for pointer events, client timestamp)
        timestamp: Server receive time in milliseconds
    """
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0

    @property
    def event_time(self) -> float:
        """Client timestamp when the payload carries a numeric one, else receive time"""
        client_time = self.data.get('timestamp') if isinstance(self.data, dict) else None
        if _is_number(client_time):
            return float(client_time)
        return float(self.timestamp)

    @property
    def point(self) -> Optional[Tuple[float, float]]:
        """(x, y) for pointer events with numeric coordinates"""
        if not isinstance(self.data, dict):
            return None
        x, y = self.data.get('x'), self.data.get('y')
        if _is_number(x) and _is_number(y):
            return float(x), float(y)
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'data': self.data, 'timestamp': self.timestamp}


@dataclass(frozen=True)
class NetworkOrigin:
    """Where the snapshot arrived from"""
    remote_addr: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)  # lower-cased names
    tls_cipher: Optional[str] = None
    tls_version: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass(frozen=True)
class AutomationMarkers:
    """Automation-specific properties observed by the browser collector"""
    navigator_properties: Tuple[str, ...] = ()
    window_properties: Tuple[str, ...] = ()
    document_properties: Tuple[str, ...] = ()
    chrome_object_present: Optional[bool] = None
    chrome_app_present: Optional[bool] = None
    chrome_runtime_present: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["AutomationMarkers"]:
        if not isinstance(payload, dict):
            return None
        return cls(
            navigator_properties=_as_str_tuple(payload.get('navigatorProperties')) or (),
            window_properties=_as_str_tuple(payload.get('windowProperties')) or (),
            document_properties=_as_str_tuple(payload.get('documentProperties')) or (),
            chrome_object_present=_as_bool(payload.get('chromeObject')),
            chrome_app_present=_as_bool(payload.get('chromeApp')),
            chrome_runtime_present=_as_bool(payload.get('chromeRuntime')),
        )


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Immutable device/browser/network descriptor for one session"""
    # Network origin and user agent
    origin: NetworkOrigin = field(default_factory=NetworkOrigin)
    user_agent: Optional[str] = None
    reported_user_agent: Optional[str] = None
    parsed_user_agent: Optional[ParsedUserAgent] = None

    # Fingerprint components
    fingerprint: Optional[str] = None
    canvas_fingerprint: Optional[str] = None
    webgl_fingerprint: Optional[str] = None
    webgl_vendor: Optional[str] = None
    webgl_renderer: Optional[str] = None
    audio_fingerprint: Optional[str] = None
    fonts: Optional[Tuple[str, ...]] = None
    plugins: Optional[Tuple[str, ...]] = None

    # Device descriptors
    screen_resolution: Optional[str] = None
    color_depth: Optional[int] = None
    pixel_ratio: Optional[float] = None
    timezone: Optional[str] = None
    timezone_offset: Optional[int] = None  # minutes east of UTC
    language: Optional[str] = None
    languages: Optional[Tuple[str, ...]] = None
    platform: Optional[str] = None

    # Hardware
    hardware_concurrency: Optional[int] = None
    device_memory: Optional[float] = None

    # Capabilities
    touch_support: Optional[bool] = None
    max_touch_points: Optional[int] = None
    cookies_enabled: Optional[bool] = None
    local_storage: Optional[bool] = None
    session_storage: Optional[bool] = None
    indexed_db: Optional[bool] = None
    ad_blocker: Optional[bool] = None
    do_not_track: Optional[str] = None
    connection_type: Optional[str] = None
    connection_speed: Optional[float] = None

    # Automation flags reported by the collector
    webdriver: Optional[bool] = None
    automation_markers: Optional[AutomationMarkers] = None

    @property
    def headers(self) -> Dict[str, str]:
        return self.origin.headers

    @classmethod
    def from_payload(cls,
                     payload: Optional[Dict[str, Any]],
                     headers: Optional[Dict[str, str]] = None,
                     remote_addr: Optional[str] = None,
                     tls_cipher: Optional[str] = None,
                     tls_version: Optional[str] = None) -> "TelemetrySnapshot":
        """
        Build a snapshot from the collector's JSON body and the request context.

        Values of the wrong type are treated as absent rather than rejected.

        Args:
            payload: Collector JSON (camelCase keys)
            headers: Request headers
            remote_addr: Connection peer address
            tls_cipher: Negotiated cipher suite name, if TLS terminated here
            tls_version: Negotiated protocol version (e.g. "TLSv1.3")

        Returns:
            TelemetrySnapshot
        """
        payload = payload if isinstance(payload, dict) else {}
        lowered = {str(k).lower(): str(v) for k, v in (headers or {}).items()}

        header_ua = lowered.get('user-agent')

        return cls(
            origin=NetworkOrigin(
                remote_addr=remote_addr,
                headers=lowered,
                tls_cipher=tls_cipher,
                tls_version=tls_version,
            ),
            user_agent=header_ua,
            reported_user_agent=_as_str(payload.get('userAgent')),
            parsed_user_agent=parse_user_agent(header_ua),
            fingerprint=_as_str(payload.get('fingerprint')),
            canvas_fingerprint=_as_str(payload.get('canvasFingerprint')),
            webgl_fingerprint=_as_str(payload.get('webglFingerprint')),
            webgl_vendor=_as_str(payload.get('webglVendor')),
            webgl_renderer=_as_str(payload.get('webglRenderer')),
            audio_fingerprint=_as_str(payload.get('audioFingerprint')),
            fonts=_as_str_tuple(payload.get('fonts')),
            plugins=_as_str_tuple(payload.get('plugins')),
            screen_resolution=_as_str(payload.get('screenResolution')),
            color_depth=_as_int(payload.get('colorDepth')),
            pixel_ratio=_as_float(payload.get('pixelRatio')),
            timezone=_as_str(payload.get('timezone')),
            timezone_offset=_as_int(payload.get('timezoneOffset')),
            language=_as_str(payload.get('language')),
            languages=_as_str_tuple(payload.get('languages')),
            platform=_as_str(payload.get('platform')),
            hardware_concurrency=_as_int(payload.get('hardwareConcurrency')),
            device_memory=_as_float(payload.get('deviceMemory')),
            touch_support=_as_bool(payload.get('touchSupport')),
            max_touch_points=_as_int(payload.get('maxTouchPoints')),
            cookies_enabled=_as_bool(payload.get('cookiesEnabled')),
            local_storage=_as_bool(payload.get('localStorage')),
            session_storage=_as_bool(payload.get('sessionStorage')),
            indexed_db=_as_bool(payload.get('indexedDB')),
            ad_blocker=_as_bool(payload.get('adBlocker')),
            do_not_track=_as_str(payload.get('doNotTrack')),
            connection_type=_as_str(payload.get('connectionType')),
            connection_speed=_as_float(payload.get('connectionSpeed')),
            webdriver=_as_bool(payload.get('webdriver')),
            automation_markers=AutomationMarkers.from_payload(payload.get('automationFlags')),
        )


_RESOLUTION_PATTERN = re.compile(r'^\s*(\d+)\s*[xX×]\s*(\d+)\s*$')


def parse_screen_resolution(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse a "WIDTHxHEIGHT" screen resolution.

    Returns:
        (width, height), or None when absent or malformed
    """
    if not value:
        return None
    match = _RESOLUTION_PATTERN.match(value)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


# ============================================================================
# PAYLOAD COERCION
# ============================================================================

def _is_number(value: Any) -> bool:
    # bool is an int subclass; a JSON true is not a count
    if not isinstance(value, numbers.Real) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_int(value: Any) -> Optional[int]:
    return int(value) if _is_number(value) else None


def _as_float(value: Any) -> Optional[float]:
    return float(value) if _is_number(value) else None


def _as_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _as_str_tuple(value: Any) -> Optional[Tuple[str, ...]]:
    """Lists of strings, or a comma-separated string, become a tuple"""
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(',') if item.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    return None
