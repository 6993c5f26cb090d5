# trustlens/analyzers/fingerprint_analyzer.py
"""
Fingerprint Consistency Analyzer
Purpose: Identity hash and plausibility score for the device fingerprint
Techniques: Canonical SHA-256 hashing, component presence/length checks,
denylists of automation fingerprints and software rasterizers, device
descriptor sanity ranges, timezone/offset agreement
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.results import FingerprintAnalysis
from ..core.rules import ScoringRule, evaluate_rules, clamp_score
from ..core.telemetry import TelemetrySnapshot, parse_screen_resolution

logger = logging.getLogger(__name__)

BASE_SCORE = 50

# Known canvas/audio fingerprints of automation environments
AUTOMATED_CANVAS_FINGERPRINTS = {
    '0000000000000000000000000000000000000000',
    'f995d7d9444e4ee6a1f4063baae68d9d1a12b5f0',
}
AUTOMATED_AUDIO_FINGERPRINTS = {
    '0000000000',
    '1234567890',
}

# Substrings of WebGL vendor/renderer strings reported by software rasterizers
AUTOMATED_WEBGL_VENDORS = ('Brian Paul', 'Mesa', 'Google Inc.', 'Google SwiftShader')
AUTOMATED_WEBGL_RENDERERS = ('Mesa OffScreen', 'Google SwiftShader', 'llvmpipe',
                             'Software Rasterizer', 'ANGLE')

COMMON_FONTS = ('arial', 'times new roman', 'courier new', 'verdana', 'georgia')

# Standard offsets in minutes east of UTC
TIMEZONE_OFFSETS = {
    'America/New_York': -300,
    'America/Chicago': -360,
    'America/Denver': -420,
    'America/Los_Angeles': -480,
    'America/Sao_Paulo': -180,
    'Europe/London': 0,
    'Europe/Paris': 60,
    'Europe/Berlin': 60,
    'Europe/Madrid': 60,
    'Europe/Moscow': 180,
    'Asia/Kolkata': 330,
    'Asia/Shanghai': 480,
    'Asia/Singapore': 480,
    'Asia/Tokyo': 540,
    'Australia/Sydney': 600,
}

MIN_FINGERPRINT_LENGTH = 50
MIN_AUDIO_FINGERPRINT_LENGTH = 10
MAX_OFFSET_DEVIATION_MINUTES = 60


def fingerprint_components(snapshot: TelemetrySnapshot) -> Dict[str, Any]:
    """Canonical component set hashed into the fingerprint identity"""
    return {
        'user_agent': snapshot.user_agent,
        'language': snapshot.language,
        'color_depth': snapshot.color_depth,
        'screen_resolution': snapshot.screen_resolution,
        'timezone': snapshot.timezone,
        'timezone_offset': snapshot.timezone_offset,
        'platform': snapshot.platform,
        'plugins': list(snapshot.plugins) if snapshot.plugins is not None else None,
        'fingerprint': snapshot.fingerprint,
        'canvas_fingerprint': snapshot.canvas_fingerprint,
        'webgl_fingerprint': snapshot.webgl_fingerprint,
        'webgl_vendor': snapshot.webgl_vendor,
        'webgl_renderer': snapshot.webgl_renderer,
        'audio_fingerprint': snapshot.audio_fingerprint,
        'fonts': list(snapshot.fonts) if snapshot.fonts is not None else None,
        'touch_support': snapshot.touch_support,
        'max_touch_points': snapshot.max_touch_points,
        'hardware_concurrency': snapshot.hardware_concurrency,
        'device_memory': snapshot.device_memory,
        'pixel_ratio': snapshot.pixel_ratio,
    }


def generate_fingerprint_hash(components: Dict[str, Any]) -> str:
    """SHA-256 over sorted-key JSON, a pure function of the component set"""
    canonical = json.dumps(components, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


# ============================================================================
# PREDICATES
# ============================================================================

def _screen(s: TelemetrySnapshot) -> Optional[Tuple[int, int]]:
    return parse_screen_resolution(s.screen_resolution)


def _has_webgl(s: TelemetrySnapshot) -> bool:
    return bool(s.webgl_fingerprint)


def _webgl_details_present(s: TelemetrySnapshot) -> bool:
    return _has_webgl(s) and bool(s.webgl_vendor) and bool(s.webgl_renderer)


def _has_common_font(s: TelemetrySnapshot) -> bool:
    fonts = [f.lower() for f in s.fonts or ()]
    return any(common in font for common in COMMON_FONTS for font in fonts)


def _is_generic_timezone(timezone: str) -> bool:
    return timezone in ('UTC', 'GMT', 'Etc/UTC') or timezone.startswith('Etc/GMT')


def _offset_mismatch(s: TelemetrySnapshot) -> bool:
    expected = TIMEZONE_OFFSETS.get(s.timezone)
    if expected is None or s.timezone_offset is None:
        return False
    return abs(s.timezone_offset - expected) > MAX_OFFSET_DEVIATION_MINUTES


def _touch_inconsistent(s: TelemetrySnapshot) -> bool:
    points = s.max_touch_points or 0
    if s.touch_support:
        return points == 0
    return points > 0


def _in_range(value, lower, upper) -> bool:
    return value is not None and lower <= value <= upper


# Rules are grouped by component; a group that records anomalies adds its
# category to the reason list.
FINGERPRINT_RULES: List[Tuple[str, List[ScoringRule]]] = [
    ('Canvas fingerprint anomaly', [
        ScoringRule('canvas_missing', lambda s: not s.canvas_fingerprint, -15,
                    'Missing canvas fingerprint'),
        ScoringRule('canvas_short',
                    lambda s: bool(s.canvas_fingerprint) and len(s.canvas_fingerprint) < MIN_FINGERPRINT_LENGTH,
                    -10, 'Canvas fingerprint length abnormal'),
        ScoringRule('canvas_ok',
                    lambda s: bool(s.canvas_fingerprint) and len(s.canvas_fingerprint) >= MIN_FINGERPRINT_LENGTH,
                    10),
        ScoringRule('canvas_denylisted',
                    lambda s: s.canvas_fingerprint in AUTOMATED_CANVAS_FINGERPRINTS,
                    -20, 'Known automation canvas fingerprint'),
    ]),
    ('WebGL fingerprint anomaly', [
        ScoringRule('webgl_missing', lambda s: not _has_webgl(s), -15,
                    'Missing WebGL fingerprint'),
        ScoringRule('webgl_short',
                    lambda s: _has_webgl(s) and len(s.webgl_fingerprint) < MIN_FINGERPRINT_LENGTH,
                    -10, 'WebGL fingerprint length abnormal'),
        ScoringRule('webgl_ok',
                    lambda s: _has_webgl(s) and len(s.webgl_fingerprint) >= MIN_FINGERPRINT_LENGTH,
                    10),
        ScoringRule('webgl_vendor_denylisted',
                    lambda s: _webgl_details_present(s) and
                    any(v in s.webgl_vendor for v in AUTOMATED_WEBGL_VENDORS),
                    -15, lambda s: f'Suspicious WebGL vendor: {s.webgl_vendor}'),
        ScoringRule('webgl_renderer_denylisted',
                    lambda s: _webgl_details_present(s) and
                    any(r in s.webgl_renderer for r in AUTOMATED_WEBGL_RENDERERS),
                    -15, lambda s: f'Suspicious WebGL renderer: {s.webgl_renderer}'),
        ScoringRule('webgl_details_missing',
                    lambda s: _has_webgl(s) and not _webgl_details_present(s),
                    -10, 'Missing WebGL vendor or renderer'),
    ]),
    ('Audio fingerprint anomaly', [
        ScoringRule('audio_short',
                    lambda s: bool(s.audio_fingerprint) and len(s.audio_fingerprint) < MIN_AUDIO_FINGERPRINT_LENGTH,
                    -5, 'Audio fingerprint length abnormal'),
        ScoringRule('audio_ok',
                    lambda s: bool(s.audio_fingerprint) and len(s.audio_fingerprint) >= MIN_AUDIO_FINGERPRINT_LENGTH,
                    5),
        ScoringRule('audio_denylisted',
                    lambda s: s.audio_fingerprint in AUTOMATED_AUDIO_FINGERPRINTS,
                    -10, 'Known automation audio fingerprint'),
    ]),
    ('Font list anomaly', [
        ScoringRule('fonts_missing', lambda s: not s.fonts, -10, 'Missing font information'),
        ScoringRule('fonts_few', lambda s: bool(s.fonts) and len(s.fonts) < 5, -10,
                    'Abnormally few fonts'),
        ScoringRule('fonts_many', lambda s: bool(s.fonts) and len(s.fonts) >= 20, 10),
        ScoringRule('fonts_common', lambda s: bool(s.fonts) and _has_common_font(s), 5),
        ScoringRule('fonts_no_common', lambda s: bool(s.fonts) and not _has_common_font(s), -5,
                    'No common fonts present'),
    ]),
    ('Plugin list anomaly', [
        ScoringRule('plugins_missing', lambda s: s.plugins is None, -10, 'Missing plugin information'),
        ScoringRule('plugins_none', lambda s: s.plugins is not None and len(s.plugins) == 0, -10,
                    'No browser plugins'),
        ScoringRule('plugins_few', lambda s: s.plugins is not None and 0 < len(s.plugins) < 3, -5,
                    'Abnormally few plugins'),
        ScoringRule('plugins_ok', lambda s: s.plugins is not None and len(s.plugins) >= 3, 5),
    ]),
    ('Screen information anomaly', [
        ScoringRule('screen_malformed',
                    lambda s: bool(s.screen_resolution) and _screen(s) is None,
                    -10, 'Malformed screen resolution'),
        ScoringRule('screen_small',
                    lambda s: _screen(s) is not None and (_screen(s)[0] < 320 or _screen(s)[1] < 240),
                    -10, 'Abnormally small screen'),
        ScoringRule('screen_ok',
                    lambda s: _screen(s) is not None and _screen(s)[0] >= 320 and _screen(s)[1] >= 240,
                    5),
        ScoringRule('color_depth_missing',
                    lambda s: bool(s.screen_resolution) and s.color_depth is None,
                    0, 'Missing color depth'),
        ScoringRule('color_depth_low',
                    lambda s: bool(s.screen_resolution) and s.color_depth is not None and s.color_depth < 24,
                    -5, 'Abnormally low color depth'),
        ScoringRule('color_depth_ok',
                    lambda s: bool(s.screen_resolution) and s.color_depth is not None and s.color_depth >= 24,
                    5),
        ScoringRule('pixel_ratio_missing',
                    lambda s: bool(s.screen_resolution) and s.pixel_ratio is None,
                    0, 'Missing pixel ratio'),
        ScoringRule('pixel_ratio_abnormal',
                    lambda s: bool(s.screen_resolution) and s.pixel_ratio is not None
                    and not _in_range(s.pixel_ratio, 1, 5),
                    -5, 'Abnormal pixel ratio'),
        ScoringRule('pixel_ratio_ok',
                    lambda s: bool(s.screen_resolution) and _in_range(s.pixel_ratio, 1, 5),
                    5),
    ]),
    ('Hardware information anomaly', [
        ScoringRule('concurrency_missing',
                    lambda s: s.device_memory is not None and s.hardware_concurrency is None,
                    0, 'Missing hardware concurrency'),
        ScoringRule('concurrency_abnormal',
                    lambda s: s.hardware_concurrency is not None and not _in_range(s.hardware_concurrency, 2, 16),
                    -5, lambda s: ('Abnormally low hardware concurrency' if s.hardware_concurrency < 2
                                   else 'Abnormally high hardware concurrency')),
        ScoringRule('concurrency_ok', lambda s: _in_range(s.hardware_concurrency, 2, 16), 5),
        ScoringRule('memory_missing',
                    lambda s: s.hardware_concurrency is not None and s.device_memory is None,
                    0, 'Missing device memory'),
        ScoringRule('memory_abnormal',
                    lambda s: s.device_memory is not None and not _in_range(s.device_memory, 2, 32),
                    -5, lambda s: ('Abnormally low device memory' if s.device_memory < 2
                                   else 'Abnormally high device memory')),
        ScoringRule('memory_ok', lambda s: _in_range(s.device_memory, 2, 32), 5),
    ]),
    ('Timezone information anomaly', [
        ScoringRule('timezone_generic',
                    lambda s: bool(s.timezone) and _is_generic_timezone(s.timezone),
                    -5, 'Generic timezone'),
        ScoringRule('timezone_specific',
                    lambda s: bool(s.timezone) and not _is_generic_timezone(s.timezone),
                    5),
        ScoringRule('timezone_offset_missing',
                    lambda s: bool(s.timezone) and s.timezone_offset is None,
                    0, 'Missing timezone offset'),
        ScoringRule('timezone_offset_mismatch',
                    lambda s: bool(s.timezone) and _offset_mismatch(s),
                    -10, 'Timezone does not match offset'),
        ScoringRule('timezone_offset_ok',
                    lambda s: bool(s.timezone) and s.timezone_offset is not None and not _offset_mismatch(s),
                    5),
    ]),
    ('Touch support anomaly', [
        ScoringRule('touch_missing', lambda s: s.touch_support is None, 0,
                    'Missing touch support information'),
        ScoringRule('touch_inconsistent',
                    lambda s: s.touch_support is not None and _touch_inconsistent(s),
                    -5, 'Touch support inconsistent with max touch points'),
        ScoringRule('touch_consistent',
                    lambda s: s.touch_support is not None and not _touch_inconsistent(s),
                    5),
    ]),
]


class FingerprintAnalyzer:
    """
    Fingerprint Consistency Analyzer

    Starts from a base score of 50 and applies symmetric per-component
    deltas. Missing components are anomalies, never errors.
    """

    def __init__(self, rule_groups: Optional[List[Tuple[str, List[ScoringRule]]]] = None):
        self.rule_groups = rule_groups if rule_groups is not None else FINGERPRINT_RULES

    def analyze(self, snapshot: TelemetrySnapshot) -> FingerprintAnalysis:
        """
        Hash and score the fingerprint components of a snapshot.

        Args:
            snapshot: Telemetry snapshot

        Returns:
            FingerprintAnalysis with score in [0, 100]
        """
        components = fingerprint_components(snapshot)
        total = float(BASE_SCORE)
        anomalies: List[str] = []
        reasons: List[str] = []

        for category, rules in self.rule_groups:
            outcome = evaluate_rules(rules, snapshot)
            total += outcome.score
            if outcome.messages:
                anomalies.extend(outcome.messages)
                reasons.append(category)

        score = clamp_score(total)
        logger.debug("Fingerprint score %s with %d anomalies", score, len(anomalies))

        return FingerprintAnalysis(
            score=score,
            fingerprint=generate_fingerprint_hash(components),
            anomalies=anomalies,
            reasons=reasons,
            components=components,
        )
