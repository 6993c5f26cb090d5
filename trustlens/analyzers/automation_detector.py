# trustlens/analyzers/automation_detector.py
"""
Automation Signature Detector
Purpose: Detects browser automation (WebDriver, Selenium, Puppeteer, Playwright,
PhantomJS, Nightmare) from the one-time telemetry snapshot
Techniques: Tool-specific markers, runtime surface checks, user-agent
cross-parsing, environment plausibility
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..core.config import AUTOMATION_SCORE_THRESHOLD
from ..core.results import AutomationAnalysis
from ..core.rules import ScoringRule, evaluate_rules, clamp_score
from ..core.telemetry import TelemetrySnapshot, parse_screen_resolution
from ..utils.user_agent import classify_user_agent, platform_os_family, platform_matches_os

logger = logging.getLogger(__name__)

# navigator properties injected by WebDriver implementations
DRIVER_NAVIGATOR_PROPERTIES = {
    '__webdriver_evaluate',
    '__selenium_evaluate',
    '__webdriver_script_function',
    '__webdriver_script_func',
    '__webdriver_script_fn',
    '__fxdriver_evaluate',
    '__driver_unwrapped',
    '__webdriver_unwrapped',
    '__driver_evaluate',
    '__selenium_unwrapped',
    '__fxdriver_unwrapped',
    '_Selenium_IDE_Recorder',
    '_selenium',
    'calledSelenium',
    '_WEBDRIVER_ELEM_CACHE',
}

SELENIUM_WINDOW_PROPERTIES = {
    'SeleniumWebDriverRequest',
    '_selenium',
    'selenium',
    'Selenium',
    '_Selenium_IDE_Recorder',
    'callSelenium',
}

# ChromeDriver injects document keys like $cdc_asdjflasutopfhvcZLmcfl_
CHROMEDRIVER_DOCUMENT_PREFIXES = ('$cdc_', '$wdc_')

PLAYWRIGHT_WINDOW_PROPERTIES = {'__playwright', '__pwInitScripts', '__playwright__binding__'}
PHANTOMJS_WINDOW_PROPERTIES = {'callPhantom', '_phantom', 'phantom'}
NIGHTMARE_WINDOW_PROPERTIES = {'__nightmare', 'nightmare'}

# Default window sizes of headless browsers and driver grids
HEADLESS_SCREEN_SIZES = {
    (800, 600),
    (1024, 768),
    (1280, 800),
    (1366, 768),
    (1920, 1080),
}

GENERIC_TIMEZONES = {'UTC', 'GMT', 'Etc/UTC', 'Etc/GMT'}


@dataclass(frozen=True)
class AutomationContext:
    """Snapshot plus values derived once for the rule table"""
    snapshot: TelemetrySnapshot
    user_agent_text: str
    signature_browser: Optional[str]
    signature_os: Optional[str]
    platform_family: Optional[str]
    screen: Optional[Tuple[int, int]]

    @classmethod
    def build(cls, snapshot: TelemetrySnapshot) -> "AutomationContext":
        # Tool substrings may appear in either the header UA or the navigator UA
        agents = [ua for ua in (snapshot.user_agent, snapshot.reported_user_agent) if ua]
        signature_browser, signature_os = classify_user_agent(snapshot.user_agent)
        return cls(
            snapshot=snapshot,
            user_agent_text=' '.join(agents),
            signature_browser=signature_browser,
            signature_os=signature_os,
            platform_family=platform_os_family(snapshot.platform),
            screen=parse_screen_resolution(snapshot.screen_resolution),
        )

    @property
    def markers(self):
        return self.snapshot.automation_markers

    def has_window_property(self, names) -> bool:
        return bool(self.markers) and any(p in names for p in self.markers.window_properties)


# ============================================================================
# PREDICATES
# ============================================================================

def _webdriver_present(ctx: AutomationContext) -> bool:
    if ctx.snapshot.webdriver is True:
        return True
    return bool(ctx.markers) and any(
        p in DRIVER_NAVIGATOR_PROPERTIES for p in ctx.markers.navigator_properties)


def _chromedriver_marker(ctx: AutomationContext) -> bool:
    return bool(ctx.markers) and any(
        p.startswith(CHROMEDRIVER_DOCUMENT_PREFIXES) for p in ctx.markers.document_properties)


def _incomplete_chrome_object(ctx: AutomationContext) -> bool:
    markers = ctx.markers
    if not markers or markers.chrome_object_present is not True:
        return False
    return markers.chrome_app_present is not True or markers.chrome_runtime_present is not True


def _browser_parsers_disagree(ctx: AutomationContext) -> bool:
    parsed = ctx.snapshot.parsed_user_agent
    if not parsed or not parsed.browser_family or not ctx.signature_browser:
        return False
    return parsed.browser_family != ctx.signature_browser


def _os_parsers_disagree(ctx: AutomationContext) -> bool:
    parsed = ctx.snapshot.parsed_user_agent
    if not parsed or not parsed.os_family or not ctx.signature_os:
        return False
    return parsed.os_family != ctx.signature_os


def _platform_mismatch(ctx: AutomationContext) -> bool:
    parsed = ctx.snapshot.parsed_user_agent
    if not ctx.platform_family or not parsed or not parsed.os_family:
        return False
    return not platform_matches_os(ctx.platform_family, parsed.os_family)


def _primary_language(value: str) -> str:
    return value.split(',')[0].split(';')[0].strip().split('-')[0].lower()


def _accept_language_mismatch(ctx: AutomationContext) -> bool:
    header = ctx.snapshot.origin.header('accept-language')
    if not header or not ctx.snapshot.language:
        return False
    return _primary_language(header) != _primary_language(ctx.snapshot.language)


def _claims_browser(ctx: AutomationContext) -> bool:
    parsed = ctx.snapshot.parsed_user_agent
    return bool(parsed and parsed.browser_family and not parsed.is_bot)


def _missing_accept_language(ctx: AutomationContext) -> bool:
    return _claims_browser(ctx) and not ctx.snapshot.origin.header('accept-language')


def _user_agent_mismatch(ctx: AutomationContext) -> bool:
    header_ua = ctx.snapshot.user_agent
    reported_ua = ctx.snapshot.reported_user_agent
    return bool(header_ua and reported_ua) and header_ua != reported_ua


def _abnormal_screen(ctx: AutomationContext) -> bool:
    if ctx.screen is None:
        return False
    width, height = ctx.screen
    if (width, height) in HEADLESS_SCREEN_SIZES:
        return True
    if height == 0:
        return True
    ratio = width / height
    return ratio < 1 or ratio > 3 or width < 500 or height < 500


def _ua_contains(token: str, case_sensitive: bool = True):
    if case_sensitive:
        return lambda ctx: token in ctx.user_agent_text
    return lambda ctx: token.lower() in ctx.user_agent_text.lower()


AUTOMATION_RULES: List[ScoringRule] = [
    # Tool-specific markers
    ScoringRule('webdriver', _webdriver_present, 30,
                'WebDriver API detected', tool='WebDriver', definitive=True),
    ScoringRule('selenium_user_agent', _ua_contains('selenium', case_sensitive=False), 25,
                'User agent contains Selenium keyword', tool='Selenium'),
    ScoringRule('selenium_window_property',
                lambda ctx: ctx.has_window_property(SELENIUM_WINDOW_PROPERTIES), 20,
                'Selenium window property detected', tool='Selenium'),
    ScoringRule('chromedriver_document_marker', _chromedriver_marker, 25,
                'ChromeDriver document marker detected', tool='Selenium'),
    ScoringRule('headless_chrome_user_agent', _ua_contains('HeadlessChrome'), 30,
                'User agent contains HeadlessChrome', tool='Puppeteer'),
    ScoringRule('playwright',
                lambda ctx: ('Playwright' in ctx.user_agent_text
                             or ctx.has_window_property(PLAYWRIGHT_WINDOW_PROPERTIES)), 30,
                'Playwright marker detected', tool='Playwright'),
    ScoringRule('phantomjs',
                lambda ctx: ('PhantomJS' in ctx.user_agent_text
                             or ctx.has_window_property(PHANTOMJS_WINDOW_PROPERTIES)), 30,
                'PhantomJS marker detected', tool='PhantomJS'),
    ScoringRule('nightmare',
                lambda ctx: ctx.has_window_property(NIGHTMARE_WINDOW_PROPERTIES), 25,
                'Nightmare window property detected', tool='Nightmare'),

    # Runtime surface
    ScoringRule('empty_plugins',
                lambda ctx: ctx.snapshot.plugins is not None and len(ctx.snapshot.plugins) == 0, 10,
                'Browser plugin list is empty'),
    ScoringRule('empty_languages',
                lambda ctx: ctx.snapshot.languages is not None and len(ctx.snapshot.languages) == 0, 10,
                'Language list is empty'),
    ScoringRule('incomplete_chrome_object', _incomplete_chrome_object, 15,
                'Chrome object is incomplete'),

    # User-agent consistency
    ScoringRule('ua_browser_mismatch', _browser_parsers_disagree, 15,
                'User-agent parsers disagree on browser'),
    ScoringRule('ua_os_mismatch', _os_parsers_disagree, 15,
                'User-agent parsers disagree on operating system'),
    ScoringRule('platform_mismatch', _platform_mismatch, 20,
                'Platform inconsistent with user-agent operating system'),
    ScoringRule('accept_language_mismatch', _accept_language_mismatch, 10,
                'Accept-Language inconsistent with navigator language'),

    # Environment plausibility
    ScoringRule('generic_timezone',
                lambda ctx: ctx.snapshot.timezone in GENERIC_TIMEZONES, 10,
                'Generic timezone setting'),
    ScoringRule('low_hardware_concurrency',
                lambda ctx: (ctx.snapshot.hardware_concurrency is not None
                             and ctx.snapshot.hardware_concurrency <= 2), 10,
                'Low hardware concurrency'),
    ScoringRule('missing_accept_language', _missing_accept_language, 5,
                'Accept-Language header missing for a browser user agent'),
    ScoringRule('user_agent_mismatch', _user_agent_mismatch, 20,
                'Reported user agent differs from request header'),
    ScoringRule('abnormal_screen', _abnormal_screen, 10,
                'Abnormal screen size'),
]


class AutomationDetector:
    """
    Automation Signature Detector

    Every rule contributes a fixed additive delta. The snapshot is classified
    as automated when a definitive rule fires or the clamped total reaches
    the automation threshold.
    """

    UNKNOWN_TOOL = "Unknown Automation"

    def __init__(self,
                 rules: Optional[List[ScoringRule]] = None,
                 score_threshold: float = AUTOMATION_SCORE_THRESHOLD):
        self.rules = list(rules) if rules is not None else list(AUTOMATION_RULES)
        self.score_threshold = score_threshold

    def analyze(self, snapshot: TelemetrySnapshot) -> AutomationAnalysis:
        """
        Score a telemetry snapshot for automation signatures.

        Args:
            snapshot: Telemetry snapshot (any field may be absent)

        Returns:
            AutomationAnalysis with score in [0, 100] and detected tools
        """
        outcome = evaluate_rules(self.rules, AutomationContext.build(snapshot))

        score = clamp_score(outcome.score)
        tools = list(outcome.tools)
        is_automated = outcome.definitive or score >= self.score_threshold

        if is_automated and not tools:
            tools.append(self.UNKNOWN_TOOL)

        if is_automated:
            logger.debug("Automation detected (score=%s, tools=%s, rules=%s)",
                         score, tools, outcome.fired)

        return AutomationAnalysis(
            score=score,
            is_automated=is_automated,
            detected_tools=tools,
            reasons=outcome.messages,
            fired_rules=outcome.fired,
        )
