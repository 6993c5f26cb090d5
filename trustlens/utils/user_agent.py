# trustlens/utils/user_agent.py
"""
User-Agent parsing for TrustLens

Two independent parsers are provided so the automation detector can compare
them: the `user_agents` library (ua-parser regex database) and a compact
signature table matched in order. Spoofed or hand-assembled user agents
frequently parse differently under the two.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple, List

from user_agents import parse as parse_ua

# Families reported by ua-parser that mean "could not identify"
UNKNOWN_FAMILIES = {'', 'Other', 'Generic Smartphone', 'Generic Feature Phone'}

# Browser signatures, order matters (Edge/Opera/Samsung embed "Chrome/")
BROWSER_SIGNATURES: List[Tuple[str, re.Pattern]] = [
    ('Edge', re.compile(r'Edg(?:e|A|iOS)?/')),
    ('Opera', re.compile(r'OPR/|Opera[/ ]')),
    ('Samsung Internet', re.compile(r'SamsungBrowser/')),
    ('Firefox', re.compile(r'Firefox/|FxiOS/')),
    ('Chrome', re.compile(r'HeadlessChrome/|Chrome/|CriOS/|Chromium/')),
    ('Safari', re.compile(r'Version/[\d.]+.*Safari/')),
    ('Internet Explorer', re.compile(r'MSIE |Trident/')),
]

# Operating system signatures, mobile platforms first
OS_SIGNATURES: List[Tuple[str, re.Pattern]] = [
    ('iOS', re.compile(r'iPhone|iPad|iPod')),
    ('Android', re.compile(r'Android')),
    ('Chrome OS', re.compile(r'CrOS')),
    ('Windows', re.compile(r'Windows')),
    ('macOS', re.compile(r'Mac OS X|Macintosh')),
    ('Linux', re.compile(r'Linux|X11')),
]

# ua-parser family -> canonical family
BROWSER_ALIASES = {
    'Chrome Mobile': 'Chrome',
    'Chrome Mobile iOS': 'Chrome',
    'Chrome Mobile WebView': 'Chrome',
    'HeadlessChrome': 'Chrome',
    'Chromium': 'Chrome',
    'Firefox Mobile': 'Firefox',
    'Firefox iOS': 'Firefox',
    'Mobile Safari': 'Safari',
    'Mobile Safari UI/WKWebView': 'Safari',
    'Edge Mobile': 'Edge',
    'Opera Mobile': 'Opera',
    'IE': 'Internet Explorer',
    'IE Mobile': 'Internet Explorer',
}

OS_ALIASES = {
    'Mac OS X': 'macOS',
    'Mac OS': 'macOS',
    'Ubuntu': 'Linux',
    'Debian': 'Linux',
    'Fedora': 'Linux',
    'Red Hat': 'Linux',
    'Gentoo': 'Linux',
    'Windows Phone': 'Windows',
}

# Operating systems the navigator.platform "Linux ..." string is compatible with
LINUX_FAMILY = {'Linux', 'Android', 'Chrome OS'}


@dataclass(frozen=True)
class ParsedUserAgent:
    """Structured view of a user-agent string"""
    raw: str
    browser_family: Optional[str] = None
    browser_version: Optional[str] = None
    os_family: Optional[str] = None
    os_version: Optional[str] = None
    device_family: Optional[str] = None
    is_mobile: bool = False
    is_bot: bool = False

    @property
    def is_complete(self) -> bool:
        """Both browser and OS were identified"""
        return bool(self.browser_family) and bool(self.os_family)

    def to_dict(self) -> dict:
        return {
            'browser': self.browser_family,
            'browser_version': self.browser_version,
            'os': self.os_family,
            'os_version': self.os_version,
            'device': self.device_family,
            'is_mobile': self.is_mobile,
            'is_bot': self.is_bot,
        }


def normalize_browser_family(family: Optional[str]) -> Optional[str]:
    if not family or family in UNKNOWN_FAMILIES:
        return None
    return BROWSER_ALIASES.get(family, family)


def normalize_os_family(family: Optional[str]) -> Optional[str]:
    if not family or family in UNKNOWN_FAMILIES:
        return None
    if family.startswith('Windows'):
        return 'Windows'
    return OS_ALIASES.get(family, family)


def parse_user_agent(user_agent: Optional[str]) -> Optional[ParsedUserAgent]:
    """
    Parse a user-agent string with the ua-parser database.

    Args:
        user_agent: Raw User-Agent header value

    Returns:
        ParsedUserAgent, or None when no user agent was supplied
    """
    if not user_agent:
        return None

    parsed = parse_ua(user_agent)

    # Versions come back as strings like "120.0.6099"
    browser_version = parsed.browser.version_string or None
    os_version = parsed.os.version_string or None
    device_family = parsed.device.family
    if device_family in UNKNOWN_FAMILIES:
        device_family = None

    return ParsedUserAgent(
        raw=user_agent,
        browser_family=normalize_browser_family(parsed.browser.family),
        browser_version=browser_version,
        os_family=normalize_os_family(parsed.os.family),
        os_version=os_version,
        device_family=device_family,
        is_mobile=bool(parsed.is_mobile),
        is_bot=bool(parsed.is_bot),
    )


def classify_user_agent(user_agent: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Classify browser and OS family from the signature tables.

    Returns:
        (browser_family, os_family); either may be None when nothing matched
    """
    if not user_agent:
        return None, None

    browser = next((name for name, pattern in BROWSER_SIGNATURES
                    if pattern.search(user_agent)), None)
    os_family = next((name for name, pattern in OS_SIGNATURES
                      if pattern.search(user_agent)), None)
    return browser, os_family


def platform_os_family(platform: Optional[str]) -> Optional[str]:
    """Map navigator.platform to an OS family"""
    if not platform:
        return None

    platform = platform.lower()
    if 'win' in platform:
        return 'Windows'
    if 'mac' in platform:
        return 'macOS'
    if 'android' in platform:
        return 'Android'
    if 'iphone' in platform or 'ipad' in platform or 'ipod' in platform:
        return 'iOS'
    if 'linux' in platform or 'x11' in platform or 'cros' in platform:
        return 'Linux'
    return None


def platform_matches_os(platform_family: str, os_family: str) -> bool:
    """Whether a navigator.platform family is plausible for a parsed OS family"""
    if platform_family == os_family:
        return True
    return platform_family == 'Linux' and os_family in LINUX_FAMILY
