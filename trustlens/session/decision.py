# trustlens/session/decision.py
"""
Decision Aggregator

Fuses the four analysis records and session-level signals into one trust
score in [0, 100]. Sessions scoring at or above the human threshold are
classified as human.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..analyzers.behavior_analyzer import timing_variation_coefficient, has_click_without_prior_movement
from ..core.config import VerificationSettings
from ..core.results import VerificationResult
from ..core.rules import ScoringRule, evaluate_rules, clamp_score
from .session_store import Session

logger = logging.getLogger(__name__)

BASE_SCORE = 50

# Header names or values containing any of these suggest a driven browser
AUTOMATION_HEADER_TOKENS = (
    'x-selenium',
    'x-selenium-ide-recorder',
    'x-requested-with',
    'selenium',
    'driver',
    'webdriver',
    'puppeteer',
    'playwright',
    'headless',
    'cypress',
)

FINGERPRINT_ANOMALY_LIMIT = 3
NETWORK_REASON_LIMIT = 2


def summarize(items: List[str], limit: int) -> str:
    """Join the first `limit` items, marking truncation with "(+more)" """
    text = ', '.join(items[:limit])
    if len(items) > limit:
        text += ' (+more)'
    return text


def find_suspicious_headers(headers: Optional[Mapping[str, Any]]) -> List[str]:
    """Header names whose name or string value matches the automation vocabulary"""
    suspicious = []
    for name, value in (headers or {}).items():
        name_lower = str(name).lower()
        if any(token in name_lower for token in AUTOMATION_HEADER_TOKENS):
            suspicious.append(name)
            continue
        if isinstance(value, str) and any(token in value.lower() for token in AUTOMATION_HEADER_TOKENS):
            suspicious.append(name)
    return suspicious


@dataclass
class DecisionContext:
    """Session-level signals evaluated by the aggregator rule table"""
    session: Session
    age_ms: float
    suspicious_headers: List[str]
    timing_cv: Optional[float]
    cluster_penalty: float

    @property
    def event_count(self) -> int:
        return len(self.session.events)


def _incomplete_user_agent(ctx: DecisionContext) -> bool:
    snapshot = ctx.session.snapshot
    parsed = snapshot.parsed_user_agent
    return not snapshot.user_agent or parsed is None or not parsed.is_complete


def _cluster_anomaly(ctx: DecisionContext) -> bool:
    behavior = ctx.session.behavior
    return (ctx.cluster_penalty > 0 and behavior is not None and
            behavior.cluster_analysis.anomaly_detected)


SESSION_RULES: List[ScoringRule] = [
    ScoringRule('session_too_short', lambda c: c.age_ms < 1000, -30,
                'Session age too short'),
    ScoringRule('event_burst', lambda c: 1000 <= c.age_ms < 3000 and c.event_count > 10, -20,
                'Too many events in a short time'),
    ScoringRule('no_events', lambda c: c.event_count == 0, -30,
                'No interaction events'),
    ScoringRule('missing_device_info',
                lambda c: not c.session.snapshot.screen_resolution and not c.session.snapshot.timezone,
                -15, 'Missing key device information'),
    ScoringRule('incomplete_user_agent', _incomplete_user_agent, -15,
                'Incomplete user agent information'),
    ScoringRule('suspicious_headers', lambda c: bool(c.suspicious_headers), -15,
                lambda c: f"Suspicious request headers: {', '.join(c.suspicious_headers)}"),
    ScoringRule('regular_event_timing',
                lambda c: c.timing_cv is not None and c.timing_cv < 0.1, -20,
                'Event timing is too regular'),
    ScoringRule('click_without_movement',
                lambda c: has_click_without_prior_movement(c.session.events), -20,
                'Click without prior mouse movement'),
]


class DecisionAggregator:
    """
    Decision Aggregator

    Analyzer contributions: automation -40/+20, behavior +30/-30 (or -20
    when there was too little interaction to analyze), fingerprint and
    network scores centred on 50 and halved. Session-level signals come
    from SESSION_RULES.
    """

    def __init__(self, settings: Optional[VerificationSettings] = None,
                 rules: Optional[List[ScoringRule]] = None):
        self.settings = settings or VerificationSettings()
        self.rules = list(rules) if rules is not None else list(SESSION_RULES)

    def aggregate(self, session: Session, now: float,
                  request_headers: Optional[Mapping[str, Any]] = None) -> VerificationResult:
        """
        Compute the verdict for a session.

        Args:
            session: Session with cached analyses and its full event log
            now: Current time in ms
            request_headers: Headers of the evaluation request (defaults to
                the snapshot's request headers)

        Returns:
            VerificationResult
        """
        score = 0.0
        reasons: List[str] = []

        automation = session.automation
        if automation is not None:
            if automation.is_automated:
                score -= 40
                reasons.append(f"Automation tools detected: {', '.join(automation.detected_tools)}")
            else:
                score += 20

        behavior = session.behavior
        if behavior is not None:
            score += 30 if behavior.is_human else -30
            if not behavior.is_human:
                reasons.append(f"Behavior analysis: {', '.join(behavior.reasons)}")
        elif len(session.events) < 5:
            score -= 20
            reasons.append('Too few interaction events')

        fingerprint = session.fingerprint
        if fingerprint is not None:
            score += (fingerprint.score - 50) / 2
            if fingerprint.anomalies:
                reasons.append(f"Fingerprint anomalies: "
                               f"{summarize(fingerprint.anomalies, FINGERPRINT_ANOMALY_LIMIT)}")

        network = session.network
        if network is not None:
            score += (network.score - 50) / 2
            if network.reasons:
                reasons.append(f"Network analysis: {summarize(network.reasons, NETWORK_REASON_LIMIT)}")

        if request_headers is None:
            request_headers = session.snapshot.headers

        context = DecisionContext(
            session=session,
            age_ms=session.age(now),
            suspicious_headers=find_suspicious_headers(request_headers),
            timing_cv=timing_variation_coefficient(session.events),
            cluster_penalty=self.settings.cluster_anomaly_penalty,
        )
        outcome = evaluate_rules(self.rules, context)
        score += outcome.score
        reasons.extend(outcome.messages)

        if _cluster_anomaly(context):
            score -= self.settings.cluster_anomaly_penalty
            reasons.append('Outlier event transitions detected')

        final_score = clamp_score(score + BASE_SCORE)
        is_human = final_score >= self.settings.human_score_threshold

        logger.debug("Session %s scored %s (rules=%s)", session.session_id, final_score, outcome.fired)

        return VerificationResult(
            is_human=is_human,
            score=final_score,
            reasons=reasons,
            details=self.build_details(session),
        )

    @staticmethod
    def build_details(session: Session) -> Dict[str, Dict[str, Any]]:
        """Per-analyzer detail entries for the verdict"""
        details: Dict[str, Dict[str, Any]] = {}

        if session.automation is not None:
            details['automation'] = {
                'score': 100 - session.automation.score,  # human-likeness
                'isAutomated': session.automation.is_automated,
                'detectedTools': list(session.automation.detected_tools),
                'reasons': list(session.automation.reasons),
            }
        if session.behavior is not None:
            details['behavior'] = session.behavior.to_dict()
        if session.fingerprint is not None:
            details['fingerprint'] = session.fingerprint.to_dict()
        if session.network is not None:
            details['network'] = session.network.to_dict()

        return details

    def rejected_verdict(self, session: Session, reason: str) -> VerificationResult:
        """Verdict for sessions rejected before aggregation"""
        return VerificationResult(
            is_human=False,
            score=0,
            reasons=[reason],
            details=self.build_details(session),
        )
