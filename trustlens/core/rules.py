# trustlens/core/rules.py
"""
Declarative Scoring Rules

Each analyzer expresses its checks as a table of ScoringRule entries
(name, predicate, delta, message) evaluated uniformly by evaluate_rules.
Deltas are additive and independent; clamping is left to the caller so
that base scores can be applied first.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Union

# A message is either fixed text or built from the evaluation context
Message = Union[str, Callable[[Any], str], None]


@dataclass(frozen=True)
class ScoringRule:
    """
    A single additive check.

    Attributes:
        name: Stable identifier used in metrics and tests
        predicate: Callable receiving the analyzer context, True when the rule fires
        delta: Score contribution when the rule fires
        message: Reason/anomaly text recorded when the rule fires (None records nothing)
        tool: Automation tool named by this rule, if any
        definitive: Firing alone marks the subject as automated
    """
    name: str
    predicate: Callable[[Any], bool]
    delta: float
    message: Message = None
    tool: Optional[str] = None
    definitive: bool = False

    def render_message(self, context: Any) -> Optional[str]:
        if callable(self.message):
            return self.message(context)
        return self.message


@dataclass
class RuleOutcome:
    """Accumulated result of evaluating a rule table"""
    score: float = 0.0
    fired: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    tools: List[str] = field(default_factory=list)
    definitive: bool = False


def evaluate_rules(rules: Sequence[ScoringRule], context: Any) -> RuleOutcome:
    """
    Evaluate every rule against the context and sum the deltas.

    Args:
        rules: Rule table, evaluated in order
        context: Object handed to each predicate and message builder

    Returns:
        RuleOutcome with the unclamped total, fired rule names, messages and tools
    """
    outcome = RuleOutcome()

    for rule in rules:
        if not rule.predicate(context):
            continue

        outcome.score += rule.delta
        outcome.fired.append(rule.name)

        message = rule.render_message(context)
        if message:
            outcome.messages.append(message)

        # Tools are listed once, in first-detection order
        if rule.tool and rule.tool not in outcome.tools:
            outcome.tools.append(rule.tool)

        if rule.definitive:
            outcome.definitive = True

    return outcome


def clamp_score(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    """Bound a score to [lower, upper]"""
    return max(lower, min(upper, value))
