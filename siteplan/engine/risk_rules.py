from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from siteplan.models.entities import Activity, ActivityPriority, RiskLevel


@dataclass(frozen=True)
class RiskAssessment:
    risk_level: RiskLevel
    quality_impact: str
    complexity: RiskLevel


LOW_RISK = RiskAssessment(RiskLevel.LOW, "Minimal quality impact expected", RiskLevel.LOW)


def _label(activity: Activity) -> str:
    """Text the rules match against: the structured kind when present, else the name."""
    return (activity.kind or activity.name).lower()


class RiskRule(ABC):
    """
    Abstract base class for fast-tracking risk rules.
    Extend this to classify overlapping of a predecessor/successor pair.
    """

    @abstractmethod
    def evaluate(self, predecessor: Activity, successor: Activity) -> Optional[RiskAssessment]:
        """
        Assess overlapping ``successor`` with ``predecessor``.
        Returns None when the rule does not apply.
        """
        pass


class KeywordPairRule(RiskRule):
    """Matches when the predecessor mentions one keyword and the successor another."""

    def __init__(self, predecessor_keyword: str, successor_keyword: str, assessment: RiskAssessment):
        self.predecessor_keyword = predecessor_keyword
        self.successor_keyword = successor_keyword
        self.assessment = assessment

    def evaluate(self, predecessor: Activity, successor: Activity) -> Optional[RiskAssessment]:
        if self.predecessor_keyword in _label(predecessor) and self.successor_keyword in _label(successor):
            return self.assessment
        return None


class RiskRuleTable:
    """
    Ordered rule table: the first rule that applies decides the base risk.
    Pairs involving a CRITICAL priority activity are escalated one level
    (low to medium, anything else to high).
    """

    def __init__(self, rules: Optional[List[RiskRule]] = None):
        self.rules: List[RiskRule] = list(rules or [])

    def register(self, rule: RiskRule) -> None:
        self.rules.append(rule)

    def assess(self, predecessor: Activity, successor: Activity) -> RiskAssessment:
        assessment = LOW_RISK
        for rule in self.rules:
            found = rule.evaluate(predecessor, successor)
            if found is not None:
                assessment = found
                break

        if ActivityPriority.CRITICAL in (predecessor.priority, successor.priority):
            escalated = RiskLevel.MEDIUM if assessment.risk_level is RiskLevel.LOW else RiskLevel.HIGH
            assessment = RiskAssessment(escalated, assessment.quality_impact, assessment.complexity)
        return assessment


HIGH_OVERLAP_RISK = RiskAssessment(
    RiskLevel.HIGH, "Significant rework risk - quality controls essential", RiskLevel.HIGH
)
MEDIUM_OVERLAP_RISK = RiskAssessment(
    RiskLevel.MEDIUM, "Coordination required - monitor quality checkpoints", RiskLevel.MEDIUM
)


def default_rule_table() -> RiskRuleTable:
    return RiskRuleTable([
        KeywordPairRule("concrete", "formwork", HIGH_OVERLAP_RISK),
        KeywordPairRule("foundation", "structure", HIGH_OVERLAP_RISK),
        KeywordPairRule("design", "construction", HIGH_OVERLAP_RISK),
        KeywordPairRule("excavation", "foundation", MEDIUM_OVERLAP_RISK),
        KeywordPairRule("structure", "finish", MEDIUM_OVERLAP_RISK),
    ])
