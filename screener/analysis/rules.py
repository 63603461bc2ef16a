"""Priority-ordered decision rules applied to each transcript update.

Rules are evaluated in a fixed order and the first one returning positive
evidence decides the call. Order matters: a spoken user name outranks a
family name, which outranks custom emergency keywords, the emergency
classifier and finally the legitimacy classifier.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .emergency import EmergencyClassifier
from .evidence import Classification, ClassificationEvidence, LegitimacyReason
from .legitimacy import LegitimacyClassifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleMatch:
    """A decisive rule outcome."""
    rule: str
    classification: Classification
    evidence: ClassificationEvidence


class Rule(ABC):
    """One step of the decision cascade."""

    name: str = "rule"
    classification: Classification = Classification.UNCERTAIN

    @abstractmethod
    def evaluate(self, transcript: str) -> Optional[ClassificationEvidence]:
        """Return positive evidence if this rule decides the call."""
        ...


class NameRule(Rule):
    """Exact, case-insensitive containment of a configured name."""

    def __init__(self, name: str, names: Iterable[str], reason: LegitimacyReason, confidence: float):
        self.name = name
        self.classification = Classification.LEGITIMATE
        self.names = tuple(n for n in names if n and n.strip())
        self.reason = reason
        self.confidence = confidence

    def evaluate(self, transcript: str) -> Optional[ClassificationEvidence]:
        found = LegitimacyClassifier.contains_any_name(transcript, self.names)
        if found is None:
            return None
        return ClassificationEvidence(
            positive=True,
            confidence=self.confidence,
            reason=self.reason,
            matched_terms=(found,),
        )


class CustomKeywordRule(Rule):
    """User-supplied emergency keywords."""

    name = "custom_keywords"
    classification = Classification.EMERGENCY

    def __init__(self, keywords: Iterable[str], confidence: float = 0.9):
        self.keywords = tuple(k.strip().lower() for k in keywords if k and k.strip())
        self.confidence = confidence

    def evaluate(self, transcript: str) -> Optional[ClassificationEvidence]:
        lower = transcript.lower()
        for keyword in self.keywords:
            if keyword in lower:
                return ClassificationEvidence(
                    positive=True,
                    confidence=self.confidence,
                    reason=LegitimacyReason.EMERGENCY_KEYWORDS,
                    matched_terms=(keyword,),
                )
        return None


class ClassifierRule(Rule):
    """Wraps a keyword classifier exposing classify(transcript)."""

    def __init__(self, name: str, classifier, classification: Classification):
        self.name = name
        self.classifier = classifier
        self.classification = classification

    def evaluate(self, transcript: str) -> Optional[ClassificationEvidence]:
        evidence = self.classifier.classify(transcript)
        return evidence if evidence.positive else None


def build_rules(
    user_name: str = "",
    family_names: Iterable[str] = (),
    custom_keywords: Iterable[str] = (),
    emergency: Optional[EmergencyClassifier] = None,
    legitimacy: Optional[LegitimacyClassifier] = None,
) -> tuple[Rule, ...]:
    """
    Build the decision cascade in priority order.

    Args:
        user_name: The user's display name (may be empty)
        family_names: Names of family members
        custom_keywords: User-defined emergency keywords
        emergency: Emergency classifier (defaults to built-in keywords)
        legitimacy: Legitimacy classifier (defaults to built-in keywords)

    Returns:
        Rules in evaluation order
    """
    return (
        NameRule("user_name", [user_name], LegitimacyReason.SAID_USER_NAME, 0.9),
        NameRule("family_name", family_names, LegitimacyReason.SAID_FAMILY_NAME, 0.85),
        CustomKeywordRule(custom_keywords, 0.9),
        ClassifierRule("emergency", emergency or EmergencyClassifier(), Classification.EMERGENCY),
        ClassifierRule("legitimacy", legitimacy or LegitimacyClassifier(), Classification.LEGITIMATE),
    )


def first_match(rules: Sequence[Rule], transcript: str) -> Optional[RuleMatch]:
    """
    Evaluate rules in order and return the first decisive match.

    A rule that raises counts as no evidence; later rules still run.
    """
    for rule in rules:
        try:
            evidence = rule.evaluate(transcript)
        except Exception as e:
            logger.warning(f"Rule {rule.name} failed, treating as no evidence: {e}")
            continue
        if evidence is not None and evidence.positive:
            return RuleMatch(rule=rule.name, classification=rule.classification, evidence=evidence)
    return None
