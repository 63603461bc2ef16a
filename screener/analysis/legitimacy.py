"""Legitimate-call detection.

Looks for signs that a real person with a real reason is calling:
conversational openers, work context, official entities, deliveries,
genuine bank verification, medical and school context.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .evidence import ClassificationEvidence, LegitimacyReason
from .keywords import (
    BANK_VERIFICATION_INDICATORS,
    CONVERSATION_INDICATORS,
    DELIVERY_INDICATORS,
    MEDICAL_CONTEXT,
    OFFICIAL_ENTITIES,
    SCHOOL_CONTEXT,
    WORK_INDICATORS,
    KeywordSet,
)

logger = logging.getLogger(__name__)


@dataclass
class LegitimacyAnalysis:
    """Result of legitimacy analysis."""
    is_legitimate: bool
    reason: Optional[LegitimacyReason]
    confidence: float
    indicators: list[str] = field(default_factory=list)


class LegitimacyClassifier:
    """Scores a transcript for signs of a genuine caller."""

    LEGITIMATE_THRESHOLD = 0.4

    def __init__(
        self,
        conversation: KeywordSet = CONVERSATION_INDICATORS,
        work: KeywordSet = WORK_INDICATORS,
        official: KeywordSet = OFFICIAL_ENTITIES,
        delivery: KeywordSet = DELIVERY_INDICATORS,
        bank_verification: KeywordSet = BANK_VERIFICATION_INDICATORS,
        medical: KeywordSet = MEDICAL_CONTEXT,
        school: KeywordSet = SCHOOL_CONTEXT,
    ):
        self.conversation = conversation
        self.work = work
        self.official = official
        self.delivery = delivery
        self.bank_verification = bank_verification
        self.medical = medical
        self.school = school

    def analyze(self, transcript: str) -> LegitimacyAnalysis:
        """
        Analyze a transcript for legitimacy indicators.

        Each indicator set adds its capped score. The reason is the first
        set to fire, except that two or more work matches claim it, and
        medical then school context always override what came before.

        Args:
            transcript: Full transcript text

        Returns:
            LegitimacyAnalysis; reason is only reported when legitimate
        """
        if not transcript or not transcript.strip():
            return LegitimacyAnalysis(False, None, 0.0)

        lower = transcript.lower()
        indicators: list[str] = []
        score = 0.0
        reason: Optional[LegitimacyReason] = None

        # 1. Normal human conversation
        points, found = self.conversation.score(lower)
        if points > 0:
            score += points
            reason = LegitimacyReason.HUMAN_CONVERSATION
            indicators.extend(found)

        # 2. Work context
        points, found = self.work.score(lower)
        if points > 0:
            score += points
            if reason is None or len(found) >= 2:
                reason = LegitimacyReason.WORK_RELATED
            indicators.extend(found)

        # 3-5. Official entities, deliveries, genuine bank checks
        for keyword_set, set_reason in (
            (self.official, LegitimacyReason.OFFICIAL_ENTITY),
            (self.delivery, LegitimacyReason.DELIVERY),
            (self.bank_verification, LegitimacyReason.OFFICIAL_ENTITY),
        ):
            points, found = keyword_set.score(lower)
            if points > 0:
                score += points
                if reason is None:
                    reason = set_reason
                indicators.extend(found)

        # Medical and school context override generic matches
        points, found = self.medical.score(lower)
        if points > 0:
            score += points
            reason = LegitimacyReason.MEDICAL
            indicators.append("medical_context")

        points, found = self.school.score(lower)
        if points > 0:
            score += points
            reason = LegitimacyReason.SCHOOL
            indicators.append("school_context")

        is_legitimate = score >= self.LEGITIMATE_THRESHOLD

        logger.debug(f"Legitimacy: is_legitimate={is_legitimate}, reason={reason}, score={score:.2f}")

        return LegitimacyAnalysis(
            is_legitimate=is_legitimate,
            reason=reason if is_legitimate else None,
            confidence=min(score, 1.0),
            indicators=indicators,
        )

    def classify(self, transcript: str) -> ClassificationEvidence:
        """Legitimacy analysis as classification evidence."""
        analysis = self.analyze(transcript)
        return ClassificationEvidence(
            positive=analysis.is_legitimate,
            confidence=analysis.confidence,
            reason=analysis.reason,
            matched_terms=tuple(analysis.indicators),
        )

    @staticmethod
    def contains_name(transcript: str, name: str) -> bool:
        """Case-insensitive containment of a single name."""
        if not name or not name.strip():
            return False
        return name.strip().lower() in transcript.lower()

    @staticmethod
    def contains_any_name(transcript: str, names: Iterable[str]) -> Optional[str]:
        """First name found in the transcript, if any."""
        lower = transcript.lower()
        for name in names:
            if name and name.strip() and name.strip().lower() in lower:
                return name
        return None
