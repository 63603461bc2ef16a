"""Emergency keyword classification.

Finds urgent calls that must reach the user even from unknown numbers.
Keyword sets are checked in severity order (medical, danger, family,
work); the first set with a match names the emergency type. Urgency is
the sum of each set's capped weighted match count.
"""

import logging
from typing import Mapping, Optional

from .evidence import ClassificationEvidence, EmergencyType
from .keywords import EMERGENCY_KEYWORDS, KeywordSet

logger = logging.getLogger(__name__)


class EmergencyClassifier:
    """Scores a transcript for emergency language."""

    def __init__(
        self,
        keyword_sets: Optional[Mapping[EmergencyType, KeywordSet]] = None,
        min_length: int = 5,
    ):
        """
        Initialize classifier.

        Args:
            keyword_sets: Keyword set per emergency type (defaults to built-ins)
            min_length: Transcripts shorter than this carry no evidence
        """
        sets = dict(EMERGENCY_KEYWORDS)
        if keyword_sets:
            sets.update(keyword_sets)
        # Evaluation order is severity order regardless of mapping order
        self.keyword_sets = [(t, sets[t]) for t in EmergencyType if t in sets]
        self.min_length = min_length

    def detected_keywords(self, transcript: str) -> list[str]:
        """All emergency keywords present, in severity order."""
        lower = transcript.lower()
        found = []
        for _, keyword_set in self.keyword_sets:
            for keyword in keyword_set.matches(lower):
                if keyword not in found:
                    found.append(keyword)
        return found

    def has_emergency_keywords(self, transcript: str) -> bool:
        if not transcript or len(transcript) < self.min_length:
            return False
        return bool(self.detected_keywords(transcript))

    def urgency_level(self, transcript: str) -> float:
        """Urgency score (0.0 - 1.0)."""
        if not transcript:
            return 0.0

        lower = transcript.lower()
        score = sum(keyword_set.score(lower)[0] for _, keyword_set in self.keyword_sets)
        return min(max(score, 0.0), 1.0)

    def emergency_type(self, transcript: str) -> Optional[EmergencyType]:
        """Most severe emergency type with at least one match."""
        if not transcript:
            return None

        lower = transcript.lower()
        for emergency_type, keyword_set in self.keyword_sets:
            if keyword_set.matches(lower):
                return emergency_type
        return None

    def alert_message(self, transcript: str) -> str:
        """Short user-facing alert text for a detected emergency."""
        emergency_type = self.emergency_type(transcript)
        urgency = self.urgency_level(transcript)
        description = emergency_type.description if emergency_type else "unknown"

        if urgency >= 0.8:
            return f"CRITICAL EMERGENCY: {description}"
        if urgency >= 0.5:
            return f"URGENT CALL: {description}"
        return f"Possible important call: {', '.join(self.detected_keywords(transcript))}"

    def classify(self, transcript: str) -> ClassificationEvidence:
        """
        Classify a transcript.

        Args:
            transcript: Full transcript text

        Returns:
            Evidence with reason set to the EmergencyType, confidence the
            urgency level; negative when no emergency keyword is present
        """
        if not self.has_emergency_keywords(transcript):
            return ClassificationEvidence.none()

        emergency_type = self.emergency_type(transcript)
        urgency = self.urgency_level(transcript)
        keywords = self.detected_keywords(transcript)

        logger.debug(f"Emergency {emergency_type.value} ({urgency:.0%}): {', '.join(keywords)}")

        return ClassificationEvidence(
            positive=True,
            confidence=urgency,
            reason=emergency_type,
            matched_terms=tuple(keywords),
        )
