"""Spam classification by category.

Each category scores 0.2 per matched keyword; the best category wins
(earlier categories win ties). Generic sales phrases add 0.15 each on
top. A combined score of 0.4 or more is spam.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .evidence import ClassificationEvidence, SpamCategory
from .keywords import GENERIC_SPAM_PHRASES, SPAM_CATEGORY_KEYWORDS, KeywordSet

logger = logging.getLogger(__name__)


@dataclass
class SpamResult:
    """Result of spam classification."""
    is_spam: bool
    category: Optional[SpamCategory]
    confidence: float
    detected_keywords: list[str] = field(default_factory=list)


class SpamClassifier:
    """Classifies transcripts into spam categories."""

    SPAM_THRESHOLD = 0.4

    def __init__(
        self,
        category_keywords: Optional[Mapping[SpamCategory, KeywordSet]] = None,
        generic_phrases: KeywordSet = GENERIC_SPAM_PHRASES,
    ):
        """
        Initialize classifier.

        Args:
            category_keywords: Keyword sets replacing the built-in ones per category
            generic_phrases: Category-independent sales phrases
        """
        sets = dict(SPAM_CATEGORY_KEYWORDS)
        if category_keywords:
            sets.update(category_keywords)
        # Built-in category order is the tie-break order
        self.category_keywords = sets
        self.generic_phrases = generic_phrases

    def analyze(self, transcript: str) -> SpamResult:
        """
        Classify a transcript.

        Args:
            transcript: Full transcript text

        Returns:
            SpamResult; category is only set when is_spam
        """
        if not transcript or not transcript.strip():
            return SpamResult(False, None, 0.0)

        lower = transcript.lower()
        detected: list[str] = []
        best_category: Optional[SpamCategory] = None
        best_score = 0.0

        for category, keyword_set in self.category_keywords.items():
            category_score, matches = keyword_set.score(lower)
            if category_score > best_score:
                best_score = category_score
                best_category = category
                detected = list(matches)

        generic_score, phrases = self.generic_phrases.score(lower)
        detected.extend(phrases)

        total = min(best_score + generic_score, 1.0)
        is_spam = total >= self.SPAM_THRESHOLD

        if is_spam and best_category is None:
            best_category = SpamCategory.UNKNOWN_SPAM

        logger.debug(f"Spam: is_spam={is_spam}, category={best_category}, score={total:.2f}")

        return SpamResult(
            is_spam=is_spam,
            category=best_category if is_spam else None,
            confidence=total,
            detected_keywords=detected,
        )

    def classify(self, transcript: str) -> ClassificationEvidence:
        """Spam analysis as classification evidence."""
        result = self.analyze(transcript)
        return ClassificationEvidence(
            positive=result.is_spam,
            confidence=result.confidence,
            category=result.category,
            matched_terms=tuple(result.detected_keywords),
        )
