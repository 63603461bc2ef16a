"""Robot/IVR detection from transcript text.

A transcript is flagged as automated when any of these hold:
1. An IVR menu pattern matches ("press 1", "option 2", "main menu", ...)
2. At least one canned automated-message phrase is present
3. Robot keywords make up more than 15% of the words
4. More than 20 words with fewer than half of them unique (looped message)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .keywords import AUTOMATED_PHRASES, IVR_PATTERNS, ROBOT_KEYWORDS, KeywordSet

logger = logging.getLogger(__name__)

_TOKEN_STRIP = ".,;:!?¿¡\"'()[]"


@dataclass
class RobotResult:
    """Result of text-based robot detection."""
    is_robot: bool
    confidence: float
    patterns: list[str] = field(default_factory=list)  # "IVR: ..." / "Auto: ..." labels
    reasoning: str = ""


class TextPatternRobotDetector:
    """Detects automated/IVR calls from the accumulated transcript."""

    def __init__(
        self,
        ivr_patterns: Sequence[str] = IVR_PATTERNS,
        automated_phrases: KeywordSet = AUTOMATED_PHRASES,
        robot_keywords: KeywordSet = ROBOT_KEYWORDS,
        min_length: int = 10,
        keyword_density_threshold: float = 0.15,
        repetition_min_words: int = 20,
        repetition_ratio_threshold: float = 0.5,
    ):
        """
        Initialize detector.

        Args:
            ivr_patterns: Regular expressions for IVR menu phrasing
            automated_phrases: Canned automated-message phrases
            robot_keywords: Single-word tokens typical of automated menus
            min_length: Transcripts shorter than this are never robots
            keyword_density_threshold: Robot keyword ratio above which text is automated
            repetition_min_words: Word count needed before checking repetition
            repetition_ratio_threshold: Unique/total ratio below which text is looped
        """
        self.ivr_patterns = [re.compile(p, re.IGNORECASE) for p in ivr_patterns]
        self.automated_phrases = automated_phrases
        self.robot_keywords = frozenset(robot_keywords.keywords)
        self.min_length = min_length
        self.keyword_density_threshold = keyword_density_threshold
        self.repetition_min_words = repetition_min_words
        self.repetition_ratio_threshold = repetition_ratio_threshold

    @staticmethod
    def _tokens(lower: str) -> list[str]:
        words = (w.strip(_TOKEN_STRIP) for w in lower.split())
        return [w for w in words if w]

    def _ivr_match(self, lower: str) -> Optional[re.Match]:
        for pattern in self.ivr_patterns:
            match = pattern.search(lower)
            if match:
                return match
        return None

    def confidence(self, transcript: str) -> float:
        """
        Confidence that the transcript is automated (0.0 - 1.0).

        0.5 for an IVR pattern, 0.3 per canned phrase (at most 0.6),
        0.2 when at least three robot keywords appear.
        """
        if not transcript:
            return 0.0

        lower = transcript.lower()
        score = 0.0

        if self._ivr_match(lower):
            score += 0.5

        phrase_score, _ = self.automated_phrases.score(lower)
        score += min(0.6, phrase_score)

        keyword_count = sum(1 for w in self._tokens(lower) if w in self.robot_keywords)
        if keyword_count >= 3:
            score += 0.2

        return min(max(score, 0.0), 1.0)

    def detected_patterns(self, transcript: str) -> list[str]:
        """Labels for every IVR pattern and canned phrase present."""
        lower = transcript.lower()
        patterns = []
        for pattern in self.ivr_patterns:
            match = pattern.search(lower)
            if match:
                patterns.append(f"IVR: {match.group(0)}")
        for phrase in self.automated_phrases.matches(lower):
            patterns.append(f"Auto: {phrase}")
        return patterns

    def is_robot(self, transcript: str) -> tuple[bool, str]:
        """
        Decide whether a transcript comes from an automated system.

        Returns:
            Tuple of (is_robot, reasoning)
        """
        if not transcript or len(transcript) < self.min_length:
            return False, "Transcript too short"

        lower = transcript.lower()

        # 1. IVR menu phrasing
        match = self._ivr_match(lower)
        if match:
            return True, f"IVR pattern: '{match.group(0)}'"

        # 2. Canned automated messages
        phrases = self.automated_phrases.matches(lower)
        if phrases:
            return True, f"Automated message ({len(phrases)} phrases)"

        words = self._tokens(lower)
        if not words:
            return False, "No words"

        # 3. Robot keyword density
        keyword_count = sum(1 for w in words if w in self.robot_keywords)
        density = keyword_count / len(words)
        if density > self.keyword_density_threshold:
            return True, f"Robot keyword density {density:.0%}"

        # 4. Looped announcement
        if len(words) > self.repetition_min_words:
            ratio = len(set(words)) / len(words)
            if ratio < self.repetition_ratio_threshold:
                return True, f"Repetitive speech (unique ratio {ratio:.2f})"

        return False, "No robot indicators"

    def detect(self, transcript: str) -> RobotResult:
        """
        Run full robot detection on a transcript.

        Args:
            transcript: Full accumulated transcript

        Returns:
            RobotResult with confidence and matched pattern labels
        """
        is_robot, reasoning = self.is_robot(transcript)
        if not is_robot:
            return RobotResult(is_robot=False, confidence=0.0, reasoning=reasoning)

        confidence = self.confidence(transcript)
        patterns = self.detected_patterns(transcript)
        logger.debug(f"Robot detected ({confidence:.0%}): {reasoning}")

        return RobotResult(
            is_robot=True,
            confidence=confidence,
            patterns=patterns,
            reasoning=reasoning,
        )
