"""Call analysis session orchestration.

Drives one screening session per answered call: capture a chunk, look
for autodialer tones, transcribe, then run the text detectors in fixed
priority order until something decisive is found or the time budget
runs out.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ..analysis.beep import FrequencyBeepDetector
from ..analysis.emergency import EmergencyClassifier
from ..analysis.evidence import (
    Classification,
    ClassificationEvidence,
    EmergencyType,
    LegitimacyReason,
    Reason,
    SpamCategory,
)
from ..analysis.legitimacy import LegitimacyClassifier
from ..analysis.robot import TextPatternRobotDetector
from ..analysis.rules import build_rules, first_match
from ..analysis.spam import SpamClassifier
from .audio import AudioChunk
from .config import SessionConfig
from .errors import CaptureError, SessionActiveError
from .provider import AudioChunkSource, TranscriptionEngine

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Orchestrator lifecycle."""
    IDLE = "idle"
    RUNNING = "running"
    FINALIZING = "finalizing"


class TranscriptAccumulator:
    """Append-only transcript for one session."""

    def __init__(self):
        self._fragments: list[str] = []

    def append(self, fragment: Optional[str]) -> bool:
        """Add a fragment. Blank fragments are ignored; returns True if added."""
        if not fragment or not fragment.strip():
            return False
        self._fragments.append(fragment.strip())
        return True

    @property
    def fragments(self) -> tuple[str, ...]:
        return tuple(self._fragments)

    @property
    def text(self) -> str:
        return " ".join(self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)


@dataclass
class AnalysisSession:
    """Mutable state of the session being analyzed."""
    phone_number: str
    start_time: float
    budget_ms: int
    chunk_interval_ms: int
    transcript: TranscriptAccumulator = field(default_factory=TranscriptAccumulator)
    best_spam_evidence: Optional[ClassificationEvidence] = None
    decision: Optional["Decision"] = None
    chunk_count: int = 0


@dataclass(frozen=True)
class Decision:
    """Final outcome of a screening session."""
    classification: Classification
    confidence: float
    category: Optional[SpamCategory] = None
    reason: Optional[Reason] = None
    transcript: str = ""
    matched_terms: tuple[str, ...] = field(default_factory=tuple)
    elapsed_ms: int = 0
    phone_number: str = ""

    def __post_init__(self):
        object.__setattr__(self, "confidence", min(max(float(self.confidence), 0.0), 1.0))
        object.__setattr__(self, "matched_terms", tuple(self.matched_terms))

    @property
    def should_alert_user(self) -> bool:
        return self.classification.should_alert_user

    @property
    def should_hang_up(self) -> bool:
        return self.classification.should_hang_up

    @classmethod
    def from_evidence(
        cls,
        classification: Classification,
        evidence: ClassificationEvidence,
        session: AnalysisSession,
        elapsed_ms: int,
    ) -> "Decision":
        return cls(
            classification=classification,
            confidence=evidence.confidence,
            category=evidence.category,
            reason=evidence.reason,
            transcript=session.transcript.text,
            matched_terms=evidence.matched_terms,
            elapsed_ms=elapsed_ms,
            phone_number=session.phone_number,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        if isinstance(self.reason, EmergencyType):
            reason_type = "emergency"
        elif isinstance(self.reason, LegitimacyReason):
            reason_type = "legitimacy"
        else:
            reason_type = None

        return {
            "phone_number": self.phone_number,
            "classification": self.classification.value,
            "category": self.category.value if self.category else None,
            "reason": self.reason.value if self.reason else None,
            "reason_type": reason_type,
            "confidence": self.confidence,
            "transcript": self.transcript,
            "matched_terms": list(self.matched_terms),
            "elapsed_ms": self.elapsed_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Decision":
        """Create from dictionary."""
        reason = None
        if data.get("reason"):
            if data.get("reason_type") == "emergency":
                reason = EmergencyType(data["reason"])
            else:
                reason = LegitimacyReason(data["reason"])

        return cls(
            classification=Classification(data["classification"]),
            confidence=data.get("confidence", 0.0),
            category=SpamCategory(data["category"]) if data.get("category") else None,
            reason=reason,
            transcript=data.get("transcript", ""),
            matched_terms=tuple(data.get("matched_terms", ())),
            elapsed_ms=data.get("elapsed_ms", 0),
            phone_number=data.get("phone_number", ""),
        )


DecisionCallback = Callable[[Decision], None]


class AnalysisOrchestrator:
    """Runs screening sessions, one at a time.

    Owns the detectors and the transcription engine. A fresh audio
    source is obtained from source_factory for every session; it is
    stopped and the engine reset on every exit path.
    """

    BEEP_CONFIDENCE = 0.95
    SPAM_CHUNK_THRESHOLD = 0.75  # Per-chunk spam evidence worth keeping
    SPAM_FINAL_THRESHOLD = 0.6  # Re-scored transcript at finalization

    def __init__(
        self,
        source_factory: Callable[[], AudioChunkSource],
        engine: TranscriptionEngine,
        beep_detector: Optional[FrequencyBeepDetector] = None,
        robot_detector: Optional[TextPatternRobotDetector] = None,
        emergency_classifier: Optional[EmergencyClassifier] = None,
        legitimacy_classifier: Optional[LegitimacyClassifier] = None,
        spam_classifier: Optional[SpamClassifier] = None,
        pause_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize orchestrator.

        Args:
            source_factory: Returns the audio source for a new session
            engine: Speech-to-text engine, initialized before sessions start
            beep_detector: Autodialer tone detector
            robot_detector: Transcript robot/IVR detector
            emergency_classifier: Emergency keyword classifier
            legitimacy_classifier: Legitimate-caller classifier
            spam_classifier: Spam category classifier
            pause_s: Pause between chunks
            clock: Monotonic clock in seconds
        """
        self.source_factory = source_factory
        self.engine = engine
        self.beep_detector = beep_detector or FrequencyBeepDetector()
        self.robot_detector = robot_detector or TextPatternRobotDetector()
        self.emergency_classifier = emergency_classifier or EmergencyClassifier()
        self.legitimacy_classifier = legitimacy_classifier or LegitimacyClassifier()
        self.spam_classifier = spam_classifier or SpamClassifier()
        self.pause_s = pause_s
        self.clock = clock

        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._session: Optional[AnalysisSession] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[AnalysisSession]:
        """The session being analyzed, if any."""
        return self._session

    @property
    def is_running(self) -> bool:
        return self._state != SessionState.IDLE

    def start(
        self,
        phone_number: str,
        config: Optional[SessionConfig] = None,
        on_decision: Optional[DecisionCallback] = None,
    ) -> "Future[Decision]":
        """
        Start screening a call in a background thread.

        Args:
            phone_number: Caller's number, used for logging and the Decision
            config: Session settings (defaults apply when None)
            on_decision: Called once with the Decision

        Returns:
            Future resolved with the Decision exactly once

        Raises:
            SessionActiveError: If a session is already running
        """
        config = config or SessionConfig()
        session = self._claim(phone_number, config)
        future: "Future[Decision]" = Future()
        future.set_running_or_notify_cancel()

        self._thread = threading.Thread(
            target=self._execute,
            args=(session, config, future, on_decision),
            name=f"screener-{phone_number}",
            daemon=True,
        )
        self._thread.start()
        return future

    def run(self, phone_number: str, config: Optional[SessionConfig] = None) -> Decision:
        """
        Screen a call in the calling thread.

        Raises:
            SessionActiveError: If a session is already running
        """
        config = config or SessionConfig()
        session = self._claim(phone_number, config)
        future: "Future[Decision]" = Future()
        future.set_running_or_notify_cancel()
        self._execute(session, config, future, None)
        return future.result()

    def stop(self) -> bool:
        """
        Request cancellation of the running session.

        Safe to call from any thread. The session finalizes with the
        evidence gathered so far.

        Returns:
            True if a running session was signaled
        """
        with self._lock:
            if self._state == SessionState.IDLE:
                return False
            session = self._session
            self._stop_event.set()

        logger.info(f"[{session.phone_number}] Stop requested")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for a background session thread to finish."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _claim(self, phone_number: str, config: SessionConfig) -> AnalysisSession:
        with self._lock:
            if self._state != SessionState.IDLE:
                raise SessionActiveError(
                    f"Cannot start {phone_number}: session for {self._session.phone_number} is running"
                )
            self._stop_event.clear()
            self._session = AnalysisSession(
                phone_number=phone_number,
                start_time=self.clock(),
                budget_ms=config.budget_ms,
                chunk_interval_ms=config.chunk_interval_ms,
            )
            self._state = SessionState.RUNNING

        logger.info(
            f"[{phone_number}] Session started "
            f"(budget {config.budget_ms}ms, chunks {config.chunk_interval_ms}ms)"
        )
        return self._session

    def _release(self, session: AnalysisSession):
        with self._lock:
            self._state = SessionState.IDLE
            self._session = None
        logger.debug(f"[{session.phone_number}] Session closed")

    def _execute(
        self,
        session: AnalysisSession,
        config: SessionConfig,
        future: "Future[Decision]",
        on_decision: Optional[DecisionCallback],
    ):
        try:
            decision = self._analyze(session, config)
        except Exception:
            logger.exception(f"[{session.phone_number}] Analysis failed, alerting user")
            decision = self._uncertain(session)

        session.decision = decision
        self._release(session)

        logger.info(
            f"[{session.phone_number}] Decision: {decision.classification.value} "
            f"({decision.confidence:.0%}) after {decision.elapsed_ms}ms"
        )

        future.set_result(decision)
        if on_decision is not None:
            try:
                on_decision(decision)
            except Exception:
                logger.exception(f"[{session.phone_number}] Decision callback failed")

    def _elapsed_ms(self, session: AnalysisSession) -> int:
        return int((self.clock() - session.start_time) * 1000)

    def _stopped(self) -> bool:
        return self._stop_event.is_set()

    def _analyze(self, session: AnalysisSession, config: SessionConfig) -> Decision:
        rules = build_rules(
            user_name=config.user_name,
            family_names=config.family_names,
            custom_keywords=config.custom_keywords,
            emergency=self.emergency_classifier,
            legitimacy=self.legitimacy_classifier,
        )
        number = session.phone_number

        source = None
        try:
            try:
                source = self.source_factory()
                source.start()
            except CaptureError as e:
                logger.error(f"[{number}] Audio source unavailable: {e}")
                return self._uncertain(session)

            while not self._stopped() and self._elapsed_ms(session) < session.budget_ms:
                try:
                    chunk = source.capture_chunk(session.chunk_interval_ms)
                except CaptureError as e:
                    logger.error(f"[{number}] Audio capture failed: {e}")
                    return self._uncertain(session)

                if not chunk.is_empty:
                    session.chunk_count += 1
                    decision = self._process_chunk(session, chunk, rules)
                    if decision is not None:
                        return decision
                else:
                    logger.debug(f"[{number}] Empty chunk skipped")

                if self._stopped():
                    break
                self._stop_event.wait(self.pause_s)

            self._set_state(SessionState.FINALIZING)
            return self._finalize(session)
        finally:
            if source is not None:
                try:
                    source.stop()
                except Exception as e:
                    logger.warning(f"[{number}] Error stopping audio source: {e}")
            try:
                self.engine.reset()
            except Exception as e:
                logger.warning(f"[{number}] Error resetting transcription engine: {e}")

    def _set_state(self, state: SessionState):
        with self._lock:
            self._state = state

    def _process_chunk(self, session: AnalysisSession, chunk: AudioChunk, rules) -> Optional[Decision]:
        """Run every detector on one chunk; returns a Decision if decisive."""
        number = session.phone_number
        logger.debug(f"[{number}] Chunk #{session.chunk_count}: {chunk.duration_ms:.0f}ms")

        beep = self.beep_detector.detect(chunk)
        if beep.is_beep:
            logger.info(f"[{number}] Autodialer tone: {beep.reasoning}")
            return self._decide(session, Classification.ROBOT, ClassificationEvidence(
                positive=True,
                confidence=self.BEEP_CONFIDENCE,
                category=SpamCategory.ROBOT,
                matched_terms=("beep",),
            ))

        if self._stopped():
            return None

        try:
            fragment = self.engine.transcribe(chunk)
        except Exception as e:
            logger.warning(f"[{number}] Transcription failed, skipping chunk: {e}")
            return None

        if not session.transcript.append(fragment):
            return None

        transcript = session.transcript.text
        logger.debug(f"[{number}] Transcript: {transcript}")

        try:
            robot = self.robot_detector.detect(transcript)
        except Exception as e:
            logger.warning(f"[{number}] Robot detector failed: {e}")
            robot = None

        if robot is not None and robot.is_robot:
            logger.info(f"[{number}] Automated call: {robot.reasoning}")
            return self._decide(session, Classification.ROBOT, ClassificationEvidence(
                positive=True,
                confidence=robot.confidence,
                category=SpamCategory.ROBOT,
                matched_terms=tuple(robot.patterns),
            ))

        match = first_match(rules, transcript)
        if match is not None:
            logger.info(f"[{number}] Rule '{match.rule}' matched: {match.evidence.label}")
            return self._decide(session, match.classification, match.evidence)

        try:
            spam = self.spam_classifier.classify(transcript)
        except Exception as e:
            logger.warning(f"[{number}] Spam classifier failed: {e}")
            return None

        if spam.positive and spam.confidence >= self.SPAM_CHUNK_THRESHOLD:
            logger.debug(f"[{number}] Spam evidence recorded: {spam.label} ({spam.confidence:.0%})")
            session.best_spam_evidence = spam

        return None

    def _finalize(self, session: AnalysisSession) -> Decision:
        """Decide from accumulated evidence when nothing was decisive."""
        evidence = session.best_spam_evidence
        if evidence is not None:
            return self._decide(session, Classification.SPAM, evidence)

        transcript = session.transcript.text
        if not transcript:
            return self._uncertain(session)

        try:
            spam = self.spam_classifier.classify(transcript)
        except Exception as e:
            logger.warning(f"[{session.phone_number}] Final spam check failed: {e}")
            return self._uncertain(session)

        if spam.positive and spam.confidence >= self.SPAM_FINAL_THRESHOLD:
            return self._decide(session, Classification.SPAM, spam)

        if spam.confidence > 0:
            return Decision(
                classification=Classification.UNCERTAIN,
                confidence=spam.confidence / 2,
                transcript=transcript,
                matched_terms=spam.matched_terms,
                elapsed_ms=self._elapsed_ms(session),
                phone_number=session.phone_number,
            )
        return self._uncertain(session)

    def _decide(
        self,
        session: AnalysisSession,
        classification: Classification,
        evidence: ClassificationEvidence,
    ) -> Decision:
        self._set_state(SessionState.FINALIZING)
        return Decision.from_evidence(classification, evidence, session, self._elapsed_ms(session))

    def _uncertain(self, session: AnalysisSession) -> Decision:
        self._set_state(SessionState.FINALIZING)
        return Decision(
            classification=Classification.UNCERTAIN,
            confidence=0.0,
            transcript=session.transcript.text,
            elapsed_ms=self._elapsed_ms(session),
            phone_number=session.phone_number,
        )
