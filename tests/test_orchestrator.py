"""Tests for session orchestration."""

import threading
import time

import pytest

from screener.analysis.evidence import Classification, EmergencyType, LegitimacyReason, SpamCategory
from screener.analysis.robot import TextPatternRobotDetector
from screener.analysis.spam import SpamClassifier
from screener.core.config import SessionConfig
from screener.core.errors import CaptureError, SessionActiveError
from screener.core.orchestrator import AnalysisOrchestrator, Decision, SessionState, TranscriptAccumulator

from conftest import FakeSource, RecordingEngine, sine_chunk

SPAM_PITCH = "we have a special offer with a big discount, free installation, limited time only"


def make(clock, fragments=(), fail_on=(), **source_kwargs):
    source = FakeSource(clock=clock, **source_kwargs)
    engine = RecordingEngine(fragments, fail_on=fail_on)
    orchestrator = AnalysisOrchestrator(lambda: source, engine, pause_s=0.0, clock=clock)
    return orchestrator, source, engine


def test_user_name_is_legitimate(clock):
    orchestrator, source, engine = make(clock, ["hi, is Marta there?"])

    decision = orchestrator.run("600111222", SessionConfig(user_name="Marta"))

    assert decision.classification is Classification.LEGITIMATE
    assert decision.reason is LegitimacyReason.SAID_USER_NAME
    assert decision.confidence == 0.9
    assert decision.phone_number == "600111222"
    assert decision.transcript == "hi, is Marta there?"
    assert source.captures == 1


def test_family_name(clock):
    orchestrator, _, _ = make(clock, [None, "Pedro had a problem"])

    decision = orchestrator.run("600111222", SessionConfig(family_names=("Pedro",)))

    assert decision.classification is Classification.LEGITIMATE
    assert decision.reason is LegitimacyReason.SAID_FAMILY_NAME
    assert decision.confidence == 0.85


def test_custom_keyword_is_emergency(clock):
    orchestrator, _, _ = make(clock, ["the basement is flooding"])

    decision = orchestrator.run("600111222", SessionConfig(custom_keywords=("flood",)))

    assert decision.classification is Classification.EMERGENCY
    assert decision.reason is LegitimacyReason.EMERGENCY_KEYWORDS
    assert decision.confidence == 0.9


def test_beep_is_robot_without_transcribing(clock):
    orchestrator, _, engine = make(clock, ["hello"], chunks=[sine_chunk(1000)])

    decision = orchestrator.run("900000000")

    assert decision.classification is Classification.ROBOT
    assert decision.category is SpamCategory.ROBOT
    assert decision.confidence == 0.95
    assert engine.calls == 0


def test_ivr_transcript_is_robot(clock):
    orchestrator, _, _ = make(clock, ["press 1 for sales, press 2 for support"])

    decision = orchestrator.run("900000000")

    assert decision.classification is Classification.ROBOT
    assert decision.confidence >= 0.5
    assert decision.matched_terms[0].startswith("IVR: ")


def test_strong_spam_keeps_listening_then_blocks(clock):
    orchestrator, source, _ = make(clock, [SPAM_PITCH])

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.SPAM
    assert decision.category is SpamCategory.TELEMARKETING
    assert decision.confidence == pytest.approx(0.8)
    # 12 s budget in 2 s chunks: the session listened to the end
    assert source.captures == 6
    assert decision.elapsed_ms == 12000


def test_emergency_after_spam_takes_precedence(clock):
    orchestrator, _, _ = make(clock, [SPAM_PITCH, "sorry, there was an accident"])

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.EMERGENCY
    assert decision.reason is EmergencyType.MEDICAL


def test_spam_rescored_at_lower_threshold(clock):
    orchestrator, _, _ = make(clock, ["we have a great offer", "with a big discount", "and free shipping"])

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.SPAM
    assert decision.confidence == pytest.approx(0.6)


def test_weak_spam_is_uncertain_at_reduced_confidence(clock):
    orchestrator, _, _ = make(clock, ["we have a great offer today"])

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.UNCERTAIN
    assert decision.confidence == pytest.approx(0.1)
    assert decision.should_alert_user


def test_no_evidence_is_uncertain(clock):
    orchestrator, source, _ = make(clock)

    decision = orchestrator.run("611000000", SessionConfig(budget_ms=5000, chunk_interval_ms=1000))

    assert decision.classification is Classification.UNCERTAIN
    assert decision.confidence == 0.0
    assert source.captures == 5


def test_capture_failure_aborts_to_uncertain(clock):
    orchestrator, source, engine = make(clock, [SPAM_PITCH], fail_at=2)

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.UNCERTAIN
    assert decision.confidence == 0.0
    assert source.stopped
    assert engine.reset_count == 1


def test_start_failure_releases_resources(clock):
    orchestrator, source, engine = make(clock, fail_on_start=True)

    decision = orchestrator.run("611000000")

    assert decision.classification is Classification.UNCERTAIN
    assert source.captures == 0
    assert source.stopped
    assert engine.reset_count == 1
    assert orchestrator.state is SessionState.IDLE


@pytest.mark.parametrize("error", [CaptureError("no audio route"), RuntimeError("driver crashed")])
def test_source_factory_failure_releases_engine(clock, error):
    engine = RecordingEngine([SPAM_PITCH])

    def no_source():
        raise error

    orchestrator = AnalysisOrchestrator(no_source, engine, pause_s=0.0, clock=clock)

    decision = orchestrator.run("611000000")

    assert decision.classification is Classification.UNCERTAIN
    assert decision.confidence == 0.0
    assert engine.calls == 0
    assert engine.reset_count == 1
    assert orchestrator.state is SessionState.IDLE


def test_transcription_failure_skips_only_that_chunk(clock):
    orchestrator, source, _ = make(clock, ["hi, is Marta there?"], fail_on={1})

    decision = orchestrator.run("600111222", SessionConfig(user_name="Marta"))

    assert decision.classification is Classification.LEGITIMATE
    assert source.captures == 2


def test_uninitialized_engine_never_blocks(clock):
    source = FakeSource(clock=clock)
    engine = RecordingEngine([SPAM_PITCH])
    engine.initialized = False
    orchestrator = AnalysisOrchestrator(lambda: source, engine, pause_s=0.0, clock=clock)

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.UNCERTAIN
    assert source.captures == 6


def test_robot_requires_positive_detection(clock):
    orchestrator, _, _ = make(clock, ["hey it's me", "call me back when you get this"])

    decision = orchestrator.run("611000000")

    assert decision.classification is not Classification.ROBOT


def test_human_opener_is_never_robot(clock):
    orchestrator, _, _ = make(clock, ["hello, hold on please", "ok, I'm back"])

    decision = orchestrator.run("611000000")

    assert decision.classification is not Classification.ROBOT
    assert not decision.should_hang_up


class FailingRobotDetector(TextPatternRobotDetector):
    def detect(self, transcript):
        raise RuntimeError("pattern table corrupted")


class FailingSpamClassifier(SpamClassifier):
    def classify(self, transcript):
        raise RuntimeError("category table corrupted")


def test_robot_detector_failure_is_no_evidence(clock):
    source = FakeSource(clock=clock)
    engine = RecordingEngine([SPAM_PITCH])
    orchestrator = AnalysisOrchestrator(
        lambda: source, engine, robot_detector=FailingRobotDetector(), pause_s=0.0, clock=clock
    )

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.SPAM
    assert decision.confidence == pytest.approx(0.8)
    assert source.captures == 6


def test_spam_classifier_failure_is_no_evidence(clock):
    source = FakeSource(clock=clock)
    engine = RecordingEngine([SPAM_PITCH, "hi, is Marta there?"])
    orchestrator = AnalysisOrchestrator(
        lambda: source, engine, spam_classifier=FailingSpamClassifier(), pause_s=0.0, clock=clock
    )

    decision = orchestrator.run("600111222", SessionConfig(user_name="Marta"))

    assert decision.classification is Classification.LEGITIMATE
    assert source.captures == 2


def test_spam_classifier_failure_finalizes_uncertain(clock):
    source = FakeSource(clock=clock)
    engine = RecordingEngine([SPAM_PITCH])
    orchestrator = AnalysisOrchestrator(
        lambda: source, engine, spam_classifier=FailingSpamClassifier(), pause_s=0.0, clock=clock
    )

    decision = orchestrator.run("911222333")

    assert decision.classification is Classification.UNCERTAIN
    assert decision.confidence == 0.0
    assert source.captures == 6
    assert source.stopped


class StoppingSource(FakeSource):
    """Requests a stop while serving the given capture."""

    def __init__(self, stop_at, **kwargs):
        super().__init__(**kwargs)
        self.stop_at = stop_at
        self.orchestrator = None

    def capture_chunk(self, duration_ms):
        chunk = super().capture_chunk(duration_ms)
        if self.captures == self.stop_at:
            self.orchestrator.stop()
        return chunk


def test_stop_keeps_recorded_spam_evidence(clock):
    source = StoppingSource(stop_at=2, clock=clock)
    engine = RecordingEngine([SPAM_PITCH, "hi, is Marta there?"])
    orchestrator = AnalysisOrchestrator(lambda: source, engine, pause_s=0.0, clock=clock)
    source.orchestrator = orchestrator

    decision = orchestrator.run("911222333", SessionConfig(user_name="Marta"))

    assert decision.classification is Classification.SPAM
    assert decision.confidence == pytest.approx(0.8)
    assert decision.transcript == SPAM_PITCH
    assert decision.elapsed_ms == 4000
    # The chunk captured when stop arrived is never transcribed
    assert source.captures == 2
    assert engine.calls == 1
    assert source.stopped


def test_stop_from_another_thread():
    source = FakeSource(delay_s=0.05)
    engine = RecordingEngine()
    orchestrator = AnalysisOrchestrator(lambda: source, engine, pause_s=0.01)
    delivered = []

    future = orchestrator.start("611000000", SessionConfig(budget_ms=20000), delivered.append)
    assert source.captured_event.wait(5)
    assert orchestrator.is_running

    started = time.monotonic()
    assert orchestrator.stop()
    decision = future.result(timeout=5)

    assert time.monotonic() - started < 2.0
    assert decision.classification is Classification.UNCERTAIN
    assert decision.elapsed_ms < 20000
    assert orchestrator.wait(5)
    assert delivered == [decision]
    assert source.stopped
    assert orchestrator.state is SessionState.IDLE


def test_second_start_is_rejected():
    source = FakeSource(delay_s=0.05)
    engine = RecordingEngine(["hi, is Marta there?"])
    orchestrator = AnalysisOrchestrator(lambda: source, engine, pause_s=0.01)
    release = threading.Event()

    real_transcribe = engine.transcribe

    def slow_transcribe(chunk):
        release.wait(5)
        return real_transcribe(chunk)

    engine.transcribe = slow_transcribe

    future = orchestrator.start("600111222", SessionConfig(user_name="Marta"))
    assert source.captured_event.wait(5)

    with pytest.raises(SessionActiveError):
        orchestrator.start("699999999", SessionConfig())
    with pytest.raises(SessionActiveError):
        orchestrator.run("699999999")

    release.set()
    decision = future.result(timeout=5)

    assert decision.classification is Classification.LEGITIMATE
    assert decision.phone_number == "600111222"


def test_sessions_can_follow_each_other(clock):
    orchestrator, _, _ = make(clock)

    first = orchestrator.run("611000000", SessionConfig(budget_ms=5000))
    second = orchestrator.run("622000000", SessionConfig(budget_ms=5000))

    assert first.phone_number == "611000000"
    assert second.phone_number == "622000000"


def test_stop_when_idle():
    orchestrator = AnalysisOrchestrator(lambda: FakeSource(), RecordingEngine())
    assert orchestrator.stop() is False


def test_callback_errors_do_not_break_delivery():
    source = FakeSource()
    orchestrator = AnalysisOrchestrator(lambda: source, RecordingEngine(["hi, is Marta there?"]), pause_s=0.0)

    def boom(decision):
        raise RuntimeError("ui gone")

    future = orchestrator.start("600111222", SessionConfig(user_name="Marta"), boom)

    assert future.result(timeout=5).classification is Classification.LEGITIMATE


def test_transcript_accumulator():
    transcript = TranscriptAccumulator()

    assert transcript.append("  hello ")
    assert not transcript.append("   ")
    assert not transcript.append(None)
    assert transcript.append("world")

    assert transcript.text == "hello world"
    assert transcript.fragments == ("hello", "world")
    assert len(transcript) == 2


def test_decision_serialization():
    decision = Decision(
        classification=Classification.EMERGENCY,
        confidence=0.8,
        reason=EmergencyType.MEDICAL,
        transcript="there was an accident",
        matched_terms=("accident",),
        elapsed_ms=2000,
        phone_number="600111222",
    )

    data = decision.to_dict()
    assert data["reason"] == "medical"
    assert data["reason_type"] == "emergency"
    assert Decision.from_dict(data) == decision

    legit = Decision(Classification.LEGITIMATE, 0.9, reason=LegitimacyReason.SAID_USER_NAME)
    assert Decision.from_dict(legit.to_dict()).reason is LegitimacyReason.SAID_USER_NAME
