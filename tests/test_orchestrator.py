"""
Tests for the recording state machine.

Messages are driven by hand through Orchestrator.handle/process_pending so
every interleaving is deterministic. The threaded loop gets one end-to-end
test of its own.
"""

import threading
import time

import pytest

from voicetotext.core import DeviceError, EngineError, Orchestrator, Status
from voicetotext.core.orchestrator import Tick
from voicetotext.core.settings import Mode, Settings

from .conftest import FakeEngine, ImmediateExecutor, ManualExecutor


def by_duration(snapshot):
    """Pretend speech: three seconds of audio say "hello", six say "hello world"."""
    if snapshot.duration < 4.5:
        return "hello"
    return "hello world"


class Harness:
    def __init__(self, capture, injector, engine=None, settings=None, executor=None, clock=None):
        self.settings = settings or Settings()
        self.capture = capture
        self.injector = injector
        self.engine = engine or FakeEngine(by_duration)
        self.executor = executor or ImmediateExecutor()
        self.statuses = []
        self.errors = []
        self.orchestrator = Orchestrator(
            capture,
            self.engine,
            injector,
            settings_provider=lambda: self.settings,
            on_status=self.statuses.append,
            on_error=self.errors.append,
            executor=self.executor,
            clock=clock or time.monotonic,
        )

    def toggle(self):
        self.orchestrator.toggle()
        self.orchestrator.process_pending()

    def tick(self):
        self.orchestrator.handle(Tick())
        self.orchestrator.process_pending()

    @property
    def status(self):
        return self.orchestrator.status


@pytest.fixture
def streaming(capture, injector, clock):
    return Harness(capture, injector, settings=Settings(mode=Mode.STREAMING), clock=clock)


@pytest.fixture
def batch(capture, injector, clock):
    return Harness(capture, injector, settings=Settings(mode=Mode.BATCH), clock=clock)


@pytest.fixture
def eager(capture, injector, clock):
    return Harness(
        capture,
        injector,
        settings=Settings(mode=Mode.STREAMING, require_agreement=False),
        clock=clock,
    )


class TestBatchMode:

    def test_full_session(self, batch):
        batch.engine.script = lambda s: "hello world"

        batch.toggle()
        assert batch.status == Status.RECORDING
        assert batch.capture.is_recording

        batch.capture.feed(2.0)
        batch.toggle()

        assert batch.injector.fragments == ["hello world"]
        assert batch.statuses == [Status.RECORDING, Status.TRANSCRIBING, Status.IDLE]
        assert batch.engine.calls == [(2.0, None)]
        assert batch.orchestrator.session is None
        assert not batch.capture.is_recording

    def test_ticks_do_nothing(self, batch):
        batch.toggle()
        assert batch.orchestrator.next_tick is None

        batch.capture.feed(3.0)
        batch.tick()

        assert batch.engine.calls == []
        assert batch.injector.fragments == []

    def test_short_recording_skips_engine(self, batch):
        batch.toggle()
        batch.capture.feed(0.5)
        batch.toggle()

        assert batch.engine.calls == []
        assert batch.injector.fragments == []
        assert batch.statuses == [Status.RECORDING, Status.TRANSCRIBING, Status.IDLE]

    def test_empty_transcript_types_nothing(self, batch):
        batch.engine.script = lambda s: ""
        batch.toggle()
        batch.capture.feed(2.0)
        batch.toggle()

        assert batch.injector.fragments == []
        assert batch.status == Status.IDLE

    def test_language_is_passed_to_engine(self, batch):
        batch.settings = Settings(mode=Mode.BATCH, language="de")
        batch.toggle()
        batch.capture.feed(2.0)
        batch.toggle()

        assert batch.engine.calls == [(2.0, "de")]

    def test_back_to_back_sessions(self, batch):
        batch.engine.script = lambda s: "again"
        for _ in range(2):
            batch.toggle()
            batch.capture.feed(1.5)
            batch.toggle()

        assert batch.injector.fragments == ["again", "again"]
        assert batch.capture.start_calls == 2


class TestStreamingMode:

    def test_incremental_fragments(self, streaming, clock):
        streaming.toggle()
        assert streaming.orchestrator.next_tick == pytest.approx(clock.now + 3.0)

        streaming.capture.feed(3.0)
        streaming.tick()
        assert streaming.injector.fragments == []
        assert streaming.status == Status.RECORDING

        streaming.capture.feed(3.0)
        streaming.tick()
        assert streaming.injector.fragments == ["hello"]

        streaming.toggle()

        assert streaming.injector.fragments == ["hello", " world"]
        assert streaming.injector.text == "hello world"
        assert streaming.statuses == [Status.RECORDING, Status.TRANSCRIBING, Status.IDLE]
        assert [duration for duration, _ in streaming.engine.calls] == [3.0, 6.0, 6.0]

    def test_final_pass_types_remainder(self, streaming):
        streaming.toggle()
        streaming.capture.feed(3.0)
        streaming.tick()

        streaming.capture.feed(1.0)
        streaming.tick()
        assert streaming.injector.fragments == ["hello"]

        streaming.capture.feed(2.0)
        streaming.toggle()

        assert streaming.injector.fragments == ["hello", " world"]
        assert streaming.status == Status.IDLE

    def test_repeated_transcript_is_not_retyped(self, streaming):
        streaming.toggle()
        streaming.capture.feed(3.0)
        streaming.tick()
        streaming.capture.feed(0.5)
        streaming.tick()

        assert streaming.injector.fragments == ["hello"]

    def test_tick_before_enough_audio_is_skipped(self, streaming):
        streaming.toggle()
        streaming.capture.feed(0.5)
        streaming.tick()

        assert streaming.engine.calls == []
        assert streaming.orchestrator.next_tick is not None

    def test_tick_rearms_deadline(self, streaming, clock):
        streaming.toggle()
        clock.advance(3.0)
        streaming.capture.feed(3.0)
        streaming.tick()

        assert streaming.orchestrator.next_tick == pytest.approx(clock.now + 3.0)

    def test_stop_clears_deadline(self, streaming):
        streaming.toggle()
        streaming.capture.feed(2.0)
        streaming.toggle()

        assert streaming.orchestrator.next_tick is None

    def test_agreement_mode_waits_for_confirmation(self, capture, injector, clock):
        transcripts = iter(["hello wor", "hello world", "hello world and more"])
        harness = Harness(
            capture,
            injector,
            engine=FakeEngine(lambda s: next(transcripts)),
            settings=Settings(mode=Mode.STREAMING, require_agreement=True),
            clock=clock,
        )

        harness.toggle()
        harness.capture.feed(3.0)
        harness.tick()
        assert injector.fragments == []

        harness.capture.feed(3.0)
        harness.tick()
        assert injector.fragments == ["hello"]

        harness.capture.feed(1.0)
        harness.toggle()
        assert injector.text == "hello world and more"

    def test_settings_are_frozen_per_session(self, streaming):
        streaming.toggle()
        streaming.settings = Settings(mode=Mode.BATCH)

        assert streaming.orchestrator.session.mode == Mode.STREAMING

        streaming.capture.feed(3.0)
        streaming.tick()
        streaming.capture.feed(1.0)
        streaming.tick()
        assert streaming.injector.fragments == ["hello"]


def grocery_dictation(snapshot):
    if snapshot.duration < 5.0:
        return "I want to go to the sto"
    return "I want to go to the store and buy milk"


class TestRevisedWords:

    def test_final_pass_types_words_after_revised_partial(self, capture, injector, clock):
        harness = Harness(capture, injector, engine=FakeEngine(grocery_dictation), clock=clock)

        harness.toggle()
        harness.capture.feed(3.0)
        harness.tick()
        harness.capture.feed(1.0)
        harness.tick()
        assert injector.text == "I want to go to the sto"

        harness.capture.feed(2.0)
        harness.toggle()

        assert injector.text == "I want to go to the sto and buy milk"
        assert harness.status == Status.IDLE

    def test_eager_typing_recovers_on_final_pass(self, eager):
        eager.engine.script = grocery_dictation

        eager.toggle()
        eager.capture.feed(3.0)
        eager.tick()
        assert eager.injector.fragments == ["I want to go to the sto"]

        eager.capture.feed(3.0)
        eager.tick()
        assert eager.injector.fragments == ["I want to go to the sto"]

        eager.toggle()
        assert eager.injector.text == "I want to go to the sto and buy milk"


class TestModelSelection:

    def test_session_uses_configured_model(self, batch):
        batch.settings = Settings(mode=Mode.BATCH, model_id="sherpa-onnx-nemo-parakeet")

        batch.toggle()

        assert batch.engine.model_switches == ["sherpa-onnx-nemo-parakeet"]
        assert batch.engine.model_id == "sherpa-onnx-nemo-parakeet"

    def test_unchanged_model_is_kept(self, batch):
        for _ in range(2):
            batch.toggle()
            batch.capture.feed(1.5)
            batch.toggle()

        assert batch.engine.model_switches == []

    def test_model_change_applies_to_next_session(self, batch):
        batch.toggle()
        batch.settings = Settings(mode=Mode.BATCH, model_id="other-model")
        batch.capture.feed(1.5)
        batch.toggle()
        assert batch.engine.model_id == "sherpa-onnx-whisper-small"

        batch.toggle()
        assert batch.engine.model_id == "other-model"


class TestInFlightTranscriptions:

    @pytest.fixture
    def manual(self, capture, injector, clock):
        return Harness(
            capture,
            injector,
            settings=Settings(mode=Mode.STREAMING, require_agreement=False),
            executor=ManualExecutor(),
            clock=clock,
        )

    def test_busy_tick_is_skipped(self, manual):
        manual.toggle()
        manual.capture.feed(3.0)
        manual.tick()
        manual.capture.feed(3.0)
        manual.tick()

        assert manual.executor.pending == 1

        manual.executor.run_next()
        manual.orchestrator.process_pending()

        assert manual.engine.calls == [(3.0, None)]
        assert manual.injector.fragments == ["hello"]

    def test_stop_waits_for_partial_then_runs_final(self, manual):
        manual.toggle()
        manual.capture.feed(3.0)
        manual.tick()

        manual.capture.feed(3.0)
        manual.toggle()

        assert manual.status == Status.TRANSCRIBING
        assert manual.executor.pending == 1

        manual.executor.run_next()
        manual.orchestrator.process_pending()

        assert manual.injector.fragments == []
        assert manual.executor.pending == 1

        manual.executor.run_next()
        manual.orchestrator.process_pending()

        assert manual.injector.fragments == ["hello world"]
        assert [d for d, _ in manual.engine.calls] == [3.0, 6.0]
        assert manual.status == Status.IDLE

    def test_toggle_during_final_pass_is_ignored(self, manual):
        manual.toggle()
        manual.capture.feed(2.0)
        manual.toggle()
        assert manual.status == Status.TRANSCRIBING

        manual.toggle()
        assert manual.status == Status.TRANSCRIBING
        assert manual.capture.start_calls == 1

        manual.executor.run_next()
        manual.orchestrator.process_pending()
        assert manual.status == Status.IDLE

    def test_no_text_after_session_closes(self, manual):
        manual.toggle()
        manual.capture.feed(3.0)
        manual.tick()
        manual.toggle()

        manual.executor.run_next()
        manual.orchestrator.process_pending()
        manual.executor.run_next()
        manual.orchestrator.process_pending()
        typed = list(manual.injector.fragments)

        manual.tick()
        manual.orchestrator.process_pending()
        assert manual.injector.fragments == typed
        assert manual.executor.pending == 0


class TestErrors:

    def test_no_microphone(self, batch):
        batch.capture.start_error = DeviceError("No input audio device available")

        batch.toggle()

        assert batch.status == Status.IDLE
        assert batch.statuses == []
        assert batch.errors == ["No input audio device available"]
        assert batch.orchestrator.session is None

    def test_missing_model(self, streaming):
        streaming.engine.available = False

        streaming.toggle()

        assert streaming.status == Status.IDLE
        assert streaming.capture.start_calls == 0
        assert "No speech model installed" in streaming.errors[0]

    def test_partial_failure_keeps_recording(self, eager):
        eager.engine.errors.append(EngineError("Transcription failed: decoder"))

        eager.toggle()
        eager.capture.feed(3.0)
        eager.tick()

        assert eager.status == Status.RECORDING
        assert eager.errors == ["Transcription failed: decoder"]

        eager.capture.feed(3.0)
        eager.tick()
        assert eager.injector.fragments == ["hello world"]

    def test_final_failure_returns_to_idle(self, batch):
        batch.engine.errors.append(EngineError("Transcription failed: out of memory"))

        batch.toggle()
        batch.capture.feed(2.0)
        batch.toggle()

        assert batch.status == Status.IDLE
        assert batch.injector.fragments == []
        assert batch.errors == ["Transcription failed: out of memory"]

    def test_unexpected_engine_exception_is_wrapped(self, batch):
        batch.engine.errors.append(MemoryError("boom"))

        batch.toggle()
        batch.capture.feed(2.0)
        batch.toggle()

        assert batch.status == Status.IDLE
        assert batch.errors == ["boom"]

    def test_injection_failure_does_not_end_session(self, eager):
        eager.injector.failures.append(True)

        eager.toggle()
        eager.capture.feed(3.0)
        eager.tick()

        assert eager.status == Status.RECORDING
        assert eager.errors == ["No focused window accepts text"]
        assert eager.injector.fragments == []

        eager.capture.feed(3.0)
        eager.tick()
        assert eager.injector.fragments == [" world"]

    def test_capture_loss_mid_session(self, streaming):
        streaming.toggle()
        def unplugged():
            raise DeviceError("Device unplugged")

        streaming.capture.snapshot = unplugged

        streaming.tick()

        assert streaming.status == Status.IDLE
        assert streaming.errors == ["Device unplugged"]
        assert not streaming.capture.is_recording


class TestLifecycle:

    def test_shutdown_without_thread_aborts_session(self, streaming):
        streaming.toggle()
        streaming.orchestrator.shutdown()

        assert streaming.status == Status.IDLE
        assert not streaming.capture.is_recording

    def test_check_model(self, streaming):
        assert streaming.orchestrator.check_model()
        streaming.engine.available = False
        assert not streaming.orchestrator.check_model()

    def test_threaded_loop_end_to_end(self, capture, injector):
        """Real loop thread, real worker pool, real clock."""
        capture.feed(2.0)
        capture.start = lambda: setattr(capture, "is_recording", True)

        statuses = []
        idle = threading.Event()
        typed = threading.Event()

        def on_status(status):
            statuses.append(status)
            if status == Status.IDLE:
                idle.set()

        record = injector.inject

        def inject(text):
            record(text)
            typed.set()

        injector.inject = inject

        orchestrator = Orchestrator(
            capture,
            FakeEngine(lambda s: "hello"),
            injector,
            settings_provider=lambda: Settings(mode=Mode.STREAMING, stream_interval=0.3),
            on_status=on_status,
        )
        orchestrator.start()
        try:
            orchestrator.toggle()
            assert typed.wait(5.0)
            orchestrator.toggle()
            assert idle.wait(5.0)
        finally:
            orchestrator.shutdown()

        assert injector.fragments == ["hello"]
        assert statuses == [Status.RECORDING, Status.TRANSCRIBING, Status.IDLE]
