"""
Shared fakes for the pipeline tests.

The fakes stand in for the microphone, the speech model and the OS text
sink so orchestrator tests run deterministically without hardware.
"""

from collections import deque
from concurrent.futures import Future
from typing import Callable, List, Optional

import numpy as np
import pytest

from voicetotext.core.asr import Transcript
from voicetotext.core.audio import AudioSnapshot
from voicetotext.core.errors import InjectionError


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCapture:
    """Microphone whose buffer grows only when the test feeds it."""

    def __init__(self, sample_rate: int = 16000):
        self.sample_rate = sample_rate
        self.device = None
        self.is_recording = False
        self.start_error: Optional[Exception] = None
        self.start_calls = 0
        self.stop_calls = 0
        self._samples = 0

    def feed(self, seconds: float) -> None:
        self._samples += int(seconds * self.sample_rate)

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self._samples = 0
        self.is_recording = True

    def snapshot(self) -> AudioSnapshot:
        return AudioSnapshot(np.zeros(self._samples, dtype=np.float32), self.sample_rate)

    def stop(self) -> AudioSnapshot:
        self.stop_calls += 1
        self.is_recording = False
        final = self.snapshot()
        self._samples = 0
        return final


class FakeEngine:
    """Speech model answering from a script keyed on the audio duration."""

    def __init__(self, script: Callable[[AudioSnapshot], str] = lambda s: "", available=True):
        self.script = script
        self.available = available
        self.model_id = "sherpa-onnx-whisper-small"
        self.model_switches: List[str] = []
        self.calls: List[tuple] = []
        self.errors: deque = deque()

    def set_model(self, model_id: str) -> None:
        if model_id != self.model_id:
            self.model_switches.append(model_id)
            self.model_id = model_id

    def is_model_available(self) -> bool:
        return self.available

    def transcribe(self, snapshot: AudioSnapshot, language=None) -> Transcript:
        self.calls.append((snapshot.duration, language))
        if self.errors:
            error = self.errors.popleft()
            if error is not None:
                raise error
        return Transcript(self.script(snapshot))


class FakeInjector:
    def __init__(self):
        self.instant = True
        self.characters_per_second = 0
        self.fragments: List[str] = []
        self.failures: deque = deque()

    def inject(self, text: str) -> None:
        if self.failures and self.failures.popleft():
            raise InjectionError("No focused window accepts text")
        self.fragments.append(text)

    @property
    def text(self) -> str:
        return "".join(self.fragments)


class ImmediateExecutor:
    """Runs each job inline at submit time."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        future.set_result(fn(*args, **kwargs))
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


class ManualExecutor:
    """Holds jobs until the test runs them, to model in-flight transcriptions."""

    def __init__(self):
        self.jobs: deque = deque()

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> None:
        future, fn, args, kwargs = self.jobs.popleft()
        future.set_result(fn(*args, **kwargs))

    @property
    def pending(self) -> int:
        return len(self.jobs)

    def shutdown(self, wait: bool = True) -> None:
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def injector():
    return FakeInjector()


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point settings persistence at a temporary directory."""
    import voicetotext.core.settings.settings as settings_module

    monkeypatch.setattr(settings_module, "get_config_dir", lambda: tmp_path)
    monkeypatch.setattr(settings_module, "_settings_instance", None)
    return tmp_path
