"""
Transcription engine wrapping a pluggable ASR backend.

Handles lazy model loading and turns backend failures into EngineError.
Calls are serialized: the engine never runs two inferences at once.
"""

import gc
import threading
import time
from enum import Enum, auto
from typing import Callable, Optional

import numpy as np

from ...utils.logger import get_logger
from ..audio.recorder import AudioSnapshot
from ..errors import EngineError
from ..settings import AUTO_LANGUAGE
from .backends import ASRBackend, SherpaOnnxBackend, Transcript


class EngineState(Enum):
    NOT_LOADED = auto()
    LOADING = auto()
    READY = auto()
    PROCESSING = auto()
    ERROR = auto()


class TranscriptionEngine:
    """
    Manages ASR model loading and transcription.

    Example:
        engine = TranscriptionEngine(model_id="sherpa-onnx-whisper-small")
        transcript = engine.transcribe(snapshot, language="en")
    """

    def __init__(
        self,
        model_id: str,
        backend: Optional[ASRBackend] = None,
        on_state_change: Optional[Callable[[EngineState, str], None]] = None,
    ):
        """
        Initialize the transcription engine.

        Args:
            model_id: Model directory name under the models dir, or an absolute path
            backend: ASR backend, a SherpaOnnxBackend by default
            on_state_change: Callback for state changes (state, message)
        """
        self.model_id = model_id
        self.on_state_change = on_state_change

        self._backend: ASRBackend = backend if backend is not None else SherpaOnnxBackend()
        self._state = EngineState.NOT_LOADED
        self._lock = threading.Lock()
        self.logger = get_logger(__name__)

    @property
    def state(self) -> EngineState:
        return self._state

    def _set_state(self, state: EngineState, message: str = "") -> None:
        self._state = state
        if self.on_state_change:
            self.on_state_change(state, message)

    def is_model_available(self) -> bool:
        """True when the model files are present locally."""
        if self._backend.is_loaded:
            return True
        try:
            return self._backend.is_model_cached(self.model_id)
        except Exception as e:
            self.logger.warning(f"Model availability check failed: {e}")
            return False

    def load_model(self, language: Optional[str] = None) -> None:
        """
        Load the ASR model if it is not loaded yet.

        Raises:
            EngineError: The model is missing or could not be loaded.
        """
        if self._backend.is_loaded:
            return

        if not self.is_model_available():
            self._set_state(EngineState.ERROR, "Model not found")
            raise EngineError(f"Speech model '{self.model_id}' is not installed")

        self._set_state(EngineState.LOADING, f"Loading model: {self.model_id}...")
        try:
            self._backend.load(self.model_id, language)
        except Exception as e:
            self._set_state(EngineState.ERROR, f"Failed to load model: {e}")
            raise EngineError(f"Failed to load speech model: {e}") from e

        self._set_state(EngineState.READY, "Model loaded")

    def transcribe(self, snapshot: AudioSnapshot, language: Optional[str] = None) -> Transcript:
        """
        Transcribe an audio snapshot.

        Args:
            snapshot: Mono audio captured so far
            language: Language code, None or "auto" to auto-detect

        Raises:
            EngineError: Model unavailable, invalid audio, or inference failure.
        """
        if language == AUTO_LANGUAGE:
            language = None

        audio = snapshot.samples
        if audio.size == 0:
            raise EngineError("Cannot transcribe empty audio")
        if not np.all(np.isfinite(audio)):
            raise EngineError("Audio contains invalid samples")

        with self._lock:
            self.load_model(language)

            self._set_state(EngineState.PROCESSING, "Transcribing...")
            start_time = time.time()

            try:
                transcript = self._backend.transcribe(audio, snapshot.sample_rate, language)
            except Exception as e:
                self._set_state(EngineState.ERROR, f"Transcription failed: {e}")
                raise EngineError(f"Transcription failed: {e}") from e

            processing_time = time.time() - start_time
            if processing_time > 0:
                self.logger.debug(
                    f"Transcription finished: audio_len={snapshot.duration:.2f}s, "
                    f"time={processing_time:.2f}s, speed={snapshot.duration / processing_time:.2f}x"
                )

            self._set_state(EngineState.READY, "Ready")
            return transcript

    def unload(self) -> None:
        with self._lock:
            self._backend.unload()
        gc.collect()
        self._set_state(EngineState.NOT_LOADED, "Model unloaded")

    def set_model(self, model_id: str) -> None:
        """Switch to another model; it is loaded on the next transcription."""
        if model_id == self.model_id:
            return
        with self._lock:
            self._backend.unload()
            self.model_id = model_id
        gc.collect()
        self._set_state(EngineState.NOT_LOADED, f"Model switched to {model_id}")
        self.logger.info(f"Speech model switched to '{model_id}'")
