from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

import numpy as np

from ...utils.logger import get_logger
from .file_utils import (
    TRANSDUCER,
    WHISPER,
    detect_model_type,
    find_file_by_suffix,
    find_file_exact,
    resolve_model_path,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Transcript:
    """Text recognized from one audio snapshot."""

    text: str
    segments: Tuple[str, ...] = field(default_factory=tuple)
    language: Optional[str] = None


class ASRBackend(Protocol):
    def load(self, model_path: str, language: Optional[str] = None) -> None: ...

    def transcribe(
        self, audio_data: np.ndarray, sample_rate: int, language: Optional[str]
    ) -> Transcript: ...

    def unload(self) -> None: ...

    @property
    def is_loaded(self) -> bool: ...

    def is_model_cached(self, model_path: str) -> bool: ...


class SherpaOnnxBackend:
    """
    Offline recognizer backed by sherpa-onnx.

    Whisper models take the language at construction time, so the
    recognizer is rebuilt whenever a different language hint arrives.
    Transducer models are language-agnostic and ignore the hint.
    """

    def __init__(self, num_threads: int = 4):
        self._num_threads = num_threads
        self._recognizer = None
        self._model_path: Optional[str] = None
        self._model_type: Optional[str] = None
        self._language: Optional[str] = None

    def load(self, model_path: str, language: Optional[str] = None) -> None:
        full_model_path = resolve_model_path(model_path)
        model_type = detect_model_type(full_model_path)
        if model_type is None:
            raise RuntimeError(
                f"No usable model found in {full_model_path}. "
                f"Expected Whisper or Transducer ONNX files."
            )

        logger.info(f"Loading {model_type} model from '{full_model_path}'")

        import sherpa_onnx

        try:
            if model_type == WHISPER:
                self._recognizer = self._build_whisper(sherpa_onnx, full_model_path, language)
            else:
                self._recognizer = self._build_transducer(sherpa_onnx, full_model_path)
        except Exception as e:
            self._recognizer = None
            raise RuntimeError(f"Failed to load model from '{full_model_path}': {e}") from e

        self._model_path = full_model_path
        self._model_type = model_type
        self._language = language

    def _build_whisper(self, sherpa_onnx, model_path: str, language: Optional[str]):
        encoder = find_file_by_suffix(model_path, "-encoder.int8.onnx", "-encoder.onnx")
        decoder = find_file_by_suffix(model_path, "-decoder.int8.onnx", "-decoder.onnx")
        tokens = find_file_by_suffix(model_path, "-tokens.txt", "tokens.txt")

        return sherpa_onnx.OfflineRecognizer.from_whisper(
            encoder=encoder,
            decoder=decoder,
            tokens=tokens,
            language=language or "",
            task="transcribe",
            num_threads=self._num_threads,
            provider="cpu",
            debug=False,
            decoding_method="greedy_search",
        )

    def _build_transducer(self, sherpa_onnx, model_path: str):
        return sherpa_onnx.OfflineRecognizer.from_transducer(
            encoder=find_file_exact(
                model_path, ["encoder.int8.onnx", "encoder.onnx", "encoder.fp16.onnx"]
            ),
            decoder=find_file_exact(
                model_path, ["decoder.int8.onnx", "decoder.onnx", "decoder.fp16.onnx"]
            ),
            joiner=find_file_exact(
                model_path, ["joiner.int8.onnx", "joiner.onnx", "joiner.fp16.onnx"]
            ),
            tokens=find_file_exact(model_path, ["tokens.txt"]),
            num_threads=self._num_threads,
            provider="cpu",
            debug=False,
            decoding_method="greedy_search",
            model_type="nemo_transducer",
        )

    def transcribe(
        self, audio_data: np.ndarray, sample_rate: int = 16000, language: Optional[str] = None
    ) -> Transcript:
        if self._recognizer is None:
            raise RuntimeError("Model not loaded. Call load() first.")

        if self._model_type == WHISPER and language != self._language:
            logger.info(f"Reloading Whisper recognizer for language {language or 'auto'}")
            self.load(self._model_path, language)

        if audio_data.dtype == np.int16:
            audio_float = audio_data.astype(np.float32) / 32768.0
        else:
            audio_float = audio_data.astype(np.float32)

        stream = self._recognizer.create_stream()
        stream.accept_waveform(sample_rate, audio_float.reshape(-1))
        self._recognizer.decode_stream(stream)

        result = stream.result
        detected = getattr(result, "lang", None) or language

        tokens = tuple(result.tokens) if getattr(result, "tokens", None) else ()
        return Transcript(text=result.text.strip(), segments=tokens, language=detected)

    def unload(self) -> None:
        if self._recognizer is not None:
            del self._recognizer
            self._recognizer = None

    @property
    def is_loaded(self) -> bool:
        return self._recognizer is not None

    def is_model_cached(self, model_path: str) -> bool:
        return detect_model_type(resolve_model_path(model_path)) in (WHISPER, TRANSDUCER)
