from .backends import ASRBackend, SherpaOnnxBackend, Transcript
from .transcriber import EngineState, TranscriptionEngine

__all__ = [
    "ASRBackend",
    "SherpaOnnxBackend",
    "Transcript",
    "TranscriptionEngine",
    "EngineState",
]
