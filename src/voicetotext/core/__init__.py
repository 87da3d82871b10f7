"""
Core dictation pipeline: capture, transcription, reconciliation, injection
and the state machine tying them together.
"""

from .errors import DeviceError, EngineError, InjectionError, VoiceToTextError
from .orchestrator import Orchestrator, RecordingSession, Status

__all__ = [
    "DeviceError",
    "EngineError",
    "InjectionError",
    "VoiceToTextError",
    "Orchestrator",
    "RecordingSession",
    "Status",
]
