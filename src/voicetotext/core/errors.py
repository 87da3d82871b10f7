"""
Error taxonomy of the dictation pipeline.

None of these are fatal to the process: the orchestrator catches them,
reports a human-readable message and returns to a safe state.
"""


class VoiceToTextError(Exception):
    """Base class for pipeline errors."""


class DeviceError(VoiceToTextError):
    """Microphone missing, busy or access denied."""


class EngineError(VoiceToTextError):
    """Model missing, invalid audio or inference failure."""


class InjectionError(VoiceToTextError):
    """No focused target accepted the text or the OS call failed."""
