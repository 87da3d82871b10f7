from .recorder import AudioCapture, AudioDevice, AudioSnapshot, resample

__all__ = [
    "AudioCapture",
    "AudioDevice",
    "AudioSnapshot",
    "resample",
]
