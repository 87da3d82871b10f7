"""
Microphone capture with live snapshots.

The PortAudio callback thread only appends blocks to a list; readers take
a point-in-time copy of that list under a short lock and do the
concatenation and resampling on their own thread.
"""

import threading
from dataclasses import dataclass
from math import gcd
from typing import List, Optional

import numpy as np
from scipy import signal

from ...utils.logger import get_logger
from ..errors import DeviceError
from ..settings.config import TARGET_SAMPLE_RATE

logger = get_logger(__name__)


@dataclass
class AudioDevice:
    name: str
    index: int
    channels: int
    default_sample_rate: float


@dataclass(frozen=True, eq=False)
class AudioSnapshot:
    """Immutable mono float32 audio captured since the session started."""

    samples: np.ndarray
    sample_rate: int = TARGET_SAMPLE_RATE

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32).reshape(-1)
        samples.flags.writeable = False
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return len(self) / float(self.sample_rate) if self.sample_rate else 0.0

    @classmethod
    def empty(cls, sample_rate: int = TARGET_SAMPLE_RATE) -> "AudioSnapshot":
        return cls(np.zeros(0, dtype=np.float32), sample_rate)


def _import_sounddevice():
    try:
        import sounddevice
    except OSError as e:  # PortAudio shared library missing
        raise DeviceError(f"Audio subsystem unavailable: {e}") from e
    return sounddevice


def resample(audio: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    if src_rate == dst_rate or audio.size == 0:
        return audio
    divisor = gcd(src_rate, dst_rate)
    up = dst_rate // divisor
    down = src_rate // divisor
    return signal.resample_poly(audio, up, down).astype(np.float32)


class AudioCapture:
    """
    Records audio from the microphone into a growing buffer.

    Usage:
        capture = AudioCapture(sample_rate=16000)
        capture.start()
        partial = capture.snapshot()  # recording continues
        final = capture.stop()
    """

    def __init__(self, sample_rate: int = TARGET_SAMPLE_RATE, device: Optional[str] = None):
        """
        Args:
            sample_rate: Rate of the snapshots handed to the engine
            device: Input device name or None for the system default
        """
        self.sample_rate = sample_rate
        self.device = device

        self._stream = None
        self._chunks: List[np.ndarray] = []
        self._lock = threading.Lock()
        self._is_recording = False
        self._device_sample_rate: int = sample_rate
        self._overflows = 0

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    def start(self) -> None:
        """
        Open the input device and start appending samples.

        Raises:
            DeviceError: No usable input device, or PortAudio refused to open it.
        """
        if self._is_recording:
            return

        sd = _import_sounddevice()
        device_index = self._resolve_device()

        try:
            info = sd.query_devices(device_index, "input")
        except (ValueError, sd.PortAudioError) as e:
            raise DeviceError(f"No input audio device available: {e}") from e

        if not info or info.get("max_input_channels", 0) < 1:
            raise DeviceError("No input audio device available")

        self._device_sample_rate = int(info.get("default_samplerate") or self.sample_rate)

        with self._lock:
            self._chunks = []
        self._overflows = 0

        try:
            stream = sd.InputStream(
                samplerate=self._device_sample_rate,
                channels=1,
                dtype="float32",
                device=device_index,
                callback=self._audio_callback,
            )
            stream.start()
        except sd.PortAudioError as e:
            raise DeviceError(f"Audio device error: {e}") from e

        self._stream = stream
        self._is_recording = True
        logger.info(
            f"Recording started: device={info.get('name', 'default')}, "
            f"rate={self._device_sample_rate}Hz"
        )

    def snapshot(self) -> AudioSnapshot:
        """Return everything captured so far without interrupting capture."""
        if not self._is_recording:
            raise DeviceError("Audio capture is not running")
        return self._build_snapshot()

    def stop(self) -> AudioSnapshot:
        """Stop capture, return the final snapshot and release the buffer."""
        if not self._is_recording:
            return AudioSnapshot.empty(self.sample_rate)

        self._is_recording = False

        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
            self._stream = None

        final = self._build_snapshot()
        with self._lock:
            self._chunks = []

        if self._overflows:
            logger.warning(f"Input overflowed {self._overflows} times during recording")
        logger.info(f"Recording stopped: {final.duration:.2f}s of audio")
        return final

    def _build_snapshot(self) -> AudioSnapshot:
        with self._lock:
            chunks = list(self._chunks)

        if not chunks:
            return AudioSnapshot.empty(self.sample_rate)

        audio = np.concatenate(chunks)
        audio = resample(audio, self._device_sample_rate, self.sample_rate)
        return AudioSnapshot(audio, self.sample_rate)

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status and status.input_overflow:
            self._overflows += 1
        if not self._is_recording:
            return

        mono = indata.mean(axis=1) if indata.ndim > 1 else indata.reshape(-1)
        block = np.array(mono, dtype=np.float32, copy=True)
        with self._lock:
            self._chunks.append(block)

    def _resolve_device(self) -> Optional[int]:
        if self.device is None:
            return None

        for device in self.list_devices():
            if device.name == self.device:
                return device.index

        raise DeviceError(f"Input device not found: {self.device}")

    @staticmethod
    def list_devices() -> List[AudioDevice]:
        sd = _import_sounddevice()
        devices = []

        for i, device in enumerate(sd.query_devices()):
            if device["max_input_channels"] > 0:
                devices.append(
                    AudioDevice(
                        name=device["name"],
                        index=i,
                        channels=device["max_input_channels"],
                        default_sample_rate=device["default_samplerate"],
                    )
                )

        return devices
