"""
Double-press hotkey detection.

HotkeyDetector is a pure state machine over KeyEvent values. HotkeyListener
feeds it from a global pynput keyboard hook and reports each recognized
gesture as a single toggle request.

Matching policy:
    * Only presses of the designated key (or its left/right variants) count.
    * Auto-repeat presses of a held key are ignored until the key is released.
    * A press of any other key discards a pending first press.
    * A second press strictly less than ``window`` seconds after the first
      emits one toggle and clears the memory, so a third rapid press starts
      a new gesture. At ``window`` or later the press becomes the new first
      press instead.
"""

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from ...utils.logger import get_logger

logger = get_logger(__name__)

KEY_VARIANT_SUFFIXES = ("_l", "_r", "_gr")


@dataclass(frozen=True)
class KeyEvent:
    key: str
    pressed: bool
    timestamp: float


def key_matches(designated: str, key: str) -> bool:
    if key == designated:
        return True
    return any(key == designated + suffix for suffix in KEY_VARIANT_SUFFIXES)


class HotkeyDetector:

    def __init__(self, key: str = "alt", window: float = 0.5):
        self.key = key
        self.window = window
        self._last_press: Optional[float] = None
        self._key_down = False

    def reset(self) -> None:
        self._last_press = None
        self._key_down = False

    def feed(self, event: KeyEvent) -> bool:
        """Process one event. Returns True when it completes a double press."""
        if not key_matches(self.key, event.key):
            if event.pressed:
                self._last_press = None
            return False

        if not event.pressed:
            self._key_down = False
            return False

        if self._key_down:
            return False
        self._key_down = True

        previous = self._last_press
        if previous is not None and 0 <= event.timestamp - previous < self.window:
            self._last_press = None
            return True

        self._last_press = event.timestamp
        return False

    def toggles(self, events: Iterable[KeyEvent]) -> Iterator[float]:
        """Yield the timestamp of every toggle gesture found in ``events``."""
        for event in events:
            if self.feed(event):
                yield event.timestamp


def pynput_key_name(key) -> Optional[str]:
    """Name of a pynput Key / KeyCode, or None when it cannot be identified."""
    name = getattr(key, "name", None)
    if name:
        return name
    char = getattr(key, "char", None)
    if char:
        return char.lower()
    return None


class HotkeyListener:
    """
    Global keyboard hook reporting double-press gestures.

    ``on_toggle`` runs on the pynput listener thread and must only hand the
    request over (for example by queueing it).
    """

    def __init__(
        self,
        on_toggle: Callable[[], None],
        key: str = "alt",
        window: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._on_toggle = on_toggle
        self._detector = HotkeyDetector(key, window)
        self._clock = clock
        self._keyboard_listener = None

    def _dispatch(self, key, pressed: bool) -> None:
        name = pynput_key_name(key)
        if name is None:
            return
        if self._detector.feed(KeyEvent(name, pressed, self._clock())):
            logger.debug(f"Double-press of '{self._detector.key}' detected")
            self._on_toggle()

    def _on_press(self, key) -> None:
        self._dispatch(key, True)

    def _on_release(self, key) -> None:
        self._dispatch(key, False)

    def start(self) -> None:
        from pynput import keyboard

        self._keyboard_listener = keyboard.Listener(
            on_press=self._on_press, on_release=self._on_release
        )
        self._keyboard_listener.start()
        logger.info(f"Hotkey listener started: double-press '{self._detector.key}'")

        if hasattr(self._keyboard_listener, "IS_TRUSTED"):
            if not self._keyboard_listener.IS_TRUSTED:
                logger.warning(
                    "Hotkey listener is NOT TRUSTED. Accessibility permissions not granted."
                )

    def stop(self) -> None:
        if self._keyboard_listener:
            self._keyboard_listener.stop()
            self._keyboard_listener = None
