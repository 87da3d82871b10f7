"""
Text injection into the focused input field.

Text is pasted through the clipboard (restoring the previous clipboard
afterwards) or typed key by key via pynput. Injections are serialized so
fragments land in the order they were produced.
"""

import subprocess
import threading
import time
from typing import Optional

from ...utils.logger import get_logger
from ...utils.platform import get_clipboard_commands, get_subprocess_kwargs
from ..errors import InjectionError

logger = get_logger(__name__)


class TextInjector:

    def __init__(
        self,
        instant: bool = True,
        characters_per_second: int = 0,
        keyboard=None,
    ):
        """
        Args:
            instant: Paste through the clipboard instead of typing
            characters_per_second: Typing speed when not instant, 0 types at once
            keyboard: pynput keyboard Controller, created on first use by default
        """
        self.instant = instant
        self.characters_per_second = characters_per_second
        self._keyboard = keyboard
        self._lock = threading.Lock()

    def _get_keyboard(self):
        if self._keyboard is None:
            from pynput.keyboard import Controller

            self._keyboard = Controller()
        return self._keyboard

    def inject(self, text: str) -> None:
        """
        Deliver ``text`` at the current input focus.

        Raises:
            InjectionError: The OS refused the synthetic input.
        """
        if not text:
            return

        with self._lock:
            try:
                if self.instant:
                    self._paste_text(text)
                else:
                    self._type_text(text)
            except InjectionError:
                raise
            except Exception as e:
                raise InjectionError(f"Failed to type text: {e}") from e

    def _type_text(self, text: str) -> None:
        keyboard = self._get_keyboard()
        if self.characters_per_second <= 0:
            keyboard.type(text)
            return

        delay = 1.0 / self.characters_per_second
        for char in text:
            keyboard.type(char)
            time.sleep(delay)

    def _paste_text(self, text: str) -> None:
        logger.debug(
            f"Pasting text via clipboard: '{text[:50]}{'...' if len(text) > 50 else ''}'"
        )

        commands = get_clipboard_commands()
        if commands is None:
            self._get_keyboard().type(text)
            return

        old_clipboard = self._get_clipboard(commands.paste)

        if not self._set_clipboard(commands.copy, text):
            logger.warning("Clipboard unavailable, falling back to direct typing")
            self._get_keyboard().type(text)
            return

        time.sleep(0.05)

        from pynput.keyboard import Key

        keyboard = self._get_keyboard()
        with keyboard.pressed(getattr(Key, commands.paste_modifier)):
            keyboard.tap("v")

        time.sleep(0.1)

        if old_clipboard:
            self._set_clipboard(commands.copy, old_clipboard)

    def _get_clipboard(self, paste_cmd: list) -> Optional[str]:
        try:
            result = subprocess.run(
                paste_cmd,
                **get_subprocess_kwargs(capture_output=True, text=True, timeout=1),
            )
            return result.stdout if result.returncode == 0 else None
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return None

    def _set_clipboard(self, copy_cmd: list, text: str) -> bool:
        try:
            subprocess.run(
                copy_cmd,
                **get_subprocess_kwargs(input=text, text=True, timeout=1, check=True),
            )
            return True
        except (
            subprocess.TimeoutExpired,
            FileNotFoundError,
            subprocess.CalledProcessError,
        ) as e:
            logger.error(f"Failed to set clipboard: {e}")
            return False
