"""Platform-specific utilities for cross-platform compatibility."""

import platform
import subprocess
from typing import Any, Dict, List, NamedTuple, Optional

from .logger import get_logger

logger = get_logger(__name__)


class ClipboardCommands(NamedTuple):
    copy: List[str]
    paste: List[str]
    paste_modifier: str  # pynput Key attribute name


def get_platform() -> str:
    system = platform.system()
    if system == "Darwin":
        return "macos"
    return system.lower()


def get_subprocess_kwargs(**kwargs: Any) -> Dict[str, Any]:
    """
    Build keyword arguments for subprocess.run.

    On Windows the helper tools would otherwise flash a console window
    every time text is pasted.
    """
    if get_platform() == "windows":
        kwargs.setdefault("creationflags", getattr(subprocess, "CREATE_NO_WINDOW", 0))
    return kwargs


def get_clipboard_commands() -> Optional[ClipboardCommands]:
    system = get_platform()

    if system == "linux":
        return ClipboardCommands(
            copy=["xclip", "-selection", "clipboard"],
            paste=["xclip", "-selection", "clipboard", "-o"],
            paste_modifier="ctrl",
        )
    if system == "macos":
        return ClipboardCommands(copy=["pbcopy"], paste=["pbpaste"], paste_modifier="cmd")
    if system == "windows":
        return ClipboardCommands(
            copy=["clip"],
            paste=["powershell", "-command", "Get-Clipboard"],
            paste_modifier="ctrl",
        )

    logger.warning(f"No clipboard helpers known for platform {system}")
    return None
