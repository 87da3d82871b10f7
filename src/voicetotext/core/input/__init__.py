from .hotkey import HotkeyDetector, HotkeyListener, KeyEvent, key_matches

__all__ = ["HotkeyDetector", "HotkeyListener", "KeyEvent", "key_matches"]
