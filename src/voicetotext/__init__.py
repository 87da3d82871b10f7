# VoiceToText - Double-press dictation

"""
Desktop dictation: double-press a hotkey, speak, and the transcription is
typed into whichever field has focus, incrementally in streaming mode.
"""

__version__ = "0.1.0"
__app_name__ = "VoiceToText"
