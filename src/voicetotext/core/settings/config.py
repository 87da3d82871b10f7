"""
Developer configuration.

Values here are not user settings: diagnostics switches and the defaults
the user settings start from.
"""

import logging
import os

# =============================================================================
# DEVELOPMENT SETTINGS - Edit these for local development
# =============================================================================
LOG_LEVEL = os.environ.get("VOICETOTEXT_LOG_LEVEL", "INFO")
LOG_TO_CONSOLE = True  # Set to False to log to the file only
# =============================================================================

# =============================================================================
# PIPELINE DEFAULTS
# =============================================================================
TARGET_SAMPLE_RATE = 16000  # Every ASR backend expects 16 kHz mono
STREAM_INTERVAL_SECONDS = 3.0
MIN_AUDIO_SECONDS = 1.0  # Shorter buffers are not worth an engine call
DOUBLE_PRESS_WINDOW_MS = 500
ERROR_DISPLAY_MS = 3000
# =============================================================================


def get_log_level() -> int:
    """Get the logging level as an integer."""
    return getattr(logging, LOG_LEVEL.upper(), logging.INFO)
