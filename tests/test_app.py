"""
Tests for how the application shows orchestrator status and errors in the tray.

Every collaborator is replaced, so only the Qt signal plumbing is real.
"""

from contextlib import ExitStack
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip("PySide6.QtWidgets")

import voicetotext.app as app_module  # noqa: E402
from voicetotext.ui.tray import TrayStatus  # noqa: E402


class FakeTimer:
    """Single-shot timer that only fires when the test says so."""

    def __init__(self, parent=None):
        self.timeout = MagicMock()
        self.active = False
        self.stop_calls = 0

    def setSingleShot(self, single_shot):
        pass

    def start(self, msec):
        self.active = True

    def stop(self):
        self.stop_calls += 1
        self.active = False

    def isActive(self):
        return self.active


@pytest.fixture
def app(config_dir):
    with ExitStack() as stack:
        for name in (
            "TranscriptionEngine",
            "Orchestrator",
            "AudioCapture",
            "TextInjector",
            "HotkeyListener",
            "SystemTray",
        ):
            stack.enter_context(patch.object(app_module, name))
        stack.enter_context(patch.object(app_module, "QTimer", FakeTimer))
        yield app_module.VoiceToTextApp()


def last_status(app):
    return app._tray.set_status.call_args.args[0]


class TestStatusDisplay:

    def test_status_change_is_shown(self, app):
        app._on_status_changed("recording")
        assert last_status(app) == TrayStatus.RECORDING

        app._on_status_changed("transcribing")
        assert last_status(app) == TrayStatus.TRANSCRIBING

    def test_error_outlives_return_to_idle(self, app):
        app._on_status_changed("recording")
        app._on_error("Transcription failed: out of memory")
        app._on_status_changed("idle")

        app._tray.set_status.assert_called_with(
            TrayStatus.ERROR, "Transcription failed: out of memory"
        )
        assert app._error_timer.active

        app._error_timer.active = False
        app._clear_error()

        assert last_status(app) == TrayStatus.IDLE

    def test_new_session_replaces_error(self, app):
        app._on_error("No input audio device available")

        app._on_status_changed("recording")

        assert last_status(app) == TrayStatus.RECORDING
        assert not app._error_timer.active

    def test_idle_without_error_is_shown_immediately(self, app):
        app._on_status_changed("recording")
        app._on_status_changed("idle")

        assert last_status(app) == TrayStatus.IDLE
