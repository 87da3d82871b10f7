"""Application runtime."""

import signal
import sys

from PySide6.QtCore import QObject, QTimer, Signal
from PySide6.QtWidgets import QApplication

from voicetotext import __app_name__, __version__
from voicetotext.core import Orchestrator, Status
from voicetotext.core.asr import TranscriptionEngine
from voicetotext.core.audio import AudioCapture
from voicetotext.core.input import HotkeyListener
from voicetotext.core.output import TextInjector
from voicetotext.core.settings import Mode, get_settings, update_settings
from voicetotext.core.settings.config import ERROR_DISPLAY_MS
from voicetotext.ui.tray import SystemTray, TrayStatus
from voicetotext.utils.logger import get_logger, shutdown_logging

logger = get_logger(__name__)

STATUS_TO_TRAY = {
    Status.IDLE: TrayStatus.IDLE,
    Status.RECORDING: TrayStatus.RECORDING,
    Status.TRANSCRIBING: TrayStatus.TRANSCRIBING,
}


class VoiceToTextApp(QObject):
    # Emitted from the orchestrator thread, delivered on the GUI thread.
    status_changed = Signal(str)
    error_occurred = Signal(str)

    def __init__(self):
        super().__init__()

        settings = get_settings()

        self._engine = TranscriptionEngine(model_id=settings.model_id)
        self._orchestrator = Orchestrator(
            capture=AudioCapture(sample_rate=settings.sample_rate, device=settings.input_device),
            engine=self._engine,
            injector=TextInjector(
                instant=settings.instant_type,
                characters_per_second=settings.characters_per_second,
            ),
            settings_provider=get_settings,
            on_status=lambda status: self.status_changed.emit(status.value),
            on_error=self.error_occurred.emit,
        )
        self._hotkey_listener = HotkeyListener(
            on_toggle=self._orchestrator.toggle,
            key=settings.hotkey.key,
            window=settings.hotkey.window_seconds,
        )

        self._tray = SystemTray(
            __app_name__,
            settings.hotkey.to_display_string(),
            mode=settings.mode.value,
            language=settings.language,
        )
        self._status = Status.IDLE
        self._tray.set_status(TrayStatus.IDLE)

        self._error_timer = QTimer(self)
        self._error_timer.setSingleShot(True)
        self._error_timer.timeout.connect(self._clear_error)

        self.status_changed.connect(self._on_status_changed)
        self.error_occurred.connect(self._on_error)
        self._tray.toggle_requested.connect(self._orchestrator.toggle)
        self._tray.mode_selected.connect(self._on_mode_selected)
        self._tray.language_selected.connect(self._on_language_selected)
        self._tray.quit_requested.connect(self._quit)

    def _on_status_changed(self, value: str) -> None:
        self._status = Status(value)
        # Idle after a failure leaves the error up until the timer fires.
        if self._status == Status.IDLE and self._error_timer.isActive():
            return
        self._error_timer.stop()
        self._tray.set_status(STATUS_TO_TRAY[self._status])

    def _on_error(self, message: str) -> None:
        self._tray.set_status(TrayStatus.ERROR, message)
        self._error_timer.start(ERROR_DISPLAY_MS)

    def _clear_error(self) -> None:
        self._tray.set_status(STATUS_TO_TRAY[self._status])

    def _on_mode_selected(self, mode: str) -> None:
        update_settings(mode=Mode(mode))

    def _on_language_selected(self, language: str) -> None:
        update_settings(language=language)

    def _quit(self) -> None:
        logger.info("Shutting down application")
        self._hotkey_listener.stop()
        self._orchestrator.shutdown()
        self._engine.unload()
        self._tray.hide()
        QApplication.quit()
        logger.info("Application shutdown complete")
        shutdown_logging()

    def run(self) -> None:
        logger.info(f"Starting {__app_name__} v{__version__}")

        if not self._orchestrator.check_model():
            logger.warning(f"Speech model '{self._engine.model_id}' not found")
            self._tray.show_warning(
                __app_name__,
                f"Speech model '{self._engine.model_id}' is not installed. "
                "Dictation will fail until a model is downloaded.",
            )

        self._orchestrator.start()
        self._hotkey_listener.start()
        logger.info("Application initialization complete")


def main():
    app = QApplication(sys.argv)
    app.setApplicationName(__app_name__)
    app.setQuitOnLastWindowClosed(False)
    signal.signal(signal.SIGINT, lambda *args: QApplication.quit())

    voice_app = VoiceToTextApp()
    voice_app.run()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
