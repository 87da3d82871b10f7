"""
System tray icon and menu using PySide6.

Shows the pipeline status as a colored dot and exposes mode/language
selection, a manual toggle and Quit.
"""

from enum import Enum, auto
from typing import Dict, Optional

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QMenu, QSystemTrayIcon

LANGUAGES = {
    "auto": "Auto-detect",
    "en": "English",
    "de": "Deutsch",
    "es": "Español",
    "fr": "Français",
    "it": "Italiano",
    "pl": "Polski",
    "pt": "Português",
}


class TrayStatus(Enum):
    IDLE = auto()
    RECORDING = auto()
    TRANSCRIBING = auto()
    ERROR = auto()


STATUS_COLORS: Dict[TrayStatus, str] = {
    TrayStatus.IDLE: "#4CAF50",
    TrayStatus.RECORDING: "#F44336",
    TrayStatus.TRANSCRIBING: "#FF9800",
    TrayStatus.ERROR: "#9E9E9E",
}


class SystemTray(QObject):
    """
    System tray icon with context menu.

    Signals:
        toggle_requested: Emitted when user clicks "Start/Stop dictation"
        mode_selected: Emitted with "streaming" or "batch"
        language_selected: Emitted with a language code or "auto"
        quit_requested: Emitted when user clicks "Quit"
    """

    toggle_requested = Signal()
    mode_selected = Signal(str)
    language_selected = Signal(str)
    quit_requested = Signal()

    def __init__(
        self,
        app_name: str,
        hotkey_hint: str,
        mode: str,
        language: str,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)

        self._app_name = app_name
        self._hotkey_hint = hotkey_hint
        self._status = TrayStatus.IDLE

        self._tray_icon = QSystemTrayIcon(self)
        self._menu = QMenu()
        self._mode_actions: Dict[str, QAction] = {}
        self._language_actions: Dict[str, QAction] = {}

        self._build_menu(mode, language)
        self._tray_icon.setContextMenu(self._menu)
        self._update_icon()
        self._tray_icon.show()

    def _build_menu(self, mode: str, language: str) -> None:
        self._status_action = QAction("", self._menu)
        self._status_action.setEnabled(False)
        self._menu.addAction(self._status_action)
        self._menu.addSeparator()

        self._toggle_action = QAction("Start dictation", self._menu)
        self._toggle_action.triggered.connect(self.toggle_requested.emit)
        self._menu.addAction(self._toggle_action)

        mode_menu = self._menu.addMenu("Mode")
        mode_group = QActionGroup(mode_menu)
        for value, label in (("streaming", "Streaming"), ("batch", "Batch")):
            action = QAction(label, mode_menu)
            action.setCheckable(True)
            action.setChecked(value == mode)
            action.triggered.connect(lambda _=False, v=value: self.mode_selected.emit(v))
            mode_group.addAction(action)
            mode_menu.addAction(action)
            self._mode_actions[value] = action

        language_menu = self._menu.addMenu("Language")
        language_group = QActionGroup(language_menu)
        for code, label in LANGUAGES.items():
            action = QAction(label, language_menu)
            action.setCheckable(True)
            action.setChecked(code == language)
            action.triggered.connect(lambda _=False, c=code: self.language_selected.emit(c))
            language_group.addAction(action)
            language_menu.addAction(action)
            self._language_actions[code] = action

        self._menu.addSeparator()
        quit_action = QAction("Quit", self._menu)
        quit_action.triggered.connect(self.quit_requested.emit)
        self._menu.addAction(quit_action)

    def set_status(self, status: TrayStatus, message: str = "") -> None:
        self._status = status

        status_texts = {
            TrayStatus.IDLE: f"Ready - {self._hotkey_hint} to dictate",
            TrayStatus.RECORDING: "Recording...",
            TrayStatus.TRANSCRIBING: "Transcribing...",
            TrayStatus.ERROR: f"Error: {message}",
        }
        self._status_action.setText(status_texts[status])
        self._toggle_action.setText(
            "Stop dictation" if status == TrayStatus.RECORDING else "Start dictation"
        )
        self._toggle_action.setEnabled(status != TrayStatus.TRANSCRIBING)
        self._update_icon()

    def show_warning(self, title: str, message: str) -> None:
        self._tray_icon.showMessage(title, message, QSystemTrayIcon.MessageIcon.Warning, 5000)

    def _update_icon(self) -> None:
        size = 22
        pixmap = QPixmap(size, size)
        pixmap.fill(Qt.GlobalColor.transparent)

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        color = QColor(STATUS_COLORS.get(self._status, "#808080"))
        painter.setBrush(QBrush(color))
        painter.setPen(QPen(color.darker(120), 1))
        margin = 2
        painter.drawEllipse(margin, margin, size - 2 * margin, size - 2 * margin)

        if self._status == TrayStatus.ERROR:
            painter.setPen(QPen(QColor("#FFFFFF"), 2))
            inner = 6
            painter.drawLine(inner, inner, size - inner, size - inner)
            painter.drawLine(size - inner, inner, inner, size - inner)

        painter.end()

        self._tray_icon.setIcon(QIcon(pixmap))
        self._tray_icon.setToolTip(f"{self._app_name} - {self._status.name.capitalize()}")

    def hide(self) -> None:
        self._tray_icon.hide()
