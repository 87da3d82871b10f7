"""Settings and persistence utilities."""

from .settings import (
    AUTO_LANGUAGE,
    HotkeyConfig,
    Mode,
    Settings,
    get_config_dir,
    get_data_dir,
    get_settings,
    update_settings,
)

__all__ = [
    "AUTO_LANGUAGE",
    "HotkeyConfig",
    "Mode",
    "Settings",
    "get_config_dir",
    "get_data_dir",
    "get_settings",
    "update_settings",
]
