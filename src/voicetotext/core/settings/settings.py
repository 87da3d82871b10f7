"""
Settings management with JSON persistence.

Handles loading, saving, and validating application settings.
Uses platformdirs for cross-platform directory resolution.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from platformdirs import user_config_path, user_data_path
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...utils.logger import get_logger
from .config import (
    DOUBLE_PRESS_WINDOW_MS,
    MIN_AUDIO_SECONDS,
    STREAM_INTERVAL_SECONDS,
    TARGET_SAMPLE_RATE,
)

logger = get_logger(__name__)

APP_NAME = "voicetotext"
AUTO_LANGUAGE = "auto"


def get_config_dir() -> Path:
    return user_config_path(APP_NAME, appauthor=False, ensure_exists=True)


def get_data_dir() -> Path:
    return user_data_path(APP_NAME, appauthor=False, ensure_exists=True)


class Mode(str, Enum):
    STREAMING = "streaming"
    BATCH = "batch"


class HotkeyConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    key: str = "alt"
    double_press_ms: int = Field(default=DOUBLE_PRESS_WINDOW_MS, ge=100, le=2000)

    @field_validator("key")
    @classmethod
    def key_not_empty(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("key must be a non-empty string")
        return v.strip().lower()

    @property
    def window_seconds(self) -> float:
        return self.double_press_ms / 1000.0

    def to_display_string(self) -> str:
        return f"Double-press {self.key.capitalize()}"


class Settings(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    mode: Mode = Mode.STREAMING
    language: str = AUTO_LANGUAGE

    hotkey: HotkeyConfig = Field(default_factory=HotkeyConfig)
    stream_interval: float = Field(default=STREAM_INTERVAL_SECONDS, gt=0.2, le=60.0)
    min_audio_seconds: float = Field(default=MIN_AUDIO_SECONDS, ge=0.0, le=10.0)
    require_agreement: bool = True

    sample_rate: int = Field(default=TARGET_SAMPLE_RATE, ge=8000, le=192000)
    input_device: Optional[str] = None
    model_id: str = "sherpa-onnx-whisper-small"

    instant_type: bool = True
    characters_per_second: int = Field(default=0, ge=0)

    @field_validator("language")
    @classmethod
    def language_code(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("language must be 'auto' or a language code")
        return v.strip().lower()

    @field_validator("model_id")
    @classmethod
    def model_id_not_empty(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("model_id must be a non-empty string")
        return v

    @property
    def is_streaming(self) -> bool:
        return self.mode == Mode.STREAMING

    @property
    def language_hint(self) -> Optional[str]:
        """Language code for the engine, None for auto-detection."""
        return None if self.language == AUTO_LANGUAGE else self.language

    @classmethod
    def load(cls) -> "Settings":
        config_file = get_config_dir() / "settings.json"

        if not config_file.exists():
            return cls()

        try:
            with open(config_file, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not load settings: {e}. Using defaults.", exc_info=True)
            return cls()

        if not isinstance(data, dict):
            logger.warning("Settings file is not a JSON object. Using defaults.")
            return cls()

        valid_keys = cls.model_fields.keys()
        filtered_data = {k: v for k, v in data.items() if k in valid_keys}

        return cls._load_with_fallbacks(filtered_data)

    @classmethod
    def _load_with_fallbacks(cls, data: dict) -> "Settings":
        """Load settings with field-level fallback to defaults on validation errors."""
        defaults = cls()
        result_data = {}

        for field_name in cls.model_fields:
            if field_name not in data:
                result_data[field_name] = getattr(defaults, field_name)
                continue
            try:
                partial = cls.model_validate(
                    {**defaults.model_dump(), field_name: data[field_name]}
                )
                result_data[field_name] = getattr(partial, field_name)
            except Exception:
                default_val = getattr(defaults, field_name)
                logger.warning(
                    f"Invalid {field_name} {data[field_name]!r}, resetting to {default_val}"
                )
                result_data[field_name] = default_val

        return cls.model_construct(**result_data)

    def save(self) -> None:
        config_file = get_config_dir() / "settings.json"

        data = self.model_dump(mode="json")

        with open(config_file, "w") as f:
            json.dump(data, f, indent=2)


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.load()
    return _settings_instance


def update_settings(**changes: Any) -> Settings:
    """
    Read the current settings, merge ``changes`` and write them back.

    The merged result is validated as a whole; an invalid change raises
    pydantic.ValidationError and nothing is written. Sessions already in
    progress keep the copy they took when they started.
    """
    global _settings_instance

    current = get_settings()
    merged = Settings.model_validate({**current.model_dump(), **changes})
    merged.save()
    _settings_instance = merged
    logger.info(f"Settings updated: {', '.join(sorted(changes))}")
    return merged
