"""Configuration management for the reader-mode CLI."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from reader_mode.config import DEFAULT_FONT_SIZE_PX, ReaderSettings

MIN_FONT_SIZE_PX = 6
MAX_FONT_SIZE_PX = 96


def config_file_path() -> Path:
    return Path.home() / ".config" / "reader-mode" / "config.yaml"


@dataclass
class Config:
    """Reader-mode CLI configuration."""

    db_path: Path | None = None
    font_size_px: int = DEFAULT_FONT_SIZE_PX

    @classmethod
    def load(cls) -> "Config":
        """Load config from ~/.config/reader-mode/config.yaml or use defaults."""
        config_path = config_file_path()

        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
                raw_db_path = data.get("db_path")
                return cls(
                    db_path=Path(raw_db_path).expanduser() if raw_db_path else None,
                    font_size_px=_font_size(data.get("font_size_px")),
                )

        return cls()

    def apply(self, settings: ReaderSettings) -> ReaderSettings:
        """Overlay file values on settings; READER_MODE_* environment variables still win."""
        updates: dict[str, Any] = {}
        if self.db_path is not None and "READER_MODE_DB_PATH" not in os.environ:
            updates["db_path"] = self.db_path.resolve()
        if "READER_MODE_DEFAULT_FONT_SIZE_PX" not in os.environ:
            updates["default_font_size_px"] = self.font_size_px
        return settings.model_copy(update=updates)


def _font_size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return DEFAULT_FONT_SIZE_PX
    if value < MIN_FONT_SIZE_PX or value > MAX_FONT_SIZE_PX:
        return DEFAULT_FONT_SIZE_PX
    return value
