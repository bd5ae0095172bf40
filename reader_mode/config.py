from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_DATA_DIR = ".reader-mode"
DEFAULT_FONT_SIZE_PX = 21
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("reader.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "telemetry_enabled",
    "is_cache_warmer",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{READER_MODE_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class ReaderSettings(BaseSettings):
    """
    Canonical runtime configuration for the reader pipeline.

    Every option is read from `READER_MODE_*` environment variables (or `.env`).
    """

    model_config = SettingsConfigDict(
        env_prefix="READER_MODE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the content store and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("reader.db")),
        description=f"SQLite content store path. {_data_dir_default_note(Path('reader.db'))}",
    )

    # Reader document presentation.
    default_font_size_px: int = Field(
        default=DEFAULT_FONT_SIZE_PX,
        ge=6,
        le=96,
        description="Font size injected into the reader document body.",
    )
    light_theme: str = Field(
        default="white",
        description="Value written to `data-manabi-light-theme` on the reader body.",
    )
    dark_theme: str = Field(
        default="black",
        description="Value written to `data-manabi-dark-theme` on the reader body.",
    )
    is_cache_warmer: bool = Field(
        default=False,
        description="Non-interactive cache-warming mode; skips presentation-only body rewrites.",
    )

    # Extraction.
    meaningful_content_min_length: int = Field(
        default=0,
        ge=0,
        description="Default minimum text length for extraction when a record does not set one.",
    )
    excluded_domains_extra: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        description="Additional hosts (comma separated) where reader mode is never offered.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stderr).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("READER_MODE_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("READER_MODE_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("light_theme", "dark_theme", mode="before")
    @classmethod
    def _normalize_theme(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Reader themes must be strings.")
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("Reader themes must not be empty.")
        return normalized

    @field_validator("excluded_domains_extra", mode="before")
    @classmethod
    def _split_domains(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            raw_items: list[Any] = value.split(",")
        elif isinstance(value, list | tuple | set | frozenset):
            raw_items = list(value)
        else:
            raise ValueError("READER_MODE_EXCLUDED_DOMAINS_EXTRA must be a comma separated string.")
        domains: list[str] = []
        for item in raw_items:
            if not isinstance(item, str):
                continue
            normalized = item.strip().lower().lstrip(".")
            if normalized and normalized not in domains:
                domains.append(normalized)
        return tuple(domains)

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)


def _apply_path_defaults(settings: ReaderSettings) -> ReaderSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: ReaderSettings) -> ReaderSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> ReaderSettings:
    settings = ReaderSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
