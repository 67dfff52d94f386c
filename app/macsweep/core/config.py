"""Settings model and I/O functions.

Settings hold the recommendation thresholds and the limits applied to
external package-manager calls during cleanup.

Configuration is stored in ~/.config/macsweep/config.toml
"""

import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from macsweep.core.paths import get_backup_dir, get_database_path, get_settings_path


class Settings(BaseModel):
    """User settings for macsweep.

    Attributes:
        warning_threshold_days: Packages unused for at least this many days
            are flagged as worth reviewing (WARNING tier).
        review_threshold_days: Packages unused for at least this many days,
            or without any usage evidence, get the REVIEW tier.
        max_concurrency: Maximum concurrent removal/restore commands.
        command_timeout_seconds: Timeout for each package-manager call.
        database_path: Evidence store location (None = XDG default).
        backup_dir: Backup manifest directory (None = XDG default).
    """

    model_config = ConfigDict(extra="forbid")

    warning_threshold_days: Annotated[
        int,
        Field(ge=1, description="Lower bound in days for the warning tier"),
    ] = 30
    review_threshold_days: Annotated[
        int,
        Field(ge=1, description="Lower bound in days for the review tier"),
    ] = 90
    max_concurrency: Annotated[
        int,
        Field(ge=1, le=16, description="Concurrent package-manager calls (1-16)"),
    ] = 4
    command_timeout_seconds: Annotated[
        int,
        Field(ge=10, le=3600, description="Timeout in seconds (10-3600)"),
    ] = 300
    database_path: Annotated[
        Path | None,
        Field(description="Evidence store path (None = default)"),
    ] = None
    backup_dir: Annotated[
        Path | None,
        Field(description="Backup manifest directory (None = default)"),
    ] = None

    @model_validator(mode="after")
    def validate_thresholds(self) -> "Settings":
        """Validate that the warning tier starts before the review tier."""
        if self.warning_threshold_days >= self.review_threshold_days:
            msg = (
                f"warning_threshold_days ({self.warning_threshold_days}) must be "
                f"lower than review_threshold_days ({self.review_threshold_days})"
            )
            raise ValueError(msg)
        return self

    @property
    def effective_database_path(self) -> Path:
        """Get the configured database path or the XDG default."""
        return self.database_path or get_database_path()

    @property
    def effective_backup_dir(self) -> Path:
        """Get the configured backup directory or the XDG default."""
        return self.backup_dir or get_backup_dir()


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a TOML file.

    A missing file is not an error: the defaults are returned.

    Args:
        path: Path to the config file. If None, uses the default path.

    Returns:
        Validated Settings object.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_settings_path()

    if not config_path.exists():
        return Settings()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return Settings.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        settings: The Settings object to save.
        path: Path to save the config. If None, uses the default path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_settings_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = _settings_to_dict(settings)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def _settings_to_dict(settings: Settings) -> dict[str, object]:
    """Convert Settings to a dictionary for TOML serialization.

    TOML has no null value, so unset paths are omitted.
    """
    result: dict[str, object] = {
        "warning_threshold_days": settings.warning_threshold_days,
        "review_threshold_days": settings.review_threshold_days,
        "max_concurrency": settings.max_concurrency,
        "command_timeout_seconds": settings.command_timeout_seconds,
    }
    if settings.database_path is not None:
        result["database_path"] = str(settings.database_path)
    if settings.backup_dir is not None:
        result["backup_dir"] = str(settings.backup_dir)
    return result
