"""XDG-compliant path management for macsweep.

This module provides standardized paths following the XDG Base Directory
Specification for configuration, data and state storage.

XDG defaults:
- Config: ~/.config/macsweep/
- Data: ~/.local/share/macsweep/ (evidence store)
- State: ~/.local/state/macsweep/ (backup manifests)
"""

import os
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "macsweep"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/macsweep/ (or XDG_CONFIG_HOME/macsweep/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_data_dir() -> Path:
    """Get the data directory path.

    Returns:
        Path to ~/.local/share/macsweep/ (or XDG_DATA_HOME/macsweep/).
    """
    return _get_xdg_dir("XDG_DATA_HOME", ".local/share")


def get_state_dir() -> Path:
    """Get the state directory path.

    State data includes backup manifests that must persist between runs
    but is not configuration.

    Returns:
        Path to ~/.local/state/macsweep/ (or XDG_STATE_HOME/macsweep/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_settings_path() -> Path:
    """Get the settings file path.

    Returns:
        Path to ~/.config/macsweep/config.toml.
    """
    return get_config_dir() / "config.toml"


def get_database_path() -> Path:
    """Get the default evidence store path.

    Returns:
        Path to ~/.local/share/macsweep/macsweep.db.
    """
    return get_data_dir() / "macsweep.db"


def get_backup_dir() -> Path:
    """Get the backup manifest directory path.

    Returns:
        Path to ~/.local/state/macsweep/backups/.
    """
    return get_state_dir() / "backups"


def get_theme_path() -> Path:
    """Get the user theme configuration path.

    Returns:
        Path to ~/.config/macsweep/theme.toml.
    """
    return get_config_dir() / "theme.toml"


def ensure_dir(path: Path, name: str) -> Path:
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create.
        name: Human-readable name for error messages.

    Returns:
        The created/existing directory path.

    Raises:
        RuntimeError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path


def ensure_config_dir() -> Path:
    """Create the configuration directory if it doesn't exist.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    return ensure_dir(get_config_dir(), "config")
