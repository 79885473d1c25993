"""Configuration management for audiocat."""

import os
from pathlib import Path
from typing import Optional

import yaml


def get_config_dir() -> Path:
    """Get the config directory following XDG standard.

    Uses $XDG_CONFIG_HOME/audiocat if set, otherwise ~/.config/audiocat.
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "audiocat"
    return Path.home() / ".config" / "audiocat"


def get_data_dir() -> Path:
    """Get the data directory following XDG standard.

    Uses $XDG_DATA_HOME/audiocat if set, otherwise ~/.local/share/audiocat.
    """
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data) / "audiocat"
    return Path.home() / ".local" / "share" / "audiocat"


def default_config_path() -> Path:
    return get_config_dir() / "config.yaml"


def default_output_dir() -> Path:
    return get_data_dir() / "exports"


DEFAULT_FFMPEG = "ffmpeg"
DEFAULT_FORMAT = "flac"


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to the config file (defaults to the XDG location).

    Returns:
        Configuration dictionary (empty if file doesn't exist).
    """
    config_path = config_path or default_config_path()
    if not config_path.exists():
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict, config_path: Optional[Path] = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration dictionary.
        config_path: Path to the config file (defaults to the XDG location).
    """
    config_path = config_path or default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False)


def set_config_value(key: str, value, config_path: Optional[Path] = None) -> None:
    """Store a single value in the config file, keeping the others."""
    config = load_config(config_path)
    config[key] = value
    save_config(config, config_path)


def get_ffmpeg_path(config_path: Optional[Path] = None) -> str:
    """Get the ffmpeg binary to run.

    Priority:
    1. AUDIOCAT_FFMPEG environment variable
    2. Config file
    3. ``ffmpeg`` on PATH

    Args:
        config_path: Path to the config file.

    Returns:
        Executable name or path.
    """
    env_path = os.environ.get("AUDIOCAT_FFMPEG")
    if env_path:
        return env_path

    config = load_config(config_path)
    return config.get("ffmpeg_path") or DEFAULT_FFMPEG


def get_default_format(config_path: Optional[Path] = None) -> str:
    """Get the export format used when none is given (defaults to flac)."""
    config = load_config(config_path)
    return str(config.get("default_format", DEFAULT_FORMAT)).lower()


def get_analysis_timeout(config_path: Optional[Path] = None) -> Optional[float]:
    """Get the analysis wall-clock budget in seconds, or None for no limit."""
    config = load_config(config_path)
    timeout = config.get("analysis_timeout")
    return float(timeout) if timeout else None


def get_output_dir(config_path: Optional[Path] = None) -> Path:
    """Get the directory converted files are written to."""
    config = load_config(config_path)
    output_dir = config.get("output_dir")
    return Path(output_dir).expanduser() if output_dir else default_output_dir()
