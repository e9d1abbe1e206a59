"""YAML-backed settings for extraction, export and local storage."""

import codecs
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "coalLogData"
DEFAULT_CSV_FILENAME = "coal_log_data.csv"
DEFAULT_EXCEL_FILENAME = "coal_log_data.xlsx"


@dataclass
class Settings:
    """Runtime settings. Defaults reproduce the original tool's behaviour."""
    latency_seconds: float = 3.0
    csv_filename: str = DEFAULT_CSV_FILENAME
    excel_filename: str = DEFAULT_EXCEL_FILENAME
    encoding: str = "utf-8"
    storage_directory: Path = Path("~/.coal_log")
    storage_key: str = DEFAULT_STORAGE_KEY
    camera_device: int = 0

    def __post_init__(self):
        self.storage_directory = Path(self.storage_directory).expanduser()
        if self.latency_seconds < 0:
            raise ConfigError(f"latency_seconds must not be negative, got {self.latency_seconds}")
        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ConfigError(f"Unknown export encoding {self.encoding!r}") from e


# (section, key) in the YAML file -> Settings attribute, expected type
_FIELDS = {
    ('extraction', 'latency_seconds'): ('latency_seconds', (int, float)),
    ('export', 'csv_filename'): ('csv_filename', str),
    ('export', 'excel_filename'): ('excel_filename', str),
    ('export', 'encoding'): ('encoding', str),
    ('storage', 'directory'): ('storage_directory', str),
    ('storage', 'key'): ('storage_key', str),
    ('camera', 'device_index'): ('camera_device', int),
}


def _settings_from_mapping(raw: Dict[str, Any], source: str) -> Settings:
    values = {}
    for (section, key), (attr, expected) in _FIELDS.items():
        block = raw.get(section) or {}
        if not isinstance(block, dict):
            raise ConfigError(f"{source}: section '{section}' must be a mapping")
        if key not in block:
            continue
        value = block[key]
        # bool is an int subclass but never a valid setting here
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(f"{source}: '{section}.{key}' has invalid value {value!r}")
        values[attr] = value
    return Settings(**values)


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Settings file; when None or missing, defaults are used

    Returns:
        Settings instance
    """
    if path is None or not Path(path).exists():
        if path is not None:
            logger.info(f"Settings file {path} not found, using defaults")
        return Settings()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load settings from {path}: {e}")
        raise ConfigError(f"Could not read settings file {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    settings = _settings_from_mapping(raw, str(path))
    logger.info(f"Loaded settings from {path}")
    return settings
