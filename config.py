"""
YAML configuration and persisted user settings (method, madhab, location).
"""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ADHAN_CONFIG"
DEFAULT_CONFIG_PATH = Path("config.yaml")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'

DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
    },
    "api": {
        "base_url": "https://api.aladhan.com/v1",
        "timeout": 10,
        "max_retries": 2,
        "retry_delay": 1.0,
        "use_remote": True,
    },
    "geolocation": {
        "provider_url": "https://ipapi.co/json/",
        "nominatim_url": "https://nominatim.openstreetmap.org",
        "max_retries": 2,
        "retry_delay": 1.0,
    },
    # Used when a timezone name cannot be resolved.
    "default_timezone_offset": 5.5,
    "settings": {
        "method": "Karachi",
        "madhab": "Hanafi",
        "location": None,
    },
}


def setup_logging(level: str = "INFO") -> None:
    """Install a stdout handler on the root logger unless one is already there."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _substitute_env_vars(data: Any) -> Any:
    """Replace '${VAR}' / '$VAR' string values with environment variables."""
    if isinstance(data, dict):
        return {key: _substitute_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    if isinstance(data, str):
        if data.startswith('${') and data.endswith('}'):
            return os.environ.get(data[2:-1], data)
        if data.startswith('$') and len(data) > 1:
            return os.environ.get(data[1:], data)
    return data


class Config:
    def __init__(self, config_path: Optional[str] = None):
        path = config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
        self.config_file = Path(path).expanduser().resolve()
        logger.debug(f"Using config file: {self.config_file}")
        self._ensure_config_exists()
        self.data = self._load_config()

    def _ensure_config_exists(self) -> None:
        if self.config_file.exists():
            return
        logger.info(f"Creating default config file: {self.config_file}")
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False))

    def _load_config(self) -> Dict[str, Any]:
        try:
            with open(self.config_file, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError("Invalid config format: root must be a dictionary")
        except (OSError, yaml.YAMLError, ValueError) as e:
            logger.error(f"Error loading config: {e}")
            logger.info("Using default configuration")
            loaded = {}
        return _substitute_env_vars(_merge(DEFAULT_CONFIG, loaded))

    @property
    def api(self) -> Dict[str, Any]:
        return self.data["api"]

    @property
    def geolocation(self) -> Dict[str, Any]:
        return self.data["geolocation"]

    @property
    def settings(self) -> Dict[str, Any]:
        return self.data["settings"]

    @property
    def default_timezone_offset(self) -> float:
        return float(self.data.get("default_timezone_offset", 5.5))

    def update_settings(self, **changes: Any) -> Dict[str, Any]:
        """Apply changes to the user settings and write the config file."""
        self.data["settings"].update(changes)
        self.save_settings()
        return self.settings

    def save_settings(self) -> None:
        try:
            with open(self.config_file, encoding="utf-8") as f:
                on_disk = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not re-read config before saving, rewriting it: {e}")
            on_disk = {}
        if not isinstance(on_disk, dict):
            on_disk = {}
        on_disk["settings"] = self.data["settings"]
        with open(self.config_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(on_disk, f, sort_keys=False)
        logger.info(f"Saved settings to {self.config_file}")
