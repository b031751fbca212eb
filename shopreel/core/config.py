"""
Application configuration manager.
Stores settings in a JSON file under the app support directory.
Secrets are not stored here; see security_utils.get_secret().
"""

import json
import logging
from pathlib import Path

from shopreel.core.constants import (
    CONFIG_PATH, DB_PATH, REQUEST_TIMEOUT_SEC, SCRAPE_NUMBER_OF_SCROLLS,
    KLING_MODE, KLING_DURATION, KLING_CFG_SCALE,
)

# key -> (type, min, max, default)
_NUMERIC_BOUNDS = {
    'request_timeout_sec': (float, 5, 600, REQUEST_TIMEOUT_SEC),
    'scrape_scrolls': (int, 0, 10, SCRAPE_NUMBER_OF_SCROLLS),
    'kling_cfg_scale': (float, 0.1, 1.0, KLING_CFG_SCALE),
}
_KLING_MODES = ('std', 'pro')
_KLING_DURATIONS = ('5', '10')

logger = logging.getLogger(__name__)

_DEFAULTS = {
    'db_path': str(DB_PATH),
    'request_timeout_sec': REQUEST_TIMEOUT_SEC,
    'scrape_scrolls': SCRAPE_NUMBER_OF_SCROLLS,
    'kling_mode': KLING_MODE,
    'kling_duration': KLING_DURATION,
    'kling_cfg_scale': KLING_CFG_SCALE,
}


class AppConfig:
    """Manages application configuration stored as JSON."""

    def __init__(self, config_path: Path | None = None):
        self.path = config_path or CONFIG_PATH
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, merging with defaults."""
        self._data = dict(_DEFAULTS)
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to load config: %s", e)
                return
            for key, value in saved.items():
                if key in _DEFAULTS:
                    self._data[key] = self._validate(key, value)
                else:
                    logger.warning("Ignoring unknown config key %r", key)

    def save(self):
        """Persist config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        if key not in _DEFAULTS:
            raise KeyError(f"Unknown config key: {key}")
        self._data[key] = self._validate(key, value)
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key in _NUMERIC_BOUNDS:
            cast, lo, hi, default = _NUMERIC_BOUNDS[key]
            try:
                value = cast(value)
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r; using default", key, value)
                return default
            return max(lo, min(hi, value))

        if key == 'kling_mode':
            if value not in _KLING_MODES:
                logger.warning("Invalid kling_mode %r; using %s", value, KLING_MODE)
                return KLING_MODE

        if key == 'kling_duration':
            value = str(value)
            if value not in _KLING_DURATIONS:
                logger.warning("Invalid kling_duration %r; using %s", value, KLING_DURATION)
                return KLING_DURATION

        if key == 'db_path':
            return str(value)

        return value

    @property
    def db_path(self) -> Path:
        return Path(self._data.get('db_path', str(DB_PATH))).expanduser()

    @property
    def request_timeout(self) -> float:
        return self._data.get('request_timeout_sec', REQUEST_TIMEOUT_SEC)
