"""
Configuration: loads settings from .streamdiff.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "retry_interval": 0.05,
    "settle_delay": 0.0,
    "auto_save": True,
    "log_dir": ".streamdiff/logs",
    "metrics": True,
    "review_mode": "tui",
    "clean_diffs": True,
}

_REVIEW_MODES = ("tui", "console")

# Config file search locations
_CONFIG_FILENAMES = [".streamdiff.yaml", ".streamdiff.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .streamdiff.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() == "true"
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        # Engine timing
        self.RETRY_INTERVAL = _get("STREAMDIFF_RETRY_INTERVAL", "retry_interval",
                                   _DEFAULTS["retry_interval"], cast=float)
        self.SETTLE_DELAY = _get("STREAMDIFF_SETTLE_DELAY", "settle_delay",
                                 _DEFAULTS["settle_delay"], cast=float)

        self.AUTO_SAVE = _get_bool("STREAMDIFF_AUTO_SAVE", "auto_save",
                                   _DEFAULTS["auto_save"])
        self.CLEAN_DIFFS = _get_bool("STREAMDIFF_CLEAN_DIFFS", "clean_diffs",
                                     _DEFAULTS["clean_diffs"])

        self.LOG_DIR = _get("STREAMDIFF_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])
        self.METRICS_ENABLED = _get_bool("STREAMDIFF_METRICS", "metrics",
                                         _DEFAULTS["metrics"])

        review_mode = _get("STREAMDIFF_REVIEW_MODE", "review_mode",
                           _DEFAULTS["review_mode"]).lower()
        self.REVIEW_MODE = review_mode if review_mode in _REVIEW_MODES else _DEFAULTS["review_mode"]

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
