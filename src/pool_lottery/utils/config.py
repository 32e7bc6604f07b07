"""
Configuration Management
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "lottery": {
        "min_stake": 1,
        "max_rounds_per_entry": 100,
        "feed_capacity": 100,
        "history_capacity": 50,
    },
    "operator": {
        "enabled": True,
        "check_interval": 5,
    },
    "treasury": {
        "faucet_enabled": False,
        "initial_balances": {},
    },
    "server": {
        "host": "0.0.0.0",
        "port": 6080,
        "auth_required": True,
    },
}

ENV_SECTIONS = {
    "LOTTERY_": "lottery",
    "TREASURY_": "treasury",
    "OPERATOR_": "operator",
    "SERVER_": "server",
    "APP_": "app",
}


def default_config_path() -> Path:
    override = os.getenv("APP_CONFIG_FILE")
    if override:
        return Path(override)
    return Path.cwd() / "config" / "lottery.conf"


def load_config(config_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load configuration from defaults, the JSON config file and environment variables"""
    config: Dict[str, Any] = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}

    config_path = Path(config_file) if config_file else default_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config file {config_path}: {e}")
        else:
            for section, values in file_config.items():
                if isinstance(values, dict):
                    config.setdefault(section, {}).update(values)
                else:
                    config[section] = values
            logger.info(f"Loaded configuration from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found. Using defaults and environment variables.")

    # Override with environment variables, usually defined in .env
    config = _apply_env_overrides(config)

    logger.debug(f"Configuration after applying environment overrides: {json.dumps(_redacted(config), indent=2)}")

    return config


def _coerce(value: str) -> Any:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    for key, value in os.environ.items():
        # Convert key from SECTION_NAME to section.name format
        for prefix, section in ENV_SECTIONS.items():
            if key.startswith(prefix):
                name = key[len(prefix):].lower()
                config.setdefault(section, {})[name] = _coerce(value)
                break

    return config


def _redacted(config: Dict[str, Any]) -> Dict[str, Any]:
    safe = {}
    for section, values in config.items():
        if isinstance(values, dict):
            safe[section] = {k: ("***" if "key" in k else v) for k, v in values.items()}
        else:
            safe[section] = values
    return safe


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default
