#!/usr/bin/env python3
"""
Configuration management for Journey.
Handles toolchain and file-location preferences stored in ~/.journey.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any

DEFAULTS: Dict[str, Any] = {
    'compiler': 'rustc',
    'edition': '2021',
    'info_file': 'info.toml',
    'status_file': '.journey-status',
    'debounce_ms': 100,
    'poll_interval_ms': 10,
    'timeout_s': 0,  # 0 waits for the toolchain forever
}


def get_config_dir() -> Path:
    """Get the Journey config directory (~/.journey, or $JOURNEY_HOME)"""
    override = os.environ.get('JOURNEY_HOME')
    config_dir = Path(override) if override else Path.home() / '.journey'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path"""
    return get_config_dir() / 'config.json'


def load_config() -> Dict[str, Any]:
    """Load configuration from file, on top of the defaults"""
    config = dict(DEFAULTS)
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                stored = json.load(f)
        except (json.JSONDecodeError, IOError):
            return config
        if isinstance(stored, dict):
            config.update(stored)
    return config


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file (only values that differ from the defaults)"""
    stored = {key: value for key, value in config.items() if DEFAULTS.get(key) != value}
    with open(get_config_path(), 'w') as f:
        json.dump(stored, f, indent=2)


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a specific config value"""
    config = load_config()
    return config.get(key, default)


def set_config_value(key: str, value: Any) -> None:
    """
    Set a specific config value.

    Values for numeric settings are converted from their string form, so
    `journey config debounce_ms 250` stores the integer 250.

    Raises:
        KeyError: Unknown setting
        ValueError: Value has the wrong type for the setting
    """
    if key not in DEFAULTS:
        raise KeyError(key)
    if isinstance(DEFAULTS[key], int) and not isinstance(value, int):
        value = int(value)

    config = load_config()
    config[key] = value
    save_config(config)
