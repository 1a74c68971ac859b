"""
Configuration management for the clip DSP engine.

Loads engine constants from YAML with environment variable interpolation.
Every value has a default, so a missing file still yields a working engine.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from clipdsp.utils.errors import ConfigurationError


class ConfigManager:
    """
    Manages engine configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Schema validation
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration manager.

        Args:
            config_dict: Optional pre-loaded configuration dictionary
        """
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Args:
            file_path: Path to YAML configuration file

        Returns:
            ConfigManager: Initialized with file contents

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            ) from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._config = manager._interpolate(manager._config)
        return manager

    def _interpolate(self, value: Any) -> Any:
        """Recursively replace ${ENV_VAR} patterns in strings."""
        if isinstance(value, dict):
            return {key: self._interpolate(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._interpolate(item) for item in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g. "spectral.fft_size")
            default: Default value if key not found
            required: If True, raise error when key not found

        Returns:
            Configuration value or default

        Raises:
            ConfigurationError: If required key is not found
        """
        value: Any = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Get an entire configuration section (empty dict if not found)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return a deep copy of the configuration."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "spectral.fft_size": {"type": int, "required": True, "min": 2},
                "spectral.estimator": {"choices": ["auto", "direct"]},
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            expected_type = rules.get("type")
            # bool is an int subclass; never accept it for numeric keys
            if expected_type and (
                not isinstance(value, expected_type) or isinstance(value, bool)
            ):
                type_name = getattr(expected_type, "__name__", str(expected_type))
                raise ConfigurationError(
                    f"Invalid type for {key}: expected {type_name}, "
                    f"got {type(value).__name__}",
                    config_key=key
                )

            if "min" in rules and value < rules["min"]:
                raise ConfigurationError(
                    f"{key} must be >= {rules['min']}, got {value}",
                    config_key=key
                )

            if "choices" in rules and value not in rules["choices"]:
                raise ConfigurationError(
                    f"{key} must be one of {rules['choices']}, got {value!r}",
                    config_key=key
                )


ENGINE_SCHEMA: Dict[str, Dict[str, Any]] = {
    "spectral.fft_size": {"type": int, "required": True, "min": 2},
    "spectral.estimator": {"choices": ["auto", "accelerated", "direct"]},
    "spectral.db_floor": {"type": (int, float)},
    "spectrogram.window_size": {"type": int, "required": True, "min": 2},
    "spectrogram.hop_size": {"type": int, "required": True, "min": 1},
    "pitch.threshold": {"type": (int, float), "min": 0},
    "transforms.ola_window": {"type": int, "min": 4},
    "engine.yield_interval": {"type": int, "min": 1},
    "engine.timeout": {"type": (int, float), "min": 0},
    "tempo.min_bpm": {"type": (int, float), "min": 1},
    "tempo.max_bpm": {"type": (int, float), "min": 1},
    "tempo.ola_gain": {"type": (int, float), "min": 0},
    "tempo.quality": {"choices": ["fast", "standard", "high"]},
    "loudness.target_peak_db": {"type": (int, float)},
    "loudness.limiter_threshold": {"type": (int, float), "min": 0},
    "logging.level": {"choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
    "logging.format": {"choices": ["text", "json"]},
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Layer *override* over a deep copy of *base*, section by section.

    Nested mappings merge key by key; any other value replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file layered over the defaults.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml" then "config.yaml"

    Returns:
        Dict[str, Any]: Configuration dictionary

    Raises:
        ConfigurationError: If an explicit path is missing or the result
            fails schema validation
    """
    if config_path is not None and not Path(config_path).exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            config_key=str(config_path)
        )

    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
            Path(__file__).parent.parent.parent / "config" / "config.yaml",
        ]
        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    config = get_default_config()
    if config_path:
        config = merge_config(config, ConfigManager.from_file(Path(config_path)).to_dict())

    ConfigManager(config).validate(ENGINE_SCHEMA)
    return config


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "spectral": {
            "fft_size": 2048,
            "estimator": "auto",
            "db_floor": -100.0,
            "bands": {
                "low": [20.0, 250.0],
                "mid": [250.0, 4000.0],
            },
        },
        "pitch": {
            "threshold": 0.15,
            "interactive": {
                "min_frequency": 80.0,
                "max_frequency": 1000.0,
                "window": 0.1,
                "hop": 0.05,
                "confidence_threshold": 0.5,
                "pitched_ratio": 0.3,
            },
            "batch": {
                "min_frequency": 50.0,
                "max_frequency": 2000.0,
                "rms_gate": 0.01,
                "confidence_threshold": 0.35,
            },
        },
        "spectrogram": {
            "window_size": 512,
            "hop_size": 128,
        },
        "transforms": {
            "ola_window": 2048,
            "ola_gain": 0.6,
            "trim_threshold": 0.005,
        },
        "mix": {
            "headroom": 0.99,
        },
        "tempo": {
            "min_bpm": 60.0,
            "max_bpm": 200.0,
            "ola_gain": 0.7,
            "quality": "standard",
        },
        "loudness": {
            "target_peak_db": -1.0,
            "limiter_threshold": 0.95,
        },
        "engine": {
            "yield_interval": 10,
            "timeout": None,
        },
        "logging": {
            "level": "INFO",
            "format": "text",
            "file": None,
            "console": True,
            "colored": True,
        },
    }
