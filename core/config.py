"""
Configuration management for the HSTS probe.
Provides centralized configuration with validation and environment-specific settings.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict
from enum import Enum


APP_NAME = "HSTSProbe"
VERSION = "1.0.0"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class Environment(Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class ProbeConfig:
    """Probe request settings."""
    timeout_ms: int = 5000
    use_get: bool = False
    follow_redirects: bool = True
    user_agent: str = f"{APP_NAME}/{VERSION}"


@dataclass
class OutputConfig:
    """Result rendering settings."""
    full_urls: bool = False
    format: str = "text"


OUTPUT_FORMATS = ("text", "json")


@dataclass
class HSTSProbeConfig:
    """Main configuration class for the HSTS probe."""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    probe: ProbeConfig = field(default_factory=ProbeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


class ConfigManager:
    """Manages configuration loading, validation, and access."""

    NESTED_CONFIGS = {
        'probe': ProbeConfig,
        'logging': LoggingConfig,
        'output': OutputConfig,
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._get_default_config_path()
        self._config: Optional[HSTSProbeConfig] = None
        self._load_config()

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        env = os.getenv("HSTSPROBE_ENV", "development")
        return f"config/{env}.yaml"

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        config_dict = {}

        if os.path.exists(self.config_path):
            with open(self.config_path, 'r', encoding='utf-8') as f:
                try:
                    if self.config_path.endswith('.yaml') or self.config_path.endswith('.yml'):
                        config_dict = yaml.safe_load(f) or {}
                    else:
                        config_dict = json.load(f)
                except (yaml.YAMLError, ValueError) as e:
                    raise ConfigValidationError(f"Cannot parse {self.config_path}: {e}") from e

        if not isinstance(config_dict, dict):
            raise ConfigValidationError(f"Configuration root must be a mapping: {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)
        self._config = self._dict_to_config(config_dict)
        self._validate_config()

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        env_mappings = {
            'HSTSPROBE_DEBUG': ('debug', bool),
            'HSTSPROBE_TIMEOUT_MS': ('probe.timeout_ms', int),
            'HSTSPROBE_USE_GET': ('probe.use_get', bool),
            'HSTSPROBE_FOLLOW_REDIRECTS': ('probe.follow_redirects', bool),
            'HSTSPROBE_USER_AGENT': ('probe.user_agent', str),
            'HSTSPROBE_FULL_URLS': ('output.full_urls', bool),
            'HSTSPROBE_OUTPUT_FORMAT': ('output.format', str),
            'HSTSPROBE_LOG_LEVEL': ('logging.level', str),
            'HSTSPROBE_LOG_FILE': ('logging.file_path', str),
        }

        for env_var, (config_path, value_type) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                if value_type == bool:
                    env_value = env_value.lower() in ('true', '1', 'yes', 'on')
                elif value_type == int:
                    try:
                        env_value = int(env_value)
                    except ValueError:
                        raise ConfigValidationError(f"{env_var} must be an integer, got {env_value!r}")

                self._set_nested_value(config_dict, config_path, env_value)

        return config_dict

    def _set_nested_value(self, config_dict: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config_dict

        for key in keys[:-1]:
            if key not in current or current[key] is None:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> HSTSProbeConfig:
        """Convert dictionary to HSTSProbeConfig object."""
        unknown = set(config_dict) - {'environment', 'debug'} - set(self.NESTED_CONFIGS)
        if unknown:
            raise ConfigValidationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        env_str = config_dict.get('environment', 'development')
        if isinstance(env_str, str):
            try:
                config_dict['environment'] = Environment(env_str)
            except ValueError:
                raise ConfigValidationError(f"Invalid environment: {env_str}")

        for key, config_class in self.NESTED_CONFIGS.items():
            if key in config_dict and isinstance(config_dict[key], dict):
                try:
                    config_dict[key] = config_class(**config_dict[key])
                except TypeError as e:
                    raise ConfigValidationError(f"Invalid '{key}' section: {e}")

        return HSTSProbeConfig(**config_dict)

    def _validate_config(self) -> None:
        """Validate the loaded configuration."""
        if not self._config:
            raise ConfigValidationError("Configuration not loaded")

        probe = self._config.probe
        if not isinstance(probe.timeout_ms, int) or probe.timeout_ms < 0:
            raise ConfigValidationError(f"Invalid timeout_ms: {probe.timeout_ms}")

        if not (probe.user_agent or "").strip():
            raise ConfigValidationError("user_agent must not be empty")

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if str(self._config.logging.level).upper() not in valid_levels:
            raise ConfigValidationError(f"Invalid logging level: {self._config.logging.level}")

        if self._config.output.format not in OUTPUT_FORMATS:
            raise ConfigValidationError(f"Invalid output format: {self._config.output.format}")

    @property
    def config(self) -> HSTSProbeConfig:
        """Get the current configuration."""
        if not self._config:
            raise RuntimeError("Configuration not loaded")
        return self._config

    def save_config(self, config_path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        path = config_path or self.config_path

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        config_dict = self._config_to_dict()

        with open(path, 'w', encoding='utf-8') as f:
            if path.endswith('.yaml') or path.endswith('.yml'):
                yaml.safe_dump(config_dict, f, default_flow_style=False)
            else:
                json.dump(config_dict, f, indent=2)

    def _config_to_dict(self) -> Dict[str, Any]:
        """Convert HSTSProbeConfig object to dictionary."""
        if not self._config:
            return {}

        result = {
            'environment': self._config.environment.value,
            'debug': self._config.debug,
        }
        for key in self.NESTED_CONFIGS:
            result[key] = asdict(getattr(self._config, key))

        return result


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> HSTSProbeConfig:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(config_path: Optional[str] = None) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_path)
    return _config_manager
