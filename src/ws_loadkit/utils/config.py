"""
Configuration loader for ws-loadkit.

This module provides configuration management with:
- Multiple configuration sources (JSON, YAML, TOML files, dicts, env vars)
- Schema validation with pydantic
- Type coercion
- Priority-based merging
"""

import os
import json
import yaml
import toml
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping, Union
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("ws-loadkit.config")

# Expiry used by the load scenario for every virtual user (year 2273)
DEFAULT_TOKEN_EXPIRY = 9590186316

ENV_PREFIX = "WSLOADKIT_"

# Variable names understood by the load-test harness
HARNESS_ENV_VARS = {
    "JWT_SECRET": "jwt_secret",
    "CENTRIFUGO_WS_URL": "ws_url",
    "CENTRIFUGO_API_URL": "api_url",
    "API_KEY": "api_key",
    "VUS": "vus",
    "DURATION": "duration",
    "EXTRA_CHANNELS_AMOUNT": "extra_channels_amount",
    "USER_PER_EXTRA_CHANNEL": "user_per_extra_channel",
}


class ConfigSource(BaseModel):
    """Configuration source definition."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "console"
    directory: Optional[Path] = None
    enable_sentry: bool = False
    sentry_dsn: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}")
        return v


class LoadTestConfig(BaseModel):
    """Load-test configuration."""
    jwt_secret: Optional[str] = None
    ws_url: Optional[str] = None
    api_url: Optional[str] = None
    api_key: Optional[str] = None

    vus: int = Field(default=50, ge=1)
    duration: int = Field(default=10, ge=1)  # seconds
    extra_channels_amount: int = Field(default=0, ge=0)
    user_per_extra_channel: int = Field(default=0, ge=0)
    namespace: str = "personal"
    token_expiry: int = DEFAULT_TOKEN_EXPIRY

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(validate_assignment=True)

    @model_validator(mode='after')
    def validate_extra_channels(self):
        """Extra channels must fit within the virtual users."""
        if self.extra_channels_amount >= self.vus:
            raise ValueError(
                f"Extra channels ({self.extra_channels_amount}) "
                f"must be fewer than VUs ({self.vus})"
            )
        if self.extra_channels_amount > 0 and self.user_per_extra_channel <= 0:
            raise ValueError(
                f"Extra channels ({self.extra_channels_amount}) require "
                f"user_per_extra_channel to be greater than 0"
            )
        if self.user_per_extra_channel * self.extra_channels_amount > self.vus:
            raise ValueError(
                f"Extra channels ({self.extra_channels_amount}) with "
                f"user_per_extra_channel ({self.user_per_extra_channel}) "
                f"cannot exceed VUs ({self.vus})"
            )
        return self


class ConfigLoader:
    """Configuration loader with multiple source support."""

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        """
        Initialize configuration loader.

        Args:
            env: Environment mapping to read; defaults to os.environ
        """
        self._sources: List[ConfigSource] = []
        self._config: Optional[LoadTestConfig] = None
        self._env = env

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Add configuration source.

        Args:
            source: Configuration source (file path or dict)
            priority: Source priority (higher wins)
            source_type: Source type (auto-detected if None)
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not source_type:
                source_type = self._detect_source_type(path)

            self._sources.append(ConfigSource(
                path=path,
                priority=priority,
                source_type=source_type
            ))
        else:
            self._sources.append(ConfigSource(
                data=source,
                priority=priority,
                source_type="dict"
            ))

    def _detect_source_type(self, path: Path) -> str:
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        elif suffix in (".yaml", ".yml"):
            return "yaml"
        elif suffix == ".toml":
            return "toml"
        else:
            raise ConfigurationError(f"Unknown config file type: {suffix}")

    def load(self) -> LoadTestConfig:
        """
        Load configuration from all sources.

        Sources are merged lowest priority first; environment variables are
        applied last and win over every file or dict source.

        Returns:
            Merged configuration

        Raises:
            ConfigurationError: If a source cannot be read or validation fails
        """
        merged_data: Dict[str, Any] = {}

        for source in sorted(self._sources, key=lambda s: s.priority):
            data = self._load_source(source)
            merged_data = self._deep_merge(merged_data, data)

        merged_data = self._deep_merge(merged_data, self._load_env_vars())

        try:
            self._config = LoadTestConfig(**merged_data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"]) or "config"
                errors.append(f"{field}: {error['msg']}")

            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}"
            ) from e

        logger.debug("configuration_loaded", sources=len(self._sources))
        return self._config

    def _load_source(self, source: ConfigSource) -> Dict[str, Any]:
        if source.path is None:
            return source.data

        if not source.path.exists():
            logger.warning("config_file_not_found", path=str(source.path))
            return {}

        content = source.path.read_text()

        try:
            if source.source_type == "json":
                return json.loads(content)
            elif source.source_type == "yaml":
                return yaml.safe_load(content) or {}
            elif source.source_type == "toml":
                return toml.loads(content)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to parse {source.path}: {e}"
            ) from e

        raise ConfigurationError(f"Unknown source type: {source.source_type}")

    def _load_env_vars(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env = os.environ if self._env is None else self._env
        result: Dict[str, Any] = {}

        for key, field_name in HARNESS_ENV_VARS.items():
            value = env.get(key)
            if value:
                result[field_name] = value

        for key, value in env.items():
            if not key.startswith(ENV_PREFIX):
                continue

            name = key[len(ENV_PREFIX):].lower()
            if name.startswith("logging_"):
                result.setdefault("logging", {})[name[len("logging_"):]] = value
            else:
                result[name] = value

        return result

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get_config(self) -> LoadTestConfig:
        """Get current configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config


def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None
) -> LoadTestConfig:
    """
    Load configuration from standard locations.

    Args:
        config_paths: Additional configuration paths
        extra_config: Extra configuration to merge
        env: Environment mapping; defaults to os.environ

    Returns:
        Loaded configuration
    """
    loader = ConfigLoader(env=env)

    default_paths = [
        Path("./ws-loadkit.yaml"),
        Path("./ws-loadkit.json"),
        Path("./ws-loadkit.toml"),
    ]

    for path in default_paths:
        if path.exists():
            loader.add_source(path, priority=10)

    if config_paths:
        for i, path in enumerate(config_paths):
            loader.add_source(path, priority=20 + i)

    if extra_config:
        loader.add_source(extra_config, priority=100)

    return loader.load()


__all__ = [
    'LoadTestConfig',
    'LoggingConfig',
    'ConfigLoader',
    'load_config',
    'DEFAULT_TOKEN_EXPIRY',
]
