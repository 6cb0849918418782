"""Configuration management for the contact merge engine."""

import copy
import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigurationError


@dataclass
class ScoringWeights:
    """Score contributions per matching dimension."""
    exact_email: int = 90
    email_domain: int = 20
    phone: int = 70
    social_profile: int = 70
    exact_name: int = 50
    partial_name_max: int = 40
    company: int = 15


@dataclass
class DedupeConfig:
    """Duplicate detection settings."""
    threshold: float = 60.0
    suggestion_threshold: float = 70.0
    suggestion_limit: int = 10
    min_phone_digits: int = 7
    name_partial_min: float = 0.6
    name_variant_min: float = 0.8
    use_blocking: bool = False
    weights: ScoringWeights = field(default_factory=ScoringWeights)


@dataclass
class StorageConfig:
    """Where the JSON store keeps its files."""
    data_dir: str = "data"
    contacts_file: str = "contacts.json"
    history_file: str = "merge_history.json"


@dataclass
class LoggingConfig:
    """Logging output settings."""
    level: str = "INFO"
    format: str = "text"
    log_file: Optional[str] = None


@dataclass
class CardaConfig:
    """Main configuration."""
    dedupe: DedupeConfig = field(default_factory=DedupeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardaConfig":
        """Build a config from a (possibly partial) nested dictionary."""
        dedupe_data = dict(data.get("dedupe", {}))
        try:
            weights = ScoringWeights(**dedupe_data.pop("weights", {}))
            return cls(
                dedupe=DedupeConfig(weights=weights, **dedupe_data),
                storage=StorageConfig(**data.get("storage", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration key: {e}") from e


class ConfigManager:
    """Manages configuration loading and validation."""

    DEFAULT_CONFIG = CardaConfig().to_dict()

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config manager.

        Args:
            config_path: Path to a JSON config file. If None, uses defaults + env vars
        """
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[CardaConfig] = None

    def load(self) -> CardaConfig:
        """Load configuration from file and environment."""
        if self._config:
            return self._config

        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(
                    f"Could not read config file {self.config_path}: {e}", cause=e
                ) from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    f"Config file {self.config_path} must contain a JSON object"
                )
            config_dict = self._deep_merge(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        config = CardaConfig.from_dict(config_dict)
        self._validate(config)
        self._config = config
        return self._config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        data_dir = os.getenv("CARDA_DATA_DIR")
        if data_dir:
            config.setdefault("storage", {})["data_dir"] = data_dir

        threshold = os.getenv("CARDA_DEDUPE_THRESHOLD")
        if threshold:
            try:
                config.setdefault("dedupe", {})["threshold"] = float(threshold)
            except ValueError as e:
                raise ConfigurationError(
                    f"CARDA_DEDUPE_THRESHOLD must be a number, got {threshold!r}"
                ) from e

        if os.getenv("CARDA_DEDUPE_BLOCKING", "").lower() in ("true", "1", "yes"):
            config.setdefault("dedupe", {})["use_blocking"] = True

        log_level = os.getenv("CARDA_LOG_LEVEL")
        if log_level:
            config.setdefault("logging", {})["level"] = log_level.upper()

        log_format = os.getenv("CARDA_LOG_FORMAT")
        if log_format:
            config.setdefault("logging", {})["format"] = log_format.lower()

        return config

    def _validate(self, config: CardaConfig) -> None:
        dedupe = config.dedupe
        for name in ("threshold", "suggestion_threshold"):
            value = getattr(dedupe, name)
            if not 0 <= value <= 100:
                raise ConfigurationError(f"dedupe.{name} must be between 0 and 100, got {value}")

        if dedupe.min_phone_digits < 1:
            raise ConfigurationError("dedupe.min_phone_digits must be positive")

        for name in ("name_partial_min", "name_variant_min"):
            if not 0 < getattr(dedupe, name) <= 1:
                raise ConfigurationError(f"dedupe.{name} must be in (0, 1]")

        if config.logging.format not in ("json", "text"):
            raise ConfigurationError(
                f"logging.format must be 'json' or 'text', got {config.logging.format!r}"
            )

    def save_template(self, path: str) -> None:
        """Save a configuration template file."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.DEFAULT_CONFIG, f, indent=2)

    @property
    def config(self) -> CardaConfig:
        """Get the loaded configuration."""
        if not self._config:
            self._config = self.load()
        return self._config
