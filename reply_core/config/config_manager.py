"""
Centralized Configuration Management System

This module provides the configuration system for the reply engine:
- Centralizes provider credentials, timeouts, memory limits and logging settings
- Supports environment-specific overrides
- Validates configuration on startup and fails fast on invalid values
- Provides type-safe access to configuration values
"""

import os
import json
import yaml
import logging
from typing import Any, Dict, List, Optional, Union
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum

from reply_core.persona import DEFAULT_APOLOGIES, DEFAULT_SYSTEM_PROMPT

KNOWN_PROVIDERS = ("gemini", "groq")
LOG_FORMATS = ("console", "json")


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ConfigurationError(Exception):
    """Raised when configuration validation fails"""

    pass


def parse_api_keys(value: Union[str, List[str], None]) -> List[str]:
    """
    Parse a delimited credential value into an ordered list.

    Entries are trimmed and empty entries dropped. Lists (from YAML/JSON files)
    are normalised the same way.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(key).strip() for key in value if str(key).strip()]


def mask_key(raw_key: str, idx: int) -> str:
    tail = raw_key[-4:] if raw_key else "xxxx"
    return f"key{idx + 1}-***{tail}"


@dataclass
class GeminiProviderConfig:
    """Google Gemini provider configuration"""

    api_keys: List[str] = field(default_factory=list)
    model_name: str = "gemini-2.0-flash"
    temperature: float = 0.85
    max_tokens: int = 500


@dataclass
class GroqProviderConfig:
    """Groq provider configuration (OpenAI-compatible endpoint)"""

    api_keys: List[str] = field(default_factory=list)
    model_name: str = "llama-3.3-70b-versatile"
    base_url: str = "https://api.groq.com/openai/v1"
    temperature: float = 0.85
    max_tokens: int = 500


@dataclass
class ProvidersConfig:
    """Text-generation providers and the default primary"""

    default_provider: str = "gemini"
    gemini: GeminiProviderConfig = field(default_factory=GeminiProviderConfig)
    groq: GroqProviderConfig = field(default_factory=GroqProviderConfig)


@dataclass
class APIConfig:
    """Remote call behaviour"""

    timeout_ms: int = 15000
    max_retries: int = 1

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass
class MemoryConfig:
    """Conversation memory limits"""

    max_messages: int = 10
    cleanup_interval_ms: int = 30 * 60 * 1000
    inactivity_threshold_ms: int = 60 * 60 * 1000


@dataclass
class PersonaConfig:
    """Instruction prompt and failure replies"""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    apologies: List[str] = field(default_factory=lambda: list(DEFAULT_APOLOGIES))


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: LogLevel = LogLevel.INFO
    format: str = "console"  # console or json
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_console: bool = True


@dataclass
class AppConfig:
    """Main application configuration"""

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    api: APIConfig = field(default_factory=APIConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    persona: PersonaConfig = field(default_factory=PersonaConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class ConfigManager:
    """
    Configuration manager with support for:
    - Environment-specific configurations
    - Environment variable overrides
    - Configuration validation
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None, validate: bool = True):
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            # Look for config directory relative to project root
            project_root = Path(__file__).parent.parent.parent
            self.config_dir = project_root / "config"

        self.config: AppConfig = AppConfig()
        self.logger = logging.getLogger(__name__)

        self._load_configuration(validate)

    def _load_configuration(self, validate: bool = True):
        """Load configuration from multiple sources in priority order"""
        # 1. Load default configuration
        self.config = AppConfig()

        # 2. Load base configuration file
        self._load_from_file("config.yaml")
        self._load_from_file("config.json")

        # 3. Load environment-specific configuration
        env = os.getenv("ENVIRONMENT", "development").lower()
        self._load_from_file(f"environments/config.{env}.yaml")
        self._load_from_file(f"environments/config.{env}.json")

        # 4. Load from environment variables (highest priority)
        self._load_from_environment()

        # 5. Validate configuration
        if validate:
            self.validate()

    def _load_from_file(self, filename: str):
        """Load configuration from YAML/JSON file"""
        file_path = self.config_dir / filename
        if not file_path.exists():
            return

        try:
            with open(file_path, "r") as f:
                if filename.endswith(".yaml") or filename.endswith(".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration from {filename}: {e}")

        if data:
            self._update_config_from_dict(data)
            self.logger.info(f"Loaded configuration from {filename}")

    def _load_from_environment(self):
        """Load configuration from environment variables"""
        env_mappings = {
            # Environment
            "ENVIRONMENT": ("environment", lambda x: Environment(x.lower())),
            "DEBUG": ("debug", _as_bool),
            # Providers
            "GEMINI_API_KEY": ("providers.gemini.api_keys", parse_api_keys),
            "GEMINI_MODEL": ("providers.gemini.model_name", str),
            "GROQ_API_KEY": ("providers.groq.api_keys", parse_api_keys),
            "GROQ_MODEL": ("providers.groq.model_name", str),
            "DEFAULT_PROVIDER": ("providers.default_provider", lambda x: x.strip().lower()),
            # Remote calls
            "API_TIMEOUT_MS": ("api.timeout_ms", int),
            "API_MAX_RETRIES": ("api.max_retries", int),
            # Memory
            "MEMORY_MAX_MESSAGES": ("memory.max_messages", int),
            "MEMORY_CLEANUP_INTERVAL_MS": ("memory.cleanup_interval_ms", int),
            "MEMORY_INACTIVITY_THRESHOLD_MS": ("memory.inactivity_threshold_ms", int),
            # Logging
            "LOG_LEVEL": ("logging.level", lambda x: LogLevel(x.upper())),
            "LOG_FORMAT": ("logging.format", lambda x: x.strip().lower()),
            "LOG_FILE": ("logging.file_path", str),
        }

        for env_var, (config_path, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    converted_value = converter(value)
                    self._set_nested_attr(self.config, config_path, converted_value)
                except (ValueError, TypeError) as e:
                    self.logger.warning(f"Invalid value for {env_var}: {value}, error: {e}")

    def _update_config_from_dict(self, data: Dict[str, Any], prefix: str = ""):
        """Update configuration from dictionary recursively"""
        for key, value in data.items():
            config_path = f"{prefix}.{key}" if prefix else key

            if isinstance(value, dict):
                self._update_config_from_dict(value, config_path)
            else:
                try:
                    # Handle enum and list conversions for file-based config
                    if config_path == "environment" and isinstance(value, str):
                        value = Environment(value.lower())
                    elif config_path == "logging.level" and isinstance(value, str):
                        value = LogLevel(value.upper())
                    elif config_path.endswith(".api_keys"):
                        value = parse_api_keys(value)

                    self._set_nested_attr(self.config, config_path, value)

                except AttributeError:
                    self.logger.warning(f"Unknown configuration key: {config_path}")
                except ValueError as e:
                    self.logger.warning(f"Invalid value for {config_path}: {value}, error: {e}")

    def _set_nested_attr(self, obj: Any, path: str, value: Any):
        """Set nested attribute using dot notation"""
        parts = path.split(".")
        for part in parts[:-1]:
            obj = getattr(obj, part)
        if not hasattr(obj, parts[-1]):
            raise AttributeError(parts[-1])
        setattr(obj, parts[-1], value)

    def validate(self):
        """
        Validate configuration settings.

        Raises:
            ConfigurationError: Listing every problem found
        """
        errors = []
        providers = self.config.providers

        # Every provider needs at least one credential
        if not providers.gemini.api_keys:
            errors.append("GEMINI_API_KEY must contain at least one key")
        if not providers.groq.api_keys:
            errors.append("GROQ_API_KEY must contain at least one key")

        if providers.default_provider not in KNOWN_PROVIDERS:
            errors.append(
                f"Default provider must be one of {', '.join(KNOWN_PROVIDERS)}, "
                f"got '{providers.default_provider}'"
            )

        if self.config.api.timeout_ms <= 0:
            errors.append("API timeout must be positive")
        if self.config.api.max_retries < 0:
            errors.append("API max retries cannot be negative")

        memory = self.config.memory
        if memory.max_messages < 1:
            errors.append("Memory max messages must be at least 1")
        if memory.cleanup_interval_ms <= 0:
            errors.append("Memory cleanup interval must be positive")
        if memory.inactivity_threshold_ms <= 0:
            errors.append("Memory inactivity threshold must be positive")

        if not self.config.persona.apologies:
            errors.append("At least one apology reply is required")

        if self.config.logging.format not in LOG_FORMATS:
            errors.append(f"Log format must be one of {', '.join(LOG_FORMATS)}")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        self.logger.info(
            f"Configuration validation passed "
            f"(gemini: {len(providers.gemini.api_keys)} key(s), "
            f"groq: {len(providers.groq.api_keys)} key(s))"
        )

    def reload_configuration(self):
        """Reload configuration from all sources"""
        self._load_configuration()
        self.logger.info("Configuration reloaded successfully")

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        try:
            obj = self.config
            for part in path.split("."):
                obj = getattr(obj, part)
            return obj
        except AttributeError:
            return default

    def set(self, path: str, value: Any):
        """Set configuration value using dot notation"""
        self._set_nested_attr(self.config, path, value)
        self.validate()

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert configuration to dictionary"""

        def _asdict_recursive(obj):
            if hasattr(obj, "__dict__"):
                result = {}
                for key, value in obj.__dict__.items():
                    if isinstance(value, Enum):
                        result[key] = value.value
                    elif hasattr(value, "__dict__"):
                        result[key] = _asdict_recursive(value)
                    elif key == "api_keys" and mask_secrets:
                        result[key] = [mask_key(k, i) for i, k in enumerate(value)]
                    elif isinstance(value, list):
                        result[key] = list(value)
                    else:
                        result[key] = value
                return result
            return obj

        return _asdict_recursive(self.config)


# Process-wide default configuration
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get the default configuration manager, loading it on first use"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def init_config(config_dir: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Initialize the default configuration manager"""
    global _config_manager
    _config_manager = ConfigManager(config_dir)
    return _config_manager
