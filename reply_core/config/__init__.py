from .config_manager import (
    AppConfig,
    ConfigManager,
    ConfigurationError,
    Environment,
    LoggingConfig,
    get_config,
    init_config,
    parse_api_keys,
)

__all__ = [
    "AppConfig",
    "ConfigManager",
    "ConfigurationError",
    "Environment",
    "LoggingConfig",
    "get_config",
    "init_config",
    "parse_api_keys",
]
