"""
Provider factory for creating text-generation provider instances.

This module instantiates the configured providers, each with its own credential
pool, from the application configuration.
"""

import logging
from typing import Any, Dict, List, Type

from reply_core.config.config_manager import AppConfig
from reply_core.llm.credential_pool import CredentialPool
from reply_core.llm.interfaces.llm_provider_interface import (
    InvalidProviderError,
    LLMProviderInterface,
)
from reply_core.llm.providers.gemini.gemini_provider import GeminiLLMProvider
from reply_core.llm.providers.groq.groq_provider import GroqLLMProvider


class LLMProviderFactory:
    """
    Factory class for creating provider instances.

    Each created provider gets a fresh CredentialPool built from the keys in
    the provider's configuration section.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._providers: Dict[str, Type[LLMProviderInterface]] = {
            "gemini": GeminiLLMProvider,
            "groq": GroqLLMProvider,
        }

    def create_provider(self, provider_type: str, config: AppConfig) -> LLMProviderInterface:
        """
        Create a provider instance.

        Args:
            provider_type: Type of provider to create ('gemini', 'groq')
            config: Application configuration

        Returns:
            Configured provider instance

        Raises:
            InvalidProviderError: If the provider type is not supported
            ConfigurationError: If the provider has no API keys
        """
        if provider_type not in self._providers:
            raise InvalidProviderError(
                f"Unsupported provider type '{provider_type}'. "
                f"Available providers: {self.list_available_providers()}"
            )

        provider_config = self._get_provider_config(provider_type, config)
        pool = CredentialPool(provider_type, provider_config.pop("api_keys"))

        self.logger.info(f"Creating {provider_type} provider with {pool.size()} key(s)")
        return self._providers[provider_type](provider_config, pool)

    def _get_provider_config(self, provider_type: str, config: AppConfig) -> Dict[str, Any]:
        """Get configuration for a specific provider."""
        provider_section = getattr(config.providers, provider_type)
        provider_config = dict(provider_section.__dict__)
        provider_config["api_keys"] = list(provider_section.api_keys)
        provider_config["timeout"] = config.api.timeout_seconds
        return provider_config

    def create_providers(self, config: AppConfig) -> Dict[str, LLMProviderInterface]:
        """
        Create every registered provider.

        Args:
            config: Application configuration

        Returns:
            Mapping of provider id to provider instance
        """
        return {name: self.create_provider(name, config) for name in self._providers}

    def list_available_providers(self) -> List[str]:
        """
        List all available providers.

        Returns:
            List of provider type names
        """
        return list(self._providers.keys())


def create_providers(config: AppConfig) -> Dict[str, LLMProviderInterface]:
    """Create every registered provider."""
    return LLMProviderFactory().create_providers(config)
