"""
Generation orchestrator with primary/fallback dispatch.

This module provides the GenerationOrchestrator class that drives two providers,
a designated primary and its fallback, applies a bounded local retry to each,
records aggregate statistics and always hands a reply string back to the caller.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from reply_core.config.config_manager import AppConfig, ConfigurationError
from reply_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationResult,
    FailureKind,
    InvalidProviderError,
    Message,
)
from reply_core.persona import DEFAULT_APOLOGIES, get_apology


class DispatchState(Enum):
    """Where the last generate call got to."""
    TRYING_PRIMARY = "trying_primary"
    TRYING_FALLBACK = "trying_fallback"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class OrchestratorConfig:
    """Configuration for the GenerationOrchestrator."""
    primary_provider: str = "gemini"
    max_retries: int = 1
    apologies: List[str] = field(default_factory=lambda: list(DEFAULT_APOLOGIES))

    @classmethod
    def from_app_config(cls, config: AppConfig) -> "OrchestratorConfig":
        return cls(
            primary_provider=config.providers.default_provider,
            max_retries=config.api.max_retries,
            apologies=list(config.persona.apologies),
        )


class GenerationOrchestrator:
    """
    Primary/fallback dispatcher over exactly two providers.

    generate() never raises: when both providers fail it returns one of the
    configured apology strings.
    """

    def __init__(
        self,
        providers: Dict[str, LLMProviderInterface],
        config: Optional[OrchestratorConfig] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            providers: Mapping of provider id to provider, exactly two entries
            config: Orchestrator configuration. If None, uses defaults.

        Raises:
            ConfigurationError: If the provider set or the apology set is invalid
            InvalidProviderError: If the configured primary is not a known provider
        """
        self.config = config or OrchestratorConfig()
        self.logger = logging.getLogger(__name__)

        if len(providers) != 2:
            raise ConfigurationError(
                f"Exactly two providers are required, got {len(providers)}"
            )
        if not self.config.apologies:
            raise ConfigurationError("At least one apology reply is required")
        if self.config.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")

        self.providers: Dict[str, LLMProviderInterface] = dict(providers)
        if self.config.primary_provider not in self.providers:
            raise InvalidProviderError(
                f"Unknown primary provider '{self.config.primary_provider}'. "
                f"Use one of: {', '.join(self.providers)}"
            )

        self.active_primary: str = self.config.primary_provider
        self.fallback_count = 0
        self.last_error: Optional[Dict[str, Any]] = None
        self.last_dispatch_state: Optional[DispatchState] = None

        self.logger.info(
            f"Initialized orchestrator with primary {self.active_primary}, "
            f"fallback {self.fallback_provider}"
        )

    @property
    def fallback_provider(self) -> str:
        return next(name for name in self.providers if name != self.active_primary)

    def _record_error(self, provider_name: str, result: GenerationResult):
        self.last_error = {
            "provider": provider_name,
            "kind": result.kind.value if result.kind else None,
            "message": result.error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _attempt(
        self, provider_name: str, history: Sequence[Message], instruction: str
    ) -> GenerationResult:
        """
        Call one provider, retrying locally up to max_retries times.

        Returns:
            The first successful result, or the last failure
        """
        provider = self.providers[provider_name]
        retries = 0

        while True:
            try:
                result = await provider.generate(history, instruction)
            except Exception as e:
                self.logger.error(f"{provider_name}: unexpected error: {e}")
                result = GenerationResult.failure(
                    provider_name, FailureKind.OTHER, str(e) or e.__class__.__name__, 0
                )

            if result.success:
                return result

            self._record_error(provider_name, result)
            if retries >= self.config.max_retries:
                return result

            retries += 1
            self.logger.warning(f"{provider_name} failed, retrying... (attempt {retries})")

    async def _dispatch(self, history: Sequence[Message], instruction: str) -> str:
        primary = self.active_primary
        fallback = self.fallback_provider

        self.last_dispatch_state = DispatchState.TRYING_PRIMARY
        self.logger.debug(f"Trying primary provider: {primary}")
        current = primary
        result = await self._attempt(primary, history, instruction)

        if not result.success:
            self.logger.warning(
                f"Primary provider ({primary}) failed, falling back to {fallback}"
            )
            self.fallback_count += 1
            self.last_dispatch_state = DispatchState.TRYING_FALLBACK
            current = fallback
            result = await self._attempt(fallback, history, instruction)

        if result.success:
            if self.last_error and self.last_error["provider"] == current:
                self.last_error = None
            self.last_dispatch_state = DispatchState.SUCCEEDED
            return result.text

        self.logger.error("Both providers failed, returning apology")
        self.last_dispatch_state = DispatchState.EXHAUSTED
        return get_apology(self.config.apologies)

    async def generate(self, history: Sequence[Message], instruction: str) -> str:
        """
        Produce a reply for this history.

        Args:
            history: Conversation messages in chronological order
            instruction: Instruction/system text for the providers

        Returns:
            Generated text, or an apology string if both providers failed
        """
        try:
            return await self._dispatch(list(history or []), instruction)
        except Exception as e:
            self.logger.error(f"Generation failed unexpectedly: {e}")
            self.last_dispatch_state = DispatchState.EXHAUSTED
            return get_apology(self.config.apologies)

    def switch_provider(self, name: str) -> Dict[str, str]:
        """
        Make a provider the primary.

        Args:
            name: Provider id to use as primary

        Returns:
            Dictionary with the previous and current primary

        Raises:
            InvalidProviderError: If name is not a known provider
        """
        if name not in self.providers:
            raise InvalidProviderError(
                f"Invalid provider '{name}'. Use one of: {', '.join(self.providers)}"
            )

        previous = self.active_primary
        self.active_primary = name
        self.logger.info(f"Provider switched: {previous} -> {name}")
        return {"previous": previous, "current": name}

    def get_stats(self) -> Dict[str, Any]:
        """
        Get a snapshot of the orchestrator statistics.

        Returns:
            Fresh dictionary; mutating it does not affect the orchestrator
        """
        return {
            "providers": {name: p.get_state() for name, p in self.providers.items()},
            "fallbacks": self.fallback_count,
            "current_provider": self.active_primary,
            "last_error": dict(self.last_error) if self.last_error else None,
        }

    def reset_stats(self):
        """Zero counters and clear the last error. The primary is kept."""
        for provider in self.providers.values():
            provider.reset_counters()
        self.fallback_count = 0
        self.last_error = None
        self.logger.info("Statistics reset")

    async def close(self):
        """Release provider clients."""
        for provider in self.providers.values():
            await provider.close()
