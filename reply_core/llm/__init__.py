"""
Provider system for the reply engine.

This module provides the text-generation provider system: credential pools with
rotation on failure, provider adapters for Gemini and Groq, and the generation
orchestrator that dispatches between a primary and a fallback provider.

Features:
- Per-provider credential pools rotated on timeouts, rate limits and invalid keys
- Failure classification from the vendor SDKs' structured errors
- Primary/fallback dispatch with bounded local retry
- A reply string for every call, even when every provider fails
"""

from .credential_pool import CredentialPool

from .factory import (
    create_providers,
    LLMProviderFactory
)

from .manager import (
    GenerationOrchestrator,
    OrchestratorConfig,
    DispatchState
)

from .interfaces.llm_provider_interface import (
    LLMProviderInterface,
    GenerationResult,
    FailureKind,
    MessageRole,
    Message,
    LLMError,
    LLMConnectionError,
    InvalidProviderError
)

__all__ = [
    'CredentialPool',

    # Factory functions
    'create_providers',
    'LLMProviderFactory',

    # Orchestration
    'GenerationOrchestrator',
    'OrchestratorConfig',
    'DispatchState',

    # Interfaces and types
    'LLMProviderInterface',
    'GenerationResult',
    'FailureKind',
    'MessageRole',
    'Message',
    'LLMError',
    'LLMConnectionError',
    'InvalidProviderError'
]
