"""
Provider interfaces package.

This package contains the abstract provider interface and the shared message
and result types used by the reply engine.
"""

from .llm_provider_interface import (
    LLMProviderInterface,
    GenerationResult,
    FailureKind,
    RETRYABLE_KINDS,
    LLMError,
    LLMConnectionError,
    InvalidProviderError,
    MessageRole,
    Message
)

__all__ = [
    'LLMProviderInterface',
    'GenerationResult',
    'FailureKind',
    'RETRYABLE_KINDS',
    'LLMError',
    'LLMConnectionError',
    'InvalidProviderError',
    'MessageRole',
    'Message'
]
