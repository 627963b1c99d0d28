"""
Abstract interface for text-generation providers.

This module defines the contract every provider adapter implements: turn a
conversation history plus an instruction into either generated text or a
classified failure, rotating through the provider's credential pool when the
failure kind justifies trying another key.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from reply_core.llm.credential_pool import CredentialPool


class MessageRole(Enum):
    """Roles for conversation messages."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A message in a conversation."""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class FailureKind(Enum):
    """Classified outcome of a failed provider call."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIAL = "invalid_credential"
    OTHER = "other"
    CREDENTIALS_EXHAUSTED = "credentials_exhausted"


# Failure kinds that justify moving on to the next key in the pool
RETRYABLE_KINDS = frozenset(
    {FailureKind.TIMEOUT, FailureKind.RATE_LIMITED, FailureKind.INVALID_CREDENTIAL}
)


@dataclass
class GenerationResult:
    """Outcome of one ProviderAdapter.generate call."""
    provider_name: str
    success: bool
    text: Optional[str] = None
    kind: Optional[FailureKind] = None
    retryable: bool = False
    error: Optional[str] = None
    attempts: int = 0
    response_time: Optional[float] = None

    @classmethod
    def ok(cls, provider_name: str, text: str, attempts: int, response_time: float) -> "GenerationResult":
        return cls(
            provider_name=provider_name,
            success=True,
            text=text,
            attempts=attempts,
            response_time=response_time,
        )

    @classmethod
    def failure(
        cls, provider_name: str, kind: FailureKind, error: str, attempts: int
    ) -> "GenerationResult":
        return cls(
            provider_name=provider_name,
            success=False,
            kind=kind,
            retryable=kind in RETRYABLE_KINDS,
            error=error,
            attempts=attempts,
        )


class LLMError(Exception):
    """Base exception for provider errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when a provider client cannot be created."""
    pass


class InvalidProviderError(LLMError):
    """Raised when an unknown provider id is requested."""
    pass


class LLMProviderInterface(ABC):
    """
    Abstract interface for text-generation providers.

    Subclasses supply the provider-specific pieces: client construction, the
    remote call and error classification. The credential rotation loop, the
    per-call timeout and the success/error counters live here so every provider
    behaves the same way.
    """

    provider_id: str = "base"

    def __init__(self, config: Dict[str, Any], pool: CredentialPool):
        """
        Initialize the provider.

        Args:
            config: Provider-specific configuration dictionary
            pool: Credential pool holding this provider's API keys
        """
        self.config = config
        self.pool = pool
        self.logger = logging.getLogger(self.__class__.__name__)

        # Extract common configuration
        self.model_name = config.get("model_name") or self.get_default_model()
        self.temperature = config.get("temperature", 0.85)
        self.max_tokens = config.get("max_tokens", 500)
        self.timeout = config.get("timeout", 15.0)

        self.success_count = 0
        self.error_count = 0
        self._clients: Dict[str, Any] = {}

    @abstractmethod
    def get_default_model(self) -> str:
        """
        Get the default model name for this provider.

        Returns:
            Default model name
        """
        pass

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        """
        Create an SDK client bound to one API key.

        Raises:
            LLMConnectionError: If the client cannot be created
        """
        pass

    @abstractmethod
    async def _send(self, client: Any, history: List[Message], instruction: str) -> str:
        """
        Issue one remote generation call.

        Args:
            client: Client returned by _create_client
            history: Conversation messages in chronological order
            instruction: Instruction/system text for this call

        Returns:
            Generated text

        Raises:
            Exception: Any SDK error, classified later by _classify_error
        """
        pass

    @abstractmethod
    def _classify_error(self, error: Exception) -> FailureKind:
        """Map an SDK error to a FailureKind."""
        pass

    def _get_client(self, api_key: str) -> Any:
        client = self._clients.get(api_key)
        if client is None:
            client = self._create_client(api_key)
            self._clients[api_key] = client
        return client

    def _classify(self, error: Exception) -> FailureKind:
        if isinstance(error, asyncio.TimeoutError):
            return FailureKind.TIMEOUT
        return self._classify_error(error)

    async def _attempt(self, api_key: str, history: List[Message], instruction: str) -> str:
        client = self._get_client(api_key)
        return await asyncio.wait_for(self._send(client, history, instruction), timeout=self.timeout)

    async def generate(
        self, history: Optional[Sequence[Message]], instruction: str
    ) -> GenerationResult:
        """
        Generate a reply, rotating through the credential pool on retryable failures.

        Each key is tried at most once per call. A non-retryable failure stops
        immediately on the current key.

        Args:
            history: Conversation messages in chronological order (may be empty)
            instruction: Instruction/system text for this call

        Returns:
            GenerationResult describing the text or the classified failure
        """
        messages = list(history or [])
        total = self.pool.size()
        tried = 0
        last_error = ""

        while tried < total:
            key_index = self.pool.current_index
            start_time = time.time()
            try:
                text = await self._attempt(self.pool.current(), messages, instruction)
            except Exception as e:
                kind = self._classify(e)
                tried += 1
                self.error_count += 1
                last_error = str(e) or e.__class__.__name__
                self.logger.warning(
                    f"{self.provider_id} key {key_index + 1} failed ({kind.value}): {last_error}"
                )

                if kind not in RETRYABLE_KINDS:
                    return GenerationResult.failure(self.provider_id, kind, last_error, tried)
                if tried < total:
                    self.pool.rotate()
                continue

            response_time = time.time() - start_time
            self.success_count += 1
            self.logger.info(
                f"{self.provider_id} response received ({len(text)} chars) in {response_time:.2f}s"
            )
            return GenerationResult.ok(self.provider_id, text, tried + 1, response_time)

        return GenerationResult.failure(
            self.provider_id,
            FailureKind.CREDENTIALS_EXHAUSTED,
            f"All {total} {self.provider_id} key(s) exhausted: {last_error}",
            tried,
        )

    def reset_counters(self):
        self.success_count = 0
        self.error_count = 0

    def get_state(self) -> Dict[str, Any]:
        """
        Get the provider's counters and key position.

        Returns:
            Provider state dictionary
        """
        return {
            "success": self.success_count,
            "errors": self.error_count,
            "current_key_index": self.pool.current_index,
            "total_keys": self.pool.size(),
        }

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get information about this provider.

        Returns:
            Provider information dictionary
        """
        return {
            "name": self.__class__.__name__,
            "provider": self.provider_id,
            "model": self.model_name,
            "config": {
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
                "timeout": self.timeout,
            },
        }

    async def close(self):
        """Release SDK clients."""
        self._clients.clear()
