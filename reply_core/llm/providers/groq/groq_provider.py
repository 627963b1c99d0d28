"""
Groq provider implementation.

Groq serves an OpenAI-compatible chat completions API, so this provider drives
it with the openai SDK pointed at Groq's base URL. Failures are classified from
the SDK's typed exceptions.
"""

import logging
from typing import Any, Dict, List

import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from reply_core.llm.credential_pool import CredentialPool
from reply_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    FailureKind,
    Message,
    LLMError,
    LLMConnectionError,
)


class GroqLLMProvider(LLMProviderInterface):
    """
    Groq provider.

    The instruction is sent as a leading system message followed by the history.
    """

    provider_id = "groq"

    def __init__(self, config: Dict[str, Any], pool: CredentialPool):
        """
        Initialize the Groq provider.

        Args:
            config: Configuration dictionary with keys:
                - model_name: Groq model name (default: 'llama-3.3-70b-versatile')
                - base_url: API base URL (default: Groq's OpenAI-compatible endpoint)
                - temperature: Sampling temperature (default: 0.85)
                - max_tokens: Maximum output tokens (default: 500)
                - timeout: Per-call timeout in seconds (default: 15)
            pool: Credential pool with the Groq API keys
        """
        super().__init__(config, pool)
        self.logger = logging.getLogger(__name__)
        self.base_url = config.get("base_url", "https://api.groq.com/openai/v1")

    def get_default_model(self) -> str:
        """Get the default model name for Groq provider."""
        return "llama-3.3-70b-versatile"

    def _create_client(self, api_key: str) -> Any:
        try:
            # The credential pool decides about retries, not the SDK
            return AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        except Exception as e:
            raise LLMConnectionError(f"Failed to initialize Groq client: {str(e)}")

    def _format_messages(self, history: List[Message], instruction: str) -> List[Dict[str, str]]:
        """Convert conversation messages to the chat completions format."""
        formatted = [{"role": "system", "content": instruction}]
        for msg in history:
            formatted.append(msg.to_dict())
        return formatted

    async def _send(self, client: Any, history: List[Message], instruction: str) -> str:
        response: ChatCompletion = await client.chat.completions.create(
            model=self.model_name,
            messages=self._format_messages(history, instruction),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        if not response.choices or not response.choices[0].message:
            raise LLMError("Empty response from Groq API")

        return response.choices[0].message.content or ""

    def _classify_error(self, error: Exception) -> FailureKind:
        if isinstance(error, openai.APITimeoutError):
            return FailureKind.TIMEOUT
        if isinstance(error, openai.RateLimitError):
            return FailureKind.RATE_LIMITED
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return FailureKind.INVALID_CREDENTIAL
        return FailureKind.OTHER

    async def close(self):
        for client in self._clients.values():
            await client.close()
        await super().close()
