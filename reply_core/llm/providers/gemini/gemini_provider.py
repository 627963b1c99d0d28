"""
Google Gemini provider implementation.

This module implements the LLMProviderInterface for Google's Gemini API using
the google-genai SDK. Failures are classified from the SDK's structured
APIError status codes and error details.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors, types

from reply_core.llm.credential_pool import CredentialPool
from reply_core.llm.interfaces.llm_provider_interface import (
    LLMProviderInterface,
    FailureKind,
    MessageRole,
    Message,
    LLMError,
    LLMConnectionError,
)

INVALID_KEY_REASONS = {"API_KEY_INVALID", "API_KEY_EXPIRED"}


def _error_reasons(details: Any) -> List[str]:
    """Collect every ErrorInfo 'reason' found in a Gemini error payload."""
    reasons = []
    if isinstance(details, dict):
        reason = details.get("reason")
        if isinstance(reason, str):
            reasons.append(reason)
        for value in details.values():
            reasons.extend(_error_reasons(value))
    elif isinstance(details, list):
        for item in details:
            reasons.extend(_error_reasons(item))
    return reasons


class GeminiLLMProvider(LLMProviderInterface):
    """
    Google Gemini provider.

    The instruction is sent as the system instruction and the history as
    alternating user/model contents.
    """

    provider_id = "gemini"

    def __init__(self, config: Dict[str, Any], pool: CredentialPool):
        """
        Initialize the Gemini provider.

        Args:
            config: Configuration dictionary with keys:
                - model_name: Gemini model name (default: 'gemini-2.0-flash')
                - temperature: Sampling temperature (default: 0.85)
                - max_tokens: Maximum output tokens (default: 500)
                - timeout: Per-call timeout in seconds (default: 15)
            pool: Credential pool with the Gemini API keys
        """
        super().__init__(config, pool)
        self.logger = logging.getLogger(__name__)

    def get_default_model(self) -> str:
        """Get the default model name for Gemini provider."""
        return "gemini-2.0-flash"

    def _create_client(self, api_key: str) -> Any:
        try:
            return genai.Client(api_key=api_key)
        except Exception as e:
            raise LLMConnectionError(f"Failed to initialize Gemini client: {str(e)}")

    @staticmethod
    def _conversation_turns(history: List[Message]) -> List[Message]:
        """Drop turns ahead of the first user turn. Gemini contents must open with a user turn."""
        for index, msg in enumerate(history):
            if msg.role == MessageRole.USER:
                return history[index:]
        return []

    def _format_messages(self, history: List[Message], instruction: str) -> List[Dict[str, Any]]:
        """
        Convert conversation messages to Gemini contents.

        With no history the instruction itself becomes the single user turn.
        """
        history = self._conversation_turns(history)
        if not history:
            return [{"role": "user", "parts": [{"text": instruction}]}]

        contents = []
        for msg in history:
            role = "user" if msg.role == MessageRole.USER else "model"
            contents.append({"role": role, "parts": [{"text": msg.content}]})
        return contents

    def _build_config(self, history: List[Message], instruction: str) -> types.GenerateContentConfig:
        history = self._conversation_turns(history)
        system_instruction: Optional[str] = instruction if history else None
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )

    async def _send(self, client: Any, history: List[Message], instruction: str) -> str:
        response = await client.aio.models.generate_content(
            model=self.model_name,
            contents=self._format_messages(history, instruction),
            config=self._build_config(history, instruction),
        )

        text = response.text
        if not text:
            raise LLMError("Empty response from Gemini API")
        return text

    def _classify_error(self, error: Exception) -> FailureKind:
        if isinstance(error, httpx.TimeoutException):
            return FailureKind.TIMEOUT

        if isinstance(error, errors.APIError):
            if error.code == 429:
                return FailureKind.RATE_LIMITED
            if error.code in (401, 403):
                return FailureKind.INVALID_CREDENTIAL
            if error.code == 400 and INVALID_KEY_REASONS.intersection(_error_reasons(error.details)):
                return FailureKind.INVALID_CREDENTIAL

        return FailureKind.OTHER
