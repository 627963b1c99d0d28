"""
Configuration file for pytest.

This file configures pytest to properly load environment variables
and provides shared fixtures for tests.
"""

import asyncio

import dotenv
import pytest

from reply_core.config.config_manager import AppConfig
from reply_core.llm.credential_pool import CredentialPool
from reply_core.llm.interfaces.llm_provider_interface import (
    FailureKind,
    LLMProviderInterface,
)

# Load environment variables from .env file
dotenv.load_dotenv()

HANG = "hang"


class ScriptedProviderError(Exception):
    """Error carrying the FailureKind a scripted provider should report."""

    def __init__(self, kind: FailureKind):
        super().__init__(f"scripted {kind.value}")
        self.kind = kind


class ScriptedProvider(LLMProviderInterface):
    """
    Provider whose remote calls follow a script.

    Each script entry is consumed by one remote call: a string is returned as
    generated text, a FailureKind is raised as a classified error, an exception
    is raised as-is and HANG sleeps past the timeout. An exhausted script
    answers "ok".
    """

    def __init__(self, provider_id, keys=("k0",), outcomes=(), timeout=15.0):
        self.provider_id = provider_id
        super().__init__({"timeout": timeout}, CredentialPool(provider_id, list(keys)))
        self.outcomes = list(outcomes)
        self.calls = []

    def get_default_model(self) -> str:
        return "scripted-model"

    def _create_client(self, api_key):
        return api_key

    async def _send(self, client, history, instruction):
        self.calls.append({"key": client, "history": list(history), "instruction": instruction})
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if outcome == HANG:
            await asyncio.sleep(10)
        if isinstance(outcome, FailureKind):
            raise ScriptedProviderError(outcome)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def _classify_error(self, error):
        if isinstance(error, ScriptedProviderError):
            return error.kind
        return FailureKind.OTHER


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def app_config():
    """Application configuration with two keys per provider."""
    config = AppConfig()
    config.providers.gemini.api_keys = ["gemini-key-1", "gemini-key-2"]
    config.providers.groq.api_keys = ["groq-key-1", "groq-key-2"]
    return config

