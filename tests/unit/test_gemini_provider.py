"""
Unit tests for the Google Gemini provider.

These tests verify message formatting, request construction and the mapping
of google-genai errors onto failure kinds.
"""

import pytest
import httpx
from unittest.mock import AsyncMock, Mock, patch

from google.genai import errors

from reply_core.llm.credential_pool import CredentialPool
from reply_core.llm.interfaces.llm_provider_interface import (
    FailureKind,
    LLMConnectionError,
    Message,
    MessageRole,
)
from reply_core.llm.providers.gemini.gemini_provider import GeminiLLMProvider


def make_client(text="Halo juga!"):
    """Build a mock genai client whose async generate_content returns text."""
    client = Mock()
    client.aio.models.generate_content = AsyncMock(return_value=Mock(text=text))
    return client


def api_error(code, reason=None, status="INVALID_ARGUMENT"):
    """Build a google-genai ClientError with an optional ErrorInfo reason."""
    error = {"code": code, "message": "request failed", "status": status}
    if reason:
        error["details"] = [
            {"@type": "type.googleapis.com/google.rpc.ErrorInfo", "reason": reason}
        ]
    return errors.ClientError(code, {"error": error})


@pytest.fixture
def provider():
    """Gemini provider with two keys."""
    return GeminiLLMProvider(
        {"temperature": 0.7, "max_tokens": 256, "timeout": 5.0},
        CredentialPool("gemini", ["gem-key-1", "gem-key-2"]),
    )


class TestGeminiInitialization:
    """Test provider initialization and configuration."""

    def test_defaults(self):
        provider = GeminiLLMProvider({}, CredentialPool("gemini", ["k"]))
        assert provider.model_name == "gemini-2.0-flash"
        assert provider.temperature == 0.85
        assert provider.max_tokens == 500
        assert provider.timeout == 15.0

    def test_custom_configuration(self, provider):
        assert provider.temperature == 0.7
        assert provider.max_tokens == 256
        assert provider.timeout == 5.0

    def test_client_created_per_key(self, provider):
        """Test that one SDK client is built and cached per key."""
        with patch("reply_core.llm.providers.gemini.gemini_provider.genai.Client") as mock_client:
            first = provider._get_client("gem-key-1")
            again = provider._get_client("gem-key-1")
            provider._get_client("gem-key-2")

        assert first is again
        assert mock_client.call_count == 2
        mock_client.assert_any_call(api_key="gem-key-1")
        mock_client.assert_any_call(api_key="gem-key-2")

    def test_client_failure_wrapped(self, provider):
        with patch(
            "reply_core.llm.providers.gemini.gemini_provider.genai.Client",
            side_effect=ValueError("bad"),
        ):
            with pytest.raises(LLMConnectionError, match="Failed to initialize Gemini client"):
                provider._create_client("gem-key-1")


class TestGeminiFormatting:
    """Test conversion of history into Gemini contents."""

    def test_empty_history_sends_instruction_as_user_turn(self, provider):
        contents = provider._format_messages([], "Kamu adalah Bini.")
        assert contents == [{"role": "user", "parts": [{"text": "Kamu adalah Bini."}]}]

        config = provider._build_config([], "Kamu adalah Bini.")
        assert config.system_instruction is None

    def test_history_roles_mapped(self, provider):
        history = [
            Message(MessageRole.USER, "Halo"),
            Message(MessageRole.ASSISTANT, "Hai sayang"),
        ]
        contents = provider._format_messages(history, "instr")

        assert [c["role"] for c in contents] == ["user", "model"]
        assert contents[1]["parts"][0]["text"] == "Hai sayang"

    def test_instruction_sent_as_system_instruction(self, provider):
        config = provider._build_config([Message(MessageRole.USER, "Halo")], "instr")
        assert config.system_instruction == "instr"
        assert config.temperature == 0.7
        assert config.max_output_tokens == 256

    def test_leading_assistant_turns_dropped(self, provider):
        """A trimmed history that opens with an assistant turn still opens with a user turn."""
        history = [
            Message(MessageRole.ASSISTANT, "Hai sayang"),
            Message(MessageRole.USER, "Lagi apa?"),
            Message(MessageRole.ASSISTANT, "Nungguin kamu"),
            Message(MessageRole.USER, "Aww"),
        ]
        contents = provider._format_messages(history, "instr")

        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[0]["parts"][0]["text"] == "Lagi apa?"
        assert provider._build_config(history, "instr").system_instruction == "instr"

    def test_only_assistant_turns_falls_back_to_instruction(self, provider):
        history = [Message(MessageRole.ASSISTANT, "Hai sayang")]

        contents = provider._format_messages(history, "instr")

        assert contents == [{"role": "user", "parts": [{"text": "instr"}]}]
        assert provider._build_config(history, "instr").system_instruction is None


class TestGeminiGeneration:
    """Test the remote call path."""

    @pytest.mark.asyncio
    async def test_generate_success(self, provider):
        client = make_client("Hai!")
        provider._clients["gem-key-1"] = client

        result = await provider.generate([Message(MessageRole.USER, "Halo")], "instr")

        assert result.success
        assert result.text == "Hai!"
        assert result.provider_name == "gemini"
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["contents"][0]["parts"][0]["text"] == "Halo"

    @pytest.mark.asyncio
    async def test_generate_with_trimmed_history(self, provider):
        client = make_client("Hai!")
        provider._clients["gem-key-1"] = client
        history = [
            Message(MessageRole.ASSISTANT, "jawaban lama"),
            Message(MessageRole.USER, "Halo lagi"),
        ]

        result = await provider.generate(history, "instr")

        assert result.success
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert [c["role"] for c in kwargs["contents"]] == ["user"]
        assert kwargs["contents"][0]["parts"][0]["text"] == "Halo lagi"
        assert kwargs["config"].system_instruction == "instr"

    @pytest.mark.asyncio
    async def test_empty_text_is_other_failure(self, provider):
        provider._clients["gem-key-1"] = make_client(text="")

        result = await provider.generate([], "instr")

        assert not result.success
        assert result.kind == FailureKind.OTHER
        assert "Empty response" in result.error
        assert provider.pool.current_index == 0

    @pytest.mark.asyncio
    async def test_rate_limit_rotates_to_second_key(self, provider):
        limited = Mock()
        limited.aio.models.generate_content = AsyncMock(
            side_effect=api_error(429, status="RESOURCE_EXHAUSTED")
        )
        provider._clients["gem-key-1"] = limited
        provider._clients["gem-key-2"] = make_client("dari kunci kedua")

        result = await provider.generate([], "instr")

        assert result.success
        assert result.text == "dari kunci kedua"
        assert provider.pool.current_index == 1
        assert provider.get_state()["errors"] == 1


class TestGeminiErrorClassification:
    """Test mapping of SDK errors onto failure kinds."""

    @pytest.mark.parametrize(
        "error,kind",
        [
            (api_error(429, status="RESOURCE_EXHAUSTED"), FailureKind.RATE_LIMITED),
            (api_error(401, status="UNAUTHENTICATED"), FailureKind.INVALID_CREDENTIAL),
            (api_error(403, status="PERMISSION_DENIED"), FailureKind.INVALID_CREDENTIAL),
            (api_error(400, reason="API_KEY_INVALID"), FailureKind.INVALID_CREDENTIAL),
            (api_error(400, reason="API_KEY_EXPIRED"), FailureKind.INVALID_CREDENTIAL),
            (api_error(400), FailureKind.OTHER),
            (api_error(404, status="NOT_FOUND"), FailureKind.OTHER),
            (httpx.ReadTimeout("read timed out"), FailureKind.TIMEOUT),
            (httpx.ConnectTimeout("connect timed out"), FailureKind.TIMEOUT),
            (ValueError("unexpected"), FailureKind.OTHER),
        ],
    )
    def test_classification(self, provider, error, kind):
        assert provider._classify(error) == kind

    def test_server_error_is_other(self, provider):
        error = errors.ServerError(503, {"error": {"code": 503, "status": "UNAVAILABLE"}})
        assert provider._classify(error) == FailureKind.OTHER
