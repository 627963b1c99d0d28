"""
Unit tests for the ReplyService facade.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock, patch

from google.genai import errors

from reply_core.llm.interfaces.llm_provider_interface import FailureKind, MessageRole
from reply_core.llm.manager import GenerationOrchestrator, OrchestratorConfig
from reply_core.llm.providers.gemini.gemini_provider import GeminiLLMProvider
from reply_core.llm.providers.groq.groq_provider import GroqLLMProvider
from reply_core.memory.conversation_memory import ConversationMemory
from reply_core.persona import DEFAULT_APOLOGIES
from reply_core.service import ReplyService


@pytest.fixture
def make_service(scripted_provider):
    """Factory building a service over two scripted providers."""

    def _make(gemini_outcomes=(), groq_outcomes=(), max_messages=10):
        providers = {
            "gemini": scripted_provider("gemini", outcomes=gemini_outcomes),
            "groq": scripted_provider("groq", outcomes=groq_outcomes),
        }
        orchestrator = GenerationOrchestrator(providers, OrchestratorConfig())
        memory = ConversationMemory(max_messages=max_messages)
        return ReplyService(orchestrator, memory, default_instruction="default instr")

    return _make


class TestRespond:
    """Test one conversational turn."""

    @pytest.mark.asyncio
    async def test_turn_stored_in_memory(self, make_service):
        service = make_service(gemini_outcomes=["Hai juga"])

        reply = await service.respond("c1", "Halo")

        assert reply == "Hai juga"
        history = service.get_history("c1")
        assert [(m.role, m.content) for m in history] == [
            (MessageRole.USER, "Halo"),
            (MessageRole.ASSISTANT, "Hai juga"),
        ]

    @pytest.mark.asyncio
    async def test_history_includes_current_message(self, make_service):
        service = make_service(gemini_outcomes=["satu", "dua"])
        await service.respond("c1", "pertama")

        await service.respond("c1", "kedua")

        call = service.orchestrator.providers["gemini"].calls[-1]
        assert [m.content for m in call["history"]] == ["pertama", "satu", "kedua"]
        assert call["instruction"] == "default instr"

    @pytest.mark.asyncio
    async def test_explicit_instruction(self, make_service):
        service = make_service()
        await service.respond("c1", "Halo", instruction="custom instr")
        assert service.orchestrator.providers["gemini"].calls[0]["instruction"] == "custom instr"

    @pytest.mark.asyncio
    async def test_apology_stored_when_both_fail(self, make_service):
        failures = [FailureKind.OTHER] * 4
        service = make_service(gemini_outcomes=failures, groq_outcomes=failures)

        reply = await service.respond("c1", "Halo")

        assert reply in DEFAULT_APOLOGIES
        assert service.get_history("c1")[-1].content == reply

    @pytest.mark.asyncio
    async def test_history_trimmed(self, make_service):
        service = make_service(max_messages=4)
        for i in range(5):
            await service.respond("c1", f"pesan {i}")

        history = service.get_history("c1")
        assert len(history) == 4
        assert history[0].content == "pesan 3"

    @pytest.mark.asyncio
    async def test_concurrent_turns_serialised(self, make_service):
        """Two concurrent turns on one conversation never interleave."""
        service = make_service(gemini_outcomes=["ok"] * 2)
        in_flight = []
        overlaps = []
        original_generate = service.orchestrator.generate

        async def slow_generate(history, instruction):
            if in_flight:
                overlaps.append(True)
            in_flight.append(True)
            await asyncio.sleep(0.01)
            in_flight.pop()
            return await original_generate(history, instruction)

        service.orchestrator.generate = slow_generate

        await asyncio.gather(service.respond("c1", "a"), service.respond("c1", "b"))

        assert overlaps == []
        roles = [m.role for m in service.get_history("c1")]
        assert roles == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.USER,
            MessageRole.ASSISTANT,
        ]

    @pytest.mark.asyncio
    async def test_different_conversations_run_concurrently(self, make_service):
        service = make_service()
        in_flight = []
        max_in_flight = []

        async def slow_generate(history, instruction):
            in_flight.append(True)
            max_in_flight.append(len(in_flight))
            await asyncio.sleep(0.01)
            in_flight.pop()
            return "ok"

        service.orchestrator.generate = slow_generate

        await asyncio.gather(service.respond("c1", "a"), service.respond("c2", "b"))

        assert max(max_in_flight) == 2


class TestDelegation:
    """Test operations passed through to the orchestrator and memory."""

    @pytest.mark.asyncio
    async def test_stats_and_switching(self, make_service):
        service = make_service()
        await service.respond("c1", "Halo")

        assert service.switch_provider("groq") == {"previous": "gemini", "current": "groq"}
        assert service.get_stats()["current_provider"] == "groq"
        assert service.get_stats()["providers"]["gemini"]["success"] == 1

        service.reset_stats()
        assert service.get_stats()["providers"]["gemini"]["success"] == 0

    @pytest.mark.asyncio
    async def test_generate_without_memory(self, make_service):
        service = make_service(gemini_outcomes=["langsung"])
        assert await service.generate([], "instr") == "langsung"
        assert service.memory_stats() == {"conversation_count": 0, "total_message_count": 0}

    def test_memory_operations(self, make_service):
        service = make_service()
        service.add_message("c1", "user", "Halo")

        assert service.memory_stats()["total_message_count"] == 1
        assert service.clear("c1") is True
        assert service.get_history("c1") == []

    @pytest.mark.asyncio
    async def test_close_stops_sweep(self, make_service):
        service = make_service()
        service.start_idle_sweep(interval=10)

        await service.close()

        assert not service.memory.sweep_running
        assert service.stop_idle_sweep() is False


class TestFromConfig:
    """Test building the service from configuration."""

    def test_from_config(self, app_config):
        app_config.providers.default_provider = "groq"
        app_config.api.timeout_ms = 2500
        app_config.memory.max_messages = 6

        service = ReplyService.from_config(app_config)

        providers = service.orchestrator.providers
        assert isinstance(providers["gemini"], GeminiLLMProvider)
        assert isinstance(providers["groq"], GroqLLMProvider)
        assert providers["gemini"].pool.size() == 2
        assert providers["groq"].timeout == 2.5
        assert service.orchestrator.active_primary == "groq"
        assert service.memory.max_messages == 6
        assert service.default_instruction == app_config.persona.system_prompt

    @pytest.mark.asyncio
    async def test_from_config_end_to_end_with_mocked_sdks(self, app_config):
        """Gemini is rate limited on every key, Groq answers."""
        gemini_client = Mock()
        gemini_client.aio.models.generate_content = AsyncMock(
            side_effect=errors.ClientError(429, {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED"}})
        )
        groq_client = Mock()
        groq_client.chat.completions.create = AsyncMock(
            return_value=Mock(choices=[Mock(message=Mock(content="dari groq"))])
        )
        groq_client.close = AsyncMock()

        with patch(
            "reply_core.llm.providers.gemini.gemini_provider.genai.Client",
            return_value=gemini_client,
        ), patch(
            "reply_core.llm.providers.groq.groq_provider.AsyncOpenAI", return_value=groq_client
        ):
            service = ReplyService.from_config(app_config)
            reply = await service.respond("c1", "Halo")
            await service.close()

        assert reply == "dari groq"
        stats = service.get_stats()
        assert stats["fallbacks"] == 1
        # Both Gemini keys tried on each of the two local attempts
        assert stats["providers"]["gemini"]["errors"] == 4
        assert stats["last_error"]["provider"] == "gemini"
        assert stats["last_error"]["kind"] == "credentials_exhausted"
