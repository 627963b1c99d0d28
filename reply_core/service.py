"""
Reply service: the in-process entry point for the messaging-platform layer.

Bundles one GenerationOrchestrator and one ConversationMemory and exposes the
operations the platform integration needs. respond() runs a whole conversational
turn under the conversation's lock so concurrent triggers for the same
conversation cannot interleave their memory reads and writes.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from reply_core.config.config_manager import AppConfig
from reply_core.llm.factory import create_providers
from reply_core.llm.interfaces.llm_provider_interface import Message, MessageRole
from reply_core.llm.manager import GenerationOrchestrator, OrchestratorConfig
from reply_core.memory.conversation_memory import ConversationMemory
from reply_core.monitoring.logging_setup import conversation_context
from reply_core.persona import DEFAULT_SYSTEM_PROMPT


class ReplyService:
    """Facade over generation orchestration and conversation memory."""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        memory: ConversationMemory,
        default_instruction: str = DEFAULT_SYSTEM_PROMPT,
    ):
        self.orchestrator = orchestrator
        self.memory = memory
        self.default_instruction = default_instruction
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: AppConfig) -> "ReplyService":
        """
        Build the service, its providers and its memory from configuration.

        Raises:
            ConfigurationError: If a provider has no API keys
        """
        orchestrator = GenerationOrchestrator(
            create_providers(config), OrchestratorConfig.from_app_config(config)
        )
        memory = ConversationMemory.from_config(config.memory)
        return cls(orchestrator, memory, default_instruction=config.persona.system_prompt)

    async def respond(
        self, conversation_id: str, user_text: str, instruction: Optional[str] = None
    ) -> str:
        """
        Run one conversational turn.

        Appends the user text, generates a reply from the trimmed history and
        appends the reply, all while holding the conversation's lock.

        Returns:
            The reply text (never raises for provider failures)
        """
        instruction = instruction if instruction is not None else self.default_instruction

        with conversation_context(conversation_id):
            async with self.memory.turn(conversation_id):
                self.memory.add_message(conversation_id, MessageRole.USER, user_text)
                history = self.memory.get_history(conversation_id)
                reply = await self.orchestrator.generate(history, instruction)
                self.memory.add_message(conversation_id, MessageRole.ASSISTANT, reply)

            self.logger.info(f"Replied in conversation {conversation_id} ({len(reply)} chars)")
        return reply

    async def generate(self, history: Sequence[Message], instruction: str) -> str:
        return await self.orchestrator.generate(history, instruction)

    def switch_provider(self, provider_id: str) -> Dict[str, str]:
        return self.orchestrator.switch_provider(provider_id)

    def get_stats(self) -> Dict[str, Any]:
        return self.orchestrator.get_stats()

    def reset_stats(self):
        self.orchestrator.reset_stats()

    def add_message(self, conversation_id: str, role: Union[MessageRole, str], content: str):
        self.memory.add_message(conversation_id, role, content)

    def get_history(self, conversation_id: str) -> List[Message]:
        return self.memory.get_history(conversation_id)

    def clear(self, conversation_id: str) -> bool:
        return self.memory.clear(conversation_id)

    def memory_stats(self) -> Dict[str, int]:
        return self.memory.stats()

    def start_idle_sweep(self, interval: Optional[float] = None):
        self.memory.start_idle_sweep(interval)

    def stop_idle_sweep(self) -> bool:
        return self.memory.stop_idle_sweep()

    async def close(self):
        """Stop the idle sweep and release provider clients."""
        self.memory.stop_idle_sweep()
        await self.orchestrator.close()
