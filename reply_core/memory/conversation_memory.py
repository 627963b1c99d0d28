"""
Per-conversation message memory.

Keeps a bounded, FIFO-trimmed history per conversation id and evicts
conversations that have been idle longer than a threshold. Memory is volatile:
nothing survives a process restart.
"""

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Callable, Deque, Dict, List, Optional, Union

from reply_core.config.config_manager import ConfigurationError, MemoryConfig
from reply_core.llm.interfaces.llm_provider_interface import Message, MessageRole


@dataclass
class ConversationRecord:
    """Stored history of one conversation."""
    conversation_id: str
    messages: Deque[Message]
    last_activity: float = field(default_factory=time.time)

    def idle_seconds(self, now: float) -> float:
        return now - self.last_activity


class ConversationMemory:
    """
    Bounded per-conversation history with idle eviction.

    Each conversation keeps at most max_messages entries; the oldest entry is
    dropped first. A background sweep removes conversations idle longer than
    inactivity_threshold seconds.
    """

    def __init__(
        self,
        max_messages: int = 10,
        inactivity_threshold: float = 3600.0,
        cleanup_interval: float = 1800.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the memory.

        Args:
            max_messages: Messages kept per conversation
            inactivity_threshold: Idle seconds after which a conversation is evicted
            cleanup_interval: Seconds between idle sweeps
            clock: Time source returning seconds

        Raises:
            ConfigurationError: If max_messages is below 1
        """
        if max_messages < 1:
            raise ConfigurationError("max_messages must be at least 1")

        self.max_messages = max_messages
        self.inactivity_threshold = inactivity_threshold
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._records: Dict[str, ConversationRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: MemoryConfig) -> "ConversationMemory":
        return cls(
            max_messages=config.max_messages,
            inactivity_threshold=config.inactivity_threshold_ms / 1000.0,
            cleanup_interval=config.cleanup_interval_ms / 1000.0,
        )

    def add_message(self, conversation_id: str, role: Union[MessageRole, str], content: str):
        """
        Append a message to a conversation, creating it if needed.

        Raises:
            ValueError: If role is not a valid MessageRole
        """
        role = MessageRole(role)
        record = self._records.get(conversation_id)
        if record is None:
            record = ConversationRecord(
                conversation_id=conversation_id,
                messages=deque(maxlen=self.max_messages),
                last_activity=self._clock(),
            )
            self._records[conversation_id] = record

        record.messages.append(Message(role=role, content=content))
        record.last_activity = self._clock()

        self.logger.debug(
            f"Added message to conversation {conversation_id} ({len(record.messages)} msgs)"
        )

    def get_history(self, conversation_id: str) -> List[Message]:
        """
        Get a copy of a conversation's history.

        Returns:
            Messages in chronological order; empty if the conversation is unknown
        """
        record = self._records.get(conversation_id)
        if record is None:
            return []
        return [replace(msg) for msg in record.messages]

    def clear(self, conversation_id: str) -> bool:
        """
        Forget a conversation.

        Returns:
            True if the conversation existed
        """
        existed = self._records.pop(conversation_id, None) is not None
        self._drop_lock(conversation_id)
        if existed:
            self.logger.info(f"Cleared memory for conversation {conversation_id}")
        return existed

    def stats(self) -> Dict[str, int]:
        return {
            "conversation_count": len(self._records),
            "total_message_count": sum(len(r.messages) for r in self._records.values()),
        }

    def sweep_idle(self, now: Optional[float] = None, threshold: Optional[float] = None) -> int:
        """
        Remove conversations idle for longer than threshold.

        Args:
            now: Current time in seconds; defaults to the memory's clock
            threshold: Idle seconds; defaults to inactivity_threshold

        Returns:
            Number of conversations evicted
        """
        now = self._clock() if now is None else now
        threshold = self.inactivity_threshold if threshold is None else threshold

        expired = [
            conversation_id
            for conversation_id, record in self._records.items()
            if record.idle_seconds(now) > threshold
        ]
        for conversation_id in expired:
            del self._records[conversation_id]
            self._drop_lock(conversation_id)

        if expired:
            self.logger.info(f"Cleaned up {len(expired)} inactive conversation(s)")
        return len(expired)

    def lock(self, conversation_id: str) -> asyncio.Lock:
        """Get the lock serialising turns of one conversation."""
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    @asynccontextmanager
    async def turn(self, conversation_id: str) -> AsyncIterator[None]:
        """
        Hold the conversation's lock for one turn.

        Turns waiting for the lock count as users of it, so clearing or
        evicting the conversation meanwhile keeps the same lock in place until
        the last of them finishes.
        """
        lock = self.lock(conversation_id)
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[conversation_id] - 1
            if remaining:
                self._lock_users[conversation_id] = remaining
            else:
                del self._lock_users[conversation_id]
                if conversation_id not in self._records:
                    self._drop_lock(conversation_id)

    def _drop_lock(self, conversation_id: str):
        if conversation_id in self._lock_users:
            return
        lock = self._locks.get(conversation_id)
        if lock is not None and not lock.locked():
            del self._locks[conversation_id]

    def start_idle_sweep(self, interval: Optional[float] = None):
        """
        Start the periodic idle sweep on the running event loop.

        A sweep that is already running is replaced.

        Args:
            interval: Seconds between sweeps; defaults to cleanup_interval
        """
        self.stop_idle_sweep()
        interval = self.cleanup_interval if interval is None else interval
        self._sweep_task = asyncio.create_task(self._sweep_loop(interval))
        self.logger.info(f"Idle sweep started (every {interval / 60:g} minutes)")

    def stop_idle_sweep(self) -> bool:
        """
        Stop the periodic idle sweep.

        Returns:
            True if a sweep was running
        """
        if self._sweep_task is None:
            return False
        self._sweep_task.cancel()
        self._sweep_task = None
        self.logger.info("Idle sweep stopped")
        return True

    @property
    def sweep_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self, interval: float):
        """Background task for periodic idle sweeps."""
        while True:
            try:
                await asyncio.sleep(interval)
                self.sweep_idle()
            except asyncio.CancelledError:
                self.logger.debug("Idle sweep task cancelled")
                break
            except Exception as e:
                self.logger.error(f"Error in idle sweep loop: {e}")
