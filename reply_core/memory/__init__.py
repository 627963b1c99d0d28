from .conversation_memory import ConversationMemory, ConversationRecord

__all__ = ["ConversationMemory", "ConversationRecord"]
