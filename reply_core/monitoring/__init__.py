from .logging_setup import configure_logging, conversation_context

__all__ = ["configure_logging", "conversation_context"]
