"""
Groq provider for the reply engine.
"""

from .groq_provider import GroqLLMProvider

__all__ = ["GroqLLMProvider"]
