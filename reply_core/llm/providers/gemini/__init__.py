"""
Google Gemini provider for the reply engine.
"""

from .gemini_provider import GeminiLLMProvider

__all__ = ["GeminiLLMProvider"]
