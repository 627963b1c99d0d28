"""
Reply Engine

Generates one reply per conversational turn from interchangeable remote
text-generation providers, with per-provider credential rotation, primary/fallback
dispatch and bounded per-conversation memory.
"""

from .service import ReplyService

__version__ = "0.1.0"

__all__ = ["ReplyService", "__version__"]
