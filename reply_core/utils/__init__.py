from .text_chunking import split_message

__all__ = ["split_message"]
