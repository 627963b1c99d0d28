"""
Persona text for the assistant.

Holds the default instruction prompt, the in-character apology replies used when
every provider fails, and helpers to address the prompt to a specific user.
"""

import random
from typing import Optional, Sequence

DEFAULT_SYSTEM_PROMPT = """Kamu adalah MyBini, asisten AI yang ramah dan siap membantu. Kamu punya kepribadian yang hangat, sabar, dan menyenangkan.

CARA BICARA
- Bahasa Indonesia santai dan natural
- Lembut tapi tidak lebay atau alay
- Emoji secukupnya (1-2 per pesan)

FORMAT RESPONS
- Panjang secukupnya, to the point
- Jawab dengan jelas dan helpful"""

DEFAULT_APOLOGIES = (
    "Maaf, lagi ada masalah teknis. Coba lagi sebentar ya! 🙏",
    "Hmm ada error nih. Coba lagi dalam beberapa saat ya!",
    "Waduh, aku lagi gak bisa proses. Coba lagi nanti ya!",
)


def build_instruction(user_name: str, base_prompt: Optional[str] = None) -> str:
    """
    Address the instruction prompt to a specific user.

    Args:
        user_name: Display name of the user being answered
        base_prompt: Prompt to extend; defaults to DEFAULT_SYSTEM_PROMPT

    Returns:
        Instruction text for a generation call
    """
    prompt = base_prompt if base_prompt is not None else DEFAULT_SYSTEM_PROMPT
    return f'{prompt}\n\nUSER: {user_name}\nPanggil dengan "{user_name}" atau "kamu".'


def get_apology(apologies: Sequence[str] = DEFAULT_APOLOGIES) -> str:
    """Pick one apology uniformly at random."""
    return random.choice(list(apologies))
