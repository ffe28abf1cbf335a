from __future__ import annotations

import hashlib
import math
from typing import Final

__all__: list[str] = ["TextUtils"]

# Average narration speed at rate 1.0, in words per minute.
WORDS_PER_MINUTE: Final[int] = 225


class TextUtils:
    """Small text helpers shared by the segmenter and the transport API."""

    @staticmethod
    def word_count(text: str) -> int:
        """Count whitespace separated words.

        Args:
            text (str): Text to count.

        Returns:
            int: Number of words, 0 for empty or blank text.
        """
        return len(text.split())

    @staticmethod
    def estimate_minutes(word_count: int, rate: float = 1.0) -> int:
        """Estimate listening time in whole minutes, rounded up.

        Args:
            word_count (int): Number of words to be read.
            rate (float): Speech rate multiplier; must be positive.

        Returns:
            int: Estimated minutes.

        Raises:
            ValueError: If rate is not positive.
        """
        if rate <= 0:
            msg: str = f"Rate must be positive, got {rate}"
            raise ValueError(msg)
        if word_count <= 0:
            return 0
        return math.ceil(word_count / (WORDS_PER_MINUTE * rate))

    @staticmethod
    def text_identity(text: str) -> str:
        """Stable short identity for a source text, used to tell sessions apart in logs."""
        return hashlib.sha1(text.encode("utf-8"), usedforsecurity=False).hexdigest()[:12]

    @staticmethod
    def preview(text: str, limit: int = 50) -> str:
        """Shorten text for log messages."""
        text = " ".join(text.split())
        return text if len(text) <= limit else text[:limit] + "..."
