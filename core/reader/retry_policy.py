from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from models.playback_models import ReaderSettings

__all__: list[str] = ["INTERRUPTION_ERRORS", "RetryPolicy"]

# Error kinds a capability reports for requests we cancelled ourselves.
INTERRUPTION_ERRORS: Final[frozenset[str]] = frozenset({"interrupted", "canceled", "cancelled"})


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded per-segment retry.

    A segment may fail ``max_retries`` times in a row; the failure that reaches the
    limit ends the session. The failure count is kept on the session and starts over
    at zero whenever a segment completes.

    Attributes:
        max_retries (int): Consecutive failures tolerated per segment, including the last one.
        delay (float): Seconds to wait before resubmitting.
    """

    max_retries: int = 3
    delay: float = 0.5

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            msg: str = f"max_retries must not be negative, got {self.max_retries}"
            raise ValueError(msg)
        if self.delay < 0:
            msg = f"delay must not be negative, got {self.delay}"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: ReaderSettings) -> RetryPolicy:
        return cls(max_retries=settings.max_retries, delay=settings.retry_delay)

    @staticmethod
    def is_interruption(error: str) -> bool:
        """True for the error kinds caused by our own cancellation."""
        return error.strip().lower() in INTERRUPTION_ERRORS

    def should_retry(self, retry_count: int) -> bool:
        """Decide whether a segment that has already been retried ``retry_count`` times gets another attempt.

        Args:
            retry_count (int): Retries already charged to the segment.

        Returns:
            bool: True to resubmit, False when this failure exhausts the budget.
        """
        return retry_count + 1 < self.max_retries
