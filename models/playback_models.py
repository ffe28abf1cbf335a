"""Data models for the playback state machine.

This module defines:
- PlaybackState: The states of a reading session.
- PlaybackOptions: Rate, voice and caller callbacks for a session.
- PlaybackSession: Everything the sequencer knows about the active session.
- ReaderSettings: Tunable delays and limits of the sequencer.
- PlaybackStatus: JSON friendly snapshot for UI collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

from models.segment_models import SegmentedText

if TYPE_CHECKING:
    from collections.abc import Callable

    from models.config_models import ReaderConfig

__all__: list[str] = [
    "DEFAULT_RATE",
    "PlaybackOptions",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStatus",
    "ReaderSettings",
]

DEFAULT_RATE: Final[float] = 1.0


class PlaybackState(StrEnum):
    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PlaybackOptions:
    """Per-session playback options.

    Attributes:
        rate (float): Speech rate multiplier, 1.0 is normal speed.
        voice (str | None): Voice identifier from the capability's catalog, None for its default.
        on_segment_start (Callable[[int], None] | None): Called with the speech index before each submission.
        on_segment_end (Callable[[int], None] | None): Called with the speech index after it finished.
        on_progress (Callable[[int, int], None] | None): Called with (current, total) next to on_segment_start.
            ``current`` is 1-based.
        on_complete (Callable[[], None] | None): Called once when the last segment finished.
        on_fatal_error (Callable[[int, str], None] | None): Called once with (speech index, error kind)
            when the retry budget of a segment is exhausted.
    """

    rate: float = DEFAULT_RATE
    voice: str | None = None
    on_segment_start: Callable[[int], None] | None = None
    on_segment_end: Callable[[int], None] | None = None
    on_progress: Callable[[int, int], None] | None = None
    on_complete: Callable[[], None] | None = None
    on_fatal_error: Callable[[int, str], None] | None = None

    def with_rate(self, rate: float) -> PlaybackOptions:
        return replace(self, rate=rate)

    def with_voice(self, voice: str | None) -> PlaybackOptions:
        return replace(self, voice=voice)


@dataclass(frozen=True)
class ReaderSettings:
    """Sequencer tuning.

    Attributes:
        settle_delay (float): Pause between two segments in seconds.
        max_retries (int): Consecutive failures of one segment that end the session.
        retry_delay (float): Wait before resubmitting a failed segment in seconds.
        watchdog_interval (float): Period of the stuck-pause check in seconds.
        marker_prefix (str): Prefix that turns a paragraph into a structural marker.
    """

    settle_delay: float = 0.3
    max_retries: int = 3
    retry_delay: float = 0.5
    watchdog_interval: float = 1.0
    marker_prefix: str = "##"

    @classmethod
    def from_config(cls, reader: ReaderConfig) -> ReaderSettings:
        """Build settings from the [READER] section of the configuration file."""
        return cls(
            settle_delay=reader.SETTLE_DELAY,
            max_retries=reader.MAX_RETRIES,
            retry_delay=reader.RETRY_DELAY,
            watchdog_interval=reader.WATCHDOG_INTERVAL,
            marker_prefix=reader.MARKER_PREFIX,
        )


@dataclass(frozen=True)
class PlaybackSession:
    """State of one reading session.

    A new session is created by every speak request and replaced on every transition;
    instances are never modified in place.

    Attributes:
        text_id (str): Identity of the source text.
        segments (SegmentedText): Display and speech sequences with their index map.
        state (PlaybackState): Current state.
        index (int): Current speech index, equal to the total once completed.
        retry_count (int): Failures charged to the current segment.
        generation (int): Generation stamped on requests and timers; bumped on every interruption.
        in_flight (bool): True while a submitted request has not reported end or error.
        options (PlaybackOptions): Rate, voice and callbacks.
    """

    text_id: str = ""
    segments: SegmentedText = field(default_factory=SegmentedText)
    state: PlaybackState = PlaybackState.IDLE
    index: int = 0
    retry_count: int = 0
    generation: int = 0
    in_flight: bool = False
    options: PlaybackOptions = field(default_factory=PlaybackOptions)

    @classmethod
    def idle(cls, generation: int = 0, options: PlaybackOptions | None = None) -> PlaybackSession:
        return cls(generation=generation, options=options or PlaybackOptions())

    @property
    def total(self) -> int:
        return self.segments.total_speech

    @property
    def is_active(self) -> bool:
        """True while speaking or paused."""
        return self.state in (PlaybackState.SPEAKING, PlaybackState.PAUSED)

    @property
    def display_index(self) -> int | None:
        """Display position of the current segment, None when there is no current segment."""
        return self.segments.index_map.to_display(self.index)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class PlaybackStatus(DataClassJsonMixin):
    """Read-only snapshot of the engine for UI collaborators."""

    state: str
    speech_index: int
    display_index: int | None
    total_segments: int
    total_display_segments: int
    rate: float
    voice: str | None
