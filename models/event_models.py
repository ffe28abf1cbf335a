"""Events consumed and effects produced by the playback sequencer.

Events are either transport requests from the caller, reports from the speech
capability, or timers armed by an earlier transition. Effects are instructions the
engine carries out against the capability, the event loop and the caller's callbacks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from models.playback_models import PlaybackOptions

__all__: list[str] = [
    "Cancel",
    "ChangeRate",
    "ChangeVoice",
    "Effect",
    "Event",
    "Next",
    "Notify",
    "NotifyKind",
    "Pause",
    "PauseCapability",
    "Previous",
    "Resume",
    "ResumeCapability",
    "RetryElapsed",
    "Schedule",
    "Seek",
    "SegmentEnded",
    "SegmentFailed",
    "SettleElapsed",
    "Speak",
    "StartWatchdog",
    "Stop",
    "StopWatchdog",
    "Submit",
]


# Transport requests


@dataclass(frozen=True)
class Speak:
    text: str
    options: PlaybackOptions
    display_index: int | None = None


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Next:
    pass


@dataclass(frozen=True)
class Previous:
    pass


@dataclass(frozen=True)
class Seek:
    display_index: int


@dataclass(frozen=True)
class ChangeRate:
    rate: float
    restart: bool = True


@dataclass(frozen=True)
class ChangeVoice:
    voice: str | None
    restart: bool = True


# Capability reports


@dataclass(frozen=True)
class SegmentEnded:
    index: int
    generation: int


@dataclass(frozen=True)
class SegmentFailed:
    index: int
    generation: int
    error: str


# Timers


@dataclass(frozen=True)
class SettleElapsed:
    index: int
    generation: int


@dataclass(frozen=True)
class RetryElapsed:
    index: int
    generation: int


type Event = (
    Speak
    | Pause
    | Resume
    | Stop
    | Next
    | Previous
    | Seek
    | ChangeRate
    | ChangeVoice
    | SegmentEnded
    | SegmentFailed
    | SettleElapsed
    | RetryElapsed
)


# Effects


@dataclass(frozen=True)
class Submit:
    """Hand one segment to the capability."""

    index: int
    text: str
    rate: float
    voice: str | None
    generation: int


@dataclass(frozen=True)
class Cancel:
    """Cancel whatever the capability is playing."""


@dataclass(frozen=True)
class PauseCapability:
    pass


@dataclass(frozen=True)
class ResumeCapability:
    pass


@dataclass(frozen=True)
class Schedule:
    """Deliver ``event`` back to the sequencer after ``delay`` seconds."""

    delay: float
    event: SettleElapsed | RetryElapsed


@dataclass(frozen=True)
class StartWatchdog:
    pass


@dataclass(frozen=True)
class StopWatchdog:
    pass


class NotifyKind(StrEnum):
    SEGMENT_START = "on_segment_start"
    SEGMENT_END = "on_segment_end"
    PROGRESS = "on_progress"
    COMPLETE = "on_complete"
    FATAL_ERROR = "on_fatal_error"


@dataclass(frozen=True)
class Notify:
    """Invoke the caller callback named by ``kind`` with ``args``."""

    kind: NotifyKind
    args: tuple[int | str, ...] = ()


type Effect = (
    Submit | Cancel | PauseCapability | ResumeCapability | Schedule | StartWatchdog | StopWatchdog | Notify
)
