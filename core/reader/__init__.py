"""Paragraph-sequenced read-aloud playback.

This package splits chapter text into display and speech sequences, decides every
playback step in a pure state machine, and drives a speech capability from it.

Modules:
- segmenter: Paragraph splitting and the display/speech index map.
- sequencer: The playback state machine.
- retry_policy: Bounded per-segment retry.
- watchdog: Periodic check for a capability stuck in pause.
- engine: ReadAloudEngine, the transport API.
"""

from core.reader.engine import ReadAloudEngine
from core.reader.retry_policy import RetryPolicy
from core.reader.segmenter import segment_text, split_paragraphs
from core.reader.sequencer import Transition, transition
from core.reader.watchdog import Watchdog

__all__: list[str] = [
    "ReadAloudEngine",
    "RetryPolicy",
    "Transition",
    "Watchdog",
    "segment_text",
    "split_paragraphs",
    "transition",
]
