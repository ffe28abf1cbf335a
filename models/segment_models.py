"""Data models for segmented chapter text.

This module defines:
- DisplaySegment: One paragraph as shown to the reader, markers included.
- SpeechSegment: One paragraph actually handed to the speech capability.
- IndexMap: The two-way mapping between the display and speech sequences.
- SegmentedText: The segmenter result bundling all of the above.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from utils.text_utils import TextUtils

__all__: list[str] = [
    "DisplaySegment",
    "IndexMap",
    "SegmentedText",
    "SpeechSegment",
]


@dataclass(frozen=True)
class DisplaySegment:
    """A paragraph of the display sequence.

    Attributes:
        index (int): Position in the display sequence.
        text (str): Stripped paragraph text.
        is_marker (bool): True for structural markers such as scene headings.
        marker_number (int | None): 1-based ordinal among markers, None for narrative paragraphs.
        scene_number (int | None): 1-based ordinal among screenplay scene headings such as
            '## INT. KITCHEN - NIGHT', None for any other paragraph.
    """

    index: int
    text: str
    is_marker: bool = False
    marker_number: int | None = None
    scene_number: int | None = None


@dataclass(frozen=True)
class SpeechSegment:
    """A paragraph of the speech sequence.

    Attributes:
        index (int): Position in the speech sequence.
        display_index (int): Position of the same paragraph in the display sequence.
        text (str): Paragraph text submitted to the speech capability.
    """

    index: int
    display_index: int
    text: str


@dataclass(frozen=True)
class IndexMap:
    """Mapping between display and speech positions.

    ``speech_to_display`` is exact. ``display_to_speech`` sends a marker to the next
    speakable paragraph, clamped to the last speech index when no paragraph follows.
    Both tables are tuples and are never modified after construction.
    """

    speech_to_display: tuple[int, ...] = ()
    display_to_speech: tuple[int, ...] = ()

    def to_display(self, speech_index: int) -> int | None:
        """Display position for a speech index, None when out of range."""
        if 0 <= speech_index < len(self.speech_to_display):
            return self.speech_to_display[speech_index]
        return None

    def to_speech(self, display_index: int) -> int | None:
        """Speech position for a display index.

        Out-of-range display indices are clamped to the first or last display segment.
        Returns None only when there is nothing speakable.
        """
        if not self.display_to_speech or not self.speech_to_display:
            return None
        clamped: int = max(0, min(display_index, len(self.display_to_speech) - 1))
        return self.display_to_speech[clamped]


@dataclass(frozen=True)
class SegmentedText:
    """Both sequences of one source text and the map between them."""

    display: tuple[DisplaySegment, ...] = ()
    speech: tuple[SpeechSegment, ...] = ()
    index_map: IndexMap = field(default_factory=IndexMap)

    @property
    def total_display(self) -> int:
        return len(self.display)

    @property
    def total_speech(self) -> int:
        return len(self.speech)

    @property
    def word_count(self) -> int:
        """Number of words in the speech sequence."""
        return sum(TextUtils.word_count(segment.text) for segment in self.speech)

    def text_of(self, speech_index: int) -> str | None:
        """Text of a speech segment, None when out of range."""
        if 0 <= speech_index < len(self.speech):
            return self.speech[speech_index].text
        return None

    def words_from(self, speech_index: int) -> int:
        """Number of words from ``speech_index`` to the end of the speech sequence."""
        return sum(TextUtils.word_count(segment.text) for segment in self.speech[max(0, speech_index) :])
