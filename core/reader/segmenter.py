"""Splitting of chapter text into display and speech sequences.

The display sequence keeps every paragraph, including structural markers such as scene
headings, so the UI can render and number them. The speech sequence drops the markers.
The index map built here lets callbacks that speak in speech indices be translated back
to the display positions the UI highlights, and lets clicks on the display be turned
into a speech position.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from models.re_models import PARAGRAPH_BOUNDARY_PATTERN, SCENE_HEADING_PATTERN
from models.segment_models import DisplaySegment, IndexMap, SegmentedText, SpeechSegment
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["DEFAULT_MARKER_PREFIX", "is_scene_heading", "segment_text", "split_paragraphs"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_MARKER_PREFIX = "##"


def split_paragraphs(text: str) -> list[str]:
    """Split text on blank-line runs and scene break tokens.

    Args:
        text (str): Raw chapter text.

    Returns:
        list[str]: Stripped, non-empty paragraphs in original order.
    """
    return [piece.strip() for piece in PARAGRAPH_BOUNDARY_PATTERN.split(text) if piece.strip()]


def is_scene_heading(paragraph: str) -> bool:
    """True for screenplay headings such as '## INT. KITCHEN - NIGHT'."""
    return SCENE_HEADING_PATTERN.match(paragraph) is not None


def segment_text(text: str, marker_prefix: str = DEFAULT_MARKER_PREFIX) -> SegmentedText:
    """Build the display and speech sequences of ``text`` and the map between them.

    A paragraph starting with ``marker_prefix`` is a structural marker. Markers are
    numbered from 1 in display order; screenplay scene headings among them
    also get their own scene number. In the display->speech map a marker points at
    the next speakable paragraph; trailing markers are clamped to the last speech index.

    Args:
        text (str): Raw chapter text.
        marker_prefix (str): Heading indicator; an empty prefix disables marker detection.

    Returns:
        SegmentedText: Both sequences and their index map.
    """
    display: list[DisplaySegment] = []
    speech: list[SpeechSegment] = []
    marker_count: int = 0
    scene_count: int = 0

    for display_index, paragraph in enumerate(split_paragraphs(text)):
        if marker_prefix and paragraph.startswith(marker_prefix):
            marker_count += 1
            scene_number: int | None = None
            if is_scene_heading(paragraph):
                scene_count += 1
                scene_number = scene_count
            display.append(
                DisplaySegment(
                    display_index,
                    paragraph,
                    is_marker=True,
                    marker_number=marker_count,
                    scene_number=scene_number,
                )
            )
            continue
        display.append(DisplaySegment(display_index, paragraph))
        speech.append(SpeechSegment(len(speech), display_index, paragraph))

    speech_to_display: tuple[int, ...] = tuple(segment.display_index for segment in speech)

    display_to_speech: list[int] = []
    last_speech_index: int = max(len(speech) - 1, 0)
    # Number of speakable paragraphs seen before the current display position;
    # for a marker this is exactly the index of the next speakable paragraph.
    seen: int = 0
    for segment in display:
        display_to_speech.append(min(seen, last_speech_index))
        if not segment.is_marker:
            seen += 1

    logger.debug(
        "Segmented text: %d display segments, %d speech segments, %d markers, %d scenes",
        len(display),
        len(speech),
        marker_count,
        scene_count,
    )
    return SegmentedText(
        display=tuple(display),
        speech=tuple(speech),
        index_map=IndexMap(speech_to_display=speech_to_display, display_to_speech=tuple(display_to_speech)),
    )
