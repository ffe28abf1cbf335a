"""Data models for the chapter reader.

This package contains dataclass definitions for configuration, text segments, playback
sessions, sequencer events and effects, voices, and the regular expression patterns
used to split chapters.
"""

from __future__ import annotations

from models.config_models import Config, EngineConfig, General, ReaderConfig
from models.event_models import Effect, Event, NotifyKind
from models.playback_models import PlaybackOptions, PlaybackSession, PlaybackState, PlaybackStatus, ReaderSettings
from models.re_models import (
    PARAGRAPH_BOUNDARY_PATTERN,
    SCENE_HEADING_PATTERN,
    SCENE_TOKEN_PATTERN,
    WORD_CHARACTER_PATTERN,
)
from models.segment_models import DisplaySegment, IndexMap, SegmentedText, SpeechSegment
from models.voice_models import VoiceInfo

__all__: list[str] = [
    "PARAGRAPH_BOUNDARY_PATTERN",
    "SCENE_HEADING_PATTERN",
    "SCENE_TOKEN_PATTERN",
    "WORD_CHARACTER_PATTERN",
    "Config",
    "DisplaySegment",
    "Effect",
    "EngineConfig",
    "Event",
    "General",
    "IndexMap",
    "NotifyKind",
    "PlaybackOptions",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStatus",
    "ReaderConfig",
    "ReaderSettings",
    "SegmentedText",
    "SpeechSegment",
    "VoiceInfo",
]
