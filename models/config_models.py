"""Configuration data models for the chapter reader.

Each data class mirrors one section of the INI file. Field names are the INI keys;
default values also tell the loader which type each key is converted to.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "Config",
    "EngineConfig",
    "General",
    "ReaderConfig",
]


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOG_FILE: str = ""
    LOG_LEVEL: str = "INFO"


@dataclass
class ReaderConfig:
    RATE: float = 1.0
    VOICE: str = ""
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 0.5
    SETTLE_DELAY: float = 0.3
    WATCHDOG_INTERVAL: float = 1.0
    MARKER_PREFIX: str = "##"


@dataclass
class EngineConfig:
    NAME: str = "gtts"
    LANG: str = "en"
    TLD: str = "com"
    # Rates below this use the engine's slow voice instead of time scaling alone.
    SLOW_RATE: float = 0.75


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    READER: ReaderConfig = field(default_factory=ReaderConfig)
    ENGINE: EngineConfig = field(default_factory=EngineConfig)
