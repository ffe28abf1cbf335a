"""Speech capabilities driven by the read-aloud engine.

This package defines the capability interface with its engine registry; concrete
capabilities live in ``core.speech.engines``.
"""

from core.speech.interface import (
    SpeechCapability,
    SpeechCapabilityError,
    SpeechExceptionError,
    SpeechHandle,
    SpeechNotSupportedError,
)

__all__: list[str] = [
    "SpeechCapability",
    "SpeechCapabilityError",
    "SpeechExceptionError",
    "SpeechHandle",
    "SpeechNotSupportedError",
]
