from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Iterator

    from models.config_models import EngineConfig
    from models.voice_models import VoiceInfo


__all__: list[str] = [
    "EndCallback",
    "ErrorCallback",
    "SpeechCapability",
    "SpeechCapabilityError",
    "SpeechExceptionError",
    "SpeechHandle",
    "SpeechNotSupportedError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class SpeechExceptionError(Exception):
    """Base class for speech playback exceptions."""


class SpeechNotSupportedError(SpeechExceptionError):
    """The speech capability is not available on this host.

    Raised by transport operations that would start playback when the capability
    support check failed.
    """


class SpeechCapabilityError(SpeechExceptionError):
    """The speech capability was used incorrectly or is misconfigured."""


@dataclass(frozen=True)
class SpeechHandle:
    """Identifies one submission to a speech capability.

    Attributes:
        request_id (int): Unique, increasing id within one capability instance.
        text (str): Submitted text.
    """

    request_id: int
    text: str


type EndCallback = Callable[[SpeechHandle], None]
type ErrorCallback = Callable[[SpeechHandle, str], None]


class SpeechCapability(ABC):
    """Base class for speech capabilities.

    A capability plays one text at a time and reports, on the event loop thread,
    exactly one of end or error per submission. Cancelling may be reported as an
    'interrupted' error or may not be reported at all. Subclasses register themselves
    under their engine name when they are defined.

    Attributes:
        _registered_engines (dict[str, type[SpeechCapability]]): Registered capability classes
    """

    _registered_engines: ClassVar[dict[str, type[SpeechCapability]]] = {}

    def __init__(self) -> None:
        self._on_end: EndCallback | None = None
        self._on_error: ErrorCallback | None = None
        self._on_voices_changed: Callable[[], None] | None = None
        self._request_ids: Iterator[int] = itertools.count(1)

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        cls.register_engine(cls)

    @classmethod
    def register_engine(cls, engine_cls: type[SpeechCapability]) -> None:
        """Register a capability class under its engine name"""
        if not issubclass(engine_cls, SpeechCapability):
            msg = "Must be a subclass of SpeechCapability"
            raise TypeError(msg)
        name: str = engine_cls.fetch_engine_name()
        SpeechCapability._registered_engines[name] = engine_cls
        logger.debug("Registered speech engine: %s", name)

    @classmethod
    def get_registered(cls) -> dict[str, type[SpeechCapability]]:
        return SpeechCapability._registered_engines

    @classmethod
    def get_engine(cls, name: str) -> type[SpeechCapability]:
        """Retrieve a registered capability class by name"""
        try:
            return SpeechCapability._registered_engines[name]
        except KeyError:
            msg: str = f"No such speech engine registered: {name}"
            raise SpeechCapabilityError(msg) from None

    @staticmethod
    @abstractmethod
    def fetch_engine_name() -> str:
        """Distinguished name of the engine, as used in the configuration file."""
        raise NotImplementedError

    @classmethod
    def is_supported(cls) -> bool:
        """Check whether the capability can run on this host (override if necessary)"""
        return True

    def configure(self, engine_config: EngineConfig) -> None:
        """Apply engine settings from the configuration file (override if necessary)"""
        _ = engine_config
        logger.debug("%s uses default settings", self.__class__.__name__)

    def bind(
        self,
        on_end: EndCallback,
        on_error: ErrorCallback,
        on_voices_changed: Callable[[], None] | None = None,
    ) -> None:
        """Set the receivers of playback reports.

        Args:
            on_end (EndCallback): Called with the handle of a submission that finished playing.
            on_error (ErrorCallback): Called with the handle and an error kind such as 'interrupted'.
            on_voices_changed (Callable[[], None] | None): Called when the voice catalog changed.
        """
        self._on_end = on_end
        self._on_error = on_error
        self._on_voices_changed = on_voices_changed

    def new_handle(self, text: str) -> SpeechHandle:
        return SpeechHandle(request_id=next(self._request_ids), text=text)

    def report_end(self, handle: SpeechHandle) -> None:
        if self._on_end is None:
            logger.debug("No end receiver bound; dropping report for request %d", handle.request_id)
            return
        self._on_end(handle)

    def report_error(self, handle: SpeechHandle, error: str) -> None:
        if self._on_error is None:
            logger.debug("No error receiver bound; dropping '%s' for request %d", error, handle.request_id)
            return
        self._on_error(handle, error)

    def report_voices_changed(self) -> None:
        if self._on_voices_changed is not None:
            self._on_voices_changed()

    @abstractmethod
    def submit(self, text: str, rate: float, voice: str | None) -> SpeechHandle:
        """Start speaking ``text``; returns immediately.

        Args:
            text (str): Text to speak.
            rate (float): Speech rate multiplier, 1.0 is normal.
            voice (str | None): Voice id from ``list_voices``; None for the default voice.

        Returns:
            SpeechHandle: Handle reported back with the end or error event.
        """
        raise NotImplementedError

    @abstractmethod
    def pause(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def resume(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def cancel(self, handle: SpeechHandle | None = None) -> None:
        """Stop the given submission, or whatever is playing when handle is None."""
        raise NotImplementedError

    @property
    @abstractmethod
    def is_paused(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_voices(self) -> list[VoiceInfo]:
        """Current voice catalog; may be empty until the capability has loaded it."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources (override if necessary)"""
        logger.info("%s closed", self.__class__.__name__)
