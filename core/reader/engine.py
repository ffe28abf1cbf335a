"""Read-aloud engine: the transport API around the playback sequencer.

The engine owns one session at a time. Every transport call and every report from
the speech capability becomes an event for ``transition``; the engine then carries
out the returned effects against the capability, the event loop and the caller's
callbacks. Events raised while effects are being carried out (a callback calling
``next()``, a capability reporting synchronously from ``submit``) are queued and
applied afterwards, so effects of one transition are never interleaved with those
of another.

All methods must be called on the event loop thread.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from functools import partial
from typing import TYPE_CHECKING

from core.reader.sequencer import Transition, transition
from core.reader.watchdog import Watchdog
from core.speech.interface import SpeechNotSupportedError
from models.event_models import (
    Cancel,
    ChangeRate,
    ChangeVoice,
    Next,
    Notify,
    Pause,
    PauseCapability,
    Previous,
    Resume,
    ResumeCapability,
    Schedule,
    Seek,
    SegmentEnded,
    SegmentFailed,
    Speak,
    StartWatchdog,
    Stop,
    StopWatchdog,
    Submit,
)
from models.playback_models import PlaybackOptions, PlaybackSession, PlaybackState, PlaybackStatus, ReaderSettings
from utils.logger_utils import LoggerUtils
from utils.text_utils import TextUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.speech.interface import SpeechCapability, SpeechHandle
    from models.config_models import Config
    from models.event_models import Effect, Event, RetryElapsed, SettleElapsed
    from models.voice_models import VoiceInfo

__all__: list[str] = ["ReadAloudEngine"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# Error kind reported when the capability raised from submit() instead of reporting asynchronously.
SUBMIT_FAILED = "submit-failed"


class ReadAloudEngine:
    """Paragraph-by-paragraph reading with transport controls.

    Attributes:
        capability (SpeechCapability): The speech capability driven by this engine.
        settings (ReaderSettings): Delays and limits of the state machine.
    """

    def __init__(
        self,
        capability: SpeechCapability,
        settings: ReaderSettings | None = None,
        *,
        default_options: PlaybackOptions | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        on_voices_changed: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the ReadAloudEngine.

        Args:
            capability (SpeechCapability): Speech capability to drive.
            settings (ReaderSettings | None): State machine settings; defaults when None.
            default_options (PlaybackOptions | None): Options used by speak calls that pass none.
            loop (asyncio.AbstractEventLoop | None): Loop for timers and the watchdog;
                the running loop when None.
            on_voices_changed (Callable[[], None] | None): Called when the capability's voice
                catalog changed, e.g. after a background load.
        """
        self.capability: SpeechCapability = capability
        self.settings: ReaderSettings = settings or ReaderSettings()
        self._default_options: PlaybackOptions = default_options or PlaybackOptions()
        self._loop: asyncio.AbstractEventLoop | None = loop
        self._on_voices_changed: Callable[[], None] | None = on_voices_changed
        self._session: PlaybackSession = PlaybackSession.idle(options=self._default_options)
        self._supported: bool | None = None

        # request id -> (speech index, generation) of submissions not yet reported
        self._requests: dict[int, tuple[int, int]] = {}
        self._current_handle: SpeechHandle | None = None
        self._timers: set[asyncio.TimerHandle] = set()
        self._pending: deque[Callable[[], None]] = deque()
        self._dispatching: bool = False

        self._watchdog = Watchdog(self.settings.watchdog_interval, self._watchdog_check)
        self.capability.bind(
            on_end=self._on_capability_end,
            on_error=self._on_capability_error,
            on_voices_changed=self._on_capability_voices_changed,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        capability: SpeechCapability,
        *,
        on_voices_changed: Callable[[], None] | None = None,
    ) -> ReadAloudEngine:
        """Create an engine from the [READER] section of the configuration file."""
        options = PlaybackOptions(rate=config.READER.RATE, voice=config.READER.VOICE or None)
        return cls(
            capability,
            ReaderSettings.from_config(config.READER),
            default_options=options,
            on_voices_changed=on_voices_changed,
        )

    # Transport API

    def speak(self, text: str, options: PlaybackOptions | None = None) -> None:
        """Read ``text`` from its first speakable paragraph in a new session.

        Raises:
            SpeechNotSupportedError: If the capability is not available.
            ValueError: If the options carry an invalid rate.
        """
        self._post_event(Speak(text, self._checked_options(options)))

    def speak_from(self, text: str, display_index: int, options: PlaybackOptions | None = None) -> None:
        """Read ``text`` starting at a display position in a new session.

        A structural marker starts at the paragraph that follows it.

        Raises:
            SpeechNotSupportedError: If the capability is not available.
            ValueError: If the options carry an invalid rate.
        """
        self._post_event(Speak(text, self._checked_options(options), display_index=display_index))

    def pause(self) -> None:
        self._post_event(Pause())

    def resume(self) -> None:
        self._post_event(Resume())

    def stop(self) -> None:
        self._post_event(Stop())

    def next(self) -> None:
        self._post_event(Next())

    def previous(self) -> None:
        self._post_event(Previous())

    def seek(self, display_index: int) -> None:
        self._post_event(Seek(display_index))

    def set_rate(self, value: float, *, restart: bool = True) -> None:
        """Change the speech rate of this and later sessions.

        Args:
            value (float): New rate multiplier; must be a positive finite number.
            restart (bool): Restart the segment being spoken so the change is heard at once.

        Raises:
            ValueError: If value is not a positive finite number.
        """
        rate: float = self._validate_rate(value)
        self._default_options = self._default_options.with_rate(rate)
        self._post_event(ChangeRate(rate, restart))

    def set_voice(self, voice: str | None, *, restart: bool = True) -> None:
        """Change the voice of this and later sessions.

        Args:
            voice (str | None): Voice id from ``list_voices``; None for the capability default.
            restart (bool): Restart the segment being spoken so the change is heard at once.
        """
        self._default_options = self._default_options.with_voice(voice or None)
        self._post_event(ChangeVoice(voice or None, restart))

    def is_supported(self) -> bool:
        """Check the capability once and remember the answer."""
        if self._supported is None:
            try:
                self._supported = type(self.capability).is_supported()
            except Exception:
                logger.exception("Speech capability support check failed")
                self._supported = False
            if not self._supported:
                logger.warning("Speech capability '%s' is not supported", self.capability.fetch_engine_name())
        return self._supported

    def list_voices(self) -> list[VoiceInfo]:
        return self.capability.list_voices()

    async def aclose(self) -> None:
        """Stop reading and release the capability."""
        self.stop()
        self._cancel_timers()
        self._watchdog.stop()
        await self.capability.close()

    # State introspection

    @property
    def state(self) -> PlaybackState:
        return self._session.state

    @property
    def session(self) -> PlaybackSession:
        return self._session

    @property
    def current_speech_index(self) -> int:
        return self._session.index

    @property
    def current_display_index(self) -> int | None:
        return self._session.display_index

    @property
    def total_segments(self) -> int:
        return self._session.total

    @property
    def total_display_segments(self) -> int:
        return self._session.segments.total_display

    @property
    def is_speaking(self) -> bool:
        return self._session.state is PlaybackState.SPEAKING

    @property
    def is_paused(self) -> bool:
        return self._session.state is PlaybackState.PAUSED

    @property
    def is_reading(self) -> bool:
        return self._session.is_active

    @property
    def rate(self) -> float:
        return self._default_options.rate

    @property
    def voice(self) -> str | None:
        return self._default_options.voice

    @property
    def display_texts(self) -> tuple[str, ...]:
        return tuple(segment.text for segment in self._session.segments.display)

    def segment_text(self, speech_index: int) -> str | None:
        return self._session.segments.text_of(speech_index)

    def estimated_minutes_remaining(self) -> int:
        words: int = self._session.segments.words_from(self._session.index)
        return TextUtils.estimate_minutes(words, self._session.options.rate)

    def status(self) -> PlaybackStatus:
        return PlaybackStatus(
            state=str(self._session.state),
            speech_index=self._session.index,
            display_index=self._session.display_index,
            total_segments=self.total_segments,
            total_display_segments=self.total_display_segments,
            rate=self._session.options.rate,
            voice=self._session.options.voice,
        )

    # Event handling

    def _post_event(self, event: Event) -> None:
        if isinstance(event, Speak) and not self.is_supported():
            msg: str = f"Speech engine '{self.capability.fetch_engine_name()}' is not available"
            raise SpeechNotSupportedError(msg)
        self._post(partial(self._apply, event))

    def _post(self, job: Callable[[], None]) -> None:
        self._pending.append(job)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending:
                self._pending.popleft()()
        except BaseException:
            # Jobs queued behind a failed one belong to the aborted call.
            self._pending.clear()
            raise
        finally:
            self._dispatching = False

    def _apply(self, event: Event) -> None:
        result: Transition = transition(self._session, event, self.settings)
        self._session = result.session
        for effect in result.effects:
            self._execute(effect, result.session)

    def _execute(self, effect: Effect, session: PlaybackSession) -> None:
        match effect:
            case Submit():
                self._submit(effect)
            case Cancel():
                self._cancel()
            case PauseCapability():
                self.capability.pause()
            case ResumeCapability():
                self.capability.resume()
            case Schedule():
                self._schedule(effect.delay, effect.event)
            case StartWatchdog():
                self._watchdog.start(self._get_loop())
            case StopWatchdog():
                self._watchdog.stop()
            case Notify():
                self._notify(effect, session.options)

    def _submit(self, effect: Submit) -> None:
        # Reports from older generations are stale anyway; forget them.
        self._requests = {rid: req for rid, req in self._requests.items() if req[1] == effect.generation}
        logger.debug(
            "Submitting index %d (generation %d, rate %.2f, voice %s): '%s'",
            effect.index,
            effect.generation,
            effect.rate,
            effect.voice,
            TextUtils.preview(effect.text),
        )
        try:
            handle: SpeechHandle = self.capability.submit(effect.text, effect.rate, effect.voice)
        except Exception as err:  # noqa: BLE001
            logger.error("Speech capability rejected index %d: %s", effect.index, err)
            self._post(partial(self._apply, SegmentFailed(effect.index, effect.generation, SUBMIT_FAILED)))
            return
        self._requests[handle.request_id] = (effect.index, effect.generation)
        self._current_handle = handle

    def _cancel(self) -> None:
        self._cancel_timers()
        handle: SpeechHandle | None = self._current_handle
        self._current_handle = None
        self.capability.cancel(handle)

    def _notify(self, effect: Notify, options: PlaybackOptions) -> None:
        callback: Callable[..., None] | None = getattr(options, effect.kind.value, None)
        if callback is None:
            return
        try:
            callback(*effect.args)
        except Exception:
            logger.exception("Callback '%s' raised", effect.kind.value)

    # Timers

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def _schedule(self, delay: float, event: SettleElapsed | RetryElapsed) -> None:
        loop: asyncio.AbstractEventLoop = self._get_loop()
        timer: asyncio.TimerHandle = loop.call_later(max(delay, 0.0), self._on_timer, event)
        self._timers.add(timer)

    def _on_timer(self, event: SettleElapsed | RetryElapsed) -> None:
        now: float = self._get_loop().time()
        self._timers = {timer for timer in self._timers if not timer.cancelled() and timer.when() > now}
        self._post(partial(self._apply, event))

    def _cancel_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    # Capability reports

    def _on_capability_end(self, handle: SpeechHandle) -> None:
        self._post(partial(self._report, handle, None))

    def _on_capability_error(self, handle: SpeechHandle, error: str) -> None:
        self._post(partial(self._report, handle, error))

    def _on_capability_voices_changed(self) -> None:
        if self._on_voices_changed is None:
            return
        try:
            self._on_voices_changed()
        except Exception:
            logger.exception("Callback 'on_voices_changed' raised")

    def _report(self, handle: SpeechHandle, error: str | None) -> None:
        request: tuple[int, int] | None = self._requests.pop(handle.request_id, None)
        if request is None:
            logger.debug("Report for unknown or abandoned request %d ignored", handle.request_id)
            return
        if self._current_handle is not None and self._current_handle.request_id == handle.request_id:
            self._current_handle = None
        index, generation = request
        if error is None:
            self._apply(SegmentEnded(index, generation))
        else:
            self._apply(SegmentFailed(index, generation, error))

    def _watchdog_check(self) -> None:
        session: PlaybackSession = self._session
        if session.state is not PlaybackState.SPEAKING or not session.in_flight:
            return
        if self.capability.is_paused:
            logger.warning("Speech capability paused on its own at index %d; resuming", session.index)
            self.capability.resume()

    @staticmethod
    def _validate_rate(value: float) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            msg: str = f"Rate must be a number, got {type(value).__name__}"
            raise ValueError(msg)
        if not math.isfinite(value) or value <= 0:
            msg = f"Rate must be a positive finite number, got {value}"
            raise ValueError(msg)
        return float(value)

    def _checked_options(self, options: PlaybackOptions | None) -> PlaybackOptions:
        if options is None:
            return self._default_options
        self._validate_rate(options.rate)
        return options
