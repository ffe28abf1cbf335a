"""Playback sequencer: the reading state machine.

``transition`` takes the current session and one event and returns the next session
together with the effects the engine has to carry out. It performs no I/O and never
touches the speech capability or the event loop, so every path through the state
machine can be exercised with plain function calls.

Staleness is handled with a generation number. Every interruption (stop, skip, seek,
restart after a rate or voice change, a new speak request) bumps the generation, and
every capability report and timer carries the generation it was issued under. Reports
whose generation no longer matches are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from core.reader.retry_policy import RetryPolicy
from core.reader.segmenter import segment_text
from models.event_models import (
    Cancel,
    ChangeRate,
    ChangeVoice,
    Next,
    Notify,
    NotifyKind,
    Pause,
    PauseCapability,
    Previous,
    Resume,
    ResumeCapability,
    RetryElapsed,
    Schedule,
    Seek,
    SegmentEnded,
    SegmentFailed,
    SettleElapsed,
    Speak,
    StartWatchdog,
    Stop,
    StopWatchdog,
    Submit,
)
from models.playback_models import PlaybackSession, PlaybackState, ReaderSettings
from utils.logger_utils import LoggerUtils
from utils.text_utils import TextUtils

if TYPE_CHECKING:
    import logging

    from models.event_models import Effect, Event
    from models.segment_models import SegmentedText

__all__: list[str] = ["Transition", "transition"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """Result of one state machine step."""

    session: PlaybackSession
    effects: tuple[Effect, ...] = ()


def transition(session: PlaybackSession, event: Event, settings: ReaderSettings | None = None) -> Transition:
    """Apply ``event`` to ``session``.

    Args:
        session (PlaybackSession): Current session; an idle session when nothing is playing.
        event (Event): Transport request, capability report or elapsed timer.
        settings (ReaderSettings | None): Delays and limits; defaults when None.

    Returns:
        Transition: The next session and the effects to execute, in order.
    """
    settings = settings or ReaderSettings()
    match event:
        case Speak():
            return _on_speak(session, event, settings)
        case Pause():
            return _on_pause(session)
        case Resume():
            return _on_resume(session)
        case Stop():
            return _on_stop(session)
        case Next():
            return _on_step(session, +1)
        case Previous():
            return _on_step(session, -1)
        case Seek():
            return _on_seek(session, event)
        case ChangeRate() | ChangeVoice():
            return _on_option_change(session, event)
        case SegmentEnded():
            return _on_segment_ended(session, event, settings)
        case SegmentFailed():
            return _on_segment_failed(session, event, settings)
        case SettleElapsed() | RetryElapsed():
            return _on_timer(session, event)
    msg: str = f"Unknown event: {event!r}"
    raise TypeError(msg)


def _issue(session: PlaybackSession) -> Transition:
    """Submit the current segment of a speaking session."""
    text: str | None = session.segments.text_of(session.index)
    if text is None:
        msg: str = f"No speech segment at index {session.index} (total {session.total})"
        raise IndexError(msg)
    issued: PlaybackSession = replace(session, in_flight=True)
    return Transition(
        issued,
        (
            Notify(NotifyKind.SEGMENT_START, (session.index,)),
            Notify(NotifyKind.PROGRESS, (session.index + 1, session.total)),
            Submit(
                index=session.index,
                text=text,
                rate=session.options.rate,
                voice=session.options.voice,
                generation=session.generation,
            ),
        ),
    )


def _jump(session: PlaybackSession, target: int) -> Transition:
    """Abandon the current request and start ``target`` under a new generation."""
    effects: list[Effect] = [Cancel()]
    if session.state is PlaybackState.PAUSED:
        effects.append(ResumeCapability())
    jumped: PlaybackSession = replace(
        session,
        state=PlaybackState.SPEAKING,
        index=target,
        retry_count=0,
        generation=session.generation + 1,
        in_flight=False,
    )
    issued: Transition = _issue(jumped)
    return Transition(issued.session, (*effects, *issued.effects))


def _on_speak(session: PlaybackSession, event: Speak, settings: ReaderSettings) -> Transition:
    effects: list[Effect] = []
    if session.is_active:
        effects.append(Cancel())
        if session.state is PlaybackState.PAUSED:
            effects.append(ResumeCapability())

    segments: SegmentedText = segment_text(event.text, settings.marker_prefix)
    fresh = PlaybackSession(
        text_id=TextUtils.text_identity(event.text),
        segments=segments,
        state=PlaybackState.SPEAKING,
        index=0,
        generation=session.generation + 1,
        options=event.options,
    )

    if fresh.total == 0:
        logger.info("Nothing speakable in text '%s'; completed immediately", fresh.text_id)
        effects.append(StopWatchdog())
        effects.append(Notify(NotifyKind.COMPLETE))
        return Transition(replace(fresh, state=PlaybackState.COMPLETED), tuple(effects))

    if event.display_index is not None:
        start: int | None = segments.index_map.to_speech(event.display_index)
        fresh = replace(fresh, index=start or 0)

    logger.info(
        "Start reading '%s' at speech index %d of %d (generation %d)",
        fresh.text_id,
        fresh.index,
        fresh.total,
        fresh.generation,
    )
    effects.append(StartWatchdog())
    issued: Transition = _issue(fresh)
    return Transition(issued.session, (*effects, *issued.effects))


def _on_pause(session: PlaybackSession) -> Transition:
    if session.state is not PlaybackState.SPEAKING:
        logger.debug("Pause ignored in state '%s'", session.state)
        return Transition(session)
    return Transition(replace(session, state=PlaybackState.PAUSED), (PauseCapability(),))


def _on_resume(session: PlaybackSession) -> Transition:
    if session.state is not PlaybackState.PAUSED:
        logger.debug("Resume ignored in state '%s'", session.state)
        return Transition(session)
    resumed: PlaybackSession = replace(session, state=PlaybackState.SPEAKING)
    if resumed.in_flight:
        return Transition(resumed, (ResumeCapability(),))
    # The segment finished or failed while paused; carry on with the current index.
    issued: Transition = _issue(resumed)
    return Transition(issued.session, (ResumeCapability(), *issued.effects))


def _on_stop(session: PlaybackSession) -> Transition:
    effects: list[Effect] = []
    if session.is_active:
        effects.append(Cancel())
        if session.state is PlaybackState.PAUSED:
            effects.append(ResumeCapability())
    effects.append(StopWatchdog())
    logger.info("Reading stopped (state was '%s')", session.state)
    return Transition(PlaybackSession.idle(session.generation + 1, session.options), tuple(effects))


def _on_step(session: PlaybackSession, step: int) -> Transition:
    if not session.is_active:
        logger.debug("Skip ignored in state '%s'", session.state)
        return Transition(session)
    target: int = max(0, min(session.index + step, session.total - 1))
    if target == session.index:
        logger.debug("Skip ignored at boundary index %d", session.index)
        return Transition(session)
    return _jump(session, target)


def _on_seek(session: PlaybackSession, event: Seek) -> Transition:
    if not session.is_active:
        logger.debug("Seek ignored in state '%s'", session.state)
        return Transition(session)
    target: int | None = session.segments.index_map.to_speech(event.display_index)
    if target is None:
        return Transition(session)
    logger.debug("Seek display index %d -> speech index %d", event.display_index, target)
    return _jump(session, target)


def _on_option_change(session: PlaybackSession, event: ChangeRate | ChangeVoice) -> Transition:
    if isinstance(event, ChangeRate):
        updated: PlaybackSession = replace(session, options=session.options.with_rate(event.rate))
    else:
        updated = replace(session, options=session.options.with_voice(event.voice))

    if not (event.restart and updated.state is PlaybackState.SPEAKING and updated.in_flight):
        return Transition(updated)

    # The capability cannot change parameters mid-utterance; restart the segment.
    restarted: PlaybackSession = replace(updated, generation=updated.generation + 1, in_flight=False)
    issued: Transition = _issue(restarted)
    return Transition(issued.session, (Cancel(), *issued.effects))


def _is_current(session: PlaybackSession, index: int, generation: int) -> bool:
    return session.is_active and generation == session.generation and index == session.index


def _on_segment_ended(session: PlaybackSession, event: SegmentEnded, settings: ReaderSettings) -> Transition:
    if not (_is_current(session, event.index, event.generation) and session.in_flight):
        logger.debug("Stale end event for index %d (generation %d)", event.index, event.generation)
        return Transition(session)

    next_index: int = event.index + 1
    advanced: PlaybackSession = replace(session, index=next_index, retry_count=0, in_flight=False)
    effects: list[Effect] = [Notify(NotifyKind.SEGMENT_END, (event.index,))]

    if next_index >= session.total:
        logger.info("Finished reading '%s'", session.text_id)
        effects.append(StopWatchdog())
        effects.append(Notify(NotifyKind.COMPLETE))
        return Transition(replace(advanced, state=PlaybackState.COMPLETED), tuple(effects))

    if advanced.state is PlaybackState.SPEAKING:
        effects.append(Schedule(settings.settle_delay, SettleElapsed(next_index, advanced.generation)))
    return Transition(advanced, tuple(effects))


def _on_segment_failed(session: PlaybackSession, event: SegmentFailed, settings: ReaderSettings) -> Transition:
    if not (_is_current(session, event.index, event.generation) and session.in_flight):
        logger.debug("Stale error '%s' for index %d (generation %d)", event.error, event.index, event.generation)
        return Transition(session)

    policy: RetryPolicy = RetryPolicy.from_settings(settings)
    if policy.is_interruption(event.error):
        logger.debug("Interruption reported for index %d; ignored", event.index)
        return Transition(session)

    if policy.should_retry(session.retry_count):
        retried: PlaybackSession = replace(session, retry_count=session.retry_count + 1, in_flight=False)
        logger.warning(
            "Playback error '%s' at index %d; retry %d of %d",
            event.error,
            event.index,
            retried.retry_count,
            max(policy.max_retries - 1, 0),
        )
        return Transition(retried, (Schedule(policy.delay, RetryElapsed(event.index, session.generation)),))

    logger.error("Playback error '%s' at index %d; giving up", event.error, event.index)
    halted: PlaybackSession = replace(session, state=PlaybackState.STOPPED, in_flight=False)
    return Transition(halted, (StopWatchdog(), Notify(NotifyKind.FATAL_ERROR, (event.index, event.error))))


def _on_timer(session: PlaybackSession, event: SettleElapsed | RetryElapsed) -> Transition:
    if not _is_current(session, event.index, event.generation) or session.in_flight:
        logger.debug("Stale timer %r", event)
        return Transition(session)
    if session.state is not PlaybackState.SPEAKING:
        # Paused while waiting; resume() issues the segment.
        return Transition(session)
    return _issue(session)
