"""Unit tests for core.reader.engine module."""

from __future__ import annotations

import asyncio
import logging
from types import SimpleNamespace
from typing import TYPE_CHECKING, cast
from unittest.mock import MagicMock

import pytest

from core.reader.engine import SUBMIT_FAILED, ReadAloudEngine
from core.speech.interface import SpeechCapability, SpeechHandle, SpeechNotSupportedError
from models.config_models import ReaderConfig
from models.playback_models import PlaybackOptions, PlaybackState, ReaderSettings
from models.voice_models import VoiceInfo

if TYPE_CHECKING:
    from models.config_models import Config

TEXT = "Intro.\n\n## Scene One\n\nShe walked in.\n\nHe looked up."


class FakeCapability(SpeechCapability):
    """In-memory capability; the test decides when a submission ends or fails."""

    def __init__(self) -> None:
        super().__init__()
        self.submitted: list[tuple[SpeechHandle, float, str | None]] = []
        self.cancelled: list[SpeechHandle | None] = []
        self.calls: list[str] = []
        self.paused: bool = False
        self.fail_submit: bool = False
        self.fail_pause: bool = False
        self.closed: bool = False

    @staticmethod
    def fetch_engine_name() -> str:
        return "fake"

    def submit(self, text: str, rate: float, voice: str | None) -> SpeechHandle:
        if self.fail_submit:
            msg = "device busy"
            raise RuntimeError(msg)
        handle: SpeechHandle = self.new_handle(text)
        self.submitted.append((handle, rate, voice))
        return handle

    def pause(self) -> None:
        if self.fail_pause:
            msg = "device lost"
            raise RuntimeError(msg)
        self.paused = True
        self.calls.append("pause")

    def resume(self) -> None:
        self.paused = False
        self.calls.append("resume")

    def cancel(self, handle: SpeechHandle | None = None) -> None:
        self.cancelled.append(handle)

    @property
    def is_paused(self) -> bool:
        return self.paused

    def list_voices(self) -> list[VoiceInfo]:
        return [VoiceInfo(id="en", label="English", locale="en")]

    async def close(self) -> None:
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [handle.text for handle, _rate, _voice in self.submitted]

    def finish(self, position: int = -1) -> None:
        self.report_end(self.submitted[position][0])

    def fail(self, error: str, position: int = -1) -> None:
        self.report_error(self.submitted[position][0], error)


class UnsupportedCapability(FakeCapability):
    @staticmethod
    def fetch_engine_name() -> str:
        return "fake_unsupported"

    @classmethod
    def is_supported(cls) -> bool:
        return False


async def _drain() -> None:
    """Let zero-delay timers fire."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def capability() -> FakeCapability:
    return FakeCapability()


@pytest.fixture
def engine(capability: FakeCapability) -> ReadAloudEngine:
    settings = ReaderSettings(settle_delay=0.0, max_retries=3, retry_delay=0.0, watchdog_interval=60.0)
    return ReadAloudEngine(capability, settings)


class TestTransport:
    @pytest.mark.asyncio
    async def test_speak_submits_first_segment_and_notifies(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        starts: list[int] = []
        progress: list[tuple[int, int]] = []

        engine.speak(TEXT, PlaybackOptions(on_segment_start=starts.append, on_progress=lambda *a: progress.append(a)))

        assert capability.texts == ["Intro."]
        assert starts == [0]
        assert progress == [(1, 3)]
        assert engine.state is PlaybackState.SPEAKING
        assert engine.is_speaking is True
        assert engine.is_reading is True
        assert engine.total_segments == 3
        assert engine.total_display_segments == 4
        engine.stop()

    @pytest.mark.asyncio
    async def test_reads_to_completion(self, engine: ReadAloudEngine, capability: FakeCapability) -> None:
        ended: list[int] = []
        completed = MagicMock()
        engine.speak(TEXT, PlaybackOptions(on_segment_end=ended.append, on_complete=completed))

        for _ in range(3):
            capability.finish()
            await _drain()

        assert capability.texts == ["Intro.", "She walked in.", "He looked up."]
        assert ended == [0, 1, 2]
        completed.assert_called_once_with()
        assert engine.state is PlaybackState.COMPLETED
        assert engine._watchdog.is_running is False

    @pytest.mark.asyncio
    async def test_speak_from_display_position(self, engine: ReadAloudEngine, capability: FakeCapability) -> None:
        engine.speak_from(TEXT, 1)

        assert capability.texts == ["She walked in."]
        assert engine.current_speech_index == 1
        assert engine.current_display_index == 2
        engine.stop()

    @pytest.mark.asyncio
    async def test_next_from_segment_start_callback(self, engine: ReadAloudEngine, capability: FakeCapability) -> None:
        ended: list[int] = []

        def on_segment_start(index: int) -> None:
            if index == 0:
                engine.next()

        engine.speak(TEXT, PlaybackOptions(on_segment_start=on_segment_start, on_segment_end=ended.append))
        first: SpeechHandle = capability.submitted[0][0]

        assert capability.texts == ["Intro.", "She walked in."]
        assert capability.cancelled == [first]

        capability.finish(0)
        await _drain()

        assert ended == []
        assert engine.current_speech_index == 1
        engine.stop()

    @pytest.mark.asyncio
    async def test_interruptions_never_advance(self, engine: ReadAloudEngine, capability: FakeCapability) -> None:
        engine.speak(TEXT)

        for _ in range(4):
            capability.fail("interrupted")
            await _drain()

        assert capability.texts == ["Intro."]
        assert engine.session.retry_count == 0
        assert engine.state is PlaybackState.SPEAKING
        engine.stop()
        assert engine.state is PlaybackState.IDLE

    @pytest.mark.asyncio
    async def test_third_failure_stops_with_fatal_error(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        fatal = MagicMock()
        completed = MagicMock()
        engine.speak_from(TEXT, 3, PlaybackOptions(on_fatal_error=fatal, on_complete=completed))

        for _ in range(3):
            capability.fail("network")
            await _drain()

        assert capability.texts == ["He looked up."] * 3
        assert engine.state is PlaybackState.STOPPED
        fatal.assert_called_once_with(2, "network")
        completed.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_exception_is_charged_as_failure(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        fatal = MagicMock()
        capability.fail_submit = True

        engine.speak(TEXT, PlaybackOptions(on_fatal_error=fatal))
        await _drain()

        assert engine.state is PlaybackState.STOPPED
        fatal.assert_called_once_with(0, SUBMIT_FAILED)

    @pytest.mark.asyncio
    async def test_pause_and_resume_reach_capability(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)

        engine.pause()
        assert engine.is_paused is True
        engine.pause()
        engine.resume()

        assert capability.calls == ["pause", "resume"]
        assert engine.is_speaking is True
        engine.stop()

    @pytest.mark.asyncio
    async def test_end_while_paused_continues_on_resume(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)
        engine.pause()
        capability.finish()
        await _drain()

        assert capability.texts == ["Intro."]

        engine.resume()

        assert capability.texts == ["Intro.", "She walked in."]
        engine.stop()

    @pytest.mark.asyncio
    async def test_seek_and_previous(self, engine: ReadAloudEngine, capability: FakeCapability) -> None:
        engine.speak(TEXT)

        engine.seek(3)
        engine.previous()

        assert capability.texts == ["Intro.", "He looked up.", "She walked in."]
        assert len(capability.cancelled) == 2
        engine.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_settle_timer(self, capability: FakeCapability) -> None:
        engine = ReadAloudEngine(capability, ReaderSettings(settle_delay=0.05, watchdog_interval=60.0))
        engine.speak(TEXT)
        capability.finish()
        await _drain()

        engine.stop()
        await asyncio.sleep(0.1)

        assert capability.texts == ["Intro."]
        assert engine._timers == set()
        assert engine.state is PlaybackState.IDLE

    @pytest.mark.asyncio
    async def test_callback_exception_is_logged(
        self, engine: ReadAloudEngine, capability: FakeCapability, caplog: pytest.LogCaptureFixture
    ) -> None:
        def on_segment_start(_index: int) -> None:
            msg = "ui failure"
            raise RuntimeError(msg)

        with caplog.at_level(logging.ERROR):
            engine.speak(TEXT, PlaybackOptions(on_segment_start=on_segment_start))

        assert capability.texts == ["Intro."]
        assert "Callback 'on_segment_start' raised" in caplog.text
        engine.stop()

    @pytest.mark.asyncio
    async def test_failed_job_discards_calls_queued_behind_it(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        def on_segment_start(_index: int) -> None:
            engine.pause()
            engine.next()

        capability.fail_pause = True
        with pytest.raises(RuntimeError, match="device lost"):
            engine.speak(TEXT, PlaybackOptions(on_segment_start=on_segment_start))

        assert not engine._pending
        capability.fail_pause = False
        engine.resume()

        assert capability.texts == ["Intro."]
        assert engine.current_speech_index == 0
        engine.stop()

    def test_unsupported_capability_rejects_speak(self) -> None:
        engine = ReadAloudEngine(UnsupportedCapability())

        assert engine.is_supported() is False
        with pytest.raises(SpeechNotSupportedError):
            engine.speak(TEXT)
        assert engine.state is PlaybackState.IDLE

    @pytest.mark.asyncio
    async def test_aclose_stops_and_closes_capability(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)

        await engine.aclose()

        assert engine.state is PlaybackState.IDLE
        assert capability.closed is True


class TestRateAndVoice:
    @pytest.mark.parametrize("value", [0, -1.0, float("nan"), float("inf"), True, "fast"])
    def test_invalid_rate_raises(self, engine: ReadAloudEngine, value: object) -> None:
        with pytest.raises(ValueError, match="Rate must be"):
            engine.set_rate(value)  # type: ignore[arg-type]

    def test_invalid_rate_in_options_raises(self, engine: ReadAloudEngine) -> None:
        with pytest.raises(ValueError, match="Rate must be"):
            engine.speak(TEXT, PlaybackOptions(rate=0))

    @pytest.mark.asyncio
    async def test_rate_change_restarts_current_segment(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)

        engine.set_rate(1.5)

        assert [(handle.text, rate) for handle, rate, _voice in capability.submitted] == [
            ("Intro.", 1.0),
            ("Intro.", 1.5),
        ]
        assert engine.rate == 1.5
        engine.stop()

    @pytest.mark.asyncio
    async def test_voice_change_without_restart_applies_to_next_segment(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)

        engine.set_voice("en", restart=False)
        capability.finish()
        await _drain()

        assert [voice for _handle, _rate, voice in capability.submitted] == [None, "en"]
        engine.stop()

    @pytest.mark.asyncio
    async def test_defaults_carry_into_next_speak(self, engine: ReadAloudEngine, capability: FakeCapability) -> None:
        engine.set_rate(2)
        engine.set_voice("de")

        engine.speak(TEXT)

        assert capability.submitted[0][1:] == (2.0, "de")
        assert engine.status().rate == 2.0
        engine.stop()


class TestIntrospection:
    def test_idle_state(self, engine: ReadAloudEngine) -> None:
        assert engine.state is PlaybackState.IDLE
        assert engine.current_display_index is None
        assert engine.total_segments == 0
        assert engine.is_reading is False
        assert engine.estimated_minutes_remaining() == 0

    @pytest.mark.asyncio
    async def test_status_serializes_with_camel_case(self, engine: ReadAloudEngine) -> None:
        engine.speak_from(TEXT, 2)

        status = engine.status().to_dict()

        assert status["state"] == "speaking"
        assert status["speechIndex"] == 1
        assert status["displayIndex"] == 2
        assert status["totalSegments"] == 3
        assert status["totalDisplaySegments"] == 4
        engine.stop()

    @pytest.mark.asyncio
    async def test_segment_texts_and_estimate(self, engine: ReadAloudEngine) -> None:
        engine.speak(TEXT)

        assert engine.display_texts[1] == "## Scene One"
        assert engine.segment_text(2) == "He looked up."
        assert engine.segment_text(3) is None
        assert engine.estimated_minutes_remaining() == 1
        engine.stop()

    def test_list_voices_delegates_to_capability(self, engine: ReadAloudEngine) -> None:
        assert [voice.id for voice in engine.list_voices()] == ["en"]

    def test_voices_changed_reaches_engine_receiver(self, capability: FakeCapability) -> None:
        receiver = MagicMock()
        ReadAloudEngine(capability, on_voices_changed=receiver)

        capability.report_voices_changed()

        receiver.assert_called_once_with()

    def test_voices_changed_receiver_error_is_logged(
        self, capability: FakeCapability, caplog: pytest.LogCaptureFixture
    ) -> None:
        ReadAloudEngine(capability, on_voices_changed=MagicMock(side_effect=RuntimeError("boom")))

        with caplog.at_level(logging.ERROR):
            capability.report_voices_changed()

        assert "on_voices_changed" in caplog.text

    def test_voices_changed_without_receiver_is_ignored(self, capability: FakeCapability) -> None:
        ReadAloudEngine(capability)

        capability.report_voices_changed()

    @pytest.mark.asyncio
    async def test_watchdog_check_resumes_stuck_capability(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)
        capability.paused = True

        engine._watchdog_check()

        assert capability.calls == ["resume"]
        engine.stop()

    @pytest.mark.asyncio
    async def test_watchdog_check_leaves_user_pause_alone(
        self, engine: ReadAloudEngine, capability: FakeCapability
    ) -> None:
        engine.speak(TEXT)
        engine.pause()

        engine._watchdog_check()

        assert capability.calls == ["pause"]
        engine.stop()

    def test_from_config_uses_reader_section(self, capability: FakeCapability) -> None:
        reader = ReaderConfig(RATE=1.25, VOICE="fr", MAX_RETRIES=5, SETTLE_DELAY=0.1)
        config = cast("Config", SimpleNamespace(READER=reader))

        engine = ReadAloudEngine.from_config(config, capability)

        assert engine.rate == 1.25
        assert engine.voice == "fr"
        assert engine.settings.max_retries == 5
        assert engine.settings.settle_delay == 0.1
