from __future__ import annotations

import asyncio
import contextlib
import threading
from dataclasses import dataclass, field
from functools import partial
from io import BytesIO
from typing import TYPE_CHECKING, Any, Final

import numpy as np
import pyaudio
import soundfile
from gtts import gTTS, gTTSError
from gtts.lang import tts_langs
from numpy import dtype

from core.speech.interface import SpeechCapability, SpeechHandle
from models.re_models import WORD_CHARACTER_PATTERN
from models.voice_models import VoiceInfo
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import EngineConfig

__all__: list[str] = ["GoogleSpeechPlayer"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# Error kinds reported to the engine
ERROR_INTERRUPTED: Final[str] = "interrupted"
ERROR_SYNTHESIS: Final[str] = "synthesis-failed"
ERROR_DECODE: Final[str] = "audio-decode-failed"
ERROR_OUTPUT: Final[str] = "audio-output-failed"

# Output buffer length in seconds
BUFFER_SECONDS: Final[float] = 0.2


@dataclass
class _AudioData:
    raw_pcm: np.ndarray[Any, dtype[np.float32]]
    samplerate: int

    def __post_init__(self) -> None:
        if not isinstance(self.raw_pcm, np.ndarray):
            msg: str = f"Expected ndarray for raw_pcm, got {type(self.raw_pcm)}"
            raise TypeError(msg)
        if not isinstance(self.samplerate, int):
            msg = f"Expected int for samplerate, got {type(self.samplerate)}"
            raise TypeError(msg)


@dataclass
class _PlaybackJob:
    """One submission, shared between the event loop and the PortAudio callback thread."""

    handle: SpeechHandle
    rate: float
    voice: str | None
    paused: threading.Event
    pcm: np.ndarray[Any, dtype[np.float32]] = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    position: int = 0
    cancelled: bool = False


def _to_mono(pcm: np.ndarray[Any, dtype[np.float32]]) -> np.ndarray[Any, dtype[np.float32]]:
    if pcm.ndim == 1:
        return pcm
    return pcm.mean(axis=1).astype(np.float32)


def _apply_rate(pcm: np.ndarray[Any, dtype[np.float32]], rate: float) -> np.ndarray[Any, dtype[np.float32]]:
    """Resample ``pcm`` so it plays ``rate`` times faster at the same sample rate.

    Pitch shifts along with the speed.
    """
    if rate == 1.0 or pcm.shape[0] < 2:
        return pcm
    length: int = max(round(pcm.shape[0] / rate), 1)
    positions = np.linspace(0, pcm.shape[0] - 1, num=length)
    return np.interp(positions, np.arange(pcm.shape[0]), pcm).astype(np.float32)


def _stream_callback_logic(
    in_data,
    frame_count,
    time_info,
    status,
    /,
    job: _PlaybackJob,
    loop: asyncio.AbstractEventLoop,
    finished_event: asyncio.Event,
) -> tuple[bytes | None, int]:
    """Callback function for the PyAudio stream.

    Feeds the job's samples to PortAudio. While the job is paused silence is returned
    and the read position does not move.

    Args:
        in_data: Input data (not used).
        frame_count: Number of frames to provide.
        time_info: Time information (not used).
        status: Status information (not used).
        job (_PlaybackJob): Job being played.
        loop (asyncio.AbstractEventLoop): Event loop that owns ``finished_event``.
        finished_event (asyncio.Event): Set when playback ended or was aborted.

    Returns:
        tuple[bytes | None, int]: Audio data and playback status.
    """
    # The first four are position-only arguments.
    # The order of definitions cannot be changed.
    _ = in_data
    _ = time_info
    _ = status
    try:
        if job.cancelled:
            loop.call_soon_threadsafe(finished_event.set)
            return (None, pyaudio.paAbort)

        if job.paused.is_set():
            return (np.zeros(frame_count, dtype=np.float32).tobytes(), pyaudio.paContinue)

        chunk = job.pcm[job.position : job.position + frame_count]
        job.position += chunk.shape[0]
        # Considered complete when there is no more data to play back
        if chunk.shape[0] < frame_count:
            loop.call_soon_threadsafe(finished_event.set)
            return (chunk.tobytes(), pyaudio.paComplete)

    except RuntimeError as err:
        # Event loop already closed when finished_event is set
        logger.critical("Runtime error in audio callback: %s", err)
        return (None, pyaudio.paAbort)

    return (chunk.tobytes(), pyaudio.paContinue)


class GoogleSpeechPlayer(SpeechCapability):
    """Speaks text with gTTS and plays it through PyAudio.

    The output from gTTS is an mp3 stream. It is decoded to mono float32 samples in
    memory and played from a callback stream, so pausing only has to swap in silence.
    The rate is applied by resampling; rates below the configured slow rate use the
    gTTS slow voice instead. A voice id is a gTTS language code.
    """

    def __init__(self) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()
        self.lang: str = "en"
        self.tld: str = "com"
        self.slow_rate: float = 0.75
        self._paused: threading.Event = threading.Event()
        self._job: _PlaybackJob | None = None
        self._task: asyncio.Task[None] | None = None
        self._voices: list[VoiceInfo] | None = None
        self._voices_task: asyncio.Task[None] | None = None
        self._pyaudio: pyaudio.PyAudio | None = None

    @staticmethod
    def fetch_engine_name() -> str:
        return "gtts"

    @classmethod
    def is_supported(cls) -> bool:
        """True when PortAudio has a default output device."""
        try:
            audio: pyaudio.PyAudio = pyaudio.PyAudio()
        except OSError as err:
            logger.warning("PortAudio unavailable: %s", err)
            return False
        try:
            audio.get_default_output_device_info()
        except OSError as err:
            logger.warning("No audio output device: %s", err)
            return False
        finally:
            audio.terminate()
        return True

    def configure(self, engine_config: EngineConfig) -> None:
        self.lang = engine_config.LANG
        self.tld = engine_config.TLD
        self.slow_rate = engine_config.SLOW_RATE
        # Output a message to the console
        print("Loaded speech synthesis engine: Google Text-to-Speech")

    def submit(self, text: str, rate: float, voice: str | None) -> SpeechHandle:
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        self.cancel()
        handle: SpeechHandle = self.new_handle(text)
        job = _PlaybackJob(handle=handle, rate=rate, voice=voice, paused=self._paused)
        self._job = job
        self._task = loop.create_task(self._run_job(job), name=f"gtts_request_{handle.request_id}")
        return handle

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def cancel(self, handle: SpeechHandle | None = None) -> None:
        job: _PlaybackJob | None = self._job
        if job is None:
            return
        if handle is not None and handle.request_id != job.handle.request_id:
            return
        job.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._job = None
        self._task = None

    @property
    def is_paused(self) -> bool:
        return self._paused.is_set()

    def list_voices(self) -> list[VoiceInfo]:
        """Languages supported by gTTS.

        Inside a running event loop the catalog is loaded in the background and the
        first call returns an empty list; ``on_voices_changed`` fires once it is ready.
        """
        if self._voices is not None:
            return list(self._voices)
        try:
            loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        except RuntimeError:
            self._voices = self._load_voices()
            return list(self._voices)
        if self._voices_task is None:
            self._voices_task = loop.create_task(self._load_voices_async(), name="gtts_voices_task")
        return []

    async def close(self) -> None:
        task: asyncio.Task[None] | None = self._task
        self.cancel()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._voices_task is not None and not self._voices_task.done():
            self._voices_task.cancel()
        self.release_pyaudio()
        await super().close()

    @property
    def pyaudio(self) -> pyaudio.PyAudio:
        """Gets the PyAudio instance, creating it on first use."""
        if self._pyaudio is None:
            self._pyaudio = pyaudio.PyAudio()
            logger.info("PyAudio instance created")
        return self._pyaudio

    def release_pyaudio(self) -> None:
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None
            logger.info("PyAudio resources released")

    def _load_voices(self) -> list[VoiceInfo]:
        langs: dict[str, str] = tts_langs()
        return [VoiceInfo(id=code, label=name, locale=code) for code, name in sorted(langs.items())]

    async def _load_voices_async(self) -> None:
        self._voices = await asyncio.to_thread(self._load_voices)
        logger.debug("Loaded %d gTTS voices", len(self._voices))
        self.report_voices_changed()

    def _synthesize(self, text: str, rate: float, voice: str | None) -> _AudioData:
        """Run gTTS and decode its mp3 output; blocking, called from a worker thread."""
        mp3_data = BytesIO()
        slow: bool = rate < self.slow_rate
        gtts: gTTS = gTTS(text, lang=voice or self.lang, tld=self.tld, slow=slow)
        gtts.write_to_fp(mp3_data)
        # write_to_fp leaves the file pointer at EOF
        mp3_data.seek(0)
        raw_pcm, samplerate = soundfile.read(mp3_data, dtype="float32")
        pcm = _to_mono(raw_pcm)
        if not slow:
            pcm = _apply_rate(pcm, rate)
        return _AudioData(raw_pcm=pcm, samplerate=int(samplerate))

    async def _run_job(self, job: _PlaybackJob) -> None:
        if not WORD_CHARACTER_PATTERN.search(job.handle.text):
            logger.debug("Request %d has nothing to pronounce", job.handle.request_id)
            self._finish(job, None)
            return
        try:
            audio: _AudioData = await asyncio.to_thread(self._synthesize, job.handle.text, job.rate, job.voice)
            job.pcm = audio.raw_pcm
            logger.debug("Request %d: %d samples at %d Hz", job.handle.request_id, job.pcm.shape[0], audio.samplerate)
            await self._play(job, audio.samplerate)
        except asyncio.CancelledError:
            logger.debug("Request %d interrupted", job.handle.request_id)
            self.report_error(job.handle, ERROR_INTERRUPTED)
            raise
        except gTTSError as err:
            logger.error("gTTS error: %s", err)
            self._finish(job, ERROR_SYNTHESIS)
        except (soundfile.LibsndfileError, soundfile.SoundFileRuntimeError) as err:
            logger.error("SoundFile error: %s", err)
            self._finish(job, ERROR_DECODE)
        except OSError as err:
            logger.error("Audio output error: %s", err)
            self._finish(job, ERROR_OUTPUT)
        except (AssertionError, AttributeError, TypeError, ValueError) as err:
            # gTTS asserts on text without any word characters, e.g. "..."
            logger.error("An error occurred in the TTS process: %s", err)
            self._finish(job, ERROR_SYNTHESIS)
        except Exception:
            # Every submission must end with a report or the session stalls in flight.
            logger.exception("Unexpected error in request %d", job.handle.request_id)
            self._finish(job, ERROR_SYNTHESIS)
        else:
            self._finish(job, ERROR_INTERRUPTED if job.cancelled else None)

    def _finish(self, job: _PlaybackJob, error: str | None) -> None:
        if self._job is job:
            self._job = None
            self._task = None
        if error is None:
            self.report_end(job.handle)
        else:
            self.report_error(job.handle, error)

    async def _play(self, job: _PlaybackJob, samplerate: int) -> None:
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        finished_event: asyncio.Event = asyncio.Event()
        callback_fn: partial[tuple[bytes | None, int]] = partial(
            _stream_callback_logic,
            job=job,
            loop=loop,
            finished_event=finished_event,
        )
        frame_buffer_size: int = max(2048, int(samplerate * BUFFER_SECONDS))
        stream: pyaudio.Stream | None = None
        try:
            stream = self.pyaudio.open(
                format=pyaudio.paFloat32,
                channels=1,
                rate=samplerate,
                output=True,
                frames_per_buffer=frame_buffer_size,
                stream_callback=callback_fn,
            )
            stream.start_stream()
            await finished_event.wait()
        finally:
            if stream is not None:
                with contextlib.suppress(Exception):
                    stream.stop_stream()
                with contextlib.suppress(Exception):
                    stream.close()
