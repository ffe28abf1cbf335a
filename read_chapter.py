"""Read a chapter aloud from the console.

The chapter file is split into paragraphs; lines starting with '##' are shown as
headings and not spoken. While reading, type a command and press Enter:

    p        pause / resume
    n / b    next / previous paragraph
    g N      go to paragraph N as numbered in the listing
    + / -    faster / slower
    v ID     change voice (see 'l')
    l        list voices
    s        stop
    q        quit

Settings are read from chapter_reader.ini; command-line options override them.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

import core.speech.engines  # noqa: F401  # registers the speech engines
from config.loader import Config, ConfigLoader, ConfigLoaderError
from core.reader.engine import ReadAloudEngine
from core.speech.interface import SpeechCapability, SpeechExceptionError
from models.playback_models import PlaybackOptions
from utils.logger_utils import LoggerUtils
from utils.text_utils import TextUtils

if TYPE_CHECKING:
    import logging

CFG_FILE: Final[str] = "chapter_reader.ini"
RATE_STEP: Final[float] = 0.1
MIN_RATE: Final[float] = 0.5
MAX_RATE: Final[float] = 3.0

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def check_python_version() -> None:
    """Check if Python version is 3.13 or later.

    Raises:
        RuntimeError: If Python version is below 3.13.
    """
    if sys.version_info < (3, 13):
        msg = "Python 3.13 or later is required"
        raise RuntimeError(msg)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = _ArgumentParser(
        description="Read a chapter aloud paragraph by paragraph",
        epilog="Example: python read_chapter.py chapter01.txt --from 12 --rate 1.2",
    )
    parser.add_argument("file", metavar="FILE", help="UTF-8 text file to read")
    parser.add_argument("--from", dest="start", metavar="N", type=int, default=1, help="Start at paragraph N")
    parser.add_argument("--rate", dest="rate", metavar="RATE", type=float, help="Override speech rate")
    parser.add_argument("--voice", dest="voice", metavar="VOICE", help="Override voice id")
    parser.add_argument("--config", dest="config", metavar="INI", default=CFG_FILE, help="Configuration file")
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration file and apply CLI overrides.

    Raises:
        ConfigLoaderError: If configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    return ConfigLoader(
        config_filename=args.config,
        script_name=script_name,
        rate=args.rate,
        voice=args.voice,
        debug=args.debug,
    ).config


def setup_logging(config: Config) -> None:
    logger_utils = LoggerUtils(config.GENERAL.LOG_FILE)
    logger_utils.set_level("DEBUG" if config.GENERAL.DEBUG else config.GENERAL.LOG_LEVEL)


def create_capability(config: Config) -> SpeechCapability:
    """Instantiate and configure the speech engine named in the configuration.

    Raises:
        SpeechCapabilityError: If no engine of that name is registered.
    """
    capability: SpeechCapability = SpeechCapability.get_engine(config.ENGINE.NAME)()
    capability.configure(config.ENGINE)
    return capability


def print_listing(engine: ReadAloudEngine) -> None:
    for number, text in enumerate(engine.display_texts, start=1):
        print(f"{number:4d}  {TextUtils.preview(text, 70)}")


def handle_command(engine: ReadAloudEngine, line: str) -> bool:
    """Apply one console command.

    Args:
        engine (ReadAloudEngine): Engine to control.
        line (str): Command line as typed.

    Returns:
        bool: False when the user asked to quit.
    """
    command, _, argument = line.strip().partition(" ")
    argument = argument.strip()
    match command.lower():
        case "q":
            return False
        case "p":
            if engine.is_paused:
                engine.resume()
            else:
                engine.pause()
        case "n":
            engine.next()
        case "b":
            engine.previous()
        case "s":
            engine.stop()
        case "g":
            try:
                engine.seek(int(argument) - 1)
            except ValueError:
                print("Usage: g N")
        case "+" | "-":
            step: float = RATE_STEP if command == "+" else -RATE_STEP
            rate: float = round(min(max(engine.rate + step, MIN_RATE), MAX_RATE), 2)
            engine.set_rate(rate)
            print(f"Rate: {rate:.2f}")
        case "v":
            engine.set_voice(argument or None)
            print(f"Voice: {argument or 'default'}")
        case "l":
            voices = engine.list_voices()
            if not voices:
                print("Voice list is loading; it will be announced when ready.")
            for voice in voices:
                print(f"  {voice}")
        case "":
            pass
        case _:
            print(f"Unknown command: '{command}'")
    return True


def announce_voices() -> None:
    print("\nVoice list loaded. Type 'l' to show it.")


def _start_stdin_reader(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str | None]) -> None:
    """Forward console lines to ``queue`` from a daemon thread; EOF becomes 'q'."""

    def _reader() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(queue.put_nowait, line)
        loop.call_soon_threadsafe(queue.put_nowait, "q")

    threading.Thread(target=_reader, name="stdin_reader", daemon=True).start()


async def read_aloud(engine: ReadAloudEngine, text: str, start: int) -> None:
    """Read ``text`` from display paragraph ``start`` (1-based) until finished or quit."""
    loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
    commands: asyncio.Queue[str | None] = asyncio.Queue()

    def on_segment_start(index: int) -> None:
        display_index: int | None = engine.current_display_index
        number: int = (display_index if display_index is not None else index) + 1
        print(f"\n[{number}/{engine.total_display_segments}] {TextUtils.preview(engine.segment_text(index) or '', 70)}")

    def on_complete() -> None:
        print("\nFinished.")
        commands.put_nowait(None)

    def on_fatal_error(index: int, error: str) -> None:
        print(f"\nGave up at paragraph {index + 1}: {error}", file=sys.stderr)
        commands.put_nowait(None)

    options: PlaybackOptions = PlaybackOptions(
        rate=engine.rate,
        voice=engine.voice,
        on_segment_start=on_segment_start,
        on_complete=on_complete,
        on_fatal_error=on_fatal_error,
    )
    engine.speak_from(text, max(start - 1, 0), options)
    print_listing(engine)
    print(f"\nAbout {engine.estimated_minutes_remaining()} min. Commands: p n b g N + - v ID l s q")

    _start_stdin_reader(loop, commands)
    while True:
        line: str | None = await commands.get()
        if line is None or not handle_command(engine, line):
            break


async def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        int: Process exit status.
    """
    check_python_version()
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1
    setup_logging(config)

    try:
        text: str = Path(args.file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        print(f"\nError: Cannot read '{args.file}': {err}", file=sys.stderr)
        return 1
    logger.info("Reading '%s' (%d characters)", args.file, len(text))

    try:
        engine: ReadAloudEngine = ReadAloudEngine.from_config(
            config, create_capability(config), on_voices_changed=announce_voices
        )
    except SpeechExceptionError as err:
        print(f"\nError: {err}", file=sys.stderr)
        return 1

    try:
        await read_aloud(engine, text, args.start)
    except SpeechExceptionError as err:
        print(f"\nError: {err}", file=sys.stderr)
        return 1
    finally:
        await engine.aclose()
    return 0


def _console_main() -> None:
    try:
        status: int = asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nReading cancelled by user.", file=sys.stderr)
        status = 130
    sys.exit(status)


if __name__ == "__main__":
    _console_main()
