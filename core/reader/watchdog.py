from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = ["Watchdog"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class Watchdog:
    """Periodic background check on the event loop.

    Calls ``check`` every ``interval`` seconds until stopped. The check decides on its
    own whether anything needs correcting; the watchdog only keeps time. An exception
    raised by the check is logged and the watchdog keeps running.
    """

    def __init__(self, interval: float, check: Callable[[], None]) -> None:
        """Initialize the Watchdog.

        Args:
            interval (float): Seconds between checks; must be positive.
            check (Callable[[], None]): Callback run on every tick.

        Raises:
            ValueError: If interval is not positive.
        """
        if interval <= 0:
            msg: str = f"Watchdog interval must be positive, got {interval}"
            raise ValueError(msg)
        self.interval: float = interval
        self._check: Callable[[], None] = check
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start ticking; does nothing if already running."""
        if self.is_running:
            return
        loop = loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="reader_watchdog_task")
        logger.debug("Watchdog started (interval %.2fs)", self.interval)

    def stop(self) -> None:
        """Stop ticking; safe to call when not running."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            logger.debug("Watchdog stopped")
        self._task = None

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    self._check()
                except Exception:
                    logger.exception("Watchdog check failed")
        except asyncio.CancelledError:
            logger.debug("Watchdog task cancelled")
            raise
