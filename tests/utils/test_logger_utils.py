from __future__ import annotations

import logging
from logging import NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

import pytest

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def fresh_logger_utils() -> Iterator[None]:
    """Give each test an unconfigured LoggerUtils under its own namespace."""
    prev_namespace: str = LoggerUtils._LOGGER_NAMESPACE
    prev_configured: bool = LoggerUtils._configured
    prev_instance = LoggerUtils._instance
    LoggerUtils._configured = False
    LoggerUtils._instance = None
    LoggerUtils._LOGGER_NAMESPACE = "ChapterReaderTest"
    yield
    root = logging.getLogger("ChapterReaderTest")
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    LoggerUtils._LOGGER_NAMESPACE = prev_namespace
    LoggerUtils._configured = prev_configured
    LoggerUtils._instance = prev_instance


def test_get_logger_uses_namespace(fresh_logger_utils: None) -> None:
    _ = fresh_logger_utils
    assert LoggerUtils.get_logger("core.reader").name == "ChapterReaderTest.core.reader"
    assert LoggerUtils.get_logger().name == "ChapterReaderTest"


def test_singleton_and_single_configuration(fresh_logger_utils: None) -> None:
    _ = fresh_logger_utils
    first = LoggerUtils(use_null_console=True)
    second = LoggerUtils()

    assert first is second
    handlers = logging.getLogger("ChapterReaderTest").handlers
    assert [type(h) for h in handlers] == [NullHandler]


def test_console_handler_logs_warnings(fresh_logger_utils: None) -> None:
    _ = fresh_logger_utils
    LoggerUtils()

    handlers = logging.getLogger("ChapterReaderTest").handlers

    assert len(handlers) == 1
    assert type(handlers[0]) is StreamHandler
    assert handlers[0].level == logging.WARNING


def test_file_handler_writes_debug_messages(fresh_logger_utils: None, tmp_path: Path) -> None:
    _ = fresh_logger_utils
    log_file: Path = tmp_path / "reader.log"
    utils = LoggerUtils(log_file, use_null_console=True)
    utils.set_level("DEBUG")

    LoggerUtils.get_logger("test").debug("segment submitted")
    for handler in logging.getLogger("ChapterReaderTest").handlers:
        handler.flush()

    assert any(isinstance(h, RotatingFileHandler) for h in logging.getLogger("ChapterReaderTest").handlers)
    assert "segment submitted" in log_file.read_text(encoding="utf-8")


def test_set_level_and_unknown_level_fallback(fresh_logger_utils: None) -> None:
    _ = fresh_logger_utils
    utils = LoggerUtils(use_null_console=True)

    utils.set_level("error")
    assert utils.get_level().name == "ERROR"

    utils.set_level("LOUD")
    assert utils.get_level().value == logging.INFO
