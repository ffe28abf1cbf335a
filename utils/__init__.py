"""Utility modules for the chapter reader.

This package provides logging setup and text statistics helpers.
"""

from utils.logger_utils import LoggerUtils
from utils.text_utils import TextUtils

__all__: list[str] = ["LoggerUtils", "TextUtils"]
