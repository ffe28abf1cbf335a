"""Configuration file loader and validator.

Handles reading, formatting, and validating settings from the INI configuration file.
Raises exceptions for any issues encountered during loading.
"""

from __future__ import annotations

import configparser
import logging
import math
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any

from models.config_models import Config
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from collections.abc import Callable
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Handles loading and validation of configuration settings.

    Reads the INI file into the typed ``Config`` model, applies command-line overrides
    and validates the result.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        rate (float | None): Optional override for READER.RATE.
        voice (str | None): Optional override for READER.VOICE.
        debug (bool): Force GENERAL.DEBUG on.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str,
        script_name: str,
        **args,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser: ConfigParser = ConfigParser()
        # Keep key case; the model uses upper-case field names.
        parser.optionxform = str  # type: ignore[assignment, method-assign]

        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._convert_settings(parser)

        if args.get("rate") is not None:
            self.config.READER.RATE = float(args["rate"])
        if args.get("voice") is not None:
            self.config.READER.VOICE = args["voice"]
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Skipping undefined section: '%s'", section.name)
                continue
            for key in fields(getattr(self.config, section.name)):
                if not parser.has_option(section.name, key.name):
                    logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                    continue
                formatted_value = formatter.apply_format(section, key)
                setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _validate_settings(self) -> None:
        """Validate value ranges of the reader and engine settings.

        Raises:
            ConfigValueError: If a value is out of range.
        """
        self._require_range("READER", "RATE", minimum=0.0, inclusive=False)
        self._require_range("READER", "MAX_RETRIES", minimum=0)
        self._require_range("READER", "RETRY_DELAY", minimum=0.0)
        self._require_range("READER", "SETTLE_DELAY", minimum=0.0)
        self._require_range("READER", "WATCHDOG_INTERVAL", minimum=0.0, inclusive=False)
        self._require_range("ENGINE", "SLOW_RATE", minimum=0.0)

        if not self.config.ENGINE.NAME.strip():
            msg: str = "'ENGINE.NAME' must not be empty."
            raise ConfigValueError(msg)

        level: str = self.config.GENERAL.LOG_LEVEL.upper()
        if level not in logging.getLevelNamesMapping():
            msg = f"Unknown logging level for 'GENERAL.LOG_LEVEL': {self.config.GENERAL.LOG_LEVEL}"
            raise ConfigValueError(msg)
        self.config.GENERAL.LOG_LEVEL = level

    def _require_range(self, section_name: str, key_name: str, *, minimum: float, inclusive: bool = True) -> None:
        value: float = getattr(getattr(self.config, section_name), key_name)
        msg: str
        field_name: str = f"{section_name}.{key_name}"
        if not math.isfinite(value):
            msg = f"'{field_name}' must be a finite number, got {value}"
            raise ConfigValueError(msg)
        if value < minimum or (not inclusive and value == minimum):
            bound: str = f">= {minimum}" if inclusive else f"> {minimum}"
            msg = f"'{field_name}' must be {bound}, got {value}"
            raise ConfigValueError(msg)


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, str)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert an INI value to the type of the matching Config field.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        formatters: dict[type, Callable[[DataclassField[Any], DataclassField[Any]], Any]] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
            str: self.parse_as_string,
        }

        formatter: Callable[[DataclassField[Any], DataclassField[Any]], Any] | None = formatters.get(
            type(getattr(getattr(self.config, section.name), key.name))
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        msg = f"Unsupported setting type for {section.name}.{key.name}"
        raise ConfigTypeError(msg)

    def _unquoted(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        value: str = self.parser.get(section.name, key.name).strip()
        for char in ("'", '"'):
            if len(value) >= 2 and value.startswith(char) and value.endswith(char):
                return value[1:-1]
        return value

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        """Convert INI string to float."""
        return float(self._unquoted(section, key).removesuffix("%"))

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        """Convert INI string to integer."""
        return int(float(self._unquoted(section, key)))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        """Convert INI string to boolean."""
        return self.parser.getboolean(section.name, key.name)

    def parse_as_string(self, section: DataclassField[Any], key: DataclassField[Any]) -> str:
        """Return the INI string without surrounding quotes."""
        return self._unquoted(section, key)
