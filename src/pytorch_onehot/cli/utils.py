from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import override

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape

_console = Console()

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# name, header color, message color
_STYLES = {
    logging.DEBUG: ("Debug", "dim white", "dim white"),
    logging.INFO: ("Info", "blue", "white"),
    logging.WARNING: ("Warning", "yellow", "white"),
    logging.ERROR: ("Error", "red", "red"),
    logging.CRITICAL: ("Error", "red", "red"),
}


class LogConfig(BaseModel):
    """Logging options, read from the `LOG_LEVEL` and `VERBOSE_LOGS` environment variables."""

    level: int = logging.INFO
    verbose: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LogConfig:
        """Read the config from `environ`, `os.environ` if None.

        An invalid `LOG_LEVEL` falls back to info. Unless `VERBOSE_LOGS` is
        set, verbose output is only enabled for the debug level.
        """
        if environ is None:
            environ = os.environ

        level_str = environ.get("LOG_LEVEL", "info")
        level = LEVELS.get(level_str.lower())
        if level is None:
            level = logging.INFO
            print(
                f"Warning: invalid log level `{level_str}`, expected one of: {', '.join(LEVELS)}, defaulting to INFO"
            )

        match environ.get("VERBOSE_LOGS", ""):
            case "":
                verbose = level == logging.DEBUG
            case "0":
                verbose = False
            case _:
                verbose = True

        return cls(level=level, verbose=verbose)


class LogFormatter(logging.Formatter):
    """Render records with rich markup, see `setup_logging`."""

    def __init__(self, verbose: bool = False):
        super().__init__()

        self.verbose: bool = verbose

    @override
    def format(self, record: logging.LogRecord) -> str:
        style = _STYLES.get(record.levelno)
        if style is None:
            return logging.Formatter().format(record)
        name, head_color, message_color = style

        message = f"[{head_color}]{name}[/{head_color}][{message_color}]: {escape(record.getMessage())}[/{message_color}]"

        if self.verbose:
            message = f"{message}\n-> [dim white]{record.pathname}:{record.funcName}:{record.lineno}[/dim white]"

        with _console.capture() as capture:
            _console.print(message, end="")

        return capture.get()


def setup_logging(
    logger: logging.Logger | None = None, config: LogConfig | None = None
) -> None:
    """Configure the given logger or the root logger if None."""
    if logger is None:
        logger = logging.getLogger()
    if config is None:
        config = LogConfig.from_env()

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(LogFormatter(config.verbose))

    logger.setLevel(config.level)
    logger.addHandler(handler)
