"""Logging configuration for softbake.

Library code logs through loguru and stays silent until setup_logging()
is called, normally by the CLI.

Example:
    from softbake.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="build.log"))
    try:
        builder.run(ui, hook)
    finally:
        teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Literal

from loguru import logger

_PACKAGE = "softbake"

logger.disable(_PACKAGE)

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

# Builds run on a worker thread, so the thread name is part of every line.
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> "
    "<dim>[{thread.name}]</dim> <cyan>{name}</cyan> {message}"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} [{thread.name}] {name}:{line} {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where build logs go.

    Attributes:
        level: Minimum level printed to stderr.
        file: Optional log file. It always records DEBUG and above.
        console: Print to stderr.
        rotation: When to start a new log file ("50 MB", "1 day", ...).
        retention: How many rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def _sinks(config: LogConfig) -> list[dict[str, Any]]:
    sinks: list[dict[str, Any]] = []
    if config.console:
        sinks.append({
            "sink": sys.stderr,
            "level": config.level,
            "format": CONSOLE_FORMAT,
            "colorize": True,
        })
    if config.file:
        sinks.append({
            "sink": config.file,
            "level": "DEBUG",
            "format": FILE_FORMAT,
            "rotation": config.rotation,
            "retention": config.retention,
            "compression": "zip",
            "diagnose": False,  # frame locals would include the api key
            "enqueue": True,
        })
    return sinks


def setup_logging(config: LogConfig) -> list[int]:
    """Enable softbake logging; returns the handler ids to pass to teardown."""
    logger.enable(_PACKAGE)
    return [logger.add(filter=_PACKAGE, **sink) for sink in _sinks(config)]


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable(_PACKAGE)
