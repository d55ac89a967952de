"""Logging for autogrow.

loguru, disabled for the ``autogrow`` namespace until ``setup_logging`` runs,
so importing the package as a library stays silent. The CLI enables it on
stderr; stdout is reserved for the step's JSON output.

Every record carries two extras: ``component`` (bound per module with
``logger.bind``) and ``step`` (set for the duration of one step run by
``step_scope``).

Example:
    from autogrow.logging import LogConfig, setup_logging, step_scope, teardown_logging

    handlers = setup_logging(LogConfig(level="DEBUG", file="autogrow.log"))
    try:
        with step_scope("check-volume"):
            ...
    finally:
        teardown_logging(handlers)
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Final, Literal, get_args

from loguru import logger

logger.disable("autogrow")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

LOG_LEVELS: Final = frozenset(get_args(LogLevel.__value__))
NO_STEP: Final = "-"

CONSOLE_FORMAT: Final = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[step]}</magenta> "
    "<cyan>{extra[component]}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT: Final = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[step]} {extra[component]} | {name}:{function}:{line} - {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Sinks for one CLI run.

    Attributes:
        level: Console threshold. The file sink always records DEBUG.
        file: Log file path; no file sink when unset.
        console: Log to stderr.
        rotation: loguru rotation policy for the file sink.
        retention: Rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10

    def __post_init__(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level {self.level!r}. Valid: {', '.join(sorted(LOG_LEVELS))}"
            )
        if self.retention < 0:
            raise ValueError(f"retention must not be negative, got {self.retention}")


def setup_logging(config: LogConfig) -> list[int]:
    """Enable the namespace and add sinks. Returns handler ids for ``teardown_logging``.

    A sink that cannot be opened undoes the sinks already added.
    """
    logger.enable("autogrow")
    logger.configure(extra={"component": "autogrow", "step": NO_STEP})
    handler_ids: list[int] = []

    try:
        if config.console:
            handler_ids.append(
                logger.add(
                    sys.stderr,
                    level=config.level,
                    format=CONSOLE_FORMAT,
                    colorize=True,
                    filter="autogrow",
                )
            )

        if config.file:
            handler_ids.append(
                logger.add(
                    config.file,
                    level="DEBUG",
                    format=FILE_FORMAT,
                    rotation=config.rotation,
                    retention=config.retention,
                    compression="zip",
                    diagnose=False,  # tracebacks would print locals, credentials included
                    filter="autogrow",
                )
            )
    except Exception:
        teardown_logging(handler_ids)
        raise

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("autogrow")


@contextmanager
def step_scope(step: str) -> Iterator[None]:
    """Tag every record emitted inside the block with ``step``."""
    with logger.contextualize(step=step):
        yield
