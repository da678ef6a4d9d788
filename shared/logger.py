"""
eabitools Logging
==================

:class:`EabiLogger` wraps a stdlib :class:`logging.Logger` for the eabitools
commands.  Diagnostics go to stderr through Rich, so they never mix with the
tag lines a command prints on stdout; a rotating log file (plain text or
JSON lines) can be added from the ``[global]`` configuration section.

Records are stamped by a :class:`logging.Filter` with the command name and
the file being worked on, which for archive members reads
``libfoo.a(foo.o)``.  A strip run over a whole toolchain tree can therefore
be filtered per file afterwards.

References:
    - Python logging cookbook, "Using Filters to impart contextual
      information". https://docs.python.org/3/howto/logging-cookbook.html
    - Rich logging handler. https://rich.readthedocs.io/en/stable/logging.html
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

if TYPE_CHECKING:
    from shared.config import GlobalConfig

_NO_TARGET = "-"

_STDERR_THEME = Theme(
    {
        "logging.level.debug": "dim",
        "logging.level.info": "cyan",
        "logging.level.warning": "yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "reverse bold red",
    }
)

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(tool_name)s [%(target)s] %(message)s"


class _ContextFilter(logging.Filter):
    """Stamp ``tool_name`` and ``target`` onto every record."""

    def __init__(self, owner: EabiLogger) -> None:
        super().__init__()
        self._owner = owner

    def filter(self, record: logging.LogRecord) -> bool:
        record.tool_name = self._owner.tool_name
        record.target = self._owner.current_target or _NO_TARGET
        return True


class _JSONLinesFormatter(logging.Formatter):
    """One JSON object per record.

    Keyword arguments passed to the log call (``log.debug("...", section=3)``)
    are kept under ``"fields"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        doc: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "tool": getattr(record, "tool_name", None),
            "target": getattr(record, "target", _NO_TARGET),
            "message": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if fields:
            doc["fields"] = fields
        if record.exc_info and record.exc_info[1] is not None:
            doc["exception"] = self.formatException(record.exc_info)
        return json.dumps(doc, ensure_ascii=False, default=str)


def _stderr_handler(level: int) -> RichHandler:
    return RichHandler(
        level=level,
        console=Console(stderr=True, theme=_STDERR_THEME),
        show_path=False,
        show_time=False,
        markup=False,
        rich_tracebacks=True,
    )


def _file_handler(
    path: str | Path, level: int, json_lines: bool, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(
        _JSONLinesFormatter() if json_lines else logging.Formatter(_TEXT_FORMAT)
    )
    return handler


class EabiLogger:
    """Logger for one eabitools command.

    Usage::

        log = EabiLogger("wchartag", log_file="wchartag.log", json_logs=True)
        with log.target("libc.so"):
            log.debug("attributes section at 0x%x", offset)

    Creating a second logger with the same *tool_name* replaces the handlers
    of the first one.

    Args:
        tool_name:      Command name; the stdlib logger is ``eabitools.<tool_name>``.
        log_level:      Level name, e.g. ``"DEBUG"``.  Unknown names mean INFO.
        log_file:       Rotating log file, or ``None``.
        json_logs:      Write the log file as JSON lines.
        max_bytes:      Rotation size of the log file.
        backup_count:   Rotated files kept.
        console_output: Log to stderr through Rich.
    """

    def __init__(
        self,
        tool_name: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
        console_output: bool = True,
    ) -> None:
        self._tool_name = tool_name
        self._targets: list[str] = []

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        self._logger = logging.getLogger(f"eabitools.{tool_name}")
        self._logger.setLevel(level)
        self._logger.propagate = False
        for old in list(self._logger.handlers):
            self._logger.removeHandler(old)
            old.close()
        for old_filter in list(self._logger.filters):
            self._logger.removeFilter(old_filter)
        self._logger.addFilter(_ContextFilter(self))

        if console_output:
            self._logger.addHandler(_stderr_handler(level))
        if log_file is not None:
            self._logger.addHandler(
                _file_handler(log_file, level, json_logs, max_bytes, backup_count)
            )
        if not self._logger.handlers:
            self._logger.addHandler(logging.NullHandler())

    @classmethod
    def from_settings(
        cls, tool_name: str, settings: GlobalConfig, verbose: bool = False
    ) -> EabiLogger:
        """Build a logger from the ``[global]`` configuration section."""
        return cls(
            tool_name,
            log_level="DEBUG" if verbose else settings.log_level,
            log_file=settings.log_file,
            json_logs=settings.log_json,
        )

    # ------------------------------------------------------------------ #
    #  Context
    # ------------------------------------------------------------------ #

    @contextmanager
    def target(self, name: str | Path) -> Iterator[EabiLogger]:
        """Attribute records logged inside the block to *name*.

        Blocks nest; leaving one restores the enclosing target.
        """
        self._targets.append(str(name))
        try:
            yield self
        finally:
            self._targets.pop()

    @contextmanager
    def timed(self, label: str) -> Iterator[None]:
        """Log *label* with its wall-clock duration when the block exits."""
        start = time.perf_counter()
        self.debug("%s ...", label)
        try:
            yield
        finally:
            self.info("%s took %.3f s", label, time.perf_counter() - start)

    # ------------------------------------------------------------------ #
    #  Logging
    # ------------------------------------------------------------------ #

    def _log(
        self, level: int, msg: str, args: tuple[Any, ...], fields: dict[str, Any]
    ) -> None:
        extra = {"fields": fields} if fields else None
        self._logger.log(level, msg, *args, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, args, fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, args, fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, args, fields)

    def error(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.ERROR, msg, args, fields)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def tool_name(self) -> str:
        return self._tool_name

    @property
    def current_target(self) -> Optional[str]:
        return self._targets[-1] if self._targets else None

    @property
    def underlying(self) -> logging.Logger:
        return self._logger
