"""
eabitools Data Models
======================

Pydantic v2 models shared across the eabitools commands.  Every command
reports its work as a :class:`RunResult` subclass so console and JSON
output can treat single files and whole batches uniformly.

References:
    - Pydantic v2 documentation. https://docs.pydantic.dev/latest/
"""

from __future__ import annotations

import datetime as _dt
from enum import Enum
from typing import Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


_R = TypeVar("_R", bound="RunResult")


def _utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


class ProcessStatus(str, Enum):
    """Outcome of processing one target.

    Attributes:
        OK:       Inspected; nothing was written.
        PATCHED:  At least one tag value was rewritten.
        REJECTED: A patch was requested but could not be applied in place.
        FAILED:   The target could not be parsed or accessed.
        SKIPPED:  The target was not a candidate (e.g. not an ELF member).
    """

    OK = "ok"
    PATCHED = "patched"
    REJECTED = "rejected"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def succeeded(self) -> bool:
        """``True`` for outcomes that count as "file processed"."""
        return self in (ProcessStatus.OK, ProcessStatus.PATCHED)


class RunResult(BaseModel):
    """Timing and identification shared by every report.

    Attributes:
        tool_name:  Name of the command that produced the result.
        target:     File or directory that was processed.
        start_time: UTC timestamp when processing started.
        end_time:   UTC timestamp when processing ended.
        summary:    Human-readable one-line summary.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=False,
        extra="ignore",
    )

    tool_name: str = Field(default="wchartag", min_length=1)
    target: str = Field(..., min_length=1)
    start_time: _dt.datetime = Field(default_factory=_utcnow)
    end_time: Optional[_dt.datetime] = None
    summary: str = ""

    @property
    def duration_seconds(self) -> float | None:
        """Elapsed time in seconds, or ``None`` if *end_time* is unset."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def finalize(self: _R, summary: str | None = None) -> _R:
        """Set *end_time* (and *summary* when given); returns ``self``."""
        self.end_time = _utcnow()
        if summary is not None:
            self.summary = summary
        return self
