"""
wchartag Data Models
=====================

Pydantic models describing what wchartag found and changed: one
:class:`WcharTagReport` per ``Tag_ABI_PCS_wchar_t`` occurrence, grouped into
a :class:`FileReport` per ELF file (or archive member) and a
:class:`BatchReport` per archive or directory tree.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from shared.models import ProcessStatus, RunResult


TAG_NAME = "Tag_ABI_PCS_wchar_t"


class WcharTagReport(BaseModel):
    """A single ``Tag_ABI_PCS_wchar_t`` occurrence.

    Attributes:
        section_index:  Index of the ARM attributes section header.
        section_offset: File offset of that section.
        value_offset:   Handle offset of the first byte of the encoded value.
        value:          Value found in the file.
        patched_to:     Value written in place, if a patch was applied.
        rejected:       Why a requested patch was not applied, if it was not.
    """

    section_index: int = Field(default=0, ge=0)
    section_offset: int = Field(default=0, ge=0)
    value_offset: int = Field(default=0, ge=0)
    value: int = Field(..., ge=0)
    patched_to: Optional[int] = Field(default=None, ge=0, le=127)
    rejected: Optional[str] = None

    def describe(self) -> str:
        text = f"{TAG_NAME} = {self.value}"
        if self.patched_to is not None:
            text += f", patched to {self.patched_to}"
        elif self.rejected:
            text += f", not patched: {self.rejected}"
        return text


class FileReport(RunResult):
    """Outcome for one ELF object, shared library or archive member.

    Attributes:
        member: Archive member name when the ELF lives inside an archive.
        status: Overall outcome.
        tags:   Every tag occurrence found, in file order.
        error:  Failure message when *status* is FAILED, REJECTED or SKIPPED.
    """

    member: Optional[str] = None
    status: ProcessStatus = ProcessStatus.OK
    tags: list[WcharTagReport] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def label(self) -> str:
        """``path`` or ``archive(member)`` for display."""
        if self.member is not None:
            return f"{self.target}({self.member})"
        return self.target

    @property
    def succeeded(self) -> bool:
        return self.status.succeeded


class BatchReport(RunResult):
    """Outcome for an archive or a directory tree.

    Attributes:
        files: One report per ELF file or archive member, in processing order.
        error: Batch-level failure (unreadable archive, archive without any
               processable ELF member).
    """

    files: list[FileReport] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def processed(self) -> list[FileReport]:
        """File reports that were actually attempted (not skipped)."""
        return [f for f in self.files if f.status != ProcessStatus.SKIPPED]

    @property
    def succeeded(self) -> int:
        return sum(1 for f in self.files if f.succeeded)

    @property
    def failed(self) -> int:
        return sum(
            1 for f in self.files
            if f.status in (ProcessStatus.FAILED, ProcessStatus.REJECTED)
        )

    @property
    def patched(self) -> int:
        return sum(1 for f in self.files if f.status == ProcessStatus.PATCHED)

    def status_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {s.value: 0 for s in ProcessStatus}
        for f in self.files:
            counts[f.status.value] += 1
        return counts
