"""
ARM Build Attributes Parser
============================

Walks the contents of an ``SHT_ARM_ATTRIBUTES`` section::

    'A'                                   format version
    <u32 length> <NTBS vendor> <payload>  vendor subsection, repeated

Only the ``"aeabi"`` vendor payload is decoded.  It is a stream of
``<ULEB128 tag> <value>`` pairs, where the value is a ULEB128 or an NTBS
depending on the tag.  Tags the parser does not know are skipped using the
convention from the ABI addenda: below 32 only the enumerated string tags
are NTBS, above 32 even tags are ULEB128 and odd tags are NTBS.

The single tag that is interpreted is ``Tag_ABI_PCS_wchar_t`` (18).  It can
be rewritten in place when its current encoding is one byte long, which
keeps every following byte where it was.

References:
    - ARM IHI 0045C: Addenda to, and Errata in, the ABI for the ARM
      Architecture, section 2 "Build attributes".
"""

from __future__ import annotations

import os
import struct
from typing import BinaryIO, Optional

from shared.logger import EabiLogger

from wchartag.core.errors import (
    BadFormatError,
    BoundsExceededError,
    StreamIOError,
    UsageError,
)
from wchartag.core.models import WcharTagReport
from wchartag.parsers.primitives import (
    ByteCursor,
    ScratchBuffer,
    read_ntbs,
    read_uleb128,
)


# ---------------------------------------------------------------------------
# Attribute constants
# ---------------------------------------------------------------------------

FORMAT_VERSION: int = 0x41  # 'A'
AEABI_VENDOR: bytes = b"aeabi"

# Scoping markers that open an aeabi payload
TAG_FILE: int = 1
TAG_SECTION: int = 2
TAG_SYMBOL: int = 3

TAG_CPU_RAW_NAME: int = 4
TAG_CPU_NAME: int = 5
TAG_ABI_PCS_WCHAR_T: int = 18
TAG_COMPATIBILITY: int = 32
TAG_CONFORMANCE: int = 67

# Tags known to carry NTBS values; every other tag <= 32 is ULEB128
NTBS_TAGS: frozenset[int] = frozenset(
    {TAG_CPU_RAW_NAME, TAG_CPU_NAME, TAG_COMPATIBILITY, TAG_CONFORMANCE}
)
PARITY_RULE_FLOOR: int = 32

ATTRIBUTE_SCRATCH_SIZE: int = 1024
VENDOR_SCRATCH_SIZE: int = 128
SUBSECTION_LENGTH_SIZE: int = 4

MAX_PATCH_VALUE: int = 0x7F


def tag_uses_ntbs(tag: int) -> bool:
    """Whether the value following *tag* is an NTBS (else a ULEB128)."""
    if tag in NTBS_TAGS:
        return True
    if tag > PARITY_RULE_FLOOR:
        return tag % 2 == 1
    return False


def check_replacement(replacement: Optional[int]) -> Optional[int]:
    """Validate a patch request: ``None`` or an int that fits one ULEB128 byte."""
    if replacement is None:
        return None
    if isinstance(replacement, bool) or not isinstance(replacement, int):
        raise UsageError(
            f"Invalid Tag_ABI_PCS_wchar_t value {replacement!r}: not an integer"
        )
    if not 0 <= replacement <= MAX_PATCH_VALUE:
        raise UsageError(
            f"Patching Tag_ABI_PCS_wchar_t with {replacement} is not supported; "
            f"the value must be between 0 and {MAX_PATCH_VALUE}"
        )
    return replacement


# ---------------------------------------------------------------------------
# Attribute-stream walker
# ---------------------------------------------------------------------------

class AttributeStreamWalker:
    """Decode the tag/value stream of one ``"aeabi"`` subsection.

    Args:
        handle:         Handle shared with the cursor passed to :meth:`walk`.
        replacement:    Value to write over ``Tag_ABI_PCS_wchar_t``, or ``None``
                        to only inspect.  Callers validate it with
                        :func:`check_replacement`.
        logger:         Optional logger for per-tag diagnostics.
        section_index:  Section header index, copied into the reports.
        section_offset: Section file offset, copied into the reports.
    """

    def __init__(
        self,
        handle: BinaryIO,
        replacement: Optional[int] = None,
        logger: Optional[EabiLogger] = None,
        section_index: int = 0,
        section_offset: int = 0,
    ) -> None:
        self._handle = handle
        self._replacement = replacement
        self._logger = logger
        self._section_index = section_index
        self._section_offset = section_offset

    def walk(
        self, cursor: ByteCursor, reports: Optional[list[WcharTagReport]] = None
    ) -> list[WcharTagReport]:
        """Read tag/value pairs until *cursor* reaches its bound.

        Each ``Tag_ABI_PCS_wchar_t`` occurrence is appended to *reports* as
        soon as it is handled, so a caller passing its own list still sees
        patches already written when a later value fails to decode.

        Returns:
            *reports*, or a new list when none was given.
        """
        if reports is None:
            reports = []

        marker = cursor.read_byte()
        if marker in (TAG_SECTION, TAG_SYMBOL):
            # Zero-terminated list of section or symbol indices
            while read_uleb128(cursor) != 0:
                pass

        scratch = ScratchBuffer(ATTRIBUTE_SCRATCH_SIZE)
        while not cursor.exhausted:
            tag = read_uleb128(cursor)

            if tag in NTBS_TAGS:
                read_ntbs(cursor, scratch)
            elif tag == TAG_ABI_PCS_WCHAR_T:
                reports.append(self._visit_wchar_tag(cursor))
            elif tag_uses_ntbs(tag):
                read_ntbs(cursor)
            else:
                read_uleb128(cursor)

        return reports

    # ------------------------------------------------------------------ #
    #  Target tag
    # ------------------------------------------------------------------ #

    def _visit_wchar_tag(self, cursor: ByteCursor) -> WcharTagReport:
        value_offset = self._tell()
        value = read_uleb128(cursor)
        report = WcharTagReport(
            section_index=self._section_index,
            section_offset=self._section_offset,
            value_offset=value_offset,
            value=value,
        )
        self._debug("Tag_ABI_PCS_wchar_t = %d at offset 0x%x", value, value_offset)

        if self._replacement is None:
            return report

        if value > MAX_PATCH_VALUE:
            report.rejected = (
                f"old value {value} needs more than one byte; "
                "resizing the attribute stream is not supported"
            )
            if self._logger is not None:
                self._logger.warning(
                    "Unable to patch Tag_ABI_PCS_wchar_t at offset 0x%x: %s",
                    value_offset,
                    report.rejected,
                )
            return report

        self._commit_patch(self._replacement)
        report.patched_to = self._replacement
        self._debug("Tag_ABI_PCS_wchar_t patched to %d", self._replacement)
        return report

    def _commit_patch(self, replacement: int) -> None:
        """Overwrite the byte just consumed with *replacement*.

        The handle ends up where it was, so the cursor stays valid.
        """
        try:
            self._handle.seek(-1, os.SEEK_CUR)
            written = self._handle.write(bytes((replacement,)))
        except OSError as exc:
            raise StreamIOError(f"Patching Tag_ABI_PCS_wchar_t failed: {exc}") from exc
        if written is not None and written != 1:
            raise StreamIOError("Patching Tag_ABI_PCS_wchar_t: short write")

    def _tell(self) -> int:
        try:
            return self._handle.tell()
        except OSError as exc:
            raise StreamIOError(f"Querying file position failed: {exc}") from exc

    def _debug(self, msg: str, *args: object) -> None:
        if self._logger is not None:
            self._logger.debug(msg, *args)


# ---------------------------------------------------------------------------
# Subsection walker
# ---------------------------------------------------------------------------

class SubsectionWalker:
    """Iterate the vendor subsections of one ARM attributes section.

    The handle must be positioned at the first byte of the section.

    Args:
        handle:         Seekable (and, when patching, writable) binary stream.
        replacement:    Forwarded to :class:`AttributeStreamWalker`.
        logger:         Optional logger.
        endian:         ``struct`` byte-order prefix of the ELF file.
        section_index:  Section header index, copied into the reports.
        section_offset: Section file offset, copied into the reports.
    """

    def __init__(
        self,
        handle: BinaryIO,
        replacement: Optional[int] = None,
        logger: Optional[EabiLogger] = None,
        endian: str = "<",
        section_index: int = 0,
        section_offset: int = 0,
    ) -> None:
        self._handle = handle
        self._replacement = replacement
        self._logger = logger
        self._length_fmt = f"{endian}I"
        self._section_index = section_index
        self._section_offset = section_offset

    def walk(
        self, section_size: int, reports: Optional[list[WcharTagReport]] = None
    ) -> list[WcharTagReport]:
        """Decode a section of *section_size* bytes starting at the handle position.

        Reports are appended to *reports* as they are found.
        """
        if reports is None:
            reports = []
        if section_size < 1:
            raise BadFormatError("Empty ARM attributes section")

        cursor = ByteCursor(self._handle, section_size, what="ARM attributes section")
        version = cursor.read_byte()
        if version != FORMAT_VERSION:
            raise BadFormatError(
                f"Unknown ARM attribute section format version "
                f"{chr(version)!r} (0x{version:02x}), expected 'A'"
            )

        while not cursor.exhausted:
            start = cursor.pos
            if cursor.remaining < SUBSECTION_LENGTH_SIZE:
                raise BoundsExceededError(
                    f"Unexpected end of ARM attribute section at offset {start}"
                )
            (length,) = struct.unpack(
                self._length_fmt, cursor.read_exact(SUBSECTION_LENGTH_SIZE)
            )
            if length < SUBSECTION_LENGTH_SIZE:
                raise BoundsExceededError(
                    f"ARM attribute subsection at offset {start} declares length "
                    f"{length}, smaller than its own length field"
                )
            if start + length > section_size:
                raise BoundsExceededError(
                    f"ARM attribute subsection at offset {start} (length {length}) "
                    f"is outside of the section bounds ({section_size})"
                )

            self._walk_subsection(length, reports)
            cursor.pos = start + length

        return reports

    def _walk_subsection(self, length: int, reports: list[WcharTagReport]) -> None:
        sub = ByteCursor(
            self._handle,
            length,
            pos=SUBSECTION_LENGTH_SIZE,
            what="ARM attribute subsection",
        )
        vendor = read_ntbs(sub, ScratchBuffer(VENDOR_SCRATCH_SIZE))

        if vendor != AEABI_VENDOR:
            if self._logger is not None:
                self._logger.debug(
                    "Skipping %d bytes of vendor subsection %r",
                    sub.remaining,
                    vendor.decode("ascii", errors="replace"),
                )
            sub.skip(sub.remaining)
            return

        walker = AttributeStreamWalker(
            self._handle,
            replacement=self._replacement,
            logger=self._logger,
            section_index=self._section_index,
            section_offset=self._section_offset,
        )
        walker.walk(sub, reports)
