"""
ELF32 Section Locator
======================

Struct-based reader for just enough of a 32-bit ELF file to find its
``SHT_ARM_ATTRIBUTES`` sections: the file header and the section header
table.  Nothing else in the file is interpreted.

Unlike a whole-file parser, the locator works on an open, seekable handle
so the attributes walker can patch the file in place.  While a section's
contents are decoded the table position is saved and restored afterwards,
so files with several attributes sections are handled one section at a
time without disturbing the table scan.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - ARM IHI 0044: ELF for the ARM Architecture, section 4.3
      (``SHT_ARM_ATTRIBUTES``).
"""

from __future__ import annotations

import os
import struct
from typing import BinaryIO, Iterator, Optional

from shared.logger import EabiLogger

from wchartag.core.errors import BadFormatError, StreamIOError
from wchartag.core.models import WcharTagReport
from wchartag.parsers.attributes import SubsectionWalker


# ---------------------------------------------------------------------------
# ELF Constants
# ---------------------------------------------------------------------------

ELF_MAGIC: bytes = b"\x7fELF"

ELFCLASS32: int = 1
ELFCLASS64: int = 2

ELFDATA2LSB: int = 1  # Little-endian
ELFDATA2MSB: int = 2  # Big-endian

EM_386: int = 3
EM_ARM: int = 40
EM_X86_64: int = 62
EM_AARCH64: int = 183

_EM_NAMES: dict[int, str] = {
    EM_386: "x86",
    EM_ARM: "ARM",
    EM_X86_64: "x86_64",
    EM_AARCH64: "AArch64",
}

SHT_ARM_ATTRIBUTES: int = 0x70000003

ELF32_EHDR_SIZE: int = 52
ELF32_SHDR_SIZE: int = 40


# ---------------------------------------------------------------------------
# Internal parsed structures
# ---------------------------------------------------------------------------

class _ELFHeader:
    """ELF32 header fields the locator needs."""
    __slots__ = (
        "ei_class", "ei_data", "e_machine", "e_shoff",
        "e_shentsize", "e_shnum", "endian",
    )

    def __init__(self) -> None:
        self.ei_class: int = 0
        self.ei_data: int = 0
        self.e_machine: int = 0
        self.e_shoff: int = 0
        self.e_shentsize: int = 0
        self.e_shnum: int = 0
        self.endian: str = "<"


class SectionHeader:
    """Parsed Elf32_Shdr entry (type, offset and size only)."""
    __slots__ = ("index", "sh_type", "sh_offset", "sh_size")

    def __init__(self, index: int, sh_type: int, sh_offset: int, sh_size: int) -> None:
        self.index = index
        self.sh_type = sh_type
        self.sh_offset = sh_offset
        self.sh_size = sh_size

    def __repr__(self) -> str:
        return (
            f"SectionHeader(index={self.index}, sh_type=0x{self.sh_type:x}, "
            f"sh_offset=0x{self.sh_offset:x}, sh_size={self.sh_size})"
        )


# ---------------------------------------------------------------------------
# Section locator
# ---------------------------------------------------------------------------

class SectionLocator:
    """Find and walk the ARM attributes sections of an ELF32 file.

    Usage::

        with open(path, "r+b") as fh:
            reports = SectionLocator(fh).scan(replacement=0)
    """

    def __init__(self, handle: BinaryIO, logger: Optional[EabiLogger] = None) -> None:
        self._handle = handle
        self._logger = logger

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def scan(
        self,
        replacement: Optional[int] = None,
        reports: Optional[list[WcharTagReport]] = None,
    ) -> list[WcharTagReport]:
        """Decode every ARM attributes section, patching when requested.

        *replacement* must already be validated.  Tag reports are appended
        to *reports* while the sections are walked, so on failure the list
        still holds the occurrences handled before it.

        Returns:
            *reports* (or a new list), in section-table order.

        Raises:
            BadFormatError: Header checks failed; nothing has been parsed.
            WcharTagError: Any other decoding failure aborts the scan.
        """
        if reports is None:
            reports = []
        header = self.read_header()

        for sh in self._iter_section_headers(header):
            if sh.sh_type != SHT_ARM_ATTRIBUTES:
                continue

            if self._logger is not None:
                self._logger.debug(
                    "ARM attributes section [%d] at 0x%x, %d bytes",
                    sh.index, sh.sh_offset, sh.sh_size,
                )
            resume = self._tell()
            self._seek(sh.sh_offset, "seeking to attributes section")
            walker = SubsectionWalker(
                self._handle,
                replacement=replacement,
                logger=self._logger,
                endian=header.endian,
                section_index=sh.index,
                section_offset=sh.sh_offset,
            )
            walker.walk(sh.sh_size, reports)
            self._seek(resume, "restoring section table position")

        return reports

    def attribute_sections(self) -> list[SectionHeader]:
        """Return the ``SHT_ARM_ATTRIBUTES`` entries without decoding them."""
        header = self.read_header()
        return [
            sh for sh in self._iter_section_headers(header)
            if sh.sh_type == SHT_ARM_ATTRIBUTES
        ]

    def read_header(self) -> _ELFHeader:
        """Read and validate the ELF32 file header at offset 0."""
        self._seek(0, "seeking to ELF header")
        data = self._read(ELF32_EHDR_SIZE, "reading Elf32_Ehdr", exact=False)

        if len(data) < len(ELF_MAGIC) or data[:4] != ELF_MAGIC:
            raise BadFormatError("Invalid ELF magic")
        if len(data) < ELF32_EHDR_SIZE:
            raise BadFormatError(
                f"File too small for an ELF32 header ({len(data)} bytes)"
            )

        h = _ELFHeader()
        h.ei_class = data[4]
        h.ei_data = data[5]

        if h.ei_class != ELFCLASS32:
            raise BadFormatError(
                f"Not a 32-bit ELF file (EI_CLASS {h.ei_class})"
            )
        if h.ei_data == ELFDATA2LSB:
            h.endian = "<"
        elif h.ei_data == ELFDATA2MSB:
            h.endian = ">"
        else:
            raise BadFormatError(f"Unknown ELF data encoding {h.ei_data}")

        # ELF32 header: offsets 16..51
        (
            _e_type, h.e_machine, _e_version, _e_entry,
            _e_phoff, h.e_shoff, _e_flags, _e_ehsize,
            _e_phentsize, _e_phnum, h.e_shentsize, h.e_shnum,
            _e_shstrndx,
        ) = struct.unpack_from(f"{h.endian}HHIIIIIHHHHHH", data, 16)

        if h.e_machine != EM_ARM:
            arch = _EM_NAMES.get(h.e_machine, f"machine {h.e_machine}")
            raise BadFormatError(f"Not an ARM ELF file ({arch})")
        if h.e_shoff == 0:
            raise BadFormatError("ELF file has no section table")
        if h.e_shentsize != ELF32_SHDR_SIZE:
            raise BadFormatError(
                f"Section header entry size {h.e_shentsize} doesn't match "
                f"sizeof(Elf32_Shdr)={ELF32_SHDR_SIZE}"
            )
        return h

    # ------------------------------------------------------------------ #
    #  Section header table
    # ------------------------------------------------------------------ #

    def _iter_section_headers(self, header: _ELFHeader) -> Iterator[SectionHeader]:
        """Yield table entries in order.

        Each entry is read from the current handle position, so a consumer
        that seeks elsewhere must restore the position before resuming.
        """
        self._seek(header.e_shoff, "seeking to section header table")
        fmt = f"{header.endian}IIIIIIIIII"
        for index in range(header.e_shnum):
            raw = self._read(ELF32_SHDR_SIZE, f"reading Elf32_Shdr [{index}]")
            (
                _sh_name, sh_type, _sh_flags, _sh_addr,
                sh_offset, sh_size, _sh_link, _sh_info,
                _sh_addralign, _sh_entsize,
            ) = struct.unpack(fmt, raw)
            yield SectionHeader(index, sh_type, sh_offset, sh_size)

    # ------------------------------------------------------------------ #
    #  Handle helpers
    # ------------------------------------------------------------------ #

    def _read(self, count: int, doing: str, exact: bool = True) -> bytes:
        try:
            data = self._handle.read(count)
        except OSError as exc:
            raise StreamIOError(f"Error {doing}: {exc}") from exc
        if exact and len(data) != count:
            raise StreamIOError(f"Error {doing}: unexpected end of file")
        return data

    def _seek(self, offset: int, doing: str) -> None:
        try:
            self._handle.seek(offset, os.SEEK_SET)
        except (OSError, ValueError) as exc:
            raise StreamIOError(f"Error {doing}: {exc}") from exc

    def _tell(self) -> int:
        try:
            return self._handle.tell()
        except OSError as exc:
            raise StreamIOError(f"Error querying file position: {exc}") from exc
