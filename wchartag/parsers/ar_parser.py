"""
Unix ``ar`` Archive Reader
===========================

Enumerates the members of a static library (``.a``) so each ELF object
inside it can be inspected and patched where it lies.  Because a wchar tag
patch never changes a member's size, the archive does not have to be
unpacked and rebuilt: :class:`MemberWindow` gives the ELF code a file-like
view of one member, translated onto the archive handle.

Layout::

    "!<arch>\\n"
    name[16] mtime[12] uid[6] gid[6] mode[8] size[10] "`\\n"   member header
    <size bytes of data> [one "\\n" pad byte if size is odd]    repeated

Both name conventions are handled: GNU/System V (``name/``, the ``/`` symbol
table, the ``//`` long-name table and ``/N`` references into it) and BSD
(``#1/N`` with the name stored in the first *N* data bytes).

References:
    - ar(5), FreeBSD File Formats Manual.
    - System V Application Binary Interface, "Archive File" chapter.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO

from wchartag.core.errors import BadFormatError, StreamIOError


AR_MAGIC: bytes = b"!<arch>\n"
AR_HEADER_SIZE: int = 60
AR_FMAG: bytes = b"`\n"

_GNU_SYMTAB_NAMES: frozenset[str] = frozenset({"/", "/SYM64/"})
_GNU_LONGNAMES: str = "//"
_BSD_SYMTAB_PREFIX: str = "__.SYMDEF"
_BSD_NAME_PREFIX: str = "#1/"


@dataclass(frozen=True, slots=True)
class ArchiveMember:
    """One member of an archive.

    Attributes:
        name:          Resolved member name.
        header_offset: Archive offset of the 60-byte member header.
        data_offset:   Archive offset of the member contents (after any
                       BSD inline name).
        size:          Size of the member contents in bytes.
        special:       ``True`` for symbol and long-name tables.
    """
    name: str
    header_offset: int
    data_offset: int
    size: int
    special: bool = False


def read_members(handle: BinaryIO) -> list[ArchiveMember]:
    """Parse every member header of the archive open on *handle*.

    Raises:
        BadFormatError: Bad global magic, a malformed header, or a member
            that runs past the end of the file.
        StreamIOError: The handle could not be read.
    """
    try:
        handle.seek(0, os.SEEK_END)
        archive_size = handle.tell()
        handle.seek(0)
        magic = handle.read(len(AR_MAGIC))
    except OSError as exc:
        raise StreamIOError(f"Error reading archive header: {exc}") from exc
    if magic != AR_MAGIC:
        raise BadFormatError("Not an ar archive (bad global header)")

    members: list[ArchiveMember] = []
    long_names = b""
    pos = len(AR_MAGIC)

    while pos < archive_size:
        if pos + AR_HEADER_SIZE > archive_size:
            # Trailing padding written by some tools
            if _read_at(handle, pos, archive_size - pos).strip(b"\n") == b"":
                break
            raise BadFormatError(f"Truncated archive member header at offset {pos}")

        header = _read_at(handle, pos, AR_HEADER_SIZE)
        if header[58:60] != AR_FMAG:
            raise BadFormatError(f"Bad archive member header magic at offset {pos}")

        raw_name = header[0:16].decode("ascii", errors="replace").rstrip(" ")
        try:
            size = int(header[48:58].strip() or b"0")
        except ValueError:
            raise BadFormatError(
                f"Bad archive member size {header[48:58]!r} at offset {pos}"
            ) from None

        data_start = pos + AR_HEADER_SIZE
        if data_start + size > archive_size:
            raise BadFormatError(
                f"Archive member at offset {pos} (size {size}) runs past the end "
                f"of the archive"
            )

        name = raw_name
        data_offset = data_start
        data_size = size
        special = False

        if raw_name in _GNU_SYMTAB_NAMES or raw_name.startswith(_BSD_SYMTAB_PREFIX):
            special = True
        elif raw_name == _GNU_LONGNAMES:
            special = True
            long_names = _read_at(handle, data_start, size)
        elif raw_name.startswith(_BSD_NAME_PREFIX):
            name_len = _parse_int(raw_name[len(_BSD_NAME_PREFIX):], pos)
            if name_len > size:
                raise BadFormatError(f"BSD member name at offset {pos} exceeds member size")
            name = (
                _read_at(handle, data_start, name_len)
                .rstrip(b"\x00")
                .decode("utf-8", errors="replace")
            )
            data_offset = data_start + name_len
            data_size = size - name_len
            special = name.startswith(_BSD_SYMTAB_PREFIX)
        elif raw_name.startswith("/") and raw_name[1:].isdigit():
            name = _long_name(long_names, int(raw_name[1:]), pos)
        elif raw_name.endswith("/"):
            name = raw_name[:-1]

        members.append(ArchiveMember(
            name=name,
            header_offset=pos,
            data_offset=data_offset,
            size=data_size,
            special=special,
        ))

        pos = data_start + size + (size % 2)

    return members


def _long_name(table: bytes, offset: int, header_offset: int) -> str:
    if offset >= len(table):
        raise BadFormatError(
            f"Long member name reference /{offset} at offset {header_offset} "
            f"is outside the name table"
        )
    end = table.find(b"\n", offset)
    if end == -1:
        end = len(table)
    return table[offset:end].rstrip(b"/").decode("utf-8", errors="replace")


def _parse_int(text: str, header_offset: int) -> int:
    try:
        return int(text)
    except ValueError:
        raise BadFormatError(
            f"Bad BSD member name length {text!r} at offset {header_offset}"
        ) from None


def _read_at(handle: BinaryIO, offset: int, count: int) -> bytes:
    try:
        handle.seek(offset)
        data = handle.read(count)
    except OSError as exc:
        raise StreamIOError(f"Error reading archive at offset {offset}: {exc}") from exc
    if len(data) != count:
        raise StreamIOError(f"Error reading archive at offset {offset}: unexpected end of file")
    return data


# ---------------------------------------------------------------------------
# Member window
# ---------------------------------------------------------------------------

class MemberWindow:
    """File-like view of ``[base, base + size)`` of an archive handle.

    Offsets seen through the window are member-relative.  Reads stop at the
    member end; writes that would cross it are refused.
    """

    def __init__(self, handle: BinaryIO, base: int, size: int) -> None:
        self._handle = handle
        self._base = base
        self._size = size
        self._pos = 0

    @classmethod
    def for_member(cls, handle: BinaryIO, member: ArchiveMember) -> MemberWindow:
        return cls(handle, member.data_offset, member.size)

    @property
    def size(self) -> int:
        return self._size

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            new_pos = offset
        elif whence == os.SEEK_CUR:
            new_pos = self._pos + offset
        elif whence == os.SEEK_END:
            new_pos = self._size + offset
        else:
            raise ValueError(f"Invalid whence {whence}")
        if new_pos < 0:
            raise ValueError(f"Negative seek position {new_pos}")
        self._pos = new_pos
        return new_pos

    def read(self, count: int = -1) -> bytes:
        available = max(0, self._size - self._pos)
        if count is None or count < 0 or count > available:
            count = available
        if count == 0:
            return b""
        self._handle.seek(self._base + self._pos)
        data = self._handle.read(count)
        self._pos += len(data)
        return data

    def write(self, data: bytes) -> int:
        if self._pos + len(data) > self._size:
            raise OSError(
                f"Write of {len(data)} bytes at member offset {self._pos} "
                f"crosses the member end ({self._size})"
            )
        self._handle.seek(self._base + self._pos)
        written = self._handle.write(data)
        self._pos += len(data)
        return written

    def peek_magic(self, count: int = 4) -> bytes:
        """Leading bytes of the member; the window position is kept."""
        pos = self._pos
        try:
            self._pos = 0
            return self.read(count)
        finally:
            self._pos = pos
