"""
Bounded Stream Primitives
==========================

Byte-at-a-time decoders for the two value encodings used by ELF build
attributes: ULEB128 integers and NTBS (null-terminated byte strings).

Every decoder works through a :class:`ByteCursor`, which ties a position
and an exclusive bound to an open binary handle.  The bound is checked
*before* each byte is read, so a malformed length can never make the
decoder consume bytes that belong to the next entity.

References:
    - ARM IHI 0045: Addenda to, and Errata in, the ABI for the ARM
      Architecture, section 2.2 "Build attributes".
    - DWARF Debugging Information Format, Version 4, section 7.6
      (variable length data).
"""

from __future__ import annotations

import os
from typing import BinaryIO, Optional

from wchartag.core.errors import (
    BoundsExceededError,
    StreamIOError,
    TruncatedStreamError,
)


# ---------------------------------------------------------------------------
# Capacity-bounded capture buffer
# ---------------------------------------------------------------------------

class ScratchBuffer:
    """Fixed-capacity destination for NTBS captures.

    Bytes stored at or beyond the capacity are dropped.  After a capture the
    last slot is always zero, so :attr:`value` never exceeds
    ``capacity - 1`` bytes.
    """

    __slots__ = ("_data",)

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"Scratch buffer capacity must be >= 1, got {capacity}")
        self._data = bytearray(capacity)

    @property
    def capacity(self) -> int:
        return len(self._data)

    def store(self, index: int, byte: int) -> None:
        if index < len(self._data):
            self._data[index] = byte

    def terminate(self) -> None:
        self._data[-1] = 0

    @property
    def raw(self) -> bytes:
        """Whole buffer, including bytes after the first terminator."""
        return bytes(self._data)

    @property
    def value(self) -> bytes:
        """Captured string up to (not including) the first zero byte."""
        return bytes(self._data).split(b"\x00", 1)[0]


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------

class ByteCursor:
    """Position plus exclusive bound over an open binary handle.

    The handle's file position must already correspond to :attr:`pos`;
    the cursor only ever moves it forward, one read or one skip at a time.

    Args:
        handle: Seekable binary stream positioned at the entity's byte *pos*.
        size:   Exclusive upper bound, relative to the entity start.
        pos:    Starting position, relative to the entity start.
        what:   Entity name used in error messages.
    """

    __slots__ = ("handle", "pos", "size", "what")

    def __init__(
        self,
        handle: BinaryIO,
        size: int,
        pos: int = 0,
        what: str = "stream",
    ) -> None:
        self.handle = handle
        self.pos = pos
        self.size = size
        self.what = what

    @property
    def remaining(self) -> int:
        return self.size - self.pos

    @property
    def exhausted(self) -> bool:
        return self.pos >= self.size

    def read_byte(self) -> int:
        """Consume one byte, failing before the read if the bound is reached."""
        if self.pos >= self.size:
            raise TruncatedStreamError(
                f"Unexpected end of {self.what} at offset {self.pos} (size {self.size})"
            )
        try:
            data = self.handle.read(1)
        except OSError as exc:
            raise StreamIOError(
                f"Reading {self.what} at offset {self.pos} failed: {exc}"
            ) from exc
        if len(data) != 1:
            raise StreamIOError(
                f"Reading {self.what} at offset {self.pos}: file ends before "
                f"the declared {self.what} size"
            )
        self.pos += 1
        return data[0]

    def read_exact(self, count: int) -> bytes:
        """Consume *count* bytes as one block (fixed-size fields)."""
        if count > self.remaining:
            raise BoundsExceededError(
                f"Reading {count} bytes at offset {self.pos} would run past the "
                f"end of the {self.what} (size {self.size})"
            )
        try:
            data = self.handle.read(count)
        except OSError as exc:
            raise StreamIOError(
                f"Reading {self.what} at offset {self.pos} failed: {exc}"
            ) from exc
        if len(data) != count:
            raise StreamIOError(
                f"Reading {self.what} at offset {self.pos}: file ends before "
                f"the declared {self.what} size"
            )
        self.pos += count
        return data

    def skip(self, count: int) -> None:
        """Seek forward over *count* bytes without reading them."""
        if count < 0 or count > self.remaining:
            raise BoundsExceededError(
                f"Skipping {count} bytes at offset {self.pos} would leave the "
                f"{self.what} (size {self.size})"
            )
        try:
            self.handle.seek(count, os.SEEK_CUR)
        except OSError as exc:
            raise StreamIOError(
                f"Skipping over {self.what} bytes failed: {exc}"
            ) from exc
        self.pos += count


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------

def read_uleb128(cursor: ByteCursor) -> int:
    """Decode one ULEB128 value, stopping right after its terminating byte.

    Raises:
        TruncatedStreamError: The bound was reached before a byte with the
            continuation bit clear.
        StreamIOError: The handle could not supply the byte.
    """
    result = 0
    shift = 0
    while True:
        if cursor.exhausted:
            raise TruncatedStreamError(
                f"Unterminated ULEB128 in {cursor.what} at offset {cursor.pos}"
            )
        byte = cursor.read_byte()
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result
        shift += 7


def read_ntbs(cursor: ByteCursor, dest: Optional[ScratchBuffer] = None) -> bytes:
    """Consume one null-terminated byte string.

    The full string is always consumed, whatever the capacity of *dest*, so
    skipping and capturing advance the cursor identically.

    Returns:
        The captured string (``dest.value``), or ``b""`` when *dest* is
        ``None``.

    Raises:
        TruncatedStreamError: The bound was reached without a zero byte.
        StreamIOError: The handle could not supply a byte.
    """
    index = 0
    while True:
        if cursor.exhausted:
            raise TruncatedStreamError(
                f"Unterminated NTBS in {cursor.what} at offset {cursor.pos}"
            )
        byte = cursor.read_byte()
        if dest is not None:
            dest.store(index, byte)
        index += 1
        if byte == 0:
            break

    if dest is None:
        return b""
    dest.terminate()
    return dest.value


def encode_uleb128(value: int) -> bytes:
    """Encode a non-negative integer as canonical ULEB128."""
    if value < 0:
        raise ValueError(f"ULEB128 cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)
