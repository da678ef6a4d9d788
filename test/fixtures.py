"""Builders for synthetic ARM ELF objects and ar archives used by the tests."""

import os
import struct
from typing import Iterable, Optional, Sequence, Tuple, Union

from wchartag.parsers.ar_parser import AR_MAGIC
from wchartag.parsers.elf_parser import (
    ELF32_EHDR_SIZE,
    ELF32_SHDR_SIZE,
    ELF_MAGIC,
    ELFCLASS32,
    ELFDATA2LSB,
    ELFDATA2MSB,
    EM_ARM,
    SHT_ARM_ATTRIBUTES,
)
from wchartag.parsers.primitives import encode_uleb128

SHT_NULL = 0
SHT_PROGBITS = 1

Attr = Tuple[int, Union[int, bytes]]


def aeabi_payload(*attrs: Attr, marker: int = 1, ids: Optional[Sequence[int]] = None) -> bytes:
    """Marker byte, optional zero-terminated id list, then tag/value pairs.

    An int value is encoded as ULEB128, a bytes value as an NTBS.
    """
    out = bytearray([marker])
    if ids is not None:
        for i in ids:
            out += encode_uleb128(i)
        out += b'\x00'
    for tag, value in attrs:
        out += encode_uleb128(tag)
        if isinstance(value, int):
            out += encode_uleb128(value)
        else:
            out += value + b'\x00'
    return bytes(out)


def subsection(vendor: bytes, payload: bytes, endian: str = '<') -> bytes:
    body = vendor + b'\x00' + payload
    return struct.pack(endian + 'I', 4 + len(body)) + body


def attributes_section(*subsections: bytes, version: bytes = b'A') -> bytes:
    return version + b''.join(subsections)


def wchar_section(value: int = 4, endian: str = '<') -> bytes:
    """Typical aeabi section: CPU name, Tag_ABI_PCS_wchar_t, enum size."""
    payload = aeabi_payload((5, b'ARM7TDMI'), (18, value), (26, 2))
    return attributes_section(subsection(b'aeabi', payload, endian))


def build_elf(
    sections: Iterable[Tuple[int, bytes]] = (),
    *,
    machine: int = EM_ARM,
    ei_class: int = ELFCLASS32,
    big_endian: bool = False,
    shentsize: int = ELF32_SHDR_SIZE,
    with_table: bool = True,
) -> bytes:
    """ELF32 image: header, section contents, then the section header table.

    *sections* is a list of ``(sh_type, data)``; a SHT_NULL entry is added
    as section 0.
    """
    endian = '>' if big_endian else '<'
    sections = list(sections)

    body = bytearray()
    headers = [(SHT_NULL, 0, 0)]
    for sh_type, data in sections:
        offset = ELF32_EHDR_SIZE + len(body)
        body += data
        headers.append((sh_type, offset, len(data)))

    while (ELF32_EHDR_SIZE + len(body)) % 4:
        body += b'\x00'

    shoff = ELF32_EHDR_SIZE + len(body) if with_table else 0
    shnum = len(headers) if with_table else 0

    ident = ELF_MAGIC + bytes([ei_class, ELFDATA2MSB if big_endian else ELFDATA2LSB, 1, 0]) + bytes(8)
    header = ident + struct.pack(
        endian + 'HHIIIIIHHHHHH',
        1,              # ET_REL
        machine,
        1,              # EV_CURRENT
        0, 0,
        shoff,
        0x05000000,     # EF_ARM_EABI_VER5
        ELF32_EHDR_SIZE,
        0, 0,
        shentsize,
        shnum,
        0,
    )

    table = bytearray()
    if with_table:
        for sh_type, offset, size in headers:
            table += struct.pack(endian + 'IIIIIIIIII', 0, sh_type, 0, 0, offset, size, 0, 0, 1, 0)

    return header + bytes(body) + bytes(table)


def arm_object(value: int = 4) -> bytes:
    """ARM relocatable object with one .text and one attributes section."""
    return build_elf([
        (SHT_PROGBITS, b'\x1e\xff\x2f\xe1'),    # bx lr
        (SHT_ARM_ATTRIBUTES, wchar_section(value)),
    ])


def _ar_header(name: bytes, size: int) -> bytes:
    return (
        name.ljust(16)
        + b'0'.ljust(12)
        + b'0'.ljust(6)
        + b'0'.ljust(6)
        + b'100644'.ljust(8)
        + str(size).encode().ljust(10)
        + b'`\n'
    )


def build_archive(
    members: Sequence[Tuple[str, bytes]],
    *,
    bsd: bool = False,
    symtab: bool = True,
) -> bytes:
    """ar archive in GNU (default) or BSD naming style."""
    out = bytearray(AR_MAGIC)

    def add(name: bytes, data: bytes) -> None:
        out.extend(_ar_header(name, len(data)))
        out.extend(data)
        if len(data) % 2:
            out.extend(b'\n')

    if bsd:
        def add_bsd(name: str, data: bytes) -> None:
            raw = name.encode()
            padded = raw.ljust((len(raw) + 4) & ~3, b'\x00')
            add(b'#1/' + str(len(padded)).encode(), padded + data)

        if symtab:
            add_bsd('__.SYMDEF SORTED', b'\x00' * 8)
        for name, data in members:
            add_bsd(name, data)
        return bytes(out)

    if symtab:
        add(b'/', b'\x00' * 4)

    long_names = bytearray()
    refs = {}
    for name, _ in members:
        if len(name) > 15:
            refs[name] = len(long_names)
            long_names += name.encode() + b'/\n'
    if long_names:
        add(b'//', bytes(long_names))

    for name, data in members:
        if name in refs:
            add(b'/' + str(refs[name]).encode(), data)
        else:
            add(name.encode() + b'/', data)
    return bytes(out)


def write_file(path: str, data: bytes) -> str:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as f:
        f.write(data)
    return path


def read_file(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def changed_offsets(before: bytes, after: bytes) -> list:
    assert len(before) == len(after)
    return [i for i, (a, b) in enumerate(zip(before, after)) if a != b]
