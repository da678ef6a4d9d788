import io
import unittest

from wchartag.core.errors import BadFormatError, StreamIOError
from wchartag.parsers.elf_parser import (
    ELFCLASS64,
    EM_X86_64,
    SHT_ARM_ATTRIBUTES,
    SectionLocator,
)

from test import quiet_logger
from test.fixtures import SHT_PROGBITS, build_elf, wchar_section


class TestHeaderChecks(unittest.TestCase):

    def assert_bad_format(self, data: bytes, message: str):
        with self.assertRaises(BadFormatError) as ctx:
            SectionLocator(io.BytesIO(data)).scan()
        self.assertIn(message, str(ctx.exception))

    def test_bad_magic(self):
        self.assert_bad_format(b'MZ\x90\x00' + b'\x00' * 60, 'Invalid ELF magic')

    def test_tiny_file(self):
        self.assert_bad_format(b'\x7fE', 'Invalid ELF magic')

    def test_truncated_header(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())])
        self.assert_bad_format(data[:30], 'File too small')

    def test_wrong_machine(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())], machine=EM_X86_64)
        self.assert_bad_format(data, 'Not an ARM ELF file (x86_64)')

    def test_64bit_class(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())], ei_class=ELFCLASS64)
        self.assert_bad_format(data, 'Not a 32-bit ELF file')

    def test_no_section_table(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())], with_table=False)
        self.assert_bad_format(data, 'no section table')

    def test_section_header_size_mismatch(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())], shentsize=64)
        self.assert_bad_format(data, "doesn't match sizeof(Elf32_Shdr)=40")

    # The section table claims more entries than the file holds
    def test_truncated_section_table(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())])
        with self.assertRaises(StreamIOError):
            SectionLocator(io.BytesIO(data[:-10])).scan()


class TestSectionScan(unittest.TestCase):

    def test_single_section(self):
        data = build_elf([(SHT_PROGBITS, b'\x00' * 8), (SHT_ARM_ATTRIBUTES, wchar_section(4))])
        reports = SectionLocator(io.BytesIO(data), logger=quiet_logger()).scan()
        self.assertEqual(len(reports), 1)
        self.assertEqual(reports[0].value, 4)
        self.assertEqual(reports[0].section_index, 2)
        self.assertEqual(reports[0].section_offset, 52 + 8)

    def test_no_attributes_section(self):
        data = build_elf([(SHT_PROGBITS, b'\x00' * 8)])
        self.assertEqual(SectionLocator(io.BytesIO(data)).scan(), [])

    # Walking one section must not disturb the scan of the section table
    def test_two_sections(self):
        data = build_elf([
            (SHT_ARM_ATTRIBUTES, wchar_section(4)),
            (SHT_PROGBITS, b'\x01\x02\x03'),
            (SHT_ARM_ATTRIBUTES, wchar_section(2)),
        ])
        handle = io.BytesIO(data)
        locator = SectionLocator(handle)
        reports = locator.scan(replacement=0)
        self.assertEqual([(r.section_index, r.value, r.patched_to) for r in reports], [(1, 4, 0), (3, 2, 0)])

        sections = locator.attribute_sections()
        self.assertEqual([sh.index for sh in sections], [1, 3])
        self.assertEqual(SectionLocator(io.BytesIO(handle.getvalue())).scan()[1].value, 0)

    def test_big_endian(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section(4, endian='>'))], big_endian=True)
        reports = SectionLocator(io.BytesIO(data)).scan()
        self.assertEqual([r.value for r in reports], [4])

    def test_empty_attributes_section(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, b'')])
        with self.assertRaises(BadFormatError):
            SectionLocator(io.BytesIO(data)).scan()


if __name__ == '__main__':
    unittest.main()
