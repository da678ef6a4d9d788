import json
import os
import tempfile
import unittest

from click.testing import CliRunner

import wchartag
from wchartag.cli import wchartag_ar_cli, wchartag_cli, wchartag_strip_cli
from wchartag.parsers.elf_parser import EM_X86_64, SHT_ARM_ATTRIBUTES

from test.fixtures import (
    arm_object,
    build_archive,
    build_elf,
    changed_offsets,
    read_file,
    wchar_section,
    write_file,
)


class CliTestCase(unittest.TestCase):

    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.runner = CliRunner()

    def tearDown(self):
        self.tempdir.cleanup()

    def path(self, *parts):
        return os.path.join(self.tempdir.name, *parts)

    def invoke(self, command, args):
        # Wide terminal so Rich never wraps a message in the middle
        return self.runner.invoke(command, args, env={'COLUMNS': '500'})


class TestWchartagCommand(CliTestCase):

    def test_display(self):
        filename = write_file(self.path('libfoo.so'), arm_object(4))
        result = self.invoke(wchartag_cli, [filename])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Tag_ABI_PCS_wchar_t = 4', result.output)
        self.assertNotIn('patched', result.output)

    def test_patch(self):
        data = arm_object(4)
        filename = write_file(self.path('libfoo.so'), data)
        result = self.invoke(wchartag_cli, [filename, '0'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Tag_ABI_PCS_wchar_t = 4, patched to 0', result.output)
        self.assertEqual(len(changed_offsets(data, read_file(filename))), 1)

    def test_value_too_large_for_command_line(self):
        data = arm_object(4)
        filename = write_file(self.path('libfoo.so'), data)
        result = self.invoke(wchartag_cli, [filename, '200'])
        self.assertEqual(result.exit_code, 2)
        self.assertIn('greater than 0x7f', result.output)
        self.assertEqual(read_file(filename), data)

    def test_usage_errors(self):
        filename = write_file(self.path('libfoo.so'), arm_object(4))
        self.assertEqual(self.invoke(wchartag_cli, []).exit_code, 2)
        self.assertEqual(self.invoke(wchartag_cli, [filename, 'four']).exit_code, 2)
        self.assertEqual(self.invoke(wchartag_cli, [filename, '1', '2']).exit_code, 2)

    def test_hex_value(self):
        filename = write_file(self.path('libfoo.so'), arm_object(4))
        result = self.invoke(wchartag_cli, [filename, '0x2'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('patched to 2', result.output)

    # Leading zeros are read as decimal, not rejected as a bad octal literal
    def test_decimal_with_leading_zero(self):
        filename = write_file(self.path('libfoo.so'), arm_object(4))
        result = self.invoke(wchartag_cli, [filename, '08'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('patched to 8', result.output)

    def test_old_value_too_big(self):
        data = arm_object(200)
        filename = write_file(self.path('libbig.so'), data)
        result = self.invoke(wchartag_cli, [filename, '0'])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Tag_ABI_PCS_wchar_t = 200', result.output)
        self.assertIn('old value is too big', result.output)
        self.assertEqual(read_file(filename), data)

    def test_missing_file(self):
        result = self.invoke(wchartag_cli, [self.path('missing.so')])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Opening file failed', result.output)

    def test_not_arm(self):
        data = build_elf([(SHT_ARM_ATTRIBUTES, wchar_section())], machine=EM_X86_64)
        filename = write_file(self.path('libx86.so'), data)
        result = self.invoke(wchartag_cli, [filename])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Not an ARM ELF file (x86_64)', result.output)

    def test_json_report_file(self):
        filename = write_file(self.path('libfoo.so'), arm_object(4))
        report_path = self.path('out', 'report.json')
        result = self.invoke(wchartag_cli, [filename, '0', '--output', report_path])
        self.assertEqual(result.exit_code, 0, result.output)

        with open(report_path, 'r') as f:
            doc = json.load(f)
        self.assertEqual(doc['generator']['version'], wchartag.__version__)
        self.assertEqual(doc['kind'], 'file')
        self.assertEqual(doc['report']['status'], 'patched')
        self.assertEqual(doc['report']['tags'][0]['value'], 4)
        self.assertEqual(doc['report']['tags'][0]['patched_to'], 0)

    def test_missing_config(self):
        filename = write_file(self.path('libfoo.so'), arm_object(4))
        result = self.invoke(wchartag_cli, [filename, '--config', self.path('nope.toml')])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Cannot load configuration', result.output)


class TestWchartagArCommand(CliTestCase):

    def test_patch_archive(self):
        data = build_archive([('a.o', arm_object(4)), ('b.o', arm_object(2))])
        filename = write_file(self.path('libfoo.a'), data)
        result = self.invoke(wchartag_ar_cli, [filename])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('2 of 2 members processed', result.output)
        self.assertEqual(len(changed_offsets(data, read_file(filename))), 2)

    def test_archive_without_elf(self):
        filename = write_file(self.path('libdoc.a'), build_archive([('README', b'text')]))
        result = self.invoke(wchartag_ar_cli, [filename])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Is it an ARM library?', result.output)


class TestWchartagStripCommand(CliTestCase):

    def test_strip_tree(self):
        root = self.path('ndk')
        lib = write_file(os.path.join(root, 'platforms', 'android-9', 'arch-arm', 'usr', 'lib', 'libc.so'), arm_object(4))
        report_path = self.path('strip.json')
        result = self.invoke(wchartag_strip_cli, [root, '--output', report_path])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('1 succeeded, 0 failed, 1 patched', result.output)

        with open(report_path, 'r') as f:
            doc = json.load(f)
        self.assertEqual(doc['kind'], 'batch')
        self.assertEqual(doc['report']['files'][0]['target'], lib)

    def test_failure_sets_exit_code(self):
        root = self.path('ndk')
        write_file(os.path.join(root, 'platforms', 'android-9', 'arch-arm', 'usr', 'lib', 'libc.so'), arm_object(4))
        write_file(os.path.join(root, 'platforms', 'android-9', 'arch-arm', 'usr', 'lib', 'libjunk.so'), b'junk')
        result = self.invoke(wchartag_strip_cli, [root])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('1 succeeded, 1 failed, 1 patched', result.output)

    def test_config_file(self):
        root = self.path('tree')
        lib = write_file(os.path.join(root, 'lib', 'libfoo.so'), arm_object(4))
        config_path = self.path('eabi.toml')
        with open(config_path, 'w') as f:
            f.write('[wchartag]\ndefault_value = 2\ninclude_paths = ["lib/*"]\n')

        result = self.invoke(wchartag_strip_cli, [root, '--config', config_path])
        self.assertEqual(result.exit_code, 0, result.output)
        result = self.invoke(wchartag_cli, [lib])
        self.assertIn('Tag_ABI_PCS_wchar_t = 2', result.output)

    def test_value_option(self):
        root = self.path('tree')
        write_file(os.path.join(root, 'lib', 'libfoo.so'), arm_object(4))
        config_path = self.path('eabi.toml')
        with open(config_path, 'w') as f:
            f.write('[wchartag]\ninclude_paths = []\n')

        result = self.invoke(wchartag_strip_cli, [root, '--config', config_path, '--value', '1'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('patched to 1', result.output)

    def test_missing_root(self):
        result = self.invoke(wchartag_strip_cli, [self.path('nowhere')])
        self.assertEqual(result.exit_code, 2)


if __name__ == '__main__':
    unittest.main()
