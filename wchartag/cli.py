"""
wchartag CLI -- Tag_ABI_PCS_wchar_t Inspector / Patcher
=========================================================

Click-based command-line interface.  Three commands are installed:

Usage::

    # Show the wchar_t size an ARM object was built for
    wchartag libfoo.so

    # Mark it wchar_t-agnostic
    wchartag libfoo.so 0

    # Same for every object inside a static library (patched in place)
    wchartag-ar libfoo.a

    # Sweep an NDK tree
    wchartag-strip "$NDK_ROOT" --output strip-report.json

Marking a library with ``Tag_ABI_PCS_wchar_t = 0`` silences the GNU
linker's "uses 4-byte wchar_t yet the output is to use 2-byte wchar_t"
warning for code that never passes ``wchar_t`` across the library boundary,
e.g. when building with ``-fshort-wchar``.

Exit status: 0 on success, 1 when the file (or, for ``wchartag-strip``, any
file) could not be processed, 2 for usage errors.

References:
    - Click documentation: https://click.palletsprojects.com/
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click

from shared.config import EabiConfig
from shared.console import EabiConsole
from shared.logger import EabiLogger

from wchartag.core.engine import WcharTagEngine
from wchartag.core.errors import UsageError
from wchartag.core.models import BatchReport, FileReport
from wchartag.output.console import WcharTagConsoleOutput
from wchartag.output.report import WcharTagReportGenerator
from wchartag.parsers.attributes import MAX_PATCH_VALUE, check_replacement


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _parse_value(
    ctx: click.Context, param: click.Parameter, value: Optional[str]
) -> Optional[int]:
    """Click callback turning the optional VALUE argument into a patch request."""
    if value is None:
        return None
    # Decimal first so "08" works, then 0x/0o/0b prefixes
    try:
        number = int(value, 10)
    except ValueError:
        try:
            number = int(value, 0)
        except ValueError:
            raise click.BadParameter(
                f"Invalid Tag_ABI_PCS_wchar_t value {value}.", ctx=ctx, param=param
            ) from None
    if number > MAX_PATCH_VALUE:
        raise click.BadParameter(
            f"We do not support patching with Tag_ABI_PCS_wchar_t {number} "
            f"greater than 0x{MAX_PATCH_VALUE:x}.",
            ctx=ctx,
            param=param,
        )
    try:
        return check_replacement(number)
    except UsageError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from None


def _load_config(path: Optional[str]) -> EabiConfig:
    try:
        return EabiConfig.load(path)
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"Cannot load configuration: {exc}") from None


def _emit(
    report: FileReport | BatchReport,
    json_output: bool,
    output_path: Optional[str],
    console: EabiConsole,
) -> None:
    generator = WcharTagReportGenerator()
    if json_output:
        click.echo(generator.to_json(report))
    if output_path:
        written = generator.generate_json(report, output_path)
        if not json_output:
            console.success(f"JSON report saved: {written}")


_config_option = click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML configuration file.",
)
_verbose_option = click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
_json_option = click.option(
    "--json", "json_output",
    is_flag=True,
    default=False,
    help="Print the report as JSON instead of text.",
)
_output_option = click.option(
    "--output", "-o",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write the report as JSON to this path.",
)


# ---------------------------------------------------------------------------
# wchartag FILENAME [VALUE]
# ---------------------------------------------------------------------------

@click.command("wchartag")
@click.argument("filename", type=click.Path(dir_okay=False))
@click.argument("value", required=False, callback=_parse_value)
@_config_option
@_verbose_option
@_json_option
@_output_option
def wchartag_cli(
    filename: str,
    value: Optional[int],
    config_path: Optional[str],
    verbose: bool,
    json_output: bool,
    output_path: Optional[str],
) -> None:
    """Display, or patch, Tag_ABI_PCS_wchar_t of an ARM EABI ELF file.

    FILENAME is the ELF object or shared library.  When VALUE (0-127) is
    given the tag is rewritten in place; 0 marks the file as not depending
    on the size of wchar_t.
    """
    config = _load_config(config_path)
    console = EabiConsole()
    logger = EabiLogger.from_settings("wchartag", config.global_settings, verbose)
    engine = WcharTagEngine(config=config, logger=logger)

    report = engine.process_file(filename, replacement=value)

    if not json_output:
        WcharTagConsoleOutput(console).display_file(report)
    _emit(report, json_output, output_path, console)

    if not report.succeeded:
        sys.exit(1)


# ---------------------------------------------------------------------------
# wchartag-ar ARCHIVE [VALUE]
# ---------------------------------------------------------------------------

@click.command("wchartag-ar")
@click.argument("archive", type=click.Path(dir_okay=False))
@click.argument("value", required=False, callback=_parse_value)
@_config_option
@_verbose_option
@_json_option
@_output_option
def wchartag_ar_cli(
    archive: str,
    value: Optional[int],
    config_path: Optional[str],
    verbose: bool,
    json_output: bool,
    output_path: Optional[str],
) -> None:
    """Patch Tag_ABI_PCS_wchar_t in every ELF object of a static library.

    Members are patched inside ARCHIVE; no unpacking or repacking is
    needed.  VALUE defaults to the configured default_value (0).  Fails only
    if no member could be processed.
    """
    config = _load_config(config_path)
    console = EabiConsole()
    logger = EabiLogger.from_settings("wchartag", config.global_settings, verbose)
    engine = WcharTagEngine(config=config, logger=logger)

    replacement = value if value is not None else config.wchartag.default_value
    try:
        replacement = check_replacement(replacement)
    except UsageError as exc:
        raise click.ClickException(f"Invalid default_value in configuration: {exc}") from None

    batch = engine.process_archive(archive, replacement=replacement)

    if not json_output:
        WcharTagConsoleOutput(console).display_batch(batch, title=Path(archive).name)
    _emit(batch, json_output, output_path, console)

    if batch.error is not None:
        sys.exit(1)


# ---------------------------------------------------------------------------
# wchartag-strip ROOT
# ---------------------------------------------------------------------------

@click.command("wchartag-strip")
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--value",
    "value",
    default=None,
    callback=_parse_value,
    help="Value to write (default: configured default_value, 0).",
)
@_config_option
@_verbose_option
@_json_option
@_output_option
def wchartag_strip_cli(
    root: str,
    value: Optional[int],
    config_path: Optional[str],
    verbose: bool,
    json_output: bool,
    output_path: Optional[str],
) -> None:
    """Strip Tag_ABI_PCS_wchar_t from the ARM libraries of a toolchain tree.

    ROOT is typically an Android NDK.  Which files are touched is set by the
    include_paths / exclude_names configuration; the C++ runtimes are
    excluded by default.  One file's failure does not stop the sweep.
    """
    config = _load_config(config_path)
    console = EabiConsole()
    logger = EabiLogger.from_settings("wchartag", config.global_settings, verbose)
    engine = WcharTagEngine(config=config, logger=logger)

    try:
        batch = engine.strip_tree(root, replacement=value)
    except UsageError as exc:
        raise click.ClickException(f"Invalid default_value in configuration: {exc}") from None

    if not json_output:
        WcharTagConsoleOutput(console).display_batch(batch)
    _emit(batch, json_output, output_path, console)

    if batch.failed:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Module entry points
# ---------------------------------------------------------------------------

def main() -> None:
    """Entry point for ``python -m wchartag``."""
    wchartag_cli()


def ar_main() -> None:
    wchartag_ar_cli()


def strip_main() -> None:
    wchartag_strip_cli()


if __name__ == "__main__":
    main()
