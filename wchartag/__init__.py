"""
eabitools wchartag -- Tag_ABI_PCS_wchar_t Inspector / Patcher
==============================================================

wchartag reads the ARM EABI build attributes of 32-bit ARM ELF files and
reports, or rewrites in place, the ``Tag_ABI_PCS_wchar_t`` attribute that
records the size of ``wchar_t`` a file was compiled for.

Capabilities:
    - Bounded decoding of ``.ARM.attributes`` sections (ULEB128 / NTBS)
    - In-place one-byte patching of the tag value
    - Patching ELF members of ``ar`` static libraries without repacking
    - Sweeping a whole toolchain tree with include / exclude filters
    - Rich console output and JSON reports

References:
    - ARM IHI 0045: Addenda to, and Errata in, the ABI for the ARM
      Architecture (Build Attributes).
    - ARM IHI 0044: ELF for the ARM Architecture.
    - TIS Committee. (1995). ELF Specification.
"""

__version__ = "1.0.0"
