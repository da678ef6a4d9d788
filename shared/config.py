"""
eabitools Configuration Management
===================================

Settings for the eabitools commands, read from a TOML file.

Each TOML table fills one slots dataclass. Keys the file leaves out keep
the dataclass default; keys the dataclass does not declare are ignored.
"""

from __future__ import annotations

import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


_DEFAULT_CONFIG_PATH: Path = Path(__file__).resolve().parent.parent / "config.toml"


@dataclass(slots=True)
class WchartagConfig:
    """``[wchartag]``: patch value and the toolchain-tree filters.

    The path filters mirror the layout of an Android NDK tree: only ARM
    objects are touched, and the C++ runtimes that really exchange
    ``wchar_t`` across library boundaries keep their tag.
    """

    default_value: int = 0
    elf_suffixes: list[str] = field(default_factory=lambda: [".so", ".o"])
    archive_suffixes: list[str] = field(default_factory=lambda: [".a"])
    include_paths: list[str] = field(
        default_factory=lambda: [
            "toolchains/arm-linux-*/*",
            "platforms/android-*/arch-arm/*",
            "sources/*/armeabi*/*",
        ]
    )
    exclude_names: list[str] = field(
        default_factory=lambda: [
            "libcrystax.so",
            "libcrystax_shared.so",
            "libcrystax_static.a",
            "libgnustl_shared.so",
            "libgnustl_static.a",
            "libstlport_shared.so",
            "libstlport_static.a",
            "libgabi++_shared.so",
            "libgabi++_static.a",
            "libgnuobjc_shared.so",
            "libgnuobjc_static.a",
            "libsupc++.so",
            "libsupc++.a",
            "libstdc++.so",
            "libstdc++.a",
        ]
    )
    max_file_size: int = 268_435_456  # 256 MiB


@dataclass(slots=True)
class GlobalConfig:
    """``[global]``: logging shared by every command."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False


@dataclass(slots=True)
class EabiConfig:
    """The whole configuration file.

        >>> EabiConfig.load().wchartag.default_value
        0
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    wchartag: WchartagConfig = field(default_factory=WchartagConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> EabiConfig:
        """Read *path*, or ``config.toml`` at the project root.

        The project default may be absent, in which case built-in defaults
        are used; a missing explicit *path* raises :exc:`FileNotFoundError`.
        Malformed TOML raises :exc:`tomllib.TOMLDecodeError` (a
        :exc:`ValueError`).
        """
        source = _DEFAULT_CONFIG_PATH if path is None else Path(path)
        if not source.is_file():
            if path is None:
                return cls()
            raise FileNotFoundError(f"Configuration file not found: {source}")

        document = tomllib.loads(source.read_text(encoding="utf-8"))
        sections = {
            attr: cls._build_section(section_type, document.get(table) or {})
            for table, (attr, section_type) in _SECTIONS.items()
        }
        return cls(**sections)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def _build_section(section_type: type, values: dict[str, Any]) -> Any:
        known = {f.name for f in fields(section_type)}
        return section_type(**{k: v for k, v in values.items() if k in known})


# TOML table -> (EabiConfig attribute, dataclass)
_SECTIONS: dict[str, tuple[str, type]] = {
    "global": ("global_settings", GlobalConfig),
    "wchartag": ("wchartag", WchartagConfig),
}
