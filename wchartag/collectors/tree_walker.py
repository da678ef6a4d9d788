"""
Toolchain Tree Walker
======================

Finds the files under a toolchain root (typically an Android NDK) whose
``Tag_ABI_PCS_wchar_t`` should be stripped: ARM shared libraries and
objects, and static libraries holding ARM objects.

Selection is driven by :class:`~shared.config.WchartagConfig`:

    - the file suffix selects the kind (ELF or archive),
    - the path relative to the root must match one of ``include_paths``,
    - the base name must not be listed in ``exclude_names``,
    - the file must not exceed ``max_file_size``.

Runtimes that really exchange ``wchar_t`` with their callers (the C++
standard libraries) are excluded by default and keep their tag.
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterator, Optional

from shared.config import WchartagConfig
from shared.logger import EabiLogger


class TreeWalker:
    """Yield ``(path, kind)`` for every candidate below a root directory.

    Iteration order is deterministic (directories and files sorted by name)
    and symbolic links are never followed.

    Usage::

        walker = TreeWalker(config.wchartag)
        for path, kind in walker.walk(ndk_root):
            ...
    """

    KIND_ELF = "elf"
    KIND_ARCHIVE = "archive"

    def __init__(
        self,
        config: WchartagConfig | None = None,
        logger: EabiLogger | None = None,
    ) -> None:
        self._config = config or WchartagConfig()
        self._logger = logger
        self._elf_suffixes = {s.lower() for s in self._config.elf_suffixes}
        self._archive_suffixes = {s.lower() for s in self._config.archive_suffixes}
        self._excluded = set(self._config.exclude_names)

    def walk(self, root: str | Path) -> Iterator[tuple[Path, str]]:
        root_path = Path(root)
        if not root_path.is_dir():
            raise NotADirectoryError(f"Not a directory: {root_path}")

        for dirpath, dirnames, filenames in os.walk(root_path, followlinks=False):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                kind = self.classify(path, root_path)
                if kind is not None:
                    yield path, kind

    def classify(self, path: Path, root: Path) -> Optional[str]:
        """Return the candidate kind of *path*, or ``None`` to leave it alone."""
        suffix = path.suffix.lower()
        if suffix in self._elf_suffixes:
            kind = self.KIND_ELF
        elif suffix in self._archive_suffixes:
            kind = self.KIND_ARCHIVE
        else:
            return None

        if path.name in self._excluded:
            return None
        if path.is_symlink() or not path.is_file():
            return None

        relative = path.relative_to(root).as_posix()
        patterns = self._config.include_paths
        if patterns and not any(fnmatch.fnmatchcase(relative, p) for p in patterns):
            return None

        size = path.stat().st_size
        if size > self._config.max_file_size:
            if self._logger is not None:
                self._logger.warning(
                    "Skipping %s: %d bytes exceeds max_file_size", relative, size
                )
            return None

        return kind
