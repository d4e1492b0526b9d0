"""Filesystem helpers shared across idml-bridge modules."""

from __future__ import annotations

import re
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Pattern, Sequence

__all__ = [
    "basename",
    "collect_files",
    "compile_patterns",
    "extension_for",
    "matches_any",
    "path_exists",
]


def collect_files(root: Path) -> List[Path]:
    """Return every regular file below ``root`` in a stable order."""

    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")
    return sorted(
        (child for child in root.rglob("*") if child.is_file()),
        key=lambda candidate: str(candidate),
    )


def extension_for(path: PurePath | str) -> Optional[str]:
    """Lowercase final extension without the dot, ``None`` when absent."""

    suffix = PurePath(path).suffix
    if not suffix:
        return None
    return suffix.lstrip(".").lower()


def basename(path: str) -> str:
    """Final path component, accepting either separator style.

    Host applications on Windows report link paths with backslashes even
    when the exporter itself runs under a POSIX path flavour.
    """

    return re.split(r"[\\/]", path.rstrip("\\/"))[-1]


def compile_patterns(patterns: Sequence[str]) -> tuple[Pattern[str], ...]:
    """Compile exclusion expressions; raises :class:`re.error` on bad input."""

    return tuple(re.compile(pattern) for pattern in patterns)


def matches_any(name: str, patterns: Iterable[Pattern[str]]) -> bool:
    return any(pattern.search(name) for pattern in patterns)


def path_exists(path: str) -> bool:
    return Path(path).exists()
