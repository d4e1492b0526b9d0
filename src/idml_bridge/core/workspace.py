"""Workspace bootstrap helpers for idml-bridge commands."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


WORKSPACE_ENV = "IDML_BRIDGE_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".idml-bridge-data"

# Exports land wherever the user points them; the workspace only holds
# configuration and the rotating command logs.
SUBDIRECTORIES: tuple[str, ...] = ("config", "logs")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved workspace paths and whether each one was just created."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise KeyError(f"Unknown workspace directory '{key}'.") from exc

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Ensure the workspace exists and return its layout.

    ``path`` wins over ``IDML_BRIDGE_DATA_HOME``, which wins over
    ``~/.idml-bridge-data``. Only the default location may fall back to a
    directory under the system temp dir when it cannot be created.
    """

    env_map = os.environ if env is None else env
    base, explicit = _resolve_base(env_map, override=path)

    candidates = [base]
    if create and not explicit:
        fallback = Path(tempfile.gettempdir()) / "idml-bridge-data"
        if fallback != base:
            candidates.append(fallback)

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            return _layout_at(candidate, create=create)
        except PermissionError as exc:
            last_error = exc
    raise WorkspaceError(f"Unable to prepare workspace at {base}") from last_error


def _resolve_base(
    env: Mapping[str, str], *, override: Path | None
) -> tuple[Path, bool]:
    custom = (env.get(WORKSPACE_ENV) or "").strip()
    if override is not None:
        target, explicit = override, True
    elif custom:
        target, explicit = Path(custom), True
    else:
        target, explicit = DEFAULT_WORKSPACE, False
    target = target.expanduser()
    try:
        return target.resolve(), explicit
    except FileNotFoundError:
        return target.absolute(), explicit


def _layout_at(base: Path, *, create: bool) -> WorkspaceLayout:
    entries = {"home": base}
    entries.update((name, base / name) for name in SUBDIRECTORIES)

    created: dict[str, bool] = {}
    for key, directory in entries.items():
        if directory.exists() and not directory.is_dir():
            raise WorkspaceError(
                f"Workspace entry '{key}' is not a directory: {directory}"
            )
        created[key] = _ensure_dir(directory) if create else False

    directories = {key: entries[key] for key in SUBDIRECTORIES}
    return WorkspaceLayout(
        home=base,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _ensure_dir(path: Path) -> bool:
    existed = path.is_dir()
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return not existed
