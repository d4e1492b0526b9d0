"""TOML configuration support shared by idml-bridge commands.

Each command owns a table of defaults. A user file is merged over it key by
key; anything the defaults do not declare, or a value whose kind differs
from the default, is rejected before the command sees it. Commands also ship
a commented template of their defaults as package data.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping

try:  # Python >= 3.11 ships ``tomllib`` in the stdlib.
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - interpreter guard
    raise RuntimeError("Python 3.11+ is required for tomllib support.") from exc

__all__ = [
    "ConfigTemplate",
    "ConfigTemplateError",
    "TomlConfigError",
    "get_template",
    "iter_templates",
    "load_toml",
    "merge_defaults",
]


class TomlConfigError(RuntimeError):
    """Raised when a TOML file cannot be read or does not fit its defaults."""


class ConfigTemplateError(RuntimeError):
    """Raised when a packaged template is unknown or cannot be written."""


def load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Failed to parse {path}: {exc}") from exc


def merge_defaults(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Merge ``override`` into ``base`` in place.

    Tables merge recursively; every other value replaces the default
    wholesale, lists included. Unknown keys and values of the wrong kind
    raise :class:`TomlConfigError` naming the dotted key.
    """

    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        current = base[key]
        if isinstance(current, MutableMapping):
            if not isinstance(value, Mapping):
                raise TomlConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted, type(value).__name__
                    )
                )
            merge_defaults(current, value, path=f"{dotted}.")
            continue
        expected = _kind(current)
        if expected is not None and _kind(value) != expected:
            raise TomlConfigError(
                "Expected {0} for '{1}', found {2}.".format(
                    expected, dotted, type(value).__name__
                )
            )
        base[key] = value


def _kind(value: object) -> str | None:
    # bool is checked first because it is a subclass of int.
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return None


@dataclass(frozen=True)
class ConfigTemplate:
    """A commented TOML file shipped inside a command's package."""

    name: str
    filename: str
    package: str
    target: str

    def read_text(self) -> str:
        try:
            resource = resources.files(self.package).joinpath(self.filename)
            return resource.read_text(encoding="utf-8")
        except FileNotFoundError as exc:  # pragma: no cover - package state
            raise ConfigTemplateError(
                f"Template '{self.name}' resource not found."
            ) from exc

    def default_path(self, config_dir: Path) -> Path:
        return config_dir / self.target

    def write(
        self, path: Path, *, overwrite: bool = False, mode: int = 0o600
    ) -> Path:
        """Write the template to ``path``; an existing file needs ``overwrite``."""

        if path.exists() and not overwrite:
            raise ConfigTemplateError(f"Config already exists: {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.read_text(), encoding="utf-8")
        except OSError as exc:
            raise ConfigTemplateError(f"Cannot write {path}: {exc}") from exc
        try:
            path.chmod(mode)
        except PermissionError:  # pragma: no cover - depends on filesystem
            pass
        return path


_TEMPLATES: dict[str, ConfigTemplate] = {
    "export": ConfigTemplate(
        name="export",
        filename="template.toml",
        package="idml_bridge.export",
        target="export.toml",
    ),
}


def get_template(name: str) -> ConfigTemplate:
    try:
        return _TEMPLATES[name]
    except KeyError as exc:
        raise ConfigTemplateError(f"Unknown config template '{name}'.") from exc


def iter_templates() -> Iterable[ConfigTemplate]:
    return tuple(_TEMPLATES.values())
