"""Configuration loader for the IDML export pipeline."""

from __future__ import annotations

import copy
import os
import re
import string
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, MutableMapping, Optional

from idml_bridge.core import config as core_config
from idml_bridge.core import workspace as workspace_mod

from .planner import FormatClass

CONFIG_FILENAME = core_config.get_template("export").target
CONFIG_ENV = "IDML_BRIDGE_CONFIG"
ENV_PREFIX = "IDML_BRIDGE_"

_VECTOR_COMMAND = (
    "inkscape",
    "{source}",
    "--export-type=svg",
    "--export-plain-svg",
    "--export-filename={destination}",
)

# Placeholders available to every command template.
COMMAND_FIELDS: tuple[str, ...] = (
    "source",
    "destination",
    "precision",
    "embed_raster",
    "responsive",
    "quality",
    "dpi",
)

_DEFAULTS: Mapping[str, Mapping[str, Any]] = {
    "paths": {"output_root": ""},
    "host": {"factory": "", "document_suffix": "indd"},
    "convert": {"ai": True, "eps": True, "psd": True, "pdf": True},
    "raster": {"format": "png", "jpeg_quality": 95, "pdf_dpi": 200},
    "svg": {
        "decimal_precision": 3,
        "embed_raster_images": True,
        "responsive": False,
    },
    "package": {"include_hidden_layers": True},
    "wait": {"timeout_seconds": 30, "poll_interval_seconds": 2.0},
    "filters": {"exclude_patterns": []},
    "output": {"idml_suffix": "-imgly-optimized"},
    "commands": {
        "ai": list(_VECTOR_COMMAND),
        "eps": list(_VECTOR_COMMAND),
        "psd": ["magick", "{source}[0]", "-quality", "{quality}", "{destination}"],
        "pdf": ["magick", "-density", "{dpi}", "{source}[0]", "{destination}"],
    },
    "logging": {"level": "INFO"},
}


# Vector options reach the tools only through these placeholders.
_SVG_PLACEHOLDERS: tuple[tuple[str, str, str], ...] = (
    ("decimal_precision", "svg_precision", "precision"),
    ("embed_raster_images", "embed_raster_images", "embed_raster"),
    ("responsive", "responsive_svg", "responsive"),
)
VECTOR_CLASSES = (FormatClass.AI, FormatClass.EPS)


class ExportConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


class RasterFormat(Enum):
    """Raster output format for layered image sources."""

    PNG = "png"
    JPG = "jpg"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def from_value(cls, value: str) -> "RasterFormat":
        normalized = value.strip().lower()
        if normalized == "jpeg":
            normalized = "jpg"
        for member in cls:
            if member.value == normalized:
                return member
        expected = ", ".join(member.value for member in cls)
        raise ExportConfigError(
            f"Unknown raster format '{value}'. Expected one of: {expected}."
        )


@dataclass(frozen=True)
class ExportConfig:
    """Fully resolved, static configuration for one export run."""

    output_root: Optional[Path]
    host_factory: Optional[str]
    document_suffix: str
    enabled_classes: frozenset[FormatClass]
    raster_format: RasterFormat
    jpeg_quality: int
    pdf_dpi: int
    svg_precision: int
    embed_raster_images: bool
    responsive_svg: bool
    include_hidden_layers: bool
    timeout_seconds: float
    poll_interval_seconds: float
    exclude_patterns: tuple[str, ...]
    idml_suffix: str
    commands: Mapping[FormatClass, tuple[str, ...]]
    log_level: str

    def ignored_options(self) -> tuple[str, ...]:
        """Describe non-default svg options no vector command consumes."""

        used = {
            name
            for member in VECTOR_CLASSES
            for arg in self.commands.get(member, ())
            for _, name, _, _ in string.Formatter().parse(arg)
            if name
        }
        defaults = _DEFAULTS["svg"]
        messages = []
        for key, attribute, placeholder in _SVG_PLACEHOLDERS:
            if getattr(self, attribute) == defaults[key]:
                continue
            if placeholder not in used:
                messages.append(
                    f"svg.{key} is set but no vector command uses "
                    f"{{{placeholder}}}; the option has no effect."
                )
        return tuple(messages)


@dataclass(frozen=True)
class LoadResult:
    """Result of loading configuration, including workspace context."""

    config: ExportConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def default_table() -> MutableMapping[str, MutableMapping[str, Any]]:
    return copy.deepcopy(_DEFAULTS)  # type: ignore[arg-type]


def load_config(
    *,
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence env > TOML > defaults."""

    env_map = os.environ if env is None else env

    layout = workspace_mod.ensure_workspace(env=env_map, path=workspace_path)
    default_path = core_config.get_template("export").default_path(
        layout.path_for("config")
    )
    requested_path = _resolve_config_path(
        config_path=config_path,
        env_map=env_map,
        default_path=default_path,
    )

    table = default_table()
    loaded_path: Optional[Path] = None
    if requested_path.exists():
        loaded_path = requested_path
        try:
            core_config.merge_defaults(
                table, core_config.load_toml(requested_path)
            )
        except core_config.TomlConfigError as exc:
            raise ExportConfigError(str(exc)) from exc
    elif config_path is not None or _env_config(env_map):
        raise ExportConfigError(f"Config file not found: {requested_path}")

    _apply_env(table, env_map)
    return LoadResult(
        config=build_config(table),
        layout=layout,
        config_path=loaded_path,
    )


def build_config(table: Mapping[str, Mapping[str, Any]]) -> ExportConfig:
    """Validate a merged option table and freeze it into an ExportConfig."""

    enabled = frozenset(
        member
        for member in FormatClass
        if _as_bool(table["convert"][member.value], f"convert.{member.value}")
    )
    timeout = _as_number(table["wait"]["timeout_seconds"], "wait.timeout_seconds")
    interval = _as_number(
        table["wait"]["poll_interval_seconds"], "wait.poll_interval_seconds"
    )
    if timeout < 0:
        raise ExportConfigError("wait.timeout_seconds must be >= 0.")
    if interval <= 0:
        raise ExportConfigError("wait.poll_interval_seconds must be > 0.")

    quality = _as_int(table["raster"]["jpeg_quality"], "raster.jpeg_quality")
    if not 1 <= quality <= 100:
        raise ExportConfigError("raster.jpeg_quality must be within 1..100.")
    dpi = _as_int(table["raster"]["pdf_dpi"], "raster.pdf_dpi")
    if dpi <= 0:
        raise ExportConfigError("raster.pdf_dpi must be a positive integer.")
    precision = _as_int(table["svg"]["decimal_precision"], "svg.decimal_precision")
    if not 0 <= precision <= 7:
        raise ExportConfigError("svg.decimal_precision must be within 0..7.")

    raster_value = table["raster"]["format"]
    if not isinstance(raster_value, str):
        raise ExportConfigError("raster.format must be a string.")

    return ExportConfig(
        output_root=_as_optional_path(table["paths"]["output_root"]),
        host_factory=_as_optional_str(table["host"]["factory"], "host.factory"),
        document_suffix=_normalize_suffix(table["host"]["document_suffix"]),
        enabled_classes=enabled,
        raster_format=RasterFormat.from_value(raster_value),
        jpeg_quality=quality,
        pdf_dpi=dpi,
        svg_precision=precision,
        embed_raster_images=_as_bool(
            table["svg"]["embed_raster_images"], "svg.embed_raster_images"
        ),
        responsive_svg=_as_bool(table["svg"]["responsive"], "svg.responsive"),
        include_hidden_layers=_as_bool(
            table["package"]["include_hidden_layers"],
            "package.include_hidden_layers",
        ),
        timeout_seconds=float(timeout),
        poll_interval_seconds=float(interval),
        exclude_patterns=_validate_patterns(
            table["filters"]["exclude_patterns"]
        ),
        idml_suffix=_as_str(table["output"]["idml_suffix"], "output.idml_suffix"),
        commands=_validate_commands(table["commands"]),
        log_level=_resolve_log_level(table["logging"]["level"]),
    )


def _resolve_config_path(
    *,
    config_path: Optional[Path],
    env_map: Mapping[str, str],
    default_path: Path,
) -> Path:
    if config_path is not None:
        return config_path.expanduser()
    env_candidate = _env_config(env_map)
    if env_candidate:
        return Path(env_candidate).expanduser()
    return default_path


def _apply_env(
    table: MutableMapping[str, MutableMapping[str, Any]],
    env_map: Mapping[str, str],
) -> None:
    overrides = (
        ("OUTPUT_ROOT", "paths", "output_root"),
        ("HOST_FACTORY", "host", "factory"),
        ("TIMEOUT_SECONDS", "wait", "timeout_seconds"),
        ("POLL_INTERVAL_SECONDS", "wait", "poll_interval_seconds"),
        ("RASTER_FORMAT", "raster", "format"),
        ("LOG_LEVEL", "logging", "level"),
    )
    for key, section, option in overrides:
        raw = _parse_env_string(env_map, key)
        if raw is None:
            continue
        if section == "wait":
            try:
                table[section][option] = float(raw)
            except ValueError as exc:
                raise ExportConfigError(
                    f"{ENV_PREFIX}{key} must be a number, got '{raw}'."
                ) from exc
        else:
            table[section][option] = raw

    patterns = _parse_env_string(env_map, "EXCLUDE_PATTERNS")
    if patterns is not None:
        table["filters"]["exclude_patterns"] = [
            part for part in patterns.split(os.pathsep) if part
        ]


def _env_config(env_map: Mapping[str, str]) -> Optional[str]:
    raw = env_map.get(CONFIG_ENV)
    if raw is None:
        return None
    return raw.strip() or None


def _parse_env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _validate_patterns(value: object) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise ExportConfigError("filters.exclude_patterns must be a list.")
    patterns: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item:
            raise ExportConfigError(
                "filters.exclude_patterns entries must be non-empty strings."
            )
        try:
            re.compile(item)
        except re.error as exc:
            raise ExportConfigError(
                f"Invalid exclude pattern '{item}': {exc}"
            ) from exc
        patterns.append(item)
    return tuple(patterns)


def _validate_commands(
    table: Mapping[str, Any],
) -> Mapping[FormatClass, tuple[str, ...]]:
    probe = {name: "x" for name in COMMAND_FIELDS}
    commands: dict[FormatClass, tuple[str, ...]] = {}
    for member in FormatClass:
        raw = table.get(member.value)
        if not isinstance(raw, (list, tuple)) or not raw:
            raise ExportConfigError(
                f"commands.{member.value} must be a non-empty list of strings."
            )
        argv: list[str] = []
        for arg in raw:
            if not isinstance(arg, str):
                raise ExportConfigError(
                    f"commands.{member.value} must only contain strings."
                )
            try:
                arg.format(**probe)
            except (KeyError, IndexError, ValueError) as exc:
                raise ExportConfigError(
                    "commands.{0} has an invalid placeholder in '{1}'. "
                    "Available: {2}.".format(
                        member.value, arg, ", ".join(COMMAND_FIELDS)
                    )
                ) from exc
            argv.append(arg)
        commands[member] = tuple(argv)
    return MappingProxyType(commands)


def _normalize_suffix(value: object) -> str:
    suffix = _as_str(value, "host.document_suffix").strip().lstrip(".").lower()
    if not suffix:
        raise ExportConfigError("host.document_suffix must be non-empty.")
    return suffix


def _resolve_log_level(value: object) -> str:
    level = _as_str(value, "logging.level").strip()
    if not level:
        raise ExportConfigError("logging.level must be a non-empty string.")
    return level.upper()


def _as_optional_path(value: object) -> Optional[Path]:
    raw = _as_optional_str(value, "paths.output_root")
    if raw is None:
        return None
    return Path(raw).expanduser()


def _as_optional_str(value: object, key: str) -> Optional[str]:
    if value is None:
        return None
    stripped = _as_str(value, key).strip()
    return stripped or None


def _as_str(value: object, key: str) -> str:
    if not isinstance(value, str):
        raise ExportConfigError(f"{key} must be a string.")
    return value


def _as_bool(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        raise ExportConfigError(f"{key} must be true or false.")
    return value


def _as_int(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ExportConfigError(f"{key} must be an integer.")
    return value


def _as_number(value: object, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ExportConfigError(f"{key} must be a number.")
    return float(value)


__all__ = [
    "COMMAND_FIELDS",
    "CONFIG_ENV",
    "CONFIG_FILENAME",
    "ENV_PREFIX",
    "ExportConfig",
    "ExportConfigError",
    "LoadResult",
    "RasterFormat",
    "build_config",
    "default_table",
    "load_config",
]
