"""Conversion planning: classify packaged links and predict their outputs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Pattern, Sequence

from idml_bridge.core.files import extension_for, matches_any


class FormatClass(Enum):
    """Source formats the pipeline knows how to hand off for conversion."""

    AI = "ai"
    EPS = "eps"
    PSD = "psd"
    PDF = "pdf"

    @classmethod
    def for_path(cls, path: Path | str) -> "FormatClass | None":
        extension = extension_for(path)
        for member in cls:
            if member.value == extension:
                return member
        return None


VECTOR_CLASSES: frozenset[FormatClass] = frozenset(
    {FormatClass.AI, FormatClass.EPS}
)
RASTER_CLASSES: frozenset[FormatClass] = frozenset(
    {FormatClass.PSD, FormatClass.PDF}
)


@dataclass(frozen=True)
class ConversionJob:
    """One source file and the output its lane is expected to write."""

    source: Path
    format_class: FormatClass
    destination: Path

    @property
    def key(self) -> str:
        return str(self.source)


@dataclass(frozen=True)
class ConversionPlan:
    jobs: tuple[ConversionJob, ...]
    excluded: tuple[Path, ...]
    unhandled: tuple[Path, ...]
    disabled: tuple[Path, ...]

    def jobs_for(self, classes: Iterable[FormatClass]) -> tuple[ConversionJob, ...]:
        wanted = frozenset(classes)
        return tuple(job for job in self.jobs if job.format_class in wanted)

    def expected_outputs(self) -> Mapping[str, str]:
        """Source path to destination path for every planned job.

        When two jobs share a source path the later one wins, matching the
        order in which the files were enumerated.
        """

        return MappingProxyType(
            {job.key: str(job.destination) for job in self.jobs}
        )


def target_extension(
    format_class: FormatClass, *, raster_extension: str = "png"
) -> str:
    if format_class in VECTOR_CLASSES:
        return "svg"
    if format_class is FormatClass.PSD:
        return raster_extension
    return "png"


def destination_for(
    source: Path, format_class: FormatClass, *, raster_extension: str = "png"
) -> Path:
    """Swap the final extension of ``source`` for the class target.

    Pure: the filesystem is never consulted. Two sources that differ only by
    a handled extension in one directory map to the same destination.
    """

    extension = target_extension(
        format_class, raster_extension=raster_extension
    )
    if not source.suffix:
        return source.with_name(f"{source.name}.{extension}")
    return source.with_suffix(f".{extension}")


def plan_conversions(
    files: Sequence[Path],
    *,
    enabled: Iterable[FormatClass],
    exclude: Sequence[Pattern[str]] = (),
    raster_extension: str = "png",
) -> ConversionPlan:
    """Build conversion jobs for ``files`` honouring exclusions and toggles."""

    enabled_classes = frozenset(enabled)
    jobs: list[ConversionJob] = []
    excluded: list[Path] = []
    unhandled: list[Path] = []
    disabled: list[Path] = []

    for source in files:
        if matches_any(source.name, exclude):
            excluded.append(source)
            continue
        format_class = FormatClass.for_path(source)
        if format_class is None:
            unhandled.append(source)
            continue
        if format_class not in enabled_classes:
            disabled.append(source)
            continue
        jobs.append(
            ConversionJob(
                source=source,
                format_class=format_class,
                destination=destination_for(
                    source,
                    format_class,
                    raster_extension=raster_extension,
                ),
            )
        )

    return ConversionPlan(
        jobs=tuple(jobs),
        excluded=tuple(excluded),
        unhandled=tuple(unhandled),
        disabled=tuple(disabled),
    )


__all__ = [
    "ConversionJob",
    "ConversionPlan",
    "FormatClass",
    "RASTER_CLASSES",
    "VECTOR_CLASSES",
    "destination_for",
    "plan_conversions",
    "target_extension",
]
