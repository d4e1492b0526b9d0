"""Run report: document diagnostics, manifest.json and summary.txt."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, Template

from .host import FontStatus, HostDocument, HostError

MANIFEST_FILENAME = "manifest.json"
SUMMARY_FILENAME = "summary.txt"

_SUMMARY_TEMPLATE = """\
Relinked: {{ report.relinked }}
Skipped: {{ report.skipped }}
Converted files: {{ report.converted_files }} ({{ conversion_label }})
Native elements preserved: All shapes, text, colors, gradients
{% if report.warnings %}Warnings:
{% for warning in report.warnings %} - {{ warning }}
{% endfor %}{% endif %}
{%- if report.overset_stories %}Overset stories: {{ report.overset_stories | length }}
{% endif %}
{%- if report.threaded_stories %}Threaded stories: {{ report.threaded_stories | length }}
{% endif %}
{%- if report.missing_fonts %}Missing fonts: {{ report.missing_fonts | length }}
{% endif %}"""


@dataclass(frozen=True)
class StoryIssue:
    id: int
    thread_count: int
    length: int = 0


@dataclass(frozen=True)
class FontRecord:
    name: str
    status: str


@dataclass
class RunReport:
    """Everything written to the manifest for one export run."""

    relinked: int = 0
    skipped: int = 0
    pages: int = 0
    warnings: list[str] = field(default_factory=list)
    overset_stories: list[StoryIssue] = field(default_factory=list)
    threaded_stories: list[StoryIssue] = field(default_factory=list)
    used_fonts: list[FontRecord] = field(default_factory=list)
    missing_fonts: list[FontRecord] = field(default_factory=list)
    conversions: Mapping[str, str] = field(default_factory=dict)

    @property
    def converted_files(self) -> int:
        return len(self.conversions)

    def to_manifest(self) -> dict[str, Any]:
        return {
            "relinked": self.relinked,
            "skipped": self.skipped,
            "convertedFiles": self.converted_files,
            "pages": self.pages,
            "warnings": list(self.warnings),
            "oversetStories": [
                {
                    "id": story.id,
                    "length": story.length,
                    "threadCount": story.thread_count,
                }
                for story in self.overset_stories
            ],
            "threadedStories": [
                {"id": story.id, "threadCount": story.thread_count}
                for story in self.threaded_stories
            ],
            "fonts": {
                "used": [_font_entry(font) for font in self.used_fonts],
                "missing": [_font_entry(font) for font in self.missing_fonts],
            },
            "conversions": dict(self.conversions),
        }


def collect_diagnostics(
    document: HostDocument,
    report: RunReport,
    *,
    logger: logging.Logger,
) -> None:
    """Record page, story and font findings; none of them block the export.

    A host that fails while answering one of these questions costs only that
    part of the diagnostics: the failure becomes a warning.
    """

    def unavailable(what: str, exc: HostError) -> None:
        logger.warning("%s unavailable: %s", what, exc)
        report.warnings.append(f"{what} unavailable: {exc}")

    try:
        report.pages = document.page_count
    except HostError as exc:
        unavailable("Page count", exc)
    if report.pages > 1:
        report.warnings.append(
            f"Document has {report.pages} pages. "
            "The target importer supports one page."
        )

    try:
        for story in document.stories:
            containers = list(story.text_containers)
            thread_count = len(containers)
            if story.overflows or any(frame.overflows for frame in containers):
                report.overset_stories.append(
                    StoryIssue(
                        id=story.id, thread_count=thread_count, length=story.length
                    )
                )
            if thread_count > 1:
                report.threaded_stories.append(
                    StoryIssue(id=story.id, thread_count=thread_count)
                )
    except HostError as exc:
        unavailable("Story list", exc)

    try:
        fonts = list(document.fonts)
    except HostError as exc:
        unavailable("Font list", exc)
        fonts = []
    for font in fonts:
        record = FontRecord(name=font.full_name, status=font.status.value)
        report.used_fonts.append(record)
        if font.status is not FontStatus.INSTALLED:
            report.missing_fonts.append(record)

    logger.info(
        "Collected document diagnostics",
        extra={
            "pages": report.pages,
            "overset": len(report.overset_stories),
            "threaded": len(report.threaded_stories),
            "missing_fonts": len(report.missing_fonts),
        },
    )


def conversion_label(raster_extension: str = "png") -> str:
    if raster_extension.lower() == "png":
        return "AI/EPS -> SVG, PSD/PDF -> PNG"
    return "AI/EPS -> SVG, PSD -> {0}, PDF -> PNG".format(
        raster_extension.upper()
    )


def render_summary(report: RunReport, *, raster_extension: str = "png") -> str:
    return _summary_template().render(
        report=report,
        conversion_label=conversion_label(raster_extension),
    )


def write_reports(
    report: RunReport,
    job_folder: Path,
    *,
    raster_extension: str = "png",
) -> tuple[Path, Path]:
    """Write ``manifest.json`` and ``summary.txt`` into ``job_folder``."""

    manifest_path = job_folder / MANIFEST_FILENAME
    manifest_path.write_text(
        json.dumps(report.to_manifest(), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    summary_path = job_folder / SUMMARY_FILENAME
    summary_path.write_text(
        render_summary(report, raster_extension=raster_extension), encoding="utf-8"
    )
    return manifest_path, summary_path


def _font_entry(font: FontRecord) -> dict[str, str]:
    return {"name": font.name, "status": font.status}


def _summary_template() -> Template:
    env = Environment(
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    return env.from_string(_SUMMARY_TEMPLATE)


__all__ = [
    "FontRecord",
    "MANIFEST_FILENAME",
    "RunReport",
    "SUMMARY_FILENAME",
    "StoryIssue",
    "collect_diagnostics",
    "conversion_label",
    "render_summary",
    "write_reports",
]
