from __future__ import annotations

import json
from pathlib import Path

from fixtures import FakeDocument, FakeFont, FakeFrame, FakeStory

from idml_bridge.export import report as report_mod
from idml_bridge.export.host import FontStatus, HostError
from idml_bridge.export.report import FontRecord, RunReport, StoryIssue


def test_manifest_uses_expected_keys():
    report = RunReport(
        relinked=3,
        skipped=1,
        pages=2,
        warnings=["Document has 2 pages. The target importer supports one page."],
        overset_stories=[StoryIssue(id=7, thread_count=2, length=340)],
        threaded_stories=[StoryIssue(id=7, thread_count=2)],
        used_fonts=[FontRecord("Minion Pro Regular", "installed")],
        conversions={"/l/a.ai": "/l/a.svg"},
    )

    manifest = report.to_manifest()

    assert manifest["relinked"] == 3
    assert manifest["skipped"] == 1
    assert manifest["convertedFiles"] == 1
    assert manifest["pages"] == 2
    assert manifest["oversetStories"] == [
        {"id": 7, "length": 340, "threadCount": 2}
    ]
    assert manifest["threadedStories"] == [{"id": 7, "threadCount": 2}]
    assert manifest["fonts"] == {
        "used": [{"name": "Minion Pro Regular", "status": "installed"}],
        "missing": [],
    }
    assert manifest["conversions"] == {"/l/a.ai": "/l/a.svg"}


def test_collect_diagnostics_flags_pages_stories_and_fonts(logger):
    document = FakeDocument(
        full_name=Path("/docs/brochure.indd"),
        page_count=3,
        stories=[
            FakeStory(id=1, length=10),
            FakeStory(
                id=2,
                length=900,
                text_containers=[FakeFrame(), FakeFrame(overflows=True)],
            ),
            FakeStory(id=3, length=40, overflows=True),
        ],
        fonts=[
            FakeFont("Minion Pro Regular"),
            FakeFont("Futura Bold", FontStatus.NOT_AVAILABLE),
            FakeFont("Gill Sans", FontStatus.SUBSTITUTED),
        ],
    )
    report = RunReport()

    report_mod.collect_diagnostics(document, report, logger=logger)

    assert report.pages == 3
    assert report.warnings == [
        "Document has 3 pages. The target importer supports one page."
    ]
    assert [story.id for story in report.overset_stories] == [2, 3]
    assert [story.id for story in report.threaded_stories] == [2]
    assert report.threaded_stories[0].thread_count == 2
    assert len(report.used_fonts) == 3
    assert [font.name for font in report.missing_fonts] == [
        "Futura Bold",
        "Gill Sans",
    ]


def test_single_page_document_adds_no_warning(logger):
    report = RunReport()

    report_mod.collect_diagnostics(
        FakeDocument(full_name=Path("/docs/card.indd")), report, logger=logger
    )

    assert report.pages == 1
    assert report.warnings == []


def test_summary_lists_counts_and_warnings():
    report = RunReport(
        relinked=3,
        skipped=1,
        warnings=["first problem", "second problem"],
        missing_fonts=[FontRecord("Futura Bold", "not_available")],
        conversions={"/l/a.ai": "/l/a.svg", "/l/b.psd": "/l/b.png"},
    )

    text = report_mod.render_summary(report)

    assert text.splitlines() == [
        "Relinked: 3",
        "Skipped: 1",
        "Converted files: 2 (AI/EPS -> SVG, PSD/PDF -> PNG)",
        "Native elements preserved: All shapes, text, colors, gradients",
        "Warnings:",
        " - first problem",
        " - second problem",
        "Missing fonts: 1",
    ]


def test_summary_without_findings_stops_after_counts():
    text = report_mod.render_summary(RunReport(), raster_extension="jpg")

    assert "Warnings" not in text
    assert "Converted files: 0 (AI/EPS -> SVG, PSD -> JPG, PDF -> PNG)" in text
    assert text.endswith("gradients\n")


def test_write_reports_creates_both_files(tmp_path):
    report = RunReport(relinked=1, conversions={"/l/a.ai": "/l/a.svg"})

    manifest_path, summary_path = report_mod.write_reports(report, tmp_path)

    assert manifest_path == tmp_path / "manifest.json"
    assert json.loads(manifest_path.read_text(encoding="utf-8"))[
        "convertedFiles"
    ] == 1
    assert summary_path.read_text(encoding="utf-8").startswith("Relinked: 1\n")


class _VanishedStory:
    id = 9
    length = 0
    overflows = False

    @property
    def text_containers(self):
        raise HostError("story gone")


def test_story_errors_become_warnings(logger):
    document = FakeDocument(
        full_name=Path("/docs/card.indd"),
        stories=[FakeStory(id=1, overflows=True), _VanishedStory()],
        fonts=[FakeFont("Futura Bold", FontStatus.NOT_AVAILABLE)],
    )
    report = RunReport()

    report_mod.collect_diagnostics(document, report, logger=logger)

    assert [story.id for story in report.overset_stories] == [1]
    assert report.warnings == ["Story list unavailable: story gone"]
    assert [font.name for font in report.missing_fonts] == ["Futura Bold"]
