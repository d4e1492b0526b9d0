from __future__ import annotations

import re
from pathlib import Path

from idml_bridge.export import planner
from idml_bridge.export.planner import FormatClass

ALL_CLASSES = frozenset(FormatClass)


def test_plan_converts_the_four_handled_formats(workspace):
    root = workspace.create(
        {
            "Links": {
                "a.ai": "x",
                "b.eps": "x",
                "c.psd": "x",
                "d.pdf": "x",
                "e.png": "x",
            }
        }
    )
    files = sorted((root / "Links").iterdir())

    plan = planner.plan_conversions(files, enabled=ALL_CLASSES)

    assert len(plan.jobs) == 4
    assert {job.destination.name for job in plan.jobs} == {
        "a.svg",
        "b.svg",
        "c.png",
        "d.png",
    }
    assert plan.unhandled == (root / "Links" / "e.png",)
    for job in plan.jobs:
        assert job.destination.parent == job.source.parent


def test_destination_is_deterministic_and_idempotent():
    source = Path("/jobs/doc/Links/Logo Final.v2.AI")

    first = planner.destination_for(source, FormatClass.AI)
    second = planner.destination_for(source, FormatClass.AI)

    assert first == second == Path("/jobs/doc/Links/Logo Final.v2.svg")
    assert planner.destination_for(first, FormatClass.AI) == first


def test_raster_extension_only_applies_to_psd():
    psd = planner.destination_for(
        Path("/l/photo.psd"), FormatClass.PSD, raster_extension="jpg"
    )
    pdf = planner.destination_for(
        Path("/l/sheet.pdf"), FormatClass.PDF, raster_extension="jpg"
    )

    assert psd == Path("/l/photo.jpg")
    assert pdf == Path("/l/sheet.png")


def test_classification_ignores_extension_case():
    assert FormatClass.for_path("/l/LOGO.EPS") is FormatClass.EPS
    assert FormatClass.for_path("/l/readme") is None
    assert FormatClass.for_path("/l/image.tiff") is None


def test_exclusion_patterns_match_file_names():
    files = [Path("/l/_ignore-logo.ai"), Path("/l/logo.ai")]

    plan = planner.plan_conversions(
        files,
        enabled=ALL_CLASSES,
        exclude=(re.compile(r"^_ignore"),),
    )

    assert [job.source for job in plan.jobs] == [Path("/l/logo.ai")]
    assert plan.excluded == (Path("/l/_ignore-logo.ai"),)


def test_disabled_classes_are_not_planned():
    files = [Path("/l/a.ai"), Path("/l/b.pdf")]

    plan = planner.plan_conversions(files, enabled={FormatClass.AI})

    assert [job.format_class for job in plan.jobs] == [FormatClass.AI]
    assert plan.disabled == (Path("/l/b.pdf"),)


def test_expected_outputs_and_lane_selection():
    files = [Path("/l/a.ai"), Path("/l/b.psd"), Path("/l/c.eps")]
    plan = planner.plan_conversions(files, enabled=ALL_CLASSES)

    expected = plan.expected_outputs()

    assert dict(expected) == {
        "/l/a.ai": "/l/a.svg",
        "/l/b.psd": "/l/b.png",
        "/l/c.eps": "/l/c.svg",
    }
    vector = plan.jobs_for(planner.VECTOR_CLASSES)
    assert [job.source.name for job in vector] == ["a.ai", "c.eps"]


def test_same_stem_sources_share_a_destination():
    files = [Path("/l/logo.ai"), Path("/l/logo.eps")]

    plan = planner.plan_conversions(files, enabled=ALL_CLASSES)

    destinations = set(plan.expected_outputs().values())
    assert destinations == {"/l/logo.svg"}
    assert len(plan.expected_outputs()) == 2
