from __future__ import annotations

import json
import sys
import subprocess
from pathlib import Path

from idml_bridge.export import lane_runner
from idml_bridge.export.dispatcher import Lane, LaneOptions, LaneRequest
from idml_bridge.export.planner import ConversionJob, FormatClass


def _request(tmp_path: Path, *names: str) -> LaneRequest:
    jobs = tuple(
        ConversionJob(
            source=tmp_path / name,
            format_class=FormatClass.PSD,
            destination=tmp_path / "out" / (Path(name).stem + ".jpg"),
        )
        for name in names
    )
    return LaneRequest(
        lane=Lane.RASTER,
        jobs=jobs,
        options=LaneOptions(raster_format="jpg", jpeg_quality=80, pdf_dpi=150),
        commands={
            FormatClass.PSD: (
                "magick",
                "{source}[0]",
                "-quality",
                "{quality}",
                "{destination}",
            )
        },
    )


def test_command_for_fills_placeholders(tmp_path):
    request = _request(tmp_path, "photo.psd")

    argv = lane_runner.command_for(request, request.jobs[0])

    assert argv == [
        "magick",
        f"{tmp_path / 'photo.psd'}[0]",
        "-quality",
        "80",
        str(tmp_path / "out" / "photo.jpg"),
    ]


def test_failing_job_does_not_stop_the_lane(tmp_path, logger):
    request = _request(tmp_path, "bad.psd", "good.psd")
    seen: list[list[str]] = []

    def runner(argv, **kwargs):
        seen.append(argv)
        if "bad.psd" in argv[1]:
            raise subprocess.CalledProcessError(
                1, argv, stderr="corrupt layer data"
            )
        return subprocess.CompletedProcess(argv, 0)

    summary = lane_runner.run_lane(request, logger=logger, runner=runner)

    assert len(seen) == 2
    assert summary.converted == (tmp_path / "out" / "good.jpg",)
    assert summary.failed == ((tmp_path / "bad.psd", "corrupt layer data"),)
    assert (tmp_path / "out").is_dir()


def test_missing_tool_is_recorded_as_failure(tmp_path, logger):
    request = _request(tmp_path, "photo.psd")

    def runner(argv, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", argv[0])

    summary = lane_runner.run_lane(request, logger=logger, runner=runner)

    assert summary.converted == ()
    assert summary.failed[0][0] == tmp_path / "photo.psd"


def test_missing_command_template_is_recorded_as_failure(tmp_path, logger):
    request = _request(tmp_path, "photo.psd")
    request = LaneRequest(
        lane=request.lane, jobs=request.jobs, options=request.options
    )

    summary = lane_runner.run_lane(
        request, logger=logger, runner=lambda *a, **k: None
    )

    assert len(summary.failed) == 1


def test_main_rejects_unreadable_request(tmp_path, capsys):
    bad = tmp_path / "lane-vector.json"
    bad.write_text("{not json", encoding="utf-8")

    assert lane_runner.main([str(bad)]) == 2
    assert "Cannot read lane request" in capsys.readouterr().err


def test_main_runs_request_and_writes_lane_log(tmp_path, monkeypatch):
    request = _request(tmp_path, "photo.psd")
    path = tmp_path / "lane-raster.json"
    path.write_text(json.dumps(request.to_dict()), encoding="utf-8")

    def fake_run(argv, **kwargs):
        Path(argv[-1]).write_text("jpeg", encoding="utf-8")
        return subprocess.CompletedProcess(argv, 0)

    monkeypatch.setattr(lane_runner.subprocess, "run", fake_run)

    assert lane_runner.main([str(path)]) == 0
    assert (tmp_path / "out" / "photo.jpg").exists()
    assert (tmp_path / "lane-raster.log").exists()


def test_command_for_fills_every_field(tmp_path):
    job = ConversionJob(
        source=tmp_path / "logo.ai",
        format_class=FormatClass.AI,
        destination=tmp_path / "logo.svg",
    )
    request = LaneRequest(
        lane=Lane.VECTOR,
        jobs=(job,),
        options=LaneOptions(
            svg_precision=4,
            embed_raster_images=False,
            responsive_svg=True,
            jpeg_quality=70,
            pdf_dpi=300,
        ),
        commands={
            FormatClass.AI: (
                "tool",
                "{source}",
                "{destination}",
                "--precision={precision}",
                "--embed={embed_raster}",
                "--responsive={responsive}",
                "--quality={quality}",
                "--dpi={dpi}",
            )
        },
    )

    argv = lane_runner.command_for(request, job)

    assert argv == [
        "tool",
        str(tmp_path / "logo.ai"),
        str(tmp_path / "logo.svg"),
        "--precision=4",
        "--embed=false",
        "--responsive=true",
        "--quality=70",
        "--dpi=300",
    ]


def test_undecodable_tool_output_does_not_stop_the_lane(tmp_path, logger):
    script = (
        "import sys\n"
        "if 'bad' in sys.argv[1]:\n"
        "    sys.stderr.buffer.write(b'cannot read caf\\xe9.psd')\n"
        "    sys.exit(1)\n"
        "open(sys.argv[2], 'w').write('jpeg')\n"
    )
    request = _request(tmp_path, "bad.psd", "good.psd")
    request = LaneRequest(
        lane=request.lane,
        jobs=request.jobs,
        options=request.options,
        commands={
            FormatClass.PSD: (
                sys.executable,
                "-c",
                script,
                "{source}",
                "{destination}",
            )
        },
    )

    summary = lane_runner.run_lane(request, logger=logger)

    assert summary.converted == (tmp_path / "out" / "good.jpg",)
    assert (tmp_path / "out" / "good.jpg").exists()
    assert summary.failed[0][0] == tmp_path / "bad.psd"
    assert summary.failed[0][1].startswith("cannot read caf")


def test_unexpected_runner_error_is_recorded_as_failure(tmp_path, logger):
    request = _request(tmp_path, "odd.psd", "fine.psd")

    def runner(argv, **kwargs):
        if "odd.psd" in argv[1]:
            raise ValueError("unexpected")
        return subprocess.CompletedProcess(argv, 0)

    summary = lane_runner.run_lane(request, logger=logger, runner=runner)

    assert summary.converted == (tmp_path / "out" / "fine.jpg",)
    assert summary.failed == ((tmp_path / "odd.psd", "ValueError: unexpected"),)
