"""Worker process for one conversion lane.

Started detached by :class:`~idml_bridge.export.dispatcher.CommandWorker`
with the path of a JSON lane request. Each job runs its format's command
template in isolation: a failing source is logged and the lane moves on.
"""

from __future__ import annotations

import argparse
import json
import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from idml_bridge.core.logging import configure_logger

from .dispatcher import LaneRequest, RequestError
from .planner import ConversionJob

Runner = Callable[..., object]


@dataclass(frozen=True)
class LaneSummary:
    converted: tuple[Path, ...]
    failed: tuple[tuple[Path, str], ...]


def command_for(request: LaneRequest, job: ConversionJob) -> list[str]:
    template = request.commands[job.format_class]
    options = request.options
    fields = {
        "source": str(job.source),
        "destination": str(job.destination),
        "precision": str(options.svg_precision),
        "embed_raster": "true" if options.embed_raster_images else "false",
        "responsive": "true" if options.responsive_svg else "false",
        "quality": str(options.jpeg_quality),
        "dpi": str(options.pdf_dpi),
    }
    return [arg.format(**fields) for arg in template]


def run_lane(
    request: LaneRequest,
    *,
    logger: logging.Logger,
    runner: Runner | None = None,
) -> LaneSummary:
    run = runner or subprocess.run
    converted: list[Path] = []
    failed: list[tuple[Path, str]] = []
    for job in request.jobs:
        try:
            argv = command_for(request, job)
            job.destination.parent.mkdir(parents=True, exist_ok=True)
            run(
                argv,
                check=True,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
            )
        except subprocess.CalledProcessError as exc:
            reason = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        except Exception as exc:  # noqa: BLE001 - one source never stops the lane
            reason = f"{type(exc).__name__}: {exc}"
        else:
            converted.append(job.destination)
            logger.info("Converted %s -> %s", job.source, job.destination)
            continue
        failed.append((job.source, reason))
        logger.error(
            "Conversion error for %s: %s",
            job.source,
            reason,
            extra={"lane": request.lane.value},
        )

    if failed:
        logger.warning(
            "%s lane finished with %d failure(s)",
            request.lane.value,
            len(failed),
            extra={"failed": [str(source) for source, _ in failed]},
        )
    return LaneSummary(converted=tuple(converted), failed=tuple(failed))


def load_request(path: Path) -> LaneRequest:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RequestError(f"Cannot read lane request {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RequestError(f"Lane request {path} is not a JSON object.")
    return LaneRequest.from_dict(payload)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m idml_bridge.export.lane_runner",
        description="Run the conversions described by a lane request file.",
    )
    parser.add_argument("request", type=Path, help="Path to lane-*.json.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        request = load_request(args.request)
    except RequestError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 2

    logger, _ = configure_logger(
        f"idml_bridge.lane.{request.lane.value}",
        log_dir=args.request.parent,
        filename=f"lane-{request.lane.value}.log",
    )
    summary = run_lane(request, logger=logger)
    return 1 if summary.failed else 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
