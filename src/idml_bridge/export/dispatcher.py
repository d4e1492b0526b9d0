"""Hand planned jobs to the external conversion lanes without waiting."""

from __future__ import annotations

import json
import logging
import subprocess
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Sequence

from .planner import (
    ConversionJob,
    ConversionPlan,
    FormatClass,
    RASTER_CLASSES,
    VECTOR_CLASSES,
)

REQUEST_VERSION = 1


class Lane(Enum):
    """External tool pathways, each owning a fixed pair of format classes."""

    VECTOR = "vector"
    RASTER = "raster"

    @property
    def classes(self) -> frozenset[FormatClass]:
        if self is Lane.VECTOR:
            return VECTOR_CLASSES
        return RASTER_CLASSES

    @property
    def label(self) -> str:
        return "/".join(
            sorted(member.value.upper() for member in self.classes)
        )


class WorkerError(RuntimeError):
    """Raised when a lane request cannot be handed to its worker."""


class RequestError(ValueError):
    """Raised when a serialised lane request is malformed."""


@dataclass(frozen=True)
class LaneOptions:
    """Format options forwarded verbatim to the lane."""

    svg_precision: int = 3
    embed_raster_images: bool = True
    responsive_svg: bool = False
    raster_format: str = "png"
    jpeg_quality: int = 95
    pdf_dpi: int = 200


@dataclass(frozen=True)
class LaneRequest:
    """Self-describing job description for one lane.

    Paths and options travel as data; nothing is spliced into executable
    text, so quotes or backslashes in file names need no escaping.
    """

    lane: Lane
    jobs: tuple[ConversionJob, ...]
    options: LaneOptions
    commands: Mapping[FormatClass, tuple[str, ...]] = field(
        default_factory=dict
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": REQUEST_VERSION,
            "lane": self.lane.value,
            "options": {
                "svg_precision": self.options.svg_precision,
                "embed_raster_images": self.options.embed_raster_images,
                "responsive_svg": self.options.responsive_svg,
                "raster_format": self.options.raster_format,
                "jpeg_quality": self.options.jpeg_quality,
                "pdf_dpi": self.options.pdf_dpi,
            },
            "commands": {
                member.value: list(argv)
                for member, argv in self.commands.items()
                if member in self.lane.classes
            },
            "jobs": [
                {
                    "source": str(job.source),
                    "format": job.format_class.value,
                    "destination": str(job.destination),
                }
                for job in self.jobs
            ],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LaneRequest":
        version = payload.get("version")
        if version != REQUEST_VERSION:
            raise RequestError(f"Unsupported request version: {version!r}")
        try:
            lane = Lane(payload["lane"])
            options = LaneOptions(**payload["options"])
            commands = {
                FormatClass(name): tuple(argv)
                for name, argv in payload["commands"].items()
            }
            jobs = tuple(
                ConversionJob(
                    source=Path(item["source"]),
                    format_class=FormatClass(item["format"]),
                    destination=Path(item["destination"]),
                )
                for item in payload["jobs"]
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RequestError(f"Malformed lane request: {exc}") from exc
        return cls(lane=lane, jobs=jobs, options=options, commands=commands)


class ConversionWorker(Protocol):
    """An external process that accepts a lane request and returns at once.

    Completion is never reported back; the only signal is the destination
    files appearing on disk.
    """

    def submit(self, request: LaneRequest) -> None:
        ...


class CommandWorker:
    """Spawn ``lane_runner`` as a detached process for each request."""

    def __init__(
        self,
        spool_dir: Path,
        *,
        argv: Optional[Sequence[str]] = None,
        popen=subprocess.Popen,
    ) -> None:
        self.spool_dir = spool_dir
        self.argv = tuple(
            argv
            if argv is not None
            else (sys.executable, "-m", "idml_bridge.export.lane_runner")
        )
        self._popen = popen

    def request_path(self, lane: Lane) -> Path:
        return self.spool_dir / f"lane-{lane.value}.json"

    def submit(self, request: LaneRequest) -> None:
        path = self.request_path(request.lane)
        try:
            self.spool_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(
                json.dumps(request.to_dict(), indent=2), encoding="utf-8"
            )
            self._popen(
                [*self.argv, str(path)],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise WorkerError(
                f"Could not start {request.lane.value} lane: {exc}"
            ) from exc


@dataclass(frozen=True)
class DispatchRecord:
    lane: Lane
    job_count: int
    submitted: bool
    error: Optional[str] = None


def build_requests(
    plan: ConversionPlan,
    *,
    options: LaneOptions,
    commands: Mapping[FormatClass, tuple[str, ...]],
) -> tuple[LaneRequest, ...]:
    """One request per lane that has work, in lane declaration order."""

    requests = []
    for lane in Lane:
        jobs = plan.jobs_for(lane.classes)
        if jobs:
            requests.append(
                LaneRequest(
                    lane=lane, jobs=jobs, options=options, commands=commands
                )
            )
    return tuple(requests)


def dispatch(
    plan: ConversionPlan,
    *,
    workers: Mapping[Lane, ConversionWorker],
    options: LaneOptions,
    commands: Mapping[FormatClass, tuple[str, ...]],
    logger: logging.Logger,
) -> tuple[DispatchRecord, ...]:
    """Submit every lane before returning; never waits for a lane to finish."""

    by_lane = {
        request.lane: request
        for request in build_requests(plan, options=options, commands=commands)
    }
    records: list[DispatchRecord] = []
    for lane in Lane:
        request = by_lane.get(lane)
        if request is None:
            logger.info("No %s files to convert", lane.label)
            records.append(DispatchRecord(lane=lane, job_count=0, submitted=False))
            continue
        worker = workers.get(lane)
        if worker is None:
            message = f"No worker configured for the {lane.value} lane"
            logger.error(message, extra={"lane": lane.value})
            records.append(
                DispatchRecord(
                    lane=lane,
                    job_count=len(request.jobs),
                    submitted=False,
                    error=message,
                )
            )
            continue
        logger.info(
            "Sending %d %s file(s) to the %s lane",
            len(request.jobs),
            lane.label,
            lane.value,
            extra={
                "lane": lane.value,
                "sources": [str(job.source) for job in request.jobs],
            },
        )
        try:
            worker.submit(request)
        except WorkerError as exc:
            logger.error(
                "Lane dispatch failed: %s", exc, extra={"lane": lane.value}
            )
            records.append(
                DispatchRecord(
                    lane=lane,
                    job_count=len(request.jobs),
                    submitted=False,
                    error=str(exc),
                )
            )
            continue
        records.append(
            DispatchRecord(lane=lane, job_count=len(request.jobs), submitted=True)
        )
    return tuple(records)


__all__ = [
    "CommandWorker",
    "ConversionWorker",
    "DispatchRecord",
    "Lane",
    "LaneOptions",
    "LaneRequest",
    "RequestError",
    "WorkerError",
    "build_requests",
    "dispatch",
]
