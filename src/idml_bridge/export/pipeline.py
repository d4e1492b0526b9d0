"""End-to-end export run: package, convert, wait, relink, embed, report."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Optional

from idml_bridge.core.files import collect_files, compile_patterns, path_exists
from idml_bridge.core.logging import job_log_handler

from .config import ExportConfig
from .dispatcher import (
    CommandWorker,
    ConversionWorker,
    DispatchRecord,
    Lane,
    LaneOptions,
    dispatch,
)
from .host import (
    HostApplication,
    HostDocument,
    HostError,
    LinkStatus,
    PackageOptions,
)
from .planner import FormatClass, plan_conversions
from .poller import PollResult, wait_for_outputs
from .reconciler import embed_links, link_key, reconcile_links
from .report import RunReport, collect_diagnostics, write_reports

LINKS_DIRNAME = "Links"
LOG_FILENAME = "conversion-log.txt"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"

WorkerFactory = Callable[[Path], Mapping[Lane, ConversionWorker]]


class PipelineError(RuntimeError):
    """Base class for errors that stop an export run."""


class SetupError(PipelineError):
    """A precondition failed before any conversion work could start."""


class ExportError(PipelineError):
    """The host refused to write the interchange file."""


@dataclass(frozen=True)
class ExportOutcome:
    job_folder: Path
    idml_path: Path
    manifest_path: Path
    summary_path: Path
    log_path: Path
    report: RunReport
    poll: PollResult
    dispatches: tuple[DispatchRecord, ...]


def default_workers(job_folder: Path) -> Mapping[Lane, ConversionWorker]:
    worker = CommandWorker(job_folder)
    return {lane: worker for lane in Lane}


def lane_options(config: ExportConfig) -> LaneOptions:
    return LaneOptions(
        svg_precision=config.svg_precision,
        embed_raster_images=config.embed_raster_images,
        responsive_svg=config.responsive_svg,
        raster_format=config.raster_format.value,
        jpeg_quality=config.jpeg_quality,
        pdf_dpi=config.pdf_dpi,
    )


def job_folder_name(document: HostDocument, moment: datetime) -> str:
    return f"{Path(document.full_name).stem}_{moment.strftime(TIMESTAMP_FORMAT)}"


def run_export(
    host: HostApplication,
    config: ExportConfig,
    *,
    logger: logging.Logger,
    output_root: Optional[Path] = None,
    workers: WorkerFactory = default_workers,
    now: Callable[[], datetime] = datetime.now,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    exists: Callable[[str], bool] = path_exists,
) -> ExportOutcome:
    """Run the whole export against the host's active document.

    Only :class:`SetupError` (and :class:`ExportError` from the final write)
    escape; conversion failures, timeouts and unmatched links are recorded in
    the report and the run still produces an interchange file.
    """

    document = host.active_document
    if document is None:
        raise SetupError("Open a document first.")

    root = output_root or config.output_root
    if root is None:
        raise SetupError("No output folder chosen.")

    job_folder = root.expanduser() / job_folder_name(document, now())
    try:
        job_folder.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SetupError(f"Cannot create job folder {job_folder}: {exc}") from exc
    log_path = job_folder / LOG_FILENAME

    with job_log_handler(logger, log_path, level=config.log_level):
        logger.info("=== Conversion log started ===")
        logger.info("Job: %s", job_folder.name)
        for message in config.ignored_options():
            logger.warning(message)
        try:
            return _run_job(
                host,
                document,
                config,
                job_folder=job_folder,
                log_path=log_path,
                logger=logger,
                workers=workers,
                sleep=sleep,
                clock=clock,
                exists=exists,
            )
        except PipelineError as exc:
            logger.error("Export aborted: %s", exc)
            raise


def _run_job(
    host: HostApplication,
    document: HostDocument,
    config: ExportConfig,
    *,
    job_folder: Path,
    log_path: Path,
    logger: logging.Logger,
    workers: WorkerFactory,
    sleep: Callable[[float], None],
    clock: Callable[[], float],
    exists: Callable[[str], bool],
) -> ExportOutcome:
    report = RunReport()

    unembedded = unembed_convertible_links(document, logger=logger)
    if unembedded:
        logger.info("Unembedded %d AI/EPS/PSD/PDF link(s) for processing", unembedded)

    packaged = package_document(document, job_folder, config, logger=logger)
    try:
        document = host.open(packaged)
    except HostError as exc:
        raise SetupError(f"Could not open packaged document: {exc}") from exc

    logger.info("Scanning %s recursively", LINKS_DIRNAME)
    plan = plan_conversions(
        collect_files(job_folder / LINKS_DIRNAME),
        enabled=config.enabled_classes,
        exclude=compile_patterns(config.exclude_patterns),
        raster_extension=config.raster_format.extension,
    )
    logger.info(
        "Planned %d conversion(s)",
        len(plan.jobs),
        extra={
            "excluded": [str(path) for path in plan.excluded],
            "unhandled": len(plan.unhandled),
            "disabled": [str(path) for path in plan.disabled],
        },
    )

    records = dispatch(
        plan,
        workers=workers(job_folder),
        options=lane_options(config),
        commands=config.commands,
        logger=logger,
    )
    report.warnings.extend(record.error for record in records if record.error)

    logger.info("Waiting for conversions to complete")
    poll = wait_for_outputs(
        plan.expected_outputs(),
        interval=config.poll_interval_seconds,
        timeout=config.timeout_seconds,
        logger=logger,
        exists=exists,
        sleep=sleep,
        clock=clock,
    )
    if poll.timed_out:
        report.warnings.append(
            "{0} conversion(s) did not complete within {1:g} seconds".format(
                len(poll.missing), config.timeout_seconds
            )
        )

    logger.info("Relinking and embedding")
    reconciled = reconcile_links(
        document.links, poll.outputs, logger=logger, exists=exists
    )
    embedded = embed_links(document.links, logger=logger)
    report.relinked = reconciled.relinked
    report.skipped = reconciled.skipped
    report.warnings.extend(reconciled.warnings)
    report.warnings.extend(embedded.failures)
    report.conversions = dict(poll.outputs)

    collect_diagnostics(document, report, logger=logger)
    manifest_path, summary_path = write_reports(
        report,
        job_folder,
        raster_extension=config.raster_format.extension,
    )

    idml_path = job_folder / f"{packaged.stem}{config.idml_suffix}.idml"
    logger.info("Exporting IDML to %s", idml_path)
    try:
        document.export_interchange(idml_path)
    except HostError as exc:
        raise ExportError(f"IDML export failed: {exc}") from exc

    return ExportOutcome(
        job_folder=job_folder,
        idml_path=idml_path,
        manifest_path=manifest_path,
        summary_path=summary_path,
        log_path=log_path,
        report=report,
        poll=poll,
        dispatches=records,
    )


def unembed_convertible_links(
    document: HostDocument, *, logger: logging.Logger
) -> int:
    """Unembed links of a convertible format so packaging copies them out."""

    count = 0
    for link in document.links:
        key = link_key(link)
        if FormatClass.for_path(key) is None:
            continue
        if link.status is not LinkStatus.EMBEDDED:
            continue
        try:
            link.unembed()
        except HostError as exc:
            logger.warning("Could not unembed %s: %s", key, exc)
            continue
        count += 1
    return count


def package_document(
    document: HostDocument,
    job_folder: Path,
    config: ExportConfig,
    *,
    logger: logging.Logger,
) -> Path:
    """Package into ``job_folder`` and return the packaged document path."""

    logger.info("Packaging document")
    options = PackageOptions(include_hidden_layers=config.include_hidden_layers)
    try:
        document.package(job_folder, options)
    except HostError as exc:
        raise SetupError(f"Package failed: {exc}") from exc

    if not (job_folder / LINKS_DIRNAME).is_dir():
        raise SetupError("Package failed - no Links folder found.")

    suffix = f".{config.document_suffix}"
    candidates = sorted(
        path
        for path in job_folder.iterdir()
        if path.is_file() and path.suffix.lower() == suffix
    )
    if not candidates:
        raise SetupError("Packaged document not found.")
    return candidates[0]


__all__ = [
    "ExportError",
    "ExportOutcome",
    "LINKS_DIRNAME",
    "LOG_FILENAME",
    "PipelineError",
    "SetupError",
    "default_workers",
    "job_folder_name",
    "lane_options",
    "package_document",
    "run_export",
    "unembed_convertible_links",
]
