"""Public APIs for the IDML export pipeline."""

from __future__ import annotations

from .config import (
    ExportConfig,
    ExportConfigError,
    LoadResult,
    RasterFormat,
    load_config,
)
from .dispatcher import (
    CommandWorker,
    ConversionWorker,
    Lane,
    LaneOptions,
    LaneRequest,
    WorkerError,
    dispatch,
)
from .host import (
    AssetLink,
    FontStatus,
    HostApplication,
    HostDocument,
    HostError,
    LinkStatus,
    PackageOptions,
)
from .pipeline import (
    ExportError,
    ExportOutcome,
    PipelineError,
    SetupError,
    run_export,
)
from .planner import (
    ConversionJob,
    ConversionPlan,
    FormatClass,
    destination_for,
    plan_conversions,
)
from .poller import PollResult, wait_for_outputs
from .reconciler import ReconcileResult, embed_links, reconcile_links
from .report import RunReport, write_reports

__all__ = [
    "AssetLink",
    "CommandWorker",
    "ConversionJob",
    "ConversionPlan",
    "ConversionWorker",
    "ExportConfig",
    "ExportConfigError",
    "ExportError",
    "ExportOutcome",
    "FontStatus",
    "FormatClass",
    "HostApplication",
    "HostDocument",
    "HostError",
    "Lane",
    "LaneOptions",
    "LaneRequest",
    "LinkStatus",
    "LoadResult",
    "PackageOptions",
    "PipelineError",
    "PollResult",
    "RasterFormat",
    "ReconcileResult",
    "RunReport",
    "SetupError",
    "WorkerError",
    "destination_for",
    "dispatch",
    "embed_links",
    "load_config",
    "plan_conversions",
    "reconcile_links",
    "run_export",
    "wait_for_outputs",
    "write_reports",
]
