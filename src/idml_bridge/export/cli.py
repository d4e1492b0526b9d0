"""CLI entry point for the IDML export pipeline."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel

from idml_bridge.core import config as core_config
from idml_bridge.core import workspace as workspace_mod
from idml_bridge.core.logging import configure_logger
from idml_bridge.core.workspace import WorkspaceError

from .config import CONFIG_FILENAME, ExportConfigError, load_config
from .host import HostLoadError, load_host
from .pipeline import ExportOutcome, PipelineError, run_export

ALERT_TITLE = "IDML Bridge"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idml-bridge export",
        description=(
            "Package the host's active document, convert AI/EPS/PSD/PDF links "
            "into SVG/PNG, relink and embed them, and export IDML."
        ),
        epilog=(
            "All conversion options live in export.toml. Run "
            "`idml-bridge export config init` to scaffold it."
        ),
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=(
            "Path to a TOML config file (defaults to the workspace config "
            "directory)."
        ),
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root used to resolve config and logs.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror log output to stderr.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args_list = list(argv) if argv is not None else list(sys.argv[1:])

    if args_list[:1] == ["config"]:
        return _handle_config(args_list[1:])

    parser = _build_parser()
    args = parser.parse_args(args_list)

    load_dotenv()
    try:
        load_result = load_config(
            config_path=args.config,
            workspace_path=args.workspace,
        )
    except ExportConfigError as exc:
        parser.error(str(exc))

    config = load_result.config
    console = Console()
    logger, log_path = configure_logger(
        "idml_bridge.export",
        log_dir=load_result.layout.path_for("logs"),
        level=config.log_level,
        verbose=args.verbose,
    )
    logger.debug("export CLI invoked")

    if config.host_factory is None:
        _alert(
            console,
            "No host integration configured. Set host.factory in "
            f"{CONFIG_FILENAME} to 'package.module:callable'.",
            error=True,
        )
        return 1
    try:
        host = load_host(config.host_factory)
    except HostLoadError as exc:
        logger.error("Host integration unavailable: %s", exc)
        _alert(console, str(exc), error=True)
        return 1

    output_root = config.output_root or _prompt_output_root(console)

    try:
        outcome = run_export(
            host,
            config,
            logger=logger,
            output_root=output_root,
        )
    except PipelineError as exc:
        _alert(console, str(exc), error=True)
        return 1

    _alert(console, _format_done(outcome, log_path))
    return 0


def _prompt_output_root(console: Console) -> Optional[Path]:
    try:
        answer = console.input(
            "[bold]Choose output folder for packaged doc + IDML[/]> "
        )
    except (EOFError, KeyboardInterrupt):
        return None
    answer = answer.strip()
    if not answer:
        return None
    return Path(answer).expanduser()


def _format_done(outcome: ExportOutcome, log_path: Path) -> str:
    report = outcome.report
    lines = [
        "Done!",
        "",
        f"Folder: {outcome.job_folder}",
        f"IDML: {outcome.idml_path}",
        "",
        f"Relinked: {report.relinked}  Skipped: {report.skipped}  "
        f"Converted: {report.converted_files}",
    ]
    if report.warnings:
        lines.append(f"Warnings: {len(report.warnings)}")
    lines.extend(
        [
            "",
            "See summary.txt and manifest.json for details.",
            f"Run log: {log_path}",
        ]
    )
    return "\n".join(lines)


def _alert(console: Console, message: str, *, error: bool = False) -> None:
    console.print(
        Panel(
            message,
            title=ALERT_TITLE,
            border_style="red" if error else "green",
        )
    )


def _handle_config(argv: Sequence[str]) -> int:
    parser = _build_config_parser()
    args = parser.parse_args(argv)

    try:
        target = _resolve_config_target(args)
    except WorkspaceError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    template = core_config.get_template("export")
    try:
        written = template.write(target, overwrite=args.force)
    except core_config.ConfigTemplateError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    sys.stdout.write(f"Wrote export config to {written}\n")
    return 0


def _build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idml-bridge export config",
        description="Manage configuration files for the IDML export pipeline.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help=f"Write the default {CONFIG_FILENAME} template.",
    )
    init_parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Destination for the config TOML (defaults to the workspace "
            "config directory)."
        ),
    )
    init_parser.add_argument(
        "--workspace",
        type=Path,
        help="Workspace root override used to resolve the default path.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination if a config already exists.",
    )
    return parser


def _resolve_config_target(args: argparse.Namespace) -> Path:
    if args.path is not None:
        candidate = args.path.expanduser()
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate

    layout = workspace_mod.ensure_workspace(path=args.workspace)
    return core_config.get_template("export").default_path(
        layout.path_for("config")
    )


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
