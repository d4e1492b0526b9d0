"""CLI entry point for workspace bootstrap."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from idml_bridge.core import config as core_config
from idml_bridge.core import workspace as workspace_mod


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="idml-bridge init",
        description=(
            "Create the idml-bridge workspace with its config/ and logs/ "
            "directories."
        ),
    )
    parser.add_argument(
        "--path",
        type=Path,
        help=(
            "Override the workspace root (defaults to IDML_BRIDGE_DATA_HOME "
            "or ~/.idml-bridge-data)."
        ),
    )
    parser.add_argument(
        "--with-config",
        action="store_true",
        help="Also write every packaged config template that is missing.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output on success.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        layout = workspace_mod.ensure_workspace(path=args.path)
    except workspace_mod.WorkspaceError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1

    seeded: list[tuple[Path, bool]] = []
    if args.with_config:
        config_dir = layout.path_for("config")
        for template in core_config.iter_templates():
            target = template.default_path(config_dir)
            if target.exists():
                seeded.append((target, False))
                continue
            try:
                seeded.append((template.write(target), True))
            except core_config.ConfigTemplateError as exc:
                sys.stderr.write(str(exc) + "\n")
                return 1

    if args.quiet:
        return 0

    def status(key: str) -> str:
        return "created" if layout.created.get(key, False) else "exists"

    lines = [f"Workspace ready at {layout.home} ({status('home')})"]
    width = max(len(name) for name in layout.directories)
    for name, directory in layout.items():
        lines.append(f"  {name.ljust(width)}  {directory} ({status(name)})")
    for target, written in seeded:
        lines.append(f"  {target} ({'written' if written else 'kept'})")
    sys.stdout.write("\n".join(lines) + "\n")
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
