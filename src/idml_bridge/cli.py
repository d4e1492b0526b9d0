"""Unified CLI entry point for idml-bridge."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Callable, Mapping, Optional, Sequence, TextIO

PROG = "idml-bridge"


@dataclass(frozen=True)
class CommandSpec:
    """A subcommand whose module exposes ``main(argv) -> int``."""

    name: str
    summary: str
    module: str

    def run(self, argv: Sequence[str]) -> int:
        entry = getattr(import_module(self.module), "main")
        args = list(argv)
        saved = sys.argv
        sys.argv = [f"{PROG} {self.name}", *args]
        try:
            result = entry(args)
        except SystemExit as exc:
            return _exit_status(exc)
        finally:
            sys.argv = saved
        return result if isinstance(result, int) else 0


COMMANDS: Mapping[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            name="init",
            summary="Bootstrap the idml-bridge workspace.",
            module="idml_bridge.workspace.cli",
        ),
        CommandSpec(
            name="export",
            summary="Package the open document, convert links and export IDML.",
            module="idml_bridge.export.cli",
        ),
    )
}


def format_command_table() -> str:
    width = max(len(name) for name in COMMANDS)
    rows = [
        f"  {name.ljust(width)}  {spec.summary}" for name, spec in COMMANDS.items()
    ]
    return "\n".join(["Available commands:", *rows])


def format_usage() -> str:
    return (
        f"Usage: {PROG} <command> [args...]\n"
        f"Run `{PROG} list` for commands or `{PROG} help <name>` for details."
        f"\n\n{format_command_table()}"
    )


def _emit(text: str, stream: Optional[TextIO] = None) -> None:
    (stream or sys.stdout).write(text + "\n")


def _unknown(name: str) -> int:
    _emit(f"Unknown command '{name}'.", sys.stderr)
    _emit(format_command_table(), sys.stderr)
    return 2


def _show_version(_: Sequence[str]) -> int:
    try:
        _emit(metadata.version(PROG))
    except metadata.PackageNotFoundError:
        _emit("unknown")
    return 0


def _show_usage(_: Sequence[str]) -> int:
    _emit(format_usage())
    return 0


def _show_list(_: Sequence[str]) -> int:
    _emit(format_command_table())
    return 0


def _show_help(argv: Sequence[str]) -> int:
    if not argv:
        return _show_usage(argv)
    spec = COMMANDS.get(argv[0])
    if spec is None:
        return _unknown(argv[0])
    _emit(f"{spec.name}: {spec.summary}")
    _emit(f"Run `{PROG} {spec.name} --help` for CLI-specific options.")
    return 0


_BUILTINS: Mapping[str, Callable[[Sequence[str]], int]] = {
    "-h": _show_usage,
    "--help": _show_usage,
    "-V": _show_version,
    "--version": _show_version,
    "version": _show_version,
    "list": _show_list,
    "help": _show_help,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        _emit(format_usage())
        return 2

    head, *tail = args
    if head in _BUILTINS:
        return _BUILTINS[head](tail)
    spec = COMMANDS.get(head)
    if spec is None:
        return _unknown(head)
    return spec.run(tail)


def _exit_status(exc: SystemExit) -> int:
    if exc.code is None:
        return 0
    if isinstance(exc.code, int):
        return exc.code
    _emit(str(exc.code), sys.stderr)
    return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
