"""Core shared helpers for idml-bridge commands."""

from __future__ import annotations

from .config import (
    ConfigTemplate,
    ConfigTemplateError,
    TomlConfigError,
    get_template,
    iter_templates,
    load_toml,
    merge_defaults,
)
from .files import (
    basename,
    collect_files,
    compile_patterns,
    extension_for,
    matches_any,
    path_exists,
)
from .logging import JsonLogFormatter, configure_logger, job_log_handler
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "TomlConfigError",
    "load_toml",
    "merge_defaults",
    "ConfigTemplate",
    "ConfigTemplateError",
    "get_template",
    "iter_templates",
    "basename",
    "collect_files",
    "compile_patterns",
    "extension_for",
    "matches_any",
    "path_exists",
    "JsonLogFormatter",
    "configure_logger",
    "job_log_handler",
    "ensure_workspace",
    "WorkspaceLayout",
    "WorkspaceError",
    "WORKSPACE_ENV",
]
