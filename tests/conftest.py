from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Callable, Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import WorkspaceBuilder  # noqa: E402

from idml_bridge.export import config as cfg  # noqa: E402


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a helper bound to pytest's per-test tmp directory."""

    return WorkspaceBuilder(tmp_path)


@pytest.fixture
def logger() -> Iterator[logging.Logger]:
    log = logging.getLogger("idml_bridge.tests")
    log.handlers.clear()
    log.propagate = False
    log.setLevel(logging.DEBUG)
    log.addHandler(logging.NullHandler())
    yield log
    log.handlers.clear()


@pytest.fixture
def make_config() -> Callable[..., cfg.ExportConfig]:
    """Build an ExportConfig from defaults with field overrides."""

    def _make(**overrides) -> cfg.ExportConfig:
        base = cfg.build_config(cfg.default_table())
        return dataclasses.replace(base, **overrides)

    return _make
