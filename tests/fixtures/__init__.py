"""Shared testing fixtures and doubles for the idml_bridge test suite."""

from .host import (  # noqa: F401
    FakeClock,
    FakeDocument,
    FakeFont,
    FakeFrame,
    FakeHost,
    FakeLink,
    FakeStory,
    ProducingWorker,
    RecordingWorker,
    lanes,
)
from .workspace import WorkspaceBuilder, build_tree  # noqa: F401

__all__ = [
    "FakeClock",
    "FakeDocument",
    "FakeFont",
    "FakeFrame",
    "FakeHost",
    "FakeLink",
    "FakeStory",
    "ProducingWorker",
    "RecordingWorker",
    "WorkspaceBuilder",
    "build_tree",
    "lanes",
]
