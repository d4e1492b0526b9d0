"""Contracts for the publishing host and loading of host integrations.

The exporter never talks to a publishing application directly. A host
integration is any importable callable returning an object that satisfies
:class:`HostApplication`; it is named in configuration as
``"package.module:factory"``.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence


class HostError(RuntimeError):
    """Raised by host integrations when a document operation fails."""


class HostLoadError(RuntimeError):
    """Raised when the configured host integration cannot be imported."""


class LinkStatus(Enum):
    NORMAL = "normal"
    EMBEDDED = "embedded"
    MISSING = "missing"
    OUT_OF_DATE = "out_of_date"


class FontStatus(Enum):
    INSTALLED = "installed"
    NOT_AVAILABLE = "not_available"
    SUBSTITUTED = "substituted"
    FAUXED = "fauxed"


@dataclass(frozen=True)
class PackageOptions:
    """Switches forwarded to the host's package-for-output routine."""

    copy_fonts: bool = True
    copy_linked_graphics: bool = True
    copy_profiles: bool = True
    update_graphics: bool = True
    include_hidden_layers: bool = True
    ignore_preflight_errors: bool = False
    create_report: bool = True
    force_save: bool = True
    version_comments: str = "Packaged for IDML export"


class AssetLink(Protocol):
    file_path: Optional[str]
    name: str
    status: LinkStatus

    def relink(self, target: Path) -> None:
        ...

    def update(self) -> None:
        ...

    def embed(self) -> None:
        ...

    def unembed(self) -> None:
        ...


class TextContainer(Protocol):
    overflows: bool


class Story(Protocol):
    id: int
    length: int
    overflows: bool
    text_containers: Sequence[TextContainer]


class Font(Protocol):
    full_name: str
    status: FontStatus


class HostDocument(Protocol):
    full_name: Path
    links: Sequence[AssetLink]
    page_count: int
    stories: Sequence[Story]
    fonts: Sequence[Font]

    def package(self, destination: Path, options: PackageOptions) -> None:
        ...

    def export_interchange(self, destination: Path) -> None:
        ...


class HostApplication(Protocol):
    @property
    def active_document(self) -> Optional[HostDocument]:
        ...

    def open(self, path: Path) -> HostDocument:
        ...


def load_host(reference: str) -> HostApplication:
    """Import ``module:attribute`` and call it to obtain the host."""

    factory = _resolve_factory(reference)
    try:
        return factory()
    except HostError as exc:
        raise HostLoadError(f"Host integration failed to start: {exc}") from exc


def _resolve_factory(reference: str) -> Callable[[], HostApplication]:
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise HostLoadError(
            f"Host factory '{reference}' must look like 'package.module:callable'."
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise HostLoadError(
            f"Host integration module '{module_name}' could not be imported: "
            f"{exc}"
        ) from exc
    target = getattr(module, attribute, None)
    if not callable(target):
        raise HostLoadError(
            f"Host integration '{reference}' is missing or not callable."
        )
    return target


__all__ = [
    "AssetLink",
    "Font",
    "FontStatus",
    "HostApplication",
    "HostDocument",
    "HostError",
    "HostLoadError",
    "LinkStatus",
    "PackageOptions",
    "Story",
    "TextContainer",
    "load_host",
]
