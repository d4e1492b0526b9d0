"""Point host links at converted outputs, then embed everything."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from idml_bridge.core.files import basename, path_exists

from .host import AssetLink, HostError, LinkStatus


class MatchMethod(Enum):
    EXACT = "exact"
    FILENAME = "filename"


@dataclass(frozen=True)
class LinkOutcome:
    key: str
    method: Optional[MatchMethod]
    target: Optional[str] = None
    reason: Optional[str] = None
    candidates: tuple[str, ...] = ()

    @property
    def relinked(self) -> bool:
        return self.method is not None


@dataclass(frozen=True)
class ReconcileResult:
    outcomes: tuple[LinkOutcome, ...]
    warnings: tuple[str, ...] = field(default=())

    @property
    def relinked(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.relinked)

    @property
    def skipped(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.relinked)


@dataclass(frozen=True)
class EmbedResult:
    embedded: int
    failures: tuple[str, ...]


def link_key(link: AssetLink) -> str:
    return link.file_path or link.name


def reconcile_links(
    links: Sequence[AssetLink],
    outputs: Mapping[str, str],
    *,
    logger: logging.Logger,
    exists: Callable[[str], bool] = path_exists,
) -> ReconcileResult:
    """Relink every link that has a converted counterpart in ``outputs``.

    A link's own path is tried first. Failing that, its file name is compared
    with the file names of the converted sources, ignoring sources that some
    other link claims by exact path. A unique match is relinked; several
    matches are left alone and reported, since picking one would be a guess.
    """

    keys = [link_key(link) for link in links]
    claimed = {key for key in keys if key in outputs}
    outcomes: list[LinkOutcome] = []
    warnings: list[str] = []

    for link, key in zip(links, keys):
        logger.debug("Checking link: %s", key)
        try:
            outcome = _reconcile_one(
                link,
                key,
                outputs,
                claimed=claimed - {key},
                exists=exists,
            )
        except HostError as exc:
            logger.error("  Error relinking %s: %s", key, exc)
            outcome = LinkOutcome(key=key, method=None, reason=str(exc))

        if outcome.relinked:
            logger.info(
                "  Relinked %s to %s (%s match)",
                key,
                outcome.target,
                outcome.method.value,  # type: ignore[union-attr]
            )
        else:
            logger.info("  Skipping %s: %s", key, outcome.reason)
            if outcome.candidates:
                warnings.append(f"Link {key} was not relinked: {outcome.reason}")
        outcomes.append(outcome)

    result = ReconcileResult(outcomes=tuple(outcomes), warnings=tuple(warnings))
    logger.info(
        "Relinked: %d, Skipped: %d",
        result.relinked,
        result.skipped,
        extra={"relinked": result.relinked, "skipped": result.skipped},
    )
    return result


def _reconcile_one(
    link: AssetLink,
    key: str,
    outputs: Mapping[str, str],
    *,
    claimed: set[str],
    exists: Callable[[str], bool],
) -> LinkOutcome:
    destination = outputs.get(key)
    if destination is not None and exists(destination):
        _relink(link, destination)
        return LinkOutcome(key=key, method=MatchMethod.EXACT, target=destination)

    name = basename(key)
    candidates = sorted(
        {
            target
            for source, target in outputs.items()
            if source not in claimed
            and basename(source) == name
            and exists(target)
        }
    )
    if len(candidates) == 1:
        _relink(link, candidates[0])
        return LinkOutcome(
            key=key, method=MatchMethod.FILENAME, target=candidates[0]
        )
    if candidates:
        return LinkOutcome(
            key=key,
            method=None,
            reason="ambiguous file name match: " + ", ".join(candidates),
            candidates=tuple(candidates),
        )
    return LinkOutcome(
        key=key, method=None, reason=f"no conversion found for {name}"
    )


def _relink(link: AssetLink, destination: str) -> None:
    link.relink(Path(destination))
    link.update()


def embed_links(
    links: Sequence[AssetLink], *, logger: logging.Logger
) -> EmbedResult:
    """Embed every link still pointing at an external file.

    Runs from the end of the table so hosts that drop embedded entries from
    their link collection do not shift the indices still to be visited.
    """

    embedded = 0
    failures: list[str] = []
    for link in reversed(list(links)):
        if link.status is LinkStatus.EMBEDDED:
            continue
        key = link_key(link)
        try:
            link.embed()
        except HostError as exc:
            logger.warning("Could not embed %s: %s", key, exc)
            failures.append(f"Could not embed {key}: {exc}")
            continue
        embedded += 1
    logger.info("Embedded %d link(s)", embedded)
    return EmbedResult(embedded=embedded, failures=tuple(failures))


__all__ = [
    "EmbedResult",
    "LinkOutcome",
    "MatchMethod",
    "ReconcileResult",
    "embed_links",
    "link_key",
    "reconcile_links",
]
