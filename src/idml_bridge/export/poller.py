"""Block until expected lane outputs appear on disk or the wait times out."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from idml_bridge.core.files import path_exists


@dataclass(frozen=True)
class PollResult:
    """Outcome of waiting for lane outputs.

    ``outputs`` is the expected set after the wait: unchanged when every
    destination appeared, narrowed to the destinations that exist on timeout.
    """

    completed: bool
    checks: int
    sleeps: int
    elapsed: float
    outputs: Mapping[str, str]
    missing: tuple[str, ...]

    @property
    def timed_out(self) -> bool:
        return not self.completed


def missing_outputs(
    expected: Mapping[str, str],
    *,
    exists: Callable[[str], bool] = path_exists,
) -> tuple[str, ...]:
    return tuple(
        destination
        for destination in expected.values()
        if not exists(destination)
    )


def wait_for_outputs(
    expected: Mapping[str, str],
    *,
    interval: float,
    timeout: float,
    logger: logging.Logger,
    exists: Callable[[str], bool] = path_exists,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PollResult:
    """Poll ``expected`` destinations every ``interval`` seconds.

    Returns as soon as every destination exists. Once more than ``timeout``
    seconds have elapsed the wait stops and the expected set shrinks to the
    entries whose destination materialised; the caller carries on with that
    partial result.
    """

    logger.info(
        "Expecting %d converted file(s)",
        len(expected),
        extra={"timeout": timeout, "interval": interval},
    )
    for source, destination in expected.items():
        logger.debug("  %s -> %s", source, destination)

    start = clock()
    checks = 0
    sleeps = 0
    completed = False
    while True:
        checks += 1
        missing = missing_outputs(expected, exists=exists)
        if not missing:
            completed = True
            break
        logger.debug("Still waiting for: %s", ", ".join(missing))
        sleep(interval)
        sleeps += 1
        if clock() - start > timeout:
            logger.warning(
                "TIMEOUT: %d conversion(s) did not complete within %s seconds",
                len(missing),
                timeout,
                extra={"missing": list(missing)},
            )
            break

    present: dict[str, str] = {}
    for source, destination in expected.items():
        found = exists(destination)
        logger.info(
            "  %s - %s", destination, "EXISTS" if found else "MISSING"
        )
        if found:
            present[source] = destination

    if completed:
        outputs = MappingProxyType(dict(expected))
    else:
        logger.warning(
            "Continuing with %d of %d conversion(s)",
            len(present),
            len(expected),
        )
        outputs = MappingProxyType(present)

    return PollResult(
        completed=completed,
        checks=checks,
        sleeps=sleeps,
        elapsed=clock() - start,
        outputs=outputs,
        missing=tuple(
            destination
            for source, destination in expected.items()
            if source not in present
        ),
    )


__all__ = ["PollResult", "missing_outputs", "wait_for_outputs"]
