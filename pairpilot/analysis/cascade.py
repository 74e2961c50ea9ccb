"""Ordered fallback cascades.

A cascade is a list of ``Attempt`` strategies. ``try_in_order`` runs them in
sequence and returns the first success, or raises the last failure when every
attempt fails.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pairpilot.inference.errors import InferenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attempt:
    """One tier of a cascade.

    ``remote`` attempts are skipped once a fatal failure (bad credentials)
    has been seen; local attempts always run.
    """

    name: str
    run: Callable[[], Awaitable[Any]]
    remote: bool = True


@dataclass(frozen=True)
class CascadeResult:
    value: Any
    attempt: str
    remote: bool
    failures: tuple[tuple[str, InferenceError], ...] = ()

    @property
    def used_fallback(self) -> bool:
        """True if any earlier tier failed or a local attempt produced the value."""
        return bool(self.failures) or not self.remote


async def try_in_order(attempts: Sequence[Attempt]) -> CascadeResult:
    """Run *attempts* in order and return the first success.

    Raises:
        InferenceError: the last failure, when no attempt succeeds.
        ValueError: *attempts* is empty.
    """
    if not attempts:
        raise ValueError("cascade needs at least one attempt")

    failures: list[tuple[str, InferenceError]] = []
    skip_remote = False
    for attempt in attempts:
        if attempt.remote and skip_remote:
            logger.debug("Skipping %s after fatal failure", attempt.name)
            continue
        try:
            value = await attempt.run()
        except InferenceError as exc:
            failures.append((attempt.name, exc))
            if exc.fatal:
                skip_remote = True
            logger.info("Attempt %s failed (%s): %s", attempt.name, type(exc).__name__, exc)
            continue
        return CascadeResult(
            value=value,
            attempt=attempt.name,
            remote=attempt.remote,
            failures=tuple(failures),
        )

    raise failures[-1][1]
