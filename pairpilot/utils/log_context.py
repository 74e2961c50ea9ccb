"""Per-task logging context.

One ContextVar holds the fields every PairPilot log line carries: the
analysis request, the traded symbol, the pipeline stage and the remote
capability being called. ``log_context`` layers fields on top of the
enclosing context for the duration of a block.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Mapping

LOG_FIELDS = ("request_id", "symbol", "stage", "capability")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("pairpilot_log_context", default=_EMPTY)


def current_context(placeholder: str = "-") -> dict[str, str]:
    """Every log field, with *placeholder* for the unset ones."""
    active = _context.get()
    return {name: active.get(name, placeholder) for name in LOG_FIELDS}


@asynccontextmanager
async def log_context(**fields: str | None) -> AsyncIterator[None]:
    """Overlay *fields* on the current context; None values are ignored.

    Raises:
        ValueError: If a field name is not one of ``LOG_FIELDS``.
    """
    unknown = set(fields) - set(LOG_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
    merged = dict(_context.get())
    merged.update({k: v for k, v in fields.items() if v is not None})
    token = _context.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _context.reset(token)
