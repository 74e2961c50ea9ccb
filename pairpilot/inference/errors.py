"""Typed failures raised by the inference client.

Each failure carries the ConnectionHealth status it implies for the
capability, and whether it is fatal for the remaining remote tiers of a
cascade.
"""

from __future__ import annotations

from pairpilot.models import Capability, HealthStatus


class InferenceError(Exception):
    """Base class for every inference failure."""

    health_status = HealthStatus.DISCONNECTED
    fatal = False

    def __init__(
        self,
        message: str,
        capability: Capability | None = None,
        model: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.capability = capability
        self.model = model
        self.status = status


class UnauthorizedError(InferenceError):
    """Missing or rejected credential. Not retried against other models."""

    fatal = True


class RateLimitedError(InferenceError):
    health_status = HealthStatus.DEGRADED


class UnavailableError(InferenceError):
    """Non-2xx status, transport failure, or a body that is not JSON."""


class MalformedResponseError(InferenceError):
    """JSON body that does not carry the fields the capability promises."""

    health_status = HealthStatus.DEGRADED


class InferenceTimeoutError(InferenceError):
    pass
