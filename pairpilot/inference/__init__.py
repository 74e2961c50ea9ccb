"""Remote inference capabilities and their failure taxonomy."""

from pairpilot.inference.client import InferenceClient
from pairpilot.inference.errors import (
    InferenceError,
    InferenceTimeoutError,
    MalformedResponseError,
    RateLimitedError,
    UnauthorizedError,
    UnavailableError,
)

__all__ = [
    "InferenceClient",
    "InferenceError",
    "InferenceTimeoutError",
    "MalformedResponseError",
    "RateLimitedError",
    "UnauthorizedError",
    "UnavailableError",
]
