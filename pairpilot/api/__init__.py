"""HTTP API for analysis, trading and model tracking."""

from pairpilot.api.app import create_api_app

__all__ = ["create_api_app"]
