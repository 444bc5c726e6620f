"""Token proxy HTTP application."""

from stockpilot.api.serve import create_api_app, run_api_server

__all__ = ["create_api_app", "run_api_server"]
