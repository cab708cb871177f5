"""
REST API module for the bridge.
Provides read-only endpoints over deposits, withdrawals and configuration.
"""

from .routes import router, create_api_app

__all__ = ["router", "create_api_app"]
