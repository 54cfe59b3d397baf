"""
API server module for tracker status endpoints.

Provides HTTP endpoints for:
- /blocktracker/v0/health - Health check endpoint
- /blocktracker/v0/history - Retained canonical blocks
- /metrics - Prometheus metrics
"""

from .server import ApiServer, ApiServerConfig

__all__ = [
    "ApiServer",
    "ApiServerConfig",
]
