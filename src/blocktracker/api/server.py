"""
API server for tracker status and metrics.

Provides HTTP endpoints for:
- /blocktracker/v0/health - Health check with the tracker's loop state
- /blocktracker/v0/history - Retained canonical blocks, oldest first
- /metrics - Prometheus metrics endpoint
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from aiohttp import web

from blocktracker.metrics import generate_metrics

if TYPE_CHECKING:
    from blocktracker.tracker import BlockTracker

logger = logging.getLogger(__name__)

SERVICE_NAME = "blocktracker-api"
"""Fixed service identifier returned by the health endpoint."""


def _no_tracker() -> BlockTracker | None:
    """Default tracker getter that returns None."""
    return None


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Serve the tracker registry in Prometheus text format."""
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Bind address and switch for the status API."""

    host: str = "127.0.0.1"
    """Interface to listen on. Loopback by default."""

    port: int = 5080
    """Port to listen on."""

    enabled: bool = True
    """False skips binding entirely."""


@dataclass(slots=True)
class ApiServer:
    """
    HTTP API server exposing the tracker's view of the chain.

    Uses aiohttp to handle HTTP protocol details.
    """

    config: ApiServerConfig
    """Bind settings."""

    tracker_getter: Callable[[], BlockTracker | None] = _no_tracker
    """Callable that returns the tracker being served."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """Runner owning the aiohttp app, set while serving."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """Listening socket, set while serving."""

    @property
    def tracker(self) -> BlockTracker | None:
        """Get the tracker being served."""
        return self.tracker_getter()

    async def start(self) -> None:
        """Bind the socket and serve requests from the running loop."""
        if not self.config.enabled:
            logger.info("API server is disabled")
            return

        app = web.Application()
        app.add_routes(
            [
                web.get("/blocktracker/v0/health", self._handle_health),
                web.get("/blocktracker/v0/history", self._handle_history),
                web.get("/metrics", _handle_metrics),
            ]
        )

        self._runner = web.AppRunner(app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info("API server listening on %s:%d", self.config.host, self.config.port)

    async def aclose(self) -> None:
        """Stop the server and release its socket."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("API server stopped")

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """
        Handle health check endpoint.

        Response format:
        {
            "status": "healthy",
            "service": "blocktracker-api",
            "state": "<loop state or null>"
        }
        """
        tracker = self.tracker
        return web.json_response(
            {
                "status": "healthy",
                "service": SERVICE_NAME,
                "state": tracker.state.name.lower() if tracker is not None else None,
            }
        )

    async def _handle_history(self, _request: web.Request) -> web.Response:
        """
        Handle retained history endpoint.

        Returns the blocks the tracker currently treats as canonical, oldest
        first, each with its hash and parent hash. Fields beyond those two
        are included when the block type provides them.
        """
        tracker = self.tracker
        if tracker is None:
            raise web.HTTPServiceUnavailable(reason="Tracker not initialized")

        blocks = []
        for block in tracker.history.snapshot():
            entry: dict[str, object] = {
                "hash": block.hash.to_hex(),
                "parentHash": block.parent_hash.to_hex(),
            }
            number = getattr(block, "number", None)
            if number is not None:
                entry["number"] = number
            blocks.append(entry)

        return web.json_response({"reconcile": tracker.reconcile, "blocks": blocks})
