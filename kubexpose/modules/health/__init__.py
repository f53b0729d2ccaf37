"""
Health Module - Black Box Interface

Purpose: Liveness and readiness probes for the controller pod
Interface: create_health_app(), HealthServer.start()/stop()
Hidden: ASGI server, event loop thread

Runs in same process as the controller but only reads its readiness flag.
"""

import asyncio
import logging
from threading import Thread
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def create_health_app(ready_check: Callable[[], bool]) -> FastAPI:
    """
    Build the probe application.

    Args:
        ready_check: Returns True once the cache has synced and workers run
    """
    app = FastAPI(title="Kubexpose Health", docs_url=None, redoc_url=None)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz():
        if ready_check():
            return {"status": "ready"}
        return JSONResponse(status_code=503, content={"status": "not ready"})

    return app


class HealthServer:
    """Serves the probe application from a background thread."""

    def __init__(self, ready_check: Callable[[], bool], host: str = "0.0.0.0", port: int = 8081):
        self.host = host
        self.port = port
        self.app = create_health_app(ready_check)
        self.server: Optional[uvicorn.Server] = None
        self.thread: Optional[Thread] = None

    def run_server(self) -> None:
        """Run uvicorn on a dedicated event loop."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_config=None,  # keep the process-wide dictConfig
            access_log=True,
        )
        self.server = uvicorn.Server(config)

        logger.info(f"Starting health server on {self.host}:{self.port}")
        loop.run_until_complete(self.server.serve())

    def start(self) -> None:
        if self.thread is None or not self.thread.is_alive():
            self.thread = Thread(target=self.run_server, daemon=True, name="health-server")
            self.thread.start()

    def stop(self) -> None:
        if self.server:
            self.server.should_exit = True
            logger.info("Health server stopped")
