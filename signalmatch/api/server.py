"""FastAPI status server for the signaling service."""

import contextlib
from typing import List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from signalmatch import __version__
from signalmatch.core.lifecycle import LifecycleController
from signalmatch.core.models import SignalingStats
from signalmatch.logger import logger
from .models import ErrorResponse, HealthResponse, InfoResponse


class EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the owning process.

    The CLI runs this next to the signaling server and stops both from its
    own signal handlers, so uvicorn must not install or replace any.
    """

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class APIServer:
    """HTTP health and statistics endpoints."""

    def __init__(self, controller: LifecycleController, allowed_origins: Optional[List[str]] = None):
        self.controller = controller
        self._server = None
        self._stop_requested = False
        self.app = FastAPI(
            title="signalmatch status API",
            description="Health and statistics for the signalmatch signaling server",
            version=__version__,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        origins = allowed_origins or ["*"]
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

        # Register routes
        self._register_routes()

        # Add exception handlers
        self._register_exception_handlers()

    def _register_exception_handlers(self):
        """Register custom exception handlers."""

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request, exc):
            logger.error(f"API error: {exc}")
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(
                    error="Internal server error",
                    detail=str(exc)
                ).model_dump(mode="json")
            )

    def _register_routes(self):
        """Register all API routes."""

        @self.app.get("/health", response_model=HealthResponse)
        async def health_check():
            return HealthResponse()

        @self.app.get("/api/v1/info", response_model=InfoResponse)
        async def get_system_info():
            return InfoResponse(
                name="signalmatch",
                version=__version__,
                description="Anonymous matchmaking and WebRTC signaling relay",
                strict_relay=self.controller.relay.strict,
                queue_timeout_seconds=self.controller.supervisor.timeout_seconds,
                match_interval_ms=self.controller.matchmaker.interval_ms,
            )

        @self.app.get("/api/v1/stats", response_model=SignalingStats)
        async def get_stats():
            return self.controller.stats()

    async def start(self, host: str = "0.0.0.0", port: int = 5001):
        """Start the API server."""
        config = uvicorn.Config(
            app=self.app,
            host=host,
            port=port,
            log_level="info"
        )
        self._server = EmbeddedServer(config)
        if self._stop_requested:
            return

        logger.info(f"Starting status API on http://{host}:{port}")
        await self._server.serve()

    def stop(self) -> None:
        """Ask a running API server to exit."""
        self._stop_requested = True
        if self._server is not None:
            self._server.should_exit = True
