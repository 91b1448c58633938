#!/usr/bin/env python3
"""
ShellGate - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Builds the session registry at startup and shuts it down on exit
3. Maps the session operations onto HTTP endpoints

All session logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import anyio.to_thread
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from shellgate import __version__
from shellgate.config.provider import ConfigProvider, EnvConfigProvider
from shellgate.modules.api import (
    EndSessionRequest,
    MessageResponse,
    RunCommandRequest,
    SessionInfo,
    SessionListResponse,
    StartSessionResponse,
)
from shellgate.modules.session import (
    NotFoundError,
    NotRunningError,
    ReadError,
    SessionRegistry,
    ShellSession,
    SpawnError,
    WriteError,
)
from shellgate.modules.shell import get_dialect

logger = logging.getLogger(__name__)


def get_registry(request: Request) -> SessionRegistry:
    """Session registry built by the application lifespan."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(503, "Service not initialized")
    return registry


def _session_info(session: ShellSession) -> SessionInfo:
    return SessionInfo(
        session_id=session.session_id,
        dialect=session.dialect.name,
        pid=session.pid,
        running=session.running,
        created_at=session.created_at,
        last_activity=session.last_activity,
        command_count=session.command_count,
    )


def create_app(config_provider: Optional[ConfigProvider] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config_provider: Configuration source, environment variables by default
    """
    config_provider = config_provider or EnvConfigProvider()
    api_config = config_provider.get_api_config()
    shell_config = config_provider.get_shell_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle - build the registry and terminate sessions on exit.
        """
        logger.info("Starting ShellGate API...")

        # Endpoints block worker threads for the whole duration of a command
        anyio.to_thread.current_default_thread_limiter().total_tokens = api_config.worker_threads

        dialect = get_dialect(shell_config.dialect, shell_config.executable)
        app.state.registry = SessionRegistry(
            dialect,
            output_limit=shell_config.output_limit,
            read_chunk_size=shell_config.read_chunk_size,
            terminate_timeout=shell_config.shutdown_grace_seconds,
        )
        logger.info(f"ShellGate API started ({dialect.name} interpreter: {dialect.executable})")

        yield

        logger.info("Shutting down ShellGate API...")
        registry = app.state.registry
        app.state.registry = None
        await anyio.to_thread.run_sync(registry.shutdown, shell_config.shutdown_grace_seconds)
        logger.info("ShellGate API shutdown complete")

    app = FastAPI(
        title="ShellGate API",
        description="ShellGate - persistent interactive shell sessions over HTTP",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.registry = None
    app.state.dialect_name = shell_config.dialect

    # Session Endpoints

    @app.post("/start-session", response_model=StartSessionResponse)
    def start_session(registry: SessionRegistry = Depends(get_registry)):
        """
        Start a new interpreter session.

        Returns:
            200: {"session_id": ...}
            500: Interpreter could not be started
        """
        session_id, _ = registry.create()
        return StartSessionResponse(session_id=session_id)

    @app.post("/run-command", response_class=PlainTextResponse)
    def run_command(request: RunCommandRequest, registry: SessionRegistry = Depends(get_registry)):
        """
        Run one command in a session and return its raw output as text.

        Returns:
            200: Command output (text/plain; charset=utf-8)
            400: Missing session_id or command
            404: Session not found
            500: Command execution failed
        """
        session = registry.lookup(request.session_id)
        if session is None:
            raise NotFoundError(request.session_id)

        result = session.submit_command(request.command)

        headers = {}
        if result.truncated:
            headers["X-Output-Truncated"] = "true"
        if result.exited:
            headers["X-Session-Exited"] = "true"
        return PlainTextResponse(result.text, media_type="text/plain; charset=utf-8", headers=headers)

    @app.post("/end-session", response_model=MessageResponse)
    def end_session(request: EndSessionRequest, registry: SessionRegistry = Depends(get_registry)):
        """
        End a session and terminate its interpreter.

        Returns:
            200: {"message": "Session ended successfully"}
            400: Missing session_id
            404: Session not found
        """
        registry.destroy(request.session_id)
        return MessageResponse(message="Session ended successfully")

    @app.get("/sessions", response_model=SessionListResponse)
    def list_sessions(registry: SessionRegistry = Depends(get_registry)):
        """List live sessions (admin/monitoring)."""
        sessions = [_session_info(session) for session in registry.list_sessions()]
        return SessionListResponse(sessions=sessions, count=len(sessions))

    # Health/Monitoring Endpoints

    @app.get("/healthz")
    async def healthz():
        """
        Minimal health check endpoint for readiness/liveness probes.

        Returns:
            200: Service is running
        """
        return {"status": "ok"}

    @app.get("/health")
    async def health_check():
        """
        Health check with session registry status.

        Returns:
            200: Service healthy
            503: Registry not initialized
        """
        registry = app.state.registry
        if registry is None:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "registry": "not initialized"},
            )
        return {
            "status": "healthy",
            "registry": "initialized",
            "active_sessions": registry.count(),
            "dialect": app.state.dialect_name,
            "version": __version__,
        }

    @app.get("/metrics")
    async def metrics():
        """
        Prometheus-compatible metrics endpoint.

        Returns basic metrics about live sessions.
        """
        registry = app.state.registry
        if registry is None:
            return Response(content="", status_code=503)

        metrics_text = f"""# HELP shellgate_active_sessions Number of live interpreter sessions
# TYPE shellgate_active_sessions gauge
shellgate_active_sessions {registry.count()}
"""
        return Response(content=metrics_text, media_type="text/plain")

    # Error handlers

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request, exc):
        """Handle missing fields and malformed JSON bodies."""
        logger.info(f"Invalid request body for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request, exc):
        return JSONResponse(status_code=404, content={"error": "Session not found"})

    @app.exception_handler(SpawnError)
    async def spawn_error_handler(request, exc):
        """Handle interpreter start failures."""
        logger.error(f"Failed to create session: {exc}")
        return JSONResponse(status_code=500, content={"error": f"Failed to create session: {exc}"})

    @app.exception_handler(NotRunningError)
    @app.exception_handler(WriteError)
    @app.exception_handler(ReadError)
    async def execution_error_handler(request, exc):
        """Handle commands sent to dead or broken interpreters."""
        logger.error(f"Failed to execute command: {exc}")
        return JSONResponse(status_code=500, content={"error": f"Failed to execute command: {exc}"})

    return app


if __name__ == "__main__":
    from shellgate.cli import main

    main()
