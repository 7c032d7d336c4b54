"""PR Relay - FastAPI entry point."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pr_relay import __version__
from pr_relay.bootstrap import Components, build_components, shutdown_components
from pr_relay.config import settings
from pr_relay.core.exceptions import ApiException
from pr_relay.core.logging import get_logger
from pr_relay.core.schemas.responses import ErrorResponse, HealthResponse
from pr_relay.services.github.routes import router as github_router
from pr_relay.services.state.routes import router as state_router

logger = get_logger("main")


def create_app(components: Components | None = None) -> FastAPI:
    """Create the application. Pre-built components skip settings-based wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = components is None
        active = await build_components(settings) if owned else components

        app.state.components = active
        app.state.engine = active.engine
        app.state.store = active.store
        app.state.started_at = time.monotonic()

        logger.info(f"PR Relay started: chat={active.chat_platform}, storage={active.state_storage}")
        try:
            yield
        finally:
            if owned:
                await shutdown_components(active)
            logger.info("PR Relay stopped")

    app = FastAPI(
        title="PR Relay",
        description="Relays GitHub pull request activity into chat",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(ApiException)
    async def api_exception_handler(request: Request, exc: ApiException) -> JSONResponse:
        """Handle custom API exceptions and return structured error response."""
        logger.warning(f"API error: {exc.message} (status={exc.status_code})")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.message,
                details=exc.details if exc.details else None,
            ).model_dump(),
        )

    app.include_router(github_router, prefix="/api")
    app.include_router(state_router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "pr-relay",
            "version": __version__,
            "status": "running",
        }

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Health check endpoint."""
        active: Components = request.app.state.components
        states = await active.store.get_all_pr_states()
        return HealthResponse(
            uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
            chat_platform=active.chat_platform,
            state_storage=active.state_storage,
            pr_count=len(states),
        )

    return app


def run() -> None:
    import uvicorn

    logger.info(f"Starting PR Relay on {settings.host}:{settings.port}")
    uvicorn.run(
        "pr_relay.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
