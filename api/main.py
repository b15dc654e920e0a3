import uvicorn
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.logging import get_api_logger_safe, configure_logging
from app.containers import AppContainer
from api.middleware.request_ids import RequestIdMiddleware
from api.middleware.error_handling import ErrorHandlingMiddleware
from api.routers import auth, system, tools

logger = get_api_logger_safe("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    container = app.state.container
    # Build the gateway eagerly so a missing API key shows up in the startup logs
    container.gateway()
    logger.info("Kite gateway API started",
                broker_initialized=container.broker_client().is_initialized())
    yield
    logger.info("Kite gateway API stopped")


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()

    # Configure logging for API context (idempotent)
    configure_logging(settings)

    app = FastAPI(
        title="Kite Gateway API",
        version=settings.version,
        description="""
        # Kite Gateway API

        Session-gated access to a Zerodha Kite account, shaped as agent tools.

        ## Authentication
        1. `GET /api/v1/auth/login` returns the Kite login URL
        2. Kite redirects to `/api/v1/auth/callback?request_token=...`
        3. Tools that need a session fail with `AUTHENTICATION_ERROR` until step 2 succeeds
        """,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.container = container

    # Wire dependency injection
    container.wire(modules=[
        "api.routers.auth",
        "api.routers.system",
        "api.routers.tools",
    ])

    # Add middleware (order matters - last added is outermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    cors_origins = settings.api.cors_origins
    # Security check for production
    if settings.environment == "production" and "*" in cors_origins:
        raise ValueError(
            "CORS wildcard (*) not allowed in production. "
            "Specify exact origins in API__CORS_ORIGINS environment variable."
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    app.include_router(system.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(tools.router, prefix="/api/v1")

    return app


def run():
    """Run the API server"""
    container = AppContainer()
    settings = container.settings()
    app = create_app(container)
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
