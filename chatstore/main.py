"""FastAPI application entry point.

Chat Settings Store - settings and user identities for the chat bot.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatstore.routes import api_router
from chatstore.schemas import ErrorDetail, ErrorResponse
from chatstore.settings import get_settings
from chatstore.stores.composite import CompositeStore
from chatstore.stores.redis import close_redis, get_redis, init_redis

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()
    app.state.storage = None

    # Initialize Redis (skip in tests if no Redis available)
    try:
        await init_redis()
        app.state.storage = await CompositeStore.create(get_redis(), settings)
    except Exception:
        logger.exception("Redis init failed")

    yield

    # Shutdown
    if app.state.storage is not None:
        await app.state.storage.aclose()
        app.state.storage = None
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Chat settings and user identity storage",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        body = ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message=str(exc) if settings.debug else "Internal server error",
            )
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chatstore.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
