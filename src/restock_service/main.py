"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from restock_service import __version__
from restock_service.api.v1.router import api_router, proxy_router, webhook_router
from restock_service.config import get_settings
from restock_service.exceptions import RestockError
from restock_service.infrastructure.database.connection import close_engine
from restock_service.logging_config import configure_logging
from restock_service.middleware.request_context import RequestContextMiddleware

configure_logging(get_settings())

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Restock Notifier",
        app_env=settings.app_env,
        debug=settings.debug,
        email_service=settings.email_service,
        dispatch_via_worker=settings.dispatch_via_worker,
    )
    if not settings.shopify_api_secret:
        logger.warning("SHOPIFY_API_SECRET not set, all webhooks will be rejected")

    yield

    await close_engine()
    logger.info("Shutting down Restock Notifier")


async def restock_error_handler(request: Request, exc: RestockError) -> JSONResponse:
    """Render service errors as JSON with the status their class declares."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        error_type=type(exc).__name__,
        error=exc.message,
        status=exc.status_code,
        path=request.url.path,
    )
    body = {"success": False, "error": exc.message}
    if exc.context:
        body["details"] = exc.context
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Restock Notifier API",
        description="Back-in-stock notifications with open, click and purchase tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RestockError, restock_error_handler)

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(webhook_router, prefix="/webhooks", tags=["Webhooks"])
    app.include_router(proxy_router, prefix="/proxy", tags=["App Proxy"])

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "restock_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
