"""
Storefront Service - Main Application.

Catalog, carts and session endpoints behind bearer-token authentication
and an exact-match role gate.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .container import ServiceContainer, build_container
from .domain.exceptions import StorefrontError, UnauthenticatedError
from .logging_config import get_logger, setup_logging
from .metrics import metrics_endpoint, track_request_metrics
from .metrics_middleware import PrometheusMiddleware
from .responses import error_response
from .routers import carts_router, products_router, session_router

logger = get_logger(__name__)

VERSION = "1.0.0"


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors and framework errors onto the failure envelope."""

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                path=request.url.path,
                code=exc.code,
                error=exc.message,
            )
            return error_response(exc.status_code, "Internal server error")

        logger.warning(
            "Request rejected",
            path=request.url.path,
            status_code=exc.status_code,
            code=exc.code,
            error=exc.message,
        )
        headers = None
        if isinstance(exc, UnauthenticatedError):
            headers = {"WWW-Authenticate": "Bearer"}
        return error_response(exc.status_code, exc.message, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.warning(
            "Request validation failed",
            path=request.url.path,
            status_code=status.HTTP_400_BAD_REQUEST,
            error=message,
        )
        return error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container: Pre-built service graph, mainly for tests. Built from
            the global settings when omitted.
    """
    setup_logging(settings.LOG_LEVEL, "storefront-service")
    container = container or build_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting Storefront Service",
            version=VERSION,
            storage=container.config.STORAGE_BACKEND,
        )
        await container.startup()
        yield
        logger.info("Shutting down Storefront Service")
        await container.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Product catalog, shopping carts and user sessions",
        version=VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
    )
    app.add_middleware(PrometheusMiddleware, track_func=track_request_metrics)

    register_exception_handlers(app)

    app.include_router(carts_router.router)
    app.include_router(products_router.router)
    app.include_router(session_router.router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return await metrics_endpoint()

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "storefront-service", "version": VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
