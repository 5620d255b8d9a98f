# cvbuilder/main.py
from contextlib import asynccontextmanager
import logging
import uuid

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cvbuilder import __version__
from cvbuilder.core.config import settings
from cvbuilder.core.logging import get_request_id, setup_logging, set_request_id
from cvbuilder.core.metrics import PrometheusMiddleware, metrics_endpoint
from cvbuilder.middleware.rate_limit import get_rate_limiter
from cvbuilder.api.v1 import cv, register

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Rendered CVs carry inline styles but never scripts
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'none'; object-src 'none'; "
        "style-src 'self' 'unsafe-inline'; frame-ancestors 'none'; base-uri 'none'"
    ),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"CV Builder API starting (environment={settings.ENVIRONMENT})")
    logger.info(f"CORS origins: {settings.CORS_ORIGINS}")
    get_rate_limiter()
    yield
    logger.info("Application shutting down")
    try:
        await get_rate_limiter().close()
    except Exception as e:
        logger.warning(f"Failed to close rate limit store: {e}")


def create_app() -> FastAPI:
    """Build the FastAPI application with logging, middleware and routers."""
    setup_logging(
        log_level=settings.LOG_LEVEL,
        enable_sentry=bool(settings.SENTRY_DSN and settings.SENTRY_DSN.strip()),
        sentry_dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT
    )

    app = FastAPI(
        title="CV Builder API",
        version=__version__,
        description="Validation, XSS sanitization and rendering for user-authored CVs",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600
    )

    app.add_middleware(PrometheusMiddleware)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add unique request ID to each request for tracing."""
        request_id = str(uuid.uuid4())
        set_request_id(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        """Add security headers to all responses."""
        try:
            response = await call_next(request)
        except HTTPException:
            raise
        except Exception as exc:
            logger.exception(f"Unhandled exception in middleware for {request.url}: {exc}")
            response = JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "request_id": get_request_id()}
            )

        response.headers.update(SECURITY_HEADERS)
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": get_request_id()}
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "version": __version__,
            "service": "cv-builder"
        }

    @app.get("/metrics", tags=["Metrics"])
    async def metrics():
        """Prometheus metrics endpoint."""
        return metrics_endpoint()

    app.include_router(cv.router, prefix="/api/v1", tags=["CV"])
    app.include_router(register.router, prefix="/api/v1", tags=["Registration"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cvbuilder.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
