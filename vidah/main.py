"""
Cartão + Vidah lead-capture service.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from vidah.config import APP_VERSION, get_settings
from vidah.api.errors import PAYLOAD_TOO_LARGE_ERROR, error_body, register_exception_handlers
from vidah.api.router import api_router
from vidah.database import dispose_engine
from vidah.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)
from vidah.utils.metrics import Timer, request_metrics
from vidah.utils.rate_limiter import close_redis

logger = logging.getLogger("vidah")

SLOW_REQUEST_LOG_MS = 3000


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Baseline hardening headers; HSTS only in production (behind TLS)."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
        "Referrer-Policy": "no-referrer",
    }
    HSTS = "max-age=15552000; includeSubDomains"

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        if get_settings().is_production:
            response.headers.setdefault("Strict-Transport-Security", self.HSTS)
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Refuse requests whose declared Content-Length exceeds the configured cap."""

    async def dispatch(self, request: Request, call_next) -> Response:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > get_settings().max_request_body_bytes:
            return JSONResponse(status_code=413, content=error_body(PAYLOAD_TOO_LARGE_ERROR))
        return await call_next(request)


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Feeds the /metrics collector; logs slow and failed requests."""

    async def dispatch(self, request: Request, call_next) -> Response:
        timer = Timer().start()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = timer.stop()
            request_metrics.record(duration_ms, status_code)
            if duration_ms > SLOW_REQUEST_LOG_MS or status_code >= 400:
                logger.warning(
                    "%s %s -> %d (%dms)", request.method, request.url.path, status_code, duration_ms,
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": status_code,
                        "duration_ms": duration_ms,
                    },
                )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("Vidah starting up (env=%s, port=%d)", settings.app_env, settings.port)

    if not settings.database_url:
        logger.critical(
            "DATABASE_URL not set - conversions will not be persisted and "
            "admin/plan routes will return 503."
        )
    if not settings.jwt_secret:
        logger.warning(
            "JWT_SECRET not set - falling back to SESSION_SECRET for admin tokens. "
            "Set a dedicated JWT secret for production."
        )

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    yield

    logger.info("Vidah shutting down")
    await dispose_engine()
    await close_redis()


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="Cartão + Vidah",
        description="WhatsApp lead capture and admin export",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(SecurityHeadersMiddleware)
    # Added last so it wraps everything and tags every log line
    application.add_middleware(RequestMetricsMiddleware)
    application.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(application)
    application.include_router(api_router)

    return application


app = create_app()
