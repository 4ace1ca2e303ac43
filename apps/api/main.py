"""
FastAPI application entry point.

This module sets up the FastAPI application with all middleware,
routers, and configuration for production use.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers import auth, projects, tasks, calendar, time_tracking, cycles, dashboard
from core.config import settings, validate_production_config
from core.database import check_db_connection
from core.logging import setup_logging
from core.exceptions import APIException, api_exception_handler
from core.security_headers import SecurityHeadersMiddleware
import logging
import time

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Hard-fail on unsafe production settings before anything is served
validate_production_config(
    environment=settings.ENVIRONMENT,
    debug=settings.DEBUG,
    cors_origins=settings.CORS_ORIGINS,
    postgres_password=settings.POSTGRES_PASSWORD,
    secret_key=settings.SECRET_KEY,
    session_backend=settings.SESSION_BACKEND,
    token_encryption_key=settings.TOKEN_ENCRYPTION_KEY,
    database_url=settings.DATABASE_URL,
)


def _filter_sensitive_data(event):
    """Filter sensitive data before sending to Sentry."""
    if "request" in event and "headers" in event["request"]:
        headers = event["request"]["headers"]
        if isinstance(headers, dict):
            headers.pop("authorization", None)
            headers.pop("cookie", None)
    return event


# Initialize Sentry for error tracking (production)
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                RedisIntegration(),
            ],
            # Don't send PII (session cookies included)
            send_default_pii=False,
            before_send=lambda event, hint: _filter_sensitive_data(event),
        )
        logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


# Create FastAPI app
app = FastAPI(
    title="Command Center API",
    description="Personal projects, tasks, calendar, time tracking and planning cycles",
    version=API_VERSION,
    docs_url="/docs" if (settings.DEBUG or settings.EXPOSE_API_DOCS) else None,
    redoc_url="/redoc" if (settings.DEBUG or settings.EXPOSE_API_DOCS) else None,
)

# CORS middleware
# The session cookie needs credentials, so origins must be explicit (no "*").
if settings.CORS_ORIGINS:
    allowed_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    allow_origin_regex = None
else:
    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    allow_origin_regex = None
    if settings.ENVIRONMENT != "production":
        allow_origin_regex = r"^http://(localhost|127\.0\.0\.1|10\.\d+\.\d+\.\d+|192\.168\.\d+\.\d+)(:\d+)?$"
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One log line per request with status and timing; X-Process-Time on the response."""
    started = time.perf_counter()
    context = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else None,
    }
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"{request.method} {request.url.path} failed",
            exc_info=True,
            extra={"extra_fields": {**context, "error": str(e)}},
        )
        raise

    elapsed = time.perf_counter() - started
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={"extra_fields": {
            **context,
            "status_code": response.status_code,
            "process_time_ms": round(elapsed * 1000, 2),
        }},
    )
    response.headers["X-Process-Time"] = f"{elapsed:.6f}"
    return response


app.add_exception_handler(APIException, api_exception_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
            }
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
async def health():
    """
    Simple health check for load balancers and uptime monitors.

    Returns:
        - 200: Core systems operational
        - 503: Database unavailable
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "database": "unavailable",
            }
        )

    return {
        "status": "healthy",
        "timestamp": time.time(),
    }


def _timed_check(probe) -> dict:
    """Run probe() -> "healthy" | "unhealthy" | "unavailable" and time it."""
    started = time.perf_counter()
    try:
        result = {"status": probe()}
    except Exception as e:
        result = {"status": "error", "error": str(e)}
    result["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return result


def _probe_redis() -> str:
    from core.cache import get_redis_client

    client = get_redis_client()
    if client is None:
        return "unavailable"
    client.ping()
    return "healthy"


@app.get("/health/detailed")
async def health_detailed():
    """
    Detailed health check for monitoring dashboards.

    Not for load balancers (always returns 200). Redis is optional for a
    memory-session deployment, so "unavailable" only degrades.
    """
    checks = {
        "database": _timed_check(lambda: "healthy" if check_db_connection() else "unhealthy"),
        "redis": _timed_check(_probe_redis),
    }
    statuses = {c["status"] for c in checks.values()}
    if statuses <= {"healthy"}:
        overall = "healthy"
    elif statuses & {"error", "unhealthy"}:
        overall = "unhealthy"
    else:
        overall = "degraded"

    return {
        "status": overall,
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "session_backend": settings.SESSION_BACKEND,
        "calendar_sync_enabled": settings.CALENDAR_SYNC_ENABLED,
        "timestamp": time.time(),
        "checks": checks,
    }


@app.get("/ping")
async def ping():
    """
    Minimal ping endpoint for uptime monitors.
    No dependencies checked - just confirms the API is responding.
    """
    return {"pong": True}


app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(tasks.router)
app.include_router(calendar.router)
app.include_router(time_tracking.router)
app.include_router(cycles.router)
app.include_router(dashboard.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
