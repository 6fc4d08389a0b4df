"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from formweaver.core.config import settings
from formweaver.core.structured_logging import build_log_context
from formweaver.db.session import engine, init_db

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi.errors import RateLimitExceeded
from formweaver.core.rate_limit import limiter


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database tables ensured")
    yield


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="FormWeaver API",
    description="Multi-tenant form builder and submission API",
    version=settings.VERSION,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    lifespan=lifespan,
)

app.state.limiter = limiter

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=[
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
        "Retry-After",
    ],
)

# ============================================================================
# Error envelope
# ============================================================================

def _error(status_code: int, error: str, headers: dict | None = None, **extra) -> JSONResponse:
    content = {"success": False, "error": error}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Field-level validation errors, reported as 400 instead of FastAPI's 422."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return _error(400, "Validation failed", details=details)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return _error(429, "Too many requests. Please try again later.", headers={"Retry-After": "60"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log with request context; expose the raw message only in development."""
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
        extra=build_log_context(route=request.url.path, method=request.method),
    )
    if settings.is_dev:
        return _error(500, "Internal Server Error", message=str(exc))
    return _error(500, "Internal Server Error")


# ============================================================================
# Routers
# ============================================================================

from formweaver.routers import auth, forms, submissions

app.include_router(auth.router, prefix="/api")
app.include_router(forms.router, prefix="/api")
app.include_router(submissions.router, prefix="/api")


# ============================================================================
# Health Check
# ============================================================================

@app.get("/")
def root():
    return {"name": "FormWeaver API", "status": "ok", "version": settings.VERSION}


@app.get("/api/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
