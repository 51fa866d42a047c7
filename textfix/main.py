"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from textfix.api.routes import corrections
from textfix.config import settings
from textfix.middleware.rate_limiter import limiter, rate_limit_exceeded_handler
from textfix.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware
from textfix.models.envelope import ApiError, error_response
from textfix.services.correction_provider import get_circuit_breaker
from textfix.services.llm_client import get_system_default_config

logger = logging.getLogger(__name__)

# Configure logging format based on dev_mode
if not settings.dev_mode:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s",'
               '"request_id":"%(request_id)s","message":"%(message)s"}',
    )
else:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s [%(request_id)s]: %(message)s",
    )
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIDLogFilter())

app = FastAPI(
    title="textfix API",
    description="Grammar and spelling corrections powered by an LLM",
    version="0.1.0",
    openapi_url="/api/v1/openapi.json",
    docs_url="/docs" if settings.dev_mode else None,
    redoc_url="/redoc" if settings.dev_mode else None,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.state.limiter = limiter
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Request-ID"],
)


# ---------------------------------------------------------------------------
# Global exception handlers
# ---------------------------------------------------------------------------

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def _error(status_code: int, code: str, message: str, field: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response([ApiError(code=code, message=message, field=field)]),
    )


@app.exception_handler(HTTPException)
async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return _error(exc.status_code, exc.detail["code"], exc.detail["message"])
    return _error(exc.status_code, "HTTP_ERROR", str(exc.detail))


@app.exception_handler(RequestValidationError)
async def _validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or None
    return _error(422, "VALIDATION_ERROR", first.get("msg", "Invalid request"), field)


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=True)
    detail = str(exc) if settings.dev_mode else "Internal server error"
    return _error(500, "INTERNAL_ERROR", detail)


# ---------------------------------------------------------------------------
# Routers (all under /api/v1/)
# ---------------------------------------------------------------------------

app.include_router(corrections.router, prefix="/api/v1/correct", tags=["corrections"])

# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict:
    """Liveness check plus provider configuration state."""
    cfg = get_system_default_config()
    configured = bool(cfg.api_key) or not cfg.needs_api_key
    return {
        "status": "healthy",
        "services": {
            "llm_provider": cfg.provider.value,
            "api_key_configured": configured,
            "circuit_breaker": get_circuit_breaker().snapshot(),
            "fallback": "enabled" if settings.fallback_enabled else "disabled",
        },
    }


@app.get("/api/v1/version")
async def version() -> dict:
    """Return build / version metadata."""
    return {
        "version": app.version,
        "title": app.title,
        "api_prefix": "/api/v1",
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {"message": "textfix API", "docs": "/docs"}
