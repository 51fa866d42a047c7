"""Per-client rate limiting using slowapi."""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from textfix.config import settings
from textfix.models.envelope import ApiError, error_response

limiter = Limiter(key_func=get_remote_address)

# Convenience limit strings built from config
CHECK_LIMIT = f"{settings.rate_limit_check}/minute"
DEFAULT_LIMIT = "120/minute"


def rate_limit_exceeded_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return a JSON envelope when rate limit is exceeded."""
    return JSONResponse(
        status_code=429,
        content=error_response([ApiError(code="RATE_LIMITED", message=str(exc.detail))]),
    )
