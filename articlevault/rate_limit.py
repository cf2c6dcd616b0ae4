"""
Rate limiting for API protection.

Uses slowapi to limit requests per client address. Snapshot, preview and
batch routes launch browsers and upload files, so they get a tighter limit
than the rest of the API.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import config
from .schemas import failure

# Effectively unlimited
UNLIMITED = "1000000/minute"


def get_rate_limit() -> str:
    """General limit from config, defaulting to 60/minute. Zero disables it."""
    limit = config.RATE_LIMIT_PER_MINUTE
    if limit <= 0:
        return UNLIMITED
    return f"{limit}/minute"


def get_snapshot_rate_limit() -> str:
    """Limit for rendering-heavy routes: a sixth of the general limit."""
    limit = config.RATE_LIMIT_PER_MINUTE
    if limit <= 0:
        return UNLIMITED
    return f"{max(1, limit // 6)}/minute"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[get_rate_limit()],
    storage_uri="memory://",  # In-memory storage (resets on restart)
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Rate limit errors in the standard response envelope."""
    retry_after = getattr(exc, "retry_after", 60)
    return JSONResponse(
        status_code=429,
        content=failure("RATE_LIMITED", f"Rate limit exceeded: {exc.detail}", {"retryAfter": retry_after}),
        headers={"Retry-After": str(retry_after)},
    )


def setup_rate_limiting(app):
    """Attach the limiter, its middleware and the 429 handler to an app."""
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
