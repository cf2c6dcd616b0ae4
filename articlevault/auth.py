"""
Caller identity for API requests.

Sessions are issued upstream; the gateway forwards the authenticated user
id in the X-User-Id header. When AUTH_API_KEY is configured, requests must
also carry a matching X-API-Key.
"""

import secrets

from fastapi import Header, Request, Security
from fastapi.security import APIKeyHeader

from .exceptions import UnauthorizedError

# Header name for the API key
API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


def verify_api_key(request: Request, api_key: str | None = Security(API_KEY_HEADER)) -> str:
    """
    Verify the API key from request headers.

    If AUTH_API_KEY is not configured, the check is skipped (local development).

    Raises:
        UnauthorizedError: If a key is configured and the header is missing or wrong
    """
    configured_key = request.app.state.deps.settings.AUTH_API_KEY
    if not configured_key:
        return ""

    if not api_key:
        raise UnauthorizedError("Missing API key. Provide X-API-Key header.")

    # Use constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(api_key, configured_key):
        raise UnauthorizedError("Invalid API key")

    return api_key


def get_current_user(
    request: Request,
    x_user_id: str | None = Header(default=None),
    api_key: str | None = Security(API_KEY_HEADER),
) -> str:
    """Resolve the caller's user id."""
    verify_api_key(request, api_key)
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("User not authenticated")
    return x_user_id.strip()
