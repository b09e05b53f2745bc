"""Rate limiting configuration using slowapi.

Security: Every verification check fans out to several calls against the
external identity API, so checks are limited per (server, subject) to keep a
single member from exhausting the upstream quota.

Usage in routers:
    from profilelink.core.rate_limiting import limiter

    @router.post("/{subject_id}/check")
    @limiter.limit(lambda: settings.rate_limit_check)
    async def check_verification(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from profilelink.core.config import settings


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Subject-scoped routes: "subject:{server_id}:{subject_id}"
    - Everything else: "{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    server_id = request.path_params.get("server_id")
    subject_id = request.path_params.get("subject_id")
    if server_id and subject_id:
        return f"subject:{server_id}:{subject_id}"
    return get_remote_address(request)


# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
# For multi-instance, configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "6 per 1 minute")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": retry_after},
    )
