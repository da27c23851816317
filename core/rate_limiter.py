# core/rate_limiter.py

from typing import Dict, Tuple, Optional
from fastapi import Request
from collections import defaultdict
from threading import Lock
import math
import time

from core.errors import RateLimitedError


# Simple in-memory sliding-window limiter for public endpoints
# (status lookups, approval links, email resends). Per-record limits
# such as the OTP cooldown live on the record itself.
_rate_limit_store: Dict[str, list] = defaultdict(list)
_lock = Lock()


def check_rate_limit(
    identifier: str,
    max_requests: int = 10,
    window_seconds: int = 60,
) -> Tuple[bool, int, int]:
    """
    Check if a request should be rate limited.

    Args:
        identifier: Unique identifier (IP address, user ID, email, etc.)
        max_requests: Maximum number of requests allowed
        window_seconds: Time window in seconds

    Returns:
        Tuple of (allowed, remaining, retry_after_seconds)
    """
    now = time.time()
    window_start = now - window_seconds

    with _lock:
        requests = [ts for ts in _rate_limit_store[identifier] if ts > window_start]

        if len(requests) >= max_requests:
            _rate_limit_store[identifier] = requests
            retry_after = max(1, math.ceil(requests[0] + window_seconds - now))
            return False, 0, retry_after

        requests.append(now)
        _rate_limit_store[identifier] = requests

    return True, max_requests - len(requests), 0


def reset_rate_limits():
    """Forget every recorded request (tests, admin tooling)."""
    with _lock:
        _rate_limit_store.clear()


def get_rate_limit_identifier(request: Request, user_id: Optional[str] = None) -> str:
    """
    Get a unique identifier for rate limiting.
    Prefers user_id if available, otherwise uses IP address.
    """
    if user_id:
        return f"user:{user_id}"

    client_ip = request.client.host if request.client else "unknown"

    # Behind a proxy the first forwarded address is the original client
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()

    return f"ip:{client_ip}"


def require_rate_limit(
    request: Request,
    identifier: Optional[str] = None,
    max_requests: int = 10,
    window_seconds: int = 60,
    scope: str = "default",
) -> int:
    """
    Raise RateLimitedError (429) if the limit is exceeded.

    `scope` keeps separate budgets per endpoint for the same caller.
    Returns the number of requests left in the window.
    """
    if identifier is None:
        identifier = get_rate_limit_identifier(request)

    allowed, remaining, retry_after = check_rate_limit(
        f"{scope}:{identifier}", max_requests, window_seconds
    )

    if not allowed:
        raise RateLimitedError(
            f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds.",
            retry_after=retry_after,
        )

    return remaining
