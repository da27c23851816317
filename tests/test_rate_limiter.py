# tests/test_rate_limiter.py

"""
Tests for the in-memory rate limiter.
"""

from unittest.mock import Mock, patch

import pytest

from core.errors import RateLimitedError
from core.rate_limiter import (
    check_rate_limit,
    get_rate_limit_identifier,
    require_rate_limit,
)


def test_allows_up_to_limit():
    for i in range(3):
        allowed, remaining, _ = check_rate_limit("ip:1.2.3.4", max_requests=3, window_seconds=60)
        assert allowed
        assert remaining == 2 - i

    allowed, remaining, retry_after = check_rate_limit("ip:1.2.3.4", max_requests=3, window_seconds=60)
    assert not allowed
    assert remaining == 0
    assert 1 <= retry_after <= 60


def test_window_slides():
    with patch("core.rate_limiter.time.time", return_value=1000.0):
        assert check_rate_limit("k", max_requests=1, window_seconds=10)[0]
        assert not check_rate_limit("k", max_requests=1, window_seconds=10)[0]

    with patch("core.rate_limiter.time.time", return_value=1011.0):
        assert check_rate_limit("k", max_requests=1, window_seconds=10)[0]


def test_identifier_prefers_user_then_forwarded_ip():
    request = Mock()
    request.client.host = "10.0.0.1"
    request.headers = {"X-Forwarded-For": "203.0.113.5, 10.0.0.1"}

    assert get_rate_limit_identifier(request, user_id="u1") == "user:u1"
    assert get_rate_limit_identifier(request) == "ip:203.0.113.5"


def test_scopes_are_independent():
    request = Mock()
    request.client.host = "10.0.0.1"
    request.headers = {}

    require_rate_limit(request, max_requests=1, scope="a")
    require_rate_limit(request, max_requests=1, scope="b")

    with pytest.raises(RateLimitedError) as exc:
        require_rate_limit(request, max_requests=1, scope="a")

    assert exc.value.status_code == 429
    assert "Retry-After" in exc.value.headers
