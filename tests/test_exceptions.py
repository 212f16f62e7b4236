"""
Tests for GitPlatformError classification.
"""

import time
from email.utils import format_datetime
from datetime import datetime, timedelta, timezone

import pytest

from gitplatform.exceptions import ErrorResponse, GitPlatformError


def _error(status, message="boom", headers=None):
    return GitPlatformError(
        message,
        "github",
        status,
        ErrorResponse(status=status, headers=headers or {}),
    )


class TestPredicates:
    """Derived classification predicates."""

    @pytest.mark.parametrize(
        "status,message,expected",
        [
            (429, "Too many requests", True),
            (403, "API rate limit exceeded for user", True),
            (403, "Resource not accessible by integration", False),
            (500, "rate limit", False),
        ],
    )
    def test_is_rate_limited(self, status, message, expected):
        assert _error(status, message).is_rate_limited is expected

    def test_status_predicates(self):
        assert _error(404).is_not_found
        assert _error(401).is_unauthorized
        assert _error(403).is_forbidden
        assert _error(400).is_validation_error
        assert _error(502).is_server_error
        assert not _error(499).is_server_error

    def test_network_error_has_no_status(self):
        err = GitPlatformError.network("https://x", ConnectionError("reset"), "gitlab")
        assert err.status is None
        assert not err.is_server_error
        assert "reset" in str(err)

    def test_str_includes_platform_and_status(self):
        assert str(_error(404, "Not Found")) == "[github] 404: Not Found"


class TestRetryAfter:
    """retry_after prefers Retry-After over the reset header."""

    def test_retry_after_seconds(self):
        err = _error(429, headers={"retry-after": "17", "x-ratelimit-reset": "0"})
        assert err.retry_after == 17.0

    def test_retry_after_http_date(self):
        when = datetime.now(timezone.utc) + timedelta(seconds=120)
        err = _error(429, headers={"retry-after": format_datetime(when, usegmt=True)})
        assert 100 <= err.retry_after <= 120

    def test_reset_header_fallback(self):
        reset = int(time.time()) + 30
        err = _error(403, "rate limit", headers={"x-ratelimit-reset": str(reset)})
        assert err.rate_limit_reset == reset
        assert 28 <= err.retry_after <= 30

    def test_gitlab_reset_header(self):
        reset = int(time.time()) + 10
        err = _error(429, headers={"ratelimit-reset": str(reset)})
        assert err.rate_limit_reset == reset

    def test_reset_in_past_clamps_to_zero(self):
        err = _error(429, headers={"x-ratelimit-reset": "1"})
        assert err.retry_after == 0.0

    def test_no_hint(self):
        assert _error(429).retry_after is None


class TestNamedConstructors:

    def test_local_rate_limit(self):
        err = GitPlatformError.local_rate_limit(2.2, "github")
        assert err.status == 429
        assert err.is_rate_limited
        assert err.headers["retry-after"] == "3"
        assert err.retry_after == 3.0

    def test_local_rate_limit_minimum_one_second(self):
        err = GitPlatformError.local_rate_limit(0.0, "gitlab")
        assert err.headers["retry-after"] == "1"

    def test_validation(self):
        err = GitPlatformError.invalid_identifier("nope", "github")
        assert err.is_validation_error
        assert "nope" in err.message

    def test_unsupported(self):
        err = GitPlatformError.unsupported("repository_statistics", "github")
        assert err.status == 501
