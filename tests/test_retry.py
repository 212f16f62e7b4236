"""
Tests for the retry policy and the REST transport retry loop.
"""

import time
from unittest.mock import AsyncMock, Mock

import pytest
import requests

from conftest import make_response
from gitplatform.exceptions import GitPlatformError
from gitplatform.utils.rest import RESTClient, build_url, extract_rate_limit_info
from gitplatform.utils.retry import RetryPolicy, is_retryable


class TestRetryPolicy:

    def test_backoff_schedule_without_jitter(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, backoff_factor=2.0, jitter=0)
        assert [policy.backoff_delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_jitter_is_bounded_and_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.1)
        assert policy.backoff_delay(1, rand=lambda lo, hi: hi) == pytest.approx(1.1)
        assert policy.backoff_delay(5, rand=lambda lo, hi: hi) == 10.0

    def test_rate_limit_delay_uses_hint_capped(self):
        policy = RetryPolicy(max_rate_limit_wait=60.0, jitter=0)
        err = GitPlatformError("slow down", "github", 429)
        assert policy.rate_limit_delay(err, 1) == 1.0

        hinted = GitPlatformError.local_rate_limit(600, "github")
        assert policy.rate_limit_delay(hinted, 1) == 60.0

    @pytest.mark.parametrize(
        "status,message,retryable",
        [
            (401, "Bad credentials", False),
            (403, "Forbidden", False),
            (404, "Not Found", False),
            (422, "Validation Failed", False),
            (429, "Too Many Requests", True),
            (403, "API rate limit exceeded", True),
            (500, "Internal Server Error", True),
            (503, "Service Unavailable", True),
            (None, "connection reset", True),
        ],
    )
    def test_classification(self, status, message, retryable):
        assert is_retryable(GitPlatformError(message, "github", status)) is retryable


def _client(session, sleep, **kwargs):
    policy = RetryPolicy(max_retries=3, base_delay=1.0, max_delay=10.0, jitter=0)
    return RESTClient(
        platform=kwargs.pop("platform", "github"),
        retry_policy=policy,
        session=session,
        sleep=sleep,
        **kwargs,
    )


class TestRESTClient:

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self):
        """Three 500s then a 200: exactly three waits, growing and capped."""
        session = Mock()
        session.request.side_effect = [
            make_response(500, {"message": "oops"}, reason="Server Error"),
            make_response(500, {"message": "oops"}, reason="Server Error"),
            make_response(500, {"message": "oops"}, reason="Server Error"),
            make_response(200, {"ok": True}),
        ]
        sleep = AsyncMock()

        response = await _client(session, sleep).request("https://api.github.com/x")

        assert response.data == {"ok": True}
        assert session.request.call_count == 4
        delays = [c.args[0] for c in sleep.await_args_list]
        assert delays == [1.0, 2.0, 4.0]
        assert all(d <= 10.0 for d in delays)

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self):
        session = Mock()
        session.request.return_value = make_response(502, {"message": "bad gateway"})
        sleep = AsyncMock()

        with pytest.raises(GitPlatformError) as exc_info:
            await _client(session, sleep).request("https://api.github.com/x")

        assert exc_info.value.status == 502
        assert exc_info.value.message == "bad gateway"
        assert session.request.call_count == 4
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    async def test_terminal_errors_are_not_retried(self, status):
        session = Mock()
        session.request.return_value = make_response(status, {"message": "nope"})
        sleep = AsyncMock()

        with pytest.raises(GitPlatformError) as exc_info:
            await _client(session, sleep).request("https://api.github.com/x")

        assert exc_info.value.status == status
        assert session.request.call_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_waits_for_retry_after(self):
        session = Mock()
        session.request.side_effect = [
            make_response(429, {"message": "slow down"}, headers={"Retry-After": "7"}),
            make_response(200, [1, 2]),
        ]
        sleep = AsyncMock()

        response = await _client(session, sleep).request("https://api.github.com/x")

        assert response.data == [1, 2]
        sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self):
        session = Mock()
        session.request.side_effect = [
            requests.exceptions.ConnectionError("reset"),
            requests.exceptions.Timeout("slow"),
            make_response(200, {"ok": 1}),
        ]
        sleep = AsyncMock()

        response = await _client(session, sleep).request("https://api.github.com/x")

        assert response.status == 200
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_slow_attempt_times_out_and_is_retried(self):
        calls = []

        def slow_then_fast(*args, **kwargs):
            calls.append(kwargs["timeout"])
            if len(calls) == 1:
                time.sleep(0.3)
            return make_response(200, {"ok": 1})

        session = Mock()
        session.request.side_effect = slow_then_fast
        sleep = AsyncMock()

        response = await _client(session, sleep).request("https://x", timeout=0.05)

        assert response.data == {"ok": 1}
        assert len(calls) == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_slow_attempt_without_retries(self):
        session = Mock()
        session.request.side_effect = lambda *a, **kw: time.sleep(0.3)
        sleep = AsyncMock()

        with pytest.raises(GitPlatformError) as exc_info:
            await _client(session, sleep).request("https://x", timeout=0.05, max_retries=0)

        assert exc_info.value.status is None
        assert is_retryable(exc_info.value)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_max_retries_zero(self):
        session = Mock()
        session.request.return_value = make_response(500, {"message": "oops"})
        sleep = AsyncMock()

        with pytest.raises(GitPlatformError):
            await _client(session, sleep).request("https://x", max_retries=0)
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_invalid_json_on_success_is_an_error(self):
        session = Mock()
        session.request.return_value = make_response(200, text="{not json")
        sleep = AsyncMock()

        with pytest.raises(GitPlatformError) as exc_info:
            await _client(session, sleep).request("https://x", max_retries=0)
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_request_headers_and_body(self):
        session = Mock()
        session.request.return_value = make_response(201, {"id": 1})
        client = _client(session, AsyncMock(), user_agent="tests/1.0")

        await client.request(
            "https://x/issues",
            method="POST",
            headers={"Authorization": "Bearer t"},
            body={"title": "hi"},
        )

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://x/issues")
        assert kwargs["headers"]["User-Agent"] == "tests/1.0"
        assert kwargs["headers"]["Authorization"] == "Bearer t"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["headers"]["Accept"] == "application/vnd.github+json"
        assert kwargs["data"] == '{"title": "hi"}'

    @pytest.mark.asyncio
    async def test_rate_limit_info_extracted(self):
        session = Mock()
        session.request.return_value = make_response(
            200,
            {},
            headers={
                "X-RateLimit-Limit": "5000",
                "X-RateLimit-Remaining": "4990",
                "X-RateLimit-Reset": "1700000000",
            },
        )
        response = await _client(session, AsyncMock()).request("https://x")

        info = response.rate_limit_info
        assert info.limit == 5000
        assert info.remaining == 4990
        assert info.used == 10
        assert info.resource == "core"


class TestHelpers:

    def test_build_url(self):
        url = build_url(
            "https://gitlab.com/api/v4/",
            "/projects",
            {"search": "x y", "page": 2, "skip": None, "simple": False, "id": [1, 2]},
        )
        assert url == (
            "https://gitlab.com/api/v4/projects"
            "?search=x+y&page=2&simple=false&id=1&id=2"
        )

    def test_build_url_without_params(self):
        assert build_url("https://api.github.com", "user") == "https://api.github.com/user"

    def test_extract_gitlab_rate_limit(self):
        info = extract_rate_limit_info(
            {"ratelimit-limit": "2000", "ratelimit-remaining": "1999", "ratelimit-reset": "10"},
            "gitlab",
        )
        assert info.resource == "api"
        assert info.used == 1

    def test_extract_missing_headers(self):
        assert extract_rate_limit_info({}, "github") is None
