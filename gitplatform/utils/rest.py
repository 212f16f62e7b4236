"""
REST transport with retry, backoff and rate-limit header extraction.

Shared by the GitHub and GitLab connectors. Blocking ``requests`` calls run
on the default executor so concurrent callers are only suspended, never
blocked.
"""

import asyncio
import functools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlencode

import requests

from gitplatform.exceptions import GITHUB, ErrorResponse, GitPlatformError
from gitplatform.models import RateLimitInfo
from gitplatform.utils.retry import RetryPolicy, is_retryable

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "gitplatform/0.1"


@dataclass(frozen=True)
class APIResponse:
    data: Any
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    rate_limit_info: Optional[RateLimitInfo] = None


def build_url(base_url: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Join ``base_url`` and ``endpoint`` and append query parameters.

    ``None`` values are dropped and list values repeat the key.
    """
    url = f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
    if not params:
        return url

    pairs = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _query_value(v)) for v in value)
        else:
            pairs.append((key, _query_value(value)))

    if not pairs:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(pairs)}"


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def extract_rate_limit_info(
    headers: Dict[str, str], platform: str
) -> Optional[RateLimitInfo]:
    """
    Read rate-limit headers into a RateLimitInfo snapshot.

    :param headers: Response headers with lower-case names.
    :param platform: 'github' (``x-ratelimit-*``) or 'gitlab' (``ratelimit-*``).
    :return: RateLimitInfo, or None if the headers are absent.
    """
    prefix = "x-ratelimit-" if platform == GITHUB else "ratelimit-"
    limit = _to_int(headers.get(f"{prefix}limit"))
    remaining = _to_int(headers.get(f"{prefix}remaining"))
    reset = _to_int(headers.get(f"{prefix}reset"))
    if limit is None or remaining is None or reset is None:
        return None

    if platform == GITHUB:
        used = _to_int(headers.get("x-ratelimit-used"))
        resource = headers.get("x-ratelimit-resource") or "core"
    else:
        used = None
        resource = "api"

    return RateLimitInfo(
        limit=limit,
        remaining=remaining,
        reset=reset,
        used=used if used is not None else limit - remaining,
        resource=resource,
    )


def _error_message(data: Any, status: int) -> str:
    if isinstance(data, dict):
        for key in ("message", "error_description", "error"):
            value = data.get(key)
            if value:
                return value if isinstance(value, str) else json.dumps(value)
    if isinstance(data, str) and data.strip():
        return data.strip()
    return f"Request failed with status {status}"


class RESTClient:
    """
    HTTP transport with retry and rate limit handling.

    Failures are classified as terminal (401, non-rate-limit 403, 404 and
    other 4xx) or retryable (429, rate-limited 403, 5xx, network errors and
    timeouts). Exhausting the retry budget re-raises the last error as is.
    """

    def __init__(
        self,
        platform: str = GITHUB,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        log_requests: bool = False,
    ):
        """
        Initialize REST client.

        :param platform: Platform used for errors and rate-limit headers.
        :param user_agent: User-Agent header value.
        :param timeout: Per-attempt timeout in seconds.
        :param retry_policy: Backoff settings; ``max_retries`` is the default
                             retry budget.
        :param session: Optional requests session to reuse.
        :param sleep: Coroutine used to wait between attempts.
        :param log_requests: Log every request at INFO instead of DEBUG.
        """
        self.platform = platform
        self.user_agent = user_agent
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.session = session or requests.Session()
        self._sleep = sleep
        self._log_level = logging.INFO if log_requests else logging.DEBUG

    def _default_headers(self, platform: str) -> Dict[str, str]:
        accept = (
            "application/vnd.github+json" if platform == GITHUB else "application/json"
        )
        return {"User-Agent": self.user_agent, "Accept": accept}

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        platform: Optional[str] = None,
    ) -> APIResponse:
        """
        Perform an HTTP request, retrying retryable failures.

        :param url: Absolute URL.
        :param method: HTTP method.
        :param headers: Extra headers; they override the defaults.
        :param body: JSON-serialisable request body.
        :param params: Query parameters.
        :param timeout: Per-attempt timeout in seconds.
        :param max_retries: Retry budget (attempts after the first).
        :param platform: Overrides the client's platform.
        :return: APIResponse.
        :raises GitPlatformError: Terminal failure, or the last retryable
                                  failure once retries are exhausted.
        """
        platform = platform or self.platform
        timeout = self.timeout if timeout is None else timeout
        retries = self.retry_policy.max_retries if max_retries is None else max_retries

        request_headers = self._default_headers(platform)
        if body is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        attempt = 0
        while True:
            try:
                logger.log(self._log_level, f"{method} {url} (attempt {attempt + 1})")
                return await self._send(
                    url, method, request_headers, body, params, timeout, platform
                )
            except GitPlatformError as e:
                attempt += 1
                if not is_retryable(e):
                    raise
                if attempt > retries:
                    logger.warning(
                        f"Giving up on {method} {url} after {retries} retries: {e}"
                    )
                    raise

                if e.is_rate_limited:
                    delay = self.retry_policy.rate_limit_delay(e, attempt)
                else:
                    delay = self.retry_policy.backoff_delay(attempt)
                logger.warning(
                    f"{method} {url} failed ({e}); retry {attempt}/{retries} in {delay:.2f}s"
                )
                await self._sleep(delay)

    async def _send(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Any,
        params: Optional[Dict[str, Any]],
        timeout: float,
        platform: str,
    ) -> APIResponse:
        loop = asyncio.get_running_loop()
        call = functools.partial(
            self.session.request,
            method,
            url,
            params=params,
            headers=headers,
            data=json.dumps(body) if body is not None else None,
            timeout=timeout,
        )

        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, call), timeout=timeout
            )
        except (asyncio.TimeoutError, requests.exceptions.Timeout) as e:
            raise GitPlatformError.timeout(url, timeout, platform) from e
        except requests.exceptions.RequestException as e:
            raise GitPlatformError.network(url, e, platform) from e

        response_headers = {k.lower(): v for k, v in response.headers.items()}
        rate_limit_info = extract_rate_limit_info(response_headers, platform)
        data = self._decode(response, response_headers, url, platform)

        if not 200 <= response.status_code < 300:
            raise GitPlatformError(
                _error_message(data, response.status_code),
                platform,
                response.status_code,
                ErrorResponse(
                    status=response.status_code,
                    status_text=response.reason or "",
                    data=data,
                    headers=response_headers,
                ),
            )

        return APIResponse(
            data=data,
            status=response.status_code,
            headers=response_headers,
            rate_limit_info=rate_limit_info,
        )

    @staticmethod
    def _decode(
        response: requests.Response,
        headers: Dict[str, str],
        url: str,
        platform: str,
    ) -> Any:
        text = response.text
        if not text:
            return None
        if "json" not in headers.get("content-type", ""):
            return text
        try:
            return json.loads(text)
        except ValueError as e:
            if not 200 <= response.status_code < 300:
                return text
            raise GitPlatformError.invalid_payload(url, e, platform) from e

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

