"""
Exception type for git platform operations.

Every failure that crosses a connector boundary is a ``GitPlatformError``:
HTTP errors, network failures, timeouts, payload validation problems and
local validation errors. Classification is derived from the status code and
message, never stored separately.
"""

import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

GITHUB = "github"
GITLAB = "gitlab"
PLATFORMS = (GITHUB, GITLAB)


@dataclass(frozen=True)
class ErrorResponse:
    """Upstream response metadata attached to an error."""

    status: int
    status_text: str = ""
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class GitPlatformError(Exception):
    """Raised for any GitHub or GitLab failure."""

    def __init__(
        self,
        message: str,
        platform: str,
        status: Optional[int] = None,
        response: Optional[ErrorResponse] = None,
    ):
        """
        Initialize the error.

        :param message: Human readable message.
        :param platform: 'github' or 'gitlab'.
        :param status: HTTP status, absent for network and timeout failures.
        :param response: Raw upstream response metadata, if any.
        """
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.status = status
        self.response = response

        headers = self.headers
        self.rate_limit_reset = _parse_int(
            headers.get("x-ratelimit-reset", headers.get("ratelimit-reset"))
        )

    def __str__(self) -> str:
        if self.status is not None:
            return f"[{self.platform}] {self.status}: {self.message}"
        return f"[{self.platform}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"GitPlatformError(message={self.message!r}, "
            f"platform={self.platform!r}, status={self.status!r})"
        )

    @property
    def headers(self) -> Dict[str, str]:
        if self.response is None:
            return {}
        return self.response.headers

    @property
    def is_rate_limited(self) -> bool:
        if self.status == 429:
            return True
        return self.status == 403 and "rate limit" in self.message.lower()

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status == 403

    @property
    def is_server_error(self) -> bool:
        return self.status is not None and self.status >= 500

    @property
    def is_validation_error(self) -> bool:
        return self.status == 400

    @property
    def retry_after(self) -> Optional[float]:
        """
        Seconds to wait before retrying, if the upstream said so.

        ``Retry-After`` (seconds or HTTP-date) wins over the provider's
        rate-limit reset header.
        """
        raw = self.headers.get("retry-after")
        if raw is not None:
            seconds = _parse_int(raw)
            if seconds is not None:
                return float(max(0, seconds))
            try:
                when = parsedate_to_datetime(raw)
            except (TypeError, ValueError):
                when = None
            if when is not None:
                if when.tzinfo is None:
                    when = when.replace(tzinfo=timezone.utc)
                delta = (when - datetime.now(timezone.utc)).total_seconds()
                return max(0.0, delta)

        if self.rate_limit_reset is not None:
            return float(max(0, self.rate_limit_reset - int(time.time())))

        return None

    # Named constructors

    @classmethod
    def validation(cls, message: str, platform: str) -> "GitPlatformError":
        """Return a terminal error for bad caller input or configuration."""
        return cls(message, platform, 400)

    @classmethod
    def invalid_identifier(cls, identifier: Any, platform: str) -> "GitPlatformError":
        return cls.validation(f"Invalid repository identifier: {identifier!r}", platform)

    @classmethod
    def timeout(cls, url: str, seconds: float, platform: str) -> "GitPlatformError":
        return cls(f"Request to {url} timed out after {seconds}s", platform)

    @classmethod
    def network(cls, url: str, exc: BaseException, platform: str) -> "GitPlatformError":
        return cls(f"Request to {url} failed: {exc}", platform)

    @classmethod
    def local_rate_limit(cls, reset_seconds: float, platform: str) -> "GitPlatformError":
        """Return the error raised when the local sliding window is full."""
        wait = max(1, math.ceil(reset_seconds))
        return cls(
            f"Rate limit exceeded. Try again in {wait} seconds.",
            platform,
            429,
            ErrorResponse(
                status=429,
                status_text="Too Many Requests",
                headers={"retry-after": str(wait)},
            ),
        )

    @classmethod
    def invalid_payload(
        cls, resource: str, exc: BaseException, platform: str
    ) -> "GitPlatformError":
        return cls(f"Unexpected {platform} payload for {resource}: {exc}", platform)

    @classmethod
    def unsupported(cls, capability: str, platform: str) -> "GitPlatformError":
        return cls(f"{platform} does not support {capability}", platform, 501)
