"""
Client configuration.

Configuration is supplied once when a connector is built and never changes
afterwards. ``ClientConfig.from_env`` fills unset values from environment
variables; invalid settings fail at construction, not on first request.
"""

import dataclasses
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from gitplatform.exceptions import GITHUB, GITLAB, PLATFORMS, GitPlatformError
from gitplatform.utils.rest import DEFAULT_USER_AGENT
from gitplatform.utils.retry import RetryPolicy

TOKEN_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{20,255}$")

DEFAULT_BASE_URLS = {
    GITHUB: "https://api.github.com",
    GITLAB: "https://gitlab.com/api/v4",
}

_TOKEN_ENV = {GITHUB: "GITHUB_TOKEN", GITLAB: "GITLAB_TOKEN"}
_BASE_URL_ENV = {GITHUB: "GITHUB_API_URL", GITLAB: "GITLAB_API_URL"}


def is_valid_token(token: Optional[str]) -> bool:
    """Return True if ``token`` looks like a GitHub or GitLab access token."""
    return bool(token) and isinstance(token, str) and bool(TOKEN_PATTERN.match(token))


def is_valid_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_number(name: str, cast, platform: str):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise GitPlatformError.validation(f"Invalid {name}: {raw!r}", platform) from e


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings for one connector instance.

    Durations are in seconds.
    """

    platform: str
    token: str
    base_url: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_backoff_factor: float = 2.0
    retry_jitter: float = 0.1
    max_rate_limit_wait: float = 60.0
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 60
    rate_limit_window: float = 60.0
    cache_enabled: bool = True
    cache_ttl: float = 300.0
    cache_max_size: int = 1000
    cache_cleanup_interval: float = 60.0
    log_requests: bool = False

    def __post_init__(self):
        if self.base_url is None:
            object.__setattr__(self, "base_url", DEFAULT_BASE_URLS.get(self.platform))
        self.validate()

    def validate(self) -> None:
        """
        Check the configuration.

        :raises GitPlatformError: (400) on an unknown platform, missing or
                                  malformed token, bad URL or bad number.
        """
        platform = self.platform
        if platform not in PLATFORMS:
            raise GitPlatformError.validation(f"Unknown platform: {platform!r}", str(platform))
        if not self.token:
            raise GitPlatformError.validation(
                f"{_TOKEN_ENV[platform]} is required for the {platform} API", platform
            )
        if not is_valid_token(self.token):
            raise GitPlatformError.validation(f"Invalid {platform} token format", platform)
        if not is_valid_url(self.base_url):
            raise GitPlatformError.validation(
                f"Invalid {platform} base URL: {self.base_url!r}", platform
            )

        positive = {
            "timeout": self.timeout,
            "rate_limit_requests": self.rate_limit_requests,
            "rate_limit_window": self.rate_limit_window,
            "cache_ttl": self.cache_ttl,
            "cache_max_size": self.cache_max_size,
            "cache_cleanup_interval": self.cache_cleanup_interval,
            "retry_max_delay": self.retry_max_delay,
        }
        for name, value in positive.items():
            if value <= 0:
                raise GitPlatformError.validation(f"{name} must be positive", platform)
        if self.retry_attempts < 0:
            raise GitPlatformError.validation("retry_attempts must be >= 0", platform)
        if self.retry_base_delay < 0 or self.retry_jitter < 0:
            raise GitPlatformError.validation("retry delays must be >= 0", platform)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.retry_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            backoff_factor=self.retry_backoff_factor,
            jitter=self.retry_jitter,
            max_rate_limit_wait=self.max_rate_limit_wait,
        )

    def replace(self, **changes: Any) -> "ClientConfig":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, platform: str, **overrides: Any) -> "ClientConfig":
        """
        Build configuration from environment variables.

        Reads ``GITHUB_TOKEN``/``GITLAB_TOKEN``, ``GITHUB_API_URL``/
        ``GITLAB_API_URL``, ``GIT_USER_AGENT``, ``GIT_TIMEOUT``,
        ``GIT_RETRY_ATTEMPTS``, ``GIT_RATE_LIMIT_ENABLED``,
        ``GIT_CACHE_ENABLED``, ``GIT_CACHE_TTL`` and ``GIT_LOG_REQUESTS``.
        Explicit ``overrides`` that are not None win.

        :param platform: 'github' or 'gitlab'.
        :return: Validated ClientConfig.
        """
        if platform not in PLATFORMS:
            raise GitPlatformError.validation(f"Unknown platform: {platform!r}", str(platform))

        values: Dict[str, Any] = {
            "token": (os.getenv(_TOKEN_ENV[platform]) or "").strip(),
            "base_url": os.getenv(_BASE_URL_ENV[platform]) or None,
            "user_agent": os.getenv("GIT_USER_AGENT") or None,
            "timeout": _env_number("GIT_TIMEOUT", float, platform),
            "retry_attempts": _env_number("GIT_RETRY_ATTEMPTS", int, platform),
            "rate_limit_enabled": _env_bool("GIT_RATE_LIMIT_ENABLED", True),
            "cache_enabled": _env_bool("GIT_CACHE_ENABLED", True),
            "cache_ttl": _env_number("GIT_CACHE_TTL", float, platform),
            "log_requests": _env_bool("GIT_LOG_REQUESTS", False),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        values = {k: v for k, v in values.items() if v is not None}
        return cls(platform=platform, **values)
