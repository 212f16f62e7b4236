"""
Base connector contract and the request pipeline shared by all providers.

Every read goes cache first, then through the local rate limiter, then the
REST transport. Payloads are validated against the provider schema before
being transformed into domain models.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

import requests
from pydantic import TypeAdapter, ValidationError

from gitplatform.config import ClientConfig
from gitplatform.exceptions import GitPlatformError
from gitplatform.identifiers import (
    IssueIdentifierLike,
    IssueRef,
    RepoIdentifier,
    RepositoryIdentifierLike,
    parse_issue_identifier,
    parse_repository_identifier,
)
from gitplatform.models import (
    BatchResult,
    Commit,
    Issue,
    PullRequest,
    RateLimitInfo,
    Release,
    Repository,
    RepositoryStatistics,
    SearchResults,
    User,
    WebhookEvent,
)
from gitplatform.utils.cache import TTLCache
from gitplatform.utils.rate_limit import SlidingWindowRateLimiter
from gitplatform.utils.rest import APIResponse, RESTClient, build_url
from gitplatform.utils.sweeper import PeriodicTask
from gitplatform.utils.webhooks import verify_signature

logger = logging.getLogger(__name__)

_MISSING = object()


class Capability(str, Enum):
    """Optional features a provider may declare."""

    RATE_LIMIT_ENDPOINT = "rate_limit_endpoint"
    REPOSITORY_STATISTICS = "repository_statistics"
    OAUTH = "oauth"


@lru_cache(maxsize=None)
def _adapter(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


class GitConnector(ABC):
    """
    Abstract base class for git platform connectors.

    Subclasses set ``platform`` and ``capabilities`` and implement the
    provider operations on top of ``_get`` and ``_write``.
    """

    platform: str = ""
    capabilities: FrozenSet[Capability] = frozenset()

    def __init__(
        self,
        config: ClientConfig,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        """
        Initialize the connector.

        :param config: Validated client configuration for this platform.
        :param session: Optional requests session, injectable for tests.
        :param clock: Monotonic clock shared by the cache and rate limiter.
        :param sleep: Coroutine used by the transport between retries.
        """
        if config.platform != self.platform:
            raise GitPlatformError.validation(
                f"Configuration is for {config.platform}, not {self.platform}",
                self.platform,
            )
        self.config = config
        self.rest = RESTClient(
            platform=self.platform,
            user_agent=config.user_agent,
            timeout=config.timeout,
            retry_policy=config.retry_policy,
            session=session,
            sleep=sleep,
            log_requests=config.log_requests,
        )
        self.cache = TTLCache(
            default_ttl=config.cache_ttl,
            max_size=config.cache_max_size,
            clock=clock,
        )
        self.rate_limiter = SlidingWindowRateLimiter(
            limit=config.rate_limit_requests,
            window=config.rate_limit_window,
            clock=clock,
        )
        self._sweeps = [
            PeriodicTask(
                f"{self.platform}-cache-purge",
                self.cache.purge_expired,
                config.cache_cleanup_interval,
            ),
            PeriodicTask(
                f"{self.platform}-rate-limit-cleanup",
                self.rate_limiter.cleanup,
                config.rate_limit_window,
            ),
        ]
        self._closed = False

    # Lifecycle

    def start(self) -> None:
        """Start background sweeps if an event loop is running."""
        if self._closed:
            return
        for sweep in self._sweeps:
            sweep.start()

    def close(self) -> None:
        """Stop background sweeps and close the HTTP session."""
        self._closed = True
        for sweep in self._sweeps:
            sweep.stop()
        self.rest.close()

    async def __aenter__(self) -> "GitConnector":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Capabilities

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _require(self, capability: Capability) -> None:
        if not self.supports(capability):
            raise GitPlatformError.unsupported(capability.value, self.platform)

    # Identifiers

    def _repo(self, identifier: RepositoryIdentifierLike) -> RepoIdentifier:
        return parse_repository_identifier(identifier, self.platform)

    def _issue_ref(self, identifier: IssueIdentifierLike) -> IssueRef:
        return parse_issue_identifier(identifier, self.platform)

    def _page_params(self, page: int, per_page: int) -> Dict[str, int]:
        if page < 1 or not 1 <= per_page <= 100:
            raise GitPlatformError.validation(
                f"Invalid pagination: page={page}, per_page={per_page}", self.platform
            )
        return {"page": page, "per_page": per_page}

    # Request pipeline

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        """Return the authentication headers for this provider."""

    def _cache_key(
        self, method: str, path: str, params: Optional[Mapping[str, Any]]
    ) -> str:
        encoded = json.dumps(params or {}, sort_keys=True, default=str)
        return f"{self.platform}:{method}:{path}:{encoded}"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> APIResponse:
        """
        Send one request through the local rate limiter and the transport.

        A full local window raises a 429 ``GitPlatformError`` without
        contacting the upstream; such rejections are not recorded.
        """
        self.start()
        key = self.platform
        limited = self.config.rate_limit_enabled

        if limited and not self.rate_limiter.is_within_limit(key):
            reset = self.rate_limiter.get_reset_time(key)
            logger.warning(
                f"Local rate limit reached for {key}; resets in {reset:.1f}s"
            )
            raise GitPlatformError.local_rate_limit(reset, self.platform)

        try:
            return await self.rest.request(
                build_url(self.config.base_url, path, params),
                method=method,
                headers=self._auth_headers(),
                body=body,
            )
        finally:
            if limited:
                self.rate_limiter.record_request(key)

    def _transform(self, func: Callable[..., Any], resource: str, *args: Any) -> Any:
        """Build domain objects; model invariant failures become payload errors."""
        try:
            return func(*args)
        except (ValueError, TypeError) as e:
            raise GitPlatformError.invalid_payload(resource, e, self.platform) from e

    def _validate(self, schema: Any, data: Any, resource: str) -> Any:
        try:
            return _adapter(schema).validate_python(data)
        except ValidationError as e:
            raise GitPlatformError.invalid_payload(resource, e, self.platform) from e

    def _cache_result(
        self, key: str, value: Any, ttl: Optional[float], tags: Iterable[str]
    ) -> None:
        if not self.config.cache_enabled:
            return
        try:
            self.cache.set(key, value, ttl=ttl, tags=tags)
        except ValueError as e:
            logger.warning(f"Skipping cache write for {key}: {e}")

    def _invalidate(self, tags: Iterable[str]) -> None:
        tags = list(tags)
        try:
            removed = self.cache.clear_by_tags(tags)
        except ValueError as e:
            logger.warning(f"Skipping cache invalidation: {e}")
            return
        logger.debug(f"Invalidated {removed} cache entries for {tags}")

    async def _get(
        self,
        path: str,
        schema: Any,
        transform: Callable[[Any, APIResponse], Any],
        params: Optional[Dict[str, Any]] = None,
        tags: Sequence[str] = (),
        refresh: bool = False,
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Cached GET.

        :param path: Endpoint path relative to the base URL.
        :param schema: Pydantic model (or ``List[model]``) for the payload.
        :param transform: Builds the domain result from the validated
                          payload and the raw response.
        :param params: Query parameters; all of them are part of the cache key.
        :param tags: Cache tags used for invalidation by writes.
        :param refresh: Skip the cache lookup and fetch fresh data.
        :param ttl: Cache TTL override in seconds.
        """
        key = self._cache_key("GET", path, params)
        if self.config.cache_enabled and not refresh:
            cached = self.cache.get(key, _MISSING)
            if cached is not _MISSING:
                logger.debug(f"Cache hit: {key}")
                return cached
            logger.debug(f"Cache miss: {key}")

        response = await self._request("GET", path, params=params)
        parsed = self._validate(schema, response.data, path)
        result = self._transform(transform, path, parsed, response)
        self._cache_result(key, result, ttl, tags)
        return result

    async def _write(
        self,
        method: str,
        path: str,
        body: Dict[str, Any],
        schema: Any,
        transform: Callable[[Any, APIResponse], Any],
        invalidate: Sequence[str] = (),
    ) -> Any:
        """Uncached write; on success clears every entry tagged ``invalidate``."""
        response = await self._request(method, path, body=body)
        parsed = self._validate(schema, response.data, path)
        result = self._transform(transform, path, parsed, response)
        if invalidate:
            self._invalidate(invalidate)
        return result

    # Provider operations

    @abstractmethod
    async def get_repository(
        self, identifier: RepositoryIdentifierLike, refresh: bool = False
    ) -> Repository:
        """
        Get a single repository.

        :param identifier: ``owner/repo`` string, pair or mapping.
        :param refresh: Bypass the cache.
        :return: Repository object.
        """

    @abstractmethod
    async def search_repositories(
        self,
        query: str,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> SearchResults:
        """Search repositories visible to the token."""

    @abstractmethod
    async def get_issues(
        self,
        identifier: RepositoryIdentifierLike,
        state: str = "open",
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Issue]:
        """
        List issues of a repository.

        :param identifier: Repository identifier.
        :param state: 'open', 'closed' or 'all'.
        :param filters: Extra provider query filters (labels, since, ...).
        :param page: 1-based page number.
        :param per_page: Page size.
        :return: List of Issue objects, never pull requests.
        """

    @abstractmethod
    async def get_issue(self, identifier: IssueIdentifierLike) -> Issue:
        pass

    @abstractmethod
    async def get_pull_requests(
        self,
        identifier: RepositoryIdentifierLike,
        state: str = "open",
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[PullRequest]:
        pass

    @abstractmethod
    async def get_pull_request(self, identifier: IssueIdentifierLike) -> PullRequest:
        pass

    @abstractmethod
    async def get_user(self, username: str) -> User:
        pass

    @abstractmethod
    async def get_authenticated_user(self) -> User:
        pass

    @abstractmethod
    async def get_commits(
        self,
        identifier: RepositoryIdentifierLike,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Commit]:
        pass

    @abstractmethod
    async def get_releases(
        self, identifier: RepositoryIdentifierLike, page: int = 1, per_page: int = 30
    ) -> List[Release]:
        pass

    @abstractmethod
    async def get_rate_limit(self) -> RateLimitInfo:
        """
        Get the upstream rate limit status.

        Not cached; still counts against the local window.
        """

    @abstractmethod
    async def create_issue(
        self, identifier: RepositoryIdentifierLike, fields: Dict[str, Any]
    ) -> Issue:
        pass

    @abstractmethod
    async def update_issue(
        self, identifier: IssueIdentifierLike, fields: Dict[str, Any]
    ) -> Issue:
        pass

    @abstractmethod
    async def create_pull_request(
        self, identifier: RepositoryIdentifierLike, fields: Dict[str, Any]
    ) -> PullRequest:
        pass

    @abstractmethod
    def process_webhook_payload(
        self,
        payload: Union[str, bytes, Mapping[str, Any]],
        event: Optional[str] = None,
    ) -> WebhookEvent:
        """
        Parse a webhook delivery.

        :param payload: Raw JSON body or an already decoded mapping.
        :param event: Event name from the delivery headers, if known.
        :return: WebhookEvent with the normalised repository.
        """

    async def get_repository_statistics(
        self, identifier: RepositoryIdentifierLike
    ) -> RepositoryStatistics:
        """Storage and commit statistics; only some providers expose them."""
        raise GitPlatformError.unsupported(
            Capability.REPOSITORY_STATISTICS.value, self.platform
        )

    def validate_webhook_payload(
        self, payload: Union[str, bytes], signature: str, secret: str
    ) -> bool:
        """
        Verify a webhook body against its HMAC-SHA256 signature.

        :param payload: Raw request body.
        :param signature: Signature header, with or without ``sha256=``.
        :param secret: Shared webhook secret.
        :return: True if the signature matches.
        """
        return verify_signature(payload, signature, secret)

    def _load_webhook(self, payload: Union[str, bytes, Mapping[str, Any]]) -> Any:
        if isinstance(payload, Mapping):
            return dict(payload)
        try:
            return json.loads(payload)
        except (TypeError, ValueError) as e:
            raise GitPlatformError.validation(
                f"Webhook payload is not valid JSON: {e}", self.platform
            ) from e

    # Batch

    async def get_repositories(
        self,
        identifiers: Iterable[RepositoryIdentifierLike],
        max_concurrent: int = 4,
        on_repo_complete: Optional[Callable[[BatchResult], None]] = None,
    ) -> List[BatchResult]:
        """
        Fetch several repositories concurrently.

        A failure is recorded in that item's BatchResult and logged; it does
        not fail the batch. Results come back in input order.

        :param identifiers: Repository identifiers.
        :param max_concurrent: Maximum requests in flight.
        :param on_repo_complete: Optional callback called as each item finishes.
        :return: List of BatchResult objects.

        Example:
            >>> async with create_client("github") as client:
            ...     results = await client.get_repositories(["octo/a", "octo/b"])
        """
        identifiers = list(identifiers)
        semaphore = asyncio.Semaphore(max(1, max_concurrent))

        async def fetch(identifier: RepositoryIdentifierLike) -> BatchResult:
            async with semaphore:
                try:
                    repository = await self.get_repository(identifier)
                except Exception as e:
                    logger.warning(f"Failed to get repository {identifier}: {e}")
                    return BatchResult(
                        identifier=identifier,
                        error=str(e),
                        success=False,
                        exception=e,
                    )
                return BatchResult(identifier=identifier, repository=repository)

        logger.info(f"Fetching {len(identifiers)} repositories from {self.platform}")

        tasks = [asyncio.create_task(fetch(identifier)) for identifier in identifiers]
        for fut in asyncio.as_completed(tasks):
            result = await fut
            if on_repo_complete:
                on_repo_complete(result)

        results = [task.result() for task in tasks]
        logger.info(
            f"Completed {len(results)} repositories, "
            f"{sum(1 for r in results if r.success)} successful"
        )
        return results

    # Cache and limiter introspection

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def get_rate_limiter_stats(self) -> Dict[str, float]:
        return self.rate_limiter.stats(self.platform)
