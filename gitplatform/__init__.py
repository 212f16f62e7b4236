"""
GitHub and GitLab connectors behind one interface.

This package provides production-grade connectors for GitHub and GitLab
with retry and backoff, local rate limiting, tag-aware caching and a single
error type.
"""

from typing import Any, Optional

import requests

from .base import Capability, GitConnector
from .config import ClientConfig
from .exceptions import GITHUB, GITLAB, PLATFORMS, ErrorResponse, GitPlatformError
from .github import GitHubConnector
from .gitlab import GitLabConnector, GitLabOAuth
from .identifiers import (IssueRef, RepoIdentifier, parse_issue_identifier,
                          parse_repository_identifier)
from .models import (BatchResult, Branch, Commit, CommitPerson, CommitStats,
                     Issue, Label, Milestone, PullRequest, RateLimitInfo,
                     Release, ReleaseAsset, Repository, RepositoryOwner,
                     RepositoryRef, RepositoryStatistics, SearchResults, User,
                     WebhookEvent)

CONNECTORS = {
    GITHUB: GitHubConnector,
    GITLAB: GitLabConnector,
}


def create_client(
    platform: str,
    config: Optional[ClientConfig] = None,
    session: Optional[requests.Session] = None,
    **overrides: Any,
) -> GitConnector:
    """
    Build a connector for ``platform``.

    :param platform: 'github' or 'gitlab'.
    :param config: Explicit configuration; read from the environment if omitted.
    :param session: Optional requests session to reuse.
    :param overrides: ClientConfig fields that win over the environment.
    :return: A new, independent connector. Call ``close()`` when done.

    Example:
        >>> async with create_client("github", token=token) as client:
        ...     repo = await client.get_repository("octocat/hello-world")
    """
    if platform not in CONNECTORS:
        raise GitPlatformError.validation(f"Unknown platform: {platform!r}", str(platform))
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if config is None:
        config = ClientConfig.from_env(platform, **overrides)
    elif overrides:
        config = config.replace(**overrides)
    return CONNECTORS[platform](config, session=session)


__all__ = [
    # Connectors
    "create_client",
    "GitConnector",
    "GitHubConnector",
    "GitLabConnector",
    "GitLabOAuth",
    "Capability",
    "ClientConfig",
    # Identifiers
    "RepoIdentifier",
    "IssueRef",
    "parse_repository_identifier",
    "parse_issue_identifier",
    # Models
    "Repository",
    "RepositoryOwner",
    "RepositoryRef",
    "RepositoryStatistics",
    "User",
    "Label",
    "Milestone",
    "Issue",
    "Branch",
    "PullRequest",
    "Commit",
    "CommitPerson",
    "CommitStats",
    "Release",
    "ReleaseAsset",
    "RateLimitInfo",
    "SearchResults",
    "WebhookEvent",
    "BatchResult",
    # Exceptions
    "GitPlatformError",
    "ErrorResponse",
    "GITHUB",
    "GITLAB",
    "PLATFORMS",
]
