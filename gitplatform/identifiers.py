"""
Repository and issue identifier parsing.

Connectors accept loose identifiers from callers and normalise them here
before any cache lookup or network call. An identifier that cannot be parsed
is a validation error, never a network error.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from gitplatform.exceptions import PLATFORMS, GitPlatformError

# Owner is greedy so GitLab subgroups ("group/sub/project") keep the whole
# namespace; the repo is always the last path segment.
_REPO_RE = re.compile(
    r"^(?:(?P<platform>github|gitlab)[:/])?"
    r"(?P<owner>[^\s/]+(?:/[^\s/]+)*)/(?P<repo>[^\s/]+?)(?:\.git)?/?$"
)
_ISSUE_RE = re.compile(r"^(?P<repo>.+)#(?P<number>\d+)$")


@dataclass(frozen=True)
class RepoIdentifier:
    """A parsed ``owner/repo`` pair, optionally pinned to a platform."""

    owner: str
    repo: str
    platform: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class IssueRef:
    """Reference to an issue or pull request by its human-facing number."""

    owner: str
    repo: str
    number: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def repository(self) -> RepoIdentifier:
        return RepoIdentifier(self.owner, self.repo)

    def __str__(self) -> str:
        return f"{self.full_name}#{self.number}"


RepositoryIdentifierLike = Union[RepoIdentifier, str, Tuple[str, str], Mapping[str, Any]]
IssueIdentifierLike = Union[IssueRef, str, Tuple[str, str, int], Mapping[str, Any]]


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().strip("/")


def parse_repository_identifier(
    identifier: RepositoryIdentifierLike, platform: str
) -> RepoIdentifier:
    """
    Normalise a repository identifier.

    Accepts a ``RepoIdentifier``, an ``(owner, repo)`` pair, a mapping with
    ``owner`` and ``repo`` keys, or a ``[platform:]owner/repo[.git]`` string.

    :param identifier: Identifier supplied by the caller.
    :param platform: Platform of the connector doing the parsing.
    :return: RepoIdentifier bound to ``platform``.
    :raises GitPlatformError: (400) if the identifier cannot be parsed or
                              names the other platform.
    """
    if isinstance(identifier, RepoIdentifier):
        owner, repo, prefix = identifier.owner, identifier.repo, identifier.platform
    elif isinstance(identifier, str):
        match = _REPO_RE.match(identifier.strip())
        if not match:
            raise GitPlatformError.invalid_identifier(identifier, platform)
        owner = match.group("owner")
        repo = match.group("repo")
        prefix = match.group("platform")
    elif isinstance(identifier, Mapping):
        owner = _clean(identifier.get("owner"))
        repo = _clean(identifier.get("repo"))
        prefix = identifier.get("platform")
    elif isinstance(identifier, (tuple, list)) and len(identifier) == 2:
        owner, repo = _clean(identifier[0]), _clean(identifier[1])
        prefix = None
    else:
        raise GitPlatformError.invalid_identifier(identifier, platform)

    if not owner or not repo or "/" in repo:
        raise GitPlatformError.invalid_identifier(identifier, platform)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if prefix is not None and prefix not in PLATFORMS:
        raise GitPlatformError.invalid_identifier(identifier, platform)
    if prefix is not None and prefix != platform:
        raise GitPlatformError.validation(
            f"Identifier {identifier!r} refers to {prefix}, not {platform}", platform
        )

    return RepoIdentifier(owner=owner, repo=repo, platform=platform)


def parse_issue_identifier(identifier: IssueIdentifierLike, platform: str) -> IssueRef:
    """
    Normalise an issue or pull request identifier.

    Accepts an ``IssueRef``, an ``(owner, repo, number)`` triple, a mapping
    with ``owner``, ``repo`` and ``number`` keys, or ``owner/repo#number``.
    """
    if isinstance(identifier, IssueRef):
        owner, repo, number = identifier.owner, identifier.repo, identifier.number
    elif isinstance(identifier, str):
        match = _ISSUE_RE.match(identifier.strip())
        if not match:
            raise GitPlatformError.validation(
                f"Invalid issue identifier: {identifier!r}", platform
            )
        repo_id = parse_repository_identifier(match.group("repo"), platform)
        owner, repo, number = repo_id.owner, repo_id.repo, match.group("number")
    elif isinstance(identifier, Mapping):
        owner = identifier.get("owner")
        repo = identifier.get("repo")
        number = identifier.get("number")
    elif isinstance(identifier, (tuple, list)) and len(identifier) == 3:
        owner, repo, number = identifier
    else:
        raise GitPlatformError.validation(
            f"Invalid issue identifier: {identifier!r}", platform
        )

    repo_id = parse_repository_identifier((owner, repo), platform)
    try:
        number = int(number)
    except (TypeError, ValueError):
        number = 0
    if number <= 0:
        raise GitPlatformError.validation(
            f"Invalid issue number in {identifier!r}", platform
        )

    return IssueRef(owner=repo_id.owner, repo=repo_id.repo, number=number)
