"""
Provider-neutral domain model.

Connectors build these fresh for every transformation. They are frozen and
use tuples for collections because cached results are shared by reference
between callers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, Union

Identifier = Union[int, str]

T = TypeVar("T")


@dataclass(frozen=True)
class RepositoryOwner:
    id: Identifier
    login: str
    type: str = "User"
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class RepositoryLicense:
    key: str
    name: str
    spdx_id: Optional[str] = None


@dataclass(frozen=True)
class RepositoryPermissions:
    admin: bool = False
    push: bool = False
    pull: bool = False
    maintain: Optional[bool] = None
    triage: Optional[bool] = None


@dataclass(frozen=True)
class Repository:
    """A repository (GitHub) or project (GitLab)."""

    platform: str
    id: Identifier
    owner: RepositoryOwner
    name: str
    full_name: str
    url: Optional[str] = None
    clone_url: Optional[str] = None
    ssh_url: Optional[str] = None
    description: Optional[str] = None
    private: bool = False
    fork: bool = False
    visibility: str = "public"
    default_branch: Optional[str] = None
    language: Optional[str] = None
    star_count: int = 0
    fork_count: int = 0
    open_issues_count: int = 0
    topics: Tuple[str, ...] = ()
    archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    pushed_at: Optional[datetime] = None
    license: Optional[RepositoryLicense] = None
    permissions: Optional[RepositoryPermissions] = None

    def __post_init__(self):
        if self.full_name != f"{self.owner.login}/{self.name}":
            raise ValueError(
                f"full_name {self.full_name!r} does not match "
                f"{self.owner.login!r}/{self.name!r}"
            )


@dataclass(frozen=True)
class RepositoryRef:
    """Parent repository reference carried by issues and pull requests."""

    name: str
    full_name: str
    url: Optional[str] = None


@dataclass(frozen=True)
class User:
    id: Identifier
    login: str
    type: str = "User"
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    url: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    blog: Optional[str] = None
    twitter_username: Optional[str] = None
    public_repos: Optional[int] = None
    followers: Optional[int] = None
    following: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Label:
    id: Identifier
    name: str
    color: str = ""
    description: Optional[str] = None
    default: bool = False


@dataclass(frozen=True)
class Milestone:
    id: Identifier
    title: str
    state: str
    number: Optional[int] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[str] = None
    closed_at: Optional[datetime] = None
    creator: Optional[User] = None
    open_issues: int = 0
    closed_issues: int = 0


@dataclass(frozen=True)
class Issue:
    """An issue. Never carries pull-request-only fields."""

    id: Identifier
    number: int
    title: str
    state: str
    author: User
    repository: RepositoryRef
    body: Optional[str] = None
    labels: Tuple[Label, ...] = ()
    assignees: Tuple[User, ...] = ()
    milestone: Optional[Milestone] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    url: Optional[str] = None
    comments: int = 0
    locked: bool = False
    state_reason: Optional[str] = None


@dataclass(frozen=True)
class Branch:
    name: str
    ref: str
    sha: str = ""
    repository_full_name: Optional[str] = None
    user: Optional[User] = None


@dataclass(frozen=True)
class PullRequest:
    """A pull request (GitHub) or merge request (GitLab)."""

    id: Identifier
    number: int
    title: str
    state: str
    author: User
    repository: RepositoryRef
    head: Branch
    base: Branch
    body: Optional[str] = None
    draft: bool = False
    labels: Tuple[Label, ...] = ()
    assignees: Tuple[User, ...] = ()
    reviewers: Tuple[User, ...] = ()
    milestone: Optional[Milestone] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    url: Optional[str] = None
    merged: bool = False
    merged_by: Optional[User] = None
    mergeable: Optional[bool] = None
    mergeable_state: Optional[str] = None
    comments: int = 0
    review_comments: int = 0
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0


@dataclass(frozen=True)
class CommitPerson:
    name: Optional[str] = None
    email: Optional[str] = None
    date: Optional[datetime] = None


@dataclass(frozen=True)
class CommitStats:
    additions: int = 0
    deletions: int = 0
    total: int = 0


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    author: CommitPerson
    committer: CommitPerson
    url: Optional[str] = None
    html_url: Optional[str] = None
    parents: Tuple[str, ...] = ()
    verified: Optional[bool] = None
    stats: Optional[CommitStats] = None


@dataclass(frozen=True)
class ReleaseAsset:
    id: Identifier
    name: str
    download_url: str
    content_type: str = "application/octet-stream"
    size: int = 0
    download_count: int = 0
    label: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Release:
    id: Identifier
    tag_name: str
    name: Optional[str] = None
    body: Optional[str] = None
    draft: bool = False
    prerelease: bool = False
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    author: Optional[User] = None
    url: Optional[str] = None
    html_url: Optional[str] = None
    assets: Tuple[ReleaseAsset, ...] = ()
    tarball_url: Optional[str] = None
    zipball_url: Optional[str] = None


@dataclass(frozen=True)
class RateLimitInfo:
    """Snapshot of the upstream quota. ``reset`` is an epoch timestamp."""

    limit: int
    remaining: int
    reset: int
    used: int = 0
    resource: str = "core"


@dataclass(frozen=True)
class SearchResults(Generic[T]):
    items: Tuple[T, ...]
    total_count: int
    page: int
    per_page: int
    has_next: bool = False
    has_previous: bool = False
    incomplete_results: bool = False


@dataclass(frozen=True)
class RepositoryStatistics:
    commit_count: int = 0
    storage_size: int = 0
    repository_size: int = 0
    lfs_objects_size: int = 0
    job_artifacts_size: int = 0


@dataclass(frozen=True)
class WebhookEvent:
    event: str
    action: Optional[str]
    repository: Optional[Repository]
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchResult:
    """
    Outcome of one item in a batch operation.

    Failures are captured here instead of failing the whole batch.
    """

    identifier: Any
    repository: Optional[Repository] = None
    error: Optional[str] = None
    success: bool = True
    exception: Optional[BaseException] = None
