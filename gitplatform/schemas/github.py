from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubAccount(GitHubModel):
    id: int
    login: str
    type: str = "User"
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
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


class GitHubLicense(GitHubModel):
    key: str
    name: str
    spdx_id: Optional[str] = None


class GitHubPermissions(GitHubModel):
    admin: bool = False
    push: bool = False
    pull: bool = False
    maintain: Optional[bool] = None
    triage: Optional[bool] = None


class GitHubRepository(GitHubModel):
    id: int
    name: str
    full_name: str
    owner: GitHubAccount
    private: bool = False
    fork: bool = False
    visibility: Optional[str] = None
    description: Optional[str] = None
    html_url: Optional[str] = None
    clone_url: Optional[str] = None
    ssh_url: Optional[str] = None
    default_branch: Optional[str] = None
    language: Optional[str] = None
    stargazers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    topics: List[str] = Field(default_factory=list)
    archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    pushed_at: Optional[datetime] = None
    license: Optional[GitHubLicense] = None
    permissions: Optional[GitHubPermissions] = None


class GitHubSearchRepositories(GitHubModel):
    total_count: int = 0
    incomplete_results: bool = False
    items: List[GitHubRepository] = Field(default_factory=list)


class GitHubLabel(GitHubModel):
    id: int
    name: str
    color: str = ""
    description: Optional[str] = None
    default: bool = False


class GitHubMilestone(GitHubModel):
    id: int
    number: Optional[int] = None
    title: str
    state: str = "open"
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_on: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    creator: Optional[GitHubAccount] = None
    open_issues: int = 0
    closed_issues: int = 0


class GitHubIssue(GitHubModel):
    id: int
    number: int
    title: str
    state: str = "open"
    user: GitHubAccount
    body: Optional[str] = None
    labels: List[GitHubLabel] = Field(default_factory=list)
    assignees: List[GitHubAccount] = Field(default_factory=list)
    milestone: Optional[GitHubMilestone] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    html_url: Optional[str] = None
    comments: int = 0
    locked: bool = False
    state_reason: Optional[str] = None
    # Present only when the "issue" is really a pull request.
    pull_request: Optional[Dict[str, Any]] = None


class GitHubBranchRef(GitHubModel):
    label: Optional[str] = None
    ref: str
    sha: str = ""
    user: Optional[GitHubAccount] = None
    repo: Optional[GitHubRepository] = None


class GitHubPullRequest(GitHubModel):
    id: int
    number: int
    title: str
    state: str = "open"
    user: GitHubAccount
    head: GitHubBranchRef
    base: GitHubBranchRef
    body: Optional[str] = None
    draft: bool = False
    labels: List[GitHubLabel] = Field(default_factory=list)
    assignees: List[GitHubAccount] = Field(default_factory=list)
    requested_reviewers: List[GitHubAccount] = Field(default_factory=list)
    milestone: Optional[GitHubMilestone] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    html_url: Optional[str] = None
    merged: bool = False
    merged_by: Optional[GitHubAccount] = None
    mergeable: Optional[bool] = None
    mergeable_state: Optional[str] = None
    comments: int = 0
    review_comments: int = 0
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0


class GitHubCommitPerson(GitHubModel):
    name: Optional[str] = None
    email: Optional[str] = None
    date: Optional[datetime] = None


class GitHubVerification(GitHubModel):
    verified: bool = False


class GitHubCommitDetail(GitHubModel):
    message: str = ""
    author: Optional[GitHubCommitPerson] = None
    committer: Optional[GitHubCommitPerson] = None
    verification: Optional[GitHubVerification] = None


class GitHubCommitParent(GitHubModel):
    sha: str


class GitHubCommitStats(GitHubModel):
    additions: int = 0
    deletions: int = 0
    total: int = 0


class GitHubCommit(GitHubModel):
    sha: str
    commit: GitHubCommitDetail
    url: Optional[str] = None
    html_url: Optional[str] = None
    parents: List[GitHubCommitParent] = Field(default_factory=list)
    stats: Optional[GitHubCommitStats] = None


class GitHubReleaseAsset(GitHubModel):
    id: int
    name: str
    browser_download_url: str
    content_type: str = "application/octet-stream"
    size: int = 0
    download_count: int = 0
    label: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GitHubRelease(GitHubModel):
    id: int
    tag_name: str
    name: Optional[str] = None
    body: Optional[str] = None
    draft: bool = False
    prerelease: bool = False
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    author: Optional[GitHubAccount] = None
    url: Optional[str] = None
    html_url: Optional[str] = None
    assets: List[GitHubReleaseAsset] = Field(default_factory=list)
    tarball_url: Optional[str] = None
    zipball_url: Optional[str] = None


class GitHubRateLimitResource(GitHubModel):
    limit: int
    remaining: int
    reset: int
    used: int = 0


class GitHubRateLimitResources(GitHubModel):
    core: GitHubRateLimitResource


class GitHubRateLimit(GitHubModel):
    resources: GitHubRateLimitResources


class GitHubWebhook(GitHubModel):
    action: Optional[str] = None
    repository: Optional[GitHubRepository] = None
