from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GitLabModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitLabAccount(GitLabModel):
    """A user, or a namespace when it stands in as a project owner."""

    id: int
    username: Optional[str] = None
    path: Optional[str] = None
    full_path: Optional[str] = None
    kind: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    public_email: Optional[str] = None
    avatar_url: Optional[str] = None
    web_url: Optional[str] = None
    bot: bool = False
    organization: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    website_url: Optional[str] = None
    twitter: Optional[str] = None
    followers: Optional[int] = None
    following: Optional[int] = None
    created_at: Optional[datetime] = None
    last_activity_on: Optional[date] = None


class GitLabAccessLevel(GitLabModel):
    access_level: int = 0


class GitLabPermissions(GitLabModel):
    project_access: Optional[GitLabAccessLevel] = None
    group_access: Optional[GitLabAccessLevel] = None


class GitLabLicense(GitLabModel):
    key: str
    name: str
    nickname: Optional[str] = None


class GitLabStatistics(GitLabModel):
    commit_count: int = 0
    storage_size: int = 0
    repository_size: int = 0
    lfs_objects_size: int = 0
    job_artifacts_size: int = 0


class GitLabProject(GitLabModel):
    id: int
    name: str
    path: str
    path_with_namespace: str
    namespace: GitLabAccount
    owner: Optional[GitLabAccount] = None
    description: Optional[str] = None
    visibility: Optional[str] = None
    web_url: Optional[str] = None
    http_url_to_repo: Optional[str] = None
    ssh_url_to_repo: Optional[str] = None
    default_branch: Optional[str] = None
    star_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    topics: List[str] = Field(default_factory=list)
    tag_list: List[str] = Field(default_factory=list)
    archived: bool = False
    forked_from_project: Optional[dict] = None
    created_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    license: Optional[GitLabLicense] = None
    permissions: Optional[GitLabPermissions] = None
    statistics: Optional[GitLabStatistics] = None


class GitLabMilestone(GitLabModel):
    id: int
    iid: Optional[int] = None
    title: str
    state: str = "active"
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[str] = None


class GitLabIssue(GitLabModel):
    id: int
    iid: int
    title: str
    state: str = "opened"
    author: Optional[GitLabAccount] = None
    description: Optional[str] = None
    labels: List[str] = Field(default_factory=list)
    assignees: List[GitLabAccount] = Field(default_factory=list)
    milestone: Optional[GitLabMilestone] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    web_url: Optional[str] = None
    user_notes_count: int = 0
    discussion_locked: Optional[bool] = None


class GitLabMergeRequest(GitLabModel):
    id: int
    iid: int
    title: str
    state: str = "opened"
    author: Optional[GitLabAccount] = None
    source_branch: str
    target_branch: str
    description: Optional[str] = None
    draft: bool = False
    work_in_progress: bool = False
    labels: List[str] = Field(default_factory=list)
    assignees: List[GitLabAccount] = Field(default_factory=list)
    reviewers: List[GitLabAccount] = Field(default_factory=list)
    milestone: Optional[GitLabMilestone] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    web_url: Optional[str] = None
    sha: Optional[str] = None
    merged_by: Optional[GitLabAccount] = None
    merge_status: Optional[str] = None
    detailed_merge_status: Optional[str] = None
    user_notes_count: int = 0
    changes_count: Optional[str] = None


class GitLabCommitStats(GitLabModel):
    additions: int = 0
    deletions: int = 0
    total: int = 0


class GitLabCommit(GitLabModel):
    id: str
    message: str = ""
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    authored_date: Optional[datetime] = None
    committer_name: Optional[str] = None
    committer_email: Optional[str] = None
    committed_date: Optional[datetime] = None
    web_url: Optional[str] = None
    parent_ids: List[str] = Field(default_factory=list)
    stats: Optional[GitLabCommitStats] = None


class GitLabReleaseLink(GitLabModel):
    id: int
    name: str
    url: str
    direct_asset_url: Optional[str] = None
    link_type: Optional[str] = None


class GitLabReleaseSource(GitLabModel):
    format: str
    url: str


class GitLabReleaseAssets(GitLabModel):
    links: List[GitLabReleaseLink] = Field(default_factory=list)
    sources: List[GitLabReleaseSource] = Field(default_factory=list)


class GitLabRelease(GitLabModel):
    tag_name: str
    name: Optional[str] = None
    description: Optional[str] = None
    upcoming_release: bool = False
    created_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    author: Optional[GitLabAccount] = None
    assets: Optional[GitLabReleaseAssets] = None


class GitLabWebhookProject(GitLabModel):
    """Project as embedded in webhook payloads; ``namespace`` is a plain name."""

    id: int
    name: str
    path_with_namespace: str
    namespace: Optional[str] = None
    description: Optional[str] = None
    web_url: Optional[str] = None
    git_http_url: Optional[str] = None
    git_ssh_url: Optional[str] = None
    default_branch: Optional[str] = None
    visibility_level: int = 0


class GitLabWebhookAttributes(GitLabModel):
    action: Optional[str] = None


class GitLabWebhook(GitLabModel):
    object_kind: Optional[str] = None
    event_name: Optional[str] = None
    project: Optional[GitLabWebhookProject] = None
    object_attributes: Optional[GitLabWebhookAttributes] = None
