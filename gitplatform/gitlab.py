"""
GitLab connector using the GitLab REST API v4.

This connector provides methods to retrieve projects, issues, merge
requests, users, commits, releases and project statistics from GitLab.com or
a self-managed instance, plus an OAuth helper for the web flow.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote

from gitplatform.base import Capability, GitConnector
from gitplatform.exceptions import GITLAB, GitPlatformError
from gitplatform.identifiers import (
    IssueIdentifierLike,
    RepoIdentifier,
    RepositoryIdentifierLike,
)
from gitplatform.models import (
    Branch,
    Commit,
    CommitPerson,
    CommitStats,
    Issue,
    Label,
    Milestone,
    PullRequest,
    RateLimitInfo,
    Release,
    ReleaseAsset,
    Repository,
    RepositoryLicense,
    RepositoryOwner,
    RepositoryPermissions,
    RepositoryRef,
    RepositoryStatistics,
    SearchResults,
    User,
    WebhookEvent,
)
from gitplatform.schemas.gitlab import (
    GitLabAccount,
    GitLabCommit,
    GitLabIssue,
    GitLabMergeRequest,
    GitLabMilestone,
    GitLabPermissions,
    GitLabProject,
    GitLabRelease,
    GitLabWebhook,
    GitLabWebhookProject,
)
from gitplatform.utils.pagination import extract_pagination_info
from gitplatform.utils.rest import DEFAULT_USER_AGENT, RESTClient, build_url

logger = logging.getLogger(__name__)

# Access levels: reporter 20, developer 30, maintainer 40, owner 50.
GUEST_ACCESS = 10
DEVELOPER_ACCESS = 30
MAINTAINER_ACCESS = 40

DEFAULT_RATE_LIMIT = 2000

_ISSUE_STATES = {"open": "opened", "closed": "closed", "all": None}
_MERGE_REQUEST_STATES = {"open": "opened", "closed": "closed", "merged": "merged", "all": None}
_SEARCH_ORDER_BY = {
    "updated": "updated_at",
    "created": "created_at",
    "stars": "star_count",
    "name": "name",
}
_VISIBILITY_LEVELS = {0: "private", 10: "internal", 20: "public"}


def web_base_url(api_url: str) -> str:
    """``https://gitlab.example.com/api/v4`` -> ``https://gitlab.example.com``."""
    url = api_url.rstrip("/")
    if url.endswith("/api/v4"):
        return url[: -len("/api/v4")]
    return url


def project_path(repo: RepoIdentifier) -> str:
    """URL-encoded project path as GitLab expects it in ``/projects/:id``."""
    return f"/projects/{quote(repo.full_name, safe='')}"


def normalize_state(state: Optional[str], merged: bool = False) -> str:
    """
    Map a GitLab issue or merge request state onto open/closed/merged.

    A merged flag always wins; ``opened`` becomes ``open``; anything else
    (``closed``, ``locked``) is closed.
    """
    if merged or state == "merged":
        return "merged"
    if state == "opened":
        return "open"
    return "closed"


def _count(value: Optional[str]) -> int:
    # changes_count is a string and may read "1000+".
    if not value:
        return 0
    try:
        return int(value.rstrip("+"))
    except ValueError:
        return 0


def _label_names(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return ",".join(value)
    return value


def _translate_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Accept GitHub-style field names for GitLab writes."""
    body: Dict[str, Any] = {}
    for key, value in fields.items():
        if key == "body":
            body["description"] = value
        elif key == "labels":
            body["labels"] = _label_names(value)
        elif key == "state":
            body["state_event"] = {"closed": "close", "open": "reopen"}.get(value, value)
        elif key == "head":
            body["source_branch"] = value
        elif key == "base":
            body["target_branch"] = value
        elif key == "milestone":
            body["milestone_id"] = value
        else:
            body[key] = value
    return body


class GitLabConnector(GitConnector):
    """
    Production-grade GitLab connector.

    Projects are addressed by their full namespace path, so nested groups
    work (``group/subgroup/project``). Merge requests are exposed as pull
    requests and ``iid`` becomes the human-facing ``number``.
    """

    platform = GITLAB
    capabilities = frozenset({Capability.REPOSITORY_STATISTICS, Capability.OAUTH})

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.token}"}

    # Transformations

    @staticmethod
    def _user(data: Optional[GitLabAccount]) -> User:
        if data is None:
            # Deleted accounts come back as null.
            return User(id=0, login="unknown")
        if data.bot:
            kind = "Bot"
        elif data.kind == "group":
            kind = "Organization"
        else:
            kind = "User"
        return User(
            id=data.id,
            login=data.username or data.path or "unknown",
            type=kind,
            name=data.name,
            email=data.email or data.public_email,
            avatar_url=data.avatar_url,
            url=data.web_url,
            company=data.organization,
            location=data.location,
            bio=data.bio,
            blog=data.website_url,
            twitter_username=data.twitter,
            followers=data.followers,
            following=data.following,
            created_at=data.created_at,
        )

    @staticmethod
    def _permissions(data: Optional[GitLabPermissions]) -> Optional[RepositoryPermissions]:
        if data is None:
            return None
        levels = [
            access.access_level
            for access in (data.project_access, data.group_access)
            if access is not None
        ]
        level = max(levels, default=0)
        return RepositoryPermissions(
            admin=level >= MAINTAINER_ACCESS,
            push=level >= DEVELOPER_ACCESS,
            pull=level >= GUEST_ACCESS,
            maintain=level >= MAINTAINER_ACCESS,
        )

    def _repository(self, data: GitLabProject) -> Repository:
        # The namespace path is the owner login so full_name stays owner/name.
        namespace = data.namespace
        owner_login, _, name = data.path_with_namespace.rpartition("/")
        owner = RepositoryOwner(
            id=namespace.id,
            login=owner_login,
            type="Organization" if namespace.kind == "group" else "User",
            name=namespace.name,
            avatar_url=namespace.avatar_url,
            url=namespace.web_url,
        )
        visibility = data.visibility or "private"
        license_ = None
        if data.license is not None:
            license_ = RepositoryLicense(
                key=data.license.key,
                name=data.license.name,
                spdx_id=data.license.nickname,
            )

        return Repository(
            platform=GITLAB,
            id=data.id,
            owner=owner,
            name=name,
            full_name=data.path_with_namespace,
            url=data.web_url,
            clone_url=data.http_url_to_repo,
            ssh_url=data.ssh_url_to_repo,
            description=data.description,
            private=visibility == "private",
            fork=data.forked_from_project is not None,
            visibility=visibility,
            default_branch=data.default_branch,
            star_count=data.star_count,
            fork_count=data.forks_count,
            open_issues_count=data.open_issues_count,
            topics=tuple(data.topics or data.tag_list),
            archived=data.archived,
            created_at=data.created_at,
            updated_at=data.last_activity_at,
            pushed_at=data.last_activity_at,
            license=license_,
            permissions=self._permissions(data.permissions),
        )

    @staticmethod
    def _webhook_repository(data: GitLabWebhookProject) -> Repository:
        owner_login, _, name = data.path_with_namespace.rpartition("/")
        visibility = _VISIBILITY_LEVELS.get(data.visibility_level, "private")
        return Repository(
            platform=GITLAB,
            id=data.id,
            owner=RepositoryOwner(id=0, login=owner_login, name=data.namespace),
            name=name,
            full_name=data.path_with_namespace,
            url=data.web_url,
            clone_url=data.git_http_url,
            ssh_url=data.git_ssh_url,
            description=data.description,
            private=visibility == "private",
            visibility=visibility,
            default_branch=data.default_branch,
        )

    def _repo_ref(self, repo: RepoIdentifier) -> RepositoryRef:
        return RepositoryRef(
            name=repo.repo,
            full_name=repo.full_name,
            url=f"{web_base_url(self.config.base_url)}/{repo.full_name}",
        )

    @staticmethod
    def _labels(names: Sequence[str]) -> tuple:
        return tuple(Label(id=name, name=name) for name in names)

    @staticmethod
    def _milestone(data: Optional[GitLabMilestone]) -> Optional[Milestone]:
        if data is None:
            return None
        return Milestone(
            id=data.id,
            number=data.iid,
            title=data.title,
            state="open" if data.state == "active" else "closed",
            description=data.description,
            created_at=data.created_at,
            updated_at=data.updated_at,
            due_date=data.due_date,
            closed_at=data.updated_at if data.state == "closed" else None,
        )

    def _issue(self, data: GitLabIssue, repo: RepoIdentifier) -> Issue:
        return Issue(
            id=data.id,
            number=data.iid,
            title=data.title,
            state="open" if normalize_state(data.state) == "open" else "closed",
            author=self._user(data.author),
            repository=self._repo_ref(repo),
            body=data.description,
            labels=self._labels(data.labels),
            assignees=tuple(self._user(user) for user in data.assignees),
            milestone=self._milestone(data.milestone),
            created_at=data.created_at,
            updated_at=data.updated_at,
            closed_at=data.closed_at,
            url=data.web_url,
            comments=data.user_notes_count,
            locked=bool(data.discussion_locked),
        )

    def _pull_request(self, data: GitLabMergeRequest, repo: RepoIdentifier) -> PullRequest:
        author = self._user(data.author)
        merged = data.state == "merged" or data.merged_at is not None
        return PullRequest(
            id=data.id,
            number=data.iid,
            title=data.title,
            state=normalize_state(data.state, merged=merged),
            author=author,
            repository=self._repo_ref(repo),
            head=Branch(
                name=data.source_branch,
                ref=data.source_branch,
                sha=data.sha or "",
                repository_full_name=repo.full_name,
                user=author,
            ),
            base=Branch(
                name=data.target_branch,
                ref=data.target_branch,
                repository_full_name=repo.full_name,
                user=author,
            ),
            body=data.description,
            draft=data.draft or data.work_in_progress,
            labels=self._labels(data.labels),
            assignees=tuple(self._user(user) for user in data.assignees),
            reviewers=tuple(self._user(user) for user in data.reviewers),
            milestone=self._milestone(data.milestone),
            created_at=data.created_at,
            updated_at=data.updated_at,
            closed_at=data.closed_at,
            merged_at=data.merged_at,
            url=data.web_url,
            merged=merged,
            merged_by=self._user(data.merged_by) if data.merged_by else None,
            mergeable=data.merge_status == "can_be_merged" if data.merge_status else None,
            mergeable_state=data.detailed_merge_status or data.merge_status,
            comments=data.user_notes_count,
            changed_files=_count(data.changes_count),
        )

    @staticmethod
    def _commit(data: GitLabCommit) -> Commit:
        return Commit(
            sha=data.id,
            message=data.message,
            author=CommitPerson(
                name=data.author_name, email=data.author_email, date=data.authored_date
            ),
            committer=CommitPerson(
                name=data.committer_name,
                email=data.committer_email,
                date=data.committed_date,
            ),
            url=data.web_url,
            html_url=data.web_url,
            parents=tuple(data.parent_ids),
            stats=CommitStats(**data.stats.model_dump()) if data.stats else None,
        )

    def _release(self, data: GitLabRelease, repo: RepoIdentifier) -> Release:
        html_url = (
            f"{web_base_url(self.config.base_url)}/{repo.full_name}"
            f"/-/releases/{quote(data.tag_name, safe='')}"
        )
        assets = data.assets.links if data.assets else []
        sources = {s.format: s.url for s in data.assets.sources} if data.assets else {}
        return Release(
            id=data.tag_name,
            tag_name=data.tag_name,
            name=data.name,
            body=data.description,
            prerelease=data.upcoming_release,
            created_at=data.created_at,
            published_at=data.released_at or data.created_at,
            author=self._user(data.author) if data.author else None,
            url=html_url,
            html_url=html_url,
            assets=tuple(
                ReleaseAsset(
                    id=link.id,
                    name=link.name,
                    download_url=link.direct_asset_url or link.url,
                    created_at=data.created_at,
                    updated_at=data.created_at,
                )
                for link in assets
            ),
            tarball_url=sources.get("tar.gz"),
            zipball_url=sources.get("zip"),
        )

    # Reads

    async def get_repository(
        self, identifier: RepositoryIdentifierLike, refresh: bool = False
    ) -> Repository:
        repo = self._repo(identifier)
        return await self._get(
            project_path(repo),
            GitLabProject,
            lambda data, _: self._repository(data),
            tags=[f"repo:{repo.full_name}"],
            refresh=refresh,
        )

    async def search_repositories(
        self,
        query: str,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> SearchResults:
        """
        Search projects.

        :param query: Free text matched against project names and paths.
        :param sort: 'updated', 'created', 'stars', 'name' or a GitLab
                     ``order_by`` value.
        :param order: 'asc' or 'desc'.
        :return: SearchResults of Repository objects.
        """
        if not query or not query.strip():
            raise GitPlatformError.validation("Search query must not be empty", GITLAB)
        params: Dict[str, Any] = {
            "search": query,
            "order_by": _SEARCH_ORDER_BY.get(sort, sort) if sort else None,
            "sort": order,
            "simple": False,
        }
        params.update(self._page_params(page, per_page))
        params = {k: v for k, v in params.items() if v is not None}

        def transform(data: List[GitLabProject], response) -> SearchResults:
            headers = response.headers
            pagination = extract_pagination_info(headers)
            total = headers.get("x-total")
            total_count = int(total) if total and total.isdigit() else len(data)
            if "x-next-page" in headers:
                has_next = bool(headers["x-next-page"].strip())
            elif headers.get("link"):
                has_next = pagination.has_next
            else:
                has_next = len(data) == per_page
            if "x-prev-page" in headers:
                has_previous = bool(headers["x-prev-page"].strip())
            else:
                has_previous = pagination.has_previous or page > 1
            return SearchResults(
                items=tuple(self._repository(item) for item in data),
                total_count=total_count,
                page=page,
                per_page=per_page,
                has_next=has_next,
                has_previous=has_previous,
            )

        return await self._get("/projects", List[GitLabProject], transform, params=params)

    async def get_issues(
        self,
        identifier: RepositoryIdentifierLike,
        state: str = "open",
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Issue]:
        """
        List issues of a project.

        :param state: 'open', 'closed' or 'all'.
        :param filters: labels, order_by, sort, assignee_id, author_id,
                        created_after, created_before or updated_after.
        """
        repo = self._repo(identifier)
        if state not in _ISSUE_STATES:
            raise GitPlatformError.validation(f"Invalid issue state: {state}", GITLAB)
        params: Dict[str, Any] = {"state": _ISSUE_STATES[state]}
        params.update({k: v for k, v in (filters or {}).items() if v is not None})
        params["labels"] = _label_names(params.get("labels"))
        params.update(self._page_params(page, per_page))
        params = {k: v for k, v in params.items() if v is not None}

        return await self._get(
            f"{project_path(repo)}/issues",
            List[GitLabIssue],
            lambda data, _: [self._issue(item, repo) for item in data],
            params=params,
            tags=[f"issues:{repo.full_name}", f"issues:{repo.full_name}:{state}"],
        )

    async def get_issue(self, identifier: IssueIdentifierLike) -> Issue:
        ref = self._issue_ref(identifier)
        return await self._get(
            f"{project_path(ref.repository)}/issues/{ref.number}",
            GitLabIssue,
            lambda data, _: self._issue(data, ref.repository),
            tags=[f"issue:{ref.full_name}:{ref.number}"],
        )

    async def get_pull_requests(
        self,
        identifier: RepositoryIdentifierLike,
        state: str = "open",
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[PullRequest]:
        """
        List merge requests of a project.

        :param state: 'open', 'closed', 'merged' or 'all'.
        :param filters: source_branch, target_branch, order_by or sort.
        """
        repo = self._repo(identifier)
        if state not in _MERGE_REQUEST_STATES:
            raise GitPlatformError.validation(
                f"Invalid merge request state: {state}", GITLAB
            )
        params: Dict[str, Any] = {"state": _MERGE_REQUEST_STATES[state]}
        params.update({k: v for k, v in (filters or {}).items() if v is not None})
        params.update(self._page_params(page, per_page))
        params = {k: v for k, v in params.items() if v is not None}

        return await self._get(
            f"{project_path(repo)}/merge_requests",
            List[GitLabMergeRequest],
            lambda data, _: [self._pull_request(item, repo) for item in data],
            params=params,
            tags=[f"pulls:{repo.full_name}"],
        )

    async def get_pull_request(self, identifier: IssueIdentifierLike) -> PullRequest:
        ref = self._issue_ref(identifier)
        return await self._get(
            f"{project_path(ref.repository)}/merge_requests/{ref.number}",
            GitLabMergeRequest,
            lambda data, _: self._pull_request(data, ref.repository),
            tags=[f"pull:{ref.full_name}:{ref.number}"],
        )

    async def get_user(self, username: str) -> User:
        """
        Get a user by username.

        GitLab only looks users up by id, so this resolves the username
        first and then fetches the full profile.
        """
        if not username or "/" in username:
            raise GitPlatformError.validation(f"Invalid username: {username!r}", GITLAB)
        user_ids = await self._get(
            "/users",
            List[GitLabAccount],
            lambda data, _: tuple(user.id for user in data),
            params={"username": username},
            tags=[f"user:{username}"],
        )
        if not user_ids:
            raise GitPlatformError(f"User '{username}' not found", GITLAB, 404)
        return await self._get(
            f"/users/{user_ids[0]}",
            GitLabAccount,
            lambda data, _: self._user(data),
            tags=[f"user:{username}"],
        )

    async def get_authenticated_user(self) -> User:
        return await self._get("/user", GitLabAccount, lambda data, _: self._user(data))

    async def get_commits(
        self,
        identifier: RepositoryIdentifierLike,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Commit]:
        """
        List commits of a project.

        :param filters: ref_name, path, author, since, until or with_stats.
        """
        repo = self._repo(identifier)
        params = {k: v for k, v in (filters or {}).items() if v is not None}
        params.update(self._page_params(page, per_page))
        return await self._get(
            f"{project_path(repo)}/repository/commits",
            List[GitLabCommit],
            lambda data, _: [self._commit(item) for item in data],
            params=params,
            tags=[f"commits:{repo.full_name}"],
        )

    async def get_releases(
        self, identifier: RepositoryIdentifierLike, page: int = 1, per_page: int = 30
    ) -> List[Release]:
        repo = self._repo(identifier)
        return await self._get(
            f"{project_path(repo)}/releases",
            List[GitLabRelease],
            lambda data, _: [self._release(item, repo) for item in data],
            params=self._page_params(page, per_page),
            tags=[f"releases:{repo.full_name}"],
        )

    async def get_rate_limit(self) -> RateLimitInfo:
        """
        Read the rate limit from the headers of ``GET /user``.

        GitLab has no rate limit endpoint; without headers the documented
        default of 2000 requests per hour is reported.
        """
        response = await self._request("GET", "/user")
        if response.rate_limit_info is not None:
            return response.rate_limit_info
        return RateLimitInfo(
            limit=DEFAULT_RATE_LIMIT,
            remaining=DEFAULT_RATE_LIMIT,
            reset=int(time.time()) + 3600,
            used=0,
            resource="api",
        )

    async def get_repository_statistics(
        self, identifier: RepositoryIdentifierLike
    ) -> RepositoryStatistics:
        self._require(Capability.REPOSITORY_STATISTICS)
        repo = self._repo(identifier)

        def transform(data: GitLabProject, _) -> RepositoryStatistics:
            if data.statistics is None:
                return RepositoryStatistics()
            return RepositoryStatistics(**data.statistics.model_dump())

        return await self._get(
            project_path(repo),
            GitLabProject,
            transform,
            params={"statistics": True},
            tags=[f"repo:{repo.full_name}"],
        )

    # Writes

    async def create_issue(
        self, identifier: RepositoryIdentifierLike, fields: Dict[str, Any]
    ) -> Issue:
        """
        Create an issue.

        :param fields: title (required), body/description, labels,
                       assignee_ids, milestone/milestone_id.
        """
        repo = self._repo(identifier)
        if not fields.get("title"):
            raise GitPlatformError.validation("Cannot create issue: missing title", GITLAB)
        issue = await self._write(
            "POST",
            f"{project_path(repo)}/issues",
            _translate_fields(fields),
            GitLabIssue,
            lambda data, _: self._issue(data, repo),
            invalidate=[f"issues:{repo.full_name}"],
        )
        logger.info(f"Created issue {repo.full_name}#{issue.number}")
        return issue

    async def update_issue(
        self, identifier: IssueIdentifierLike, fields: Dict[str, Any]
    ) -> Issue:
        """
        Update an issue.

        ``state`` 'closed'/'open' is sent as the matching ``state_event``.
        """
        ref = self._issue_ref(identifier)
        if not fields:
            raise GitPlatformError.validation("No fields to update", GITLAB)
        return await self._write(
            "PUT",
            f"{project_path(ref.repository)}/issues/{ref.number}",
            _translate_fields(fields),
            GitLabIssue,
            lambda data, _: self._issue(data, ref.repository),
            invalidate=[f"issue:{ref.full_name}:{ref.number}", f"issues:{ref.full_name}"],
        )

    async def create_pull_request(
        self, identifier: RepositoryIdentifierLike, fields: Dict[str, Any]
    ) -> PullRequest:
        """
        Open a merge request.

        :param fields: title, head/source_branch and base/target_branch
                       (required), body/description, labels.
        """
        repo = self._repo(identifier)
        body = _translate_fields(fields)
        missing = [
            name for name in ("title", "source_branch", "target_branch") if not body.get(name)
        ]
        if missing:
            raise GitPlatformError.validation(
                f"Cannot create merge request: missing {', '.join(missing)}", GITLAB
            )
        pull = await self._write(
            "POST",
            f"{project_path(repo)}/merge_requests",
            body,
            GitLabMergeRequest,
            lambda data, _: self._pull_request(data, repo),
            invalidate=[f"pulls:{repo.full_name}"],
        )
        logger.info(f"Created merge request {repo.full_name}!{pull.number}")
        return pull

    # Webhooks

    def process_webhook_payload(
        self,
        payload: Union[str, bytes, Mapping[str, Any]],
        event: Optional[str] = None,
    ) -> WebhookEvent:
        data = self._load_webhook(payload)
        parsed = self._validate(GitLabWebhook, data, "webhook")
        action = parsed.object_attributes.action if parsed.object_attributes else None
        return WebhookEvent(
            event=event or parsed.object_kind or parsed.event_name or "unknown",
            action=action,
            repository=(
                self._transform(self._webhook_repository, "webhook", parsed.project)
                if parsed.project
                else None
            ),
            data=data,
        )


class GitLabOAuth:
    """
    OAuth 2 authorization code flow against a GitLab instance.

    Token requests go through the shared REST transport, so they get the
    same timeout and retry handling as API calls.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        base_url: str = "https://gitlab.com",
        rest: Optional[RESTClient] = None,
    ):
        """
        Initialize the OAuth helper.

        :param client_id: Application id.
        :param client_secret: Application secret.
        :param redirect_uri: Callback URL registered with the application.
        :param base_url: GitLab web URL (not the API URL).
        :param rest: Optional transport to reuse.
        """
        if not client_id or not client_secret or not redirect_uri:
            raise GitPlatformError.validation(
                "client_id, client_secret and redirect_uri are required", GITLAB
            )
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.base_url = web_base_url(base_url)
        self.rest = rest or RESTClient(platform=GITLAB, user_agent=DEFAULT_USER_AGENT)

    def get_authorization_url(
        self, state: Optional[str] = None, scopes: Sequence[str] = ("api",)
    ) -> str:
        return build_url(
            self.base_url,
            "/oauth/authorize",
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(scopes),
                "state": state,
            },
        )

    async def _token_request(self, body: Dict[str, Any]) -> Dict[str, Any]:
        body = {"client_id": self.client_id, "client_secret": self.client_secret, **body}
        response = await self.rest.request(
            build_url(self.base_url, "/oauth/token"),
            method="POST",
            body=body,
            platform=GITLAB,
        )
        if not isinstance(response.data, dict) or "access_token" not in response.data:
            raise GitPlatformError("OAuth response did not include an access token", GITLAB)
        return response.data

    async def get_access_token(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for tokens.

        :return: Token response with access_token, token_type, expires_in,
                 refresh_token and scope.
        """
        if not code:
            raise GitPlatformError.validation("Authorization code is required", GITLAB)
        return await self._token_request(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            }
        )

    async def refresh_token(self, refresh_token: str) -> Dict[str, Any]:
        if not refresh_token:
            raise GitPlatformError.validation("Refresh token is required", GITLAB)
        return await self._token_request(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"}
        )

    def close(self) -> None:
        self.rest.close()
