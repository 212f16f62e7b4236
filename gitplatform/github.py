"""
GitHub connector using the GitHub REST API v3.

This connector provides methods to retrieve repositories, issues, pull
requests, users, commits and releases from GitHub or GitHub Enterprise, and
to create and update issues and pull requests.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from gitplatform.base import Capability, GitConnector
from gitplatform.exceptions import GITHUB, GitPlatformError
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
    SearchResults,
    User,
    WebhookEvent,
)
from gitplatform.schemas.github import (
    GitHubAccount,
    GitHubBranchRef,
    GitHubCommit,
    GitHubCommitPerson,
    GitHubIssue,
    GitHubLabel,
    GitHubMilestone,
    GitHubPullRequest,
    GitHubRateLimit,
    GitHubRelease,
    GitHubRepository,
    GitHubSearchRepositories,
    GitHubWebhook,
)
from gitplatform.utils.pagination import extract_pagination_info

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


def web_base_url(api_url: str) -> str:
    """
    Map an API base URL to the matching web host.

    ``https://api.github.com`` becomes ``https://github.com``; GitHub
    Enterprise ``https://host/api/v3`` becomes ``https://host``.
    """
    url = api_url.rstrip("/")
    if url == "https://api.github.com":
        return "https://github.com"
    if url.endswith("/api/v3"):
        return url[: -len("/api/v3")]
    return url


def _filter_params(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop unset filters; list values such as labels become comma lists."""
    params: Dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        params[key] = value
    return params


def _require_fields(fields: Mapping[str, Any], names: List[str], action: str) -> None:
    missing = [name for name in names if not fields.get(name)]
    if missing:
        raise GitPlatformError.validation(
            f"Cannot {action}: missing {', '.join(missing)}", GITHUB
        )


class GitHubConnector(GitConnector):
    """
    Production-grade GitHub connector.

    Reads are cached and tagged per repository so writes can invalidate
    exactly the listings they affect.
    """

    platform = GITHUB
    capabilities = frozenset({Capability.RATE_LIMIT_ENDPOINT})

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "X-GitHub-Api-Version": API_VERSION,
        }

    # Transformations

    def _user(self, data: GitHubAccount) -> User:
        return User(
            id=data.id,
            login=data.login,
            type=data.type,
            name=data.name,
            email=data.email,
            avatar_url=data.avatar_url,
            url=data.html_url,
            company=data.company,
            location=data.location,
            bio=data.bio,
            blog=data.blog,
            twitter_username=data.twitter_username,
            public_repos=data.public_repos,
            followers=data.followers,
            following=data.following,
            created_at=data.created_at,
            updated_at=data.updated_at,
        )

    def _repository(self, data: GitHubRepository) -> Repository:
        owner = RepositoryOwner(
            id=data.owner.id,
            login=data.owner.login,
            type=data.owner.type,
            name=data.owner.name,
            avatar_url=data.owner.avatar_url,
            url=data.owner.html_url,
        )
        license_ = None
        if data.license is not None:
            license_ = RepositoryLicense(
                key=data.license.key,
                name=data.license.name,
                spdx_id=data.license.spdx_id,
            )
        permissions = None
        if data.permissions is not None:
            permissions = RepositoryPermissions(**data.permissions.model_dump())

        return Repository(
            platform=GITHUB,
            id=data.id,
            owner=owner,
            name=data.name,
            full_name=data.full_name,
            url=data.html_url,
            clone_url=data.clone_url,
            ssh_url=data.ssh_url,
            description=data.description,
            private=data.private,
            fork=data.fork,
            visibility=data.visibility or ("private" if data.private else "public"),
            default_branch=data.default_branch,
            language=data.language,
            star_count=data.stargazers_count,
            fork_count=data.forks_count,
            open_issues_count=data.open_issues_count,
            topics=tuple(data.topics),
            archived=data.archived,
            created_at=data.created_at,
            updated_at=data.updated_at,
            pushed_at=data.pushed_at,
            license=license_,
            permissions=permissions,
        )

    def _repo_ref(self, repo: RepoIdentifier) -> RepositoryRef:
        return RepositoryRef(
            name=repo.repo,
            full_name=repo.full_name,
            url=f"{web_base_url(self.config.base_url)}/{repo.full_name}",
        )

    @staticmethod
    def _label(data: GitHubLabel) -> Label:
        return Label(
            id=data.id,
            name=data.name,
            color=data.color,
            description=data.description,
            default=data.default,
        )

    def _milestone(self, data: Optional[GitHubMilestone]) -> Optional[Milestone]:
        if data is None:
            return None
        return Milestone(
            id=data.id,
            number=data.number,
            title=data.title,
            state=data.state,
            description=data.description,
            created_at=data.created_at,
            updated_at=data.updated_at,
            due_date=data.due_on.date().isoformat() if data.due_on else None,
            closed_at=data.closed_at,
            creator=self._user(data.creator) if data.creator else None,
            open_issues=data.open_issues,
            closed_issues=data.closed_issues,
        )

    def _issue(self, data: GitHubIssue, repo: RepoIdentifier) -> Issue:
        return Issue(
            id=data.id,
            number=data.number,
            title=data.title,
            state="closed" if data.state == "closed" else "open",
            author=self._user(data.user),
            repository=self._repo_ref(repo),
            body=data.body,
            labels=tuple(self._label(label) for label in data.labels),
            assignees=tuple(self._user(user) for user in data.assignees),
            milestone=self._milestone(data.milestone),
            created_at=data.created_at,
            updated_at=data.updated_at,
            closed_at=data.closed_at,
            url=data.html_url,
            comments=data.comments,
            locked=data.locked,
            state_reason=data.state_reason,
        )

    def _branch(self, data: GitHubBranchRef) -> Branch:
        return Branch(
            name=data.ref,
            ref=data.ref,
            sha=data.sha,
            repository_full_name=data.repo.full_name if data.repo else None,
            user=self._user(data.user) if data.user else None,
        )

    def _pull_request(self, data: GitHubPullRequest, repo: RepoIdentifier) -> PullRequest:
        merged = data.merged or data.merged_at is not None
        if merged:
            state = "merged"
        else:
            state = "closed" if data.state == "closed" else "open"

        return PullRequest(
            id=data.id,
            number=data.number,
            title=data.title,
            state=state,
            author=self._user(data.user),
            repository=self._repo_ref(repo),
            head=self._branch(data.head),
            base=self._branch(data.base),
            body=data.body,
            draft=data.draft,
            labels=tuple(self._label(label) for label in data.labels),
            assignees=tuple(self._user(user) for user in data.assignees),
            reviewers=tuple(self._user(user) for user in data.requested_reviewers),
            milestone=self._milestone(data.milestone),
            created_at=data.created_at,
            updated_at=data.updated_at,
            closed_at=data.closed_at,
            merged_at=data.merged_at,
            url=data.html_url,
            merged=merged,
            merged_by=self._user(data.merged_by) if data.merged_by else None,
            mergeable=data.mergeable,
            mergeable_state=data.mergeable_state,
            comments=data.comments,
            review_comments=data.review_comments,
            commits=data.commits,
            additions=data.additions,
            deletions=data.deletions,
            changed_files=data.changed_files,
        )

    @staticmethod
    def _person(data: Optional[GitHubCommitPerson]) -> CommitPerson:
        if data is None:
            return CommitPerson()
        return CommitPerson(name=data.name, email=data.email, date=data.date)

    def _commit(self, data: GitHubCommit) -> Commit:
        verification = data.commit.verification
        return Commit(
            sha=data.sha,
            message=data.commit.message,
            author=self._person(data.commit.author),
            committer=self._person(data.commit.committer),
            url=data.url,
            html_url=data.html_url,
            parents=tuple(parent.sha for parent in data.parents),
            verified=verification.verified if verification else None,
            stats=CommitStats(**data.stats.model_dump()) if data.stats else None,
        )

    def _release(self, data: GitHubRelease) -> Release:
        return Release(
            id=data.id,
            tag_name=data.tag_name,
            name=data.name,
            body=data.body,
            draft=data.draft,
            prerelease=data.prerelease,
            created_at=data.created_at,
            published_at=data.published_at,
            author=self._user(data.author) if data.author else None,
            url=data.url,
            html_url=data.html_url,
            assets=tuple(
                ReleaseAsset(
                    id=asset.id,
                    name=asset.name,
                    download_url=asset.browser_download_url,
                    content_type=asset.content_type,
                    size=asset.size,
                    download_count=asset.download_count,
                    label=asset.label,
                    created_at=asset.created_at,
                    updated_at=asset.updated_at,
                )
                for asset in data.assets
            ),
            tarball_url=data.tarball_url,
            zipball_url=data.zipball_url,
        )

    # Reads

    async def get_repository(
        self, identifier: RepositoryIdentifierLike, refresh: bool = False
    ) -> Repository:
        repo = self._repo(identifier)
        return await self._get(
            f"/repos/{repo.full_name}",
            GitHubRepository,
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
        Search repositories.

        :param query: GitHub search query (e.g. ``language:python stars:>100``).
        :param sort: 'stars', 'forks', 'help-wanted-issues' or 'updated'.
        :param order: 'asc' or 'desc'.
        :param page: 1-based page number.
        :param per_page: Page size, at most 100.
        :return: SearchResults of Repository objects.
        """
        if not query or not query.strip():
            raise GitPlatformError.validation("Search query must not be empty", GITHUB)
        params: Dict[str, Any] = {"q": query, "sort": sort, "order": order}
        params.update(self._page_params(page, per_page))
        params = {k: v for k, v in params.items() if v is not None}

        def transform(data: GitHubSearchRepositories, response) -> SearchResults:
            pagination = extract_pagination_info(response.headers)
            has_next = pagination.has_next or (
                not response.headers.get("link")
                and len(data.items) == per_page
                and data.total_count > page * per_page
            )
            return SearchResults(
                items=tuple(self._repository(item) for item in data.items),
                total_count=data.total_count,
                page=page,
                per_page=per_page,
                has_next=has_next,
                has_previous=pagination.has_previous or page > 1,
                incomplete_results=data.incomplete_results,
            )

        return await self._get(
            "/search/repositories", GitHubSearchRepositories, transform, params=params
        )

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

        GitHub returns pull requests from the issues endpoint as well; those
        are dropped.

        :param identifier: Repository identifier.
        :param state: 'open', 'closed' or 'all'.
        :param filters: labels, sort, direction, since, assignee, creator,
                        mentioned or milestone.
        :return: List of Issue objects.
        """
        repo = self._repo(identifier)
        if state not in ("open", "closed", "all"):
            raise GitPlatformError.validation(f"Invalid issue state: {state}", GITHUB)
        params: Dict[str, Any] = {"state": state}
        params.update(_filter_params(filters))
        params.update(self._page_params(page, per_page))

        def transform(data: List[GitHubIssue], _) -> List[Issue]:
            return [
                self._issue(item, repo) for item in data if item.pull_request is None
            ]

        return await self._get(
            f"/repos/{repo.full_name}/issues",
            List[GitHubIssue],
            transform,
            params=params,
            tags=[f"issues:{repo.full_name}", f"issues:{repo.full_name}:{state}"],
        )

    async def get_issue(self, identifier: IssueIdentifierLike) -> Issue:
        ref = self._issue_ref(identifier)

        def transform(data: GitHubIssue, _) -> Issue:
            if data.pull_request is not None:
                raise GitPlatformError.validation(
                    f"{ref} is a pull request, not an issue", GITHUB
                )
            return self._issue(data, ref.repository)

        return await self._get(
            f"/repos/{ref.full_name}/issues/{ref.number}",
            GitHubIssue,
            transform,
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
        List pull requests of a repository.

        :param state: 'open', 'closed' or 'all'. Merged pull requests are
                      listed under 'closed' and normalised to 'merged'.
        :param filters: head, base, sort or direction.
        """
        repo = self._repo(identifier)
        if state not in ("open", "closed", "all"):
            raise GitPlatformError.validation(
                f"Invalid pull request state: {state}", GITHUB
            )
        params: Dict[str, Any] = {"state": state}
        params.update(_filter_params(filters))
        params.update(self._page_params(page, per_page))

        return await self._get(
            f"/repos/{repo.full_name}/pulls",
            List[GitHubPullRequest],
            lambda data, _: [self._pull_request(item, repo) for item in data],
            params=params,
            tags=[f"pulls:{repo.full_name}"],
        )

    async def get_pull_request(self, identifier: IssueIdentifierLike) -> PullRequest:
        ref = self._issue_ref(identifier)
        return await self._get(
            f"/repos/{ref.full_name}/pulls/{ref.number}",
            GitHubPullRequest,
            lambda data, _: self._pull_request(data, ref.repository),
            tags=[f"pull:{ref.full_name}:{ref.number}"],
        )

    async def get_user(self, username: str) -> User:
        if not username or "/" in username:
            raise GitPlatformError.validation(f"Invalid username: {username!r}", GITHUB)
        return await self._get(
            f"/users/{username}",
            GitHubAccount,
            lambda data, _: self._user(data),
            tags=[f"user:{username}"],
        )

    async def get_authenticated_user(self) -> User:
        return await self._get("/user", GitHubAccount, lambda data, _: self._user(data))

    async def get_commits(
        self,
        identifier: RepositoryIdentifierLike,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 30,
    ) -> List[Commit]:
        """
        List commits of a repository.

        :param filters: sha, path, author, since or until.
        """
        repo = self._repo(identifier)
        params = _filter_params(filters)
        params.update(self._page_params(page, per_page))
        return await self._get(
            f"/repos/{repo.full_name}/commits",
            List[GitHubCommit],
            lambda data, _: [self._commit(item) for item in data],
            params=params,
            tags=[f"commits:{repo.full_name}"],
        )

    async def get_releases(
        self, identifier: RepositoryIdentifierLike, page: int = 1, per_page: int = 30
    ) -> List[Release]:
        repo = self._repo(identifier)
        return await self._get(
            f"/repos/{repo.full_name}/releases",
            List[GitHubRelease],
            lambda data, _: [self._release(item) for item in data],
            params=self._page_params(page, per_page),
            tags=[f"releases:{repo.full_name}"],
        )

    async def get_rate_limit(self) -> RateLimitInfo:
        response = await self._request("GET", "/rate_limit")
        core = self._validate(GitHubRateLimit, response.data, "/rate_limit").resources.core
        return RateLimitInfo(
            limit=core.limit,
            remaining=core.remaining,
            reset=core.reset,
            used=core.used,
            resource="core",
        )

    # Writes

    async def create_issue(
        self, identifier: RepositoryIdentifierLike, fields: Dict[str, Any]
    ) -> Issue:
        """
        Create an issue.

        :param fields: title (required), body, assignees, milestone, labels.
        :return: The created Issue.
        """
        repo = self._repo(identifier)
        _require_fields(fields, ["title"], "create issue")
        issue = await self._write(
            "POST",
            f"/repos/{repo.full_name}/issues",
            dict(fields),
            GitHubIssue,
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

        :param fields: title, body, state, state_reason, assignees,
                       milestone, labels.
        """
        ref = self._issue_ref(identifier)
        if not fields:
            raise GitPlatformError.validation("No fields to update", GITHUB)
        return await self._write(
            "PATCH",
            f"/repos/{ref.full_name}/issues/{ref.number}",
            dict(fields),
            GitHubIssue,
            lambda data, _: self._issue(data, ref.repository),
            invalidate=[f"issue:{ref.full_name}:{ref.number}", f"issues:{ref.full_name}"],
        )

    async def create_pull_request(
        self, identifier: RepositoryIdentifierLike, fields: Dict[str, Any]
    ) -> PullRequest:
        """
        Open a pull request.

        :param fields: title, head and base (required), body, draft.
        """
        repo = self._repo(identifier)
        _require_fields(fields, ["title", "head", "base"], "create pull request")
        pull = await self._write(
            "POST",
            f"/repos/{repo.full_name}/pulls",
            dict(fields),
            GitHubPullRequest,
            lambda data, _: self._pull_request(data, repo),
            invalidate=[f"pulls:{repo.full_name}"],
        )
        logger.info(f"Created pull request {repo.full_name}#{pull.number}")
        return pull

    # Webhooks

    def process_webhook_payload(
        self,
        payload: Union[str, bytes, Mapping[str, Any]],
        event: Optional[str] = None,
    ) -> WebhookEvent:
        data = self._load_webhook(payload)
        parsed = self._validate(GitHubWebhook, data, "webhook")
        return WebhookEvent(
            event=event or parsed.action or "unknown",
            action=parsed.action,
            repository=(
                self._transform(self._repository, "webhook", parsed.repository)
                if parsed.repository
                else None
            ),
            data=data,
        )
