"""Shared test fixtures for the test suite."""
import json
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from gitplatform.config import ClientConfig
from gitplatform.github import GitHubConnector
from gitplatform.gitlab import GitLabConnector

GITHUB_TOKEN = "ghp_" + "a" * 36
GITLAB_TOKEN = "glpat-" + "b" * 20


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_response(status=200, json_data=None, headers=None, text=None, reason="OK"):
    """Build a mock requests.Response."""
    response = Mock()
    response.status_code = status
    response.reason = reason
    response.headers = {"Content-Type": "application/json"}
    response.headers.update(headers or {})
    if text is not None:
        response.text = text
    elif json_data is not None:
        response.text = json.dumps(json_data)
    else:
        response.text = ""
    return response


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    return AsyncMock()


@pytest.fixture
def mock_session():
    session = Mock()
    session.request.return_value = make_response(json_data={})
    return session


@pytest.fixture
def github_config():
    return ClientConfig(platform="github", token=GITHUB_TOKEN, retry_jitter=0.0)


@pytest.fixture
def gitlab_config():
    return ClientConfig(platform="gitlab", token=GITLAB_TOKEN, retry_jitter=0.0)


@pytest_asyncio.fixture
async def github(github_config, mock_session, clock, fake_sleep):
    connector = GitHubConnector(
        github_config, session=mock_session, clock=clock, sleep=fake_sleep
    )
    yield connector
    connector.close()


@pytest_asyncio.fixture
async def gitlab(gitlab_config, mock_session, clock, fake_sleep):
    connector = GitLabConnector(
        gitlab_config, session=mock_session, clock=clock, sleep=fake_sleep
    )
    yield connector
    connector.close()


# Payloads


def github_user_payload(login="octocat", user_id=1):
    return {
        "id": user_id,
        "login": login,
        "type": "User",
        "avatar_url": f"https://avatars.example.com/{login}",
        "html_url": f"https://github.com/{login}",
    }


def github_repo_payload(full_name="octocat/hello-world", repo_id=1296269):
    owner, name = full_name.split("/")
    return {
        "id": repo_id,
        "name": name,
        "full_name": full_name,
        "owner": github_user_payload(owner),
        "private": False,
        "html_url": f"https://github.com/{full_name}",
        "clone_url": f"https://github.com/{full_name}.git",
        "ssh_url": f"git@github.com:{full_name}.git",
        "description": "My first repository",
        "fork": False,
        "default_branch": "main",
        "language": "Python",
        "stargazers_count": 80,
        "forks_count": 9,
        "open_issues_count": 2,
        "topics": ["api", "octocat"],
        "archived": False,
        "created_at": "2011-01-26T19:01:12Z",
        "updated_at": "2011-01-26T19:14:43Z",
        "pushed_at": "2011-01-26T19:06:43Z",
        "license": {"key": "mit", "name": "MIT License", "spdx_id": "MIT"},
    }


def github_issue_payload(number=1347, pull_request=False, state="open"):
    payload = {
        "id": 1000 + number,
        "number": number,
        "title": "Found a bug",
        "body": "I'm having a problem with this.",
        "state": state,
        "user": github_user_payload(),
        "labels": [{"id": 208045946, "name": "bug", "color": "f29513", "default": True}],
        "assignees": [],
        "created_at": "2011-04-22T13:33:48Z",
        "updated_at": "2011-04-22T13:33:48Z",
        "html_url": f"https://github.com/octocat/hello-world/issues/{number}",
        "comments": 3,
    }
    if pull_request:
        payload["pull_request"] = {"url": "https://api.github.com/repos/x/y/pulls/1"}
    return payload


def github_pull_payload(number=42, state="open", merged=False, merged_at=None):
    return {
        "id": 2000 + number,
        "number": number,
        "title": "Amazing new feature",
        "state": state,
        "user": github_user_payload(),
        "head": {"ref": "new-topic", "sha": "6dcb09b", "label": "octocat:new-topic"},
        "base": {"ref": "main", "sha": "7fd1a60", "label": "octocat:main"},
        "body": "Please pull these awesome changes",
        "draft": False,
        "merged": merged,
        "merged_at": merged_at,
        "created_at": "2011-01-26T19:01:12Z",
        "html_url": f"https://github.com/octocat/hello-world/pull/{number}",
    }


def gitlab_user_payload(username="jdoe", user_id=7):
    return {
        "id": user_id,
        "username": username,
        "name": "Jane Doe",
        "avatar_url": f"https://gitlab.example.com/uploads/{username}.png",
        "web_url": f"https://gitlab.com/{username}",
    }


def gitlab_project_payload(path_with_namespace="group/subgroup/project", project_id=3):
    namespace, _, path = path_with_namespace.rpartition("/")
    return {
        "id": project_id,
        "name": path.title(),
        "path": path,
        "path_with_namespace": path_with_namespace,
        "namespace": {
            "id": 12,
            "name": namespace.split("/")[-1],
            "path": namespace.split("/")[-1],
            "kind": "group",
            "full_path": namespace,
        },
        "description": "A project",
        "visibility": "internal",
        "web_url": f"https://gitlab.com/{path_with_namespace}",
        "http_url_to_repo": f"https://gitlab.com/{path_with_namespace}.git",
        "ssh_url_to_repo": f"git@gitlab.com:{path_with_namespace}.git",
        "default_branch": "main",
        "star_count": 5,
        "forks_count": 1,
        "open_issues_count": 4,
        "topics": ["infra"],
        "created_at": "2020-01-01T00:00:00.000Z",
        "last_activity_at": "2020-02-01T00:00:00.000Z",
        "permissions": {"project_access": {"access_level": 30}, "group_access": None},
    }


def gitlab_issue_payload(iid=5, state="opened"):
    return {
        "id": 900 + iid,
        "iid": iid,
        "title": "Broken pipeline",
        "description": "It fails",
        "state": state,
        "author": gitlab_user_payload(),
        "labels": ["bug", "ci"],
        "assignees": [],
        "created_at": "2020-03-01T10:00:00.000Z",
        "updated_at": "2020-03-02T10:00:00.000Z",
        "web_url": f"https://gitlab.com/group/project/-/issues/{iid}",
        "user_notes_count": 2,
        "discussion_locked": None,
    }


def gitlab_merge_request_payload(iid=9, state="opened", merged_at=None):
    return {
        "id": 800 + iid,
        "iid": iid,
        "title": "Add feature",
        "state": state,
        "author": gitlab_user_payload(),
        "source_branch": "feature",
        "target_branch": "main",
        "description": "Adds a feature",
        "labels": ["feature"],
        "sha": "abc123",
        "merge_status": "can_be_merged",
        "merged_at": merged_at,
        "changes_count": "3",
        "user_notes_count": 1,
        "web_url": f"https://gitlab.com/group/project/-/merge_requests/{iid}",
    }
