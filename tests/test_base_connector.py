"""
Tests for the base connector class.
"""

import asyncio
import logging

import pytest

from conftest import github_repo_payload, make_response
from gitplatform import GitConnector, GitHubConnector, GitLabConnector
from gitplatform.exceptions import GitPlatformError
from gitplatform.models import BatchResult
from gitplatform.utils.sweeper import PeriodicTask


class TestGitConnectorInterface:
    """Tests for the GitConnector abstract base class."""

    def test_cannot_instantiate_base_class(self, github_config):
        """Test that the base class cannot be instantiated directly."""
        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            GitConnector(github_config)

    def test_concrete_class_must_implement_abstract_methods(self, github_config):
        """Test that concrete class must implement all abstract methods."""

        class IncompleteConnector(GitConnector):
            """A connector that doesn't implement all abstract methods."""
            platform = "github"

        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            IncompleteConnector(github_config)

    def test_config_platform_must_match(self, gitlab_config):
        """Test that a GitLab config cannot drive the GitHub connector."""
        with pytest.raises(GitPlatformError) as exc_info:
            GitHubConnector(gitlab_config)
        assert exc_info.value.status == 400

    def test_separate_instances_share_nothing(self, github_config, gitlab_config):
        """Test that each connector owns its cache and limiter."""
        github = GitHubConnector(github_config)
        gitlab = GitLabConnector(gitlab_config)
        try:
            github.cache.set("k", 1)
            assert gitlab.cache.get("k") is None
            assert github.rate_limiter is not gitlab.rate_limiter
        finally:
            github.close()
            gitlab.close()


class TestBatchRepositories:
    """Tests for concurrent repository fetching."""

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, github, mock_session):
        """Test that one failing repository does not fail the batch."""

        def respond(method, url, **kwargs):
            if url.endswith("/repos/octo/missing"):
                return make_response(404, {"message": "Not Found"})
            full_name = url.split("/repos/")[1]
            return make_response(200, github_repo_payload(full_name))

        mock_session.request.side_effect = respond
        completed = []

        results = await github.get_repositories(
            ["octo/a", "octo/missing", "octo/c"],
            max_concurrent=2,
            on_repo_complete=completed.append,
        )

        assert [r.identifier for r in results] == ["octo/a", "octo/missing", "octo/c"]
        assert [r.success for r in results] == [True, False, True]
        assert results[0].repository.full_name == "octo/a"
        assert results[2].repository.full_name == "octo/c"
        assert results[1].repository is None
        assert isinstance(results[1].exception, GitPlatformError)
        assert results[1].exception.is_not_found
        assert "Not Found" in results[1].error
        assert len(completed) == 3

    @pytest.mark.asyncio
    async def test_invalid_identifier_is_captured(self, github, mock_session):
        """Test that a malformed identifier becomes a failed item."""
        mock_session.request.return_value = make_response(200, github_repo_payload("octo/a"))

        results = await github.get_repositories(["octo/a", "bogus"])

        assert results[0].success
        assert not results[1].success
        assert results[1].exception.is_validation_error
        assert mock_session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, github):
        assert await github.get_repositories([]) == []

    def test_batch_result_defaults(self):
        result = BatchResult(identifier="octo/a")
        assert result.success is True
        assert result.error is None
        assert result.exception is None


class TestLifecycle:
    """Tests for background sweeps and shutdown."""

    def test_no_sweeps_before_use(self, github_config):
        connector = GitHubConnector(github_config)
        try:
            assert not any(sweep.running for sweep in connector._sweeps)
            # No running loop: starting is a no-op.
            connector.start()
            assert not any(sweep.running for sweep in connector._sweeps)
        finally:
            connector.close()

    @pytest.mark.asyncio
    async def test_first_request_starts_sweeps_and_close_stops_them(
        self, github_config, mock_session, clock, fake_sleep
    ):
        mock_session.request.return_value = make_response(200, github_repo_payload())
        connector = GitHubConnector(
            github_config, session=mock_session, clock=clock, sleep=fake_sleep
        )

        await connector.get_repository("octocat/hello-world")
        assert all(sweep.running for sweep in connector._sweeps)
        assert [sweep.name for sweep in connector._sweeps] == [
            "github-cache-purge",
            "github-rate-limit-cleanup",
        ]

        connector.close()
        await asyncio.sleep(0)
        assert not any(sweep.running for sweep in connector._sweeps)
        mock_session.close.assert_called_once()

        # Closed connectors do not restart their sweeps.
        connector.start()
        assert not any(sweep.running for sweep in connector._sweeps)

    @pytest.mark.asyncio
    async def test_async_context_manager(self, gitlab_config, mock_session):
        async with GitLabConnector(gitlab_config, session=mock_session) as connector:
            assert all(sweep.running for sweep in connector._sweeps)
        assert not any(sweep.running for sweep in connector._sweeps)

    @pytest.mark.asyncio
    async def test_periodic_task_runs_until_stopped(self):
        calls = []
        task = PeriodicTask("test-sweep", lambda: calls.append(1), 0.01)
        assert task.start()
        assert not task.start()

        await asyncio.sleep(0.05)
        task.stop()
        seen = len(calls)
        await asyncio.sleep(0.03)

        assert seen >= 1
        assert len(calls) == seen
        assert not task.running

    @pytest.mark.asyncio
    async def test_periodic_task_survives_errors(self, caplog):
        calls = []

        def flaky():
            calls.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("flaky-sweep", flaky, 0.01)
        with caplog.at_level(logging.WARNING):
            task.start()
            await asyncio.sleep(0.05)
            task.stop()

        assert len(calls) >= 2
        assert "flaky-sweep failed" in caplog.text

    def test_periodic_task_requires_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", lambda: None, 0)


class TestCacheHelpers:

    @pytest.mark.asyncio
    async def test_bad_tag_skips_cache_write(self, github, caplog):
        with caplog.at_level(logging.WARNING):
            github._cache_result("github:GET:/x:{}", {"a": 1}, None, [""])
        assert github.get_cache_stats()["size"] == 0
        assert "Skipping cache write" in caplog.text

    @pytest.mark.asyncio
    async def test_cache_key_is_order_independent(self, github):
        first = github._cache_key("GET", "/x", {"b": 1, "a": 2})
        second = github._cache_key("GET", "/x", {"a": 2, "b": 1})
        assert first == second
        assert first.startswith("github:GET:/x:")
        assert github._cache_key("GET", "/x", {"a": 3}) != first

    @pytest.mark.asyncio
    async def test_concurrent_misses_both_reach_upstream(self, github, mock_session):
        """Concurrent misses on the same key are not coalesced."""
        mock_session.request.return_value = make_response(200, github_repo_payload())

        first, second = await asyncio.gather(
            github.get_repository("octocat/hello-world"),
            github.get_repository("octocat/hello-world"),
        )

        assert first == second
        assert mock_session.request.call_count == 2
        assert github.get_cache_stats()["size"] == 1

    @pytest.mark.asyncio
    async def test_clear_cache(self, github):
        github.cache.set("k", 1)
        github.clear_cache()
        assert github.get_cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_rate_limiter_stats(self, github):
        assert github.get_rate_limiter_stats() == {
            "limit": 60,
            "remaining": 60,
            "reset_time": 0.0,
        }
