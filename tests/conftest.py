"""
Pytest configuration and fixtures for Dependabot Automerge tests.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from dependabot_automerge.config import Settings
from dependabot_automerge.github_client import GitHubClient
from dependabot_automerge.models import (
    Commit,
    DependencyUpdate,
    FilterPolicy,
    PullRequest,
    PullRequestDetails,
)
from dependabot_automerge.reasons import FilterReasonLedger

NOW = datetime(2025, 5, 15, 10, 0, 0, tzinfo=timezone.utc)
BOT = "dependabot[bot]"


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for age checks."""
    return NOW


@pytest.fixture
def mock_settings() -> Settings:
    """Settings for testing, independent of the environment."""
    return Settings(
        github_token="test-token",
        github_repository="owner/repo",
        github_ref="",
        minimum_age_of_pr=3,
        blackout_periods="",
        ignored_dependencies="",
        always_allow="",
        always_allow_labels="",
        ignored_versions="",
        semver_filter="patch,minor",
        merge_method="squash",
        retry_delay_ms=0,
        github_step_summary="",
        github_output="",
        log_level="DEBUG",
    )


@pytest.fixture
def ledger() -> FilterReasonLedger:
    return FilterReasonLedger()


@pytest.fixture
def policy() -> FilterPolicy:
    return FilterPolicy(semver_filter=["patch", "minor"])


@pytest.fixture
def make_pr() -> Callable[..., PullRequest]:
    """Factory for open Dependabot PRs, four days old by default."""

    def _make_pr(number: int = 1, **overrides: Any) -> PullRequest:
        data: dict[str, Any] = {
            "number": number,
            "title": "Bump lodash from 4.17.20 to 4.17.21",
            "body": "",
            "user_login": BOT,
            "created_at": NOW - timedelta(days=4),
            "head_sha": "abc123",
            "html_url": f"https://github.com/owner/repo/pull/{number}",
            "labels": [],
        }
        data.update(overrides)
        return PullRequest(**data)

    return _make_pr


@pytest.fixture
def make_dependency() -> Callable[..., DependencyUpdate]:
    def _make_dependency(
        name: str = "lodash",
        from_version: str = "4.17.20",
        to_version: str = "4.17.21",
        semver_change: str = "patch",
    ) -> DependencyUpdate:
        return DependencyUpdate(
            name=name,
            from_version=from_version,
            to_version=to_version,
            semver_change=semver_change,
        )

    return _make_dependency


@pytest.fixture
def mock_github_client() -> AsyncMock:
    """GitHub client whose PRs pass every screening check."""
    client = AsyncMock(spec=GitHubClient)
    client.list_open_prs.return_value = []
    client.get_pr_detail.side_effect = lambda owner, repo, number: PullRequestDetails(
        number=number, mergeable=True, mergeable_state="clean"
    )
    client.list_commits.return_value = [
        Commit(sha="abc1234567", author_login=BOT, committer_login=BOT)
    ]
    client.get_combined_status.return_value = "success"
    client.list_reviews.return_value = []
    client.get_default_branch.return_value = "main"
    client.merge.return_value = None
    client.approve.return_value = None
    return client
