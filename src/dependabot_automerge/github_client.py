"""
GitHub API client for Dependabot Automerge.

This module wraps PyGithub with rate limiting and error mapping, and converts
every response into the typed records in ``models`` so that the screening,
filtering and merge code never sees PyGithub objects.
"""

import asyncio
import time
from typing import Any

import structlog
from github import Auth, BadCredentialsException, Github, GithubException
from github.PullRequest import PullRequest as GithubPullRequest
from github.Repository import Repository

from .exceptions import AuthenticationError, GitHubAPIError, MergeError
from .models import Commit, PullRequest, PullRequestDetails, Review

logger = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"

# Below this many remaining requests the client waits for the window reset
RATE_LIMIT_THRESHOLD = 10


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return str(data.get("message") or e)


def _api_error(message: str, e: GithubException) -> GitHubAPIError:
    if isinstance(e, BadCredentialsException):
        return AuthenticationError(f"{message}: {_error_message(e)}")
    return GitHubAPIError(f"{message}: {_error_message(e)}", status_code=e.status)


def _login(user: Any) -> str | None:
    return user.login if user is not None else None


class GitHubClient:
    """
    Pull request service backed by the GitHub REST API.

    Methods are coroutines so callers can await them uniformly; the PyGithub
    calls underneath are synchronous and are issued one at a time.
    """

    def __init__(self, token: str, api_url: str | None = None) -> None:
        """
        Initialize the GitHub client.

        Args:
            token: GitHub token used for every request
            api_url: REST API base URL, for GitHub Enterprise Server
        """
        if not token:
            raise AuthenticationError("GitHub token not provided")
        self.token = token
        self.api_url = api_url or DEFAULT_API_URL
        self._github: Github | None = None
        self._repos: dict[str, Repository] = {}
        self._rate_limit_reset_time: float | None = None
        self._rate_limit_remaining: int | None = None

    def _get_github_instance(self) -> Github:
        """Get the authenticated PyGithub instance."""
        if self._github is None:
            self._github = Github(auth=Auth.Token(self.token), base_url=self.api_url)
            logger.debug("GitHub client created", api_url=self.api_url)
        return self._github

    async def _check_rate_limit(self) -> None:
        """Wait for the rate limit window to reset when close to exhaustion."""
        if (
            self._rate_limit_remaining is not None
            and self._rate_limit_remaining <= RATE_LIMIT_THRESHOLD
        ):
            if (
                self._rate_limit_reset_time
                and time.time() < self._rate_limit_reset_time
            ):
                sleep_time = self._rate_limit_reset_time - time.time()
                logger.warning(
                    "Rate limit approaching, sleeping",
                    sleep_time=sleep_time,
                    remaining=self._rate_limit_remaining,
                )
                await asyncio.sleep(sleep_time)

    def _update_rate_limit_info(self) -> None:
        """Record rate limit headers from the last response."""
        try:
            github_instance = self._get_github_instance()
            remaining, _limit = github_instance.rate_limiting
            self._rate_limit_remaining = remaining
            self._rate_limit_reset_time = float(github_instance.rate_limiting_resettime)
        except Exception as e:
            logger.warning("Failed to get rate limit info", error=str(e))

    async def get_repo(self, owner: str, repo: str) -> Repository:
        """
        Get repository by owner and name.

        Args:
            owner: Repository owner
            repo: Repository name

        Returns:
            Repository object
        """
        full_name = f"{owner}/{repo}"
        if full_name in self._repos:
            return self._repos[full_name]

        await self._check_rate_limit()

        try:
            repository = self._get_github_instance().get_repo(full_name)
            self._update_rate_limit_info()
        except GithubException as e:
            logger.error("Failed to get repository", repo=full_name, error=str(e))
            raise _api_error(f"Failed to get repository {full_name}", e) from e

        self._repos[full_name] = repository
        return repository

    async def _get_pull(self, owner: str, repo: str, pr_number: int) -> GithubPullRequest:
        repository = await self.get_repo(owner, repo)
        await self._check_rate_limit()
        pull = repository.get_pull(pr_number)
        self._update_rate_limit_info()
        return pull

    async def get_default_branch(self, owner: str, repo: str) -> str:
        repository = await self.get_repo(owner, repo)
        return repository.default_branch

    async def list_open_prs(self, owner: str, repo: str) -> list[PullRequest]:
        """
        List open pull requests, oldest first.

        Args:
            owner: Repository owner
            repo: Repository name

        Returns:
            Open pull requests sorted by creation time ascending
        """
        repository = await self.get_repo(owner, repo)
        await self._check_rate_limit()

        try:
            pulls = repository.get_pulls(state="open", sort="created", direction="asc")
            pull_requests = [
                PullRequest(
                    number=pull.number,
                    title=pull.title or "",
                    body=pull.body or "",
                    user_login=_login(pull.user),
                    created_at=pull.created_at,
                    head_sha=pull.head.sha,
                    html_url=pull.html_url or "",
                    labels=[label.name for label in pull.labels],
                )
                for pull in pulls
            ]
            self._update_rate_limit_info()
        except GithubException as e:
            logger.error(
                "Failed to list pull requests", repo=repository.full_name, error=str(e)
            )
            raise _api_error("Failed to list pull requests", e) from e

        logger.debug(
            "Retrieved open pull requests",
            repo=repository.full_name,
            count=len(pull_requests),
        )
        return pull_requests

    async def get_pr_detail(
        self, owner: str, repo: str, pr_number: int
    ) -> PullRequestDetails:
        """
        Get the mergeability of a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number

        Returns:
            Details whose ``mergeable`` is None while GitHub is still computing it
        """
        try:
            pull = await self._get_pull(owner, repo, pr_number)
            return PullRequestDetails(
                number=pull.number,
                mergeable=pull.mergeable,
                mergeable_state=pull.mergeable_state,
            )
        except GithubException as e:
            raise _api_error(f"Failed to get PR {pr_number}", e) from e

    async def list_commits(self, owner: str, repo: str, pr_number: int) -> list[Commit]:
        try:
            pull = await self._get_pull(owner, repo, pr_number)
            commits = [
                Commit(
                    sha=commit.sha,
                    author_login=_login(commit.author),
                    committer_login=_login(commit.committer),
                )
                for commit in pull.get_commits()
            ]
            self._update_rate_limit_info()
            return commits
        except GithubException as e:
            raise _api_error(f"Failed to list commits for PR {pr_number}", e) from e

    async def get_combined_status(self, owner: str, repo: str, ref: str) -> str:
        """
        Get the combined commit status state for a ref.

        Returns:
            One of "success", "pending" or "failure"
        """
        repository = await self.get_repo(owner, repo)
        await self._check_rate_limit()

        try:
            status = repository.get_commit(ref).get_combined_status()
            self._update_rate_limit_info()
            return status.state
        except GithubException as e:
            raise _api_error(f"Failed to get combined status for {ref}", e) from e

    async def list_reviews(self, owner: str, repo: str, pr_number: int) -> list[Review]:
        try:
            pull = await self._get_pull(owner, repo, pr_number)
            reviews = [
                Review(
                    user_id=review.user.id if review.user is not None else None,
                    user_login=_login(review.user),
                    state=review.state,
                    submitted_at=review.submitted_at,
                )
                for review in pull.get_reviews()
            ]
            self._update_rate_limit_info()
            return reviews
        except GithubException as e:
            raise _api_error(f"Failed to list reviews for PR {pr_number}", e) from e

    async def approve(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        review_body: str = "Auto-approved by Dependabot Automerge",
    ) -> None:
        """
        Approve a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number
            review_body: Review body text
        """
        try:
            pull = await self._get_pull(owner, repo, pr_number)
            pull.create_review(body=review_body, event="APPROVE")
        except GithubException as e:
            raise _api_error(f"Failed to approve PR {pr_number}", e) from e

        logger.debug("PR approved", pr_number=pr_number)

    async def merge(
        self, owner: str, repo: str, pr_number: int, merge_method: str
    ) -> None:
        """
        Merge a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number
            merge_method: One of "merge", "squash" or "rebase"

        Raises:
            MergeError: GitHub rejected the merge
        """
        try:
            pull = await self._get_pull(owner, repo, pr_number)
            status = pull.merge(merge_method=merge_method)
        except GithubException as e:
            raise MergeError(
                _error_message(e), pr_number=pr_number, status_code=e.status
            ) from e

        if not status.merged:
            raise MergeError(status.message or "Merge was not performed", pr_number)
