"""
Eligibility screening for Dependabot pull requests.

This module walks the open PRs of a repository and keeps the ones that are
safe to consider for merging: created by Dependabot, old enough, mergeable,
free of foreign commits, not failing status checks and not blocked by a
review. Each rejection is recorded in the filter reason ledger.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import structlog

from .dependency_info import (
    extract_dependency_info,
    extract_multiple_dependency_info,
    is_multiple_dependency_title,
)
from .exceptions import GitHubAPIError
from .github_client import GitHubClient
from .models import DEPENDABOT_LOGIN, Commit, PullRequest, PullRequestDetails, Review
from .reasons import FilterReasonLedger

logger = structlog.get_logger(__name__)

MAX_MERGEABILITY_ATTEMPTS = 3
CHANGES_REQUESTED_STATES = ("CHANGES_REQUESTED", "REQUEST_CHANGES")


@dataclass
class ScreeningResult:
    """Outcome of screening the open PRs of a repository."""

    eligible_prs: list[PullRequest] = field(default_factory=list)
    initial_prs: list[PullRequest] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative_age(created_at: datetime, now: datetime) -> str:
    """
    Render how long ago a PR was created.

    Args:
        created_at: PR creation time
        now: Reference time

    Returns:
        The largest whole unit, e.g. "4 days ago" or "1 hour ago"
    """
    seconds = int((_as_utc(now) - _as_utc(created_at)).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return _plural(days, "day")
    if hours > 0:
        return _plural(hours, "hour")
    if minutes > 0:
        return _plural(minutes, "minute")
    return _plural(seconds, "second")


def find_foreign_commits(commits: list[Commit], bot_login: str) -> list[Commit]:
    """Commits where neither the author nor the committer is the bot."""
    return [
        commit
        for commit in commits
        if commit.author_login != bot_login and commit.committer_login != bot_login
    ]


def has_blocking_reviews(reviews: list[Review]) -> bool:
    """
    Check for change requests that no later approval has superseded.

    A change request is only lifted by a strictly later approval from the
    same reviewer.
    """
    for review in reviews:
        if review.state not in CHANGES_REQUESTED_STATES:
            continue
        superseded = any(
            other.reviewer == review.reviewer
            and other.state == "APPROVED"
            and other.submitted_at is not None
            and review.submitted_at is not None
            and other.submitted_at > review.submitted_at
            for other in reviews
        )
        if not superseded:
            return True
    return False


class PRScreener:
    """
    Screens open pull requests for merge eligibility.

    Rejections, including GitHub API errors while checking a PR, are
    recorded in the ledger under the "general" dependency; a PR never aborts
    the batch, later PRs are still screened.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        ledger: FilterReasonLedger,
        bot_login: str = DEPENDABOT_LOGIN,
    ):
        """
        Initialize the screener.

        Args:
            github_client: GitHub API client
            ledger: Ledger receiving rejection reasons for this run
            bot_login: Login of the account allowed to author PRs and commits
        """
        self.github_client = github_client
        self.ledger = ledger
        self.bot_login = bot_login

    async def check_pr_mergeability(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        retry_delay_ms: int,
        max_attempts: int = MAX_MERGEABILITY_ATTEMPTS,
    ) -> PullRequestDetails | None:
        """
        Fetch PR details until GitHub has computed the mergeable state.

        An API error counts as a failed attempt. The delay is only waited
        between attempts.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number
            retry_delay_ms: Delay between attempts in milliseconds
            max_attempts: Total number of detail fetches

        Returns:
            Details with a definite ``mergeable`` value, or None when it is
            still unknown after every attempt
        """
        for attempt in range(1, max_attempts + 1):
            try:
                details = await self.github_client.get_pr_detail(owner, repo, pr_number)
                if details.mergeable is not None:
                    logger.debug(
                        f"PR #{pr_number} mergeable state determined: "
                        f"{str(details.mergeable).lower()} (attempt {attempt})"
                    )
                    return details
                logger.debug(
                    f"PR #{pr_number} mergeable state is null, retrying...",
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
            except Exception as e:
                logger.warning(
                    f"Error checking PR #{pr_number} mergeability (attempt {attempt}): {e}"
                )

            if attempt < max_attempts:
                await asyncio.sleep(retry_delay_ms / 1000)

        logger.warning(
            f"PR #{pr_number} mergeable state is still null after {max_attempts} attempts"
        )
        return None

    async def find_mergeable_prs(
        self,
        owner: str,
        repo: str,
        minimum_age_days: int,
        retry_delay_ms: int = 2000,
        now: datetime | None = None,
    ) -> ScreeningResult:
        """
        Find pull requests eligible for auto-merging.

        Args:
            owner: Repository owner
            repo: Repository name
            minimum_age_days: Minimum PR age in days
            retry_delay_ms: Delay between mergeability polls in milliseconds
            now: Reference time for the age check, defaults to the current time

        Returns:
            The eligible PRs, enriched with details and dependency info, and
            every open PR as initially listed
        """
        logger.info("Finding eligible pull requests for auto-merging...")

        current = _as_utc(now or datetime.now(timezone.utc))
        minimum_created_at = current - timedelta(days=minimum_age_days)

        pull_requests = await self.github_client.list_open_prs(owner, repo)
        logger.info(
            f"Found {len(pull_requests)} open pull requests. "
            "Filtering based on criteria..."
        )

        eligible = []
        for pr in pull_requests:
            try:
                screened = await self._screen(
                    owner, repo, pr, minimum_age_days, minimum_created_at,
                    current, retry_delay_ms,
                )
            except GitHubAPIError as e:
                self.ledger.record(pr.number, f"Failed to check PR #{pr.number}: {e}")
                logger.warning(
                    f"Failed to check PR #{pr.number}: {e}", status_code=e.status_code
                )
                continue
            if screened is not None:
                eligible.append(screened)

        logger.info(f"Found {len(eligible)} eligible pull requests for auto-merging")
        return ScreeningResult(eligible_prs=eligible, initial_prs=pull_requests)

    def _reject(self, pr: PullRequest, reason: str) -> None:
        self.ledger.record(pr.number, reason)
        logger.debug(f"PR #{pr.number}: {reason}")

    async def _screen(
        self,
        owner: str,
        repo: str,
        pr: PullRequest,
        minimum_age_days: int,
        minimum_created_at: datetime,
        now: datetime,
        retry_delay_ms: int,
    ) -> PullRequest | None:
        if pr.user_login != self.bot_login:
            self._reject(
                pr, f"Not created by Dependabot (creator: {pr.user_login or 'unknown'})"
            )
            return None

        if _as_utc(pr.created_at) > minimum_created_at:
            self._reject(
                pr,
                f"Too recent (created {format_relative_age(pr.created_at, now)}, "
                f"needs to be at least {minimum_age_days} days old)",
            )
            return None

        details = await self.check_pr_mergeability(
            owner, repo, pr.number, retry_delay_ms
        )
        if details is None:
            self._reject(
                pr,
                f"PR #{pr.number} mergeable state is still null after "
                f"{MAX_MERGEABILITY_ATTEMPTS} attempts",
            )
            return None
        if not details.mergeable:
            self._reject(pr, "Not in mergeable state")
            return None

        commits = await self.github_client.list_commits(owner, repo, pr.number)
        foreign_commits = find_foreign_commits(commits, self.bot_login)
        if foreign_commits:
            self.ledger.record(
                pr.number,
                "Contains commits from authors other than Dependabot (security risk)",
            )
            logger.warning(
                f"PR #{pr.number} contains commits from authors other than Dependabot",
                commits=[
                    f"{commit.sha[:7]} from {commit.author_login or 'unknown'}"
                    for commit in foreign_commits
                ],
            )
            return None

        state = await self.github_client.get_combined_status(owner, repo, pr.head_sha)
        if state == "failure":
            self._reject(pr, "Has failing status checks")
            return None

        reviews = await self.github_client.list_reviews(owner, repo, pr.number)
        if has_blocking_reviews(reviews):
            self._reject(pr, "Has blocking reviews")
            return None

        return self._with_dependency_info(pr, details)

    def _with_dependency_info(
        self, pr: PullRequest, details: PullRequestDetails
    ) -> PullRequest:
        update: dict = {"details": details}
        if is_multiple_dependency_title(pr.title):
            dependencies = extract_multiple_dependency_info(pr.title, pr.body)
            update["dependency_info_list"] = dependencies
            # Group-shaped titles whose body lists nothing fall back to the title
            if not dependencies:
                update["dependency_info"] = extract_dependency_info(pr.title)
        else:
            update["dependency_info"] = extract_dependency_info(pr.title)
        return pr.model_copy(update=update)
