"""
Run orchestration for Dependabot Automerge.

A run resolves the token, checks the blackout window and the triggering
branch, screens and filters the open Dependabot PRs, merges what is left and
writes the GitHub Actions summary and outputs.
"""

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from .blackout import should_run_at_current_time
from .config import Settings
from .filters import apply_filters
from .github_client import GitHubClient
from .models import FilterPolicy, PullRequest
from .pr_processor import PRProcessor
from .reasons import FilterReasonLedger
from .screener import PRScreener
from .summary import build_workflow_summary, write_output, write_workflow_summary

logger = structlog.get_logger(__name__)

MERGED_PR_COUNT_OUTPUT = "merged-pr-count"


@dataclass
class RunResult:
    """Outcome of one automerge run."""

    merged_pr_count: int = 0
    initial_prs: list[PullRequest] = field(default_factory=list)
    eligible_prs: list[PullRequest] = field(default_factory=list)
    filtered_prs: list[PullRequest] = field(default_factory=list)
    ledger: FilterReasonLedger = field(default_factory=FilterReasonLedger)
    in_blackout: bool = False


class AutomergeRunner:
    """Runs the screen, filter and merge pipeline once for one repository."""

    def __init__(
        self,
        settings: Settings,
        github_client: GitHubClient | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            settings: Application settings
            github_client: GitHub client; built from the settings when omitted
            now: Reference time for the blackout and age checks
        """
        self.settings = settings
        self.github_client = github_client
        self.now = now

    async def run(self) -> RunResult:
        """
        Execute one run.

        Returns:
            The run result

        Raises:
            ConfigurationError: The token or repository is not configured
        """
        token = self.settings.resolve_token()
        owner, repo = self.settings.repository_parts()
        policy = self.settings.filter_policy
        result = RunResult()

        if not should_run_at_current_time(self.settings.blackout_periods, self.now):
            logger.info("Action is in a blackout period. Skipping execution.")
            result.in_blackout = True
        else:
            if self.github_client is None:
                self.github_client = GitHubClient(token, self.settings.github_api_url)
            if await self._is_running_from_default_branch(owner, repo):
                await self._process(owner, repo, policy, result)

        self._report(result, policy)
        logger.info(f"Action finished. Merged {result.merged_pr_count} PR(s).")
        return result

    async def _is_running_from_default_branch(self, owner: str, repo: str) -> bool:
        current_ref = self.settings.github_ref
        if not current_ref:
            logger.debug("No triggering ref configured, skipping default branch check")
            return True

        try:
            default_branch = await self.github_client.get_default_branch(owner, repo)
        except Exception as e:
            logger.warning(
                f"Failed to verify default branch: {e}. "
                "Skipping execution for security reasons."
            )
            return False

        if current_ref != f"refs/heads/{default_branch}":
            logger.warning(
                f"Action is not running from the default branch ({default_branch}). "
                f"Current ref: {current_ref}. Skipping execution for security reasons."
            )
            return False

        logger.info(
            f"Action is running from the default branch ({default_branch}). "
            "Proceeding with execution."
        )
        return True

    async def _process(
        self, owner: str, repo: str, policy: FilterPolicy, result: RunResult
    ) -> None:
        screener = PRScreener(
            self.github_client, result.ledger, bot_login=self.settings.bot_login
        )
        screening = await screener.find_mergeable_prs(
            owner,
            repo,
            self.settings.minimum_age_of_pr,
            retry_delay_ms=self.settings.retry_delay_ms,
            now=self.now,
        )
        result.initial_prs = screening.initial_prs
        result.eligible_prs = screening.eligible_prs

        if not result.eligible_prs:
            logger.info("No eligible pull requests found for automerging.")
            return

        result.filtered_prs = apply_filters(
            result.eligible_prs, policy, result.ledger, self.settings.bot_login
        )
        if not result.filtered_prs:
            logger.info("No pull requests passed the filters for automerging.")
            return

        processor = PRProcessor(
            self.github_client,
            screener,
            merge_method=self.settings.merge_method,
            retry_delay_ms=self.settings.retry_delay_ms,
            auto_approve=self.settings.auto_approve,
            dry_run=self.settings.dry_run,
        )
        result.merged_pr_count = await processor.merge_pull_requests(
            owner, repo, result.filtered_prs
        )

    def _report(self, result: RunResult, policy: FilterPolicy) -> None:
        if self.settings.github_step_summary:
            try:
                write_workflow_summary(
                    self.settings.github_step_summary,
                    build_workflow_summary(result, policy),
                )
            except OSError as e:
                logger.warning(f"Failed to add workflow summary: {e}")

        if self.settings.github_output:
            write_output(
                self.settings.github_output,
                MERGED_PR_COUNT_OUTPUT,
                result.merged_pr_count,
            )
