"""
Merge execution for Dependabot Automerge.

This module merges the PRs that passed screening and filtering, one at a
time, with optional approval beforehand and a single retry for merges
rejected because the base branch moved underneath them.
"""

import asyncio

import structlog

from .github_client import GitHubClient
from .models import PullRequest
from .screener import PRScreener

logger = structlog.get_logger(__name__)

MERGE_QUEUE_HINTS = ("merge queue", "branch protection", "required status check")
MERGE_QUEUE_STATUS_CODES = (405, 422)


def is_base_branch_modified_error(error: Exception) -> bool:
    return "base branch was modified" in str(error).lower()


def is_merge_queue_error(error: Exception) -> bool:
    message = str(error).lower()
    if any(hint in message for hint in MERGE_QUEUE_HINTS):
        return True
    return getattr(error, "status_code", None) in MERGE_QUEUE_STATUS_CODES


class PRProcessor:
    """
    Merges pull requests sequentially.

    A failure on one PR is logged and never stops the rest of the batch.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        screener: PRScreener,
        merge_method: str = "merge",
        retry_delay_ms: int = 2000,
        auto_approve: bool = False,
        dry_run: bool = False,
    ):
        """
        Initialize the PR processor.

        Args:
            github_client: GitHub API client
            screener: Screener used to re-verify mergeability before a retry
            merge_method: One of "merge", "squash" or "rebase"
            retry_delay_ms: Settle delay after each merge and between
                mergeability polls, in milliseconds
            auto_approve: Approve each PR before merging it
            dry_run: Log what would be merged without merging
        """
        self.github_client = github_client
        self.screener = screener
        self.merge_method = merge_method
        self.retry_delay_ms = retry_delay_ms
        self.auto_approve = auto_approve
        self.dry_run = dry_run

    async def merge_pull_requests(
        self, owner: str, repo: str, pull_requests: list[PullRequest]
    ) -> int:
        """
        Merge the given pull requests in order.

        Args:
            owner: Repository owner
            repo: Repository name
            pull_requests: PRs allowed by the filter engine

        Returns:
            Number of PRs merged
        """
        merged_count = 0

        for pr in pull_requests:
            if self.dry_run:
                logger.info(
                    f"[DRY RUN] Would merge PR #{pr.number}: {pr.title}",
                    merge_method=self.merge_method,
                )
                continue

            try:
                if await self._merge_one(owner, repo, pr):
                    merged_count += 1
            except Exception as e:
                logger.warning(f"Failed to merge PR #{pr.number}: {e}")

        return merged_count

    async def _approve(self, owner: str, repo: str, pr_number: int) -> bool:
        try:
            await self.github_client.approve(owner, repo, pr_number)
        except Exception as e:
            logger.warning(f"Failed to approve PR #{pr_number}: {e}")
            return False
        logger.info(f"Approved PR #{pr_number}")
        return True

    async def _settle(self) -> None:
        if self.retry_delay_ms > 0:
            logger.debug(
                f"Waiting {self.retry_delay_ms}ms after merge to allow GitHub "
                "to process changes"
            )
            await asyncio.sleep(self.retry_delay_ms / 1000)

    async def _merge_one(self, owner: str, repo: str, pr: PullRequest) -> bool:
        logger.info(f"Attempting to merge PR #{pr.number}: {pr.title}")

        if self.auto_approve and not await self._approve(owner, repo, pr.number):
            logger.warning(f"Skipping merge of PR #{pr.number} due to approval failure")
            return False

        try:
            await self.github_client.merge(owner, repo, pr.number, self.merge_method)
        except Exception as e:
            if is_base_branch_modified_error(e):
                return await self._retry_after_base_branch_change(owner, repo, pr)

            if is_merge_queue_error(e) and self.merge_method != "merge":
                logger.warning(
                    f"PR #{pr.number} may require a merge queue, but merge method is "
                    f"set to '{self.merge_method}'. Only 'merge' method is supported "
                    "with merge queues."
                )
                logger.warning(
                    "To use merge queues, change the merge method to 'merge' "
                    "in your workflow configuration."
                )
            raise

        logger.info(f"Successfully merged PR #{pr.number}")
        await self._settle()
        return True

    async def _retry_after_base_branch_change(
        self, owner: str, repo: str, pr: PullRequest
    ) -> bool:
        logger.warning(
            f"PR #{pr.number} failed due to base branch modification. "
            "Re-verifying mergeability and retrying..."
        )

        details = await self.screener.check_pr_mergeability(
            owner, repo, pr.number, self.retry_delay_ms
        )
        if details is None or not details.mergeable:
            logger.warning(
                f"PR #{pr.number} is no longer mergeable after base branch "
                "modification. Skipping."
            )
            return False

        logger.info(f"Retrying merge for PR #{pr.number} after re-verification")
        await self.github_client.merge(owner, repo, pr.number, self.merge_method)

        logger.info(f"Successfully merged PR #{pr.number} on retry")
        await self._settle()
        return True
