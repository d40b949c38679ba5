"""
Filter reason ledger.

Every screening or filtering decision about a PR is recorded here, keyed by
PR number and by dependency name. A ledger lives for exactly one run: the
runner creates it and hands it to the screener and the filter engine, and
the summary renderer reads it afterwards.
"""

from collections.abc import Iterator
from dataclasses import dataclass

GENERAL = "general"


@dataclass(frozen=True)
class FilterReason:
    """One recorded decision about a PR."""

    dependency: str
    reason: str
    passed: bool = False


class FilterReasonLedger:
    """Per-run mapping of PR number to recorded decisions."""

    def __init__(self):
        self._by_pr: dict[int, list[FilterReason]] = {}
        self._by_dependency: dict[str, set[int]] = {}

    def record(
        self,
        pr_number: int,
        reason: str,
        dependency: str | None = GENERAL,
        passed: bool = False,
    ) -> FilterReason:
        """
        Record a decision about a PR.

        Args:
            pr_number: Pull request number
            reason: Human readable reason
            dependency: Dependency the reason applies to, "general" for
                PR-level reasons
            passed: True when the decision allows the PR

        Returns:
            The recorded entry
        """
        entry = FilterReason(dependency or GENERAL, reason, passed)
        self._by_pr.setdefault(pr_number, []).append(entry)
        self._by_dependency.setdefault(entry.dependency, set()).add(pr_number)
        return entry

    def get(self, pr_number: int) -> list[FilterReason] | None:
        entries = self._by_pr.get(pr_number)
        return list(entries) if entries is not None else None

    def reasons(self, pr_number: int) -> list[str]:
        return [entry.reason for entry in self._by_pr.get(pr_number, [])]

    def pull_requests_for(self, dependency: str) -> set[int]:
        return set(self._by_dependency.get(dependency, set()))

    def items(self) -> Iterator[tuple[int, list[FilterReason]]]:
        for pr_number, entries in self._by_pr.items():
            yield pr_number, list(entries)

    def reset(self) -> None:
        self._by_pr.clear()
        self._by_dependency.clear()

    def __contains__(self, pr_number: object) -> bool:
        return pr_number in self._by_pr

    def __len__(self) -> int:
        return len(self._by_pr)
