"""
Run report rendering.

Builds the markdown workflow summary from a finished run and appends it,
together with step outputs, to the files GitHub Actions provides through
``GITHUB_STEP_SUMMARY`` and ``GITHUB_OUTPUT``.
"""

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from .models import FilterPolicy, PullRequest
from .reasons import GENERAL

if TYPE_CHECKING:
    from .runner import RunResult

logger = structlog.get_logger(__name__)

BLACKOUT_MESSAGE = (
    "Action is currently in a blackout period. No PRs will be merged during this time."
)
NO_PRS_MESSAGE = "No pull requests found that meet basic criteria."


def _section_title(title: str) -> str:
    return f"## {title}"


def _table_header(columns: list[str]) -> str:
    return "\n".join([" | ".join(columns), " | ".join("---" for _ in columns)])


def _joined(values: list[str]) -> str:
    return ", ".join(values) if values else "None"


def _pr_link(pr: PullRequest) -> str:
    return f"[#{pr.number}]({pr.html_url})"


def _filter_table(policy: FilterPolicy) -> str:
    return "\n".join(
        [
            _table_header(["Filter Type", "Value"]),
            f"Ignored Dependencies | {_joined(policy.ignored_dependencies)}",
            f"Always Allow | {_joined(policy.always_allow)}",
            f"Always Allow Labels | {_joined(policy.always_allow_labels)}",
            f"Ignored Versions | {_joined(policy.ignored_versions)}",
            f"Semver Filter | {', '.join(policy.semver_filter)}",
        ]
    )


def _overview_table(result: "RunResult") -> str:
    rows = [_table_header(["PR", "Dependency", "Status"])]
    for pr in result.filtered_prs:
        names = [dep.name for dep in pr.dependencies if dep.name] or ["General"]
        for name in names:
            rows.append(f"{_pr_link(pr)} | {name} | ✅ Will merge")
    return "\n".join(rows)


def _filtered_out_table(result: "RunResult", filtered_out: list[PullRequest]) -> str:
    rows = [_table_header(["PR", "Dependency", "Reason"])]
    for pr in filtered_out:
        entries = [
            entry for entry in result.ledger.get(pr.number) or [] if not entry.passed
        ]
        if not entries:
            rows.append(f"{_pr_link(pr)} | Unknown | ❌ No specific reason recorded")
            continue
        for entry in entries:
            dependency = "General" if entry.dependency == GENERAL else entry.dependency
            rows.append(f"{_pr_link(pr)} | {dependency} | ❌ {entry.reason}")
    return "\n".join(rows)


def build_workflow_summary(result: "RunResult", policy: FilterPolicy) -> str:
    """
    Render the markdown summary of a run.

    Args:
        result: Finished run
        policy: Filter policy the run applied

    Returns:
        Markdown text
    """
    sections = ["# Dependabot Automerge Summary", _filter_table(policy)]

    sections.append(_section_title("Pull Request Summary"))
    if result.in_blackout:
        sections.append(BLACKOUT_MESSAGE)
    elif not result.initial_prs:
        sections.append(NO_PRS_MESSAGE)
    else:
        sections.append(
            f"Found {len(result.initial_prs)} pull request(s), "
            f"{len(result.filtered_prs)} will be merged."
        )

    if result.filtered_prs:
        sections.append(_section_title("Pull Requests Overview"))
        sections.append(_overview_table(result))

    merged_numbers = {pr.number for pr in result.filtered_prs}
    filtered_out = [pr for pr in result.initial_prs if pr.number not in merged_numbers]
    if filtered_out:
        sections.append(_section_title("Filtered Out PRs"))
        sections.append(_filtered_out_table(result, filtered_out))

    return "\n\n".join(sections) + "\n"


def write_workflow_summary(path: str | Path, markdown: str) -> None:
    """Append markdown to the workflow summary file."""
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(markdown)
    logger.info("Added workflow summary with dependency decisions and PR information")


def write_output(path: str | Path, name: str, value: object) -> None:
    """Append a ``name=value`` step output."""
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(f"{name}={value}\n")
