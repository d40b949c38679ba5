"""
Dependabot Automerge

Automatically merges Dependabot dependency update PRs that pass configurable
safety checks and filter policies.
"""

__version__ = "0.1.0"

from .config import Settings
from .exceptions import AutomergeError
from .filters import apply_filters
from .github_client import GitHubClient
from .reasons import FilterReasonLedger
from .runner import AutomergeRunner, RunResult
from .screener import PRScreener

__all__ = [
    "Settings",
    "GitHubClient",
    "PRScreener",
    "AutomergeRunner",
    "RunResult",
    "FilterReasonLedger",
    "AutomergeError",
    "apply_filters",
]
