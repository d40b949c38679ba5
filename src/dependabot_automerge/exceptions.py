"""
Custom exceptions for Dependabot Automerge.

PR-level problems are recorded in the filter reason ledger and never raised;
the exceptions below are for configuration and GitHub API failures that
abort a run or a single API call.
"""

from typing import Any


class AutomergeError(Exception):
    """Base exception for Dependabot Automerge errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "AUTOMERGE_ERROR"
        self.context = context or {}


class ConfigurationError(AutomergeError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)


class GitHubAPIError(AutomergeError):
    """Exception for GitHub API related errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "GITHUB_API_ERROR", context)
        self.status_code = status_code


class AuthenticationError(GitHubAPIError):
    """Exception for rejected or missing GitHub credentials."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, 401, context)
        self.code = "AUTHENTICATION_ERROR"


class MergeError(AutomergeError):
    """Exception for a merge call that GitHub rejected."""

    def __init__(
        self,
        message: str,
        pr_number: int | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "MERGE_ERROR", context)
        self.pr_number = pr_number
        self.status_code = status_code
