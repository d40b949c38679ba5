"""
Typed records for Dependabot Automerge.

The GitHub client converts PyGithub objects into these models at the service
boundary, so the screening and filtering code only ever sees validated,
wire-independent data.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SemverChange = Literal["major", "minor", "patch", "unknown"]

SEMVER_CHANGES: tuple[str, ...] = ("major", "minor", "patch", "unknown")

DEPENDABOT_LOGIN = "dependabot[bot]"


class DependencyUpdate(BaseModel):
    """A single dependency bump extracted from a PR title or body."""

    name: str | None = None
    from_version: str | None = None
    to_version: str | None = None
    semver_change: SemverChange | None = None

    @property
    def is_complete(self) -> bool:
        """Whether the fields required by the filter engine are present."""
        return bool(self.name and self.to_version and self.semver_change)


class PullRequestDetails(BaseModel):
    """Mergeability information from the single-PR endpoint."""

    number: int
    mergeable: bool | None = None
    mergeable_state: str | None = None


class Commit(BaseModel):
    """A commit on a pull request."""

    sha: str
    author_login: str | None = None
    committer_login: str | None = None


class Review(BaseModel):
    """A submitted pull request review."""

    user_id: int | None = None
    user_login: str | None = None
    state: str
    submitted_at: datetime | None = None

    @property
    def reviewer(self) -> int | str | None:
        """Identity used to pair a change request with a later approval."""
        return self.user_id if self.user_id is not None else self.user_login


class PullRequest(BaseModel):
    """An open pull request, plus the data the screener attaches to it."""

    number: int
    title: str = ""
    body: str = ""
    user_login: str | None = None
    created_at: datetime
    head_sha: str = ""
    html_url: str = ""
    labels: list[str] = Field(default_factory=list)

    details: PullRequestDetails | None = None
    dependency_info: DependencyUpdate | None = None
    dependency_info_list: list[DependencyUpdate] = Field(default_factory=list)

    @property
    def is_multi_dependency(self) -> bool:
        return len(self.dependency_info_list) > 0

    @property
    def dependencies(self) -> list[DependencyUpdate]:
        """All dependency updates carried by this PR, in order."""
        if self.dependency_info_list:
            return list(self.dependency_info_list)
        if self.dependency_info is not None:
            return [self.dependency_info]
        return []


class FilterPolicy(BaseModel):
    """Allow/deny rules applied to every eligible PR in a run."""

    model_config = ConfigDict(frozen=True)

    ignored_dependencies: list[str] = Field(default_factory=list)
    always_allow: list[str] = Field(default_factory=list)
    always_allow_labels: list[str] = Field(default_factory=list)
    ignored_versions: list[str] = Field(default_factory=list)
    semver_filter: list[str] = Field(default_factory=lambda: ["patch", "minor"])
