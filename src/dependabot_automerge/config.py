"""
Configuration management for Dependabot Automerge.

This module handles environment variables, settings validation, and configuration
management using Pydantic Settings for type safety and validation.
"""

import os
import re
from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import DEPENDABOT_LOGIN, SEMVER_CHANGES, FilterPolicy


def _split_list(v: Any, field_name: str) -> list[str]:
    """Parse a comma-separated string or a list into a list of strings."""
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    if isinstance(v, list):
        return [str(item).strip() for item in v if str(item).strip()]
    raise ValueError(f"{field_name} must be a string or list, got {type(v)}")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # GitHub configuration
    github_token: str = Field(
        default="$GITHUB_TOKEN",
        description="GitHub token, or $NAME to read it from environment variable NAME",
    )
    github_repository: str = Field(default="", description="Repository as owner/repo")
    github_ref: str = Field(
        default="", description="Ref the run was triggered from (refs/heads/...)"
    )
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub API URL"
    )

    # Eligibility
    minimum_age_of_pr: int = Field(
        default=0, ge=0, description="Minimum PR age in days before merging"
    )
    blackout_periods: str = Field(
        default="", description="Comma-separated periods when nothing is merged"
    )
    retry_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Delay between mergeability checks and after merges (ms)",
    )
    bot_login: str = Field(
        default=DEPENDABOT_LOGIN, description="Login of the dependency bot"
    )

    # Filter policy
    ignored_dependencies: str | list[str] = Field(
        default="", description="Dependencies never merged (comma-separated)"
    )
    always_allow: str | list[str] = Field(
        default="",
        description="Patterns bypassing the semver filter (comma-separated)",
    )
    always_allow_labels: str | list[str] = Field(
        default="", description="PR labels bypassing every filter (comma-separated)"
    )
    ignored_versions: str | list[str] = Field(
        default="",
        description="Versions never merged, as name@version or name@* (comma-separated)",
    )
    semver_filter: str | list[str] = Field(
        default="patch,minor",
        description="Allowed semver changes: major, minor, patch, unknown",
    )

    # Merging
    merge_method: str = Field(default="merge", description="merge, squash or rebase")
    auto_approve: bool = Field(default=False, description="Approve PRs before merging")
    dry_run: bool = Field(default=False, description="Report without merging")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    # GitHub Actions files
    github_step_summary: str = Field(
        default="", description="Path of the workflow summary file"
    )
    github_output: str = Field(default="", description="Path of the step output file")

    @field_validator(
        "ignored_dependencies",
        "always_allow",
        "always_allow_labels",
        "ignored_versions",
        mode="before",
    )
    @classmethod
    def parse_comma_separated(cls, v: Any, info: ValidationInfo) -> list[str]:
        """Parse comma-separated string or list."""
        return _split_list(v, info.field_name)

    @field_validator("semver_filter", mode="before")
    @classmethod
    def parse_semver_filter(cls, v: Any) -> list[str]:
        """Parse the semver filter, falling back to patch,minor when empty."""
        values = [item.lower() for item in _split_list(v, "semver_filter")]
        return values or ["patch", "minor"]

    @field_validator("semver_filter")
    @classmethod
    def validate_semver_filter(cls, v: list[str]) -> list[str]:
        """Validate semver filter members."""
        for change in v:
            if change not in SEMVER_CHANGES:
                raise ValueError(f"Invalid semver change: {change}")
        return v

    @field_validator("merge_method")
    @classmethod
    def validate_merge_method(cls, v: str) -> str:
        """Validate merge method."""
        allowed_methods = {"merge", "squash", "rebase"}
        if v.lower() not in allowed_methods:
            raise ValueError(f"Invalid merge method: {v}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @property
    def filter_policy(self) -> FilterPolicy:
        """Get the filter policy for a run."""
        return FilterPolicy(
            ignored_dependencies=self.ignored_dependencies,
            always_allow=self.always_allow,
            always_allow_labels=self.always_allow_labels,
            ignored_versions=self.ignored_versions,
            semver_filter=self.semver_filter,
        )

    def resolve_token(self) -> str:
        """
        Resolve the GitHub token.

        A value starting with ``$`` names the environment variable holding
        the token.

        Returns:
            The token

        Raises:
            ConfigurationError: No token could be resolved
        """
        token = self.github_token.strip()
        if token.startswith("$"):
            env_var = token[1:]
            value = os.environ.get(env_var, "")
            if not value:
                raise ConfigurationError(
                    "GitHub token not provided or found in environment "
                    f"variable {env_var}",
                    context={"env_var": env_var},
                )
            return value
        if not token:
            raise ConfigurationError("GitHub token not provided")
        return token

    def repository_parts(self) -> tuple[str, str]:
        """
        Split ``github_repository`` into owner and name.

        Raises:
            ConfigurationError: The repository is missing or malformed
        """
        match = re.fullmatch(r"\s*([^/\s]+)/([^/\s]+)\s*", self.github_repository)
        if not match:
            raise ConfigurationError(
                "GITHUB_REPOSITORY must be set as owner/repo",
                context={"github_repository": self.github_repository},
            )
        return match.group(1), match.group(2)


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
