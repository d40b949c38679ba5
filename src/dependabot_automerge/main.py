"""
Command line entry point for Dependabot Automerge.

This module configures logging, builds the settings from the environment and
command line options, and runs a single automerge pass.
"""

import argparse
import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Any

import structlog
from pydantic import ValidationError

from .config import Settings
from .exceptions import AutomergeError, ConfigurationError
from .runner import MERGED_PR_COUNT_OUTPUT, AutomergeRunner
from .summary import write_output

GITHUB_URL = re.compile(r"^https?://github\.com/([^/]+)/([^/]+?)(?:\.git)?(?:/.*)?$")


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging."""
    log_level = settings.log_level if settings else "INFO"
    log_format = settings.log_format if settings else "json"

    logging.basicConfig(level=getattr(logging, log_level), format="%(message)s")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def parse_github_url(url: str) -> tuple[str, str]:
    """
    Extract owner and repository name from a GitHub URL.

    Args:
        url: Repository URL such as https://github.com/owner/repo

    Returns:
        Tuple of (owner, repo)

    Raises:
        ConfigurationError: The URL is not a GitHub repository URL
    """
    match = GITHUB_URL.match(url.strip())
    if not match:
        raise ConfigurationError(
            "Invalid GitHub repository URL. Expected format: "
            "https://github.com/owner/repo",
            context={"url": url},
        )
    return match.group(1), match.group(2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dependabot-automerge",
        description="Automatically merge Dependabot pull requests that pass "
        "the configured safety and policy rules.",
    )
    parser.add_argument(
        "url",
        nargs="?",
        help="GitHub repository URL (overrides GITHUB_REPOSITORY)",
    )
    parser.add_argument("--token", help="GitHub token, or $NAME of a variable holding it")
    parser.add_argument(
        "--minimum-age", type=int, help="Minimum age of a PR in days before merging"
    )
    parser.add_argument("--blackout-periods", help="Comma-separated blackout periods")
    parser.add_argument(
        "--ignored-dependencies", help="Comma-separated dependencies to never merge"
    )
    parser.add_argument(
        "--always-allow", help="Comma-separated patterns bypassing the semver filter"
    )
    parser.add_argument(
        "--always-allow-labels", help="Comma-separated labels bypassing every filter"
    )
    parser.add_argument(
        "--ignored-versions", help="Comma-separated name@version entries to never merge"
    )
    parser.add_argument(
        "--semver-filter", help="Comma-separated allowed semver changes"
    )
    parser.add_argument(
        "--merge-method", choices=["merge", "squash", "rebase"], help="Merge method"
    )
    parser.add_argument(
        "--retry-delay-ms", type=int, help="Delay between retries in milliseconds"
    )
    parser.add_argument(
        "--auto-approve",
        action="store_true",
        default=None,
        help="Approve each PR before merging it",
    )
    parser.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Report what would be merged without merging "
        "(default when a URL is given)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level",
    )
    parser.add_argument(
        "--log-format", choices=["json", "console"], help="Log output format"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


_OPTION_FIELDS = {
    "token": "github_token",
    "minimum_age": "minimum_age_of_pr",
    "blackout_periods": "blackout_periods",
    "ignored_dependencies": "ignored_dependencies",
    "always_allow": "always_allow",
    "always_allow_labels": "always_allow_labels",
    "ignored_versions": "ignored_versions",
    "semver_filter": "semver_filter",
    "merge_method": "merge_method",
    "retry_delay_ms": "retry_delay_ms",
    "auto_approve": "auto_approve",
    "dry_run": "dry_run",
    "log_level": "log_level",
    "log_format": "log_format",
}


def settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed command line options onto settings fields."""
    overrides = {
        field: getattr(args, option)
        for option, field in _OPTION_FIELDS.items()
        if getattr(args, option) is not None
    }
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    if args.url:
        owner, repo = parse_github_url(args.url)
        overrides["github_repository"] = f"{owner}/{repo}"
        # Local runs against a URL only report unless --no-dry-run is given
        overrides.setdefault("dry_run", True)
    return overrides


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings(**settings_overrides(args))
    except (ConfigurationError, ValidationError) as e:
        setup_logging()
        structlog.get_logger().error("Invalid configuration", error=str(e))
        return 1

    setup_logging(settings)
    logger = structlog.get_logger()

    try:
        asyncio.run(AutomergeRunner(settings).run())
    except AutomergeError as e:
        logger.error(f"Action failed: {e}", code=e.code, context=e.context)
        _write_failed_output(settings)
        return 1
    except Exception as e:
        logger.exception(f"Action failed with an unhandled error: {e}")
        _write_failed_output(settings)
        return 1

    return 0


def _write_failed_output(settings: Settings) -> None:
    if settings.github_output:
        write_output(settings.github_output, MERGED_PR_COUNT_OUTPUT, 0)


if __name__ == "__main__":
    raise SystemExit(main())
