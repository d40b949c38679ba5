"""
Filter/policy engine.

Decides, for every screened PR, whether its dependency updates are allowed by
the configured policy. Multi-dependency PRs are all-or-nothing: one failing
dependency keeps the whole PR out of the merge set.
"""

import structlog

from .models import DEPENDABOT_LOGIN, DependencyUpdate, FilterPolicy, PullRequest
from .reasons import GENERAL, FilterReasonLedger

logger = structlog.get_logger(__name__)

NAME_PATTERN_PREFIX = "name:"


def should_always_allow(name: str, always_allow: list[str]) -> bool:
    """
    Check whether a dependency bypasses the semver filter.

    Patterns match when they are the ``*`` wildcard, equal the name,
    are ``name:<substring>`` with the substring contained in the name, or
    are a prefix of the name (``no.nav.appsec`` matches
    ``no.nav.appsec:contracts``).

    Args:
        name: Dependency name
        always_allow: Configured patterns

    Returns:
        True if any pattern matches
    """
    if not always_allow:
        return False
    if "*" in always_allow:
        return True

    for pattern in always_allow:
        if not pattern:
            continue
        if pattern == name:
            return True
        if pattern.startswith(NAME_PATTERN_PREFIX):
            value = pattern[len(NAME_PATTERN_PREFIX):]
            if value and value in name:
                return True
        if name.startswith(pattern):
            return True
    return False


def should_always_allow_by_label(
    labels: list[str] | None, always_allow_labels: list[str] | None
) -> bool:
    """Check whether a PR carries one of the always-allow labels, ignoring case."""
    if not labels or not always_allow_labels:
        return False
    allowed = {label.lower() for label in always_allow_labels}
    return any(label.lower() in allowed for label in labels)


def _split_ignored_version(entry: str) -> tuple[str, str | None]:
    # Scoped names such as @types/node carry a leading "@"
    at = entry.rfind("@")
    if at <= 0:
        return entry, None
    return entry[:at], entry[at + 1:] or None


def is_version_ignored(dependency: DependencyUpdate, ignored_versions: list[str]) -> bool:
    """
    Check a dependency against ``name@version``, ``name@*`` and bare ``name``
    entries; a bare name ignores every version.
    """
    for entry in ignored_versions:
        name, version = _split_ignored_version(entry.strip())
        if name != dependency.name:
            continue
        if version is None or version == "*" or version == dependency.to_version:
            return True
    return False


def validate_dependency(
    dependency: DependencyUpdate, policy: FilterPolicy, multi: bool = False
) -> tuple[bool, str]:
    """
    Validate a single dependency update against the policy.

    Args:
        dependency: Dependency update to check
        policy: Filter policy for this run
        multi: Whether the dependency belongs to a multi-dependency PR,
            which changes the wording of the semver message

    Returns:
        Tuple of (passed, reason)
    """
    name = dependency.name

    if not dependency.is_complete:
        return False, f'Dependency "{name or "unknown"}" is missing required information'

    if name in policy.ignored_dependencies:
        return False, f'Dependency "{name}" is in ignored list'

    if is_version_ignored(dependency, policy.ignored_versions):
        return False, f'Version "{name}@{dependency.to_version}" is in ignored list'

    if should_always_allow(name, policy.always_allow):
        return True, f'Bypassing semver filter - "{name}" matches always-allow pattern'

    if dependency.semver_change not in policy.semver_filter:
        if multi:
            return (
                False,
                f'Semver change "{dependency.semver_change}" for "{name}" '
                "is not in allowed list",
            )
        return (
            False,
            f'Semver change "{dependency.semver_change}" is not in allowed list: '
            f"{', '.join(policy.semver_filter)}",
        )

    return (
        True,
        f"Passed all filters - {name}@{dependency.to_version} "
        f"({dependency.semver_change} change)",
    )


def _describe_policy(policy: FilterPolicy) -> str:
    parts = []
    if policy.ignored_dependencies:
        parts.append(f"Ignored dependencies: {', '.join(policy.ignored_dependencies)}")
    if policy.always_allow:
        parts.append(f"Always allow: {', '.join(policy.always_allow)}")
    if policy.always_allow_labels:
        parts.append(f"Always allow labels: {', '.join(policy.always_allow_labels)}")
    if policy.ignored_versions:
        parts.append(f"Ignored versions: {', '.join(policy.ignored_versions)}")
    parts.append(f"Semver filter: {', '.join(policy.semver_filter)}")
    return "; ".join(parts)


def _evaluate(
    pr: PullRequest,
    policy: FilterPolicy,
    ledger: FilterReasonLedger,
    bot_login: str,
) -> bool:
    if pr.user_login != bot_login:
        reason = f"Not created by Dependabot (creator: {pr.user_login or 'unknown'})"
        ledger.record(pr.number, reason)
        logger.debug(f"PR #{pr.number}: Skipping - {reason}")
        return False

    if should_always_allow_by_label(pr.labels, policy.always_allow_labels):
        ledger.record(pr.number, "Always allowed by label", GENERAL, passed=True)
        logger.debug(f"PR #{pr.number}: Bypassing all filters - matches always-allow label")
        return True

    dependencies = pr.dependencies
    if not dependencies:
        ledger.record(pr.number, "No dependency info available")
        logger.debug(f"PR #{pr.number}: Skipping - No dependency info available")
        return False

    outcomes = []
    for dependency in dependencies:
        passed, reason = validate_dependency(dependency, policy, pr.is_multi_dependency)
        if not passed:
            ledger.record(pr.number, reason, dependency.name)
            logger.debug(f"PR #{pr.number}: Dependency validation failed - {reason}")
            return False
        outcomes.append((dependency.name, reason))

    for name, reason in outcomes:
        ledger.record(pr.number, reason, name, passed=True)
    logger.debug(f"PR #{pr.number}: All {len(dependencies)} dependencies passed filters")
    return True


def apply_filters(
    pull_requests: list[PullRequest],
    policy: FilterPolicy,
    ledger: FilterReasonLedger,
    bot_login: str = DEPENDABOT_LOGIN,
) -> list[PullRequest]:
    """
    Apply the filter policy to screened pull requests.

    Args:
        pull_requests: PRs that passed eligibility screening
        policy: Filter policy for this run
        ledger: Ledger receiving every decision
        bot_login: Login of the dependency bot

    Returns:
        The PRs allowed to be merged, in input order
    """
    logger.info(f"Applying filters: {_describe_policy(policy)}")
    return [pr for pr in pull_requests if _evaluate(pr, policy, ledger, bot_login)]
