"""Version parsing and semver delta classification.

Dependabot titles carry whatever version strings the ecosystem uses, so
versions are coerced leniently into a ``semver.Version`` before comparing:
- "4.17.1-beta.0" → 4.17.1
- "v2.3" → 2.3.0
- "5.70.0+20220324" → 5.70.0
"""

from __future__ import annotations

import re

import semver
import structlog

logger = structlog.get_logger(__name__)

_COMMIT_HASH = re.compile(r"^[a-f0-9]{7,40}$", re.IGNORECASE)

# First major[.minor[.patch]] run not preceded by another digit.
_COERCE = re.compile(r"(?:^|\D)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?:$|\D)")

_COMPONENTS = ("major", "minor", "patch")


def is_commit_hash(value: str) -> bool:
    return bool(_COMMIT_HASH.match(value))


def coerce_version(version_str: str) -> semver.Version | None:
    """Coerce a free-form version string into a semver.Version.

    Missing components are padded with zeros and pre-release/build
    suffixes are dropped. Returns None when no numeric run is found:
    - "1" → 1.0.0
    - "1.2" → 1.2.0
    - "latest" → None
    """
    match = _COERCE.search(version_str)
    if not match:
        return None
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    return semver.Version(major, minor, patch)


def determine_semver_change(from_version: object, to_version: object) -> str:
    """Classify a version transition as major, minor, patch or unknown.

    Only upgrades are classified: equal versions, downgrades, commit-hash
    pairs and anything that cannot be coerced are "unknown".
    """
    if not isinstance(from_version, str) or not isinstance(to_version, str):
        return "unknown"
    if not from_version or not to_version:
        return "unknown"

    if is_commit_hash(from_version) and is_commit_hash(to_version):
        return "unknown"

    cleaned_from = coerce_version(from_version)
    cleaned_to = coerce_version(to_version)
    if cleaned_from is None or cleaned_to is None:
        logger.debug(
            "Failed to determine semver change",
            from_version=from_version,
            to_version=to_version,
        )
        return "unknown"

    from_parts = (cleaned_from.major, cleaned_from.minor, cleaned_from.patch)
    to_parts = (cleaned_to.major, cleaned_to.minor, cleaned_to.patch)
    if to_parts <= from_parts:
        return "unknown"

    for component, old, new in zip(_COMPONENTS, from_parts, to_parts):
        if new != old:
            return component
    return "unknown"
