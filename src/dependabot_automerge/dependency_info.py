"""
Dependency update extraction from Dependabot PR titles and bodies.

Dependabot describes an update in one of three shapes:

- ``Bump lodash from 4.17.20 to 4.17.21``              single dependency
- ``Bump cookie and express in /app``                  two dependencies,
  versions listed as ``Updates <name> from <v> to <v>`` lines in the body
- ``Bump the npm group with 7 updates``                grouped update,
  versions listed in a ``| Package | From | To |`` table in the body

Titles are matched case-insensitively so the conventional commit prefix
(``build(deps): bump ...``) and the ``Bumps`` wording are accepted too.
"""

import re

import structlog

from .models import DependencyUpdate
from .versions import determine_semver_change

logger = structlog.get_logger(__name__)

_SINGLE_TITLE = re.compile(r"\bbumps?\s+(\S+)\s+from\s+(\S+)\s+to\s+(\S+)", re.IGNORECASE)
_TWO_NAME_TITLE = re.compile(
    r"\bbumps?\s+(\S+)\s+and\s+(\S+)(?:\s+in\s+(\S+))?", re.IGNORECASE
)
_GROUP_TITLE = re.compile(
    r"\bbumps?\s+the\s+(\S+)\s+(?:group|across|with|in|updates)\b", re.IGNORECASE
)
_UPDATES_LINE = re.compile(r"Updates [`']?([^`'\s]+)[`']? from ([^\s`']+) to ([^\s`']+)")
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")

_TABLE_HEADER_ROWS = 2


def _build_update(name: str, from_version: str, to_version: str) -> DependencyUpdate:
    return DependencyUpdate(
        name=name,
        from_version=from_version,
        to_version=to_version,
        semver_change=determine_semver_change(from_version, to_version),
    )


def is_multiple_dependency_title(title: str) -> bool:
    """Check whether a title announces a two-dependency or grouped update."""
    return bool(_TWO_NAME_TITLE.search(title) or _GROUP_TITLE.search(title))


def extract_dependency_info(title: str) -> DependencyUpdate:
    """
    Extract a single dependency update from a PR title.

    Args:
        title: Pull request title, e.g. "Bump lodash from 4.17.20 to 4.17.21"

    Returns:
        The dependency update; every field is None when the title does not
        describe a single bump
    """
    match = _SINGLE_TITLE.search(title or "")
    if not match:
        return DependencyUpdate()

    name, from_version, to_version = match.groups()
    return _build_update(name, from_version, to_version)


def _extract_update_lines(body: str) -> list[DependencyUpdate]:
    return [
        _build_update(name, from_version, to_version)
        for name, from_version, to_version in _UPDATES_LINE.findall(body)
    ]


def _table_cells(line: str) -> list[str] | None:
    stripped = line.strip()
    if not (stripped.startswith("|") and stripped.endswith("|")):
        return None
    cells = [cell.strip() for cell in stripped[1:-1].split("|")]
    if len(cells) != 3 or not all(cells):
        return None
    return cells


def _extract_table_rows(body: str) -> list[DependencyUpdate]:
    dependencies = []
    rows_seen = 0

    for line in body.splitlines():
        cells = _table_cells(line)
        if cells is None:
            continue

        rows_seen += 1
        if rows_seen <= _TABLE_HEADER_ROWS:
            continue

        package, from_version, to_version = cells
        name = _MARKDOWN_LINK.sub(r"\1", package).strip()
        from_version = from_version.replace("`", "").strip()
        to_version = to_version.replace("`", "").strip()
        if not (name and from_version and to_version):
            continue

        dependencies.append(_build_update(name, from_version, to_version))

    return dependencies


def extract_multiple_dependency_info(
    title: str, body: str | None
) -> list[DependencyUpdate]:
    """
    Extract every dependency update from a two-dependency or grouped PR.

    The two-name title shape is tried before the group shape, and the
    first shape that matches decides which body grammar is used.

    Args:
        title: Pull request title
        body: Pull request body (markdown)

    Returns:
        Dependency updates in the order they appear in the body; empty when
        the title has neither shape or the body lists nothing
    """
    title = title or ""
    body = body or ""

    if _TWO_NAME_TITLE.search(title):
        return _extract_update_lines(body)

    if _GROUP_TITLE.search(title):
        dependencies = _extract_table_rows(body)
        if not dependencies:
            dependencies = _extract_update_lines(body)
        logger.debug(
            "Extracted grouped dependency updates",
            title=title,
            count=len(dependencies),
        )
        return dependencies

    return []
