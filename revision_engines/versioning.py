"""
revision_engines.versioning -- Revision version policy.

Responsibility:
    Parse, compare and advance dotted ``major.minor`` revision versions.
    A critical change bumps major and resets minor (``1.3 -> 2.0``); a
    non-critical change bumps minor only (``1.3 -> 1.4``).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Version monotonicity: ``next_version`` is always strictly greater than
      its input under (major, minor) ordering.
    - A missing minor component reads as 0 (``"2"`` is ``2.0``).

Failure modes:
    - InvalidVersionError for anything that is not ``<int>`` or
      ``<int>.<int>`` with non-negative components.
"""

from __future__ import annotations

import re

from revision_kernel.exceptions import InvalidVersionError

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?$")

INITIAL_VERSION = "1.0"


def parse_version(version: str) -> tuple[int, int]:
    """Split ``"major.minor"`` into integers."""
    if not isinstance(version, str):
        raise InvalidVersionError(str(version))
    match = _VERSION_RE.match(version.strip())
    if match is None:
        raise InvalidVersionError(version)
    major = int(match.group(1))
    minor = int(match.group(2)) if match.group(2) is not None else 0
    return major, minor


def format_version(major: int, minor: int) -> str:
    return f"{major}.{minor}"


def next_version(current_version: str, has_critical_change: bool) -> str:
    """Compute the version that follows ``current_version``.

    Args:
        current_version: The version being revised.
        has_critical_change: True if the union of recorded and newly
            detected changes contains any critical change.
    """
    major, minor = parse_version(current_version)
    if has_critical_change:
        return format_version(major + 1, 0)
    return format_version(major, minor + 1)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 comparing (major, minor) numerically."""
    a, b = parse_version(left), parse_version(right)
    return (a > b) - (a < b)
