"""Version string handling.

Versions are compared as normalized text, never ordered. A remote tag that
differs from the installed version in any way is treated as an update, so a
release rolled back on the registry downgrades the local binary too.
"""

import re

_PREFIX = re.compile(r"^[^0-9]+")
_SELF_REPORT = re.compile(r"v?[0-9]+\.[0-9]+\.[0-9]+")


def normalize_version(version: str | None) -> str:
    """Strip surrounding whitespace and any leading non-numeric prefix ("v1.2" -> "1.2")."""
    if not version:
        return ""
    return _PREFIX.sub("", version.strip())


def should_update(current: str | None, latest: str | None) -> bool:
    """Return True when both versions are known and differ after normalization."""
    current_normalized = normalize_version(current)
    latest_normalized = normalize_version(latest)
    if not current_normalized or not latest_normalized:
        return False
    return current_normalized != latest_normalized


def parse_version_output(output: str) -> str:
    """Extract the first ``vX.Y.Z`` style version from ``--version`` output."""
    match = _SELF_REPORT.search(output or "")
    return match.group(0) if match else ""
