"""Errors raised by the update engine.

Every error carries the exit code the CLI uses when it is fatal. Errors
grouped under ``UpdateError`` only ever affect updating, so the launcher
recovers from them and keeps the existing binary.
"""

import logging
import subprocess
from collections.abc import Callable

logger = logging.getLogger(__name__)


class LauncherError(Exception):
    """Base class for launcher and installer failures."""

    exit_code = 1


class PlatformUnsupported(LauncherError):
    """Raised when the host OS or architecture has no release asset."""

    exit_code = 2


class BinaryNotFound(LauncherError):
    """Raised when no installed binary can be located."""

    exit_code = 3


class UpdateError(LauncherError):
    """Base class for failures that only affect installing a new version."""


class DownloadFailed(UpdateError):
    """Raised when an asset or its metadata cannot be downloaded."""

    exit_code = 4


class InstallerFailed(UpdateError):
    """Raised when materializing a downloaded artifact fails."""

    exit_code = 5


class PermissionDenied(UpdateError):
    """Raised when the install location is not writable and cannot be elevated."""

    exit_code = 6


class CacheUnreadable(LauncherError):
    """Raised internally when the version cache cannot be read."""


class VersionUnresolvable(LauncherError):
    """Raised internally when the latest release version cannot be determined."""


def best_effort(action: Callable[[], object], description: str) -> bool:
    """Run ``action`` and report whether it succeeded.

    Failures are logged at debug level and never propagate. Callers use the
    returned flag or discard it explicitly.
    """
    try:
        action()
    except (OSError, subprocess.SubprocessError, LauncherError) as e:
        logger.debug("Ignoring failure to %s: %s: %s", description, type(e).__name__, e)
        return False
    return True
