"""Write-permission checks, sudo escalation and the user-scope fallback."""

import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bluedot.updater.config import user_bin_dir
from bluedot.updater.errors import InstallerFailed, PermissionDenied

logger = logging.getLogger(__name__)


class ElevationMode(str, Enum):
    """How filesystem operations against the install target are run."""

    NONE = "none"
    SUDO = "sudo"


@dataclass
class InstallTarget:
    """The directory an install or update writes to."""

    directory: Path
    elevation: ElevationMode = ElevationMode.NONE
    fallback: bool = False

    @property
    def requires_elevation(self) -> bool:
        return self.elevation is ElevationMode.SUDO


def _stdin_isatty() -> bool:
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except (OSError, ValueError):
        return False


def _geteuid() -> int:
    return os.geteuid() if hasattr(os, "geteuid") else -1


class PrivilegeResolver:
    """Decides whether a directory is written directly, via sudo, or not at all."""

    def __init__(
        self,
        which: Callable[[str], str | None] = shutil.which,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        isatty: Callable[[], bool] = _stdin_isatty,
        geteuid: Callable[[], int] = _geteuid,
        fallback_dir: Callable[[], Path] = user_bin_dir,
    ):
        self._which = which
        self._runner = runner
        self._isatty = isatty
        self._geteuid = geteuid
        self._fallback_dir = fallback_dir

    def is_root(self) -> bool:
        return self._geteuid() == 0

    def is_writable(self, directory: Path) -> bool:
        return directory.is_dir() and os.access(directory, os.W_OK)

    def can_elevate(self) -> bool:
        """True when sudo exists and either works silently or can prompt on a TTY."""
        if self._which("sudo") is None:
            return False
        try:
            probe = self._runner(
                ["sudo", "-n", "true"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
            if probe.returncode == 0:
                return True
        except OSError as e:
            logger.debug("sudo probe failed: %s", e)
        return self._isatty()

    def resolve(self, target_dir: Path, allow_fallback: bool = True) -> InstallTarget:
        """Pick the effective install directory and elevation mode.

        Falls back to the user-owned bin directory when ``target_dir`` is
        neither writable nor reachable through sudo.

        Raises:
            PermissionDenied: ``allow_fallback`` is False and no write access
                can be obtained.
        """
        if self.is_writable(target_dir):
            return InstallTarget(directory=target_dir)

        if self.can_elevate():
            logger.debug("%s is not writable, using sudo", target_dir)
            return InstallTarget(directory=target_dir, elevation=ElevationMode.SUDO)

        if not allow_fallback:
            raise PermissionDenied(
                f"Cannot update: no write permission for {target_dir}. Run with sudo to update."
            )

        fallback = self._fallback_dir()
        fallback.mkdir(parents=True, exist_ok=True)
        logger.debug("%s is not writable, installing into %s", target_dir, fallback)
        return InstallTarget(directory=fallback, fallback=True)

    def package_elevation(self) -> ElevationMode:
        """Elevation needed to run the OS package installer.

        Raises:
            PermissionDenied: Not root and sudo is unavailable.
        """
        if self.is_root():
            return ElevationMode.NONE
        if self.can_elevate():
            return ElevationMode.SUDO
        raise PermissionDenied("Cannot run the package installer non-interactively (no sudo).")

    def run(self, argv: Sequence[str], elevation: ElevationMode = ElevationMode.NONE) -> None:
        """Run a command, through sudo when elevated.

        Raises:
            InstallerFailed: The command could not be started or exited non-zero.
        """
        cmd = list(argv)
        if elevation is ElevationMode.SUDO:
            cmd = ["sudo", *cmd]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            self._runner(cmd, check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            raise InstallerFailed(f"Command failed: {' '.join(cmd)}: {e}") from e
