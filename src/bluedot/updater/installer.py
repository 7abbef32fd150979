"""Atomic replacement of the installed binary.

The canonical binary path is only ever mutated by a rename, and only after
the new artifact is fully downloaded and executable. Any earlier failure
leaves the previous binary in place.
"""

import logging
import os
import shutil
import tempfile
from collections.abc import Collection
from pathlib import Path
from typing import Protocol

from rich.console import Console

from bluedot.updater.config import Product
from bluedot.updater.download import Downloader, run_with_spinner
from bluedot.updater.errors import InstallerFailed, best_effort
from bluedot.updater.platforms import PackageKind, PlatformTag
from bluedot.updater.privilege import ElevationMode, PrivilegeResolver
from bluedot.updater.registry import AssetLocation

logger = logging.getLogger(__name__)

# Identifies launcher wrapper scripts so they are never mistaken for the binary
WRAPPER_MARKER = "# bluedot-launcher-wrapper"


def is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def is_launcher_wrapper(path: Path) -> bool:
    """True when ``path`` is a wrapper script written by this package."""
    try:
        with path.open("rb") as fh:
            head = fh.read(512)
    except OSError:
        return False
    return WRAPPER_MARKER.encode() in head


def remove_path(path: Path, privileges: PrivilegeResolver, elevation: ElevationMode) -> None:
    """Delete a file or symlink, retrying through sudo when elevated."""
    if not (path.exists() or path.is_symlink()):
        return
    try:
        path.unlink()
    except PermissionError:
        if elevation is not ElevationMode.SUDO:
            raise
        privileges.run(["rm", "-f", str(path)], elevation)


class Materializer(Protocol):
    """Turns a downloaded artifact into an installed binary."""

    def materialize(self, artifact: Path, target: Path, elevation: ElevationMode) -> Path:
        """Install ``artifact`` and return the canonical binary path."""


class BinaryMaterializer:
    """Stages the artifact next to the target and renames it into place."""

    def __init__(self, privileges: PrivilegeResolver):
        self._privileges = privileges

    def materialize(self, artifact: Path, target: Path, elevation: ElevationMode) -> Path:
        # Same directory as the target so the final rename never crosses filesystems
        staged = target.with_name(f".{target.name}.new-{os.getpid()}")
        try:
            if elevation is ElevationMode.SUDO:
                self._privileges.run(["cp", str(artifact), str(staged)], elevation)
                self._privileges.run(["chmod", "755", str(staged)], elevation)
            else:
                shutil.copy2(artifact, staged)
                staged.chmod(0o755)
            if not is_executable(staged):
                raise InstallerFailed(f"Staged binary {staged} is not executable")

            if elevation is ElevationMode.SUDO:
                self._privileges.run(["mv", "-f", str(staged), str(target)], elevation)
            else:
                os.replace(staged, target)
        except (OSError, InstallerFailed) as e:
            best_effort(lambda: remove_path(staged, self._privileges, elevation), f"remove {staged}")
            if isinstance(e, InstallerFailed):
                raise
            raise InstallerFailed(f"Could not install {target}: {e}") from e
        return target


class PackageMaterializer:
    """Runs the OS package installer, which owns the canonical binary path."""

    def __init__(self, product: Product, privileges: PrivilegeResolver):
        self._product = product
        self._privileges = privileges

    def materialize(self, artifact: Path, target: Path, elevation: ElevationMode) -> Path:
        self._privileges.run(["installer", "-pkg", str(artifact), "-target", "/"], elevation)

        canonical = self._product.canonical_package_binary
        if not is_executable(canonical):
            # Older packages shipped the binary under a legacy name
            for name in self._product.legacy_binary_names:
                legacy = canonical.with_name(name)
                if is_executable(legacy) and not is_launcher_wrapper(legacy):
                    logger.debug("Renaming legacy binary %s -> %s", legacy, canonical)
                    self._privileges.run(["mv", "-f", str(legacy), str(canonical)], elevation)
                    break
        return canonical


class AtomicInstaller:
    """Downloads a release asset and installs it without a broken window."""

    def __init__(
        self,
        platform_tag: PlatformTag,
        product: Product,
        downloader: Downloader,
        privileges: PrivilegeResolver,
        console: Console | None = None,
    ):
        self.platform_tag = platform_tag
        self.product = product
        self._downloader = downloader
        self._privileges = privileges
        self._console = console
        materializers: dict[PackageKind, Materializer] = {
            PackageKind.SIMPLE_BINARY: BinaryMaterializer(privileges),
            PackageKind.NATIVE_PACKAGE: PackageMaterializer(product, privileges),
        }
        self._materializer = materializers[platform_tag.kind]

    def fetch(self, location: AssetLocation, dest: Path) -> Path:
        """Download the asset, behind a spinner when a console is attached."""

        def do_download() -> Path:
            return self._downloader.download(location.url, dest, location.headers)

        if self._console is None:
            return do_download()
        return run_with_spinner(do_download, self._console, "Downloading...")

    def remove_stale_aliases(
        self,
        installed: Path,
        elevation: ElevationMode,
        keep: Collection[Path] = (),
    ) -> None:
        """Remove alias links the package installer leaves in the package bin dir.

        Failures are ignored.
        """
        bin_dir = self.product.package_bin_dir
        protected = {installed.absolute(), *(p.absolute() for p in keep)}
        for name in self.product.alias_names:
            alias = bin_dir / name
            if alias.absolute() in protected:
                continue
            best_effort(lambda: remove_path(alias, self._privileges, elevation), f"remove alias {alias}")

    def install(
        self,
        location: AssetLocation,
        target_binary: Path,
        elevation: ElevationMode = ElevationMode.NONE,
        keep: Collection[Path] = (),
    ) -> Path:
        """Download and install the asset, returning the verified binary path.

        Raises:
            DownloadFailed: The asset could not be downloaded.
            InstallerFailed: The artifact could not be put in place, or the
                canonical binary is missing afterwards.
        """
        with tempfile.TemporaryDirectory(prefix=f"{self.product.wrapper_name}-") as tmp:
            artifact = Path(tmp) / self.platform_tag.asset_name
            self.fetch(location, artifact)
            artifact.chmod(artifact.stat().st_mode | 0o111)

            installed = self._materializer.materialize(artifact, target_binary, elevation)
            if self.platform_tag.kind is PackageKind.NATIVE_PACKAGE:
                self.remove_stale_aliases(installed, elevation, keep)

            if not is_executable(installed):
                raise InstallerFailed(f"Install failed: {installed} not found.")

        logger.info("Installed %s", installed)
        return installed
