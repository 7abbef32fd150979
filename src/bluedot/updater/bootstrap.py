"""First-time installation of the binary and its launcher wrapper."""

import logging
import os
import shutil
import subprocess
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from bluedot.updater.config import Product, Settings
from bluedot.updater.download import Downloader, run_with_spinner
from bluedot.updater.errors import PermissionDenied, best_effort
from bluedot.updater.installer import AtomicInstaller, remove_path
from bluedot.updater.launcher import BinaryInstallation
from bluedot.updater.platforms import PackageKind, PlatformTag, detect_platform
from bluedot.updater.privilege import ElevationMode, InstallTarget, PrivilegeResolver
from bluedot.updater.registry import ReleaseRegistry

logger = logging.getLogger(__name__)


@dataclass
class InstallSummary:
    """Outcome of a first-time install."""

    installation: BinaryInstallation | None
    target: InstallTarget
    deferred_to_ui: bool = False


def path_hint(install_dir: Path, path_env: str, shell: str, home: Path | None = None) -> list[str]:
    """Lines advising how to put ``install_dir`` on PATH; empty when it already is."""
    entries = [entry for entry in path_env.split(os.pathsep) if entry]
    if str(install_dir) in entries:
        return []

    home = home or Path.home()
    export = f'export PATH="{install_dir}:$PATH"'
    shell_name = Path(shell).name if shell else ""
    if shell_name == "zsh":
        return ["Add to PATH:", f"  echo '{export}' >> ~/.zshrc && source ~/.zshrc"]
    if shell_name == "bash":
        profile = home / ".bash_profile"
        if not profile.exists():
            profile = home / ".bashrc"
        return ["Add to PATH:", f"  echo '{export}' >> {profile} && source {profile}"]
    return [f"Add to PATH: {export}"]


class Bootstrapper:
    """Runs the companion installer flow."""

    def __init__(
        self,
        settings: Settings,
        console: Console,
        registry: ReleaseRegistry | None = None,
        downloader: Downloader | None = None,
        privileges: PrivilegeResolver | None = None,
        platform_detector: Callable[[Product], PlatformTag] = detect_platform,
        opener: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.settings = settings
        self.product = settings.product
        self.console = console
        self.registry = registry or ReleaseRegistry(settings.repo, settings.token)
        self.downloader = downloader or Downloader()
        self.privileges = privileges or PrivilegeResolver()
        self._platform_detector = platform_detector
        self._opener = opener

    def remove_previous_install(self) -> None:
        """Best-effort removal of wrappers and legacy binaries from earlier installs.

        The binary in the install directory is left for the atomic replace, so
        a failed reinstall still leaves it runnable.
        """
        elevation = ElevationMode.SUDO if self.privileges.can_elevate() else ElevationMode.NONE
        stale = [
            self.settings.install_dir / self.product.wrapper_name,
            self.product.package_bin_dir / self.product.wrapper_name,
        ]
        for path in dict.fromkeys(stale):
            best_effort(lambda: remove_path(path, self.privileges, elevation), f"remove {path}")

    def _open_package_ui(self, platform_tag: PlatformTag) -> None:
        """Hand the package to the OS installer UI from a copy that outlives this process."""
        with tempfile.TemporaryDirectory(prefix=f"{self.product.wrapper_name}-") as tmp:
            location = self.registry.asset_location(self.settings.release_tag, platform_tag.asset_name)
            artifact = Path(tmp) / platform_tag.asset_name
            run_with_spinner(
                lambda: self.downloader.download(location.url, artifact, location.headers),
                self.console,
                "Installing",
            )
            self.product.state_dir.mkdir(parents=True, exist_ok=True)
            persistent = self.product.state_dir / platform_tag.asset_name
            shutil.copy2(artifact, persistent)

        self.console.print(
            "[yellow]Can't run sudo installer non-interactively; opening the pkg installer UI...[/yellow]"
        )
        self._opener(["open", str(persistent)], check=False)
        self.console.print(f"After install completes, run: {self.product.wrapper_name}")

    def run(self) -> InstallSummary:
        """Install the configured release.

        Raises:
            PlatformUnsupported: The host has no release asset.
            DownloadFailed: The asset could not be fetched.
            InstallerFailed: The asset could not be installed.
        """
        platform_tag = self._platform_detector(self.product)
        self.remove_previous_install()

        if platform_tag.kind is PackageKind.NATIVE_PACKAGE:
            try:
                elevation = self.privileges.package_elevation()
            except PermissionDenied:
                self._open_package_ui(platform_tag)
                return InstallSummary(
                    installation=None,
                    target=InstallTarget(directory=self.product.package_bin_dir),
                    deferred_to_ui=True,
                )
            self.console.print("Running installer (requires admin)...")
            target = InstallTarget(directory=self.product.package_bin_dir, elevation=elevation)
        else:
            target = self.privileges.resolve(self.settings.install_dir)

        location = self.registry.asset_location(self.settings.release_tag, platform_tag.asset_name)
        installer = AtomicInstaller(platform_tag, self.product, self.downloader, self.privileges, self.console)
        binary = installer.install(
            location,
            target.directory / self.product.binary_name,
            target.elevation,
        )

        installation = BinaryInstallation(binary=binary, wrapper=binary.parent / self.product.wrapper_name)
        installation.write_wrapper(self.product, self.privileges, target.elevation)
        return InstallSummary(installation=installation, target=target)

    def report(self, summary: InstallSummary, path_env: str = "", shell: str = "") -> None:
        """Print installed paths and PATH advice."""
        if summary.installation is None:
            return
        install_dir = summary.installation.binary.parent
        self.console.print()
        self.console.print("Installed:")
        self.console.print(f"  Binary:  {summary.installation.binary}")
        self.console.print(f"  Wrapper: {summary.installation.wrapper} (auto-updates)")
        self.console.print()

        hint = path_hint(install_dir, path_env, shell)
        if hint:
            for line in hint:
                self.console.print(line, markup=False, highlight=False)
            self.console.print()

        self.console.print(f"Run: {self.product.wrapper_name}")
