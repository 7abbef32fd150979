"""Self-updating launcher implementation.

Runs on every invocation of the wrapper:
1. Locate the installed binary
2. Read its version and the latest released version (cached for 3 hours)
3. If they differ, try to install the release (failures only warn)
4. Run the binary with the original arguments and return its exit code
"""

import logging
import os
import subprocess
import sys
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from bluedot.updater.cache import VersionCache
from bluedot.updater.config import Product, Settings, user_bin_dir
from bluedot.updater.download import Downloader
from bluedot.updater.errors import BinaryNotFound, PlatformUnsupported, UpdateError, best_effort
from bluedot.updater.installer import WRAPPER_MARKER, AtomicInstaller, is_executable, is_launcher_wrapper
from bluedot.updater.platforms import PackageKind, PlatformTag, detect_platform
from bluedot.updater.privilege import ElevationMode, PrivilegeResolver
from bluedot.updater.registry import ReleaseRegistry
from bluedot.updater.versions import parse_version_output, should_update

logger = logging.getLogger(__name__)

VERSION_QUERY_TIMEOUT_SECONDS = 10

WRAPPER_TEMPLATE = """#!{interpreter}
{marker}
# {name} launcher: checks for updates, then runs {binary_name}
from bluedot.cli import launch

launch()
"""


@dataclass
class BinaryInstallation:
    """An installed binary and the launcher wrapper that runs it."""

    binary: Path
    wrapper: Path

    def render_wrapper(self, product: Product, interpreter: str | None = None) -> str:
        return WRAPPER_TEMPLATE.format(
            interpreter=interpreter or sys.executable,
            marker=WRAPPER_MARKER,
            name=product.name,
            binary_name=product.binary_name,
        )

    def write_wrapper(
        self,
        product: Product,
        privileges: PrivilegeResolver,
        elevation: ElevationMode = ElevationMode.NONE,
        interpreter: str | None = None,
    ) -> Path:
        """Write the wrapper script with mode 0755, through sudo when elevated."""
        content = self.render_wrapper(product, interpreter)
        if elevation is ElevationMode.SUDO:
            fd, tmp_name = tempfile.mkstemp(prefix=f"{product.wrapper_name}-wrapper-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
                privileges.run(["install", "-m", "755", tmp_name, str(self.wrapper)], elevation)
            finally:
                best_effort(lambda: os.unlink(tmp_name), f"remove {tmp_name}")
        else:
            self.wrapper.write_text(content, encoding="utf-8")
            self.wrapper.chmod(0o755)
        return self.wrapper


def binary_candidates(settings: Settings) -> list[Path]:
    """Known install locations of the binary, in search order."""
    product = settings.product
    system_dir = product.package_bin_dir
    candidates = [
        settings.install_dir / product.binary_name,
        system_dir / product.binary_name,
        *(system_dir / name for name in product.legacy_binary_names),
        user_bin_dir() / product.binary_name,
    ]
    unique: list[Path] = []
    for path in candidates:
        if path not in unique:
            unique.append(path)
    return unique


def locate_binary(candidates: Sequence[Path], product: Product) -> Path:
    """Return the first executable candidate that is not a launcher wrapper.

    Raises:
        BinaryNotFound: No candidate is usable.
    """
    for path in candidates:
        if is_executable(path) and not is_launcher_wrapper(path):
            return path
    raise BinaryNotFound(f"Error: {product.binary_name} not found. Please reinstall.")


def installed_version(
    binary: Path,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> str:
    """Version reported by ``binary --version``; "" when it cannot be determined."""
    try:
        result = runner(
            [str(binary), "--version"],
            capture_output=True,
            text=True,
            timeout=VERSION_QUERY_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Version query failed for %s: %s: %s", binary, type(e).__name__, e)
        return ""
    return parse_version_output(f"{result.stdout or ''}\n{result.stderr or ''}")


def exec_binary(binary: Path, args: Sequence[str]) -> int:
    """Run ``binary`` with ``args`` and return its exit status.

    A child killed by a signal maps to ``128 + signal``, as a shell reports it.

    Raises:
        BinaryNotFound: The binary could not be started.
    """
    try:
        proc = subprocess.Popen([str(binary), *args])
    except OSError as e:
        raise BinaryNotFound(f"Error: could not run {binary}: {e}. Please reinstall.") from e
    with proc:
        while True:
            try:
                code = proc.wait()
                break
            except KeyboardInterrupt:
                # The child got the same interrupt; its exit status is what we report
                continue
    return 128 - code if code < 0 else code


class Launcher:
    """Orchestrates locate, version check, best-effort update and hand-off."""

    def __init__(
        self,
        settings: Settings,
        console: Console,
        wrapper: Path | None = None,
        registry: ReleaseRegistry | None = None,
        cache: VersionCache | None = None,
        downloader: Downloader | None = None,
        privileges: PrivilegeResolver | None = None,
        platform_detector: Callable[[Product], PlatformTag] = detect_platform,
        version_runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.settings = settings
        self.product = settings.product
        self.console = console
        self.wrapper = wrapper
        self.registry = registry or ReleaseRegistry(settings.repo, settings.token)
        self.cache = cache or VersionCache(self.product.cache_file, self.registry, ttl=settings.cache_ttl)
        self.downloader = downloader or Downloader()
        self.privileges = privileges or PrivilegeResolver()
        self._platform_detector = platform_detector
        self._version_runner = version_runner

    def locate(self) -> Path:
        return locate_binary(binary_candidates(self.settings), self.product)

    def check(self, binary: Path) -> str | None:
        """Return the version to update to, or None when no update is warranted."""
        current = installed_version(binary, self._version_runner)
        latest = self.cache.get_latest()
        logger.debug("Installed version %r, latest %r", current, latest)
        return latest if should_update(current, latest) else None

    def _wrapper_paths(self, binary: Path) -> list[Path]:
        paths = [binary.parent / self.product.wrapper_name]
        if self.wrapper is not None:
            paths.append(self.wrapper)
        return paths

    def update(self, binary: Path, version: str) -> Path:
        """Install release ``version`` over ``binary``.

        Raises:
            UpdateError: Download, permission or install failure.
            PlatformUnsupported: The host has no asset to update from.
        """
        platform_tag = self._platform_detector(self.product)

        if platform_tag.kind is PackageKind.NATIVE_PACKAGE:
            target = self.product.canonical_package_binary
            elevation = self.privileges.package_elevation()
        else:
            target = binary
            elevation = self.privileges.resolve(binary.parent, allow_fallback=False).elevation

        self.console.print(f"Updating {self.product.name} to {version}...")
        location = self.registry.asset_location(version, platform_tag.asset_name)
        installer = AtomicInstaller(platform_tag, self.product, self.downloader, self.privileges, self.console)
        installed = installer.install(location, target, elevation, keep=self._wrapper_paths(binary))

        # A legacy-named package may have displaced the wrapper
        if self.wrapper is not None and not self.wrapper.exists():
            installation = BinaryInstallation(binary=installed, wrapper=self.wrapper)
            best_effort(
                lambda: installation.write_wrapper(self.product, self.privileges, elevation),
                f"restore wrapper {self.wrapper}",
            )
        return installed

    def attempt_update(self, binary: Path, version: str) -> Path:
        """Best-effort update; returns the binary to run either way."""
        try:
            installed = self.update(binary, version)
        except (UpdateError, PlatformUnsupported) as e:
            logger.debug("Update to %s failed", version, exc_info=True)
            self.console.print(f"[yellow]{e}[/yellow]")
            self.console.print("[yellow]Update failed, using existing version.[/yellow]")
            return binary
        self.console.print(f"[green]Updated to {version}[/green]")
        return installed

    def run(self, args: Sequence[str]) -> int:
        """Run the full launch sequence and return the binary's exit status.

        Raises:
            BinaryNotFound: No installed binary exists.
        """
        binary = self.locate()
        version = self.check(binary)
        if version:
            binary = self.attempt_update(binary, version)
        return exec_binary(binary, args)
