"""Update engine for the BlueDot launcher.

Provides the pieces the launcher and installer are built from:
- Platform detection and release asset naming
- A 3-hour cache of the latest released version
- Version comparison
- Write-permission and sudo resolution
- Atomic download-and-replace of the installed binary
"""

from bluedot.updater.bootstrap import Bootstrapper, InstallSummary, path_hint
from bluedot.updater.cache import VersionCache
from bluedot.updater.config import BLUEDOT, Product, Settings
from bluedot.updater.download import Downloader, run_with_spinner
from bluedot.updater.errors import (
    BinaryNotFound,
    CacheUnreadable,
    DownloadFailed,
    InstallerFailed,
    LauncherError,
    PermissionDenied,
    PlatformUnsupported,
    UpdateError,
    VersionUnresolvable,
    best_effort,
)
from bluedot.updater.installer import AtomicInstaller
from bluedot.updater.launcher import BinaryInstallation, Launcher, exec_binary, installed_version, locate_binary
from bluedot.updater.platforms import Architecture, OperatingSystem, PackageKind, PlatformTag, resolve_platform
from bluedot.updater.privilege import ElevationMode, InstallTarget, PrivilegeResolver
from bluedot.updater.registry import AssetLocation, Release, ReleaseAsset, ReleaseRegistry
from bluedot.updater.versions import normalize_version, should_update

__all__ = [
    "BLUEDOT",
    "Architecture",
    "AssetLocation",
    "AtomicInstaller",
    "BinaryInstallation",
    "BinaryNotFound",
    "Bootstrapper",
    "CacheUnreadable",
    "DownloadFailed",
    "Downloader",
    "ElevationMode",
    "InstallSummary",
    "InstallTarget",
    "InstallerFailed",
    "Launcher",
    "LauncherError",
    "OperatingSystem",
    "PackageKind",
    "PermissionDenied",
    "PlatformTag",
    "PlatformUnsupported",
    "PrivilegeResolver",
    "Product",
    "Release",
    "ReleaseAsset",
    "ReleaseRegistry",
    "Settings",
    "UpdateError",
    "VersionCache",
    "VersionUnresolvable",
    "best_effort",
    "exec_binary",
    "installed_version",
    "locate_binary",
    "normalize_version",
    "path_hint",
    "resolve_platform",
    "run_with_spinner",
    "should_update",
]
