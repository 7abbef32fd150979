"""Host platform detection and release asset naming."""

import platform
from dataclasses import dataclass
from enum import Enum

from bluedot.updater.config import BLUEDOT, Product
from bluedot.updater.errors import PlatformUnsupported


class OperatingSystem(str, Enum):
    """Operating systems with published release assets."""

    MACOS = "macos"
    LINUX = "linux"


class Architecture(str, Enum):
    """CPU architectures with published release assets."""

    ARM64 = "arm64"
    AMD64 = "amd64"


class PackageKind(str, Enum):
    """How a downloaded asset becomes an installed binary."""

    SIMPLE_BINARY = "simple_binary"
    NATIVE_PACKAGE = "native_package"


@dataclass(frozen=True)
class PlatformTag:
    """Canonical platform identity and the asset published for it."""

    os: OperatingSystem
    arch: Architecture
    asset_name: str
    kind: PackageKind


_WINDOWS_PREFIXES = ("msys", "mingw", "cygwin", "windows")

_ARCH_ALIASES = {
    "arm64": Architecture.ARM64,
    "aarch64": Architecture.ARM64,
    "x86_64": Architecture.AMD64,
    "amd64": Architecture.AMD64,
}


def resolve_platform(system: str, machine: str, product: Product = BLUEDOT) -> PlatformTag:
    """Map raw ``uname``-style identifiers to a PlatformTag.

    Raises:
        PlatformUnsupported: The OS, the architecture, or their combination
            has no published asset.
    """
    os_name = system.strip().lower()
    arch_name = machine.strip().lower()

    if os_name == "darwin":
        os_kind = OperatingSystem.MACOS
    elif os_name == "linux":
        os_kind = OperatingSystem.LINUX
    elif os_name.startswith(_WINDOWS_PREFIXES):
        raise PlatformUnsupported(product.windows_hint or f"Unsupported OS: {system}")
    else:
        raise PlatformUnsupported(f"Unsupported OS: {system}")

    arch = _ARCH_ALIASES.get(arch_name)
    if arch is None:
        raise PlatformUnsupported(f"Unsupported architecture: {machine}")

    if os_kind is OperatingSystem.MACOS:
        return PlatformTag(
            os=os_kind,
            arch=arch,
            asset_name=f"{product.asset_prefix}_darwin_{arch.value}.pkg",
            kind=PackageKind.NATIVE_PACKAGE,
        )

    if arch is not Architecture.AMD64:
        raise PlatformUnsupported(
            f"Linux build is currently only available for amd64/x86_64 (got: {arch.value})."
        )
    return PlatformTag(
        os=os_kind,
        arch=arch,
        asset_name=f"{product.asset_prefix}_linux_amd64",
        kind=PackageKind.SIMPLE_BINARY,
    )


def detect_platform(product: Product = BLUEDOT) -> PlatformTag:
    """Resolve the PlatformTag of the running host."""
    return resolve_platform(platform.system(), platform.machine(), product)
