"""Product profile and environment-driven settings."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

# Latest version cache lifetime
CACHE_TTL_SECONDS: Final = 3 * 60 * 60

# Network timeouts
METADATA_TIMEOUT_SECONDS: Final = 5.0
DOWNLOAD_TIMEOUT_SECONDS: Final = 60.0

# Spinner liveness sampling interval
SPINNER_INTERVAL_SECONDS: Final = 0.1

GITHUB_API_URL: Final = "https://api.github.com/repos"
GITHUB_URL: Final = "https://github.com"

# User agent for GitHub API (required by GitHub)
USER_AGENT: Final = "bluedot-launcher/1.0"

DEFAULT_RELEASE_TAG: Final = "latest"
SYSTEM_BIN_DIR: Final = Path("/usr/local/bin")


@dataclass(frozen=True)
class Product:
    """Everything that differs between product skins sharing this launcher."""

    name: str
    repo: str
    env_prefix: str
    asset_prefix: str
    binary_name: str
    wrapper_name: str
    legacy_binary_names: tuple[str, ...] = ()
    alias_names: tuple[str, ...] = ()
    package_bin_dir: Path = SYSTEM_BIN_DIR
    state_dir_name: str = ""
    windows_hint: str = ""

    @property
    def state_dir(self) -> Path:
        return Path.home() / (self.state_dir_name or f".{self.wrapper_name}")

    @property
    def cache_file(self) -> Path:
        return self.state_dir / ".version-cache"

    @property
    def canonical_package_binary(self) -> Path:
        """Where the native package places the binary."""
        return self.package_bin_dir / self.binary_name


BLUEDOT: Final = Product(
    name="BlueDot",
    repo="BrowserBox/BlueDot-CLI",
    env_prefix="BLUEDOT",
    asset_prefix="bluedot",
    binary_name="bluedot-cli",
    wrapper_name="bluedot",
    legacy_binary_names=("bluedot",),
    alias_names=("bluedot", "helm", "hm"),
    state_dir_name=".bluedot",
    windows_hint="Windows detected. Use: irm bluedot.browserbox.io/install.ps1 | iex",
)


def user_bin_dir() -> Path:
    """User-owned fallback install directory."""
    return Path.home() / ".local" / "bin"


@dataclass
class Settings:
    """Runtime settings resolved from the environment."""

    product: Product
    repo: str
    token: str | None = None
    release_tag: str = DEFAULT_RELEASE_TAG
    install_dir: Path = SYSTEM_BIN_DIR
    debug: bool = False
    cache_ttl: float = CACHE_TTL_SECONDS

    @classmethod
    def from_env(cls, product: Product = BLUEDOT, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``<PREFIX>_*`` environment variables."""
        env = os.environ if environ is None else environ
        prefix = product.env_prefix

        def get(name: str) -> str:
            return env.get(f"{prefix}_{name}", "").strip()

        return cls(
            product=product,
            repo=get("REPO") or product.repo,
            token=get("GITHUB_TOKEN") or None,
            release_tag=get("RELEASE_TAG") or DEFAULT_RELEASE_TAG,
            install_dir=Path(get("INSTALL_DIR") or SYSTEM_BIN_DIR).expanduser(),
            debug=get("DEBUG").lower() in ("1", "true", "yes", "on"),
        )
