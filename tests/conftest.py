"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from rich.console import Console

from bluedot.updater import BLUEDOT, PrivilegeResolver, Product, Settings


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="run live tests that talk to the real GitHub API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring network access to GitHub (deselect with '-m \"not live\"')",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def console() -> Console:
    """A console that records output instead of writing to the terminal."""
    return Console(record=True, force_terminal=False, width=400)


@pytest.fixture
def product(tmp_path: Path) -> Product:
    """BlueDot product profile rooted in a temporary directory."""
    system_dir = tmp_path / "usr-local-bin"
    system_dir.mkdir()
    return Product(
        name=BLUEDOT.name,
        repo=BLUEDOT.repo,
        env_prefix=BLUEDOT.env_prefix,
        asset_prefix=BLUEDOT.asset_prefix,
        binary_name=BLUEDOT.binary_name,
        wrapper_name=BLUEDOT.wrapper_name,
        legacy_binary_names=BLUEDOT.legacy_binary_names,
        alias_names=BLUEDOT.alias_names,
        package_bin_dir=system_dir,
        state_dir_name=".bluedot",
        windows_hint=BLUEDOT.windows_hint,
    )


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory at a temporary directory."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home_dir))
    return home_dir


@pytest.fixture
def settings(product: Product, home: Path) -> Settings:
    """Settings installing into the product's system directory."""
    return Settings(product=product, repo=product.repo, install_dir=product.package_bin_dir)


@pytest.fixture
def privileges() -> PrivilegeResolver:
    """A resolver on a host with no sudo, not root, and no terminal."""
    return PrivilegeResolver(
        which=lambda name: None,
        isatty=lambda: False,
        geteuid=lambda: 1000,
    )


@pytest.fixture
def write_executable():
    """Factory writing an executable shell script."""

    def write(path: Path, content: str = "#!/bin/sh\nexit 0\n") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        path.chmod(0o755)
        return path

    return write
