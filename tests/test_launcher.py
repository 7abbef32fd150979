"""Tests for the self-updating launcher."""

import os
import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from bluedot.updater import (
    BinaryInstallation,
    BinaryNotFound,
    DownloadFailed,
    Launcher,
    PlatformUnsupported,
    PrivilegeResolver,
    Product,
    ReleaseRegistry,
    Settings,
    VersionCache,
    VersionUnresolvable,
    exec_binary,
    installed_version,
    locate_binary,
    resolve_platform,
)
from bluedot.updater.installer import WRAPPER_MARKER, is_launcher_wrapper
from bluedot.updater.launcher import binary_candidates


def version_script(version: str, exit_code: int = 0) -> str:
    return (
        "#!/bin/sh\n"
        f'if [ "$1" = "--version" ]; then echo "bluedot-cli {version}"; exit 0; fi\n'
        f"exit {exit_code}\n"
    )


class FakeDownloader:
    """Writes a canned binary instead of fetching, or fails like a broken transfer."""

    def __init__(self, content: str = "", error: Exception | None = None):
        self.content = content
        self.error = error
        self.urls: list[str] = []

    def download(self, url: str, dest: Path, headers: dict[str, str] | None = None) -> Path:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        dest.write_text(self.content)
        return dest


def make_registry(latest: str | Exception) -> Mock:
    registry = Mock(spec=ReleaseRegistry)
    if isinstance(latest, Exception):
        registry.latest_tag.side_effect = latest
    else:
        registry.latest_tag.return_value = latest
    registry.asset_location.side_effect = ReleaseRegistry("BrowserBox/BlueDot-CLI").asset_location
    return registry


def make_launcher(
    settings: Settings,
    console: Console,
    privileges: PrivilegeResolver,
    registry: Mock,
    downloader: FakeDownloader,
    system: str = "Linux",
    wrapper: Path | None = None,
) -> Launcher:
    return Launcher(
        settings,
        console,
        wrapper=wrapper,
        registry=registry,
        cache=VersionCache(settings.product.cache_file, registry),
        downloader=downloader,
        privileges=privileges,
        platform_detector=lambda product: resolve_platform(system, "x86_64", product),
    )


class TestLocateBinary:
    """Tests for locate_binary()."""

    def test_first_executable_wins(self, tmp_path: Path, product: Product, write_executable) -> None:
        first = tmp_path / "a" / "bluedot-cli"
        second = write_executable(tmp_path / "b" / "bluedot-cli")
        third = write_executable(tmp_path / "c" / "bluedot-cli")

        assert locate_binary([first, second, third], product) == second

    def test_skips_non_executable(self, tmp_path: Path, product: Product, write_executable) -> None:
        plain = tmp_path / "a" / "bluedot-cli"
        plain.parent.mkdir()
        plain.write_text("not executable")
        plain.chmod(0o644)
        runnable = write_executable(tmp_path / "b" / "bluedot-cli")

        assert locate_binary([plain, runnable], product) == runnable

    def test_skips_launcher_wrapper(self, tmp_path: Path, product: Product, write_executable) -> None:
        """Should never pick the wrapper that lives at the legacy binary name."""
        wrapper = write_executable(tmp_path / "bluedot", f"#!/usr/bin/env python3\n{WRAPPER_MARKER}\n")
        binary = write_executable(tmp_path / "home" / "bluedot-cli")

        assert locate_binary([wrapper, binary], product) == binary

    def test_nothing_found(self, tmp_path: Path, product: Product) -> None:
        with pytest.raises(BinaryNotFound, match="Please reinstall") as exc_info:
            locate_binary([tmp_path / "missing"], product)

        assert exc_info.value.exit_code == 3


class TestBinaryCandidates:
    """Tests for binary_candidates()."""

    def test_search_order(self, settings: Settings, home: Path) -> None:
        system_dir = settings.product.package_bin_dir
        settings.install_dir = Path("/opt/bluedot/bin")

        assert binary_candidates(settings) == [
            Path("/opt/bluedot/bin/bluedot-cli"),
            system_dir / "bluedot-cli",
            system_dir / "bluedot",
            home / ".local" / "bin" / "bluedot-cli",
        ]

    def test_deduplicates_default_install_dir(self, settings: Settings) -> None:
        candidates = binary_candidates(settings)

        assert len(candidates) == len(set(candidates))


class TestInstalledVersion:
    """Tests for installed_version()."""

    def test_reads_self_report(self, tmp_path: Path, write_executable) -> None:
        binary = write_executable(tmp_path / "bluedot-cli", version_script("v1.4.0"))

        assert installed_version(binary) == "v1.4.0"

    def test_unrunnable_binary(self, tmp_path: Path) -> None:
        assert installed_version(tmp_path / "missing") == ""

    def test_timeout(self, tmp_path: Path) -> None:
        runner = Mock(side_effect=subprocess.TimeoutExpired(["bluedot-cli"], 10))

        assert installed_version(tmp_path / "bluedot-cli", runner) == ""

    def test_output_without_version(self, tmp_path: Path, write_executable) -> None:
        binary = write_executable(tmp_path / "bluedot-cli", "#!/bin/sh\necho 'unknown flag'\nexit 2\n")

        assert installed_version(binary) == ""


class TestExecBinary:
    """Tests for exec_binary()."""

    def test_propagates_exit_code(self, tmp_path: Path, write_executable) -> None:
        binary = write_executable(tmp_path / "bluedot-cli", "#!/bin/sh\nexit 7\n")

        assert exec_binary(binary, []) == 7

    def test_forwards_arguments_verbatim(self, tmp_path: Path, write_executable) -> None:
        out = tmp_path / "args.txt"
        binary = write_executable(tmp_path / "bluedot-cli", f'#!/bin/sh\nprintf "%s\\n" "$@" > {out}\n')

        assert exec_binary(binary, ["--help", "--", "a b", "-x"]) == 0
        assert out.read_text().splitlines() == ["--help", "--", "a b", "-x"]

    def test_signal_exit_maps_to_shell_convention(self, tmp_path: Path, write_executable) -> None:
        binary = write_executable(tmp_path / "bluedot-cli", "#!/bin/sh\nkill -TERM $$\n")

        assert exec_binary(binary, []) == 128 + 15

    def test_file_without_interpreter(self, tmp_path: Path, write_executable) -> None:
        binary = write_executable(tmp_path / "bluedot-cli", "not a script")

        with pytest.raises(BinaryNotFound, match="could not run"):
            exec_binary(binary, [])


class TestLauncherRun:
    """Tests for Launcher.run()."""

    def test_fresh_cache_same_version_skips_network(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        """Installed 1.4.0 with cached v1.4.0 from an hour ago: no fetch, no update."""
        binary = write_executable(settings.product.package_bin_dir / "bluedot-cli", version_script("1.4.0", 0))
        cache_file = settings.product.cache_file
        cache_file.parent.mkdir(parents=True)
        cache_file.write_text("v1.4.0\n")
        an_hour_ago = cache_file.stat().st_mtime - 3600
        os.utime(cache_file, (an_hour_ago, an_hour_ago))
        registry = make_registry("v9.9.9")
        downloader = FakeDownloader()

        code = make_launcher(settings, console, privileges, registry, downloader).run([])

        assert code == 0
        registry.latest_tag.assert_not_called()
        assert downloader.urls == []
        assert binary.read_text() == version_script("1.4.0", 0)

    def test_updates_to_new_release(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        """Installed v2.0.0, registry reports v2.1.0: update then run the new binary."""
        binary = write_executable(settings.product.package_bin_dir / "bluedot-cli", version_script("v2.0.0", 1))
        registry = make_registry("v2.1.0")
        downloader = FakeDownloader(content=version_script("2.1.0", 0))

        code = make_launcher(settings, console, privileges, registry, downloader).run(["status"])

        assert downloader.urls == [
            "https://github.com/BrowserBox/BlueDot-CLI/releases/download/v2.1.0/bluedot_linux_amd64"
        ]
        assert code == 0
        assert installed_version(binary) == "2.1.0"
        assert settings.product.cache_file.read_text().strip() == "v2.1.0"
        assert "Updated to v2.1.0" in console.export_text()

    def test_download_failure_runs_existing_binary(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        """A failed download only warns; the old binary runs and its exit code is returned."""
        original = version_script("v2.0.0", 5)
        binary = write_executable(settings.product.package_bin_dir / "bluedot-cli", original)
        registry = make_registry("v2.1.0")
        downloader = FakeDownloader(error=DownloadFailed("Download failed: connection reset"))

        code = make_launcher(settings, console, privileges, registry, downloader).run([])

        assert code == 5
        assert binary.read_text() == original
        assert "Update failed, using existing version." in console.export_text()

    def test_unknown_latest_version_skips_update(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        write_executable(settings.product.package_bin_dir / "bluedot-cli", version_script("v2.0.0", 0))
        registry = make_registry(VersionUnresolvable("offline"))
        downloader = FakeDownloader()

        assert make_launcher(settings, console, privileges, registry, downloader).run([]) == 0
        assert downloader.urls == []
        assert console.export_text() == ""

    def test_unknown_installed_version_skips_update(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        write_executable(settings.product.package_bin_dir / "bluedot-cli", "#!/bin/sh\nexit 0\n")
        registry = make_registry("v2.1.0")
        downloader = FakeDownloader()

        assert make_launcher(settings, console, privileges, registry, downloader).run([]) == 0
        assert downloader.urls == []

    def test_unwritable_install_warns(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        original = version_script("v2.0.0", 0)
        binary = write_executable(settings.product.package_bin_dir / "bluedot-cli", original)
        downloader = FakeDownloader(content=version_script("v2.1.0"))
        launcher = make_launcher(settings, console, privileges, make_registry("v2.1.0"), downloader)

        with patch.object(privileges, "is_writable", return_value=False):
            assert launcher.run([]) == 0

        output = console.export_text()
        assert "Run with sudo to update" in output
        assert "Update failed, using existing version." in output
        assert binary.read_text() == original
        assert downloader.urls == []

    def test_unsupported_platform_warns(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        write_executable(settings.product.package_bin_dir / "bluedot-cli", version_script("v2.0.0", 4))
        launcher = make_launcher(
            settings, console, privileges, make_registry("v2.1.0"), FakeDownloader(), system="FreeBSD"
        )

        assert launcher.run([]) == 4
        assert "Unsupported OS: FreeBSD" in console.export_text()

    def test_missing_binary(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, home: Path
    ) -> None:
        launcher = make_launcher(settings, console, privileges, make_registry("v2.1.0"), FakeDownloader())

        with patch("bluedot.updater.launcher.binary_candidates", return_value=[home / "nope"]):
            with pytest.raises(BinaryNotFound):
                launcher.run([])

    def test_restores_displaced_wrapper(
        self, settings: Settings, console: Console, privileges: PrivilegeResolver, write_executable
    ) -> None:
        bin_dir = settings.product.package_bin_dir
        write_executable(bin_dir / "bluedot-cli", version_script("v2.0.0", 0))
        wrapper = bin_dir / "bluedot"
        launcher = make_launcher(
            settings,
            console,
            privileges,
            make_registry("v2.1.0"),
            FakeDownloader(content=version_script("v2.1.0")),
            wrapper=wrapper,
        )

        launcher.run([])

        assert is_launcher_wrapper(wrapper)
        assert os.access(wrapper, os.X_OK)


class TestBinaryInstallation:
    """Tests for BinaryInstallation.write_wrapper()."""

    def test_writes_executable_wrapper(self, tmp_path: Path, product: Product, privileges: PrivilegeResolver) -> None:
        installation = BinaryInstallation(binary=tmp_path / "bluedot-cli", wrapper=tmp_path / "bluedot")

        wrapper = installation.write_wrapper(product, privileges, interpreter="/usr/bin/python3")

        content = wrapper.read_text()
        assert content.startswith("#!/usr/bin/python3\n")
        assert "from bluedot.cli import launch" in content
        assert is_launcher_wrapper(wrapper)
        assert os.access(wrapper, os.X_OK)
