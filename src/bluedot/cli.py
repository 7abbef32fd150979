"""BlueDot command line entry points.

``bluedot`` is the launcher: every argument goes to bluedot-cli untouched.
``bluedot-install`` performs the first-time install.
"""

import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler

from bluedot.updater import BLUEDOT, Bootstrapper, Launcher, LauncherError, Settings
from bluedot.updater.config import DEFAULT_RELEASE_TAG, SYSTEM_BIN_DIR, Product
from bluedot.updater.installer import is_launcher_wrapper

# stdout belongs to the wrapped binary
console = Console(stderr=True)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else (logging.WARNING if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def fail(error: LauncherError) -> NoReturn:
    console.print(f"[red]{error}[/red]")
    sys.exit(error.exit_code)


def wrapper_path(argv0: str, product: Product) -> Path | None:
    """The wrapper script this process runs from, or None when started some other way.

    Only an existing launcher wrapper or the installed ``bluedot`` entry point
    counts; ``-c`` or a test runner's argv[0] must never be rewritten.
    """
    if not argv0:
        return None
    path = Path(argv0).absolute()
    if not path.is_file():
        return None
    if is_launcher_wrapper(path) or path.name == product.wrapper_name:
        return path
    return None


def launch(argv: Sequence[str] | None = None) -> NoReturn:
    """Check for updates, then run bluedot-cli with the given arguments.

    The launcher defines no options of its own, so arguments (including
    ``--help`` and ``--``) are forwarded exactly as received.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    settings = Settings.from_env(BLUEDOT)
    setup_logging(verbose=settings.debug, quiet=not settings.debug)

    launcher = Launcher(settings, console, wrapper=wrapper_path(sys.argv[0] if sys.argv else "", settings.product))
    try:
        code = launcher.run(args)
    except LauncherError as e:
        fail(e)
    sys.exit(code)


@click.command()
@click.option("--repo", envvar="BLUEDOT_REPO", default=BLUEDOT.repo, show_default=True, help="GitHub repository")
@click.option("--token", envvar="BLUEDOT_GITHUB_TOKEN", default=None, help="GitHub token for private releases")
@click.option(
    "--release-tag",
    envvar="BLUEDOT_RELEASE_TAG",
    default=DEFAULT_RELEASE_TAG,
    show_default=True,
    help="Release tag to install",
)
@click.option(
    "--install-dir",
    envvar="BLUEDOT_INSTALL_DIR",
    type=click.Path(path_type=Path),
    default=SYSTEM_BIN_DIR,
    show_default=True,
    help="Directory for the binary and wrapper",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
def install(repo: str, token: str | None, release_tag: str, install_dir: Path, verbose: bool) -> None:
    """Install bluedot-cli and the auto-updating bluedot wrapper."""
    setup_logging(verbose, quiet=not verbose)
    settings = Settings(
        product=BLUEDOT,
        repo=repo,
        token=token or None,
        release_tag=release_tag,
        install_dir=install_dir.expanduser(),
    )
    bootstrapper = Bootstrapper(settings, console)
    try:
        summary = bootstrapper.run()
    except LauncherError as e:
        fail(e)
    bootstrapper.report(summary, os.environ.get("PATH", ""), os.environ.get("SHELL", ""))


if __name__ == "__main__":
    launch()
