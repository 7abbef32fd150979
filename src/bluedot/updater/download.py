"""Asset downloads and the progress spinner shown while they run."""

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import httpx
from rich.console import Console

from bluedot.updater.config import DOWNLOAD_TIMEOUT_SECONDS, SPINNER_INTERVAL_SECONDS, USER_AGENT
from bluedot.updater.errors import DownloadFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Downloader:
    """Streams remote files to local paths."""

    def __init__(self, client: httpx.Client | None = None, timeout: float = DOWNLOAD_TIMEOUT_SECONDS):
        self._client = client
        self._timeout = timeout

    def download(self, url: str, dest: Path, headers: dict[str, str] | None = None) -> Path:
        """Download ``url`` into ``dest`` and return ``dest``.

        Raises:
            DownloadFailed: On HTTP errors, transport errors or local write errors.
        """
        request_headers = {"User-Agent": USER_AGENT, **(headers or {})}
        client = self._client or httpx.Client(follow_redirects=True)
        logger.debug("Downloading %s -> %s", url, dest)
        try:
            with client.stream("GET", url, headers=request_headers, timeout=self._timeout) as response:
                response.raise_for_status()
                with dest.open("wb") as fh:
                    for chunk in response.iter_bytes():
                        fh.write(chunk)
        except httpx.HTTPStatusError as e:
            raise DownloadFailed(f"Download failed: HTTP {e.response.status_code} for {url}") from e
        except (httpx.HTTPError, OSError) as e:
            raise DownloadFailed(f"Download failed: {e}") from e
        finally:
            if self._client is None:
                client.close()
        return dest


def run_with_spinner(
    fn: Callable[[], T],
    console: Console,
    message: str,
    interval: float = SPINNER_INTERVAL_SECONDS,
) -> T:
    """Run ``fn`` on a worker thread while a spinner is displayed.

    The caller polls the worker's liveness every ``interval`` seconds and
    blocks until it finishes. The worker's return value is returned and its
    exception re-raised. The worker is a daemon thread, so an interrupt in
    the caller does not wait for an in-flight transfer.
    """
    outcome: dict[str, object] = {}

    def target() -> None:
        try:
            outcome["result"] = fn()
        except BaseException as e:  # re-raised in the caller below
            outcome["error"] = e

    worker = threading.Thread(target=target, name="bluedot-download", daemon=True)
    with console.status(message, spinner="line"):
        worker.start()
        while worker.is_alive():
            time.sleep(interval)

    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]
    return outcome["result"]  # type: ignore[return-value]
