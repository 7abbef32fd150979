"""GitHub releases client.

Two read operations are used: the latest release of a repository and the
release for a given tag. Public installs download assets from the plain
``github.com`` release URLs. With a token, assets of private repositories
are fetched through the API asset URL with an octet-stream Accept header.
"""

import logging
from dataclasses import dataclass, field

import httpx
from pydantic import BaseModel, ValidationError

from bluedot.updater.config import (
    DEFAULT_RELEASE_TAG,
    GITHUB_API_URL,
    GITHUB_URL,
    METADATA_TIMEOUT_SECONDS,
    USER_AGENT,
)
from bluedot.updater.errors import DownloadFailed, VersionUnresolvable

logger = logging.getLogger(__name__)


class ReleaseAsset(BaseModel):
    """A downloadable file attached to a release."""

    name: str
    url: str
    browser_download_url: str = ""


class Release(BaseModel):
    """Release metadata as returned by the GitHub API."""

    tag_name: str
    assets: list[ReleaseAsset] = []

    def find_asset(self, name: str) -> ReleaseAsset | None:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None


@dataclass
class AssetLocation:
    """Where to fetch an asset from, and the headers the request needs."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)


class ReleaseRegistry:
    """Read-only access to the releases of one GitHub repository."""

    def __init__(
        self,
        repo: str,
        token: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = METADATA_TIMEOUT_SECONDS,
    ):
        self.repo = repo
        self.token = token
        self._client = client
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github.v3+json",
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    def _get_release(self, path: str) -> Release:
        url = f"{GITHUB_API_URL}/{self.repo}/releases/{path}"
        client = self._client or httpx.Client(follow_redirects=True)
        try:
            response = client.get(url, headers=self._headers(), timeout=self._timeout)
            response.raise_for_status()
            return Release.model_validate(response.json())
        finally:
            if self._client is None:
                client.close()

    def latest_release(self) -> Release:
        """Fetch metadata for the newest published release."""
        return self._get_release("latest")

    def release(self, tag: str) -> Release:
        """Fetch metadata for the release tagged ``tag`` ("latest" allowed)."""
        if tag == DEFAULT_RELEASE_TAG:
            return self.latest_release()
        return self._get_release(f"tags/{tag}")

    def latest_tag(self) -> str:
        """Return the tag name of the newest release.

        Raises:
            VersionUnresolvable: The registry could not be reached, answered
                with an error, or returned an unusable payload.
        """
        try:
            release = self.latest_release()
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            raise VersionUnresolvable(f"Could not fetch latest release of {self.repo}: {e}") from e
        tag = release.tag_name.strip()
        if not tag:
            raise VersionUnresolvable(f"Latest release of {self.repo} has no tag")
        return tag

    def asset_location(self, tag: str, asset_name: str) -> AssetLocation:
        """Resolve the download location of ``asset_name`` in release ``tag``.

        Raises:
            DownloadFailed: With a token, the release or the asset could not be
                found.
        """
        if not self.token:
            if tag == DEFAULT_RELEASE_TAG:
                url = f"{GITHUB_URL}/{self.repo}/releases/latest/download/{asset_name}"
            else:
                url = f"{GITHUB_URL}/{self.repo}/releases/download/{tag}/{asset_name}"
            return AssetLocation(url=url)

        try:
            release = self.release(tag)
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.debug("Release lookup failed: %s: %s", type(e).__name__, e)
            raise DownloadFailed(f"Could not find release {tag}") from e

        asset = release.find_asset(asset_name)
        if asset is None:
            raise DownloadFailed(f"Could not find asset {asset_name} in release {tag}")

        return AssetLocation(
            url=asset.url,
            headers={
                "User-Agent": USER_AGENT,
                "Authorization": f"token {self.token}",
                "Accept": "application/octet-stream",
            },
        )
