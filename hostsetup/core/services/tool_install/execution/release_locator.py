"""
L4 Execution — Release locator.

Narrow interface over the GitHub "latest release" API::

    locator = ReleaseLocator(fetch_json)
    release = locator.latest_release("CaptainCore/captaincore")
    asset = locator.select_asset(release, patterns)

The JSON fetcher is injected, so tests replace the network entirely and
the rest of the installer never sees the upstream JSON shape.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from hostsetup.core.context import DEFAULT_TIMEOUT
from hostsetup.core.errors import MalformedResponse, NotFound
from hostsetup.core.models.release import Asset, ReleaseMetadata
from hostsetup.core.services.tool_install.data.constants import GITHUB_API
from hostsetup.core.services.tool_install.domain.asset_patterns import select_asset

logger = logging.getLogger(__name__)

LATEST_MARKER = "latest"


def parse_release(data: Any, repository: str) -> ReleaseMetadata:
    """Turn a release API document into ``ReleaseMetadata``.

    A missing tag degrades to the advisory ``"latest"`` marker; a missing
    or malformed asset list does not.
    """
    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Release metadata for {repository} is a {type(data).__name__}, expected an object"
        )

    raw_assets = data.get("assets")
    if not isinstance(raw_assets, list):
        raise MalformedResponse(f"Release metadata for {repository} has no 'assets' list")

    assets: list[Asset] = []
    for entry in raw_assets:
        if not isinstance(entry, dict):
            raise MalformedResponse(f"Malformed asset entry in {repository}: {entry!r}")
        name = entry.get("name")
        url = entry.get("browser_download_url")
        if not isinstance(name, str) or not isinstance(url, str) or not name or not url:
            raise MalformedResponse(
                f"Asset in {repository} lacks 'name' or 'browser_download_url': {entry!r}"
            )
        size = entry.get("size")
        assets.append(Asset(name=name, url=url, size=size if isinstance(size, int) else 0))

    tag = data.get("tag_name")
    if isinstance(tag, str) and tag.strip():
        return ReleaseMetadata(tag=tag.strip(), assets=tuple(assets))

    logger.warning(
        "Release metadata for %s has no tag_name — using '%s' (advisory, not a version)",
        repository, LATEST_MARKER,
    )
    return ReleaseMetadata(tag=LATEST_MARKER, assets=tuple(assets), advisory=True)


class ReleaseLocator:
    """Finds the latest release of a repository and picks its artifact."""

    def __init__(
        self,
        fetch_json: Callable[..., Any],
        *,
        api_base: str = GITHUB_API,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._fetch_json = fetch_json
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    def latest_release(self, repository: str) -> ReleaseMetadata:
        """Fetch the latest published release of ``owner/repo``.

        Raises:
            NetworkError: transport failure or timeout.
            NotFound: the repository has no published release.
            MalformedResponse: the document lacks required fields.
        """
        url = f"{self._api_base}/repos/{repository}/releases/latest"
        logger.info("Fetching latest release of %s", repository)
        try:
            data = self._fetch_json(
                url,
                timeout=self._timeout,
                headers={"Accept": "application/vnd.github+json"},
            )
        except NotFound as e:
            raise NotFound(f"No published release for {repository}") from e

        release = parse_release(data, repository)
        logger.info(
            "Latest release of %s: %s (%d assets)",
            repository, release.tag, len(release.assets),
        )
        return release

    def select_asset(self, release: ReleaseMetadata, patterns: list[str]) -> Asset:
        """Pick the asset matching the highest-priority pattern.

        Raises:
            NoMatchingAsset: listing the available asset names.
        """
        asset = select_asset(release, patterns)
        logger.info("Selected asset %s", asset.name)
        return asset
