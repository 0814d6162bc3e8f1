"""
frida-server installer
Copyright (C) 2026 The frida-server installer authors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Release feed access and asset selection.

Only the fields below are read from the GitHub release objects; anything else
in the payload is ignored, and an object missing one of them is treated as
absent rather than as an error.

    tag_name, name, published_at, prerelease,
    assets[].name, assets[].browser_download_url
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests
from packaging import version as pkg_version

from frida_installer.utils.events import ErrorKind, InstallerError
from frida_installer.utils.index import log_message

DEFAULT_ASSET_TEMPLATE = "frida-server-{version}-android-{arch}.xz"


@dataclass(frozen=True)
class Asset:
    name: str
    download_url: str


@dataclass(frozen=True)
class ReleaseDescriptor:
    tag_name: str
    name: str
    published_at: str
    prerelease: bool
    assets: Tuple[Asset, ...] = ()

    @property
    def display_name(self) -> str:
        return self.tag_name + (" (Pre-release)" if self.prerelease else "")


def parse_release(data: Any) -> Optional[ReleaseDescriptor]:
    """
    Build a ReleaseDescriptor from one release object.

    Returns:
        ReleaseDescriptor or None when the object does not have the expected shape
    """
    if not isinstance(data, dict):
        return None
    tag = data.get("tag_name")
    if not isinstance(tag, str) or not tag:
        return None
    raw_assets = data.get("assets")
    if not isinstance(raw_assets, list):
        return None

    assets = []
    for item in raw_assets:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        url = item.get("browser_download_url")
        if isinstance(name, str) and isinstance(url, str):
            assets.append(Asset(name, url))

    name = data.get("name")
    return ReleaseDescriptor(
        tag_name=tag,
        name=name if isinstance(name, str) and name else tag,
        published_at=str(data.get("published_at") or ""),
        prerelease=bool(data.get("prerelease", False)),
        assets=tuple(assets),
    )


def has_android_assets(release: ReleaseDescriptor) -> bool:
    return any("android" in a.name and "frida-server" in a.name for a in release.assets)


def expected_asset_name(version: str, arch: str, template: str = DEFAULT_ASSET_TEMPLATE) -> str:
    return template.format(version=version, arch=arch)


def find_asset(release: ReleaseDescriptor, arch: str,
               template: str = DEFAULT_ASSET_TEMPLATE) -> Optional[str]:
    """
    Select the download URL of the server asset for an architecture.

    The match is exact and case sensitive. No fallback architecture is tried.

    Returns:
        str: URL of the single matching asset, or None for zero or several matches
    """
    expected = expected_asset_name(release.tag_name, arch, template)
    matches = [a for a in release.assets if a.name == expected]
    if len(matches) != 1:
        if matches:
            log_message(f"{len(matches)} assets named {expected}; refusing to choose", "WARNING")
        return None
    return matches[0].download_url


def is_newer_version(candidate: str, installed: str) -> bool:
    """True when `candidate` is a later release than `installed`."""
    try:
        return pkg_version.parse(candidate) > pkg_version.parse(installed)
    except pkg_version.InvalidVersion:
        return candidate != installed


def version_from_info(info: Optional[str]) -> Optional[str]:
    """Extract "16.1.2" from a "16.1.2 (arm64)" metadata line."""
    if not info:
        return None
    return info.rsplit(" (", 1)[0].strip() or None


class ReleaseFeed:
    """Reads the latest release and the release list from the GitHub API."""

    def __init__(self, installation_config: Dict[str, Any], session: Optional[requests.Session] = None,
                 timeout: Tuple[float, float] = (15, 60)):
        self.latest_url = installation_config["github_api_url"]
        self.releases_url = installation_config["releases_url"]
        self.per_page = installation_config.get("per_page", 50)
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "User-Agent": installation_config.get("user_agent", "frida-installer"),
        })
        self.timeout = timeout

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise InstallerError(f"Release feed timed out: {e}", ErrorKind.TIMEOUT)
        except requests.RequestException as e:
            raise InstallerError(f"Failed to reach release feed: {e}", ErrorKind.TRANSFER)
        if not 200 <= response.status_code < 300:
            raise InstallerError(f"Failed to fetch release info: {response.status_code}", ErrorKind.TRANSFER)
        try:
            return response.json()
        except ValueError as e:
            raise InstallerError(f"Release feed returned invalid JSON: {e}", ErrorKind.TRANSFER)

    def get_latest_release(self) -> Optional[ReleaseDescriptor]:
        """
        Fetch the newest release.

        Returns:
            ReleaseDescriptor or None if the payload has an unexpected shape

        Raises:
            InstallerError: Network failure or non-success status
        """
        return parse_release(self._get_json(self.latest_url))

    def list_releases(self) -> List[ReleaseDescriptor]:
        """Fetch recent releases that carry Android server assets, newest first."""
        payload = self._get_json(self.releases_url, params={"per_page": self.per_page})
        if not isinstance(payload, list):
            log_message("Release list payload is not a list", "WARNING")
            return []
        releases = []
        for item in payload:
            release = parse_release(item)
            if release is not None and has_android_assets(release):
                releases.append(release)
        log_message(f"Found {len(releases)} releases with Android server assets", "DEBUG")
        return releases
