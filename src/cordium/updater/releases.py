from __future__ import annotations

import json
import socket
from dataclasses import dataclass
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..app_settings.defaults import DEFAULT_USER_AGENT, RELEASE_ACCEPT_HEADER
from ..errors import HttpError, MetadataParseError, NetworkError
from .versioning import strip_version_prefix


@dataclass(frozen=True)
class ReleaseAsset:
    name: str
    download_url: str


@dataclass(frozen=True)
class ReleaseInfo:
    tag_name: str
    version: str
    assets: tuple[ReleaseAsset, ...] = ()


@dataclass(frozen=True)
class PendingUpdate:
    version: str
    download_url: str


def parse_release_payload(text: str) -> ReleaseInfo:
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise MetadataParseError(f"Release metadata is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MetadataParseError("Release metadata must be a JSON object.")
    tag_name = payload.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name.strip():
        raise MetadataParseError("Release metadata has no tag_name.")
    raw_assets = payload.get("assets") or []
    if not isinstance(raw_assets, list):
        raise MetadataParseError("Release metadata assets must be a list.")
    assets = []
    for raw in raw_assets:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        url = raw.get("browser_download_url")
        if isinstance(name, str) and isinstance(url, str):
            assets.append(ReleaseAsset(name=name, download_url=url))
    return ReleaseInfo(
        tag_name=tag_name.strip(),
        version=strip_version_prefix(tag_name),
        assets=tuple(assets),
    )


def find_package_asset(assets: tuple[ReleaseAsset, ...], extension: str) -> ReleaseAsset | None:
    for asset in assets:
        if asset.name.endswith(extension):
            return asset
    return None


def fetch_latest_release(url: str, timeout: float) -> ReleaseInfo:
    """GET the release listing and parse it.

    Raises :class:`HttpError` for non-2xx answers and :class:`NetworkError`
    for transport failures and timeouts.
    """
    request = Request(
        url,
        headers={"Accept": RELEASE_ACCEPT_HEADER, "User-Agent": DEFAULT_USER_AGENT},
        method="GET",
    )
    try:
        with urlopen(request, timeout=timeout) as response:  # noqa: S310
            status = int(getattr(response, "status", 200) or 200)
            if not 200 <= status < 300:
                raise HttpError(status, str(getattr(response, "reason", "") or ""))
            body = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        raise HttpError(exc.code, str(exc.reason or "")) from exc
    except (TimeoutError, socket.timeout) as exc:
        raise NetworkError(f"Network timeout while checking updates (>{timeout}s).") from exc
    except URLError as exc:
        if isinstance(getattr(exc, "reason", None), socket.timeout):
            raise NetworkError(f"Network timeout while checking updates (>{timeout}s).") from exc
        raise NetworkError(str(exc.reason or exc)) from exc
    except OSError as exc:
        raise NetworkError(str(exc)) from exc
    return parse_release_payload(body)
