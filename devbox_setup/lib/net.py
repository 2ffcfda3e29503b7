from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

import httpx

from .. import __version__
from ..errors import InstallFailure

if TYPE_CHECKING:
    from ..context import SetupCtx

logger = logging.getLogger(__name__)

PING_HOSTS = ("1.1.1.1", "8.8.8.8", "github.com")
HTTPS_PROBES = ("https://github.com", "https://www.google.com")
GITHUB_API = "https://api.github.com"

_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
_HEADERS = {"User-Agent": f"devbox-setup/{__version__}"}


def make_client(**kwargs) -> httpx.Client:
    kwargs.setdefault("timeout", _TIMEOUT)
    kwargs.setdefault("headers", _HEADERS)
    kwargs.setdefault("follow_redirects", True)
    return httpx.Client(**kwargs)


def _ping(ctx: "SetupCtx", host: str) -> bool:
    r = ctx.run(["ping", "-c", "1", "-W", "2", host], check=False)
    return r.ok


def _https_reachable(url: str, client: Optional[httpx.Client]) -> bool:
    try:
        if client is not None:
            client.head(url)
        else:
            with make_client(timeout=5.0) as c:
                c.head(url)
        return True
    except httpx.HTTPError as e:
        logger.info("Probe %s failed: %s", url, e)
        return False


def is_online(
    ctx: "SetupCtx",
    *,
    hosts: Sequence[str] = PING_HOSTS,
    urls: Sequence[str] = HTTPS_PROBES,
    client: Optional[httpx.Client] = None,
) -> bool:
    """Best-effort online check across several hosts.

    A single unreachable host (or a firewall dropping ICMP) is not enough to
    declare the machine offline.
    """

    if ctx.has("ping"):
        for host in hosts:
            if _ping(ctx, host):
                logger.info("Online: ping %s ok", host)
                return True
    for url in urls:
        if _https_reachable(url, client):
            logger.info("Online: %s reachable", url)
            return True
    return False


def fetch_text(url: str, *, client: Optional[httpx.Client] = None) -> str:
    try:
        if client is not None:
            r = client.get(url)
            r.raise_for_status()
            return r.text
        with make_client() as c:
            r = c.get(url)
            r.raise_for_status()
            return r.text
    except httpx.HTTPError as e:
        raise InstallFailure(f"Download failed: {url}: {e}") from e


def latest_release_tag(repo: str, *, client: Optional[httpx.Client] = None) -> str:
    """Resolve the tag of the latest GitHub release of owner/name."""

    url = f"{GITHUB_API}/repos/{repo}/releases/latest"
    try:
        if client is not None:
            r = client.get(url)
        else:
            with make_client() as c:
                r = c.get(url)
        r.raise_for_status()
        tag = (r.json() or {}).get("tag_name")
    except (httpx.HTTPError, ValueError) as e:
        raise InstallFailure(f"Unable to query latest release of {repo}: {e}") from e

    if not tag or not isinstance(tag, str):
        raise InstallFailure(f"No release tag found for {repo}")
    logger.info("Latest %s release: %s", repo, tag)
    return tag


def download(url: str, dest: str | Path, *, client: Optional[httpx.Client] = None) -> Path:
    """Stream url into dest (a path the current process can write)."""

    out = Path(dest)
    out.parent.mkdir(parents=True, exist_ok=True)

    def _stream(c: httpx.Client) -> None:
        with c.stream("GET", url) as r:
            r.raise_for_status()
            with out.open("wb") as f:
                for chunk in r.iter_bytes():
                    f.write(chunk)

    try:
        if client is not None:
            _stream(client)
        else:
            with make_client() as c:
                _stream(c)
    except httpx.HTTPError as e:
        out.unlink(missing_ok=True)
        raise InstallFailure(f"Download failed: {url}: {e}") from e

    logger.info("Downloaded %s -> %s", url, str(out))
    return out
