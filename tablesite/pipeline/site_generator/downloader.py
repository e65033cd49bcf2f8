"""Asset downloader for item images.

This module defines :class:`AssetDownloader`, the asynchronous networking
boundary of a build. It saves the remote image referenced by an item row into
the project's upload directory under a deterministic, content-addressed name
(``<slug>-<md5(url)><ext>``), so that a rebuild finds the file already on disk
and issues no request at all.

Fetches share one ``aiohttp.ClientSession`` per run and are bounded by an
``asyncio.Semaphore`` and an ``aiolimiter.AsyncLimiter``. Network errors,
timeouts, HTTP 429 and 5xx responses are retried with exponential backoff;
other HTTP errors fail at once. A failed fetch never aborts the build:
:meth:`AssetDownloader.save_image` logs it and hands back the unchanged URL.

Files are written to a temporary name in the upload directory and moved into
place with ``os.replace``, so concurrent writers of the same asset leave one
complete file behind.

Examples
--------
>>> import aiohttp
>>> downloader = AssetDownloader(DownloaderConfig(), DownloaderHooks(), Path("dist/uploads"),
...                              lambda name: f"https://example.com/uploads/{name}")  # doctest: +SKIP
>>> async def main():
...     async with aiohttp.ClientSession() as session:
...         return await downloader.save_image(session, "https://cdn.example.com/a.png", "alpha")
>>> # import asyncio; asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable
from urllib.parse import urlsplit

import aiohttp
from aiolimiter import AsyncLimiter

from tablesite.exceptions import ExternalServiceError, RetryExhaustedError

from .config import DownloaderConfig
from .hooks import DownloaderHooks
from .output import write_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageResult:
    """Outcome of one image save.

    Attributes
    ----------
    url : str
        Value the row's image column should hold afterwards: the public URL
        of the saved asset, or the pre-hook URL when nothing was saved.
    downloaded : bool
        True only when the file was fetched during this call.
    path : Path | None
        Local file of the asset, when one exists.
    """

    url: str
    downloaded: bool
    path: Path | None = None


def asset_filename(slug: str, source_url: str) -> str:
    """Return the upload filename for ``source_url`` on the item ``slug``.

    The extension is taken from the URL path, so query strings never leak
    into the filename.

    Examples
    --------
    >>> name = asset_filename("alpha", "https://cdn.example.com/img/a.png?w=200")
    >>> name.startswith("alpha-"), name.endswith(".png"), len(name)
    (True, True, 42)
    """
    digest = hashlib.md5(source_url.encode("utf-8")).hexdigest()
    extension = os.path.splitext(urlsplit(source_url).path)[1]
    return f"{slug}-{digest}{extension}"


class AssetDownloader:
    r"""Fetch item images into the upload directory.

    Parameters
    ----------
    config : DownloaderConfig
        Retry, timeout and throughput limits.
    hooks : DownloaderHooks
        Project ``pre``/``post`` download hooks.
    upload_dir : Path
        Destination directory of saved images.
    public_url : Callable[[str], str]
        Maps a saved filename to its public URL.
    force : bool, optional
        Re-fetch even when the target file already exists.
    rate_limiter : Any, optional
        Async context manager throttling requests; an ``AsyncLimiter`` built
        from ``config.target_rpm`` by default.
    semaphore : asyncio.Semaphore | None, optional
        Bounds fetches in flight; built from
        ``config.max_concurrent_downloads`` by default.

    Attributes
    ----------
    fetch_count : int
        Number of HTTP requests issued so far.
    """

    def __init__(
        self,
        config: DownloaderConfig,
        hooks: DownloaderHooks,
        upload_dir: Path,
        public_url: Callable[[str], str],
        *,
        force: bool = False,
        rate_limiter: Any | None = None,
        semaphore: asyncio.Semaphore | None = None,
    ) -> None:
        self.config = config
        self.hooks = hooks
        self.upload_dir = Path(upload_dir)
        self.public_url = public_url
        self.force = force
        self.rate_limiter = rate_limiter or AsyncLimiter(config.target_rpm, 60)
        self.semaphore = semaphore or asyncio.Semaphore(config.max_concurrent_downloads)
        self.fetch_count = 0

    async def fetch(self, session: aiohttp.ClientSession, url: str) -> bytes:
        r"""Download ``url`` and return the response body.

        Parameters
        ----------
        session : aiohttp.ClientSession
            Session used for the GET requests; not closed here.
        url : str
            Absolute URL of the resource.

        Returns
        -------
        bytes
            The body of the first successful (HTTP 200) response.

        Raises
        ------
        ExternalServiceError
            On a non-retryable HTTP status (4xx other than 429).
        RetryExhaustedError
            When every attempt failed with a transient error.
        """
        max_retries = getattr(self.config, "max_retries", 2)
        backoff = getattr(self.config, "backoff_factor", 2.0)
        timeout = aiohttp.ClientTimeout(total=getattr(self.config, "request_timeout", 60))
        last_error = ""

        for attempt in range(max_retries + 1):
            delay: float = backoff**attempt
            try:
                async with self.semaphore, self.rate_limiter:
                    self.fetch_count += 1
                    async with session.get(url, timeout=timeout) as response:
                        status = response.status
                        if status == 200:
                            return await response.read()
                        if status == 429:
                            delay = getattr(self.config, "retry_sleep_on_429", 5) * (attempt + 1)
                        elif status < 500:
                            raise ExternalServiceError(
                                f"HTTP {status} fetching {url}",
                                context={"url": url, "status_code": status},
                                transient=False,
                            )
                        last_error = f"HTTP {status}"
            except aiohttp.ClientError as error:
                last_error = f"ClientError: {error}"
            except asyncio.TimeoutError:
                last_error = "TimeoutError"
            if attempt < max_retries:
                logger.debug("Retrying %s after %s (attempt %d)", url, last_error, attempt + 1)
                await asyncio.sleep(delay)

        raise RetryExhaustedError(
            f"Giving up on {url} after {max_retries + 1} attempts",
            context={"url": url, "last_error": last_error},
        )

    async def save_image(
        self, session: aiohttp.ClientSession, source_url: str, slug: str
    ) -> ImageResult:
        r"""Make sure the image of one item is present in the upload directory.

        The pre-hook is applied to ``source_url`` first. When the target file
        already exists (and ``force`` is off) no request is made. Otherwise
        the image is fetched, written, and the post-hook is awaited with the
        local path before returning.

        Parameters
        ----------
        session : aiohttp.ClientSession
            Shared HTTP session.
        source_url : str
            Raw value of the row's image column; also the input of the
            content hash in the filename.
        slug : str
            Resolved slug of the item.

        Returns
        -------
        ImageResult
            The new column value and whether a download happened.

        Notes
        -----
        Fetch failures are logged and reported as ``downloaded=False`` with
        the pre-hook URL; exceptions raised by hooks propagate.
        """
        filename = asset_filename(slug, source_url)
        target = self.upload_dir / filename
        fetch_url = str(self.hooks.pre(source_url) or "")

        if target.is_file() and not self.force:
            return ImageResult(self.public_url(filename), False, target)
        if not fetch_url:
            return ImageResult(fetch_url, False, None)

        try:
            payload = await self.fetch(session, fetch_url)
        except (ExternalServiceError, RetryExhaustedError) as error:
            logger.error("Image download failed for item '%s': %s", slug, error)
            return ImageResult(fetch_url, False, None)

        await asyncio.to_thread(write_atomic, target, payload)
        await self.hooks.after_download(target)
        logger.debug("Saved %s", target)
        return ImageResult(self.public_url(filename), True, target)
