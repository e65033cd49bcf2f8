"""Environment-driven configuration for the asset downloader.

This module provides :class:`DownloaderConfig`, which reads the limits used
when fetching remote images (concurrency, request rate, retries, backoff and
timeouts) from environment variables and, when present, from a ``.env`` file
at the project root.

Examples
--------
>>> import os
>>> os.environ["MAX_RETRIES"] = "1"
>>> from tablesite.pipeline.site_generator.config import DownloaderConfig
>>> DownloaderConfig().max_retries
1
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from tablesite.config import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_SLEEP_ON_429,
    DEFAULT_TARGET_RPM,
)
from tablesite.exceptions import ConfigurationError


class DownloaderConfig:
    r"""Limits applied to remote image downloads.

    Attributes
    ----------
    max_concurrent_downloads : int
        Maximum number of fetches in flight at once.
    target_rpm : int
        Target requests per minute across the whole run.
    max_retries : int
        Retries after the first attempt for transient failures.
    backoff_factor : float
        Base of the exponential backoff between retries, in seconds.
    retry_sleep_on_429 : int
        Seconds to sleep (times the attempt number) on HTTP 429.
    request_timeout : int
        Total timeout of a single request, in seconds.

    Notes
    -----
    Instantiate once per run. No runtime mutation is intended.
    """

    def __init__(self, project_root: Path | None = None) -> None:
        r"""Read the limits from the environment.

        Parameters
        ----------
        project_root : Path | None, optional
            When given and ``<project_root>/.env`` exists, the file is loaded
            first. Values already present in the environment win.

        Raises
        ------
        ConfigurationError
            If a variable is not a number or a limit is not positive.
        """
        if project_root is not None:
            env_path = Path(project_root) / ".env"
            if env_path.exists():
                load_dotenv(env_path, override=False)
        try:
            self.max_concurrent_downloads = int(
                os.getenv("MAX_CONCURRENT_DOWNLOADS", DEFAULT_MAX_CONCURRENT_DOWNLOADS)
            )
            self.target_rpm = int(os.getenv("TARGET_RPM", DEFAULT_TARGET_RPM))
            self.max_retries = int(os.getenv("MAX_RETRIES", DEFAULT_MAX_RETRIES))
            self.backoff_factor = float(os.getenv("BACKOFF_FACTOR", DEFAULT_BACKOFF_FACTOR))
            self.retry_sleep_on_429 = int(
                os.getenv("RETRY_SLEEP_ON_429", DEFAULT_RETRY_SLEEP_ON_429)
            )
            self.request_timeout = int(os.getenv("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT))
        except ValueError as error:
            raise ConfigurationError(
                "Downloader settings must be numeric", context={"reason": str(error)}
            ) from error
        if self.max_concurrent_downloads < 1 or self.target_rpm < 1:
            raise ConfigurationError(
                "MAX_CONCURRENT_DOWNLOADS and TARGET_RPM must be positive",
                context={
                    "max_concurrent_downloads": self.max_concurrent_downloads,
                    "target_rpm": self.target_rpm,
                },
            )
        if self.max_retries < 0:
            self.max_retries = 0
