"""Tests for the asset downloader.

Fake sessions and responses stand in for ``aiohttp`` so that retries,
status handling and the on-disk cache can be exercised without a network.
"""

import asyncio
from pathlib import Path
from types import SimpleNamespace

import aiohttp
import pytest

from tablesite.exceptions import ExternalServiceError, RetryExhaustedError
from tablesite.pipeline.site_generator.config import DownloaderConfig
from tablesite.pipeline.site_generator.downloader import (
    AssetDownloader,
    asset_filename,
)
from tablesite.pipeline.site_generator.hooks import DownloaderHooks
from tablesite.pipeline.site_generator.output import write_atomic

URL = "https://cdn.example.com/img/apple.png"


class FakeLimiter:
    async def __aenter__(self):
        """Enter async context (test stub)."""
        return None

    async def __aexit__(self, exc_type, exc, tb):
        """Exit async context (test stub)."""
        return False


class FakeResponse:
    def __init__(self, status: int, body: bytes = b""):
        self.status = status
        self._body = body

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, responses):
        self._responses = iter(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        try:
            response = next(self._responses)
        except StopIteration:
            return FakeResponse(500)
        if isinstance(response, Exception):
            raise response
        return response


def make_config(**overrides):
    values = dict(
        max_concurrent_downloads=2,
        target_rpm=1000,
        max_retries=2,
        backoff_factor=2.0,
        retry_sleep_on_429=3,
        request_timeout=5,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_downloader(tmp_path: Path, hooks=None, **kwargs) -> AssetDownloader:
    return AssetDownloader(
        kwargs.pop("config", make_config()),
        hooks or DownloaderHooks(),
        tmp_path / "uploads",
        lambda name: f"https://example.com/uploads/{name}",
        rate_limiter=FakeLimiter(),
        **kwargs,
    )


@pytest.fixture
def slept(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays


def test_asset_filename_uses_md5_and_path_extension():
    name = asset_filename("apple", URL + "?w=200")
    assert name.startswith("apple-") and name.endswith(".png")
    assert asset_filename("apple", URL) != name
    assert asset_filename("apple", "https://x.org/noext").count(".") == 0


@pytest.mark.asyncio
async def test_save_image_downloads_and_calls_post_hook(tmp_path: Path):
    seen = []

    async def post(path):
        seen.append(path)

    downloader = make_downloader(tmp_path, DownloaderHooks(post=post))
    session = FakeSession([FakeResponse(200, b"png-bytes")])

    result = await downloader.save_image(session, URL, "apple")

    assert result.downloaded is True
    assert result.path.read_bytes() == b"png-bytes"
    assert result.url == f"https://example.com/uploads/{asset_filename('apple', URL)}"
    assert seen == [result.path]
    assert downloader.fetch_count == 1


@pytest.mark.asyncio
async def test_save_image_skips_existing_file(tmp_path: Path):
    downloader = make_downloader(tmp_path)
    target = tmp_path / "uploads" / asset_filename("apple", URL)
    write_atomic(target, b"cached")
    session = FakeSession([FakeResponse(200, b"fresh")])

    result = await downloader.save_image(session, URL, "apple")

    assert result.downloaded is False
    assert result.url.endswith(target.name)
    assert session.calls == []
    assert target.read_bytes() == b"cached"


@pytest.mark.asyncio
async def test_save_image_force_refetches(tmp_path: Path):
    downloader = make_downloader(tmp_path, force=True)
    target = tmp_path / "uploads" / asset_filename("apple", URL)
    write_atomic(target, b"cached")

    result = await downloader.save_image(FakeSession([FakeResponse(200, b"fresh")]), URL, "apple")

    assert result.downloaded is True
    assert target.read_bytes() == b"fresh"


@pytest.mark.asyncio
async def test_save_image_404_is_isolated(tmp_path: Path, slept):
    """A missing image leaves the pre-hook URL and writes nothing."""
    hooks = DownloaderHooks(pre=lambda url: url + "?via=hook")
    downloader = make_downloader(tmp_path, hooks)
    session = FakeSession([FakeResponse(404)])

    result = await downloader.save_image(session, URL, "apple")

    assert result.downloaded is False
    assert result.url == URL + "?via=hook"
    assert result.path is None
    assert session.calls == [URL + "?via=hook"]
    assert not (tmp_path / "uploads").exists() or not any((tmp_path / "uploads").iterdir())
    assert slept == []


@pytest.mark.asyncio
async def test_fetch_retries_server_errors_with_backoff(tmp_path: Path, slept):
    downloader = make_downloader(tmp_path)
    session = FakeSession([FakeResponse(500), FakeResponse(503), FakeResponse(200, b"ok")])
    assert await downloader.fetch(session, URL) == b"ok"
    assert slept == [1.0, 2.0]
    assert downloader.fetch_count == 3


@pytest.mark.asyncio
async def test_fetch_429_sleeps_configured_delay(tmp_path: Path, slept):
    downloader = make_downloader(tmp_path)
    session = FakeSession([FakeResponse(429), FakeResponse(200, b"ok")])
    assert await downloader.fetch(session, URL) == b"ok"
    assert slept == [3]


@pytest.mark.asyncio
async def test_fetch_gives_up_after_retries(tmp_path: Path, slept):
    downloader = make_downloader(tmp_path, config=make_config(max_retries=1))
    session = FakeSession([aiohttp.ClientError("down"), asyncio.TimeoutError()])
    with pytest.raises(RetryExhaustedError) as excinfo:
        await downloader.fetch(session, URL)
    assert excinfo.value.context["last_error"] == "TimeoutError"
    assert len(slept) == 1


@pytest.mark.asyncio
async def test_fetch_client_error_status_is_not_retried(tmp_path: Path, slept):
    downloader = make_downloader(tmp_path)
    with pytest.raises(ExternalServiceError) as excinfo:
        await downloader.fetch(FakeSession([FakeResponse(403)]), URL)
    assert excinfo.value.transient is False
    assert excinfo.value.context["status_code"] == 403
    assert slept == []


def test_downloader_config_from_env(monkeypatch, tmp_path: Path):
    (tmp_path / ".env").write_text("MAX_RETRIES=5\nTARGET_RPM=30\n", encoding="utf-8")
    monkeypatch.delenv("MAX_RETRIES", raising=False)
    monkeypatch.setenv("TARGET_RPM", "90")
    config = DownloaderConfig(tmp_path)
    assert config.max_retries == 5
    assert config.target_rpm == 90


def test_downloader_config_rejects_bad_values(monkeypatch):
    from tablesite.exceptions import ConfigurationError

    monkeypatch.setenv("MAX_CONCURRENT_DOWNLOADS", "many")
    with pytest.raises(ConfigurationError):
        DownloaderConfig()
    monkeypatch.setenv("MAX_CONCURRENT_DOWNLOADS", "0")
    with pytest.raises(ConfigurationError):
        DownloaderConfig()
