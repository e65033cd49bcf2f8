"""Tests for the item builder: slugs, downloads, hooks and both output modes."""

from pathlib import Path
from types import SimpleNamespace

import pytest

from tablesite.pipeline.site_generator.downloader import AssetDownloader, asset_filename
from tablesite.pipeline.site_generator.hooks import load_hooks
from tablesite.pipeline.site_generator.items import ItemBuilder
from tablesite.pipeline.site_generator.project import OverwritePolicy, load_project
from tablesite.pipeline.site_generator.records import load_source_file
from tablesite.pipeline.site_generator.templating import ContextBuilder, RenderEngine

APPLE = "https://cdn.example.com/apple.png"
BANANA = "https://cdn.example.com/banana.png"


class FakeLimiter:
    async def __aenter__(self):
        return None

    async def __aexit__(self, exc_type, exc, tb):
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
    """Serve fixed responses per URL; unknown URLs answer 404."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(url)
        return self.routes.get(url) or FakeResponse(404)


def make_builder(root: Path, overwrite=None) -> ItemBuilder:
    project = load_project(root)
    paths = project.paths
    hooks = load_hooks(paths.hooks_dir, paths.theme_dir)
    engine = RenderEngine(paths.theme_dir, hooks.helpers)
    config = SimpleNamespace(
        max_concurrent_downloads=4,
        target_rpm=1000,
        max_retries=0,
        backoff_factor=1.0,
        retry_sleep_on_429=0,
        request_timeout=5,
    )
    downloader = AssetDownloader(
        config,
        hooks.downloader,
        paths.upload_dir,
        lambda name: project.public_url(project.upload_slug, name),
        rate_limiter=FakeLimiter(),
    )
    return ItemBuilder(
        project,
        engine,
        ContextBuilder(project, engine),
        hooks,
        OverwritePolicy(overwrite),
        downloader,
    )


def source_of(root: Path, name: str = "things"):
    return load_source_file(root / "csv" / f"{name}.csv")


@pytest.mark.asyncio
async def test_multiple_mode_renders_one_page_per_row(make_project):
    root = make_project()
    builder = make_builder(root)

    result = await builder.build_file(FakeSession(), source_of(root))

    item_dir = root / "dist" / "item"
    assert sorted(p.name for p in item_dir.iterdir()) == ["apple.html", "banana.html"]
    html = (item_dir / "apple.html").read_text(encoding="utf-8")
    assert "<h1>Apple</h1>" in html and "2 in file" in html
    assert [row["slug"] for row in result.items] == ["apple", "banana"]
    assert result.name == "things"


@pytest.mark.asyncio
async def test_slug_fallback_is_resolved_in_row_order(make_project):
    """Rows without a slug before the first resolved one fall back to their index."""
    root = make_project(
        [{"title": "x", "slug": ""}, {"title": "y", "slug": ""}, {"title": "z", "slug": "custom"}],
        meta={"item": {"slug": "{{ item.slug }}"}},
    )
    builder = make_builder(root)

    result = await builder.build_file(FakeSession(), source_of(root))

    assert [state.slug for state in result.states] == ["0", "1", "custom"]
    assert sorted(p.name for p in (root / "dist" / "item").iterdir()) == [
        "0.html",
        "1.html",
        "custom.html",
    ]


@pytest.mark.asyncio
async def test_slug_fallback_reuses_first_resolved_slug(make_project):
    root = make_project(
        [{"title": "x", "slug": "first"}, {"title": "y", "slug": ""}],
        meta={"item": {"slug": "{{ item.slug }}"}},
    )
    builder = make_builder(root)
    states = builder.resolve_states(source_of(root).rows)
    assert [state.slug for state in states] == ["first", "first"]


@pytest.mark.asyncio
async def test_aggregated_mode_uses_last_truthy_title(make_project):
    root = make_project(
        [{"title": "A"}, {"title": ""}, {"title": "C"}],
        data={"multiple": False},
    )
    builder = make_builder(root)

    result = await builder.build_file(FakeSession(), source_of(root))

    item_dir = root / "dist" / "item"
    assert [p.name for p in item_dir.iterdir()] == ["c.html"]
    html = (item_dir / "c.html").read_text(encoding="utf-8")
    assert html.count("<h1>") == 3
    assert all(state.destination == item_dir / "c.html" for state in result.states)


@pytest.mark.asyncio
async def test_aggregated_mode_without_titles(make_project):
    root = make_project([{"title": ""}, {"title": ""}], data={"multiple": False})
    await make_builder(root).build_file(FakeSession(), source_of(root))
    assert (root / "dist" / "item" / "untitled.html").is_file()


@pytest.mark.asyncio
async def test_image_failure_is_isolated(make_project):
    """A 404 image keeps its URL and the item still renders."""
    root = make_project(data={"saveimg": True})
    builder = make_builder(root)
    session = FakeSession({BANANA: FakeResponse(200, b"banana-bytes")})

    result = await builder.build_file(session, source_of(root))

    apple, banana = result.states
    assert apple.row["image"] == APPLE
    assert apple.context["is"]["imgdownloaded"] is False
    assert (root / "dist" / "item" / "apple.html").is_file()
    banana_file = asset_filename("banana", BANANA)
    assert banana.row["image"] == f"https://example.com/uploads/{banana_file}"
    assert banana.context["is"]["imgdownloaded"] is True
    assert [p.name for p in (root / "dist" / "uploads").iterdir()] == [banana_file]
    assert f"https://example.com/uploads/{banana_file}" in (
        root / "dist" / "item" / "banana.html"
    ).read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_empty_image_cell_is_not_fetched(make_project):
    root = make_project([{"title": "Plain", "image": ""}], data={"saveimg": True})
    session = FakeSession()
    result = await make_builder(root).build_file(session, source_of(root))
    assert session.calls == []
    assert result.items[0]["image"] == ""


@pytest.mark.asyncio
async def test_pre_hook_can_fill_an_empty_image_cell(make_project):
    default = "https://cdn.example.com/default.png"
    root = make_project(
        [{"title": "Plain", "image": ""}],
        data={"saveimg": True},
        hooks={"downloader.py": f"def pre(url):\n    return url or {default!r}\n"},
    )
    session = FakeSession({default: FakeResponse(200, b"default-bytes")})

    result = await make_builder(root).build_file(session, source_of(root))

    assert session.calls == [default]
    plain = result.states[0]
    assert plain.row["image"].startswith("https://example.com/uploads/plain-")
    assert plain.context["is"]["imgdownloaded"] is True


@pytest.mark.asyncio
async def test_rows_without_image_column_skip_download(make_project):
    root = make_project(
        [{"title": "Bare", "image": ""}],
        data={"saveimg": True},
        hooks={
            "build.py": "def pre(rows):\n    return [{'title': row['title']} for row in rows]\n",
            "downloader.py": "def pre(url):\n    return 'https://cdn.example.com/default.png'\n",
        },
    )
    session = FakeSession()

    result = await make_builder(root).build_file(session, source_of(root))

    assert session.calls == []
    assert "image" not in result.items[0]


@pytest.mark.asyncio
async def test_existing_pages_are_kept_unless_items_forced(make_project):
    root = make_project()
    await make_builder(root).build_file(FakeSession(), source_of(root))
    page = root / "dist" / "item" / "apple.html"
    page.write_text("stale", encoding="utf-8")

    await make_builder(root).build_file(FakeSession(), source_of(root))
    assert page.read_text(encoding="utf-8") == "stale"

    await make_builder(root, overwrite="image").build_file(FakeSession(), source_of(root))
    assert page.read_text(encoding="utf-8") == "stale"

    await make_builder(root, overwrite="item").build_file(FakeSession(), source_of(root))
    assert "<h1>Apple</h1>" in page.read_text(encoding="utf-8")


@pytest.mark.asyncio
async def test_build_hooks_are_applied(make_project):
    root = make_project(
        hooks={
            "build.py": (
                "def pre(rows):\n"
                "    return [row for row in rows if row['title'] != 'Banana']\n\n"
                "def each(row):\n"
                "    return dict(row, title=row['title'].upper())\n\n"
                "def post(rows):\n"
                "    return rows + [{'title': 'extra'}]\n"
            )
        }
    )
    builder = make_builder(root)

    result = await builder.build_file(FakeSession(), source_of(root))

    assert [row["title"] for row in result.items] == ["APPLE", "extra"]
    assert "<h1>APPLE</h1>" in (root / "dist" / "item" / "apple.html").read_text(encoding="utf-8")
    assert not (root / "dist" / "item" / "banana.html").exists()


@pytest.mark.asyncio
async def test_build_all_keeps_file_order(make_project):
    root = make_project()
    (root / "csv" / "another.csv").write_text("title\nCherry\n", encoding="utf-8")
    builder = make_builder(root)
    sources = [source_of(root, "things"), source_of(root, "another")]

    results = await builder.build_all(FakeSession(), sources)

    assert [r.name for r in results] == ["things", "another"]
    assert (root / "dist" / "item" / "cherry.html").is_file()


@pytest.mark.asyncio
async def test_item_pages_see_rows_after_each(make_project):
    root = make_project(
        theme={"item.html": "{% for entry in items %}<i>{{ entry.title }}</i>{% endfor %}"},
        hooks={"build.py": "def each(row):\n    return dict(row, title=row['title'].upper())\n"},
    )

    await make_builder(root).build_file(FakeSession(), source_of(root))

    html = (root / "dist" / "item" / "apple.html").read_text(encoding="utf-8")
    assert "<i>APPLE</i><i>BANANA</i>" in html
