"""Pytest configuration for test environment setup.

- Forces ``DISABLE_FILE_LOGS=1`` to avoid writing log files during tests.
- Ensures the project root is available on ``sys.path`` for imports.
- Provides ``make_project``, a factory writing a small project (minimal
  theme, one CSV file) under ``tmp_path``.
"""

import csv
import json
import os
import sys

os.environ.setdefault("DISABLE_FILE_LOGS", "1")  # Avoid creating log files during tests
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

THEME = {
    "header.html": "<header>{{ site.title }}</header>\n",
    "footer.html": "<footer></footer>\n",
    "home.html": (
        '{% include "header.html" ignore missing %}\n'
        "<ul>\n"
        '{% for collection in items %}<li>{{ collection.name }}:{{ collection["items"]|length }}</li>\n'
        "{% endfor %}</ul>\n"
    ),
    "item.html": (
        "{% for entry in item %}<h1>{{ entry.title }}</h1>"
        "<img src=\"{{ entry.image }}\">{% endfor %}"
        "<p>{{ items|length }} in file</p>\n"
    ),
    "page.html": "<h1>{{ title }}</h1>\n<div>{{ page.content }}</div>\n",
    "sitemap.xml": (
        "<urlset>\n{% for entry in sitemaps %}"
        "<url><loc>{{ entry.url }}</loc><lastmod>{{ entry.lastmod }}</lastmod></url>\n"
        "{% endfor %}</urlset>\n"
    ),
    "sitemap.xsl": "<xsl:stylesheet>{{ site.url }}</xsl:stylesheet>\n",
    "robots.txt": "User-agent: *\nSitemap: {{ site.url }}/sitemap.xml\n",
    "alphabet.html": (
        "<h1>{{ bucket }}</h1>\n"
        "{% for entry in items %}<li>{{ entry.title }}</li>\n{% endfor %}"
    ),
}

DEFAULT_ROWS = [
    {"title": "Apple", "image": "https://cdn.example.com/apple.png"},
    {"title": "Banana", "image": "https://cdn.example.com/banana.png"},
]


def write_csv(path: Path, rows: list[dict], delimiter: str = ",") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames: list[str] = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames, delimiter=delimiter)
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture
def make_project(tmp_path: Path):
    """Return a factory creating a project directory and returning its root."""

    def factory(
        rows: list[dict] | None = None,
        *,
        csv_name: str = "things",
        data: dict | None = None,
        settings: dict | None = None,
        meta: dict | None = None,
        theme: dict | None = None,
        pages: dict | None = None,
        hooks: dict | None = None,
    ) -> Path:
        root = tmp_path / "site"
        config = {
            "site": {"url": "https://example.com", "title": "Example"},
            "meta": {
                "home": {"title": "{{ site.title }}"},
                "item": {"title": "{{ item.title }}", "slug": "{{ item.title }}"},
                "pages": {"about": {"title": "About {{ site.title }}"}},
                "sitemap": {"title": "Index {{ bucket }}"},
            },
            "settings": {
                "theme": "default",
                "slug": {"upload": "uploads", "item": "item", "sitemap": "sitemap"},
                "data": {"multiple": True, "imgcolumn": "image", "saveimg": False},
                "sitemap": True,
                "robots": True,
            },
        }
        if meta:
            config["meta"].update(meta)
        if settings:
            config["settings"].update(settings)
        if data:
            config["settings"]["data"].update(data)
        for folder in ("csv", "dist", "hooks", "pages"):
            (root / folder).mkdir(parents=True, exist_ok=True)
        (root / "project.json").write_text(json.dumps(config), encoding="utf-8")
        write_csv(root / "csv" / f"{csv_name}.csv", DEFAULT_ROWS if rows is None else rows)

        theme_dir = root / "themes" / "default"
        (theme_dir / "assets").mkdir(parents=True, exist_ok=True)
        (theme_dir / "assets" / "style.css").write_text(
            "body {\n  margin: 0;\n}\n", encoding="utf-8"
        )
        for name, content in {**THEME, **(theme or {})}.items():
            if content is None:
                continue
            (theme_dir / name).write_text(content, encoding="utf-8")

        page_files = {"about.html": "<p>About {{ site.title }}</p>\n"}
        page_files.update(pages or {})
        for name, content in page_files.items():
            (root / "pages" / name).write_text(content, encoding="utf-8")
        for name, content in (hooks or {}).items():
            (root / "hooks" / name).write_text(content, encoding="utf-8")
        return root

    return factory
