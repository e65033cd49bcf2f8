"""Sitemap and alphabetical index aggregation.

Two independent outputs are built from the results of a run:

- ``sitemap.xml`` (and its ``sitemap.xsl`` stylesheet) listing the static
  pages followed by every item file found in the item directory.
- One alphabetical index page per bucket (``a`` to ``z`` plus ``numeric``)
  under ``<sitemap-slug>/``, listing the items of every data file whose
  title starts with that letter.

The sitemap follows the usual skip rule; the index pages are always
rewritten since their contents depend on the whole corpus.

Examples
--------
>>> bucket_for("Zebra"), bucket_for("7 Wonders")
('z', 'numeric')
"""

from __future__ import annotations

import locale
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from tablesite.config import (
    ALPHABET_BUCKETS,
    ALPHABET_TEMPLATE,
    HTML_EXTENSION,
    NUMERIC_BUCKET,
    OVERWRITE_ITEM,
    OVERWRITE_PAGE,
    SITEMAP_DATE_FORMAT,
    SITEMAP_OUTPUT,
    SITEMAP_STYLESHEET,
    SITEMAP_STYLESHEET_OUTPUT,
    SITEMAP_TEMPLATE,
)

from .items import CollectionResult
from .pages import PageBuilder
from .templating import slugify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SitemapEntry:
    url: str
    lastmod: str


def format_lastmod(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime).strftime(SITEMAP_DATE_FORMAT)


def bucket_for(title: Any) -> str:
    """Return the index bucket of a title.

    A title whose first character is an ASCII letter goes to that letter's
    bucket, case-insensitively. Anything else (digits, punctuation,
    accented letters, ligatures, empty titles) goes to ``numeric``.

    Examples
    --------
    >>> bucket_for("apple"), bucket_for("Apple"), bucket_for("")
    ('a', 'a', 'numeric')
    """
    first = str(title or "")[:1]
    if first.isascii() and first.isalpha():
        return first.lower()
    return NUMERIC_BUCKET


def title_sort_key(entry: dict[str, Any]) -> tuple[str, str]:
    title = str(entry.get("title") or "")
    return locale.strxfrm(title.casefold()), title


def partition_items(entries: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """Group index entries by bucket, each bucket sorted by title.

    Every bucket of ``ALPHABET_BUCKETS`` is present in the result, empty or
    not.
    """
    buckets: dict[str, list[dict[str, Any]]] = {name: [] for name in ALPHABET_BUCKETS}
    for entry in entries:
        buckets[bucket_for(entry.get("title"))].append(entry)
    for name in buckets:
        buckets[name].sort(key=title_sort_key)
    return buckets


class SitemapBuilder(PageBuilder):
    """Build ``sitemap.xml``, ``sitemap.xsl`` and the alphabetical index."""

    def collect_entries(self) -> list[SitemapEntry]:
        """Return the sitemap entries: pages first, then item files.

        Pages contribute only when their rendered file exists. Item files are
        listed in filename order.
        """
        paths = self.project.paths
        entries: list[SitemapEntry] = []
        for name in self.project.page_names:
            rendered = paths.dist_dir / f"{name}{HTML_EXTENSION}"
            if rendered.is_file():
                entries.append(
                    SitemapEntry(self.project.public_url(rendered.name), format_lastmod(rendered))
                )
        if paths.item_dir.is_dir():
            for item_file in sorted(paths.item_dir.iterdir()):
                if not item_file.is_file():
                    continue
                entries.append(
                    SitemapEntry(
                        self.project.public_url(self.project.item_slug, item_file.name),
                        format_lastmod(item_file),
                    )
                )
        return entries

    def build_sitemap(self) -> Path | None:
        """Render ``sitemap.xml`` and the stylesheet, when enabled.

        The stylesheet is only rewritten under the ``all`` override.
        """
        if not self.project.sitemap_enabled:
            return None
        dist_dir = self.project.paths.dist_dir
        entries = self.collect_entries()
        context = self.contexts.build(
            {"sitemaps": [asdict(entry) for entry in entries], "is": {"sitemap": True}}
        )
        written = self.render_gated(
            SITEMAP_TEMPLATE,
            dist_dir / SITEMAP_OUTPUT,
            context,
            OVERWRITE_PAGE,
            OVERWRITE_ITEM,
        )
        self.render_gated(
            SITEMAP_STYLESHEET,
            dist_dir / SITEMAP_STYLESHEET_OUTPUT,
            self.contexts.build({"is": {"sitemap": True}}),
        )
        if written is not None:
            logger.info("Sitemap written with %d entries", len(entries))
        return written

    def index_entries(self, collections: Iterable[CollectionResult]) -> list[dict[str, Any]]:
        """Return one index entry per item, taken from the rows after ``post``.

        Rows that went through the item build link to the page they were
        rendered to. Rows added by ``post`` link by their ``slug`` (or their
        slugified title), or to the file's page in aggregated mode.
        """
        entries: list[dict[str, Any]] = []
        for collection in collections:
            states = {id(state.row): state for state in collection.states}
            shared = (
                collection.states[0].destination
                if collection.states and not self.project.multiple
                else None
            )
            for row in collection.items:
                state = states.get(id(row))
                if state is not None:
                    slug, destination = state.slug, state.destination.name
                else:
                    slug = str(row.get("slug") or slugify(row.get("title", "")))
                    destination = shared.name if shared else f"{slug}{HTML_EXTENSION}"
                entries.append(
                    {
                        "title": row.get("title", ""),
                        "slug": slug,
                        "url": self.project.public_url(self.project.item_slug, destination),
                        "item": row,
                    }
                )
        return entries
    def build_alphabet_index(self, collections: Iterable[CollectionResult]) -> list[Path]:
        """Render one index page per bucket, overwriting previous output.

        Parameters
        ----------
        collections : Iterable[CollectionResult]
            Results of every data file of the run.

        Returns
        -------
        list[Path]
            The written bucket pages, in bucket order.
        """
        if not self.engine.has_template(ALPHABET_TEMPLATE):
            return []
        partitions = partition_items(self.index_entries(collections))
        index_dir = self.project.paths.index_dir
        written: list[Path] = []
        for bucket in ALPHABET_BUCKETS:
            context = self.contexts.build(
                {
                    "bucket": bucket,
                    "buckets": list(ALPHABET_BUCKETS),
                    "items": partitions[bucket],
                    "is": {"sitemap": True},
                },
                self.project.meta.get("sitemap"),
            )
            destination = index_dir / f"{bucket}{HTML_EXTENSION}"
            written.append(self.engine.render_to_file(ALPHABET_TEMPLATE, destination, context))
        logger.info("Alphabetical index written to %s", index_dir)
        return written
