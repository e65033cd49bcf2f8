"""Built-in template helpers.

These functions are registered on the :class:`RenderEngine` of every run and
can be overridden by a project's ``hooks/helpers.py``.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any, Callable

import markdown2
from markupsafe import Markup

from .templating import slugify


def make_include(theme_dir: Path) -> Callable[[str], Markup]:
    """Return an ``include`` helper reading raw files from ``theme_dir``."""

    def include(filepath: str) -> Markup:
        target = Path(theme_dir) / filepath
        if target.is_file():
            return Markup(target.read_text(encoding="utf-8"))
        return Markup("")

    return include


def autop(text: Any) -> Markup:
    """Format plain text into HTML paragraphs.

    Blank lines separate paragraphs and single line breaks become ``<br />``.

    Examples
    --------
    >>> str(autop("one\\n\\ntwo")).count("<p>")
    2
    """
    if not text:
        return Markup("")
    html = markdown2.markdown(str(text), extras=["break-on-newline"])
    return Markup(html.strip())


def related(items: Any, size: int = 1) -> list[Any]:
    """Return up to ``size`` randomly chosen entries of ``items``."""
    if not items or not isinstance(items, (list, tuple)):
        return []
    size = max(int(size), 1)
    return random.sample(list(items), min(size, len(items)))


def _field(obj: Any, name: str, default: Any) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def latest(collections: Any, size: int = 1, multi: bool = True) -> list[Any]:
    """Pick recent items from the collections passed to the home page.

    Collections are ordered by ``lastmod``. With ``multi`` the last ``size``
    rows of every collection are pooled and ``size`` of them are sampled;
    without it the first row of each collection is returned, newest
    collection first.
    """
    if not collections or not isinstance(collections, (list, tuple)):
        return []
    size = max(int(size), 1)
    ordered = sorted(collections, key=lambda c: _field(c, "lastmod", 0))
    if multi:
        pool: list[Any] = []
        for collection in ordered:
            rows = list(_field(collection, "items", []) or [])
            pool.extend(list(reversed(rows))[:size])
        return random.sample(pool, min(size, len(pool)))
    firsts = [
        _field(collection, "items", [])[0]
        for collection in ordered
        if _field(collection, "items", [])
    ]
    return list(reversed(firsts))[:size]


def fakevar(name: Any) -> Markup:
    """Emit a literal ``{{name}}`` placeholder into the output.

    Examples
    --------
    >>> str(fakevar("price"))
    '{{price}}'
    """
    return Markup("{{" + str(name) + "}}")


def default_helpers(theme_dir: Path) -> dict[str, Callable[..., Any]]:
    return {
        "slugify": slugify,
        "include": make_include(theme_dir),
        "autop": autop,
        "related": related,
        "latest": latest,
        "fakevar": fakevar,
    }
