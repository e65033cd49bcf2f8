"""Writing generated files: minification by file type and atomic writes.

Rendered pages and copied theme files pass through :func:`minify_output`
before they are written. The minifier is picked from the destination suffix:

- ``.html`` / ``.htm`` with ``minify_html`` (closing tags and the
  ``<html>``/``<head>`` tags are kept so themes stay readable),
- ``.css`` with ``csscompressor``,
- ``.js`` with ``rjsmin``.

Any other file, XML included, is written as rendered.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable

import csscompressor
import minify_html
import rjsmin


def minify_markup(content: str) -> str:
    """Minify an HTML document or fragment.

    Examples
    --------
    >>> minify_markup("<ul>\\n  <li>A</li>\\n  <li>B</li>\\n</ul>\\n")
    '<ul><li>A</li><li>B</li></ul>'
    """
    if not isinstance(content, str):
        raise TypeError("Input must be a string.")
    return minify_html.minify(
        content,
        keep_closing_tags=True,
        keep_html_and_head_opening_tags=True,
        minify_css=True,
        minify_js=True,
    )


def minify_stylesheet(content: str) -> str:
    return csscompressor.compress(content)


def minify_script(content: str) -> str:
    return rjsmin.jsmin(content)


MINIFIERS: dict[str, Callable[[str], str]] = {
    ".html": minify_markup,
    ".htm": minify_markup,
    ".css": minify_stylesheet,
    ".js": minify_script,
}


def minify_output(content: str, suffix: str) -> str:
    """Return ``content`` minified for a file ending in ``suffix``."""
    minifier = MINIFIERS.get(suffix.lower())
    return minifier(content) if minifier else content


def write_atomic(target: Path, payload: bytes) -> None:
    """Write ``payload`` to ``target`` through a temp file and ``os.replace``."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=".", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
