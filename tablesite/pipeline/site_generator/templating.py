"""Templating utilities for the site generator.

This module owns everything between a theme directory and a rendered string:
the :class:`RenderEngine` (a Jinja2 environment built once per run, holding
the helper functions and the theme loader used for ``{% include %}``
partials), the :class:`ContextBuilder` that assembles the data passed to
every template and the slug normalization policy. Written files are
minified by type through :mod:`.output`.

Boundaries
----------
- No global registry: helpers and partials live on the engine instance,
  which is passed explicitly to every builder.
- The only file output is :meth:`RenderEngine.render_to_file`; everything
  else is pure string handling.
- Template failures are surfaced as :class:`tablesite.exceptions.RenderError`.

Example
-------
>>> from pathlib import Path
>>> engine = RenderEngine(Path("themes/default"), {})  # doctest: +SKIP
>>> builder = ContextBuilder(project, engine)  # doctest: +SKIP
>>> context = builder.build({"is": {"home": True}}, project.meta.get("home"))  # doctest: +SKIP
>>> html = engine.render_template("home.html", context)  # doctest: +SKIP
"""

from __future__ import annotations

import copy
import re
from pathlib import Path
from typing import Any, Callable, Mapping

from jinja2 import (
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)

from tablesite.exceptions import RenderError

from .output import minify_output, write_atomic

ARTIFACT_FLAGS: tuple[str, ...] = ("home", "item", "page", "sitemap", "robot")

_SLUG_SEPARATORS = re.compile(r"[\s/:]+")
_TEMPLATE_SYNTAX = re.compile(r"\{\{|\{%|\{#")


def slugify(value: Any) -> str:
    """Normalize ``value`` into a URL and filesystem friendly slug.

    The text is lowercased and trimmed, then every run of whitespace,
    slashes or colons is collapsed into a single hyphen. No other character
    is touched.

    Parameters
    ----------
    value : Any
        Text to normalize; non-strings are converted with ``str``.

    Returns
    -------
    str
        The slug, possibly empty.

    Examples
    --------
    >>> slugify("  Hello World ")
    'hello-world'
    >>> slugify("Tips: Cats / Dogs")
    'tips-cats-dogs'
    >>> slugify("7 Wonders")
    '7-wonders'
    """
    return _SLUG_SEPARATORS.sub("-", str(value).strip().lower())


def has_template_syntax(value: str) -> bool:
    return bool(_TEMPLATE_SYNTAX.search(value))


class RenderEngine:
    """Jinja2 rendering engine for one build run.

    Parameters
    ----------
    theme_dir : Path
        Directory holding the theme templates; also the search path for
        ``{% include %}`` partials such as ``header.html``.
    helpers : Mapping[str, Callable]
        Functions made available to every template both as globals
        (``{{ slugify(title) }}``) and as filters (``{{ title|slugify }}``).

    Notes
    -----
    HTML and XML templates are autoescaped; strings rendered from metadata
    or page sources are not, because their result is embedded in a theme
    template that escapes it there.
    """

    def __init__(self, theme_dir: Path, helpers: Mapping[str, Callable[..., Any]]) -> None:
        self.theme_dir = Path(theme_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.theme_dir)),
            autoescape=select_autoescape(
                enabled_extensions=("html", "htm", "xml", "xsl"),
                default_for_string=False,
            ),
            keep_trailing_newline=True,
        )
        self.env.globals.update(helpers)
        self.env.filters.update(helpers)

    def has_template(self, name: str) -> bool:
        return (self.theme_dir / name).is_file()

    def render_string(self, source: str, context: Mapping[str, Any]) -> str:
        """Render a template given as text.

        Raises
        ------
        RenderError
            If the text is not a valid template or rendering fails.
        """
        try:
            return self.env.from_string(source).render(context)
        except TemplateError as error:
            raise RenderError(
                f"Could not render template string: {error}",
                context={"source": source[:200]},
            ) from error

    def render_template(self, name: str, context: Mapping[str, Any]) -> str:
        """Render the theme template ``name``.

        Raises
        ------
        RenderError
            If the template is missing, invalid, or fails while rendering.
        """
        try:
            return self.env.get_template(name).render(context)
        except TemplateNotFound as error:
            raise RenderError(
                f"Template not found: {name}", context={"theme": str(self.theme_dir)}
            ) from error
        except TemplateError as error:
            raise RenderError(
                f"Could not render {name}: {error}",
                context={"template": name, "lineno": getattr(error, "lineno", None)},
            ) from error

    def render_to_file(
        self, name: str, destination: Path, context: Mapping[str, Any]
    ) -> Path:
        """Render ``name`` and write the result to ``destination``.

        Parent directories are created as needed. The output is minified for
        its file type and written atomically as UTF-8.

        Raises
        ------
        RenderError
            If rendering fails or the file cannot be written.
        """
        output = self.render_template(name, context)
        output = minify_output(output, destination.suffix)
        try:
            write_atomic(destination, output.encode("utf-8"))
        except OSError as error:
            raise RenderError(
                f"Could not write {destination}", context={"reason": str(error)}
            ) from error
        return destination


class ContextBuilder:
    """Assemble render contexts from project fields, flags and metadata.

    Parameters
    ----------
    project : Project
        Loaded project configuration; its ``site``, ``meta`` and
        ``settings`` are copied into every context.
    engine : RenderEngine
        Engine used to render metadata values that contain template syntax.
    """

    def __init__(self, project: Any, engine: RenderEngine) -> None:
        self.project = project
        self.engine = engine

    def base_fields(self) -> dict[str, Any]:
        return {
            "site": copy.deepcopy(dict(self.project.site)),
            "meta": copy.deepcopy(dict(self.project.meta)),
            "settings": copy.deepcopy(dict(self.project.settings)),
        }

    def build(
        self,
        custom_fields: Mapping[str, Any] | None = None,
        template_metadata: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a fresh render context.

        Project fields come first, then a zeroed ``is`` flag set, then
        ``custom_fields`` (whose ``is`` entries are merged into the zeroed
        set). Each string value of ``template_metadata`` that contains
        template syntax is rendered against the context built so far and
        stored under its key; other values are copied unchanged. A truthy
        ``slug`` is finally normalized with :func:`slugify`.

        Parameters
        ----------
        custom_fields : Mapping[str, Any] | None, optional
            Artifact payload (``item``, ``page``, ``items``, ``sitemaps``...).
        template_metadata : Mapping[str, Any] | None, optional
            Raw metadata templates, e.g. ``project.meta['item']``.

        Returns
        -------
        dict[str, Any]
            The new context. Neither argument is mutated.

        Raises
        ------
        RenderError
            If a metadata value is not a valid template.

        Examples
        --------
        >>> ctx = builder.build({"is": {"item": True}, "item": {"title": "A B"}},
        ...                     {"slug": "{{ item.title }}"})  # doctest: +SKIP
        >>> ctx["slug"], ctx["is"]["item"], ctx["is"]["home"]  # doctest: +SKIP
        ('a-b', True, False)
        """
        flags: dict[str, bool] = {name: False for name in ARTIFACT_FLAGS}
        flags["imgdownloaded"] = False
        context: dict[str, Any] = self.base_fields()
        context["is"] = flags
        for key, value in (custom_fields or {}).items():
            if key == "is" and isinstance(value, Mapping):
                flags.update(value)
            else:
                context[key] = value
        for key, value in (template_metadata or {}).items():
            if isinstance(value, str) and has_template_syntax(value):
                context[key] = self.engine.render_string(value, context)
            else:
                context[key] = copy.deepcopy(value)
        if context.get("slug"):
            context["slug"] = slugify(context["slug"])
        return context
