"""Home, static page and robots builders.

Each artifact here is one render of a theme template, written only when the
template exists and the destination is missing or its overwrite category is
forced. The three builders form the sequential part of a run: home, then
pages, then (after the sitemap) robots.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from markupsafe import Markup

from tablesite.config import (
    HOME_OUTPUT,
    HOME_TEMPLATE,
    HTML_EXTENSION,
    OVERWRITE_PAGE,
    PAGE_SOURCE_EXTENSION,
    PAGE_TEMPLATE,
    ROBOTS_OUTPUT,
    ROBOTS_TEMPLATE,
)
from tablesite.exceptions import RenderError

from .items import CollectionResult
from .project import OverwritePolicy, Project
from .templating import ContextBuilder, RenderEngine

logger = logging.getLogger(__name__)


class PageBuilder:
    """Render the single-file artifacts of a site.

    Parameters
    ----------
    project : Project
        Loaded project configuration.
    engine : RenderEngine
        Engine of the run.
    contexts : ContextBuilder
        Context builder bound to ``project`` and ``engine``.
    policy : OverwritePolicy
        Overwrite policy of the run.
    """

    def __init__(
        self,
        project: Project,
        engine: RenderEngine,
        contexts: ContextBuilder,
        policy: OverwritePolicy,
    ) -> None:
        self.project = project
        self.engine = engine
        self.contexts = contexts
        self.policy = policy

    def render_gated(
        self,
        template: str,
        destination: Path,
        context: dict[str, Any],
        *categories: str,
    ) -> Path | None:
        """Render ``template`` unless it is missing or ``destination`` must be kept.

        Returns the written path, or ``None`` when nothing was written.
        """
        if not self.engine.has_template(template):
            logger.debug("Theme has no %s, skipping", template)
            return None
        if not self.policy.should_write(destination, *categories):
            logger.debug("Keeping existing %s", destination)
            return None
        return self.engine.render_to_file(template, destination, context)

    def build_home(self, collections: Iterable[CollectionResult]) -> Path | None:
        """Render ``index.html`` with every collection of the run as ``items``."""
        context = self.contexts.build(
            {
                "items": [collection.as_context() for collection in collections],
                "is": {"home": True},
            },
            self.project.meta.get("home"),
        )
        destination = self.project.paths.dist_dir / HOME_OUTPUT
        return self.render_gated(HOME_TEMPLATE, destination, context, OVERWRITE_PAGE)

    def page_sources(self) -> list[Path]:
        """Return the page sources whose name is listed in ``meta.pages``.

        Files with another extension or an unlisted name are skipped.
        """
        pages_dir = self.project.paths.pages_dir
        if not pages_dir.is_dir():
            return []
        allowed = set(self.project.page_names)
        return [
            path
            for path in sorted(pages_dir.iterdir())
            if path.is_file()
            and path.suffix == PAGE_SOURCE_EXTENSION
            and path.stem in allowed
        ]

    def render_page_content(self, source: Path, page_meta: dict[str, Any]) -> Markup:
        """Render a page source against a page-scoped context."""
        try:
            raw = source.read_text(encoding="utf-8")
        except OSError as error:
            raise RenderError(
                f"Could not read page {source.name}", context={"reason": str(error)}
            ) from error
        context = self.contexts.build({"page": dict(page_meta), "is": {"page": True}}, page_meta)
        return Markup(self.engine.render_string(raw, context))

    def build_pages(self) -> list[Path]:
        """Render every allow-listed page into ``dist/<name>.html``.

        Returns
        -------
        list[Path]
            Pages written during this call.
        """
        written: list[Path] = []
        if not self.engine.has_template(PAGE_TEMPLATE):
            return written
        for source in self.page_sources():
            destination = self.project.paths.dist_dir / f"{source.stem}{HTML_EXTENSION}"
            if not self.policy.should_write(destination, OVERWRITE_PAGE):
                continue
            page_meta = self.project.page_meta(source.stem)
            page = dict(page_meta, content=self.render_page_content(source, page_meta))
            context = self.contexts.build({"page": page, "is": {"page": True}}, page_meta)
            written.append(self.engine.render_to_file(PAGE_TEMPLATE, destination, context))
        logger.info("Rendered %d pages", len(written))
        return written

    def build_robots(self) -> Path | None:
        if not self.project.robots_enabled:
            return None
        context = self.contexts.build({"is": {"robot": True}})
        destination = self.project.paths.dist_dir / ROBOTS_OUTPUT
        return self.render_gated(ROBOTS_TEMPLATE, destination, context, OVERWRITE_PAGE)
