"""Item page building.

This module turns the rows of each data file into item pages. Every row goes
through the same sequence of stages::

    CONTEXT -> SLUG -> DOWNLOAD (optional) -> HOOK(each) -> RENDER

Contexts and slugs are resolved up front in row order. Image downloads
run concurrently for all rows of a file; ``each`` and rendering then run in
row order, so every page sees the rows of its file after ``each``. In
*multiple* mode each row is rendered to its own ``<item-slug>/<slug>.html``;
in aggregated mode the rows of a file are rendered together into one page
named after the last titled row.

The per-row build state (render context, destination, slug) lives in an
:class:`ItemState` next to the row instead of inside it, so the row mapping
handed to hooks only ever carries data columns.

Examples
--------
>>> builder = ItemBuilder(project, engine, contexts, hooks, OverwritePolicy())  # doctest: +SKIP
>>> async def main(session, sources):
...     return await builder.build_all(session, sources)
>>> # results = asyncio.run(main(session, sources))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp

from tablesite.config import HTML_EXTENSION, ITEM_TEMPLATE, OVERWRITE_ITEM, UNTITLED_ITEM_TITLE

from .downloader import AssetDownloader
from .hooks import Hooks
from .project import OverwritePolicy, Project
from .records import SourceFile
from .templating import ContextBuilder, RenderEngine, slugify

logger = logging.getLogger(__name__)


@dataclass
class ItemState:
    """Build state of one row.

    Attributes
    ----------
    row : dict[str, str]
        The row record; its image column may be rewritten during the build.
    context : dict[str, Any]
        Render context built for the row.
    slug : str
        Resolved slug driving the destination filename.
    destination : Path
        Page the row is rendered into (shared by all rows in aggregated mode).
    rendered : bool
        Whether the page was written during this run.
    """

    row: dict[str, str]
    context: dict[str, Any]
    slug: str
    destination: Path
    rendered: bool = False


@dataclass
class CollectionResult:
    """Outcome of building one data file.

    ``items`` holds the rows after the build hooks ran; ``states`` keeps the
    matching build states for consumers that need slugs and destinations.
    """

    file: Path
    lastmod: int
    items: list[dict[str, str]]
    states: list[ItemState] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.file.stem

    def as_context(self) -> dict[str, Any]:
        return {
            "file": str(self.file),
            "name": self.name,
            "lastmod": self.lastmod,
            "items": self.items,
        }


class ItemBuilder:
    """Build the item pages of every data file.

    Parameters
    ----------
    project : Project
        Loaded project configuration.
    engine : RenderEngine
        Engine of the run.
    contexts : ContextBuilder
        Context builder bound to ``project`` and ``engine``.
    hooks : Hooks
        Build and downloader hooks of the run.
    policy : OverwritePolicy
        Overwrite policy of the run.
    downloader : AssetDownloader | None, optional
        Image downloader; images are left untouched when ``None``.
    """

    def __init__(
        self,
        project: Project,
        engine: RenderEngine,
        contexts: ContextBuilder,
        hooks: Hooks,
        policy: OverwritePolicy,
        downloader: AssetDownloader | None = None,
    ) -> None:
        self.project = project
        self.engine = engine
        self.contexts = contexts
        self.hooks = hooks
        self.policy = policy
        self.downloader = downloader

    def destination_for(self, slug: str) -> Path:
        return self.project.paths.item_dir / f"{slug}{HTML_EXTENSION}"

    def resolve_states(self, rows: list[dict[str, str]]) -> list[ItemState]:
        """Build the context and slug of every row, in row order.

        A row whose context has no slug takes the first slug already
        resolved in the same file, or its zero-based index when none has
        been resolved yet. The resolved slug is also stored on the row.

        Examples
        --------
        >>> [s.slug for s in builder.resolve_states(rows)]  # doctest: +SKIP
        ['0', '1', 'custom']
        """
        states: list[ItemState] = []
        first_slug: str | None = None
        item_meta = self.project.meta.get("item")
        for index, row in enumerate(rows):
            context = self.contexts.build({"item": row, "is": {"item": True}}, item_meta)
            slug = context.get("slug") or first_slug or str(index)
            if context.get("slug") and first_slug is None:
                first_slug = context["slug"]
            context["slug"] = slug
            row["slug"] = slug
            states.append(ItemState(row, context, slug, self.destination_for(slug)))
        return states

    async def save_image(self, session: aiohttp.ClientSession, state: ItemState) -> None:
        if self.downloader is None or not self.project.save_images:
            return
        column = self.project.image_column
        if column not in state.row:
            return
        result = await self.downloader.save_image(session, state.row[column] or "", state.slug)
        state.row[column] = result.url
        if result.downloaded:
            state.context["is"]["imgdownloaded"] = True

    def render_item(self, state: ItemState, rows: list[dict[str, str]]) -> ItemState:
        """Render the page of one row; ``rows`` are all rows of its file after ``each``."""
        if self.engine.has_template(ITEM_TEMPLATE) and self.policy.should_write(
            state.destination, OVERWRITE_ITEM
        ):
            context = dict(state.context, item=[state.row], items=rows)
            self.engine.render_to_file(ITEM_TEMPLATE, state.destination, context)
            state.rendered = True
        return state

    def render_aggregate(self, states: list[ItemState]) -> Path:
        """Render all rows of a file into one page and return its path.

        The last row with a truthy ``title`` names the page (``"Untitled"``
        when no row has one).
        """
        title = UNTITLED_ITEM_TITLE
        for state in states:
            if state.row.get("title"):
                title = state.row["title"]
        slug = slugify(title)
        destination = self.destination_for(slug)
        rows = [state.row for state in states]
        for state in states:
            state.destination = destination
        if self.engine.has_template(ITEM_TEMPLATE) and self.policy.should_write(
            destination, OVERWRITE_ITEM
        ):
            context = self.contexts.build(
                {"item": rows, "items": rows, "is": {"item": True}},
                self.project.meta.get("item"),
            )
            context["slug"] = slug
            self.engine.render_to_file(ITEM_TEMPLATE, destination, context)
            for state in states:
                state.rendered = True
        return destination

    async def build_file(
        self, session: aiohttp.ClientSession, source: SourceFile
    ) -> CollectionResult:
        """Build every item of one data file.

        Parameters
        ----------
        session : aiohttp.ClientSession
            Shared HTTP session for image downloads.
        source : SourceFile
            The loaded data file.

        Returns
        -------
        CollectionResult
            The rows after ``post`` together with their build states.
        """
        rows = list(self.hooks.build.pre(list(source.rows)))
        states = self.resolve_states(rows)
        await asyncio.gather(*(self.save_image(session, state) for state in states))
        for state in states:
            state.row = self.hooks.build.each(state.row)
        rows = [state.row for state in states]
        if self.project.multiple:
            for state in states:
                self.render_item(state, rows)
        elif states:
            self.render_aggregate(states)
        items = list(self.hooks.build.post([state.row for state in states]))
        rendered = sum(1 for state in states if state.rendered)
        logger.info(
            "Built %s: %d rows, %d pages written", source.path.name, len(states), rendered
        )
        return CollectionResult(source.path, source.lastmod, items, states)

    async def build_all(
        self, session: aiohttp.ClientSession, sources: list[SourceFile]
    ) -> list[CollectionResult]:
        """Build every data file concurrently, keeping the order of ``sources``."""
        return list(
            await asyncio.gather(*(self.build_file(session, source) for source in sources))
        )
