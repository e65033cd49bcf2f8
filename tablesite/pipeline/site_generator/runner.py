"""Headless build runner for a tablesite project.

This module wires the builders of the package into one run. The stages and
their dependencies are declared on a :class:`StageGraph`::

    records -> items -> home -> pages -> sitemap -> robots
                     -> alphabet
                     -> assets

Stages start as soon as the stages they depend on have finished. The
``home -> pages -> sitemap -> robots`` chain is fatal: its first failure
cancels whatever is still running and is raised as is. ``alphabet`` and
``assets`` are isolated branches: their failures are collected, the other
branches run to completion, and a single :class:`BuildError` listing them is
raised at the end.

Usage Examples
--------------
Programmatic usage from a project root::

    from pathlib import Path
    from tablesite.pipeline.site_generator.runner import run_build

    report = run_build(Path("my-site"), overwrite="image")
    print(report.item_count, report.fetch_count)
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

import aiohttp

from tablesite.config import OVERWRITE_IMAGE
from tablesite.exceptions import BuildError

from .assets import copy_theme_assets
from .config import DownloaderConfig
from .downloader import AssetDownloader
from .hooks import load_hooks
from .items import CollectionResult, ItemBuilder
from .pages import PageBuilder
from .project import OverwritePolicy, load_project
from .records import collect_source_files, load_source_files
from .sitemap import SitemapBuilder
from .templating import ContextBuilder, RenderEngine

logger = logging.getLogger(__name__)

StageFunc = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class Stage:
    name: str
    func: StageFunc
    after: tuple[str, ...] = ()
    isolated: bool = False


class StageGraph:
    """A small dependency graph of coroutine stages.

    Each stage function is called with the results of the stages it depends
    on, in the order they were declared in ``after``.

    Examples
    --------
    >>> async def one():
    ...     return 1
    >>> async def plus_one(value):
    ...     return value + 1
    >>> graph = StageGraph()
    >>> graph.add("one", one)
    >>> graph.add("two", plus_one, after=("one",))
    >>> asyncio.run(graph.run())["two"]
    2
    """

    def __init__(self) -> None:
        self._stages: dict[str, Stage] = {}

    @property
    def names(self) -> list[str]:
        return list(self._stages)

    def add(
        self,
        name: str,
        func: StageFunc,
        *,
        after: tuple[str, ...] = (),
        isolated: bool = False,
    ) -> None:
        """Declare a stage.

        Dependencies must be declared before the stages that use them, which
        also rules out cycles.

        Raises
        ------
        ValueError
            If ``name`` is already declared or a dependency is unknown.
        """
        if name in self._stages:
            raise ValueError(f"Stage '{name}' is already declared")
        missing = [dep for dep in after if dep not in self._stages]
        if missing:
            raise ValueError(f"Stage '{name}' depends on undeclared stages: {missing}")
        self._stages[name] = Stage(name, func, tuple(after), isolated)

    async def run(self) -> dict[str, Any]:
        """Run every stage and return their results keyed by name.

        Raises
        ------
        BuildError
            When one or more isolated stages failed and no fatal stage did.
        Exception
            The first failure of a non-isolated stage, unchanged.
        """
        tasks: dict[str, asyncio.Task[Any]] = {}

        async def run_stage(stage: Stage) -> Any:
            inputs = [await tasks[dep] for dep in stage.after]
            logger.debug("Stage %s started", stage.name)
            result = await stage.func(*inputs)
            logger.debug("Stage %s finished", stage.name)
            return result

        for stage in self._stages.values():
            tasks[stage.name] = asyncio.ensure_future(run_stage(stage))
        owners = {task: name for name, task in tasks.items()}
        failures: dict[str, BaseException] = {}
        pending: set[asyncio.Task[Any]] = set(tasks.values())
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    error = task.exception()
                    if error is None:
                        continue
                    name = owners[task]
                    logger.error("Stage %s failed: %s", name, error)
                    if not self._stages[name].isolated:
                        raise error
                    failures[name] = error
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if failures:
            raise BuildError(
                f"{len(failures)} build stage(s) failed: {', '.join(sorted(failures))}",
                context={"failures": {name: str(error) for name, error in failures.items()}},
            )
        return {name: task.result() for name, task in tasks.items()}


@dataclass
class BuildReport:
    """Outcome of one build run."""

    collections: list[CollectionResult] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)
    fetch_count: int = 0

    @property
    def item_count(self) -> int:
        return sum(len(collection.items) for collection in self.collections)


def clean_output(dist_dir: Path) -> None:
    """Delete everything inside ``dist_dir``, keeping the directory itself."""
    if not dist_dir.is_dir():
        return
    for child in dist_dir.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
    logger.info("Cleaned %s", dist_dir)


async def build_site(
    root: Path,
    *,
    selector: str | None = None,
    clean: bool = False,
    overwrite: str | None = None,
    session: aiohttp.ClientSession | None = None,
    downloader_config: DownloaderConfig | None = None,
) -> BuildReport:
    """Build the site of the project at ``root``.

    Parameters
    ----------
    root : Path
        Project root directory.
    selector : str | None, optional
        Name of a single data file in ``csv/`` (with or without ``.csv``).
    clean : bool, optional
        Empty ``dist/`` before building.
    overwrite : str | None, optional
        Overwrite category: ``all``, ``page``, ``item`` or ``image``.
    session : aiohttp.ClientSession | None, optional
        HTTP session for image downloads. A session is opened and closed
        here when none is given.
    downloader_config : DownloaderConfig | None, optional
        Download limits; read from the environment and the project's
        ``.env`` by default.

    Returns
    -------
    BuildReport
        Per-file results, stage results and the number of image fetches.

    Raises
    ------
    ConfigurationError
        If ``root`` is not a project or no data file matches.
    UserInputError
        If ``overwrite`` is not a known category.
    RenderError
        If a template or an output file fails.
    BuildError
        If the alphabetical index or the asset copy failed.
    """
    project = load_project(Path(root))
    policy = OverwritePolicy(overwrite)
    paths = project.paths
    source_paths = collect_source_files(paths.csv_dir, selector)

    if clean:
        clean_output(paths.dist_dir)
    paths.upload_dir.mkdir(parents=True, exist_ok=True)
    paths.item_dir.mkdir(parents=True, exist_ok=True)

    hooks = load_hooks(paths.hooks_dir, paths.theme_dir)
    engine = RenderEngine(paths.theme_dir, hooks.helpers)
    contexts = ContextBuilder(project, engine)

    downloader: AssetDownloader | None = None
    if project.save_images:
        downloader = AssetDownloader(
            downloader_config or DownloaderConfig(paths.root),
            hooks.downloader,
            paths.upload_dir,
            lambda filename: project.public_url(project.upload_slug, filename),
            force=policy.forces(OVERWRITE_IMAGE),
        )

    item_builder = ItemBuilder(project, engine, contexts, hooks, policy, downloader)
    page_builder = PageBuilder(project, engine, contexts, policy)
    sitemap_builder = SitemapBuilder(project, engine, contexts, policy)

    owns_session = session is None
    if session is None:
        session = aiohttp.ClientSession()
    http = session

    async def records() -> Any:
        return await load_source_files(source_paths, project.delimiter)

    async def items(sources: Any) -> list[CollectionResult]:
        return await item_builder.build_all(http, sources)

    async def home(collections: list[CollectionResult]) -> Any:
        return page_builder.build_home(collections)

    async def pages(_home: Any) -> Any:
        return page_builder.build_pages()

    async def sitemap(_pages: Any) -> Any:
        return sitemap_builder.build_sitemap()

    async def robots(_sitemap: Any) -> Any:
        return page_builder.build_robots()

    async def alphabet(collections: list[CollectionResult]) -> Any:
        return sitemap_builder.build_alphabet_index(collections)

    async def assets(_collections: Any) -> Any:
        return await copy_theme_assets(paths.theme_dir, paths.dist_dir)

    graph = StageGraph()
    graph.add("records", records)
    graph.add("items", items, after=("records",))
    graph.add("home", home, after=("items",))
    graph.add("pages", pages, after=("home",))
    graph.add("sitemap", sitemap, after=("pages",))
    graph.add("robots", robots, after=("sitemap",))
    graph.add("alphabet", alphabet, after=("items",), isolated=True)
    graph.add("assets", assets, after=("items",), isolated=True)

    try:
        results = await graph.run()
    finally:
        if owns_session:
            await http.close()

    report = BuildReport(
        collections=results["items"],
        results=results,
        fetch_count=downloader.fetch_count if downloader is not None else 0,
    )
    logger.info(
        "Build finished: %d data files, %d items, %d image requests",
        len(report.collections),
        report.item_count,
        report.fetch_count,
    )
    return report


def run_build(root: Path, **options: Any) -> BuildReport:
    """Run :func:`build_site` to completion on a fresh event loop."""
    return asyncio.run(build_site(root, **options))


__all__ = ["BuildReport", "StageGraph", "build_site", "clean_output", "run_build"]
