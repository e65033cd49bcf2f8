"""Site generator pipeline.

Summary
-------
Provides the import surface of the build pipeline: loading a project and
its data files, rendering item, home, static and index pages through one
Jinja2 engine per run, downloading item images, and driving the stages of a
run through :class:`StageGraph`.

System Boundaries
-----------------
- No console output: progress is reported through ``logging`` and the
  returned :class:`BuildReport`; the CLI owns the terminal.
- All business logic lives in the submodules; this initializer only
  re-exports it.

Usage
-----
    >>> from tablesite.pipeline.site_generator import run_build
    >>> report = run_build("my-site")  # doctest: +SKIP
"""

from .items import CollectionResult, ItemBuilder, ItemState
from .project import OverwritePolicy, Project, ProjectPaths, is_project_dir, load_project
from .records import SourceFile, collect_source_files, load_source_files, read_rows
from .output import minify_markup, minify_output
from .runner import BuildReport, StageGraph, build_site, clean_output, run_build
from .sitemap import SitemapEntry, bucket_for, partition_items
from .templating import ContextBuilder, RenderEngine, slugify

__all__ = [
    "BuildReport",
    "CollectionResult",
    "ContextBuilder",
    "ItemBuilder",
    "ItemState",
    "OverwritePolicy",
    "Project",
    "ProjectPaths",
    "RenderEngine",
    "SitemapEntry",
    "SourceFile",
    "StageGraph",
    "bucket_for",
    "build_site",
    "clean_output",
    "collect_source_files",
    "is_project_dir",
    "load_project",
    "load_source_files",
    "minify_markup",
    "minify_output",
    "partition_items",
    "read_rows",
    "run_build",
    "slugify",
]
