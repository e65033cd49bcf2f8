"""Project configuration loader for the site generator.

This module reads ``project.json`` from a project root and exposes it as an
immutable :class:`Project` together with the resolved directory layout
(:class:`ProjectPaths`) and the overwrite policy chosen for a run
(:class:`OverwritePolicy`).

Role in Architecture
--------------------
- Forms the boundary between the operator's project directory and the
  pipeline's typed runtime configuration.
- Loaded once at the start of a run; every builder reads from it and none
  writes to it.
- No rendering or file output: only loading, structuring and validation.

Examples
--------
>>> from pathlib import Path
>>> from tablesite.pipeline.site_generator.project import load_project
>>> project = load_project(Path("my-site"))  # doctest: +SKIP
>>> project.paths.item_dir.name  # doctest: +SKIP
'item'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from tablesite.config import (
    CSV_DIR_NAME,
    DEFAULT_CSV_DELIMITER,
    DEFAULT_IMAGE_COLUMN,
    DEFAULT_ITEM_SLUG,
    DEFAULT_SITEMAP_SLUG,
    DEFAULT_THEME,
    DEFAULT_UPLOAD_SLUG,
    DIST_DIR_NAME,
    HOOKS_DIR_NAME,
    MSG_INVALID_PROJECT_FILE,
    MSG_NOT_IN_PROJECT_FOLDER,
    OVERWRITE_ALL,
    OVERWRITE_CHOICES,
    PAGES_DIR_NAME,
    PROJECT_FILE,
    PROJECT_MARKERS,
    THEMES_DIR_NAME,
)
from tablesite.exceptions import ConfigurationError, UserInputError


@dataclass(frozen=True)
class ProjectPaths:
    """Resolved directory layout of one project.

    Attributes
    ----------
    root : Path
        Project root (the directory holding ``project.json``).
    csv_dir, dist_dir, hooks_dir, pages_dir, theme_dir : Path
        Input and output directories of the standard layout.
    upload_dir : Path
        ``dist/<settings.slug.upload>``, target of downloaded images.
    item_dir : Path
        ``dist/<settings.slug.item>``, target of item pages.
    index_dir : Path
        ``dist/<settings.slug.sitemap>``, target of the alphabetical index pages.
    """

    root: Path
    csv_dir: Path
    dist_dir: Path
    hooks_dir: Path
    pages_dir: Path
    theme_dir: Path
    upload_dir: Path
    item_dir: Path
    index_dir: Path


@dataclass(frozen=True)
class Project:
    """Immutable view of ``project.json`` for one build run.

    Attributes
    ----------
    site : Mapping[str, Any]
        Site identity; ``site['url']`` is the public base URL.
    meta : Mapping[str, Any]
        Metadata templates keyed by artifact kind (``home``, ``item``,
        ``pages``, ``sitemap``).
    settings : Mapping[str, Any]
        Build settings (theme, output slugs, data options, feature flags).
    paths : ProjectPaths
        Resolved directory layout.
    """

    site: Mapping[str, Any]
    meta: Mapping[str, Any]
    settings: Mapping[str, Any]
    paths: ProjectPaths

    @property
    def site_url(self) -> str:
        return str(self.site.get("url", "")).rstrip("/")

    @property
    def theme(self) -> str:
        return str(self.settings.get("theme", DEFAULT_THEME))

    @property
    def upload_slug(self) -> str:
        return str(self._slugs.get("upload", DEFAULT_UPLOAD_SLUG))

    @property
    def item_slug(self) -> str:
        return str(self._slugs.get("item", DEFAULT_ITEM_SLUG))

    @property
    def sitemap_slug(self) -> str:
        return str(self._slugs.get("sitemap", DEFAULT_SITEMAP_SLUG))

    @property
    def multiple(self) -> bool:
        return bool(self._data.get("multiple", True))

    @property
    def image_column(self) -> str:
        return str(self._data.get("imgcolumn", DEFAULT_IMAGE_COLUMN))

    @property
    def save_images(self) -> bool:
        return bool(self._data.get("saveimg", False))

    @property
    def delimiter(self) -> str:
        return str(self._data.get("delimiter", DEFAULT_CSV_DELIMITER))

    @property
    def sitemap_enabled(self) -> bool:
        return bool(self.settings.get("sitemap", True))

    @property
    def robots_enabled(self) -> bool:
        return bool(self.settings.get("robots", True))

    @property
    def page_names(self) -> list[str]:
        """Names of the static pages allowed by ``meta.pages``, in ``project.json`` order."""
        return list(self.meta.get("pages", {}) or {})

    def page_meta(self, name: str) -> dict[str, Any]:
        return dict((self.meta.get("pages", {}) or {}).get(name) or {})

    def public_url(self, *segments: str) -> str:
        """Join the site base URL with path segments.

        Examples
        --------
        >>> project.public_url("uploads", "a.png")  # doctest: +SKIP
        'https://example.com/uploads/a.png'
        """
        parts = [self.site_url] + [str(s).strip("/") for s in segments if s]
        return "/".join(parts)

    @property
    def _slugs(self) -> Mapping[str, Any]:
        return self.settings.get("slug", {}) or {}

    @property
    def _data(self) -> Mapping[str, Any]:
        return self.settings.get("data", {}) or {}


@dataclass(frozen=True)
class OverwritePolicy:
    """Category-scoped force-rebuild policy of a run.

    ``category`` is ``None`` for a fully incremental build, otherwise one of
    ``all``, ``page``, ``item`` or ``image``. ``all`` forces every category.

    Examples
    --------
    >>> OverwritePolicy("image").forces("image")
    True
    >>> OverwritePolicy("image").forces("page")
    False
    >>> OverwritePolicy("all").forces("item")
    True
    >>> OverwritePolicy().forces("page")
    False
    """

    category: str | None = None

    def __post_init__(self) -> None:
        if self.category is not None and self.category not in OVERWRITE_CHOICES:
            raise UserInputError(
                f"Unknown overwrite category '{self.category}'.",
                context={"choices": list(OVERWRITE_CHOICES)},
            )

    def forces(self, *categories: str) -> bool:
        """Return True when any of ``categories`` (or ``all``) is being forced."""
        if self.category is None:
            return False
        return self.category == OVERWRITE_ALL or self.category in categories

    def should_write(self, destination: Path, *categories: str) -> bool:
        """Return True when ``destination`` is missing or its category is forced."""
        return not destination.is_file() or self.forces(*categories)


def is_project_dir(path: Path, *, require_all: bool = False) -> bool:
    """Return whether ``path`` looks like a project root.

    Parameters
    ----------
    path : Path
        Candidate project root.
    require_all : bool, optional
        When True every project marker must be present; otherwise a single
        marker is enough.

    Returns
    -------
    bool
        Whether the markers were found.
    """
    found = [(path / marker).exists() for marker in PROJECT_MARKERS]
    return all(found) if require_all else any(found)


def resolve_paths(root: Path, settings: Mapping[str, Any]) -> ProjectPaths:
    slugs = settings.get("slug", {}) or {}
    dist_dir = root / DIST_DIR_NAME
    return ProjectPaths(
        root=root,
        csv_dir=root / CSV_DIR_NAME,
        dist_dir=dist_dir,
        hooks_dir=root / HOOKS_DIR_NAME,
        pages_dir=root / PAGES_DIR_NAME,
        theme_dir=root / THEMES_DIR_NAME / str(settings.get("theme", DEFAULT_THEME)),
        upload_dir=dist_dir / str(slugs.get("upload", DEFAULT_UPLOAD_SLUG)),
        item_dir=dist_dir / str(slugs.get("item", DEFAULT_ITEM_SLUG)),
        index_dir=dist_dir / str(slugs.get("sitemap", DEFAULT_SITEMAP_SLUG)),
    )


def load_project(root: Path) -> Project:
    """Load and validate ``project.json`` from ``root``.

    Parameters
    ----------
    root : Path
        Project root directory.

    Returns
    -------
    Project
        The immutable project configuration.

    Raises
    ------
    ConfigurationError
        If ``root`` carries none of the project markers, or if
        ``project.json`` is missing, unreadable, not a JSON object, or lacks
        a ``site`` section.

    Examples
    --------
    >>> load_project(Path("/tmp/not-a-project"))  # doctest: +SKIP
    Traceback (most recent call last):
    ...
    tablesite.exceptions.ConfigurationError: CONFIGURATION_ERROR: This is not a project folder...
    """
    root = Path(root)
    if not is_project_dir(root):
        raise ConfigurationError(MSG_NOT_IN_PROJECT_FOLDER, context={"root": str(root)})
    project_file = root / PROJECT_FILE
    try:
        raw = json.loads(project_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise ConfigurationError(
            MSG_INVALID_PROJECT_FILE,
            context={"path": str(project_file), "reason": str(error)},
        ) from error
    if not isinstance(raw, dict) or not isinstance(raw.get("site"), dict):
        raise ConfigurationError(
            MSG_INVALID_PROJECT_FILE, context={"path": str(project_file)}
        )
    settings = raw.get("settings") or {}
    return Project(
        site=raw["site"],
        meta=raw.get("meta") or {},
        settings=settings,
        paths=resolve_paths(root, settings),
    )
