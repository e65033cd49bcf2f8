"""Hook capability sets for a build run.

A project may customize a build with three optional Python modules in its
``hooks/`` directory:

``build.py``
    ``pre(rows) -> rows`` applied to the rows of each data file before its
    items are built, ``each(row) -> row`` applied to every row before it is
    rendered, and ``post(rows) -> rows`` applied after the file is built.
``helpers.py``
    Public functions of the module become template helpers, overriding the
    built-in ones of the same name.
``downloader.py``
    ``pre(url) -> url`` applied to an image URL before it is fetched, and
    ``post(path)`` called with the local file once the image is saved. The
    post hook may return an awaitable, which is awaited.

The modules are loaded once by :func:`load_hooks` at the start of a run and
injected into the builders as a :class:`Hooks` bundle. Any function a module
does not define falls back to the identity default. Hooks are trusted code:
their exceptions are not caught.

Examples
--------
>>> from pathlib import Path
>>> hooks = load_hooks(Path("my-site/hooks"), Path("my-site/themes/default"))  # doctest: +SKIP
>>> hooks.build.each({"title": "A"})  # doctest: +SKIP
{'title': 'A'}
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

from tablesite.config import (
    BUILD_HOOKS_FILE,
    DOWNLOADER_HOOKS_FILE,
    HELPER_HOOKS_FILE,
)
from tablesite.exceptions import ConfigurationError

from .helpers import default_helpers

logger = logging.getLogger(__name__)

Row = dict[str, str]


def _identity(value: Any) -> Any:
    return value


async def _noop_post(path: Path) -> None:
    return None


@dataclass(frozen=True)
class BuildHooks:
    pre: Callable[[list[Row]], list[Row]] = _identity
    each: Callable[[Row], Row] = _identity
    post: Callable[[list[Row]], list[Row]] = _identity


@dataclass(frozen=True)
class DownloaderHooks:
    pre: Callable[[str], str] = _identity
    post: Callable[[Path], Any] = _noop_post

    async def after_download(self, path: Path) -> None:
        """Call the post hook and await its result when it is awaitable."""
        result = self.post(path)
        if inspect.isawaitable(result):
            await result


@dataclass(frozen=True)
class Hooks:
    """The three capability sets injected into a build."""

    build: BuildHooks = field(default_factory=BuildHooks)
    helpers: dict[str, Callable[..., Any]] = field(default_factory=dict)
    downloader: DownloaderHooks = field(default_factory=DownloaderHooks)


def load_module(path: Path, name: str) -> ModuleType:
    """Import a Python file as a module without touching ``sys.path``.

    Raises
    ------
    ConfigurationError
        If the file cannot be loaded as a module.
    """
    spec = importlib.util.spec_from_file_location(name, str(path))
    if spec is None or spec.loader is None:
        raise ConfigurationError(
            f"Cannot load hook module {path.name}", context={"path": str(path)}
        )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _callable_or(module: ModuleType, name: str, default: Callable[..., Any]) -> Callable[..., Any]:
    candidate = getattr(module, name, None)
    return candidate if callable(candidate) else default


def module_helpers(module: ModuleType) -> dict[str, Callable[..., Any]]:
    """Return the helper functions exported by a helpers module.

    ``__all__`` is honoured when present; otherwise every public function
    defined in the module itself (not imported into it) is exported.
    """
    names = getattr(module, "__all__", None)
    if names is not None:
        return {name: getattr(module, name) for name in names if callable(getattr(module, name, None))}
    return {
        name: obj
        for name, obj in vars(module).items()
        if not name.startswith("_")
        and inspect.isfunction(obj)
        and obj.__module__ == module.__name__
    }


def load_hooks(hooks_dir: Path, theme_dir: Path) -> Hooks:
    """Load the project's hook modules, falling back to the defaults.

    Parameters
    ----------
    hooks_dir : Path
        The project's ``hooks`` directory (may be missing).
    theme_dir : Path
        Theme directory, needed by the built-in ``include`` helper.

    Returns
    -------
    Hooks
        The capability sets for the run.
    """
    build = BuildHooks()
    downloader = DownloaderHooks()
    helpers = default_helpers(theme_dir)

    build_file = hooks_dir / BUILD_HOOKS_FILE
    if build_file.is_file():
        module = load_module(build_file, "tablesite_hooks_build")
        build = BuildHooks(
            pre=_callable_or(module, "pre", _identity),
            each=_callable_or(module, "each", _identity),
            post=_callable_or(module, "post", _identity),
        )
        logger.debug("Loaded build hooks from %s", build_file)

    helpers_file = hooks_dir / HELPER_HOOKS_FILE
    if helpers_file.is_file():
        module = load_module(helpers_file, "tablesite_hooks_helpers")
        custom = module_helpers(module)
        helpers.update(custom)
        logger.debug("Loaded %d template helpers from %s", len(custom), helpers_file)

    downloader_file = hooks_dir / DOWNLOADER_HOOKS_FILE
    if downloader_file.is_file():
        module = load_module(downloader_file, "tablesite_hooks_downloader")
        downloader = DownloaderHooks(
            pre=_callable_or(module, "pre", _identity),
            post=_callable_or(module, "post", _noop_post),
        )
        logger.debug("Loaded downloader hooks from %s", downloader_file)

    return Hooks(build=build, helpers=helpers, downloader=downloader)
