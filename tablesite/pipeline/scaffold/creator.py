"""Create a project directory from the bundled template tree."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from tablesite.config import (
    CSV_DIR_NAME,
    DIST_DIR_NAME,
    HOOKS_DIR_NAME,
    MSG_FOLDER_ALREADY_EXISTS,
    MSG_FOLDER_ALREADY_INIT,
    MSG_PROJECT_NAME_UNAVAILABLE,
    PAGES_DIR_NAME,
    PROJECT_TEMPLATE_DIR,
)
from tablesite.exceptions import UserInputError

from ..site_generator.project import is_project_dir
from ..site_generator.templating import slugify

logger = logging.getLogger(__name__)


def project_dir_name(name: str | None) -> str:
    """Return the directory name for a project called ``name``.

    Raises
    ------
    UserInputError
        If the name is missing or slugifies to nothing.

    Examples
    --------
    >>> project_dir_name("My Site")
    'my-site'
    """
    slug = slugify(name or "")
    if not slug:
        raise UserInputError(MSG_PROJECT_NAME_UNAVAILABLE)
    return slug


def create_project(
    name: str | None, cwd: Path, template_dir: Path = PROJECT_TEMPLATE_DIR
) -> Path:
    """Scaffold a new project under ``cwd`` and return its root.

    Parameters
    ----------
    name : str | None
        Project name; the directory is named after its slug.
    cwd : Path
        Directory the project is created in.
    template_dir : Path, optional
        Template tree to copy; the one shipped with the package by default.

    Returns
    -------
    Path
        Root of the new project.

    Raises
    ------
    UserInputError
        If the name is empty, the target directory exists, or ``cwd`` is
        itself an initialized project.
    """
    dir_name = project_dir_name(name)
    cwd = Path(cwd)
    target = cwd / dir_name
    if target.exists():
        raise UserInputError(f"'{dir_name}' {MSG_FOLDER_ALREADY_EXISTS}", context={"path": str(target)})
    if is_project_dir(cwd, require_all=True):
        raise UserInputError(MSG_FOLDER_ALREADY_INIT, context={"cwd": str(cwd)})

    shutil.copytree(
        template_dir, target, ignore=shutil.ignore_patterns("__pycache__", "*.pyc")
    )
    for folder in (CSV_DIR_NAME, DIST_DIR_NAME, HOOKS_DIR_NAME, PAGES_DIR_NAME):
        (target / folder).mkdir(exist_ok=True)
    logger.info("Created project at %s", target)
    return target
