"""Copy the theme's static assets into the output directory."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from tablesite.config import ASSETS_OUTPUT, THEME_ASSETS_DIR

from .output import MINIFIERS, minify_output

logger = logging.getLogger(__name__)


def copy_tree(source_dir: Path, target_dir: Path) -> int:
    """Mirror ``source_dir`` into ``target_dir`` and return the file count.

    Stylesheets, scripts and HTML files are minified on the way; every other
    file is copied byte for byte.
    """
    copied = 0
    for current, _dirs, files in os.walk(source_dir):
        relative = Path(current).relative_to(source_dir)
        destination_dir = target_dir / relative
        destination_dir.mkdir(parents=True, exist_ok=True)
        for name in sorted(files):
            source = Path(current) / name
            destination = destination_dir / name
            if source.suffix.lower() in MINIFIERS:
                text = source.read_text(encoding="utf-8")
                destination.write_text(minify_output(text, source.suffix), encoding="utf-8")
            else:
                shutil.copy2(source, destination)
            copied += 1
    return copied


async def copy_theme_assets(theme_dir: Path, dist_dir: Path) -> Path | None:
    """Copy ``<theme>/assets`` to ``dist/assets`` off the event loop.

    Returns the target directory, or ``None`` when the theme has no assets.
    """
    source_dir = Path(theme_dir) / THEME_ASSETS_DIR
    if not source_dir.is_dir():
        return None
    target_dir = Path(dist_dir) / ASSETS_OUTPUT
    count = await asyncio.to_thread(copy_tree, source_dir, target_dir)
    logger.info("Copied %d theme assets", count)
    return target_dir
