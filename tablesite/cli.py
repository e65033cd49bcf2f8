"""Command-line interface of tablesite.

Two commands are provided:

``tablesite build [csv] [--clean] [--overwrite all|page|item|image]``
    Build the site of the project in the current directory. ``csv`` limits
    the build to one data file of ``csv/``.
``tablesite new <name>``
    Create a new project directory from the bundled template.

The CLI is a thin layer: it parses arguments, configures logging, and
delegates to :func:`tablesite.pipeline.site_generator.run_build` and
:func:`tablesite.pipeline.scaffold.create_project`. Every expected failure
is an :class:`tablesite.exceptions.AppError`, printed in red and mapped to
exit status 1.

Examples
--------
>>> # In shell
>>> tablesite new "My Site" && cd my-site && tablesite build --overwrite page
"""

from __future__ import annotations

import argparse
import locale
import logging
import os
from pathlib import Path

from rich.console import Console

from tablesite import __version__
from tablesite.config import (
    LOG_DIR_NAME,
    LOG_FILENAME_BUILD,
    LOG_FORMAT,
    MSG_BUILD_HINT,
    MSG_BUILD_LOADING,
    MSG_DONE,
    MSG_SUCCEED_INIT,
    OVERWRITE_CHOICES,
)
from tablesite.exceptions import AppError
from tablesite.pipeline.scaffold import create_project
from tablesite.pipeline.site_generator import is_project_dir, run_build

logger = logging.getLogger(__name__)

console = Console()


def configure_logging(
    level: str = "INFO", enable_file: bool = True, log_dir: Path | None = None
) -> None:
    r"""Configure the root logger for a CLI run.

    A console handler is always installed. When ``enable_file`` is set and
    ``log_dir`` is given, records are also appended to
    ``<log_dir>/tablesite.log``; failing to open that file is not an error.

    Parameters
    ----------
    level : str, optional
        Logging level name, e.g. ``"DEBUG"`` or ``"WARNING"``.
    enable_file : bool, optional
        Whether to add the file handler.
    log_dir : Path | None, optional
        Directory of the log file, usually ``<project>/logs``.

    Examples
    --------
    >>> configure_logging("DEBUG", enable_file=False)
    """
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if enable_file and log_dir is not None:
        try:
            log_dir.mkdir(exist_ok=True)
            handlers.insert(0, logging.FileHandler(log_dir / LOG_FILENAME_BUILD, mode="a"))
        except OSError:
            # File logging is optional.
            pass
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tablesite", description="Generate a static site from CSV files."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level", type=str, default=os.environ.get("LOG_LEVEL", "WARNING")
    )
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Build the site of the current project.")
    build.add_argument("csv", nargs="?", default=None, help="Build only this data file.")
    build.add_argument(
        "--clean", action="store_true", help="Delete previous output before building."
    )
    build.add_argument(
        "--overwrite",
        choices=OVERWRITE_CHOICES,
        default=None,
        help="Regenerate this category of output even when it exists.",
    )

    new = commands.add_parser("new", help="Create a new project.")
    new.add_argument("name", nargs="?", default=None, help="Project name.")
    return parser


def file_logging_enabled() -> bool:
    return not bool(
        os.environ.get("DISABLE_FILE_LOGS") or os.environ.get("PYTEST_CURRENT_TEST")
    )


def run_build_command(args: argparse.Namespace, cwd: Path) -> int:
    """Build the project in ``cwd`` behind a spinner."""
    with console.status(MSG_BUILD_LOADING):
        report = run_build(
            cwd, selector=args.csv, clean=args.clean, overwrite=args.overwrite
        )
    console.print(
        f"{report.item_count} items from {len(report.collections)} data files, "
        f"{report.fetch_count} image requests."
    )
    console.print(MSG_DONE, style="green")
    return 0


def run_new_command(args: argparse.Namespace, cwd: Path) -> int:
    target = create_project(args.name, cwd)
    console.print(MSG_SUCCEED_INIT, style="green")
    console.print(MSG_BUILD_HINT)
    console.print(f"  cd {target.name}", markup=False)
    console.print("  tablesite build", markup=False)
    return 0


def main(argv: list[str] | None = None, cwd: Path | None = None) -> int:
    """Run the CLI and return its exit status.

    Parameters
    ----------
    argv : list[str] | None, optional
        Arguments without the program name; ``sys.argv[1:]`` by default.
    cwd : Path | None, optional
        Working directory of the command; the process's by default.
    """
    args = build_parser().parse_args(argv)
    cwd = Path(cwd) if cwd is not None else Path.cwd()
    in_project = args.command == "build" and is_project_dir(cwd)
    configure_logging(
        args.log_level,
        enable_file=in_project and file_logging_enabled(),
        log_dir=cwd / LOG_DIR_NAME,
    )
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.debug("Using the default collation locale")

    try:
        if args.command == "build":
            return run_build_command(args, cwd)
        return run_new_command(args, cwd)
    except AppError as error:
        logger.debug("Command failed: %s", error.to_dict())
        console.print(error.message, style="red", markup=False)
        return 1
    except KeyboardInterrupt:
        console.print("Interrupted.", style="yellow")
        return 130


__all__ = ["build_parser", "configure_logging", "main"]
