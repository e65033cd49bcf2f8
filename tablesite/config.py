"""Global configuration constants for the project.

Defines file names, directory names, defaults and console messages used
across the build pipeline, the scaffolder and the CLI.
"""

from __future__ import annotations

from pathlib import Path

# Package directories
PACKAGE_ROOT: Path = Path(__file__).resolve().parent
PROJECT_TEMPLATE_DIR: Path = PACKAGE_ROOT / "templates" / "project"

# Project layout (relative to the project root)
PROJECT_FILE: str = "project.json"
CSV_DIR_NAME: str = "csv"
DIST_DIR_NAME: str = "dist"
HOOKS_DIR_NAME: str = "hooks"
PAGES_DIR_NAME: str = "pages"
THEMES_DIR_NAME: str = "themes"
LOG_DIR_NAME: str = "logs"
PROJECT_MARKERS: tuple[str, ...] = (
    PROJECT_FILE,
    CSV_DIR_NAME,
    DIST_DIR_NAME,
    HOOKS_DIR_NAME,
    PAGES_DIR_NAME,
    THEMES_DIR_NAME,
)

# Data files
CSV_EXTENSION: str = ".csv"
DEFAULT_CSV_DELIMITER: str = ","

# Hook modules looked up in the project's hooks directory
BUILD_HOOKS_FILE: str = "build.py"
HELPER_HOOKS_FILE: str = "helpers.py"
DOWNLOADER_HOOKS_FILE: str = "downloader.py"

# Theme templates
HOME_TEMPLATE: str = "home.html"
ITEM_TEMPLATE: str = "item.html"
PAGE_TEMPLATE: str = "page.html"
SITEMAP_TEMPLATE: str = "sitemap.xml"
SITEMAP_STYLESHEET: str = "sitemap.xsl"
ROBOTS_TEMPLATE: str = "robots.txt"
ALPHABET_TEMPLATE: str = "alphabet.html"
THEME_ASSETS_DIR: str = "assets"
PAGE_SOURCE_EXTENSION: str = ".html"

# Generated artifacts (relative to dist/)
HOME_OUTPUT: str = "index.html"
SITEMAP_OUTPUT: str = "sitemap.xml"
SITEMAP_STYLESHEET_OUTPUT: str = "sitemap.xsl"
ROBOTS_OUTPUT: str = "robots.txt"
ASSETS_OUTPUT: str = "assets"
HTML_EXTENSION: str = ".html"

# Settings defaults for project.json
DEFAULT_THEME: str = "default"
DEFAULT_UPLOAD_SLUG: str = "uploads"
DEFAULT_ITEM_SLUG: str = "item"
DEFAULT_SITEMAP_SLUG: str = "sitemap"
DEFAULT_IMAGE_COLUMN: str = "image"

# Aggregated item pages
UNTITLED_ITEM_TITLE: str = "Untitled"

# Alphabetical index buckets
NUMERIC_BUCKET: str = "numeric"
ALPHABET_BUCKETS: tuple[str, ...] = tuple("abcdefghijklmnopqrstuvwxyz") + (
    NUMERIC_BUCKET,
)
SITEMAP_DATE_FORMAT: str = "%Y-%m-%d"

# Overwrite categories accepted by `build --overwrite`
OVERWRITE_ALL: str = "all"
OVERWRITE_PAGE: str = "page"
OVERWRITE_ITEM: str = "item"
OVERWRITE_IMAGE: str = "image"
OVERWRITE_CHOICES: tuple[str, ...] = (
    OVERWRITE_ALL,
    OVERWRITE_PAGE,
    OVERWRITE_ITEM,
    OVERWRITE_IMAGE,
)

# Downloader defaults (overridable through the environment)
DEFAULT_MAX_CONCURRENT_DOWNLOADS: int = 8
DEFAULT_TARGET_RPM: int = 600
DEFAULT_MAX_RETRIES: int = 2
DEFAULT_BACKOFF_FACTOR: float = 2.0
DEFAULT_REQUEST_TIMEOUT: int = 60
DEFAULT_RETRY_SLEEP_ON_429: int = 5

# CLI defaults and logging
LOG_FILENAME_BUILD: str = "tablesite.log"
LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Console messages
MSG_NOT_IN_PROJECT_FOLDER: str = (
    "This is not a project folder, run `tablesite new <name>` first."
)
MSG_INVALID_CSV_FILE: str = "CSV file not found in the csv directory."
MSG_NO_CSV_FILE: str = "No CSV file found in the csv directory."
MSG_INVALID_PROJECT_FILE: str = "project.json is missing or is not valid JSON."
MSG_PROJECT_NAME_UNAVAILABLE: str = "Please provide a project name."
MSG_FOLDER_ALREADY_EXISTS: str = "folder already exists."
MSG_FOLDER_ALREADY_INIT: str = "This folder is already an initialized project."
MSG_BUILD_LOADING: str = "Building site"
MSG_SUCCEED_INIT: str = "Project created."
MSG_BUILD_HINT: str = "To build your site, type:"
MSG_DONE: str = "Done."
