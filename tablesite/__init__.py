"""Tablesite static-site generator package.

This package turns rows of tabular data (CSV files) into a static website by
merging them with a project configuration and a theme of Jinja templates.
Rebuilds are incremental: artifacts that already exist on disk are left
alone unless an overwrite category is requested.

Package Structure
-----------------
- `pipeline/site_generator/`:
    Headless build pipeline: record loading, render contexts, asset
    downloads, item/page/sitemap builders and the stage graph that drives
    them.
- `pipeline/scaffold/`:
    Creation of a new project directory from the bundled template tree.
- `cli.py`: Command-line entrypoint (`build` and `new`) and logging setup.
- `config.py`: Configuration constants (file names, messages, defaults), as UPPER_SNAKE_CASE.
- `exceptions.py`: Project-specific exception classes.

Examples
--------
>>> import tablesite
>>> tablesite.__version__
'0.3.0'
"""

__version__ = "0.3.0"
