"""Project scaffolding.

Creates a new project directory from the template bundled with the package.
"""

from .creator import create_project, project_dir_name

__all__ = ["create_project", "project_dir_name"]
