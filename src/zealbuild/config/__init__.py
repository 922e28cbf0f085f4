"""Configuration parsing modules for Zealbuild."""

from .project_config import CONFIG_FILE_NAME, ProjectConfig, ProjectConfigError

__all__ = [
    "CONFIG_FILE_NAME",
    "ProjectConfig",
    "ProjectConfigError",
]
