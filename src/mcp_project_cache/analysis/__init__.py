"""Project structure analysis."""

from .outline import OutlineOptions, ProjectOutline, ProjectOutlineGenerator

__all__ = ["OutlineOptions", "ProjectOutline", "ProjectOutlineGenerator"]
