"""Workspace-level services."""

from .workspace_cache import WorkspaceCache

__all__ = ["WorkspaceCache"]
