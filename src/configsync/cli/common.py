"""Helpers shared by the CLI commands."""

import logging
from pathlib import Path

from ..exceptions import ConfigSyncError
from ..repositories import TrackingRegistry
from ..vcs import Collaborator, GitCollaborator
from .output import error

logger = logging.getLogger(__name__)


def open_registry(root: Path) -> TrackingRegistry:
    """Create and initialize the registry for root."""
    registry = TrackingRegistry()
    registry.initialize(root)
    return registry


def default_collaborator(root: Path, branch: str = "main", remote: str = "origin") -> Collaborator:
    """Build the git collaborator for root."""
    return GitCollaborator(root, branch=branch, remote=remote)


def report_failure(action: str, exc: Exception) -> int:
    """Print a failure and return the exit code for it."""
    logger.debug("%s failed", action, exc_info=exc)
    if isinstance(exc, ConfigSyncError):
        error(f"{action} failed: {exc}")
    else:
        error(f"{action} failed: {type(exc).__name__}: {exc}")
    return 1
