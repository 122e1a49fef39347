"""Pull, push and check-updates commands."""

import logging
import socket
from datetime import UTC, datetime
from pathlib import Path

from ..exceptions import ConfigSyncError
from ..repositories import TrackingRegistry
from ..sync import ContentSynchronizer
from ..vcs import Collaborator
from .common import open_registry, report_failure
from .output import header, info, success

logger = logging.getLogger(__name__)


def default_commit_message() -> str:
    """Commit message naming this machine and the current time."""
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    return f"Sync from {socket.gethostname()} at {timestamp}"


def run_pull(root: Path, collaborator: Collaborator) -> int:
    """Pull the remote and restore tracked paths from it.

    Args:
        root: Engine root
        collaborator: Version-control collaborator for root

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        registry = open_registry(root)
        header("Pulling changes...")
        collaborator.pull()
        # The pull may have replaced config.json
        registry = open_registry(root)
    except (ConfigSyncError, OSError) as e:
        return report_failure("Pull", e)

    return _restore(registry)


def run_restore(registry: TrackingRegistry) -> int:
    """Restore tracked paths from the staging root without pulling."""
    return _restore(registry)


def _restore(registry: TrackingRegistry) -> int:
    header("Restoring tracked paths...")
    try:
        result = ContentSynchronizer(registry).restore()
    except (ConfigSyncError, OSError) as e:
        return report_failure("Restore", e)

    for identity in result.skipped:
        info(f"Skipped {identity}: not found in synced-files")
    success(f"Restored {result.restored_count} path(s)")
    return 0


def run_push(root: Path, collaborator: Collaborator, message: str | None = None) -> int:
    """Capture tracked paths, commit them and push.

    Args:
        root: Engine root
        collaborator: Version-control collaborator for root
        message: Commit message (default: hostname and timestamp)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        registry = open_registry(root)
        header("Capturing tracked paths...")
        result = ContentSynchronizer(registry).capture()
        success(f"Captured {result.captured_count} path(s)")

        header("Pushing changes...")
        collaborator.add()
        collaborator.commit(message or default_commit_message())
        collaborator.push()
    except (ConfigSyncError, OSError) as e:
        return report_failure("Push", e)

    success("Pushed")
    return 0


def run_check_updates(root: Path, collaborator: Collaborator) -> int:
    """Report whether the engine root is behind or ahead of its remote.

    Prints nothing when root is not initialized, has no origin, or is in
    sync with the remote.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not (root / TrackingRegistry.CONFIG_FILE).exists():
        logger.debug("No registry at %s, nothing to check", root)
        return 0

    try:
        if not collaborator.has_origin():
            logger.debug("No origin configured for %s", root)
            return 0
        unpulled = collaborator.has_unpulled_changes()
        unpushed = collaborator.has_unpushed_changes()
    except (ConfigSyncError, OSError) as e:
        return report_failure("Update check", e)

    if unpulled:
        info("Remote changes are available, run 'config-sync pull'")
    if unpushed:
        info("Local changes are not pushed, run 'config-sync push'")
    return 0
