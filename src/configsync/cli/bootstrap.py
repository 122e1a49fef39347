"""Commands that set up the engine root and its remote."""

import logging
from pathlib import Path

from ..exceptions import ConfigSyncError
from ..utils.paths import collapse_to_tilde
from ..vcs import Collaborator
from .common import open_registry, report_failure
from .output import header, info, success
from .sync import run_restore

logger = logging.getLogger(__name__)


def run_init(root: Path, collaborator: Collaborator) -> int:
    """Create the registry and repository in root.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        open_registry(root)
        collaborator.init()
    except (ConfigSyncError, OSError) as e:
        return report_failure("Init", e)

    success(f"Initialized config-sync in {collapse_to_tilde(str(root))}")
    info("Run 'config-sync set-origin-repo <url>' to configure a remote")
    return 0


def run_init_from(root: Path, collaborator: Collaborator, url: str) -> int:
    """Clone an existing config-sync repository and restore from it.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        header(f"Cloning {url}...")
        collaborator.clone(url)
        registry = open_registry(root)
    except (ConfigSyncError, OSError) as e:
        return report_failure("Init", e)

    success(f"Cloned into {collapse_to_tilde(str(root))}")
    return run_restore(registry)


def run_set_origin(collaborator: Collaborator, url: str, force: bool = False) -> int:
    """Configure the origin remote.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        collaborator.set_origin(url, force=force)
    except (ConfigSyncError, OSError) as e:
        return report_failure("Set origin", e)

    success(f"Origin set to {url}")
    return 0
