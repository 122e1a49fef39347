"""Track, untrack and list commands."""

import logging
from pathlib import Path

from ..exceptions import ConfigSyncError
from ..models import TrackResult
from .common import open_registry, report_failure
from .output import header, info, success

logger = logging.getLogger(__name__)


def run_track(root: Path, paths: list[str]) -> int:
    """Start tracking paths.

    Args:
        root: Engine root
        paths: Paths to track (absolute, relative or ~/ prefixed)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        registry = open_registry(root)
        result = registry.track(paths)
    except (ConfigSyncError, OSError) as e:
        return report_failure("Track", e)

    _report(result, "Tracking")
    return 0


def run_untrack(root: Path, paths: list[str]) -> int:
    """Stop tracking paths.

    Args:
        root: Engine root
        paths: Paths to untrack

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        registry = open_registry(root)
        result = registry.untrack(paths)
    except (ConfigSyncError, OSError) as e:
        return report_failure("Untrack", e)

    _report(result, "Untracked")
    return 0


def run_list(root: Path) -> int:
    """Print tracked paths.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        registry = open_registry(root)
    except (ConfigSyncError, OSError) as e:
        return report_failure("List", e)

    entries = registry.entries()
    if not entries:
        info("No tracked paths")
        return 0

    header(f"Tracked paths ({len(entries)}):")
    for entry in entries:
        print(f"  - {entry.identity} ({entry.label})")
    return 0


def _report(result: TrackResult, verb: str) -> None:
    for identity in result.changed:
        success(f"{verb}: {identity}")
    for reason in result.skipped:
        info(f"Skipped {reason}")
