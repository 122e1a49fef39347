"""Content synchronizer for tracked paths.

This module provides the ContentSynchronizer class which handles:
- Capture: copy every tracked path into its storage slot
- Restore: copy every stored slot back onto its original location

Capture builds a fresh staging root next to synced-files and swaps it in
with a rename once every entry has been copied.

Restore overlays stored content onto each destination: files present in the
slot overwrite their local counterparts, files that exist only locally are
kept, and a destination is only removed when its type (file vs. directory)
differs from the stored one. Before anything is written, every existing
destination is backed up under the engine root; if an entry fails, the
destinations already written are put back from those backups.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..exceptions import EntryCopyError, SourceMissingError
from ..models import CaptureResult, RestoreResult, TrackedEntry
from .lock import RootLock
from .slots import plan_slots, slot_path

if TYPE_CHECKING:
    from ..repositories.registry import TrackingRegistry

logger = logging.getLogger(__name__)

# Temporary directories created under the engine root start with these prefixes
STAGING_PREFIX = ".synced-files-"
RESTORE_PREFIX = ".config-sync-restore-"


def copy_entry(source: Path, target: Path) -> None:
    """Copy a file or directory tree to a new target.

    Directories are copied recursively with symlinks inside the tree kept
    as links. Permissions and timestamps are preserved where the platform
    allows it. Parent directories of target are created.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, target, symlinks=True)
    else:
        shutil.copy2(source, target)


def overlay_entry(source: Path, target: Path) -> None:
    """Copy source onto target, keeping whatever target has that source lacks.

    Files are written through an existing symlink at target. Anything at
    target whose type differs from source, and files that cannot be
    written in place, are removed first.
    """
    if source.is_symlink():
        if os.path.lexists(target):
            remove_entry(target)
        os.symlink(os.readlink(source), target)
    elif source.is_dir():
        if os.path.lexists(target) and not target.is_dir():
            remove_entry(target)
        target.mkdir(parents=True, exist_ok=True)
        for child in source.iterdir():
            overlay_entry(child, target / child.name)
        shutil.copystat(source, target)
    else:
        if os.path.lexists(target) and (target.is_dir() or not os.access(target, os.W_OK)):
            remove_entry(target)
        shutil.copy2(source, target)


def remove_entry(path: Path) -> None:
    """Remove a file, symlink or directory tree. Links are never followed."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif os.path.lexists(path):
        path.unlink()


def _remove_tree(path: Path) -> None:
    """Remove a temporary directory, logging instead of failing."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary directory %s: %s", path, e)


def _type_differs(destination: Path, stored: Path) -> bool:
    # A dangling link has no type to keep
    if not destination.exists():
        return True
    return destination.is_dir() != stored.is_dir()


@dataclass
class _PendingRestore:
    """One stored entry and what its destination held before restore."""

    identity: str
    stored: Path
    destination: Path
    backup: Path
    existed: bool = False
    link_target: str | None = None
    replaced: bool = False

    def snapshot(self) -> None:
        """Back up the current destination so apply() can be undone."""
        if not os.path.lexists(self.destination):
            return
        self.existed = True
        if self.destination.is_symlink():
            self.link_target = os.readlink(self.destination)
        if self.destination.exists():
            copy_entry(Path(os.path.realpath(self.destination)), self.backup)

    def apply(self) -> None:
        """Overlay the stored entry onto the destination."""
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        if os.path.lexists(self.destination) and _type_differs(self.destination, self.stored):
            self.replaced = True
            remove_entry(self.destination)
        overlay_entry(self.stored, self.destination)

    def rollback(self) -> None:
        """Put the destination back the way snapshot() found it."""
        if not self.existed:
            remove_entry(self.destination)
            return
        if self.link_target is not None and self.replaced:
            remove_entry(self.destination)
            os.symlink(self.link_target, self.destination)
            return
        current = Path(os.path.realpath(self.destination))
        remove_entry(current)
        copy_entry(self.backup, current)


class ContentSynchronizer:
    """Copies tracked entries between their locations and the staging root.

    Layout:
        {root}/synced-files/{md5(identity)}/{basename}

    Each pass holds the root lock for its whole duration and works from the
    registry as it is on disk once the lock is taken.
    """

    def __init__(self, registry: TrackingRegistry) -> None:
        """Initialize the synchronizer.

        Args:
            registry: Initialized tracking registry
        """
        self._registry = registry

    # --- Capture ---

    def capture(self) -> CaptureResult:
        """Copy every tracked path into a freshly rebuilt staging root.

        Returns:
            CaptureResult listing the captured identities

        Raises:
            NotInitializedError: If the registry is not initialized
            HashCollisionError: If two identities share a slot
            SourceMissingError: If a tracked path no longer exists
            EntryCopyError: If copying an entry fails
        """
        root = self._registry.root
        staging_root = self._registry.staging_root
        result = CaptureResult()

        with RootLock(root):
            self._registry.reload()
            plan = plan_slots(self._registry.entries())
            work = Path(tempfile.mkdtemp(dir=root, prefix=STAGING_PREFIX))
            try:
                for entry in plan.values():
                    self._capture_entry(entry, slot_path(work, entry.identity))
                    result.captured.append(entry.identity)
                self._swap_staging_root(work, staging_root)
            except BaseException:
                _remove_tree(work)
                raise

        logger.info("Captured %d tracked path(s) into %s", result.captured_count, staging_root)
        return result

    def _capture_entry(self, entry: TrackedEntry, slot: Path) -> None:
        source = entry.path
        if not os.path.exists(source.full_path):
            raise SourceMissingError(entry.identity)

        target = slot / source.name
        try:
            copy_entry(source.path, target)
        except OSError as e:
            raise EntryCopyError(entry.identity, f"failed to copy into {slot.name}: {e}") from e

        kind = "directory" if source.path.is_dir() else "file"
        logger.debug("Synced %s: %s -> %s/%s", kind, entry.identity, slot.name, source.name)

    def _swap_staging_root(self, work: Path, staging_root: Path) -> None:
        """Replace staging_root with work, discarding the old contents."""
        retired_parent: Path | None = None
        if staging_root.exists():
            retired_parent = Path(tempfile.mkdtemp(dir=staging_root.parent, prefix=STAGING_PREFIX))
            os.rename(staging_root, retired_parent / staging_root.name)
        try:
            os.rename(work, staging_root)
        except OSError:
            if retired_parent is not None:
                os.rename(retired_parent / staging_root.name, staging_root)
                _remove_tree(retired_parent)
            raise
        if retired_parent is not None:
            _remove_tree(retired_parent)

    # --- Restore ---

    def restore(self) -> RestoreResult:
        """Copy every stored slot back onto its original location.

        Entries without a slot are skipped and reported. Entries are applied
        in identity order, so a tracked directory is written before paths
        tracked inside it.

        Returns:
            RestoreResult listing restored and skipped identities

        Raises:
            NotInitializedError: If the registry is not initialized
            HashCollisionError: If two identities share a slot
            EntryCopyError: If a slot is malformed or writing an entry fails
        """
        root = self._registry.root
        staging_root = self._registry.staging_root
        result = RestoreResult()

        with RootLock(root):
            self._registry.reload()
            plan = plan_slots(self._registry.entries())
            pending: list[_PendingRestore] = []
            workdir = Path(tempfile.mkdtemp(dir=root, prefix=RESTORE_PREFIX))
            try:
                for name, entry in plan.items():
                    slot = slot_path(staging_root, entry.identity)
                    if not slot.is_dir():
                        logger.info("Skipping %s: not found in synced-files", entry.identity)
                        result.skipped.append(entry.identity)
                        continue
                    pending.append(self._prepare_restore(entry, slot, workdir / name))
                self._apply_restores(pending)
            finally:
                _remove_tree(workdir)

        result.restored = [item.identity for item in pending]
        logger.info("Restored %d tracked path(s)", result.restored_count)
        return result

    def _prepare_restore(self, entry: TrackedEntry, slot: Path, backup_dir: Path) -> _PendingRestore:
        children = list(slot.iterdir())
        if len(children) != 1:
            raise EntryCopyError(
                entry.identity,
                f"expected one stored entry in slot {slot.name}, found {len(children)}",
            )
        destination = entry.path.path
        item = _PendingRestore(
            identity=entry.identity,
            stored=children[0],
            destination=destination,
            backup=backup_dir / destination.name,
        )
        try:
            item.snapshot()
        except OSError as e:
            raise EntryCopyError(entry.identity, f"failed to back up {destination}: {e}") from e
        return item

    def _apply_restores(self, pending: list[_PendingRestore]) -> None:
        """Apply every entry, or undo the ones already applied."""
        applied: list[_PendingRestore] = []
        for item in pending:
            applied.append(item)
            try:
                item.apply()
            except OSError as e:
                self._rollback(applied)
                raise EntryCopyError(item.identity, f"failed to restore: {e}") from e
            logger.info("Restored: %s", item.identity)

    def _rollback(self, applied: list[_PendingRestore]) -> None:
        for item in reversed(applied):
            try:
                item.rollback()
            except OSError as e:
                logger.error("Could not roll back %s: %s", item.identity, e)
            else:
                logger.info("Rolled back: %s", item.identity)
