"""Filesystem-backed registry of tracked paths."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..exceptions import NotInitializedError, RegistryParseError
from ..models import RegistryDocument, TrackedEntry, TrackResult
from ..sync.lock import RootLock
from ..utils.paths import canonicalize, collapse_to_tilde

logger = logging.getLogger(__name__)


class TrackingRegistry:
    """
    Registry of tracked paths stored in {root}/config.json.

    The file on disk is the source of truth: initialize() loads it, every
    mutation re-reads it under the root lock, and the result is written back
    before the call returns.
    """

    CONFIG_FILE = "config.json"
    STAGING_DIR = "synced-files"

    def __init__(self) -> None:
        self._root: Path | None = None
        self._document = RegistryDocument()

    # --- Lifecycle ---

    @property
    def is_initialized(self) -> bool:
        """Whether initialize() has completed."""
        return self._root is not None

    def initialize(self, root: Path) -> None:
        """
        Load or create the registry at root.

        Creates root and its staging directory if needed and writes an empty
        config.json when none exists.

        Raises:
            OSError: If root cannot be created, read or written
            RegistryParseError: If config.json is not a valid registry document
        """
        root = Path(root)
        (root / self.STAGING_DIR).mkdir(parents=True, exist_ok=True)

        config_path = root / self.CONFIG_FILE
        if not config_path.exists():
            logger.info("Config is not found at %s, initializing...", collapse_to_tilde(str(root)))
            self._write_document(config_path, RegistryDocument())
        else:
            logger.debug("Config is detected at %s", config_path)

        self._document = self._read_document(config_path)
        self._root = root
        logger.info("Config is initialized from %s", collapse_to_tilde(str(root)))

    def reload(self) -> None:
        """Re-read config.json, dropping any state loaded earlier.

        Raises:
            NotInitializedError: If the registry is not initialized
            RegistryParseError: If config.json is not a valid registry document
        """
        self._document = self._read_document(self.config_path)

    def _check_initialized(self) -> Path:
        if self._root is None:
            raise NotInitializedError()
        return self._root

    # --- Layout ---

    @property
    def root(self) -> Path:
        """Engine root directory."""
        return self._check_initialized()

    @property
    def config_path(self) -> Path:
        """Path to the backing store."""
        return self._check_initialized() / self.CONFIG_FILE

    @property
    def staging_root(self) -> Path:
        """Directory holding one slot per tracked entry."""
        return self._check_initialized() / self.STAGING_DIR

    # --- Queries ---

    def entries(self) -> list[TrackedEntry]:
        """Return all tracked entries, sorted by identity."""
        self._check_initialized()
        return [
            TrackedEntry(identity=identity, label=label)
            for identity, label in sorted(self._document.files.items())
        ]

    def is_tracked(self, identity: str) -> bool:
        """Check if an identity is tracked."""
        self._check_initialized()
        return identity in self._document.files

    def __len__(self) -> int:
        return len(self._document.files)

    # --- Mutations ---

    def track(self, paths: list[str]) -> TrackResult:
        """
        Add paths to the tracked set.

        Paths that do not exist or are already tracked are skipped and
        reported. The registry is saved once after all paths are processed.
        """
        root = self._check_initialized()
        result = TrackResult()

        with RootLock(root):
            self.reload()
            for raw in paths:
                path = canonicalize(raw)
                if not os.path.exists(path.full_path):
                    logger.info("Skipping %s: file does not exist", raw)
                    result.skipped.append(f"{raw}: file does not exist")
                    continue

                if self.is_tracked(path.tilde_path):
                    logger.info("Already tracked: %s", path.tilde_path)
                    result.skipped.append(f"{path.tilde_path}: already tracked")
                    continue

                self._document.files[path.tilde_path] = path.name
                result.changed.append(path.tilde_path)
                logger.info("Tracking: %s", path.tilde_path)

            self.save()

        return result

    def untrack(self, paths: list[str]) -> TrackResult:
        """
        Remove paths from the tracked set.

        Paths that are not tracked are skipped and reported. The registry is
        saved once after all paths are processed.
        """
        root = self._check_initialized()
        result = TrackResult()

        with RootLock(root):
            self.reload()
            for raw in paths:
                path = canonicalize(raw)
                if not self.is_tracked(path.tilde_path):
                    logger.info("Not tracked: %s", path.tilde_path)
                    result.skipped.append(f"{path.tilde_path}: not tracked")
                    continue

                del self._document.files[path.tilde_path]
                result.changed.append(path.tilde_path)
                logger.info("Untracked: %s", path.tilde_path)

            self.save()

        return result

    def save(self) -> None:
        """Write the registry to config.json."""
        self._write_document(self.config_path, self._document)

    # --- Private Methods ---

    def _read_document(self, config_path: Path) -> RegistryDocument:
        raw = config_path.read_bytes()
        try:
            return RegistryDocument.model_validate_json(raw)
        except ValidationError as e:
            raise RegistryParseError(f"Could not parse the json from the file {config_path}: {e}") from e

    def _write_document(self, config_path: Path, document: RegistryDocument) -> None:
        """Write via a temporary sibling and rename it over the target."""
        fd, tmp_name = tempfile.mkstemp(
            dir=config_path.parent, prefix=f".{config_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document.to_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, config_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d tracked path(s) to %s", len(document.files), config_path)
