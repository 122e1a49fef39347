"""Exception hierarchy for config-sync."""

from __future__ import annotations


class ConfigSyncError(Exception):
    """Base exception for config-sync errors."""

    pass


class HomeDirectoryError(ConfigSyncError):
    """The current user's home directory cannot be determined."""

    pass


class NotInitializedError(ConfigSyncError):
    """The registry was used before initialize() was called."""

    def __init__(self) -> None:
        super().__init__("Registry is not initialized. Call initialize() first")


class RegistryParseError(ConfigSyncError):
    """The backing store exists but is not a valid registry document."""

    pass


class SourceMissingError(ConfigSyncError):
    """A tracked path no longer exists at capture time."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"Tracked path does not exist: {identity}")


class HashCollisionError(ConfigSyncError):
    """Two distinct identities map to the same storage slot."""

    def __init__(self, slot: str, identities: list[str]) -> None:
        self.slot = slot
        self.identities = sorted(identities)
        super().__init__(
            f"Storage slot {slot} is shared by {' and '.join(self.identities)}"
        )


class EntryCopyError(ConfigSyncError):
    """Copying one tracked entry failed."""

    def __init__(self, identity: str, reason: str) -> None:
        self.identity = identity
        self.reason = reason
        super().__init__(f"{identity}: {reason}")


class AlreadyRunningError(ConfigSyncError):
    """Another process holds the lock on the engine root."""

    pass


class CollaboratorError(ConfigSyncError):
    """A version-control operation failed."""

    pass


class MergeConflictError(CollaboratorError):
    """Pulling left unmerged paths in the repository."""

    def __init__(self, paths: list[str]) -> None:
        self.paths = paths
        super().__init__(f"Merge conflicts after pull: {', '.join(paths)}")


class PublicRepositoryError(CollaboratorError):
    """The origin repository is readable without authentication."""

    pass
