"""Collaborator protocol for distributing the engine root."""

from typing import Protocol


class Collaborator(Protocol):
    """Interface for the version-control service behind push and pull.

    The engine itself never calls a collaborator. The CLI captures before
    push() and restores after pull(). Implementations:
    - GitCollaborator (runs the git binary)
    - in-memory fakes used by the tests
    """

    def init(self) -> None:
        """Create the repository in the engine root if it does not exist."""
        ...

    def clone(self, url: str) -> None:
        """Clone url into the engine root.

        Args:
            url: Remote repository URL
        """
        ...

    def add(self) -> None:
        """Stage every change in the engine root."""
        ...

    def commit(self, message: str) -> None:
        """Commit staged changes.

        Args:
            message: Commit message

        Note:
            Does nothing when there is nothing to commit.
        """
        ...

    def pull(self) -> None:
        """Fetch and merge the remote branch."""
        ...

    def push(self) -> None:
        """Push local commits to the remote branch."""
        ...

    def set_origin(self, url: str, force: bool = False) -> None:
        """Point the origin remote at url.

        Args:
            url: Remote repository URL
            force: Skip the public-repository check
        """
        ...

    def has_origin(self) -> bool:
        """Whether an origin remote is configured."""
        ...

    def has_unpushed_changes(self) -> bool:
        """Whether local state differs from the remote branch."""
        ...

    def has_unpulled_changes(self) -> bool:
        """Whether the remote branch has commits not yet merged locally."""
        ...
