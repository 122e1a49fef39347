"""Canonical path handling.

Every tracked path has two renderings:

    full_path   absolute path used for filesystem I/O
    tilde_path  home-relative path used as the stable identity

Examples (home directory /home/alice):
    "~/.vimrc"              -> full_path="/home/alice/.vimrc", tilde_path="~/.vimrc"
    "/home/alice/.config"   -> full_path="/home/alice/.config", tilde_path="~/.config"
    "/etc/hosts"            -> full_path="/etc/hosts", tilde_path="/etc/hosts"

The tilde rendering always uses forward slashes, so the same logical path
yields the same identity on every machine.
"""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass
from pathlib import Path, PurePath

from ..exceptions import HomeDirectoryError

TILDE = "~"
TILDE_PREFIX = "~/"


@dataclass(frozen=True)
class CanonicalPath:
    """A filesystem location with absolute and home-relative renderings."""

    full_path: str
    tilde_path: str

    @property
    def path(self) -> Path:
        """The absolute rendering as a Path."""
        return Path(self.full_path)

    @property
    def name(self) -> str:
        """Base name of the location."""
        return os.path.basename(self.full_path)

    def suffix(self, name: str) -> CanonicalPath:
        """Return a new CanonicalPath with name appended to both renderings."""
        return CanonicalPath(
            full_path=os.path.join(self.full_path, name),
            tilde_path=posixpath.join(self.tilde_path, PurePath(name).as_posix()),
        )

    def __str__(self) -> str:
        return self.tilde_path


def home_directory() -> str:
    """Return the current user's home directory.

    Raises:
        HomeDirectoryError: If the home directory cannot be determined
    """
    try:
        home = str(Path.home())
    except (RuntimeError, KeyError) as e:
        raise HomeDirectoryError(f"Could not determine the home directory: {e}") from e
    if not os.path.isabs(home):
        raise HomeDirectoryError("Could not determine the home directory")
    return os.path.normpath(home)


def expand_tilde(path: str) -> str:
    """Convert a tilde-prefixed path to an absolute path.

    Paths without a leading "~/" are resolved against the working directory.
    Symlinks are left alone so the logical location is preserved.
    """
    if path == TILDE:
        return home_directory()
    if path.startswith(TILDE_PREFIX):
        return os.path.normpath(os.path.join(home_directory(), path[len(TILDE_PREFIX) :]))
    return os.path.abspath(path)


def collapse_to_tilde(full_path: str) -> str:
    """Convert an absolute path under the home directory to tilde notation.

    Paths outside the home directory are returned unchanged.
    """
    home = home_directory()
    if full_path == home:
        return TILDE
    try:
        relative = os.path.relpath(full_path, home)
    except ValueError:
        # Different drive on Windows
        return full_path
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return full_path
    return TILDE_PREFIX + PurePath(relative).as_posix()


def canonicalize(path: str | os.PathLike[str]) -> CanonicalPath:
    """Build the CanonicalPath for a user-supplied path.

    Args:
        path: Absolute, relative, or tilde-prefixed path

    Returns:
        CanonicalPath with both renderings

    Raises:
        HomeDirectoryError: If the home directory cannot be determined

    Examples:
        >>> canonicalize("~/.vimrc").tilde_path
        '~/.vimrc'
    """
    raw = os.fspath(path)
    full_path = expand_tilde(raw)
    return CanonicalPath(full_path=full_path, tilde_path=collapse_to_tilde(full_path))
