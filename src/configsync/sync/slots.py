"""Mapping between tracked identities and storage slots.

Each tracked entry is stored under a slot named after the MD5 digest of its
identity:

    synced-files/{md5(identity)}/{basename}

Examples:
    "~/.vimrc"       -> synced-files/<md5 of "~/.vimrc">/.vimrc
    "~/.config/nvim" -> synced-files/<md5 of "~/.config/nvim">/nvim

The slot name depends only on the identity string, never on the machine's
directory layout.
"""

import hashlib
from pathlib import Path

from ..exceptions import HashCollisionError
from ..models import TrackedEntry


def slot_name(identity: str) -> str:
    """Return the slot directory name for an identity.

    Args:
        identity: Home-relative path (e.g., "~/.vimrc")

    Returns:
        32-character lowercase hex digest

    Examples:
        >>> slot_name("~/.vimrc") == hashlib.md5(b"~/.vimrc").hexdigest()
        True
    """
    return hashlib.md5(identity.encode("utf-8")).hexdigest()


def slot_path(staging_root: Path, identity: str) -> Path:
    """Return the slot directory for an identity under a staging root."""
    return staging_root / slot_name(identity)


def plan_slots(entries: list[TrackedEntry]) -> dict[str, TrackedEntry]:
    """Map every entry to its slot name.

    Args:
        entries: Tracked entries to place

    Returns:
        Dict of slot name -> entry

    Raises:
        HashCollisionError: If two distinct identities share a slot
    """
    plan: dict[str, TrackedEntry] = {}
    for entry in entries:
        name = slot_name(entry.identity)
        existing = plan.get(name)
        if existing is not None and existing.identity != entry.identity:
            raise HashCollisionError(name, [existing.identity, entry.identity])
        plan[name] = entry
    return plan

