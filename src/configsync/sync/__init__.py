"""Capture and restore of tracked paths."""

from .engine import ContentSynchronizer
from .lock import RootLock
from .slots import plan_slots, slot_name, slot_path

__all__ = [
    "ContentSynchronizer",
    "RootLock",
    "plan_slots",
    "slot_name",
    "slot_path",
]
