"""Data models."""

from .registry import RegistryDocument, TrackedEntry
from .sync import CaptureResult, RestoreResult, TrackResult

__all__ = [
    "CaptureResult",
    "RegistryDocument",
    "RestoreResult",
    "TrackResult",
    "TrackedEntry",
]
