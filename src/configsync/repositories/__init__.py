"""Repository layer for data access."""

from .registry import TrackingRegistry

__all__ = [
    "TrackingRegistry",
]
