"""Utility functions."""

from .paths import CanonicalPath, canonicalize, collapse_to_tilde, expand_tilde, home_directory

__all__ = [
    "CanonicalPath",
    "canonicalize",
    "collapse_to_tilde",
    "expand_tilde",
    "home_directory",
]
