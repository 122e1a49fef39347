"""Version-control collaborators."""

from .git import GitCollaborator
from .protocol import Collaborator

__all__ = [
    "Collaborator",
    "GitCollaborator",
]
