"""Registry data models."""

from dataclasses import dataclass

from pydantic import BaseModel, Field

from ..utils.paths import CanonicalPath, canonicalize


class RegistryDocument(BaseModel):
    """On-disk representation of the tracked set (config.json).

    Maps each tracked identity (home-relative path) to its display label.
    """

    files: dict[str, str] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize with sorted keys and two-space indentation."""
        ordered = RegistryDocument(files=dict(sorted(self.files.items())))
        return ordered.model_dump_json(indent=2) + "\n"


@dataclass(frozen=True)
class TrackedEntry:
    """A single tracked path."""

    identity: str  # Home-relative path, unique key
    label: str  # Base name, metadata only

    @property
    def path(self) -> CanonicalPath:
        """Resolve the identity on the current machine."""
        return canonicalize(self.identity)
