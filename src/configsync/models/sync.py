"""Result models for registry and synchronization passes."""

from dataclasses import dataclass, field


@dataclass
class TrackResult:
    """Result of a track or untrack call."""

    changed: list[str] = field(default_factory=list)  # Identities added or removed
    skipped: list[str] = field(default_factory=list)  # Human-readable skip reasons

    @property
    def changed_count(self) -> int:
        """Number of identities added or removed."""
        return len(self.changed)


@dataclass
class CaptureResult:
    """Result of a capture pass."""

    captured: list[str] = field(default_factory=list)  # Identities written to slots

    @property
    def captured_count(self) -> int:
        """Number of entries captured."""
        return len(self.captured)


@dataclass
class RestoreResult:
    """Result of a restore pass."""

    restored: list[str] = field(default_factory=list)  # Identities written back
    skipped: list[str] = field(default_factory=list)  # Identities with no slot

    @property
    def restored_count(self) -> int:
        """Number of entries restored."""
        return len(self.restored)

    @property
    def has_skips(self) -> bool:
        """Whether any entry had no stored content."""
        return len(self.skipped) > 0
