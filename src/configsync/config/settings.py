"""Application settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from ..utils.paths import canonicalize


class Settings(BaseSettings):
    """Application settings."""

    root: str = Field(
        default="~/.config-sync",
        description="Engine root holding config.json, synced-files and the git repository",
    )

    branch: str = Field(
        default="main",
        description="Branch to push to and pull from",
    )

    remote: str = Field(
        default="origin",
        description="Name of the git remote",
    )

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    model_config = {
        "env_prefix": "CONFIG_SYNC_",
    }

    @property
    def root_path(self) -> Path:
        """Absolute engine root."""
        return canonicalize(self.root).path
