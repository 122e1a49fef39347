"""Git collaborator backed by the git command line."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import httpx

from ..exceptions import CollaboratorError, MergeConflictError, PublicRepositoryError
from ..sync.engine import RESTORE_PREFIX, STAGING_PREFIX
from ..sync.lock import LOCK_FILE
from ..utils.paths import collapse_to_tilde

logger = logging.getLogger(__name__)

# Porcelain status codes for unmerged paths
UNMERGED_STATUSES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})

GITIGNORE = f"""\
# Managed by config-sync
{LOCK_FILE}
{STAGING_PREFIX}*/
{RESTORE_PREFIX}*/
*.tmp
"""

PUBLIC_CHECK_TIMEOUT = 10.0


def ssh_to_https(url: str) -> str | None:
    """Convert an SSH remote URL to its HTTPS web URL.

    Returns:
        HTTPS URL, or None if url is not an SSH URL

    Examples:
        >>> ssh_to_https("git@github.com:user/repo.git")
        'https://github.com/user/repo'
        >>> ssh_to_https("https://github.com/user/repo") is None
        True
    """
    if not url.startswith("git@"):
        return None
    host, sep, repo = url.removeprefix("git@").partition(":")
    if not sep or not host:
        return None
    return f"https://{host}/{repo.removesuffix('.git')}"


def is_public_repo(https_url: str) -> bool:
    """Check whether a repository page is reachable without authentication."""
    try:
        response = httpx.head(https_url, follow_redirects=True, timeout=PUBLIC_CHECK_TIMEOUT)
    except httpx.HTTPError as e:
        logger.debug("Public repository check failed for %s: %s", https_url, e)
        return False
    return response.status_code == 200


class GitCollaborator:
    """Collaborator that runs git in the engine root.

    Every git failure is raised as CollaboratorError carrying the command
    and git's stderr.
    """

    def __init__(self, repo_dir: Path, branch: str = "main", remote: str = "origin") -> None:
        """Initialize the collaborator.

        Args:
            repo_dir: Engine root holding the repository
            branch: Branch to push and pull
            remote: Remote name
        """
        self.repo_dir = repo_dir
        self.branch = branch
        self.remote = remote

    @property
    def _display_dir(self) -> str:
        return collapse_to_tilde(str(self.repo_dir))

    def _run(self, *args: str, cwd: Path | None = None, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a git command.

        Raises:
            CollaboratorError: If git is missing, or exits non-zero when check is set
        """
        cmd = ["git", *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd or self.repo_dir),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise CollaboratorError("git executable not found") from e
        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise CollaboratorError(f"git {' '.join(args)} failed: {stderr}")
        return result

    def _is_repo(self) -> bool:
        return (self.repo_dir / ".git").exists()

    def _remote_ref(self) -> str:
        return f"{self.remote}/{self.branch}"

    def _count(self, revision_range: str) -> int:
        output = self._run("rev-list", "--count", revision_range).stdout.strip()
        return int(output or 0)

    # --- Collaborator protocol ---

    def init(self) -> None:
        if self._is_repo():
            return
        logger.info("Initializing git repository in %s", self._display_dir)
        self.repo_dir.mkdir(parents=True, exist_ok=True)
        self._run("init", "-b", self.branch)
        gitignore = self.repo_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(GITIGNORE)

    def clone(self, url: str) -> None:
        if self.repo_dir.exists() and any(self.repo_dir.iterdir()):
            raise CollaboratorError(f"Cannot clone into {self._display_dir}: directory is not empty")
        logger.info("Cloning %s into %s", url, self._display_dir)
        self.repo_dir.parent.mkdir(parents=True, exist_ok=True)
        self._run("clone", url, str(self.repo_dir), cwd=self.repo_dir.parent)

    def add(self) -> None:
        self._run("add", "-A")

    def commit(self, message: str) -> None:
        if self._run("diff", "--cached", "--quiet", check=False).returncode == 0:
            logger.info("Nothing to commit in %s", self._display_dir)
            return
        self._run("commit", "-m", message)

    def pull(self) -> None:
        logger.info("Pulling from %s", self._display_dir)
        result = self._run("pull", "--no-rebase", self.remote, self.branch, check=False)
        conflicts = self._unmerged_paths()
        if conflicts:
            raise MergeConflictError(conflicts)
        if result.returncode != 0:
            raise CollaboratorError(f"git pull failed: {(result.stderr or '').strip()}")

    def push(self) -> None:
        logger.info("Pushing to %s", self._display_dir)
        self._run("push", "-u", self.remote, self.branch)

    def set_origin(self, url: str, force: bool = False) -> None:
        if not force:
            https_url = ssh_to_https(url)
            if https_url and is_public_repo(https_url):
                raise PublicRepositoryError(
                    "Repository appears to be public (accessible without authentication). "
                    "Use --force to add this origin if you're sure"
                )

        self.init()

        if self.has_origin():
            self._run("remote", "set-url", self.remote, url)
        else:
            self._run("remote", "add", self.remote, url)
        logger.info("Origin set to %s", url)

    def has_origin(self) -> bool:
        if not self._is_repo():
            return False
        remotes = self._run("remote").stdout.split()
        return self.remote in remotes

    def has_unpushed_changes(self) -> bool:
        if self._run("status", "--porcelain").stdout.strip():
            return True
        self._run("fetch", self.remote)
        if not self._remote_branch_exists():
            return self._has_commits()
        return self._count(f"{self._remote_ref()}..HEAD") > 0

    def has_unpulled_changes(self) -> bool:
        self._run("fetch", self.remote)
        if not self._remote_branch_exists():
            return False
        if not self._has_commits():
            return True
        return self._count(f"HEAD..{self._remote_ref()}") > 0

    # --- Private Methods ---

    def _remote_branch_exists(self) -> bool:
        result = self._run(
            "rev-parse", "--verify", "--quiet", f"refs/remotes/{self._remote_ref()}", check=False
        )
        return result.returncode == 0

    def _has_commits(self) -> bool:
        return self._run("rev-parse", "--verify", "--quiet", "HEAD", check=False).returncode == 0

    def _unmerged_paths(self) -> list[str]:
        result = self._run("status", "--porcelain", check=False)
        paths = []
        for line in result.stdout.splitlines():
            if line[:2] in UNMERGED_STATUSES:
                paths.append(line[3:])
        return paths
