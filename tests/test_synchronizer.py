"""Integration tests for ContentSynchronizer."""

import hashlib
import os
import shutil
import stat
from pathlib import Path

import pytest

from configsync.exceptions import (
    AlreadyRunningError,
    EntryCopyError,
    HashCollisionError,
    NotInitializedError,
    SourceMissingError,
)
from configsync.repositories import TrackingRegistry
from configsync.sync import ContentSynchronizer, RootLock, engine, slots


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temporary directory."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    return home_dir


@pytest.fixture
def root(home: Path) -> Path:
    """Engine root inside the temporary home."""
    return home / ".config-sync"


@pytest.fixture
def registry(root: Path) -> TrackingRegistry:
    """An initialized registry."""
    registry = TrackingRegistry()
    registry.initialize(root)
    return registry


@pytest.fixture
def synchronizer(registry: TrackingRegistry) -> ContentSynchronizer:
    return ContentSynchronizer(registry)


@pytest.fixture
def dotfiles(home: Path) -> dict[str, Path]:
    """A dotfile and a config directory with nested content."""
    vimrc = home / ".vimrc"
    vimrc.write_text("set number\n")

    nvim = home / ".config" / "nvim"
    (nvim / "lua" / "plugins").mkdir(parents=True)
    (nvim / "init.lua").write_text("require('plugins')\n")
    (nvim / "lua" / "plugins" / "init.lua").write_text("return {}\n")

    return {"vimrc": vimrc, "nvim": nvim}


def slot_dir(root: Path, identity: str) -> Path:
    return root / "synced-files" / hashlib.md5(identity.encode()).hexdigest()


def snapshot(path: Path) -> dict[str, bytes | None]:
    """Relative path -> bytes (None for directories) for a file or tree."""
    if path.is_file():
        return {".": path.read_bytes()}
    tree: dict[str, bytes | None] = {}
    for item in sorted(path.rglob("*")):
        rel = item.relative_to(path).as_posix()
        tree[rel] = None if item.is_dir() else item.read_bytes()
    return tree


def leftovers(directory: Path) -> list[str]:
    """Temporary directories left behind by a pass."""
    return sorted(
        p.name
        for p in directory.iterdir()
        if p.name.startswith(".synced-files-") or p.name.startswith(".config-sync-restore-")
    )


class TestCapture:
    """Tests for ContentSynchronizer.capture."""

    def test_capture_file_into_hashed_slot(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """A tracked file lands in synced-files/<md5(identity)>/<basename>."""
        registry.track(["~/.vimrc"])

        result = synchronizer.capture()

        stored = slot_dir(root, "~/.vimrc") / ".vimrc"
        assert result.captured == ["~/.vimrc"]
        assert stored.read_bytes() == dotfiles["vimrc"].read_bytes()

    def test_capture_directory_tree(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """Directories are copied recursively under their basename."""
        registry.track(["~/.config/nvim"])

        synchronizer.capture()

        stored = slot_dir(root, "~/.config/nvim") / "nvim"
        assert snapshot(stored) == snapshot(dotfiles["nvim"])

    def test_capture_preserves_permissions(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        home: Path,
    ):
        """File modes survive the copy."""
        secret = home / ".netrc"
        secret.write_text("machine example.com\n")
        secret.chmod(0o600)
        registry.track(["~/.netrc"])

        synchronizer.capture()

        stored = slot_dir(root, "~/.netrc") / ".netrc"
        assert stat.S_IMODE(stored.stat().st_mode) == 0o600

    def test_capture_keeps_symlinks_inside_directories(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """Links inside a tracked tree are stored as links."""
        os.symlink("init.lua", dotfiles["nvim"] / "link.lua")
        registry.track(["~/.config/nvim"])

        synchronizer.capture()

        stored_link = slot_dir(root, "~/.config/nvim") / "nvim" / "link.lua"
        assert stored_link.is_symlink()
        assert os.readlink(stored_link) == "init.lua"

    def test_capture_sees_entries_tracked_by_another_instance(
        self,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """The registry is re-read once the pass holds the lock."""
        other = TrackingRegistry()
        other.initialize(root)
        other.track(["~/.vimrc"])

        result = synchronizer.capture()

        assert result.captured == ["~/.vimrc"]
        assert (slot_dir(root, "~/.vimrc") / ".vimrc").read_bytes() == dotfiles["vimrc"].read_bytes()

    def test_capture_drops_untracked_entries(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],  # noqa: ARG002
    ):
        """Entries untracked since the last pass disappear from storage."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        synchronizer.capture()
        registry.untrack(["~/.config/nvim"])

        synchronizer.capture()

        assert sorted(p.name for p in (root / "synced-files").iterdir()) == [
            slot_dir(root, "~/.vimrc").name
        ]

    def test_capture_clears_stray_content(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],  # noqa: ARG002
    ):
        """Anything else in the staging root is removed."""
        (root / "synced-files" / "stray.txt").write_text("old")
        registry.track(["~/.vimrc"])

        synchronizer.capture()

        assert not (root / "synced-files" / "stray.txt").exists()
        assert (root / "synced-files").is_dir()

    def test_capture_is_idempotent(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],  # noqa: ARG002
    ):
        registry.track(["~/.vimrc", "~/.config/nvim"])

        synchronizer.capture()
        first = snapshot(root / "synced-files")
        synchronizer.capture()

        assert snapshot(root / "synced-files") == first
        assert leftovers(root) == []

    def test_capture_empty_registry(self, synchronizer: ContentSynchronizer, root: Path):
        result = synchronizer.capture()

        assert result.captured == []
        assert list((root / "synced-files").iterdir()) == []

    def test_missing_source_fails_without_touching_storage(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """A vanished source aborts the pass and keeps the previous storage."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        synchronizer.capture()
        before = snapshot(root / "synced-files")

        dotfiles["vimrc"].write_text("changed\n")
        (dotfiles["nvim"] / "init.lua").unlink()
        (dotfiles["nvim"] / "lua" / "plugins" / "init.lua").unlink()
        (dotfiles["nvim"] / "lua" / "plugins").rmdir()
        (dotfiles["nvim"] / "lua").rmdir()
        dotfiles["nvim"].rmdir()

        with pytest.raises(SourceMissingError) as exc_info:
            synchronizer.capture()

        assert exc_info.value.identity == "~/.config/nvim"
        assert snapshot(root / "synced-files") == before
        assert leftovers(root) == []

    def test_hash_collision_raises_before_copying(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],  # noqa: ARG002
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Colliding identities fail the pass and share nothing."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        monkeypatch.setattr(slots, "slot_name", lambda identity: "f" * 32)

        with pytest.raises(HashCollisionError) as exc_info:
            synchronizer.capture()

        assert exc_info.value.identities == ["~/.config/nvim", "~/.vimrc"]
        assert list((root / "synced-files").iterdir()) == []
        assert leftovers(root) == []

    def test_capture_fails_while_locked(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],  # noqa: ARG002
    ):
        registry.track(["~/.vimrc"])

        with RootLock(root), pytest.raises(AlreadyRunningError):
            synchronizer.capture()

    def test_capture_requires_initialized_registry(self):
        with pytest.raises(NotInitializedError):
            ContentSynchronizer(TrackingRegistry()).capture()


class TestRestore:
    """Tests for ContentSynchronizer.restore."""

    def test_capture_then_restore_is_byte_identical(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        dotfiles: dict[str, Path],
    ):
        """A round trip on the same machine changes nothing."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        before = {name: snapshot(path) for name, path in dotfiles.items()}

        synchronizer.capture()
        result = synchronizer.restore()

        assert sorted(result.restored) == ["~/.config/nvim", "~/.vimrc"]
        assert {name: snapshot(path) for name, path in dotfiles.items()} == before

    def test_restore_overwrites_stored_files_and_keeps_local_only_files(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        dotfiles: dict[str, Path],
    ):
        """Stored content wins for files it has; other local files stay."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        synchronizer.capture()

        dotfiles["vimrc"].write_text("local edit\n")
        (dotfiles["nvim"] / "init.lua").write_text("-- local edit\n")
        (dotfiles["nvim"] / "local_only.lua").write_text("-- local only\n")

        synchronizer.restore()

        assert dotfiles["vimrc"].read_text() == "set number\n"
        assert (dotfiles["nvim"] / "init.lua").read_text() == "require('plugins')\n"
        assert (dotfiles["nvim"] / "local_only.lua").read_text() == "-- local only\n"

    def test_restore_writes_through_symlinked_dotfile(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        home: Path,
    ):
        """A dotfile that links elsewhere stays a link; its target is updated."""
        real = home / "dotfiles" / "vimrc"
        real.parent.mkdir()
        real.write_text("set number\n")
        link = home / ".vimrc"
        link.symlink_to(real)
        registry.track(["~/.vimrc"])
        synchronizer.capture()

        real.write_text("local edit\n")

        synchronizer.restore()

        assert link.is_symlink()
        assert os.readlink(link) == str(real)
        assert real.read_text() == "set number\n"

    def test_restore_nested_tracked_paths(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        home: Path,
        dotfiles: dict[str, Path],
    ):
        """A path tracked inside another tracked directory restores cleanly."""
        (home / ".config" / "git").mkdir()
        (home / ".config" / "git" / "config").write_text("[core]\n")
        registry.track(["~/.config", "~/.config/nvim"])
        synchronizer.capture()
        before = snapshot(home / ".config")

        (dotfiles["nvim"] / "init.lua").write_text("-- local edit\n")
        (home / ".config" / "git" / "config").write_text("[local]\n")

        result = synchronizer.restore()

        assert result.restored == ["~/.config", "~/.config/nvim"]
        assert snapshot(home / ".config") == before
        assert leftovers(root) == []

    def test_restore_recreates_links_inside_directories(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        dotfiles: dict[str, Path],
    ):
        """Links stored inside a tree are restored as links, also over existing ones."""
        os.symlink("init.lua", dotfiles["nvim"] / "link.lua")
        registry.track(["~/.config/nvim"])
        synchronizer.capture()

        synchronizer.restore()
        synchronizer.restore()

        link = dotfiles["nvim"] / "link.lua"
        assert link.is_symlink()
        assert os.readlink(link) == "init.lua"

    def test_restore_sees_entries_tracked_by_another_instance(
        self,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """The registry is re-read once the pass holds the lock."""
        other = TrackingRegistry()
        other.initialize(root)
        other.track(["~/.vimrc"])
        ContentSynchronizer(other).capture()
        dotfiles["vimrc"].write_text("local edit\n")

        result = synchronizer.restore()

        assert result.restored == ["~/.vimrc"]
        assert dotfiles["vimrc"].read_text() == "set number\n"

    def test_restore_recreates_missing_parents(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        home: Path,
        dotfiles: dict[str, Path],
    ):
        """Parent directories of a destination are created."""
        registry.track(["~/.config/nvim"])
        synchronizer.capture()
        tree = snapshot(dotfiles["nvim"])

        shutil.rmtree(home / ".config")

        synchronizer.restore()

        assert snapshot(dotfiles["nvim"]) == tree

    def test_missing_slot_is_skipped(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        dotfiles: dict[str, Path],
    ):
        """An entry with no stored content is reported and left alone."""
        registry.track(["~/.vimrc"])
        dotfiles["vimrc"].write_text("local only\n")

        result = synchronizer.restore()

        assert result.skipped == ["~/.vimrc"]
        assert result.restored == []
        assert result.has_skips
        assert dotfiles["vimrc"].read_text() == "local only\n"

    def test_stored_file_replaces_directory(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        home: Path,
    ):
        """A directory where a file is stored is removed completely."""
        target = home / ".profile"
        target.write_text("export EDITOR=vim\n")
        registry.track(["~/.profile"])
        synchronizer.capture()

        target.unlink()
        target.mkdir()
        (target / "leftover").write_text("old type")

        synchronizer.restore()

        assert target.is_file()
        assert target.read_text() == "export EDITOR=vim\n"

    def test_stored_directory_replaces_file(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        dotfiles: dict[str, Path],
    ):
        """A file where a directory is stored is replaced by the tree."""
        registry.track(["~/.config/nvim"])
        synchronizer.capture()
        tree = snapshot(dotfiles["nvim"])

        shutil.rmtree(dotfiles["nvim"])
        dotfiles["nvim"].write_text("not a directory")

        synchronizer.restore()

        assert dotfiles["nvim"].is_dir()
        assert snapshot(dotfiles["nvim"]) == tree

    def test_restore_is_idempotent(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        registry.track(["~/.vimrc", "~/.config/nvim"])
        synchronizer.capture()

        synchronizer.restore()
        first = {name: snapshot(path) for name, path in dotfiles.items()}
        synchronizer.restore()

        assert {name: snapshot(path) for name, path in dotfiles.items()} == first
        assert leftovers(root) == []

    def test_restore_uses_current_home(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
    ):
        """Stored entries land under this machine's home directory."""
        identity = "~/.gitconfig"
        slot = slot_dir(root, identity)
        slot.mkdir(parents=True)
        (slot / ".gitconfig").write_text("[user]\n  name = someone\n")
        (root / "config.json").write_text('{"files": {"~/.gitconfig": ".gitconfig"}}')
        registry.initialize(root)

        synchronizer.restore()

        assert (root.parent / ".gitconfig").read_text() == "[user]\n  name = someone\n"

    def test_malformed_slot_fails_without_touching_destinations(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
    ):
        """A failing entry leaves every destination as it was."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        synchronizer.capture()
        dotfiles["vimrc"].write_text("local edit\n")
        (dotfiles["nvim"] / "init.lua").write_text("-- local edit\n")
        before = {name: snapshot(path) for name, path in dotfiles.items()}

        # A second child makes the ~/.vimrc slot ambiguous
        (slot_dir(root, "~/.vimrc") / "unexpected").write_text("x")

        with pytest.raises(EntryCopyError) as exc_info:
            synchronizer.restore()

        assert exc_info.value.identity == "~/.vimrc"
        assert {name: snapshot(path) for name, path in dotfiles.items()} == before
        assert leftovers(root) == []

    def test_restore_fails_while_locked(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],  # noqa: ARG002
    ):
        registry.track(["~/.vimrc"])
        synchronizer.capture()

        with RootLock(root), pytest.raises(AlreadyRunningError):
            synchronizer.restore()

    def test_restore_requires_initialized_registry(self):
        with pytest.raises(NotInitializedError):
            ContentSynchronizer(TrackingRegistry()).restore()


class TestRestoreRollback:
    """Tests for undoing a restore pass that fails part way."""

    @pytest.fixture
    def fail_on(self, monkeypatch: pytest.MonkeyPatch):
        """Make writing one destination fail with an OSError."""

        def install(destination: Path) -> None:
            original = engine.overlay_entry

            def overlay(source: Path, target: Path) -> None:
                if target == destination:
                    raise OSError("No space left on device")
                original(source, target)

            monkeypatch.setattr(engine, "overlay_entry", overlay)

        return install

    def test_failed_entry_rolls_back_earlier_entries(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        dotfiles: dict[str, Path],
        fail_on,
    ):
        """~/.config/nvim is applied before ~/.vimrc fails, then put back."""
        registry.track(["~/.vimrc", "~/.config/nvim"])
        synchronizer.capture()
        dotfiles["vimrc"].write_text("local edit\n")
        (dotfiles["nvim"] / "init.lua").write_text("-- local edit\n")
        (dotfiles["nvim"] / "local_only.lua").write_text("-- local only\n")
        before = {name: snapshot(path) for name, path in dotfiles.items()}
        fail_on(dotfiles["vimrc"])

        with pytest.raises(EntryCopyError) as exc_info:
            synchronizer.restore()

        assert exc_info.value.identity == "~/.vimrc"
        assert (dotfiles["nvim"] / "init.lua").read_text() == "-- local edit\n"
        assert {name: snapshot(path) for name, path in dotfiles.items()} == before
        assert leftovers(root) == []

    def test_rollback_removes_destinations_that_did_not_exist(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        root: Path,
        home: Path,
        dotfiles: dict[str, Path],
        fail_on,
    ):
        gitconfig = home / ".gitconfig"
        gitconfig.write_text("[user]\n")
        registry.track(["~/.gitconfig", "~/.vimrc"])
        synchronizer.capture()
        gitconfig.unlink()
        fail_on(dotfiles["vimrc"])

        with pytest.raises(EntryCopyError):
            synchronizer.restore()

        assert not gitconfig.exists()
        assert leftovers(root) == []

    def test_rollback_restores_replaced_type(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        home: Path,
        dotfiles: dict[str, Path],
        fail_on,
    ):
        """A directory removed for a stored file comes back on failure."""
        profile = home / ".profile"
        profile.write_text("export EDITOR=vim\n")
        registry.track(["~/.profile", "~/.vimrc"])
        synchronizer.capture()
        profile.unlink()
        profile.mkdir()
        (profile / "leftover").write_text("old type")
        fail_on(dotfiles["vimrc"])

        with pytest.raises(EntryCopyError):
            synchronizer.restore()

        assert profile.is_dir()
        assert (profile / "leftover").read_text() == "old type"

    def test_rollback_keeps_symlinked_dotfile(
        self,
        registry: TrackingRegistry,
        synchronizer: ContentSynchronizer,
        home: Path,
        dotfiles: dict[str, Path],
        fail_on,
    ):
        real = home / "dotfiles" / "aliases"
        real.parent.mkdir()
        real.write_text("alias ll='ls -l'\n")
        link = home / ".aliases"
        link.symlink_to(real)
        registry.track(["~/.aliases", "~/.vimrc"])
        synchronizer.capture()
        real.write_text("local edit\n")
        fail_on(dotfiles["vimrc"])

        with pytest.raises(EntryCopyError):
            synchronizer.restore()

        assert link.is_symlink()
        assert real.read_text() == "local edit\n"
