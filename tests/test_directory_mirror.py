"""Tests for mcmanager.stages.mirror — list resolution and directory mirroring."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from mcmanager.errors import DirectoryMirrorError, Stage
from mcmanager.models import DirectorySelection
from mcmanager.stages.mirror import (
    FilesystemDirectoryMirror,
    copy_tree,
    parse_dir_list,
    resolve_directories,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(path: Path, content: str = "ok", mode: int | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mode is not None:
        path.chmod(mode)
    return path


# ---------------------------------------------------------------------------
# parse_dir_list / resolve_directories
# ---------------------------------------------------------------------------


class TestParseDirList:
    """Tests for parse_dir_list()."""

    def test_trims_dedupes_and_drops_blank_and_dot(self) -> None:
        assert parse_dir_list("a, b , ,.,a") == ["a", "b"]

    def test_empty_string(self) -> None:
        assert parse_dir_list("") == []

    def test_only_separators(self) -> None:
        assert parse_dir_list(" , ,, . ") == []

    def test_preserves_first_seen_order(self) -> None:
        assert parse_dir_list("plugins,world,config,world,plugins") == [
            "plugins",
            "world",
            "config",
        ]


class TestResolveDirectories:
    """Tests for resolve_directories()."""

    def test_excludes_are_removed(self) -> None:
        selection = resolve_directories("world,plugins", "plugins")
        assert selection == DirectorySelection(("world",))

    def test_exclude_not_in_include_is_ignored(self) -> None:
        selection = resolve_directories("world", "config")
        assert list(selection) == ["world"]

    def test_everything_excluded_is_empty(self) -> None:
        selection = resolve_directories("world,plugins", "plugins, world")
        assert not selection
        assert len(selection) == 0

    def test_is_deterministic(self) -> None:
        first = resolve_directories(" b,a,b,., c ", "c")
        second = resolve_directories(" b,a,b,., c ", "c")
        assert first == second
        assert list(first) == ["b", "a"]

    def test_idempotent_on_its_own_output(self) -> None:
        once = resolve_directories("x, y ,x,,z", "z")
        twice = resolve_directories(",".join(once), "z")
        assert once == twice


# ---------------------------------------------------------------------------
# FilesystemDirectoryMirror
# ---------------------------------------------------------------------------


class TestMirror:
    """Tests for FilesystemDirectoryMirror.mirror()."""

    async def test_empty_selection_fails_before_io(self, tmp_path: Path) -> None:
        data_dir = tmp_path / "data"
        mirror = FilesystemDirectoryMirror()

        with pytest.raises(DirectoryMirrorError, match="no directories to copy") as exc_info:
            await mirror.mirror(tmp_path / "repo", data_dir, DirectorySelection())

        assert exc_info.value.stage is Stage.DIRECTORY_MIRROR
        assert not data_dir.exists()

    async def test_include_minus_exclude_example(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "world" / "level.dat")

        mirror = FilesystemDirectoryMirror()
        copied = await mirror.mirror(
            repo, data_dir, resolve_directories("world,plugins", "plugins")
        )

        assert copied == [data_dir / "world"]
        assert (data_dir / "world" / "level.dat").read_text() == "ok"
        assert not (data_dir / "plugins").exists()

    async def test_missing_directories_are_skipped(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "plugins" / "a.jar", "jar")

        mirror = FilesystemDirectoryMirror()
        copied = await mirror.mirror(repo, data_dir, DirectorySelection(("world", "plugins")))

        assert copied == [data_dir / "plugins"]
        assert (data_dir / "plugins" / "a.jar").read_text() == "jar"
        assert not (data_dir / "world").exists()

    async def test_none_present_fails(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        repo.mkdir()
        mirror = FilesystemDirectoryMirror()

        with pytest.raises(DirectoryMirrorError, match="no configured directories"):
            await mirror.mirror(repo, tmp_path / "data", DirectorySelection(("world",)))

    async def test_file_in_place_of_directory_counts_as_missing(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        _write(repo / "world")
        mirror = FilesystemDirectoryMirror()

        with pytest.raises(DirectoryMirrorError):
            await mirror.mirror(repo, tmp_path / "data", DirectorySelection(("world",)))

    async def test_creates_data_dir(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "nested" / "data"
        _write(repo / "world" / "level.dat")

        await FilesystemDirectoryMirror().mirror(repo, data_dir, DirectorySelection(("world",)))

        assert (data_dir / "world" / "level.dat").exists()

    async def test_full_replace_drops_stale_files(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "plugins" / "keep.jar", "new")
        _write(data_dir / "plugins" / "keep.jar", "old")
        _write(data_dir / "plugins" / "local-only.jar", "local")
        _write(data_dir / "plugins" / "cfg" / "settings.yml", "local")

        await FilesystemDirectoryMirror().mirror(repo, data_dir, DirectorySelection(("plugins",)))

        assert (data_dir / "plugins" / "keep.jar").read_text() == "new"
        assert not (data_dir / "plugins" / "local-only.jar").exists()
        assert not (data_dir / "plugins" / "cfg").exists()

    async def test_other_data_dirs_untouched(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "plugins" / "a.jar")
        _write(data_dir / "logs" / "latest.log", "log")

        await FilesystemDirectoryMirror().mirror(repo, data_dir, DirectorySelection(("plugins",)))

        assert (data_dir / "logs" / "latest.log").read_text() == "log"

    @pytest.mark.skipif(os.name != "posix", reason="mode bits are POSIX-specific")
    async def test_preserves_file_mode(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "plugins" / "run.sh", "#!/bin/sh\n", mode=0o755)
        _write(repo / "plugins" / "data.txt", "x", mode=0o600)

        await FilesystemDirectoryMirror().mirror(repo, data_dir, DirectorySelection(("plugins",)))

        assert stat.S_IMODE((data_dir / "plugins" / "run.sh").stat().st_mode) == 0o755
        assert stat.S_IMODE((data_dir / "plugins" / "data.txt").stat().st_mode) == 0o600

    async def test_copies_in_selection_order(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        for name in ("c", "a", "b"):
            _write(repo / name / "f")

        copied = await FilesystemDirectoryMirror().mirror(
            repo, data_dir, DirectorySelection(("c", "a", "b"))
        )

        assert [p.name for p in copied] == ["c", "a", "b"]

    async def test_copy_failure_aborts_remaining(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "a" / "f")
        _write(repo / "b" / "f")

        calls: list[str] = []

        def _failing_copy(src: Path, dst: Path) -> None:
            calls.append(src.name)
            raise OSError("disk full")

        with patch("mcmanager.stages.mirror.copy_tree", side_effect=_failing_copy):
            with pytest.raises(DirectoryMirrorError, match="copy a: disk full"):
                await FilesystemDirectoryMirror().mirror(
                    repo, data_dir, DirectorySelection(("a", "b"))
                )

        assert calls == ["a"]


class TestOwnership:
    """Tests for owner id normalization after mirroring."""

    async def test_no_chown_without_owner(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        _write(repo / "world" / "level.dat")

        with patch("mcmanager.stages.mirror.os.chown") as mock_chown:
            await FilesystemDirectoryMirror().mirror(
                repo, tmp_path / "data", DirectorySelection(("world",))
            )

        mock_chown.assert_not_called()

    async def test_chowns_every_copied_entry(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "world" / "level.dat")
        _write(repo / "world" / "region" / "r.0.0.mca")

        with (
            patch("mcmanager.stages.mirror.chown_supported", return_value=True),
            patch("mcmanager.stages.mirror.os.chown", create=True) as mock_chown,
        ):
            await FilesystemDirectoryMirror().mirror(
                repo, data_dir, DirectorySelection(("world",)), owner_id=1000
            )

        chowned = {Path(call.args[0]) for call in mock_chown.call_args_list}
        world = data_dir / "world"
        assert chowned == {
            world,
            world / "level.dat",
            world / "region",
            world / "region" / "r.0.0.mca",
        }
        assert all(call.args[1:3] == (1000, 1000) for call in mock_chown.call_args_list)

    async def test_chown_zero_is_applied(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        _write(repo / "world" / "level.dat")

        with (
            patch("mcmanager.stages.mirror.chown_supported", return_value=True),
            patch("mcmanager.stages.mirror.os.chown", create=True) as mock_chown,
        ):
            await FilesystemDirectoryMirror().mirror(
                repo, tmp_path / "data", DirectorySelection(("world",)), owner_id=0
            )

        assert mock_chown.call_count == 2

    async def test_chown_failure_fails_stage(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        _write(repo / "world" / "level.dat")

        with (
            patch("mcmanager.stages.mirror.chown_supported", return_value=True),
            patch(
                "mcmanager.stages.mirror.os.chown",
                create=True,
                side_effect=PermissionError("operation not permitted"),
            ),
        ):
            with pytest.raises(DirectoryMirrorError, match="chown"):
                await FilesystemDirectoryMirror().mirror(
                    repo, tmp_path / "data", DirectorySelection(("world",)), owner_id=1000
                )

    async def test_unsupported_platform_skips_chown(self, tmp_path: Path) -> None:
        repo = tmp_path / "repo"
        data_dir = tmp_path / "data"
        _write(repo / "world" / "level.dat")

        with patch("mcmanager.stages.mirror.chown_supported", return_value=False):
            copied = await FilesystemDirectoryMirror().mirror(
                repo, data_dir, DirectorySelection(("world",)), owner_id=1000
            )

        assert copied == [data_dir / "world"]


class TestCopyTree:
    """Tests for copy_tree()."""

    def test_replaces_file_at_destination(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        _write(src / "a.txt", "a")
        dst = _write(tmp_path / "dst", "not a dir")

        copy_tree(src, dst)

        assert (dst / "a.txt").read_text() == "a"

    def test_copies_empty_subdirectories(self, tmp_path: Path) -> None:
        src = tmp_path / "src"
        (src / "empty").mkdir(parents=True)

        copy_tree(src, tmp_path / "dst")

        assert (tmp_path / "dst" / "empty").is_dir()
