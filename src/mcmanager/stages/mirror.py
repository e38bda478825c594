"""Directory mirror: replace live data directories with fresh repository copies.

Mirroring is a destructive replace. Each destination subtree is removed and
recreated from the source, so files deleted upstream disappear and files
that only existed in the data directory are lost.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

import structlog

from mcmanager.errors import DirectoryMirrorError
from mcmanager.logging import get_logger
from mcmanager.models import DirectorySelection

log = get_logger("mcmanager.stages.mirror")


# ----------------------------------------------------------------------
# Directory list resolution
# ----------------------------------------------------------------------


def parse_dir_list(raw: str) -> list[str]:
    """Split a comma-separated list, trimming entries and dropping blanks,
    ``.`` and repeats. First occurrence wins.
    """
    names: list[str] = []
    seen: set[str] = set()
    for part in raw.split(","):
        name = part.strip()
        if not name or name == "." or name in seen:
            continue
        seen.add(name)
        names.append(name)
    return names


def resolve_directories(include: str, exclude: str = "") -> DirectorySelection:
    """Return *include* minus *exclude*, keeping include order."""
    skipped = set(parse_dir_list(exclude))
    return DirectorySelection(tuple(n for n in parse_dir_list(include) if n not in skipped))


# ----------------------------------------------------------------------
# Mirror stage
# ----------------------------------------------------------------------


def chown_supported() -> bool:
    return hasattr(os, "chown")


class FilesystemDirectoryMirror:
    """Copies selected repository directories into the server data directory."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._log = (logger or log).bind(stage="directory_mirror")

    async def mirror(
        self,
        repo_path: Path,
        data_dir: Path,
        selection: DirectorySelection,
        owner_id: int | None = None,
    ) -> list[Path]:
        if not selection:
            raise DirectoryMirrorError("no directories to copy after applying SKIP_DIRS")
        # Copying and chown are blocking; keep the event loop free for /healthz.
        return await asyncio.to_thread(
            self._mirror_sync, Path(repo_path), Path(data_dir), selection, owner_id
        )

    def _mirror_sync(
        self,
        repo_path: Path,
        data_dir: Path,
        selection: DirectorySelection,
        owner_id: int | None,
    ) -> list[Path]:
        existing: list[str] = []
        for name in selection:
            src = repo_path / name
            if not src.is_dir():
                self._log.warning("mirror_source_missing", directory=name, path=str(src))
                continue
            existing.append(name)

        if not existing:
            raise DirectoryMirrorError("no configured directories found in repo")

        try:
            data_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryMirrorError(f"ensure data dir: {exc}") from exc

        copied: list[Path] = []
        for name in existing:
            dst = data_dir / name
            try:
                copy_tree(repo_path / name, dst)
            except (OSError, shutil.Error) as exc:
                raise DirectoryMirrorError(f"copy {name}: {exc}") from exc
            self._log.info("mirror_directory_copied", directory=name, destination=str(dst))
            copied.append(dst)

        if owner_id is not None:
            if chown_supported():
                for dst in copied:
                    try:
                        chown_recursive(dst, owner_id)
                    except OSError as exc:
                        raise DirectoryMirrorError(f"chown {dst}: {exc}") from exc
                self._log.info("mirror_ownership_set", owner_id=owner_id, directories=len(copied))
            else:
                self._log.warning("mirror_chown_unsupported", owner_id=owner_id)

        self._log.info("mirror_completed", directories=existing, outcome="ok")
        return copied


def copy_tree(src: Path, dst: Path) -> None:
    """Remove *dst* entirely, then recreate it from *src* keeping mode bits."""
    if dst.is_symlink() or dst.is_file():
        dst.unlink()
    elif dst.exists():
        shutil.rmtree(dst)
    # shutil.copy carries permission bits but not timestamps
    shutil.copytree(src, dst, symlinks=True, copy_function=shutil.copy)


def chown_recursive(root: Path, uid: int) -> None:
    """Set user and group of *root* and everything beneath it to *uid*."""
    os.chown(root, uid, uid, follow_symlinks=False)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in (*dirnames, *filenames):
            os.chown(os.path.join(dirpath, name), uid, uid, follow_symlinks=False)
