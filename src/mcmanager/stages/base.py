"""Capability interfaces for the pipeline stages.

The coordinator depends only on these protocols; the production
implementations live in the sibling modules and tests substitute their own.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from mcmanager.models import DirectorySelection, SyncOutcome


@runtime_checkable
class RepositorySyncer(Protocol):
    async def sync(self, path: Path, url: str, branch: str) -> SyncOutcome:
        """Bring *path* up to date with *branch* of *url*.

        Raises ``RepositorySyncError`` on failure.
        """
        ...


@runtime_checkable
class AssetFetcher(Protocol):
    async def fetch(self, repo_path: Path) -> None:
        """Run the asset fetch step. Raises ``AssetFetchError`` on failure."""
        ...


@runtime_checkable
class DirectoryMirror(Protocol):
    async def mirror(
        self,
        repo_path: Path,
        data_dir: Path,
        selection: DirectorySelection,
        owner_id: int | None = None,
    ) -> list[Path]:
        """Replace each selected directory under *data_dir*.

        Returns the destinations written. Raises ``DirectoryMirrorError``.
        """
        ...


@runtime_checkable
class RestartAnnouncer(Protocol):
    async def announce_restart(self) -> None:
        """Warn players, count down and restart. Raises ``RestartError``."""
        ...
