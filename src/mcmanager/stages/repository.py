"""Repository sync: shallow clone on first run, forced pull afterwards.

Git is driven through its CLI. Nothing here retries or rolls back; a
failed clone or pull leaves the working copy as git left it.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from mcmanager.errors import RepositorySyncError
from mcmanager.logging import get_logger
from mcmanager.models import SyncOutcome

log = get_logger("mcmanager.stages.repository")

REMOTE_NAME = "origin"

# Never block on a credential prompt; a missing credential is a sync failure.
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class GitRepositorySyncer:
    """Keeps a local working copy in step with one remote branch."""

    def __init__(
        self,
        git_binary: str = "git",
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._git = git_binary
        self._log = (logger or log).bind(stage="repository_sync")

    async def sync(self, path: Path, url: str, branch: str) -> SyncOutcome:
        path = Path(path)
        if not path.exists():
            return await self._clone(path, url, branch)
        return await self._pull(path, branch)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _clone(self, path: Path, url: str, branch: str) -> SyncOutcome:
        self._log.info("repo_clone_started", url=url, path=str(path), branch=branch)
        await self._run_git(
            "clone",
            "--depth",
            "1",
            "--single-branch",
            "--branch",
            branch,
            url,
            str(path),
        )
        self._log.info("repo_clone_completed", path=str(path), outcome=SyncOutcome.CLONED.value)
        return SyncOutcome.CLONED

    async def _pull(self, path: Path, branch: str) -> SyncOutcome:
        toplevel = await self._run_git("rev-parse", "--show-toplevel", cwd=path, action="open repo")
        worktree = Path(toplevel.strip())
        # rev-parse walks up to any enclosing checkout; only path itself may be synced.
        if worktree.resolve() != path.resolve():
            self._log.warning(
                "repo_path_not_a_repository", path=str(path), enclosing=str(worktree)
            )
            raise RepositorySyncError(
                f"open repo: {path} is not a repository root (inside {worktree})"
            )

        self._log.info("repo_pull_started", path=str(worktree), branch=branch)
        await self._run_git(
            "fetch", "--depth", "1", REMOTE_NAME, branch, cwd=worktree, action="fetch"
        )

        head = await self._rev_parse(worktree, "HEAD")
        fetched = await self._rev_parse(worktree, "FETCH_HEAD")
        if head == fetched:
            self._log.info(
                "repo_already_up_to_date", sha=head[:12], outcome=SyncOutcome.UP_TO_DATE.value
            )
            return SyncOutcome.UP_TO_DATE

        # Local edits to tracked files are discarded in favour of the remote.
        await self._run_git(
            "checkout", "--force", "-B", branch, "FETCH_HEAD", cwd=worktree, action="checkout"
        )
        self._log.info(
            "repo_pull_completed",
            previous_sha=head[:12],
            new_sha=fetched[:12],
            outcome=SyncOutcome.UPDATED.value,
        )
        return SyncOutcome.UPDATED

    async def _rev_parse(self, worktree: Path, ref: str) -> str:
        out = await self._run_git("rev-parse", ref, cwd=worktree, action=f"resolve {ref}")
        return out.strip()

    async def _run_git(self, *args: str, cwd: Path | None = None, action: str | None = None) -> str:
        """Run a git command and return stdout, raising on non-zero exit."""
        action = action or args[0]
        try:
            proc = await asyncio.create_subprocess_exec(
                self._git,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env={**os.environ, **_GIT_ENV},
            )
            stdout, stderr = await proc.communicate()
        except OSError as exc:
            raise RepositorySyncError(f"{action}: {exc}") from exc

        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip()[:500]
            self._log.warning(
                "git_command_failed", command=args[0], returncode=proc.returncode, stderr=message
            )
            raise RepositorySyncError(f"{action}: git exited with {proc.returncode}: {message}")

        return stdout.decode(errors="replace")
