"""Optional asset fetch step: ``plugins/download.sh`` inside the repository."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from mcmanager.errors import AssetFetchError
from mcmanager.logging import get_logger

log = get_logger("mcmanager.stages.assets")

FETCH_SCRIPT = Path("plugins") / "download.sh"


class ScriptAssetFetcher:
    """Runs the repository's download script with inherited stdout/stderr.

    The script's exit code is its only failure signal. There is no timeout,
    so a hung script holds the pipeline.
    """

    def __init__(
        self,
        shell: str = "bash",
        script: Path = FETCH_SCRIPT,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._shell = shell
        self._script = script
        self._log = (logger or log).bind(stage="asset_fetch")

    async def fetch(self, repo_path: Path) -> None:
        script_path = Path(repo_path) / self._script
        if not script_path.is_file():
            raise AssetFetchError(f"{self._script.as_posix()} missing: {script_path}")

        self._log.info("asset_fetch_started", script=str(script_path))
        try:
            # stdout/stderr left as None so the script writes to our streams
            proc = await asyncio.create_subprocess_exec(
                self._shell,
                str(script_path),
                cwd=script_path.parent,
            )
            returncode = await proc.wait()
        except OSError as exc:
            raise AssetFetchError(f"run {self._script.as_posix()}: {exc}") from exc

        if returncode != 0:
            self._log.warning("asset_fetch_failed", returncode=returncode, outcome="failed")
            raise AssetFetchError(
                f"run {self._script.as_posix()}: exited with status {returncode}"
            )

        self._log.info("asset_fetch_completed", outcome="ok")
