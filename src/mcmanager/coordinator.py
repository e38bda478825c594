"""Update coordinator: serializes triggers and sequences the pipeline stages.

Lifecycle of one trigger:
1. Check the shared secret (no side effects when it does not match)
2. Acquire the run lock; concurrent triggers wait their turn
3. Sync the repository
4. Run the asset fetch script, when enabled
5. Mirror the selected directories into the data directory
6. Launch the restart countdown as a detached task and release the lock

Two scheduling domains are involved. The *sync domain* (steps 3 to 5) is
guarded by the lock. The *restart domain* is a set of detached tasks that
no lock covers: by default the lock is released as soon as the restart task
is launched, so a new sync may start while an earlier countdown is still
running against the same server. ``restart_gates_sync`` closes that gap by
making each sync wait for in-flight restarts first.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from mcmanager.auth import validate_secret
from mcmanager.errors import STAGE_ERRORS, AuthorizationError, RestartError, Stage, StageError
from mcmanager.locale import Messages, select_messages
from mcmanager.logging import get_logger
from mcmanager.models import (
    PipelineConfig,
    PipelineRun,
    StageOutcome,
    StageResult,
    TriggerResult,
    TriggerStatus,
)
from mcmanager.stages.assets import ScriptAssetFetcher
from mcmanager.stages.base import AssetFetcher, DirectoryMirror, RepositorySyncer, RestartAnnouncer
from mcmanager.stages.mirror import FilesystemDirectoryMirror, resolve_directories
from mcmanager.stages.repository import GitRepositorySyncer
from mcmanager.stages.restart import RconRestartAnnouncer

log = get_logger("mcmanager.coordinator")


class UpdateCoordinator:
    """Runs update pipelines one at a time and schedules restarts."""

    def __init__(
        self,
        config: PipelineConfig,
        syncer: RepositorySyncer | None = None,
        fetcher: AssetFetcher | None = None,
        mirror: DirectoryMirror | None = None,
        announcer: RestartAnnouncer | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._config = config
        self._messages = select_messages(config.locale)
        self._log = logger or log

        self._syncer = syncer or GitRepositorySyncer(logger=self._log)
        self._fetcher = fetcher or ScriptAssetFetcher(logger=self._log)
        self._mirror = mirror or FilesystemDirectoryMirror(logger=self._log)
        self._announcer = announcer or RconRestartAnnouncer.from_config(
            config, self._messages, logger=self._log
        )

        self._lock = asyncio.Lock()
        self._restart_tasks: set[asyncio.Task[None]] = set()
        self._current_stage: Stage | None = None
        self._last_result: TriggerResult | None = None
        self._last_restart_error: str | None = None
        self._restarts_completed = 0

    # ------------------------------------------------------------------
    # Public status surface
    # ------------------------------------------------------------------

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def messages(self) -> Messages:
        return self._messages

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @property
    def restart_in_progress(self) -> bool:
        return any(not task.done() for task in self._restart_tasks)

    @property
    def last_restart_error(self) -> str | None:
        return self._last_restart_error

    def is_authorized(self, credential: str | None) -> bool:
        """True when no secret is configured or *credential* matches it."""
        if not self._config.secret_token:
            return True
        return validate_secret(credential, self._config.secret_token)

    def status_snapshot(self) -> dict[str, Any]:
        """Return runtime status fields for the operator endpoint."""
        return {
            "busy": self.is_busy,
            "current_stage": self._current_stage.value if self._current_stage else None,
            "restart_in_progress": self.restart_in_progress,
            "restarts_completed": self._restarts_completed,
            "last_restart_error": self._last_restart_error,
            "last_result": self._last_result.to_dict() if self._last_result else None,
        }

    # ------------------------------------------------------------------
    # Primary flow
    # ------------------------------------------------------------------

    async def trigger(
        self, credential: str | None = None, *, remote: str | None = None
    ) -> TriggerResult:
        """Run the synchronous stages and schedule the restart.

        Returns once the restart has been *launched*, not once it finishes.
        """
        try:
            self._authorize(credential)
        except AuthorizationError:
            self._log.warning("update_unauthorized", remote=remote)
            return TriggerResult(status=TriggerStatus.UNAUTHORIZED)

        async with self._lock:
            run = PipelineRun()
            run_log = self._log.bind(run_id=run.run_id, remote=remote)
            run_log.info("update_received")

            if self._config.restart_gates_sync:
                await self._wait_for_restarts(run_log)

            try:
                await self._run_pipeline(run, run_log)
            except StageError as exc:
                result = TriggerResult(
                    status=TriggerStatus.STAGE_FAILED,
                    stage=exc.stage,
                    detail=exc.detail,
                    run_id=run.run_id,
                    stages=list(run.results),
                    restart_launched=run.restart_launched,
                )
                run_log.error("update_failed", failed_stage=exc.stage.value, error=exc.detail)
                self._last_result = result
                return result
            finally:
                self._current_stage = None

            self._launch_restart(run, run_log)
            result = TriggerResult(
                status=TriggerStatus.ACCEPTED,
                run_id=run.run_id,
                stages=list(run.results),
                restart_launched=run.restart_launched,
            )
            run_log.info(
                "update_applied",
                steps_completed=run.steps_completed,
                restart_launched=run.restart_launched,
            )
            self._last_result = result
            return result

    async def aclose(self) -> None:
        """Wait for detached restarts to finish. Nothing is cancelled."""
        if self._restart_tasks:
            await asyncio.gather(*self._restart_tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Sync domain
    # ------------------------------------------------------------------

    def _authorize(self, credential: str | None) -> None:
        if not self.is_authorized(credential):
            raise AuthorizationError("credential mismatch")

    async def _run_pipeline(self, run: PipelineRun, run_log: structlog.stdlib.BoundLogger) -> None:
        config = self._config

        await self._run_stage(
            run,
            Stage.REPOSITORY_SYNC,
            lambda: self._syncer.sync(config.repo_path, config.repo_url, config.repo_branch),
            run_log,
        )

        if config.plugins_download:
            await self._run_stage(
                run, Stage.ASSET_FETCH, lambda: self._fetcher.fetch(config.repo_path), run_log
            )
        else:
            run.record(StageResult(Stage.ASSET_FETCH, StageOutcome.SKIPPED, "disabled"))

        selection = resolve_directories(config.copy_dirs, config.skip_dirs)
        await self._run_stage(
            run,
            Stage.DIRECTORY_MIRROR,
            lambda: self._mirror.mirror(
                config.repo_path, config.data_dir, selection, config.plugins_uid
            ),
            run_log,
        )

    async def _run_stage(
        self,
        run: PipelineRun,
        stage: Stage,
        action: Callable[[], Awaitable[Any]],
        run_log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Run one stage, recording its result. Any failure becomes a ``StageError``."""
        self._current_stage = stage
        start = time.monotonic()
        try:
            outcome = await action()
        except StageError as exc:
            exc.stage = stage
            run.record(self._result(stage, StageOutcome.FAILED, exc.detail, start))
            raise
        except Exception as exc:
            run_log.exception("stage_unexpected_error", stage=stage.value)
            run.record(self._result(stage, StageOutcome.FAILED, str(exc), start))
            raise STAGE_ERRORS[stage](f"unexpected error: {exc}") from exc

        detail = str(outcome) if isinstance(outcome, str) else ""
        run.record(self._result(stage, StageOutcome.OK, detail, start))
        run_log.info("stage_completed", stage=stage.value, outcome=StageOutcome.OK.value)

    @staticmethod
    def _result(stage: Stage, outcome: StageOutcome, detail: str, start: float) -> StageResult:
        return StageResult(stage, outcome, detail, round(time.monotonic() - start, 3))

    async def _wait_for_restarts(self, run_log: structlog.stdlib.BoundLogger) -> None:
        pending = [task for task in self._restart_tasks if not task.done()]
        if pending:
            run_log.info("update_waiting_for_restart", pending=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Restart domain
    # ------------------------------------------------------------------

    def _launch_restart(self, run: PipelineRun, run_log: structlog.stdlib.BoundLogger) -> None:
        task = asyncio.create_task(self._run_restart(run_log), name=f"restart-{run.run_id}")
        self._restart_tasks.add(task)
        task.add_done_callback(self._restart_tasks.discard)
        run.restart_launched = True
        run_log.info("restart_scheduled")

    async def _run_restart(self, run_log: structlog.stdlib.BoundLogger) -> None:
        """Body of the detached task. Failures are recorded, never raised."""
        try:
            await self._announcer.announce_restart()
        except RestartError as exc:
            self._last_restart_error = str(exc)
            run_log.error("restart_failed", step=exc.step, error=exc.detail)
            return
        except Exception as exc:
            self._last_restart_error = f"unexpected error: {exc}"
            run_log.exception("restart_failed_unexpected")
            return

        self._restarts_completed += 1
        self._last_restart_error = None
        run_log.info("restart_completed")
