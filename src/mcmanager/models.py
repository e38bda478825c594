"""Data structures shared by the pipeline stages and the HTTP surface."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcmanager.errors import Stage

if TYPE_CHECKING:
    from mcmanager.config import Settings


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class PipelineConfig:
    """Everything a pipeline run needs, fixed for the coordinator's lifetime."""

    repo_url: str
    repo_path: Path
    data_dir: Path
    rcon_host: str
    rcon_port: int
    rcon_password: str = field(repr=False)
    repo_branch: str = "main"
    copy_dirs: str = "plugins,bedwars_worlds"
    skip_dirs: str = ""
    plugins_download: bool = False
    plugins_uid: int | None = None
    restart_command: str = "restart"
    countdown_wait: float = 50
    locale: str = "en"
    secret_token: str | None = field(default=None, repr=False)
    restart_gates_sync: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        token = settings.secret_token.get_secret_value() if settings.secret_token else None
        return cls(
            repo_url=settings.repo_url,
            repo_branch=settings.repo_branch,
            repo_path=settings.repo_path,
            data_dir=settings.data_dir,
            copy_dirs=settings.copy_dirs,
            skip_dirs=settings.skip_dirs,
            plugins_download=settings.plugins_download,
            plugins_uid=settings.plugins_uid,
            rcon_host=settings.rcon_host,
            rcon_port=settings.rcon_port,
            rcon_password=settings.rcon_password.get_secret_value(),
            restart_command=settings.rcon_restart_command,
            countdown_wait=settings.countdown_wait,
            locale=settings.locale,
            secret_token=token or None,
            restart_gates_sync=settings.restart_gates_sync,
        )


@dataclass(frozen=True)
class DirectorySelection:
    """Ordered, duplicate-free directory names to mirror."""

    names: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __bool__(self) -> bool:
        return bool(self.names)


class SyncOutcome(StrEnum):
    """How the repository sync succeeded."""

    CLONED = "cloned"
    UPDATED = "updated"
    UP_TO_DATE = "up_to_date"


class StageOutcome(StrEnum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StageResult:
    """Outcome of one synchronous stage."""

    stage: Stage
    outcome: StageOutcome
    detail: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "outcome": self.outcome.value,
            "detail": self.detail,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class PipelineRun:
    """Transient state of a single accepted trigger."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    results: list[StageResult] = field(default_factory=list)
    restart_launched: bool = False

    def record(self, result: StageResult) -> None:
        self.results.append(result)

    @property
    def steps_completed(self) -> list[str]:
        return [r.stage.value for r in self.results if r.outcome is StageOutcome.OK]


class TriggerStatus(StrEnum):
    ACCEPTED = "accepted"
    UNAUTHORIZED = "unauthorized"
    STAGE_FAILED = "stage_failed"


@dataclass
class TriggerResult:
    """What the caller of ``UpdateCoordinator.trigger`` gets back."""

    status: TriggerStatus
    stage: Stage | None = None
    detail: str | None = None
    run_id: str | None = None
    stages: list[StageResult] = field(default_factory=list)
    restart_launched: bool = False
    completed_at: str = field(default_factory=_now_iso)

    @property
    def accepted(self) -> bool:
        return self.status is TriggerStatus.ACCEPTED

    @property
    def message(self) -> str:
        """Plain-text body for the HTTP response."""
        if self.status is TriggerStatus.ACCEPTED:
            return "update applied; restart scheduled"
        if self.status is TriggerStatus.UNAUTHORIZED:
            return "unauthorized"
        label = self.stage.label if self.stage else "update"
        return f"{label} failed: {self.detail}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "stage": self.stage.value if self.stage else None,
            "detail": self.detail,
            "run_id": self.run_id,
            "stages": [r.to_dict() for r in self.stages],
            "restart_launched": self.restart_launched,
            "completed_at": self.completed_at,
        }
