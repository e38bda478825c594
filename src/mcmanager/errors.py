"""Exception hierarchy for the deployment agent."""

from __future__ import annotations

from enum import StrEnum


class Stage(StrEnum):
    """Pipeline stages, in execution order."""

    REPOSITORY_SYNC = "repository_sync"
    ASSET_FETCH = "asset_fetch"
    DIRECTORY_MIRROR = "directory_mirror"
    RESTART = "restart"

    @property
    def label(self) -> str:
        """Operator-facing name used in HTTP error bodies."""
        return _STAGE_LABELS[self]


_STAGE_LABELS: dict[Stage, str] = {
    Stage.REPOSITORY_SYNC: "repo sync",
    Stage.ASSET_FETCH: "plugin download",
    Stage.DIRECTORY_MIRROR: "data sync",
    Stage.RESTART: "restart",
}


class ManagerError(Exception):
    """Base class for all errors raised by mcmanager."""


class ConfigurationError(ManagerError):
    """A required setting is missing or invalid. Fatal at startup."""


class AuthorizationError(ManagerError):
    """The trigger credential did not match the configured secret."""


class StageError(ManagerError):
    """A synchronous pipeline stage failed."""

    stage: Stage

    def __init__(self, detail: str, stage: Stage | None = None) -> None:
        super().__init__(detail)
        if stage is not None:
            self.stage = stage
        self.detail = detail


class RepositorySyncError(StageError):
    stage = Stage.REPOSITORY_SYNC


class AssetFetchError(StageError):
    stage = Stage.ASSET_FETCH


class DirectoryMirrorError(StageError):
    stage = Stage.DIRECTORY_MIRROR


class RestartError(ManagerError):
    """The detached restart sequence failed at ``step``."""

    def __init__(self, step: str, detail: str) -> None:
        super().__init__(f"{step}: {detail}")
        self.step = step
        self.detail = detail


STAGE_ERRORS: dict[Stage, type[StageError]] = {
    Stage.REPOSITORY_SYNC: RepositorySyncError,
    Stage.ASSET_FETCH: AssetFetchError,
    Stage.DIRECTORY_MIRROR: DirectoryMirrorError,
}
