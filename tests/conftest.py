"""Shared fixtures for the mcmanager test suite."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from mcmanager.models import PipelineConfig

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

_GIT_IDENTITY = ["-c", "user.name=tester", "-c", "user.email=tester@example.com"]


def git(*args: str, cwd: Path) -> str:
    """Run git in *cwd* with a fixed identity and return stdout."""
    proc = subprocess.run(
        ["git", *_GIT_IDENTITY, *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return proc.stdout


CommitFiles = Callable[[dict[str, str], str], str]


@pytest.fixture()
def origin_repo(tmp_path: Path) -> Path:
    """An initialized repository on branch ``main`` with one commit."""
    origin = tmp_path / "origin"
    origin.mkdir()
    git("init", cwd=origin)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=origin)
    (origin / "README.md").write_text("hello")
    git("add", "README.md", cwd=origin)
    git("commit", "-m", "initial", cwd=origin)
    return origin


@pytest.fixture()
def commit_files(origin_repo: Path) -> CommitFiles:
    """Write files into the origin repo, commit them and return the new sha."""

    def _commit(files: dict[str, str], message: str = "update") -> str:
        for rel, content in files.items():
            target = origin_repo / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        git("add", "--all", cwd=origin_repo)
        git("commit", "-m", message, cwd=origin_repo)
        return git("rev-parse", "HEAD", cwd=origin_repo).strip()

    return _commit


@pytest.fixture()
def pipeline_config(tmp_path: Path) -> PipelineConfig:
    """A config pointing at throwaway paths and a fake RCON endpoint."""
    return PipelineConfig(
        repo_url="https://example.invalid/content.git",
        repo_path=tmp_path / "repo",
        data_dir=tmp_path / "data",
        rcon_host="127.0.0.1",
        rcon_port=25575,
        rcon_password="rcon-secret",
        copy_dirs="world,plugins",
        countdown_wait=0,
    )
