"""Shared fixtures for the Otto test suite."""

import os
import shutil
import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from otto.config import Config
from otto.constants import AI_KEY_ENV, MODEL_ENV, WEBHOOK_ENVS
from otto.git_wrapper import GitRepo


@pytest.fixture(autouse=True)
def isolated_config(
    tmp_path_factory: pytest.TempPathFactory,
    mocker: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> Any:
    """Keeps the user's config files, .env and credentials out of every test."""
    Config._global_cache = None
    mocker.patch(
        "otto.config.CONFIG_FILE", tmp_path_factory.mktemp("config") / "config.toml"
    )
    mocker.patch("otto.config.load_dotenv")
    for name in (AI_KEY_ENV, MODEL_ENV, *WEBHOOK_ENVS):
        monkeypatch.delenv(name, raising=False)
    yield
    Config._global_cache = None


@pytest.fixture
def fake_repo(tmp_path: Path) -> GitRepo:
    """A GitRepo whose constructor did not need a real repository.

    Tests patch `repo._run` to script git's answers.
    """
    with patch(
        "otto.git_wrapper.subprocess.run",
        return_value=MagicMock(stdout=f"{tmp_path}\n"),
    ):
        return GitRepo(tmp_path)


def git(cwd: Path, *args: str) -> str:
    """Runs a real git command for integration fixtures."""
    res = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return res.stdout.strip()


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A real repository on 'main' with one commit, pushed to a bare 'origin'."""
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    work.mkdir()

    git(tmp_path, "init", "--bare", str(remote))
    git(remote, "symbolic-ref", "HEAD", "refs/heads/main")
    git(work, "init")
    git(work, "symbolic-ref", "HEAD", "refs/heads/main")
    git(work, "config", "user.name", "Ada")
    git(work, "config", "user.email", "ada@example.com")
    git(work, "config", "commit.gpgsign", "false")
    git(work, "config", "tag.gpgsign", "false")

    (work / "README.md").write_text("hello\n")
    git(work, "add", ".")
    git(work, "commit", "-m", "initial")
    git(work, "remote", "add", "origin", str(remote))
    git(work, "push", "origin", "main")
    git(work, "fetch", "origin")
    return work


@pytest.fixture(autouse=True)
def _no_git_env_leak(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strips GIT_* variables that would point git at another repository."""
    for name in list(os.environ):
        if name.startswith("GIT_"):
            monkeypatch.delenv(name)
