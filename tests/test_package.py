import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from otto.errors import PackageManagerError
from otto.package import PackageManager


def test_detect_prefers_pnpm_lockfile(tmp_path: Path) -> None:
    assert PackageManager.detect(tmp_path).name == "npm"

    (tmp_path / "pnpm-lock.yaml").write_text("lockfileVersion: '9.0'\n")
    assert PackageManager.detect(tmp_path).name == "pnpm"

    assert PackageManager.detect(tmp_path, override="npm").name == "npm"


def test_build_script_detection(tmp_path: Path) -> None:
    pm = PackageManager("npm", tmp_path)
    assert pm.has_build_script() is False

    (tmp_path / "package.json").write_text("{ not json")
    assert pm.has_build_script() is False

    (tmp_path / "package.json").write_text(
        json.dumps({"scripts": {"build": "vite build", "test": "vitest"}})
    )
    assert pm.has_build_script() is True


def test_commands(mocker: MagicMock, tmp_path: Path) -> None:
    mock_run = mocker.patch(
        "subprocess.run", return_value=MagicMock(stdout="v1.2.4\n")
    )
    pm = PackageManager("pnpm", tmp_path)

    pm.install()
    pm.build()
    version = pm.bump_version("minor")

    assert version == "v1.2.4"
    assert [c.args[0] for c in mock_run.call_args_list] == [
        ["pnpm", "install"],
        ["pnpm", "run", "build"],
        ["pnpm", "version", "minor"],
    ]
    assert mock_run.call_args.kwargs["cwd"] == tmp_path


def test_command_failure(mocker: MagicMock, tmp_path: Path) -> None:
    mocker.patch(
        "subprocess.run",
        side_effect=subprocess.CalledProcessError(
            1, ["npm", "install"], stderr="npm ERR! ERESOLVE\n"
        ),
    )

    with pytest.raises(PackageManagerError, match="npm install failed: npm ERR! ERESOLVE"):
        PackageManager("npm", tmp_path).install()


def test_missing_executable(mocker: MagicMock, tmp_path: Path) -> None:
    mocker.patch("subprocess.run", side_effect=FileNotFoundError("pnpm"))

    with pytest.raises(PackageManagerError, match="pnpm is not installed"):
        PackageManager("pnpm", tmp_path).install()


def test_unrunnable_executable(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that OS errors other than a missing binary stay domain errors."""
    mocker.patch(
        "subprocess.run", side_effect=PermissionError(13, "Permission denied", "npm")
    )

    with pytest.raises(PackageManagerError, match="Could not run npm"):
        PackageManager("npm", tmp_path).install()
