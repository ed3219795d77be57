import json
import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME
from .errors import PackageManagerError

logger = logging.getLogger(APP_NAME)


class PackageManager:
    """Runs the project's package manager (npm or pnpm) inside a repository.

    Attributes:
        name (str): The executable name ('npm' or 'pnpm').
        path (Path): The project root holding `package.json`.
    """

    def __init__(self, name: str, path: Path):
        self.name = name
        self.path = path

    @classmethod
    def detect(cls, path: Path, override: str | None = None) -> "PackageManager":
        """Chooses pnpm when a pnpm lockfile is present, npm otherwise.

        Args:
            path (Path): The project root.
            override (str | None): A configured manager name that wins over detection.
        """
        if override:
            return cls(override, path)
        if (path / "pnpm-lock.yaml").exists():
            return cls("pnpm", path)
        return cls("npm", path)

    def _run(self, args: list[str]) -> str:
        """Executes a package manager command, capturing its output.

        Raises:
            PackageManagerError: If the command is missing or exits non-zero.
        """
        cmd = [self.name, *args]
        logger.debug(f"Running {' '.join(cmd)} in {self.path}")
        try:
            res = subprocess.run(
                cmd, cwd=self.path, capture_output=True, text=True, check=True
            )
            return res.stdout.strip()
        except subprocess.CalledProcessError as e:
            raise PackageManagerError(
                f"{' '.join(cmd)} failed: {(e.stderr or str(e)).strip()}"
            ) from e
        except FileNotFoundError as e:
            raise PackageManagerError(f"{self.name} is not installed") from e
        except OSError as e:
            raise PackageManagerError(f"Could not run {self.name}: {e}") from e

    def scripts(self) -> dict:
        """Returns the `scripts` table of package.json (empty when unreadable)."""
        manifest = self.path / "package.json"
        try:
            data = json.loads(manifest.read_text())
        except (OSError, ValueError) as e:
            logger.debug(f"Could not read {manifest}: {e}")
            return {}
        scripts = data.get("scripts") if isinstance(data, dict) else None
        return scripts if isinstance(scripts, dict) else {}

    def has_build_script(self) -> bool:
        return bool(self.scripts().get("build"))

    def install(self) -> None:
        self._run(["install"])

    def build(self) -> None:
        self._run(["run", "build"])

    def bump_version(self, release_type: str) -> str:
        """Bumps the semantic version, committing and tagging it.

        Returns:
            str: The new version as printed by the package manager (e.g., 'v1.2.4').
        """
        return self._run(["version", release_type])
