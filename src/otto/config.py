import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, ClassVar

from dotenv import find_dotenv, load_dotenv

from .constants import (
    AI_KEY_ENV,
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_MODEL,
    DEFAULT_REMOTE,
    HISTORY_LIMIT,
    LOCAL_CONFIG_NAME,
    MAX_DIFF_CHARS,
    MODEL_ENV,
    WEBHOOK_ENVS,
)

logger = logging.getLogger(APP_NAME)

PACKAGE_MANAGERS = ("npm", "pnpm")


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '10s', '2m') to seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"ms": 0.001, "s": 1, "sec": 1, "m": 60, "min": 60}
    return num * multiplier[unit]


def parse_positive_int(value: Any) -> int:
    """Accepts positive integers only."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"Expected a positive integer, got '{value}'")
    return value


def parse_package_manager(value: Any) -> str:
    """Accepts one of the supported package manager names."""
    name = str(value).strip().lower()
    if name not in PACKAGE_MANAGERS:
        raise ValueError(f"Unsupported package manager '{value}'")
    return name


@dataclass(frozen=True)
class CoreConfig:
    """Core repository settings.

    Attributes:
        remote_name (str): The git remote releases are pushed to.
        history_limit (int): Number of commits offered by the rollback flow.
    """

    remote_name: str = DEFAULT_REMOTE
    history_limit: int = HISTORY_LIMIT


@dataclass(frozen=True)
class AIConfig:
    """Commit message generation settings.

    Attributes:
        api_key (str | None): The AI service credential (environment only).
        model (str): The chat model name.
        max_diff_chars (int): Characters of staged diff sent to the model.
        timeout (float): Seconds to wait for the completion request.
    """

    api_key: str | None = field(default=None, repr=False)
    model: str = DEFAULT_MODEL
    max_diff_chars: int = MAX_DIFF_CHARS
    timeout: float = 60.0


@dataclass(frozen=True)
class WebhookConfig:
    """Release report settings.

    Attributes:
        url (str | None): Where release reports are POSTed. Disabled when unset.
        timeout (float): Seconds to wait for the webhook to answer.
    """

    url: str | None = None
    timeout: float = 10.0


@dataclass(frozen=True)
class ReleaseConfig:
    """Release pipeline settings.

    Attributes:
        package_manager (str | None): Forces 'npm' or 'pnpm' instead of detection.
    """

    package_manager: str | None = None


_PARSERS = {
    "timeout": parse_time,
    "history_limit": parse_positive_int,
    "max_diff_chars": parse_positive_int,
    "package_manager": parse_package_manager,
}

# Keys that may only come from the environment.
_ENV_ONLY = {"api_key"}


@dataclass(frozen=True)
class Config:
    """Global configuration aggregator.

    Loaded once at startup and passed explicitly into each component.

    Attributes:
        core (CoreConfig): Repository settings.
        ai (AIConfig): Commit message generation settings.
        webhook (WebhookConfig): Release report settings.
        release (ReleaseConfig): Release pipeline settings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)

    # Cache for the base global configuration
    _global_cache: ClassVar["Config | None"] = None

    @property
    def ai_enabled(self) -> bool:
        return bool(self.ai.api_key)

    @property
    def webhook_enabled(self) -> bool:
        return bool(self.webhook.url)

    @classmethod
    def load(cls, repo_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, files and the environment.

        Args:
            repo_path (Path | None): The repository root to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance = instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        instance = cls._global_cache

        # 2. Load Local Config (if applicable)
        if repo_path:
            local_toml = repo_path / LOCAL_CONFIG_NAME
            pyproject = repo_path / "pyproject.toml"

            if local_toml.exists():
                instance = instance._merge_from_file(local_toml)
            elif pyproject.exists():
                instance = instance._merge_from_file(pyproject, section="tool.otto")

        # 3. Environment (a .env file never overrides the real environment)
        dotenv_path = repo_path / ".env" if repo_path else None
        if dotenv_path and dotenv_path.exists():
            load_dotenv(dotenv_path=dotenv_path, override=False)
        else:
            load_dotenv(find_dotenv(usecwd=True), override=False)

        return instance._merge_from_env()

    def _merge_from_env(self) -> "Config":
        """Applies credentials and overrides found in the process environment."""
        ai = self.ai
        if api_key := os.environ.get(AI_KEY_ENV):
            ai = replace(ai, api_key=api_key)
        if model := os.environ.get(MODEL_ENV):
            ai = replace(ai, model=model)

        webhook = self.webhook
        for name in WEBHOOK_ENVS:
            if url := os.environ.get(name):
                webhook = replace(webhook, url=url)
                break

        return replace(self, ai=ai, webhook=webhook)

    def _merge_from_file(self, path: Path, section: str | None = None) -> "Config":
        """Parses a TOML file and returns a copy with its values merged in.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated section path (e.g., 'tool.otto').

        Returns:
            Config: The merged configuration (unchanged on parse failure).
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if section:
                for key in section.split("."):
                    data = data.get(key, {})

            if not data:
                return self

            updates = {}
            for name in ("core", "ai", "webhook", "release"):
                if name in data:
                    updates[name] = self._update_dataclass(
                        name, getattr(self, name), data[name]
                    )

            unknown = set(data) - {"core", "ai", "webhook", "release"}
            if unknown:
                logger.warning(
                    f"Unknown config sections in {path.name}: {', '.join(sorted(unknown))}. Ignoring."
                )

            return replace(self, **updates)

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
        return self

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = set(instance.__dataclass_fields__.keys()) - _ENV_ONLY
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - valid_keys
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                parser = _PARSERS.get(k)
                filtered_updates[k] = parser(v) if parser else v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
