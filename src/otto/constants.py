import os
from pathlib import Path

"""Global constants and configuration path definitions for Otto.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the git and AI defaults used across the application.
"""

# --- Identity ---
APP_NAME = "otto"
"""str: The human-readable application name."""

APP_VERSION = "3.1.0"
"""str: The version reported by `otto --version`."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "otto"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "otto.log"
"""Path: The file path for the CLI log."""

MAX_LOG_SIZE = 1024 * 1024
"""int: Bytes written to the log file before it is rotated."""

# --- Configuration Paths ---
_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
CONFIG_DIR: Path = (
    Path(_XDG_CONFIG) / "otto" if _XDG_CONFIG else Path.home() / ".config/otto"
)
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "otto.toml"
"""str: The per-repository configuration file name."""

# --- Environment ---
AI_KEY_ENV = "OPENAI_API_KEY"
"""str: Environment variable holding the AI service credential."""

WEBHOOK_ENVS = ["OTTO_WEBHOOK_URL", "GOOGLE_SHEET_WEBHOOK_URL"]
"""list[str]: Environment variables checked (in order) for the webhook URL."""

MODEL_ENV = "OTTO_MODEL"
"""str: Environment variable overriding the AI model name."""

# --- Git / Logic Constants ---
DEFAULT_REMOTE = "origin"
"""str: The remote releases are pushed to and synced from."""

DEFAULT_BRANCH_CANDIDATES = ["main", "master"]
"""list[str]: Remote branches probed (in order) to find the default branch."""

FALLBACK_BRANCH = "main"
"""str: The default branch assumed when no remote candidate exists."""

AUTO_STASH_MESSAGE = "Otto Auto-Switch"
"""str: Stash message used when switching branches with a dirty tree."""

DEFAULT_STASH_MESSAGE = "Otto Stash"
"""str: Stash message used when the operator leaves the message blank."""

HISTORY_LIMIT = 15
"""int: Number of commits offered by the rollback flow."""

UNKNOWN_USER = "Ghost"
"""str: Display name used when `user.name` is not configured."""

RESET_MODES = ["soft", "mixed", "hard"]
"""list[str]: Modes accepted by `git reset`."""

RELEASE_TYPES = ["patch", "minor", "major", "none"]
"""list[str]: Release types; 'none' skips the version bump."""

PUSH_MODES = ["safe", "force"]
"""list[str]: Push modes; 'force' overwrites the remote."""

# --- AI ---
DEFAULT_MODEL = "gpt-4o-mini"
"""str: The chat model used for commit message generation."""

MAX_DIFF_CHARS = 15000
"""int: Characters of staged diff sent to the AI service."""

COMMIT_PROMPT = (
    'Analyze diff, return JSON with "msg" (conventional commit) '
    'and "desc" (technical summary):\n'
)
"""str: Instruction prepended to the staged diff."""

NO_COMMIT_MESSAGE = "Manual/No Commit"
"""str: Commit subject reported when the release had nothing to commit."""

NO_COMMIT_DESCRIPTION = "No changes"
"""str: Description reported when the release had nothing to commit."""
