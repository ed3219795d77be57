"""Otto: an AI-assisted release and everyday git workflow CLI.

This package provides the command-line interface, the git and package-manager
facades, and the release pipeline that builds, commits, bumps and pushes a
project with a single compensating rollback.
"""

from . import (
    ai,
    cli,
    config,
    constants,
    errors,
    git_wrapper,
    ops,
    package,
    prompts,
    release,
    webhook,
)

__all__ = [
    "ai",
    "cli",
    "config",
    "constants",
    "errors",
    "git_wrapper",
    "ops",
    "package",
    "prompts",
    "release",
    "webhook",
]
