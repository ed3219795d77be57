"""Exception hierarchy and exit codes for Otto.

Two kinds of failure exist. Setup errors (not inside a repository, missing
credential) abort the command immediately. Step failures abort the remaining
steps of the release pipeline.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes used by the CLI."""

    OK = 0
    STEP_FAILED = 1
    SETUP_ERROR = 2


class OttoError(Exception):
    """Base class for all errors raised by Otto."""


class SetupError(OttoError):
    """A precondition of the whole command does not hold."""


class NotARepositoryError(SetupError, ValueError):
    """The working directory is not inside a git work tree."""


class MissingCredentialError(SetupError):
    """A required credential is absent from the environment."""


class GitError(OttoError, RuntimeError):
    """A git command exited with a non-zero status.

    Attributes:
        args_used (list[str]): The git arguments that were run.
        stderr (str): The command's error output.
    """

    def __init__(self, args_used: list[str], stderr: str):
        self.args_used = args_used
        self.stderr = stderr.strip()
        super().__init__(f"Git error: {self.stderr or ' '.join(args_used)}")


class PackageManagerError(OttoError, RuntimeError):
    """A package manager command exited with a non-zero status."""


class AIError(OttoError, RuntimeError):
    """The commit message generator failed to produce a suggestion."""


class StepFailure(OttoError):
    """A release pipeline step failed; remaining steps are skipped.

    Attributes:
        step (str): The name of the failed step.
        cause (Exception): The underlying error.
    """

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"{step} failed: {cause}")
