import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import (
    APP_NAME,
    AUTO_STASH_MESSAGE,
    DEFAULT_BRANCH_CANDIDATES,
    DEFAULT_REMOTE,
    FALLBACK_BRANCH,
    RESET_MODES,
    UNKNOWN_USER,
)
from .errors import GitError, NotARepositoryError

logger = logging.getLogger(APP_NAME)

LOG_FORMAT = "%h|%an|%ar|%s"
"""str: `git log` pretty format parsed by `parse_log_line` (subject last)."""

INFO_FORMAT = "%h|%ar|%s"
"""str: `git log -1` pretty format parsed by `parse_info_line`."""


@dataclass(frozen=True)
class CommitRecord:
    """A single entry of `git log`.

    Attributes:
        hash (str): The abbreviated commit hash.
        author (str): The author name.
        relative_time (str): When the commit was made (e.g., '2 hours ago').
        subject (str): The first line of the commit message.
    """

    hash: str
    author: str
    relative_time: str
    subject: str


@dataclass(frozen=True)
class CommitInfo:
    """Summary of the commit a ref points to."""

    hash: str
    relative_time: str
    subject: str


@dataclass(frozen=True)
class StashEntry:
    """A single entry of `git stash list`.

    Attributes:
        ref (str): The stash reference (e.g., 'stash@{0}').
        message (str): The text after the reference (e.g., 'On main: WIP').
    """

    ref: str
    message: str


def parse_log_line(line: str) -> CommitRecord | None:
    """Parses one `hash|author|time|subject` line.

    The subject is the last field so it may itself contain '|'.

    Returns:
        CommitRecord | None: The parsed record, or None for malformed lines.
    """
    parts = line.split("|", 3)
    if len(parts) != 4:
        return None
    return CommitRecord(*parts)


def parse_info_line(line: str) -> CommitInfo | None:
    """Parses one `hash|time|subject` line."""
    parts = line.split("|", 2)
    if len(parts) != 3:
        return None
    return CommitInfo(*parts)


def parse_stash_line(line: str) -> StashEntry | None:
    """Parses one `stash@{n}: message` line."""
    ref, sep, message = line.partition(":")
    if not sep or not ref:
        return None
    return StashEntry(ref=ref, message=message.strip())


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Read queries never change repository state. Mutations either succeed or raise
    `GitError` carrying git's error output; none of them retries.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): Any path inside the work tree.

        Raises:
            NotARepositoryError: If the path is not inside a git work tree.
        """
        try:
            res = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=path,
                capture_output=True,
                text=True,
                check=True,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise NotARepositoryError(f"Not a git repository: {path}") from e
        self.path = Path(res.stdout.strip() or path)

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            GitError: If the git command returns a non-zero exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise GitError(args, e.stderr or str(e)) from e

    def _try(self, args: list[str]) -> str:
        """Runs a read-only query, returning an empty string on failure."""
        try:
            return self._run(args)
        except GitError as e:
            logger.debug(f"git {' '.join(args)} failed: {e}")
            return ""

    # --- Read queries ---

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch.

        Returns:
            str: The branch name, `detached@<sha>` on a detached HEAD, or
                 `unborn` in a repository without commits.
        """
        if branch := self._try(["symbolic-ref", "--short", "-q", "HEAD"]):
            return branch
        if sha := self._try(["rev-parse", "--short", "HEAD"]):
            return f"detached@{sha}"
        return "unborn"

    def default_branch(self, remote: str = DEFAULT_REMOTE) -> str:
        """Finds the remote default branch.

        Returns:
            str: `<remote>/main`, then `<remote>/master`, else plain `main`.
        """
        for name in DEFAULT_BRANCH_CANDIDATES:
            ref = f"{remote}/{name}"
            if self.rev_parse(ref):
                return ref
        return FALLBACK_BRANCH

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        return self._try(["rev-parse", "--verify", "--quiet", rev]) or None

    def commit_info(self, ref: str) -> CommitInfo | None:
        """Returns the hash, relative time and subject of the commit `ref` names."""
        out = self._try(["log", "-1", f"--format={INFO_FORMAT}", ref])
        return parse_info_line(out) if out else None

    def commits_behind(self, target: str) -> int:
        """Counts commits reachable from `target` but not from HEAD."""
        try:
            return int(self._try(["rev-list", "--count", f"HEAD..{target}"]) or 0)
        except ValueError:
            return 0

    def upstream_behind_count(self) -> int:
        """Counts commits the configured upstream has that HEAD does not."""
        return self.commits_behind("@{u}")

    def log(self, limit: int = 10) -> list[CommitRecord]:
        """Returns the most recent commits, newest first."""
        out = self._try(["log", "-n", str(limit), f"--pretty=format:{LOG_FORMAT}"])
        records = [parse_log_line(line) for line in out.splitlines()]
        return [r for r in records if r]

    def stash_list(self) -> list[StashEntry]:
        """Returns the stash entries, newest first."""
        out = self._try(["stash", "list"])
        entries = [parse_stash_line(line) for line in out.splitlines()]
        return [e for e in entries if e]

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status lines."""
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []

    def is_dirty(self) -> bool:
        """Whether the working tree or index has any change (untracked included)."""
        return bool(self.status_porcelain())

    def user_name(self) -> str:
        """The configured `user.name`, or a placeholder."""
        return self._try(["config", "user.name"]) or UNKNOWN_USER

    def staged_diff(self) -> str:
        """The full patch of the index against HEAD."""
        return self._run(["diff", "--cached"])

    def staged_diff_stat(self) -> str:
        """The `--stat` summary of the index against HEAD."""
        return self._run(["diff", "--cached", "--stat"])

    def list_branches(self) -> list[str]:
        """Lists local branch names."""
        out = self._try(["branch", "--format=%(refname:short)"])
        return [b.strip() for b in out.splitlines() if b.strip()]

    def list_tags(self) -> list[str]:
        """Lists all tag names."""
        out = self._try(["tag", "--list"])
        return [t.strip() for t in out.splitlines() if t.strip()]

    def remote_url(self, remote: str = DEFAULT_REMOTE) -> str | None:
        """The fetch URL of `remote`, if configured."""
        return self._try(["config", "--get", f"remote.{remote}.url"]) or None

    def remote_branch_exists(self, branch: str, remote: str = DEFAULT_REMOTE) -> bool:
        """Asks the remote whether `branch` exists there."""
        return bool(self._run(["ls-remote", "--heads", remote, branch]))

    # --- Mutations ---

    def stash_push(self, message: str) -> bool:
        """Stashes all local changes, untracked files included, under `message`.

        Returns:
            bool: True if a new stash entry was created. Git exits successfully
                  without stashing when there is nothing to save.
        """
        before = self.rev_parse("refs/stash")
        self._run(["stash", "push", "--include-untracked", "-m", message])
        return self.rev_parse("refs/stash") != before

    def stash_pop(self, ref: str | None = None) -> None:
        """Applies and drops a stash (the newest one by default).

        Raises:
            GitError: If the pop fails, typically because of conflicts.
        """
        cmd = ["stash", "pop"]
        if ref:
            cmd.append(ref)
        self._run(cmd)

    def auto_stash(self) -> bool:
        """Stashes local changes only when the tree is dirty.

        Returns:
            bool: True if a stash entry was created by this call.
        """
        if not self.is_dirty():
            return False
        return self.stash_push(AUTO_STASH_MESSAGE)

    def checkout(self, branch: str) -> None:
        """Checks out an existing branch."""
        self._run(["checkout", branch])

    def create_branch(self, name: str) -> None:
        """Creates a branch from HEAD and checks it out."""
        self._run(["checkout", "-b", name])

    def reset(self, mode: str, target: str) -> None:
        """Moves the current branch to `target`.

        Args:
            mode (str): One of 'soft', 'mixed' or 'hard'.
            target (str): The commit to reset to.
        """
        if mode not in RESET_MODES:
            raise ValueError(f"Invalid reset mode '{mode}'")
        self._run(["reset", f"--{mode}", target])

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "."])

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message."""
        self._run(["commit", "-m", message])

    def delete_tag(self, tag: str) -> None:
        """Deletes a local tag."""
        self._run(["tag", "-d", tag])

    def fetch(self, remote: str = DEFAULT_REMOTE, branch: str | None = None) -> None:
        """Fetches from `remote`, optionally a single branch."""
        cmd = ["fetch", remote]
        if branch:
            cmd.append(branch)
        self._run(cmd)

    def pull(self, remote: str, branch: str) -> None:
        """Pulls `branch` from `remote` into the current branch."""
        self._run(["pull", remote, branch])

    def push(
        self, remote: str = DEFAULT_REMOTE, force: bool = False, tags: bool = True
    ) -> None:
        """Pushes HEAD to the same-named branch on `remote`.

        Args:
            remote (str): The remote to push to.
            force (bool): Overwrite the remote branch.
            tags (bool): Push tags as well.
        """
        cmd = ["push", remote, "HEAD"]
        if force:
            cmd.append("--force")
        if tags:
            cmd.append("--tags")
        self._run(cmd)

    def set_upstream(self, branch: str, remote: str = DEFAULT_REMOTE) -> None:
        """Tracks `<remote>/<branch>` from the local `branch`."""
        self._run(["branch", f"--set-upstream-to={remote}/{branch}", branch])
