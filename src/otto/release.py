"""The release pipeline.

A release runs a fixed sequence of external commands:

    fetch -> install -> build -> stage -> commit -> version bump -> push -> report

Any failing step aborts the remaining ones. Only the version bump and push are
compensated: if either fails, the tags created by this run are deleted and the
branch is soft-reset to where it stood before the run committed anything, so
the released changes stay staged. The webhook report is best-effort.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from . import prompts
from .ai import CommitMessageGenerator, CommitSuggestion
from .config import Config
from .constants import (
    APP_NAME,
    NO_COMMIT_DESCRIPTION,
    NO_COMMIT_MESSAGE,
    PUSH_MODES,
    RELEASE_TYPES,
)
from .errors import OttoError, SetupError, StepFailure
from .git_wrapper import GitRepo
from .package import PackageManager
from .prompts import Choice, Option
from .webhook import ReleaseReport, send_report

logger = logging.getLogger(APP_NAME)

EditMessage = Callable[[CommitSuggestion], Choice[str]]


@dataclass(frozen=True)
class ReleaseOptions:
    """Release settings gathered from the operator.

    Attributes:
        release_type (str): 'patch', 'minor', 'major' or 'none' (no version bump).
        push_mode (str): 'safe' for a normal push, 'force' to overwrite the remote.
        confirmed (bool): Whether the operator agreed to start.
    """

    release_type: str
    push_mode: str = "safe"
    confirmed: bool = False

    def __post_init__(self) -> None:
        if self.release_type not in RELEASE_TYPES:
            raise ValueError(f"Invalid release type '{self.release_type}'")
        if self.push_mode not in PUSH_MODES:
            raise ValueError(f"Invalid push mode '{self.push_mode}'")

    @property
    def bumps_version(self) -> bool:
        return self.release_type != "none"

    @property
    def force(self) -> bool:
        return self.push_mode == "force"


@dataclass
class ReleaseOutcome:
    """What a single release run did."""

    committed: bool = False
    message: str = NO_COMMIT_MESSAGE
    description: str = NO_COMMIT_DESCRIPTION
    created_tags: list[str] = field(default_factory=list)
    pushed: bool = False
    rolled_back: bool = False
    reported: bool = False
    cancelled: bool = False


def gather_options() -> Choice[ReleaseOptions]:
    """Asks for the release type, push mode and a final confirmation."""
    release_type = prompts.select(
        "Release Type",
        [
            Option("patch", "Patch", "Fixes"),
            Option("minor", "Minor", "Features"),
            Option("major", "Major", "Breaking"),
            Option("none", "Snapshot", "No version bump"),
        ],
    )
    if release_type.cancelled:
        return Choice.cancel()

    push_mode = prompts.select(
        "Push Mode",
        [
            Option("safe", "Safe", "Standard push"),
            Option("force", "Force", "Overwrite remote"),
        ],
    )
    if push_mode.cancelled:
        return Choice.cancel()

    ok = prompts.confirm("Start Build & Release?")
    if ok.cancelled:
        return Choice.cancel()

    return Choice.of(
        ReleaseOptions(release_type.value, push_mode.value, confirmed=bool(ok.value))
    )


def edit_commit_message(suggestion: CommitSuggestion) -> Choice[str]:
    """Shows the AI summary and lets the operator edit the suggested subject."""
    prompts.note(prompts.wrap(suggestion.description, 60), "AI Summary")
    return prompts.text("Commit Message", default=suggestion.message)


class ReleasePipeline:
    """Runs one release against a repository.

    Attributes:
        repo (GitRepo): The repository being released.
        config (Config): The loaded configuration.
        package_manager (PackageManager): Runs install, build and version bump.
    """

    def __init__(
        self,
        repo: GitRepo,
        config: Config,
        package_manager: PackageManager | None = None,
        generator_factory: Callable[[], CommitMessageGenerator] | None = None,
        edit_message: EditMessage = edit_commit_message,
        reporter: Callable[..., bool] = send_report,
    ):
        self.repo = repo
        self.config = config
        self.package_manager = package_manager or PackageManager.detect(
            repo.path, config.release.package_manager
        )
        self._generator_factory = generator_factory or (
            lambda: CommitMessageGenerator(config.ai)
        )
        self._edit_message = edit_message
        self._reporter = reporter
        self._base: str | None = None

    @property
    def remote(self) -> str:
        return self.config.core.remote_name

    def _step(self, name: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Runs one step, turning its failure into a `StepFailure`."""
        logger.info(f"RELEASE step: {name}")
        try:
            return fn(*args)
        except SetupError:
            raise
        except OttoError as e:
            logger.error(f"RELEASE {name} failed: {e}")
            raise StepFailure(name, e) from e

    def run(self, options: ReleaseOptions) -> ReleaseOutcome:
        """Executes the pipeline.

        Raises:
            StepFailure: When a step fails; nothing after it runs.
            MissingCredentialError: When a commit must be generated without an AI key.
        """
        outcome = ReleaseOutcome()
        if not options.confirmed:
            outcome.cancelled = True
            return outcome

        self._prepare()
        if not self._commit(outcome):
            return outcome
        self._publish(options, outcome)
        return outcome

    def _prepare(self) -> None:
        """Fetches, installs, builds and stages; nothing here is compensated."""
        default = self.repo.default_branch(self.remote)
        branch = default.removeprefix(f"{self.remote}/")
        pm = self.package_manager

        try:
            with prompts.spinner("[dim]Syncing origin[/dim]") as status:
                self._step("Fetch", self.repo.fetch, self.remote, branch)

                status.update(f"[dim]Installing deps ({pm.name})[/dim]")
                self._step("Install", pm.install)

                if pm.has_build_script():
                    status.update("[dim]Building project[/dim]")
                    self._step("Build", pm.build)

                status.update("[dim]Staging files[/dim]")
                self._step("Stage", self.repo.add_all)
        except StepFailure:
            prompts.console.print("[bold red]✖ Pipeline Failed[/bold red]")
            raise

        prompts.console.print("[green]✔ Build Pipeline Success[/green]")

    def _commit(self, outcome: ReleaseOutcome) -> bool:
        """Commits the staged changes with an AI-suggested, operator-edited subject.

        Returns:
            bool: False if the operator cancelled the message prompt.
        """
        self._base = self.repo.rev_parse("HEAD")

        diff = self._step("Diff", self.repo.staged_diff)
        if not diff.strip():
            prompts.note("No changes to commit", "Skip")
            return True

        stat = self._step("Diff", self.repo.staged_diff_stat)
        if stat:
            prompts.note(stat, "Staged Changes", style="dim")

        generator = self._generator_factory()
        with prompts.spinner("[magenta]AI analyzing changes[/magenta]"):
            suggestion = self._step("Generate commit message", generator.suggest, diff)
        prompts.console.print("[green]✔ AI Analysis Complete[/green]")

        choice = self._edit_message(suggestion)
        if choice.cancelled:
            outcome.cancelled = True
            return False

        message = choice.value or suggestion.message
        self._step("Commit", self.repo.commit, message)
        prompts.console.print("[green]✔ Committed[/green]")

        outcome.committed = True
        outcome.message = message
        outcome.description = suggestion.description
        return True

    def _publish(self, options: ReleaseOptions, outcome: ReleaseOutcome) -> None:
        """Bumps the version and pushes, rolling back on failure."""
        tags_before = set(self.repo.list_tags())
        start = (
            f"[blue]Bumping {options.release_type}...[/blue]"
            if options.bumps_version
            else "[blue]Preparing push...[/blue]"
        )

        try:
            with prompts.spinner(start) as status:
                if options.bumps_version:
                    self._step(
                        "Version bump",
                        self.package_manager.bump_version,
                        options.release_type,
                    )
                    outcome.created_tags = sorted(
                        set(self.repo.list_tags()) - tags_before
                    )

                status.update(f"[blue]Pushing to {self.remote}[/blue]")
                self._step("Push", self.repo.push, self.remote, options.force, True)
        except StepFailure as e:
            if options.bumps_version and not outcome.created_tags:
                outcome.created_tags = sorted(set(self.repo.list_tags()) - tags_before)
            prompts.console.print(
                f"[bold red]✖ {e.step} Failed. Rolling back[/bold red]"
            )
            self.rollback(outcome)
            raise

        outcome.pushed = True
        prompts.console.print("[bold green]✔ Deployed[/bold green]")

        report = ReleaseReport(
            user=self.repo.user_name(),
            branch=self.repo.current_branch(),
            type=options.release_type,
            message=outcome.message,
            description=outcome.description,
        )
        outcome.reported = self._reporter(self.config.webhook, report)

    def rollback(self, outcome: ReleaseOutcome) -> None:
        """Deletes this run's tags and soft-resets this run's commits. Never raises."""
        done = []
        for tag in outcome.created_tags:
            try:
                self.repo.delete_tag(tag)
                logger.info(f"ROLLBACK deleted tag {tag}")
                done.append(f"Deleted tag {tag}")
            except OttoError as e:
                logger.warning(f"ROLLBACK could not delete tag {tag}: {e}")

        head = self.repo.rev_parse("HEAD")
        if self._base and head and head != self._base:
            try:
                self.repo.reset("soft", self._base)
                logger.info(f"ROLLBACK soft reset to {self._base}")
                done.append(
                    f"Soft reset to {self._base[:7]}; your changes are still staged"
                )
            except OttoError as e:
                logger.warning(f"ROLLBACK could not reset to {self._base}: {e}")

        outcome.rolled_back = True
        if done:
            prompts.note("\n".join(done), "Rollback", style="green")
        else:
            prompts.note("Nothing to undo.", "Rollback", style="yellow")
