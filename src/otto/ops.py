import logging
import re
import webbrowser

from . import prompts
from .config import Config
from .constants import APP_NAME, DEFAULT_STASH_MESSAGE
from .errors import GitError, StepFailure
from .git_wrapper import GitRepo
from .prompts import Option, console
from .release import ReleasePipeline, gather_options

logger = logging.getLogger(APP_NAME)


def _default_branch_name(repo: GitRepo, remote: str) -> str:
    """The default branch without its remote prefix (e.g., 'main')."""
    return repo.default_branch(remote).removeprefix(f"{remote}/")


def pull_request_url(remote_url: str, branch: str) -> str | None:
    """Builds the 'open a pull request' page URL for a GitHub-style remote.

    Args:
        remote_url (str): An SSH (`git@host:owner/repo.git`) or HTTPS remote URL.
        branch (str): The branch to propose.

    Returns:
        str | None: The URL, or None if the remote URL is not recognised.
    """
    url = remote_url.strip()
    if match := re.match(r"^(?:ssh://)?git@([^:/]+)[:/](.+?)(?:\.git)?/?$", url):
        base = f"https://{match.group(1)}/{match.group(2)}"
    elif match := re.match(r"^https?://(?:[^@/]+@)?(.+?)(?:\.git)?/?$", url):
        base = f"https://{match.group(1)}"
    else:
        return None
    return f"{base}/pull/new/{branch}"


def check_for_updates(repo: GitRepo, config: Config) -> None:
    """Offers to pull when the current branch is behind its remote counterpart.

    On the default branch the comparison is against `<remote>/<default>`, even
    without upstream tracking; elsewhere it is against the configured upstream.
    """
    remote = config.core.remote_name
    try:
        repo.fetch(remote)
    except GitError as e:
        logger.debug(f"Update check fetch failed: {e}")
        return

    current = repo.current_branch()
    default = repo.default_branch(remote)
    default_name = default.removeprefix(f"{remote}/")

    if current in ("main", "master", default_name):
        behind = repo.commits_behind(default)
    else:
        behind = repo.upstream_behind_count()

    if behind <= 0:
        return

    should_pull = prompts.confirm(
        f"Your branch is behind by {behind} commits. Pull them?"
    )
    if should_pull.cancelled or not should_pull.value:
        return

    with prompts.spinner("[blue]Pulling latest changes...[/blue]"):
        try:
            repo.pull(remote, current)
        except GitError as e:
            logger.warning(f"Pull failed: {e}")
            console.print("[red]✖ Pull Failed[/red]")
            prompts.note(str(e), "Git Error", style="red")
            return
    console.print("[green]✔ Updated[/green]")


# --- Branch Manager ---


def switch_branch(repo: GitRepo, target: str) -> bool:
    """Switches branches, carrying local changes across via a stash.

    The stash is only popped after a successful checkout. If checkout fails the
    changes stay stashed; if the pop conflicts, the operator resolves it by hand.

    Returns:
        bool: True if the switch completed and local changes were restored.
    """
    with prompts.spinner("[dim]Switching branches[/dim]") as status:
        stashed = repo.auto_stash()

        try:
            repo.checkout(target)
        except GitError as e:
            logger.warning(f"Checkout of {target} failed: {e}")
            console.print("[red]✖ Checkout Failed[/red]")
            if stashed:
                prompts.note(
                    "Your changes are still stashed. Run 'git stash pop' to restore them.",
                    "Stash Kept",
                    style="yellow",
                )
            return False

        if stashed:
            status.update("[dim]Restoring changes[/dim]")
            try:
                repo.stash_pop()
            except GitError as e:
                logger.warning(f"Stash pop after switching to {target} failed: {e}")
                console.print(
                    "[yellow]⚠ Switched, but stash pop had conflicts.[/yellow]"
                )
                prompts.note(
                    "Run 'git stash pop' manually to resolve.",
                    "Conflict Alert",
                    style="yellow",
                )
                return False

    console.print(f"[green]✔ Switched to {target}[/green]")
    return True


def update_from_default(repo: GitRepo, config: Config) -> None:
    """Pulls the default branch into the current one."""
    remote = config.core.remote_name
    default = _default_branch_name(repo, remote)
    with prompts.spinner(f"[dim]Fetching {default}[/dim]") as status:
        try:
            repo.fetch(remote, default)
            status.update("[dim]Pulling changes[/dim]")
            repo.pull(remote, default)
        except GitError as e:
            console.print("[red]✖ Update Failed[/red]")
            prompts.note(str(e), "Git Error", style="red")
            return
    console.print(f"[green]✔ Branch updated from {default}[/green]")


def create_branch(repo: GitRepo) -> None:
    name = prompts.text("Branch Name (e.g. feat/new-thing)")
    if name.cancelled or not name.value:
        return
    try:
        repo.create_branch(name.value)
        prompts.note(f"Checked out to {name.value}", "✔ Created", style="green")
    except GitError as e:
        prompts.note(str(e), "✖ Failed", style="red")


def open_pull_request(repo: GitRepo, config: Config) -> None:
    remote_url = repo.remote_url(config.core.remote_name)
    url = pull_request_url(remote_url, repo.current_branch()) if remote_url else None
    if not url:
        prompts.note("No usable remote URL configured.", "PR", style="yellow")
        return
    webbrowser.open(url)
    prompts.note(f"Opened PR in browser\n{url}", "✔ PR", style="green")


def flow_branch(repo: GitRepo, config: Config) -> None:
    """Branch manager: switch, create, update from default, or open a PR."""
    action = prompts.select(
        "Branch Manager",
        [
            Option("switch", "Switch", "Auto-Stash & Switch"),
            Option("create", "Create", "From current"),
            Option("update", "Update", "Pull main into current"),
            Option("pr", "Open PR", "View on GitHub"),
        ],
    )
    if action.cancelled:
        return

    if action.value == "switch":
        current = repo.current_branch()
        others = [b for b in repo.list_branches() if b != current]
        if not others:
            prompts.note("No other local branches.", "Empty")
            return
        target = prompts.select("Select Branch", [Option(b, b) for b in others])
        if target.cancelled:
            return
        switch_branch(repo, target.value)
    elif action.value == "create":
        create_branch(repo)
    elif action.value == "update":
        update_from_default(repo, config)
    elif action.value == "pr":
        open_pull_request(repo, config)


# --- Stash Manager ---


def save_stash(repo: GitRepo) -> None:
    if not repo.is_dirty():
        prompts.note("No local changes to stash", "Info", style="yellow")
        return
    msg = prompts.text("Stash Message (Optional)", default="")
    if msg.cancelled:
        return
    with prompts.spinner("[dim]Saving stash...[/dim]"):
        try:
            created = repo.stash_push(msg.value or DEFAULT_STASH_MESSAGE)
        except GitError as e:
            prompts.note(str(e), "Info", style="yellow")
            return
    if not created:
        prompts.note("No local changes to stash", "Info", style="yellow")
        return
    console.print("[green]✔ Stashed successfully[/green]")


def pop_stash(repo: GitRepo) -> None:
    stashes = repo.stash_list()
    if not stashes:
        prompts.note("No stashes found.", "Empty")
        return

    target = prompts.select(
        "Select Stash to Pop", [Option(s.ref, s.message, s.ref) for s in stashes]
    )
    if target.cancelled:
        return

    with prompts.spinner(f"[dim]Popping {target.value}...[/dim]"):
        try:
            repo.stash_pop(target.value)
        except GitError as e:
            logger.warning(f"Stash pop of {target.value} failed: {e}")
            console.print("[red]✖ Pop resulted in conflicts[/red]")
            prompts.note(
                "Changes are applied but there are merge conflicts. Resolve them manually.",
                "Conflict",
                style="yellow",
            )
            return
    console.print("[green]✔ Popped successfully[/green]")


def flow_stash(repo: GitRepo, config: Config) -> None:
    """Stash manager: save the working tree or pop a chosen stash."""
    action = prompts.select(
        "Stash Manager",
        [
            Option("save", "Save", "Stash current changes"),
            Option("pop", "Pop", "Apply saved stash"),
        ],
    )
    if action.cancelled:
        return
    if action.value == "save":
        save_stash(repo)
    elif action.value == "pop":
        pop_stash(repo)


# --- Rollback ---

_RESET_NOTES = {
    "soft": ("Your changes are now staged and ready to be modified.", "Soft Reset"),
    "mixed": ("Your changes are in the working directory (unstaged).", "Mixed Reset"),
}


def flow_undo(repo: GitRepo, config: Config) -> None:
    """Resets the current branch to one of the recent commits.

    Choosing the current commit changes nothing. A hard reset asks for a second
    confirmation before anything is touched.
    """
    with prompts.spinner("[dim]Fetching history[/dim]"):
        history = repo.log(config.core.history_limit)

    if not history:
        prompts.note("No commit history found to undo.", "Empty")
        return

    target = prompts.select(
        "Reset branch to which commit?",
        [
            Option(
                c.hash,
                f"{c.hash} {c.subject} (Current)" if i == 0 else f"{c.hash} {c.subject}",
                f"{c.author}, {c.relative_time}",
            )
            for i, c in enumerate(history)
        ],
    )
    if target.cancelled:
        return

    if target.value == history[0].hash:
        prompts.note("You selected the current commit. No changes made.", "Info")
        return

    mode = prompts.select(
        "How should we reset?",
        [
            Option("soft", "Soft Reset", "Keep changes staged"),
            Option("mixed", "Mixed Reset", "Keep changes in working dir"),
            Option("hard", "Hard Reset", "DESTROY changes"),
        ],
    )
    if mode.cancelled:
        return

    if mode.value == "hard":
        safe = prompts.confirm(
            "[red]This will delete all uncommitted changes. Sure?[/red]"
        )
        if safe.cancelled or not safe.value:
            console.print("[dim]Operation cancelled.[/dim]")
            return

    with prompts.spinner(f"[yellow]Resetting to {target.value}...[/yellow]"):
        try:
            repo.reset(mode.value, target.value)
        except GitError as e:
            logger.error(f"Reset to {target.value} failed: {e}")
            console.print("[red]✖ Reset failed[/red]")
            prompts.note(str(e), "Git Error", style="red")
            return

    console.print(f"[green]✔ Reset complete (--{mode.value})[/green]")
    body, title = _RESET_NOTES.get(
        mode.value, (f"HEAD is now at {target.value}", "Hard Reset")
    )
    prompts.note(body, title)


# --- Sync ---


def flow_sync(repo: GitRepo, config: Config) -> None:
    """Pulls the remote branch matching the current one, if it exists.

    The remote is asked first; a branch that was never pushed is neither
    fetched nor pulled.
    """
    remote = config.core.remote_name
    current = repo.current_branch()
    with prompts.spinner(f"[blue]Checking {remote}/{current}...[/blue]") as status:
        try:
            if not repo.remote_branch_exists(current, remote):
                console.print("[yellow]⚠ No remote branch[/yellow]")
                prompts.note(
                    f"Branch '{remote}/{current}' does not exist.\n"
                    "Push your branch first to enable syncing.",
                    "Info",
                )
                return

            status.update(f"[blue]Fetching {remote}...[/blue]")
            repo.fetch(remote)
            status.update(f"[blue]Pulling {remote}/{current}...[/blue]")
            repo.pull(remote, current)
        except GitError as e:
            console.print("[red]✖ Sync Failed[/red]")
            prompts.note(str(e), "Git Error", style="red")
            return

        try:
            repo.set_upstream(current, remote)
        except GitError as e:
            logger.debug(f"Could not set upstream for {current}: {e}")

    console.print("[green]✔ Sync Complete[/green]")


# --- Release ---


def flow_release(repo: GitRepo, config: Config) -> None:
    """Gathers release options and runs the pipeline.

    Raises:
        StepFailure: If a pipeline step fails (after any rollback).
    """
    options = gather_options()
    if options.cancelled or not options.value.confirmed:
        return

    pipeline = ReleasePipeline(repo, config)
    try:
        pipeline.run(options.value)
    except StepFailure as e:
        prompts.note(str(e.cause), f"{e.step} Error", style="red")
        raise
