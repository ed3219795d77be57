import argparse
import logging
import os
import subprocess
import sys
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import ops, prompts
from .config import Config
from .constants import APP_NAME, APP_VERSION, CONFIG_FILE, LOG_FILE, MAX_LOG_SIZE
from .errors import ExitCode, OttoError, SetupError, StepFailure
from .git_wrapper import GitRepo
from .package import PackageManager
from .prompts import Option, console

logger = logging.getLogger(APP_NAME)

Flow = Callable[[GitRepo, Config], None]

FLOWS: dict[str, Flow] = {
    "release": ops.flow_release,
    "branch": ops.flow_branch,
    "stash": ops.flow_stash,
    "undo": ops.flow_undo,
    "rollback": ops.flow_undo,
    "sync": ops.flow_sync,
}


def setup_logging(verbose: bool) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, also log to stderr.
    """
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE, maxBytes=MAX_LOG_SIZE, backupCount=3
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        console.print(f"[dim]Logging to file disabled: {e}[/dim]")

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)


def _commit_line(label: str, style: str, repo: GitRepo, ref: str) -> Text | None:
    info = repo.commit_info(ref)
    if not info:
        return None
    line = Text()
    line.append(f"{label:<14}", style=style)
    line.append(f"{info.hash} ", style="dim")
    line.append(info.subject[:40])
    line.append(f" ({info.relative_time})", style="dim")
    return line


def show_banner(repo: GitRepo | None, config: Config) -> None:
    """Greets the operator and summarises the repository state."""
    content = Text()
    if repo is None:
        content.append("You're not inside a git repository.", style="yellow")
        console.print(Panel(content, title=f"Otto {APP_VERSION}", expand=False))
        return

    pm = PackageManager.detect(repo.path, config.release.package_manager)
    content.append(f"Hello, {repo.user_name()} (on ")
    content.append(repo.current_branch(), style="cyan")
    content.append(")\n")
    content.append(f"Using: {pm.name}", style="dim")

    services = []
    if config.ai_enabled:
        services.append("AI")
    if config.webhook_enabled:
        services.append("Webhook")
    if services:
        content.append(f"\nServices: {' + '.join(services)}", style="dim")

    remote = config.core.remote_name
    default = repo.default_branch(remote)
    for line in (
        _commit_line(default, "green", repo, default),
        _commit_line("HEAD", "blue", repo, "HEAD"),
    ):
        if line:
            content.append("\n")
            content.append_text(line)

    behind = repo.commits_behind(default)
    if behind > 0:
        content.append(f"\nStatus: {behind} commits behind {default}", style="yellow")
    else:
        content.append(f"\n✓ Up to date with {default}", style="dim")

    console.print(Panel(content, title=f"Otto {APP_VERSION}", expand=False))


def open_repo(path: Path | None = None) -> GitRepo | None:
    """Opens the repository around `path` (default: the working directory), if any."""
    try:
        return GitRepo(path or Path.cwd())
    except SetupError:
        return None


def run_command(name: str, repo: GitRepo | None, config: Config) -> ExitCode:
    """Runs one flow after the banner and update check.

    Returns:
        ExitCode: The status the process should exit with.
    """
    show_banner(repo, config)
    if repo is None:
        console.print("[bold red]ERROR:[/bold red] Not a git repository.")
        return ExitCode.SETUP_ERROR

    ops.check_for_updates(repo, config)
    try:
        FLOWS[name](repo, config)
    except SetupError as e:
        logger.error(f"{name}: {e}")
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        return ExitCode.SETUP_ERROR
    except StepFailure as e:
        logger.error(f"{name}: {e}")
        return ExitCode.STEP_FAILED
    return ExitCode.OK


def main_menu(repo: GitRepo | None, config: Config) -> ExitCode:
    """The interactive loop shown when no subcommand is given."""
    show_banner(repo, config)
    if repo is not None:
        ops.check_for_updates(repo, config)

    while True:
        op = prompts.select(
            "What's the plan?",
            [
                Option("release", "Release", "Build, Tag, Push"),
                Option("branch", "Branch", "Switch, Update, PR"),
                Option("stash", "Stash", "Save & Pop Changes"),
                Option("undo", "Rollback", "Rollback Commits"),
                Option("sync", "Sync", "Fetch & Pull latest"),
                Option("quit", "Quit"),
            ],
        )

        if op.cancelled or op.value == "quit":
            console.print("Bye!")
            return ExitCode.OK

        if repo is None:
            prompts.note("Not a git repository.", "Error", style="red")
            continue

        try:
            FLOWS[op.value](repo, config)
        except SetupError as e:
            console.print(f"[bold red]ERROR:[/bold red] {e}")
            return ExitCode.SETUP_ERROR
        except OttoError as e:
            logger.error(f"{op.value}: {e}")
            prompts.note(str(e), "Unexpected Error", style="red")
        except Exception as e:
            logger.exception(f"{op.value} crashed: {e}")
            prompts.note(f"{type(e).__name__}: {e}", "Unexpected Error", style="red")

        console.print("")


class OttoHelpFormatter(argparse.HelpFormatter):
    """Groups the subcommands into categories in the help output."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Release": ["release"],
                "Workflow": ["branch", "stash", "undo", "rollback", "sync"],
                "General": ["config", "help"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def open_config() -> None:
    """Opens the global configuration file in the system default editor."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            f.write(
                "# Otto Configuration\n\n"
                "[core]\n"
                '# remote_name = "origin"\n\n'
                "[ai]\n"
                '# model = "gpt-4o-mini"\n'
            )

    editor = os.environ.get("EDITOR") or ("open" if sys.platform == "darwin" else "nano")
    console.print(f"Opening [cyan]{CONFIG_FILE}[/cyan]...")

    try:
        subprocess.run([editor, str(CONFIG_FILE)])
    except OSError as e:
        console.print(f"[red]Could not open editor: {e}[/red]")


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Otto Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row(
        "core", "remote_name", "str", '"origin"', "Remote to fetch, sync and release to."
    )
    table.add_row(
        "", "history_limit", "int", "15", "Commits offered by the rollback menu."
    )
    table.add_row("ai", "model", "str", '"gpt-4o-mini"', "Chat model for commit messages.")
    table.add_row(
        "", "max_diff_chars", "int", "15000", "Characters of staged diff sent to the model."
    )
    table.add_row("", "timeout", "int | str", '"60s"', "AI request timeout (e.g. '30s').")
    table.add_row(
        "webhook", "url", "str", "None", "Release reports are POSTed here when set."
    )
    table.add_row("", "timeout", "int | str", '"10s"', "Webhook request timeout.")
    table.add_row(
        "release",
        "package_manager",
        "str",
        "None",
        "Force 'npm' or 'pnpm' instead of lockfile detection.",
    )
    table.add_row(
        "env", "OPENAI_API_KEY", "str", "-", "AI credential (required to commit)."
    )
    table.add_row(
        "", "OTTO_WEBHOOK_URL", "str", "-", "Webhook URL (GOOGLE_SHEET_WEBHOOK_URL also read)."
    )

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="AI-powered release and git workflow CLI.",
        formatter_class=OttoHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output to stderr"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {APP_VERSION}"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("release", help="Build, commit, bump version and push")
    subparsers.add_parser("branch", help="Switch, create, update branches or open a PR")
    subparsers.add_parser("stash", help="Save or pop stashes")
    subparsers.add_parser("undo", help="Reset the branch to a recent commit")
    subparsers.add_parser("rollback", help="Alias for undo")
    subparsers.add_parser("sync", help="Fetch and pull the current branch")
    subparsers.add_parser("help", help="Show this help message")

    config_parser = subparsers.add_parser("config", help="View configuration options")
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Otto CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return
    if args.command == "config":
        if args.list:
            show_config_reference()
        else:
            open_config()
        return

    setup_logging(args.verbose)

    repo = open_repo()
    config = Config.load(repo.path if repo else None)

    if args.command is None:
        code = main_menu(repo, config)
    else:
        code = run_command(args.command, repo, config)

    if code != ExitCode.OK:
        sys.exit(int(code))


if __name__ == "__main__":
    main()
