"""Terminal I/O for Otto: menus, confirmations, text input, notes and spinners.

Every prompt returns a `Choice`. The operator can cancel any prompt (Ctrl+C,
Ctrl+D or 'q' in a menu); callers check `choice.cancelled` and return early
instead of comparing against sentinel values.
"""

import textwrap
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

T = TypeVar("T")

console = Console()

CANCEL_KEY = "q"


@dataclass(frozen=True)
class Option(Generic[T]):
    """One entry of a selection menu.

    Attributes:
        value (T): What the menu returns when this entry is picked.
        label (str): The text shown to the operator.
        hint (str | None): A dimmed explanation shown after the label.
    """

    value: T
    label: str
    hint: str | None = None


@dataclass(frozen=True)
class Choice(Generic[T]):
    """The answer to a prompt: either a value or a cancellation."""

    value: T | None = None
    cancelled: bool = False

    @classmethod
    def of(cls, value: T) -> "Choice[T]":
        return cls(value=value)

    @classmethod
    def cancel(cls) -> "Choice[Any]":
        return cls(cancelled=True)


def wrap(text: str | None, width: int = 60) -> str:
    """Greedily wraps words into lines no longer than `width` where possible."""
    if not text:
        return ""
    return textwrap.fill(" ".join(text.split()), width=width, break_long_words=False)


def select(message: str, options: list[Option[T]]) -> Choice[T]:
    """Shows a numbered menu and reads one selection.

    Args:
        message (str): The question shown above the menu.
        options (list[Option[T]]): The entries; an empty list cancels immediately.
    """
    if not options:
        return Choice.cancel()

    console.print(f"\n[bold]{escape(message)}[/bold]")
    for i, opt in enumerate(options, start=1):
        line = f"  [cyan]{i:>2}[/cyan]) {escape(opt.label)}"
        if opt.hint:
            line += f" [dim]({escape(opt.hint)})[/dim]"
        console.print(line)

    keys = [str(i) for i in range(1, len(options) + 1)]
    try:
        answer = Prompt.ask(
            f"   Choice [dim]({CANCEL_KEY} to cancel)[/dim]",
            choices=[*keys, CANCEL_KEY],
            show_choices=False,
            console=console,
        )
    except (KeyboardInterrupt, EOFError):
        return Choice.cancel()

    if answer == CANCEL_KEY:
        return Choice.cancel()
    return Choice.of(options[int(answer) - 1].value)


def confirm(message: str, default: bool = False) -> Choice[bool]:
    """Asks a yes/no question."""
    try:
        return Choice.of(Confirm.ask(message, default=default, console=console))
    except (KeyboardInterrupt, EOFError):
        return Choice.cancel()


def text(message: str, default: str | None = None) -> Choice[str]:
    """Reads a line of text, pre-filled with `default` when given."""
    try:
        if default is None:
            answer = Prompt.ask(message, console=console)
        else:
            answer = Prompt.ask(message, default=default, console=console)
    except (KeyboardInterrupt, EOFError):
        return Choice.cancel()
    return Choice.of(answer.strip())


def note(body: str, title: str, style: str = "blue") -> None:
    """Prints a boxed message."""
    console.print(Panel(escape(body), title=title, border_style=style, expand=False))


def spinner(message: str) -> AbstractContextManager:
    """A spinner shown while a blocking command runs."""
    return console.status(message, spinner="dots")
