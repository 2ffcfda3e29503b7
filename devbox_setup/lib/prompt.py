"""Operator prompts, decoupled from stdin.

Every interactive decision in the run goes through a Prompter. Production
reads from the terminal via rich; tests construct one with canned answers.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from rich.console import Console
from rich.markup import escape

from ..errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONFIRM_ATTEMPTS = 3


class Answer(Enum):
    YES = "yes"
    NO = "no"
    HELP = "help"


def parse_answer(text: str, default: Answer) -> Optional[Answer]:
    """Map raw input to an Answer. None means unrecognized."""
    value = text.strip().lower()
    if not value:
        return default
    if value in {"y", "yes"}:
        return Answer.YES
    if value in {"n", "no"}:
        return Answer.NO
    if value in {"?", "h", "help"}:
        return Answer.HELP
    return None


def parse_selection(text: str, keys: Sequence[str], default: Sequence[str]) -> List[str]:
    """Parse a menu reply: blank for the defaults, 'all', or numbers / keys.

    Numbers are 1-based positions in keys. Separators may be spaces or commas.
    Raises ValidationError on anything unknown.
    """
    value = text.strip().lower()
    if not value:
        return list(default)
    if value == "all":
        return list(keys)

    chosen: List[str] = []
    for token in value.replace(",", " ").split():
        if token.isdigit():
            idx = int(token)
            if not 1 <= idx <= len(keys):
                raise ValidationError(f"No menu entry {idx} (choose 1-{len(keys)})")
            key = keys[idx - 1]
        elif token in keys:
            key = token
        else:
            raise ValidationError(f"Unknown selection: {token}")
        if key not in chosen:
            chosen.append(key)
    return chosen


class Prompter:
    def __init__(
        self,
        console: Optional[Console] = None,
        *,
        reader: Optional[Callable[[str], str]] = None,
        secret_reader: Optional[Callable[[str], str]] = None,
        max_attempts: int = DEFAULT_CONFIRM_ATTEMPTS,
    ) -> None:
        self.console = console or Console()
        self._reader = reader or (lambda p: self.console.input(p))
        self._secret_reader = secret_reader or (lambda p: self.console.input(p, password=True))
        self.max_attempts = max_attempts

    def ask(self, message: str) -> str:
        return self._reader(f"[yellow]{escape(message)}[/yellow] ")

    def ask_secret(self, message: str) -> str:
        return self._secret_reader(f"[yellow]{escape(message)}[/yellow] ")

    def ask_yes_no(self, message: str, default: bool = False) -> Optional[Answer]:
        hint = "[Y/n/?]" if default else "[y/N/?]"
        raw = self.ask(f"{message} {hint}:")
        return parse_answer(raw, Answer.YES if default else Answer.NO)

    def confirm(self, message: str, default: bool = False, *, help_text: str = "") -> bool:
        """Ask a yes/no question, retrying a bounded number of times.

        After max_attempts unrecognized replies the default wins.
        """
        for _ in range(self.max_attempts):
            answer = self.ask_yes_no(message, default)
            if answer is Answer.YES:
                return True
            if answer is Answer.NO:
                return False
            if answer is Answer.HELP:
                self.console.print(help_text or "Answer 'y' for yes or 'n' for no.", style="cyan", markup=False)
                continue
            self.console.print("Please answer 'y' or 'n' ('?' for help).", style="red")
        logger.info("No valid answer to %r; using default=%s", message, default)
        return default

    def ask_valid(
        self,
        message: str,
        parse: Callable[[str], T],
        *,
        secret: bool = False,
    ) -> T:
        """Re-prompt until parse accepts the input. parse raises ValidationError."""
        while True:
            raw = self.ask_secret(message) if secret else self.ask(message)
            try:
                return parse(raw)
            except ValidationError as e:
                logger.warning("%s", e)

    def choose_many(
        self,
        title: str,
        options: Sequence[Tuple[str, str]],
        default: Sequence[str],
    ) -> List[str]:
        keys = [k for k, _ in options]
        self.console.print(f"\n[bold cyan]=== {escape(title)} ===[/bold cyan]")
        for i, (key, label) in enumerate(options, start=1):
            marker = "*" if key in default else " "
            self.console.print(f" {marker} {i}) {escape(label)} [dim]({key})[/dim]")
        self.console.print("[dim]Enter numbers separated by spaces, 'all', or press Enter for the starred set.[/dim]")
        return self.ask_valid("Selection:", lambda raw: parse_selection(raw, keys, default))
