"""Colour-coded progress lines.

Warnings and errors go through logging (RichHandler colours them on the
console); the informational tags below are printed here and mirrored to the
log file at INFO so the log reads like the terminal did.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.text import Text

logger = logging.getLogger("devbox_setup")

console = Console(highlight=False)


def _emit(tag: str, style: str, message: str) -> None:
    console.print(Text.assemble((f"[{tag}] ", style), message))
    logger.info("[%s] %s", tag, message)


def step(message: str) -> None:
    _emit("STEP", "bold blue", message)


def success(message: str) -> None:
    _emit("SUCCESS", "bold green", message)


def info(message: str) -> None:
    _emit("INFO", "cyan", message)


def warning(message: str) -> None:
    logger.warning(message)


def error(message: str) -> None:
    logger.error(message)
