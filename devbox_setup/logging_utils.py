from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LOG_DIR = "/var/log/devbox-setup"


def log_file_name(now: Optional[float] = None) -> str:
    return time.strftime("devbox-setup-%Y%m%d-%H%M%S.log", time.localtime(now))


def configure_logging(
    log_dir: str = DEFAULT_LOG_DIR,
    level: int = logging.DEBUG,
    console: Optional[Console] = None,
    also_console: bool = True,
) -> str:
    """Configure logging once per process.

    Every record goes to a timestamped file under log_dir. Warnings and errors
    are also rendered, colour-coded, on the console; progress lines reach the
    console through report.py instead.

    Notes:
    - If log_dir is not writable (e.g. /var/log without sudo), we fall back to
      the system temp directory and keep going.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_devbox_configured", False):
        return getattr(logger, "_devbox_log_path", "")

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    name = log_file_name()
    requested = str(Path(log_dir) / name)
    try:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(requested)
        chosen_path = requested
    except OSError:
        # Fall back to a writable location.
        chosen_path = str(Path(tempfile.gettempdir()) / name)
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    file_handler.setLevel(level)
    logger.addHandler(file_handler)

    if also_console:
        rich_handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        rich_handler.setLevel(logging.WARNING)
        logger.addHandler(rich_handler)

    setattr(logger, "_devbox_configured", True)
    setattr(logger, "_devbox_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", requested, chosen_path)
    return chosen_path
