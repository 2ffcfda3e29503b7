from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..context import SetupCtx

logger = logging.getLogger(__name__)


def write_file(
    ctx: "SetupCtx",
    path: str | Path,
    contents: str,
    *,
    mode: Optional[int] = None,
    owner: Optional[str] = None,
    group: Optional[str] = None,
) -> None:
    """Write a file the invoking user may not own.

    As root the file is written directly; otherwise it is staged in a temp file
    and moved into place with `sudo install`.
    """

    p = Path(path)
    if ctx.profile.is_root:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")
        if mode is not None:
            p.chmod(mode)
        if owner:
            ctx.run(["chown", f"{owner}:{group or owner}", str(p)])
        logger.info("Wrote %s", str(p))
        return

    fd, tmp = tempfile.mkstemp(prefix="devbox-setup-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(contents)
        argv = ["install", "-D", "-m", f"{mode if mode is not None else 0o644:o}"]
        if owner:
            argv += ["-o", owner, "-g", group or owner]
        ctx.sudo([*argv, tmp, str(p)])
    finally:
        Path(tmp).unlink(missing_ok=True)
    logger.info("Wrote %s", str(p))


def read_file(ctx: "SetupCtx", path: str | Path) -> Optional[str]:
    """Return file contents, or None if the file does not exist."""

    p = Path(path)
    try:
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8", errors="replace")
    except PermissionError:
        r = ctx.sudo(["cat", str(p)], check=False)
        return r.stdout if r.ok else None


def file_exists(ctx: "SetupCtx", path: str | Path) -> bool:
    p = Path(path)
    try:
        return p.exists()
    except PermissionError:
        return ctx.sudo(["test", "-e", str(p)], check=False).ok


def remove_file(ctx: "SetupCtx", path: str | Path) -> None:
    p = Path(path)
    if ctx.profile.is_root:
        p.unlink(missing_ok=True)
    else:
        ctx.sudo(["rm", "-f", str(p)])
    logger.info("Removed %s", str(p))
