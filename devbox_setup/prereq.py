from __future__ import annotations

import logging
from typing import Optional, Sequence

import httpx

from . import report
from .context import SetupCtx
from .errors import CommandError, PrerequisiteError
from .lib.manifests import packages_for
from .lib.net import is_online
from .lib.pkg import pkg_install, pkg_update

logger = logging.getLogger(__name__)

REQUIRED_COMMANDS = ("curl", "git")


def check_sudo(ctx: SetupCtx) -> None:
    if ctx.profile.is_root:
        report.warning("Running as root. Some operations will be adjusted accordingly.")
        return
    if not ctx.has("sudo"):
        raise PrerequisiteError("sudo is not installed. Please run as root.")
    if ctx.run(["sudo", "-n", "true"], check=False).ok:
        return
    report.info("sudo needs your password to continue")
    if not ctx.run(["sudo", "-v"], check=False, capture=False).ok:
        raise PrerequisiteError("This tool requires sudo privileges. Please run with sudo or as root.")


def check_network(ctx: SetupCtx, *, client: Optional[httpx.Client] = None) -> None:
    if not is_online(ctx, client=client):
        raise PrerequisiteError("No internet connection detected. Please check your network.")


def missing_commands(ctx: SetupCtx, commands: Sequence[str] = REQUIRED_COMMANDS) -> list[str]:
    return [c for c in commands if not ctx.has(c)]


def ensure_baseline_tools(ctx: SetupCtx, commands: Sequence[str] = REQUIRED_COMMANDS) -> list[str]:
    """Install missing baseline tools. Returns what was installed."""

    missing = missing_commands(ctx, commands)
    if not missing:
        return []

    manifest_pkgs = packages_for("prerequisites", ctx.profile.package_manager)
    # Command names double as package names for the baseline set.
    to_install = [p for p in manifest_pkgs if p in missing] or missing
    report.info(f"Installing missing prerequisites: {', '.join(to_install)}")
    try:
        pkg_update(ctx)
        pkg_install(ctx, to_install)
    except CommandError as e:
        raise PrerequisiteError(f"Unable to install prerequisites ({', '.join(to_install)}): {e}") from e

    still_missing = missing_commands(ctx, commands)
    if still_missing:
        raise PrerequisiteError(f"Prerequisites still missing after install: {', '.join(still_missing)}")
    return to_install


def check(ctx: SetupCtx, *, client: Optional[httpx.Client] = None) -> None:
    """Validate the host can be provisioned. Raises PrerequisiteError otherwise."""

    report.step("Checking prerequisites...")
    check_sudo(ctx)
    check_network(ctx, client=client)
    ensure_baseline_tools(ctx)
    report.success("Prerequisites check passed")
