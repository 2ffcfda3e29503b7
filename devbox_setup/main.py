from __future__ import annotations

import argparse
import logging
import shutil
import sys
from typing import Callable, List, Optional

import httpx
from rich.panel import Panel

from . import __version__, prereq, report
from .context import SetupCtx, default_options
from .errors import PrerequisiteError
from .lib.command import Runner, run_cmd
from .lib.env import Paths
from .lib.platform import SystemProfile, detect
from .lib.prompt import Prompter
from .logging_utils import configure_logging
from .pipeline import Component, run_components
from .steps import (
    AiToolsStep,
    BasePackagesStep,
    ClaudeCliStep,
    DevToolsStep,
    DockerStep,
    SystemConfigStep,
)
from .summary import present_tool_dirs, probe_tools, render_post_install_notes, render_summary
from .users import describe_user, run_user_provisioner, user_exists

logger = logging.getLogger(__name__)

DEFAULT_SELECTION = ("base", "docker", "claude")


class _Parser(argparse.ArgumentParser):
    """argparse exits 2 on bad usage; this tool reports every usage error as 1."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="devbox-setup",
        description="Interactive setup of a Linux development machine: packages, Docker, Claude CLI and a dev user.",
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    return p


def build_components(client: Optional[httpx.Client] = None) -> List[Component]:
    return [
        BasePackagesStep(),
        DockerStep(client=client),
        ClaudeCliStep(client=client),
        DevToolsStep(),
        SystemConfigStep(),
        AiToolsStep(),
    ]


def print_banner(prompt: Prompter, log_path: str) -> None:
    prompt.console.print(
        Panel.fit(
            f"[bold]Development Environment Setup[/bold]  v{__version__}\n"
            "Installs base packages, Docker, the Claude CLI and developer tools.",
            border_style="cyan",
        )
    )
    prompt.console.print(f"Log file: {log_path}", style="dim", markup=False)


def run(
    *,
    prompt: Optional[Prompter] = None,
    paths: Optional[Paths] = None,
    runner: Runner = run_cmd,
    which: Callable[[str], Optional[str]] = shutil.which,
    detect_fn: Callable[..., SystemProfile] = detect,
    client: Optional[httpx.Client] = None,
) -> int:
    """One interactive setup run. Returns the process exit code."""

    paths = paths or Paths.from_environ()
    prompt = prompt or Prompter()
    log_path = configure_logging(log_dir=paths.log_dir)
    print_banner(prompt, log_path)

    profile = detect_fn(runner=runner, which=which)
    report.info(f"Detected distribution: {profile.distro} (package manager: {profile.package_manager})")
    ctx = SetupCtx(profile=profile, prompt=prompt, paths=paths, runner=runner, which=which)

    prereq.check(ctx, client=client)

    provisioned = run_user_provisioner(ctx)
    install_user = provisioned.username if provisioned and provisioned.install_target else None
    opts = default_options(ctx, install_user)
    logger.info("Installing for user=%s home=%s", opts.target_user, opts.home)

    components = build_components(client)
    options = [
        (c.step_id, f"{c.label}{' (installed)' if c.is_installed(ctx, opts) else ''}")
        for c in components
    ]
    selection = prompt.choose_many("SELECT COMPONENTS", options, DEFAULT_SELECTION)
    if not selection:
        report.info("Nothing selected")
        return 0

    report.info(f"Selected: {', '.join(selection)}")
    if not prompt.confirm("Proceed with installation?", True):
        report.info("Installation cancelled")
        return 0

    result = run_components(ctx, opts, components, selection)

    user_info = None
    if provisioned and user_exists(ctx, provisioned.username):
        user_info = describe_user(ctx, provisioned.username)
    render_summary(
        prompt.console,
        ctx,
        opts,
        probe_tools(ctx, opts),
        result=result,
        user_info=user_info,
        tool_dirs=present_tool_dirs(ctx, opts),
        log_path=log_path,
    )
    render_post_install_notes(prompt.console, opts, user_info)

    failed = list(result.failed)
    if provisioned and provisioned.failures:
        failed.append("user")
    if failed:
        report.error(f"Completed with failures: {', '.join(failed)}")
        return 1
    report.success("Installation completed successfully")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    build_parser().parse_args(argv)

    try:
        return run()
    except PrerequisiteError as e:
        logger.error("%s", e)
        return 1
    except (KeyboardInterrupt, EOFError):
        report.error("Installation interrupted")
        return 1
