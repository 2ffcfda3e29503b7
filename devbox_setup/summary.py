from __future__ import annotations

import logging
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .context import InstallOptions, SetupCtx
from .lib.files import file_exists
from .lib.manifests import ai_tools, probed_tools
from .pipeline import PipelineResult

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"v?(\d+(?:\.\d+)+)")


@dataclass(frozen=True)
class ToolStatus:
    name: str
    version: Optional[str]

    @property
    def present(self) -> bool:
        return self.version is not None


def extract_version(output: str) -> str:
    m = _VERSION_RE.search(output)
    if m:
        return m.group(1)
    first = output.strip().splitlines()
    return first[0] if first else "installed"


def _resolve(ctx: SetupCtx, t: Dict[str, Any], argv: List[str], opts: Optional[InstallOptions]) -> Optional[List[str]]:
    probe = str(t.get("probe") or argv[0])
    if ctx.has(probe):
        return argv
    # Per-user installs land under the target home, off root's PATH.
    if opts is not None:
        for rel in t.get("paths") or ():
            candidate = opts.home / str(rel)
            if file_exists(ctx, candidate):
                return [str(candidate), *argv[1:]]
    return None


def probe_tools(
    ctx: SetupCtx,
    opts: Optional[InstallOptions] = None,
    tools: Optional[Sequence[Dict[str, Any]]] = None,
) -> List[ToolStatus]:
    """Ask the live system which tools exist, and at which version."""

    out: List[ToolStatus] = []
    for t in probed_tools() if tools is None else tools:
        name = str(t["name"])
        argv = _resolve(ctx, t, [str(a) for a in t["command"]], opts)
        if argv is None:
            out.append(ToolStatus(name=name, version=None))
            continue
        r = ctx.run(argv, check=False)
        out.append(ToolStatus(name=name, version=extract_version(r.stdout or r.stderr) if r.ok else "installed"))
    return out


def present_tool_dirs(ctx: SetupCtx, opts: InstallOptions) -> List[Path]:
    dirs = [opts.tools_dir / t["name"] for t in ai_tools()]
    return [d for d in dirs if file_exists(ctx, d)]


def render_summary(
    console: Console,
    ctx: SetupCtx,
    opts: InstallOptions,
    tools: Sequence[ToolStatus],
    result: Optional[PipelineResult] = None,
    user_info: Optional[Dict[str, Any]] = None,
    tool_dirs: Sequence[Path] = (),
    log_path: str = "",
) -> None:
    console.print("\n[bold cyan]=== INSTALLATION SUMMARY ===[/bold cyan]")

    console.print("\n[magenta]System Information:[/magenta]")
    console.print(f"OS: {ctx.profile.pretty_name or ctx.profile.distro}", markup=False)
    console.print(f"Architecture: {platform.machine() or ctx.profile.arch}", markup=False)
    console.print(f"Package manager: {ctx.profile.package_manager}", markup=False)
    console.print(f"Install user: {opts.target_user} ({opts.home})", markup=False)

    if user_info:
        console.print("\n[magenta]User:[/magenta]")
        console.print(f"Username: {user_info['username']}", markup=False)
        console.print(f"Home Directory: {user_info['home']}", markup=False)
        console.print(f"Shell: {user_info['shell']}", markup=False)
        console.print(f"Groups: {', '.join(user_info['groups'])}", markup=False)
        if user_info["passwordless_sudo"]:
            console.print("  Passwordless sudo enabled", style="yellow")
        else:
            console.print("  Standard sudo access (password required)")

    if result is not None and result.results:
        table = Table(title="Components")
        table.add_column("Component")
        table.add_column("Status")
        table.add_column("Details")
        for r in result.results:
            style = "red" if r.failed else "green"
            table.add_row(r.component, f"[{style}]{r.status.value}[/{style}]", escape(r.message))
        console.print(table)

    table = Table(title="Installed Software")
    table.add_column("Tool")
    table.add_column("Version")
    for t in tools:
        if t.present:
            table.add_row(t.name, f"[green]{escape(t.version or '')}[/green]")
        else:
            table.add_row(t.name, "[dim]not installed[/dim]")
    console.print(table)

    if tool_dirs:
        console.print("\n[magenta]Optional Projects:[/magenta]")
        for d in tool_dirs:
            console.print(f"  {d}", markup=False)

    if log_path:
        console.print(f"\n[yellow]Log file saved to: {log_path}[/yellow]")


def render_post_install_notes(console: Console, opts: InstallOptions, user_info: Optional[Dict[str, Any]] = None) -> None:
    console.print("\n[bold cyan]=== POST-INSTALLATION NOTES ===[/bold cyan]")
    console.print("[yellow]Important:[/yellow]")
    console.print("1. If Docker was installed, please log out and back in for group membership to take effect")
    console.print("2. Restart your terminal or run 'source ~/.bashrc' to reload PATH")
    console.print("3. For the Claude CLI, you may need to authenticate: run 'claude' and follow the login prompt")

    if user_info:
        name = user_info["username"]
        console.print(f"\n[yellow]User '{name}':[/yellow]")
        console.print(f"- Switch to user: su - {name}", markup=False)
        console.print("- Custom aliases and environment variables are configured in ~/.bashrc")
        if user_info["passwordless_sudo"]:
            console.print("- Passwordless sudo is enabled (security consideration)", style="yellow")

    console.print("\n[yellow]Useful commands:[/yellow]")
    for cmd in ("docker --version", "docker-compose --version", "claude --help", "git --version"):
        console.print(f"- {cmd}", markup=False)
    console.print(f"\nOptional tools live under {opts.tools_dir}", markup=False)
