from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .. import report
from ..context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from ..errors import InstallFailure
from ..lib.files import file_exists
from ..lib.manifests import ai_tools

logger = logging.getLogger(__name__)


class AiToolsStep:
    step_id = "aitools"
    label = "Optional AI tool repositories"
    priority = 60

    def __init__(self, tools: Optional[List[Dict[str, str]]] = None) -> None:
        self._tools = tools

    @property
    def tools(self) -> List[Dict[str, str]]:
        return self._tools if self._tools is not None else ai_tools()

    def tool_dir(self, opts: InstallOptions, name: str) -> Path:
        return opts.tools_dir / name

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        return all(file_exists(ctx, self.tool_dir(opts, t["name"]) / ".git") for t in self.tools)

    def _python_deps(self, ctx: SetupCtx, opts: InstallOptions, dest: Path) -> Optional[str]:
        if not ctx.has("python3"):
            return "python3 not found. Please install Python dependencies manually."
        venv = dest / ".venv"
        ctx.as_user(opts.target_user, ["python3", "-m", "venv", str(venv)])
        ctx.as_user(opts.target_user, [str(venv / "bin" / "pip"), "install", "-r", str(dest / "requirements.txt")])
        return None

    def install_tool(self, ctx: SetupCtx, opts: InstallOptions, tool: Dict[str, str]) -> List[str]:
        """Clone or update one repository. Returns warnings; raises InstallFailure."""

        name = tool["name"]
        dest = self.tool_dir(opts, name)
        user = opts.target_user
        warnings: List[str] = []

        ctx.as_user(user, ["mkdir", "-p", str(opts.tools_dir)])
        if file_exists(ctx, dest / ".git"):
            report.info(f"{name} directory exists, updating...")
            ctx.as_user(user, ["git", "-C", str(dest), "pull", "--ff-only"])
        else:
            ctx.as_user(user, ["git", "clone", tool["url"], str(dest)])

        if file_exists(ctx, dest / "package.json"):
            if ctx.has("npm"):
                ctx.as_user(user, ["npm", "install"], cwd=str(dest), capture=False)
            else:
                warnings.append(f"{name}: npm not found. Please install Node.js dependencies manually.")

        if file_exists(ctx, dest / "requirements.txt"):
            missing = self._python_deps(ctx, opts, dest)
            if missing:
                warnings.append(f"{name}: {missing}")

        report.success(f"{name} installed in {dest}")
        return warnings

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        selected = [
            t
            for t in self.tools
            if ctx.prompt.confirm(
                f"Do you want to install {t['name']}" + (f" ({t['description']})" if t.get("description") else "") + "?",
                False,
            )
        ]
        if not selected:
            return InstallResult(component=self.step_id, status=InstallStatus.SKIPPED, message="no repositories selected")

        done: List[str] = []
        warnings: List[str] = []
        for tool in selected:
            try:
                warnings += self.install_tool(ctx, opts, tool)
                done.append(tool["name"])
            except InstallFailure as e:
                warnings.append(f"{tool['name']}: {e}")

        if not done:
            return InstallResult(
                component=self.step_id,
                status=InstallStatus.FAILED,
                message="every selected repository failed",
                warnings=warnings,
            )
        return InstallResult(
            component=self.step_id,
            status=InstallStatus.INSTALLED,
            message=f"{', '.join(done)} in {opts.tools_dir}",
            warnings=warnings,
        )
