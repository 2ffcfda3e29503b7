from __future__ import annotations

import logging
from typing import Optional

import httpx

from .. import report
from ..context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from ..errors import InstallFailure
from ..lib.files import file_exists
from ..lib.net import fetch_text

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_URL = "https://claude.ai/install.sh"
MANUAL_HINT = "Install manually with: npm install -g @anthropic-ai/claude-code"

# Current installs ship `claude`; early releases used `claude-code`.
COMMANDS = ("claude", "claude-code")


class ClaudeCliStep:
    step_id = "claude"
    label = "Claude CLI"
    priority = 30

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self.client = client

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        if any(ctx.has(c) for c in COMMANDS):
            return True
        # The installer drops the binary into ~/.local/bin, which may not be on our PATH yet.
        return file_exists(ctx, opts.home / ".local" / "bin" / "claude")

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        if self.is_installed(ctx, opts):
            report.info("Claude CLI is already installed")
            return InstallResult(component=self.step_id, status=InstallStatus.ALREADY_PRESENT)

        try:
            script = fetch_text(INSTALL_SCRIPT_URL, client=self.client)
            ctx.as_user(opts.target_user, ["bash", "-s"], input_text=script, capture=False)
        except InstallFailure as e:
            raise InstallFailure(f"{e}. {MANUAL_HINT}") from e

        if not self.is_installed(ctx, opts):
            raise InstallFailure(f"Claude CLI not found after running the installer. {MANUAL_HINT}")

        report.info("Run 'claude --help' to get started")
        return InstallResult(
            component=self.step_id,
            status=InstallStatus.INSTALLED,
            message=f"installed for {opts.target_user}",
        )
