from __future__ import annotations

import logging
from typing import List

from ..context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from ..errors import CommandError
from ..lib.manifests import packages_for
from ..lib.pkg import has_package, pkg_install

logger = logging.getLogger(__name__)

PROBE_COMMANDS = ("make", "htop", "tmux", "vim", "tree")


class DevToolsStep:
    step_id = "devtools"
    label = "Developer tools"
    priority = 40

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        return all(ctx.has(c) for c in PROBE_COMMANDS)

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        desired = packages_for("dev_tools", ctx.profile.package_manager)

        # Never fail on repo variance: skip packages the manager does not know.
        available: List[str] = []
        warnings: List[str] = []
        for p in desired:
            if has_package(ctx, p):
                available.append(p)
            else:
                warnings.append(f"package not available: {p}")

        installed: List[str] = []
        try:
            pkg_install(ctx, available)
            installed = list(available)
        except CommandError:
            # One bad package should not take the rest down with it.
            logger.info("Bulk dev-tools install failed; retrying one package at a time")
            for p in available:
                try:
                    pkg_install(ctx, [p])
                    installed.append(p)
                except CommandError as e:
                    warnings.append(f"failed to install {p}: exit {e.returncode}")

        if desired and not installed:
            return InstallResult(
                component=self.step_id,
                status=InstallStatus.FAILED,
                message="no developer tools could be installed",
                warnings=warnings,
            )

        logger.info("Dev tools installed: %s", ",".join(installed))
        return InstallResult(
            component=self.step_id,
            status=InstallStatus.INSTALLED,
            message=f"{len(installed)}/{len(desired)} packages installed",
            warnings=warnings,
        )
