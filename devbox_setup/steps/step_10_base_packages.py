from __future__ import annotations

import logging

from ..context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from ..lib.manifests import packages_for
from ..lib.pkg import pkg_cleanup, pkg_install, pkg_update, pkg_upgrade

logger = logging.getLogger(__name__)

PROBE_COMMANDS = ("curl", "git", "jq", "node", "npm", "unzip", "wget")


class BasePackagesStep:
    step_id = "base"
    label = "System updates and base packages"
    priority = 10

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        return all(ctx.has(c) for c in PROBE_COMMANDS)

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        packages = packages_for("base_packages", ctx.profile.package_manager)

        # Update/upgrade are safe to repeat; the package manager skips what is current.
        pkg_update(ctx)
        pkg_upgrade(ctx)
        pkg_install(ctx, packages)
        pkg_cleanup(ctx)

        logger.info("Base packages installed (%s): %s", ctx.profile.package_manager, ",".join(packages))
        return InstallResult(
            component=self.step_id,
            status=InstallStatus.INSTALLED,
            message=f"{len(packages)} packages ensured",
        )
