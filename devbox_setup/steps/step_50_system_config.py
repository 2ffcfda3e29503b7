from __future__ import annotations

import logging
import re
from typing import Sequence

from .. import report
from ..context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from ..errors import ValidationError

logger = logging.getLogger(__name__)

COMMON_ZONES = re.compile(r"(Europe|America|Asia)/(Berlin|London|New_York|Los_Angeles|Tokyo)")


def validate_timezone(raw: str, known: Sequence[str]) -> str:
    """Empty input keeps the current zone and returns ''."""
    tz = raw.strip()
    if not tz:
        return ""
    if known and tz not in known:
        raise ValidationError(f"Unknown timezone: {tz}")
    return tz


class SystemConfigStep:
    step_id = "sysconfig"
    label = "Timezone and locales"
    priority = 50

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        # Configuration, not a package: there is nothing to detect as present.
        return False

    def configure_timezone(self, ctx: SetupCtx) -> bool:
        if ctx.has("timedatectl"):
            r = ctx.run(["timedatectl", "list-timezones"], check=False)
            zones = [z.strip() for z in r.stdout.splitlines() if z.strip()]
            common = [z for z in zones if COMMON_ZONES.search(z)][:10]
            if common:
                ctx.prompt.console.print("[cyan]Available timezones (showing common ones):[/cyan]")
                for z in common:
                    ctx.prompt.console.print(f"  {z}")
            tz = ctx.prompt.ask_valid(
                "Enter timezone (e.g., Europe/Berlin) or press Enter for current:",
                lambda raw: validate_timezone(raw, zones),
            )
            if not tz:
                return False
            ctx.sudo(["timedatectl", "set-timezone", tz])
            report.success(f"Timezone set to {tz}")
            return True

        if ctx.profile.package_manager == "apt":
            ctx.sudo(["dpkg-reconfigure", "tzdata"], capture=False)
            return True

        report.info("timedatectl not available. Please configure the timezone manually if needed.")
        return False

    def configure_locales(self, ctx: SetupCtx) -> bool:
        if ctx.profile.package_manager == "apt":
            ctx.sudo(["dpkg-reconfigure", "locales"], capture=False)
            return True
        report.info("Locale configuration varies by distribution. Please configure manually if needed.")
        return False

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        changed = []
        if ctx.prompt.confirm("Do you want to configure timezone?", True) and self.configure_timezone(ctx):
            changed.append("timezone")
        if ctx.prompt.confirm("Do you want to configure locales?", True) and self.configure_locales(ctx):
            changed.append("locales")

        if not changed:
            return InstallResult(component=self.step_id, status=InstallStatus.SKIPPED, message="nothing changed")
        return InstallResult(
            component=self.step_id,
            status=InstallStatus.INSTALLED,
            message=f"configured {', '.join(changed)}",
        )
