from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Sequence, Tuple

if TYPE_CHECKING:
    from ..context import SetupCtx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManagerCommands:
    update: Tuple[str, ...]
    upgrade: Tuple[str, ...]
    install: Tuple[str, ...]
    remove: Tuple[str, ...]
    cleanup: Tuple[Tuple[str, ...], ...]
    query: Tuple[str, ...]
    sudo_group: str
    env: Tuple[Tuple[str, str], ...] = ()


MANAGERS: Dict[str, ManagerCommands] = {
    "apt": ManagerCommands(
        update=("apt-get", "update"),
        upgrade=("apt-get", "upgrade", "-y"),
        install=("apt-get", "install", "-y"),
        remove=("apt-get", "remove", "-y"),
        cleanup=(("apt-get", "autoremove", "-y"), ("apt-get", "autoclean")),
        query=("apt-cache", "show"),
        sudo_group="sudo",
        env=(("DEBIAN_FRONTEND", "noninteractive"),),
    ),
    "dnf": ManagerCommands(
        update=("dnf", "makecache"),
        upgrade=("dnf", "upgrade", "-y"),
        install=("dnf", "install", "-y"),
        remove=("dnf", "remove", "-y"),
        cleanup=(("dnf", "autoremove", "-y"), ("dnf", "clean", "all")),
        query=("dnf", "info"),
        sudo_group="wheel",
    ),
    "yum": ManagerCommands(
        update=("yum", "makecache"),
        upgrade=("yum", "update", "-y"),
        install=("yum", "install", "-y"),
        remove=("yum", "remove", "-y"),
        cleanup=(("yum", "autoremove", "-y"), ("yum", "clean", "all")),
        query=("yum", "info"),
        sudo_group="wheel",
    ),
    "pacman": ManagerCommands(
        update=("pacman", "-Sy", "--noconfirm"),
        upgrade=("pacman", "-Syu", "--noconfirm"),
        install=("pacman", "-S", "--noconfirm", "--needed"),
        remove=("pacman", "-R", "--noconfirm"),
        cleanup=(("pacman", "-Sc", "--noconfirm"),),
        query=("pacman", "-Si"),
        sudo_group="wheel",
    ),
    "zypper": ManagerCommands(
        update=("zypper", "--non-interactive", "refresh"),
        upgrade=("zypper", "--non-interactive", "update"),
        install=("zypper", "--non-interactive", "install"),
        remove=("zypper", "--non-interactive", "remove"),
        cleanup=(("zypper", "clean", "--all"),),
        query=("zypper", "--non-interactive", "search", "--match-exact"),
        sudo_group="wheel",
    ),
}


def commands_for(manager: str) -> ManagerCommands:
    try:
        return MANAGERS[manager]
    except KeyError:
        raise ValueError(f"Unsupported package manager: {manager}") from None


def sudo_group(manager: str) -> str:
    return commands_for(manager).sudo_group


def _env(ctx: "SetupCtx") -> Dict[str, str]:
    return dict(commands_for(ctx.profile.package_manager).env)


def _privileged_env(ctx: "SetupCtx", argv: Sequence[str]) -> List[str]:
    # sudo resets the environment; pass manager variables through explicitly.
    extra = _env(ctx)
    if ctx.profile.is_root or not extra:
        return ctx.privileged(argv)
    return ["sudo", *[f"{k}={v}" for k, v in extra.items()], *argv]


def pkg_update(ctx: "SetupCtx") -> None:
    cmds = commands_for(ctx.profile.package_manager)
    ctx.run(_privileged_env(ctx, cmds.update), env=_env(ctx), capture=False)


def pkg_upgrade(ctx: "SetupCtx") -> None:
    cmds = commands_for(ctx.profile.package_manager)
    ctx.run(_privileged_env(ctx, cmds.upgrade), env=_env(ctx), capture=False)


def pkg_install(ctx: "SetupCtx", packages: Sequence[str]) -> None:
    if not packages:
        return
    cmds = commands_for(ctx.profile.package_manager)
    ctx.run(_privileged_env(ctx, [*cmds.install, *packages]), env=_env(ctx), capture=False)


def pkg_remove(ctx: "SetupCtx", packages: Sequence[str]) -> None:
    """Best-effort removal; packages that are not installed are fine."""
    if not packages:
        return
    cmds = commands_for(ctx.profile.package_manager)
    ctx.run(_privileged_env(ctx, [*cmds.remove, *packages]), env=_env(ctx), check=False)


def pkg_cleanup(ctx: "SetupCtx") -> None:
    for argv in commands_for(ctx.profile.package_manager).cleanup:
        ctx.run(_privileged_env(ctx, argv), env=_env(ctx), check=False)


def has_package(ctx: "SetupCtx", package: str) -> bool:
    """Return True if the package manager knows about a package name.

    This is useful for optional packages that may only exist in some repos.
    """
    cmds = commands_for(ctx.profile.package_manager)
    r = ctx.run([*cmds.query, package], check=False)
    return r.ok
