from __future__ import annotations

import getpass
import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .lib.command import CmdResult, Runner, run_cmd
from .lib.env import Paths
from .lib.platform import SystemProfile
from .lib.prompt import Prompter


class InstallStatus(Enum):
    INSTALLED = "installed"
    ALREADY_PRESENT = "already_present"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class InstallResult:
    component: str
    status: InstallStatus
    message: str = ""
    warnings: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status is InstallStatus.FAILED


@dataclass(frozen=True)
class InstallOptions:
    """Who the components install for.

    target_user is the account provisioned earlier in the run (if the operator
    chose to install for it); otherwise the invoking user.
    """

    target_user: str
    home: Path
    tools_dir: Path
    invoking_user: Optional[str] = None

    def docker_users(self) -> List[str]:
        users: List[str] = []
        for u in (self.invoking_user, self.target_user):
            if u and u != "root" and u not in users:
                users.append(u)
        return users


@dataclass(frozen=True)
class SetupCtx:
    profile: SystemProfile
    prompt: Prompter
    paths: Paths = field(default_factory=Paths)
    runner: Runner = run_cmd
    which: Callable[[str], Optional[str]] = shutil.which

    def privileged(self, argv: Sequence[str]) -> List[str]:
        if self.profile.is_root:
            return list(argv)
        return ["sudo", *argv]

    def run(self, argv: Sequence[str], **kwargs) -> CmdResult:
        return self.runner(argv, **kwargs)

    def sudo(self, argv: Sequence[str], **kwargs) -> CmdResult:
        return self.runner(self.privileged(argv), **kwargs)

    def as_user(self, username: str, argv: Sequence[str], **kwargs) -> CmdResult:
        """Run argv as username, switching only when that is not us already."""
        if username == current_user():
            return self.runner(argv, **kwargs)
        return self.runner(["sudo", "-u", username, "-H", *argv], **kwargs)

    def has(self, command: str) -> bool:
        return self.which(command) is not None


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or "root"


def invoking_user() -> Optional[str]:
    """The human behind the run, even when started through sudo."""
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        return sudo_user
    user = current_user()
    return None if user == "root" else user


def default_options(ctx: SetupCtx, install_user: Optional[str] = None) -> InstallOptions:
    inv = invoking_user()
    target = install_user or inv or current_user()
    if install_user:
        home = ctx.paths.home_for(install_user)
    elif target == current_user():
        home = Path(os.path.expanduser("~"))
    else:
        home = ctx.paths.home_for(target)
    return InstallOptions(
        target_user=target,
        home=home,
        tools_dir=home / ctx.paths.tools_dirname,
        invoking_user=inv,
    )
