"""User Provisioner.

Flow for a single account:

    username -> (exists? reconfigure : password -> create) -> groups
             -> [passwordless sudo] -> shell profile

Nothing touches the account database until the UserSpec is fully validated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import report
from .context import SetupCtx
from .errors import ConfigurationRollback, InstallFailure, ValidationError
from .lib.files import file_exists, read_file, remove_file, write_file
from .lib.pkg import sudo_group

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
MAX_USERNAME_LENGTH = 32
MIN_PASSWORD_LENGTH = 8

DOCKER_GROUP = "docker"

BLOCK_BEGIN = "# >>> devbox-setup >>>"
BLOCK_END = "# <<< devbox-setup <<<"

USER_DIRS = (".config", "bin", "projects")

_PKG_ALIASES = {
    "apt": ("sudo apt update && sudo apt upgrade", "sudo apt install", "apt search"),
    "dnf": ("sudo dnf upgrade", "sudo dnf install", "dnf search"),
    "yum": ("sudo yum update", "sudo yum install", "yum search"),
    "pacman": ("sudo pacman -Syu", "sudo pacman -S", "pacman -Ss"),
    "zypper": ("sudo zypper refresh && sudo zypper update", "sudo zypper install", "zypper search"),
}


@dataclass(frozen=True)
class UserSpec:
    username: str
    password: str = field(repr=False)
    grant_sudo: bool = True
    passwordless_sudo: bool = False
    docker_group: bool = True


@dataclass(frozen=True)
class ProvisionedUser:
    username: str
    created: bool
    install_target: bool = False
    failures: List[str] = field(default_factory=list)


def validate_username(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Username cannot be empty")
    if len(name) > MAX_USERNAME_LENGTH or not USERNAME_RE.match(name):
        raise ValidationError(
            "Invalid username. Use only lowercase letters, numbers, underscore, and dash (max 32 chars)"
        )
    return name


def validate_password(password: str, confirmation: Optional[str] = None) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if confirmation is not None and password != confirmation:
        raise ValidationError("Passwords do not match")


def user_exists(ctx: SetupCtx, username: str) -> bool:
    return ctx.run(["id", "-u", username], check=False).ok


def group_exists(ctx: SetupCtx, group: str) -> bool:
    return ctx.run(["getent", "group", group], check=False).ok


def user_groups(ctx: SetupCtx, username: str) -> List[str]:
    r = ctx.run(["id", "-nG", username], check=False)
    return r.stdout.split() if r.ok else []


def primary_group(ctx: SetupCtx, username: str) -> str:
    """Name of the account's primary group; not always the username."""

    r = ctx.run(["id", "-gn", username], check=False)
    return r.stdout.strip() if r.ok and r.stdout.strip() else username


def _passwd_entry(ctx: SetupCtx, username: str) -> List[str]:
    r = ctx.run(["getent", "passwd", username], check=False)
    if not r.ok or not r.stdout.strip():
        return []
    return r.stdout.strip().splitlines()[0].split(":")


def home_of(ctx: SetupCtx, username: str) -> Path:
    entry = _passwd_entry(ctx, username)
    if len(entry) >= 6 and entry[5]:
        return Path(entry[5])
    return ctx.paths.home_for(username)


def create_account(ctx: SetupCtx, spec: UserSpec) -> None:
    report.step(f"Creating user '{spec.username}'...")
    if ctx.profile.package_manager == "apt" and ctx.has("adduser"):
        ctx.sudo(["adduser", "--disabled-password", "--gecos", "", spec.username])
    else:
        ctx.sudo(["useradd", "-m", "-s", "/bin/bash", spec.username])

    # chpasswd reads user:password from stdin; argv stays free of the secret.
    ctx.sudo(["chpasswd"], input_text=f"{spec.username}:{spec.password}\n")
    report.success(f"User '{spec.username}' created successfully")


def grant_groups(ctx: SetupCtx, username: str, *, grant_sudo: bool = True, docker: bool = True) -> List[str]:
    """Additive group membership. Returns the groups granted."""

    report.step(f"Configuring privileges for user '{username}'...")
    granted: List[str] = []
    if grant_sudo:
        group = sudo_group(ctx.profile.package_manager)
        if not group_exists(ctx, group):
            ctx.sudo(["groupadd", group])
        ctx.sudo(["usermod", "-aG", group, username])
        granted.append(group)
        report.success(f"Added '{username}' to {group} group")

    if docker:
        if not group_exists(ctx, DOCKER_GROUP):
            ctx.sudo(["groupadd", DOCKER_GROUP])
        ctx.sudo(["usermod", "-aG", DOCKER_GROUP, username])
        granted.append(DOCKER_GROUP)
        report.success(f"Added '{username}' to {DOCKER_GROUP} group")
    return granted


def sudoers_rule(username: str) -> str:
    return f"{username} ALL=(ALL) NOPASSWD:ALL\n"


def enable_passwordless_sudo(ctx: SetupCtx, username: str) -> Path:
    """Write the per-user sudoers fragment and validate it immediately.

    A fragment that fails visudo is removed before raising, so a broken rule
    never stays on disk.
    """

    fragment = ctx.paths.sudoers_fragment(username)
    report.step(f"Setting up passwordless sudo for '{username}'...")
    write_file(ctx, fragment, sudoers_rule(username), mode=0o440)

    r = ctx.sudo(["visudo", "-c", "-f", str(fragment)], check=False)
    if not r.ok:
        remove_file(ctx, fragment)
        raise ConfigurationRollback(
            f"sudoers fragment for '{username}' failed validation and was removed: {(r.stderr or r.stdout).strip()}"
        )

    report.success(f"Passwordless sudo configured for '{username}'")
    report.warning(f"Security Note: User '{username}' can now run sudo without password")
    return fragment


def disable_passwordless_sudo(ctx: SetupCtx, username: str) -> bool:
    fragment = ctx.paths.sudoers_fragment(username)
    if not file_exists(ctx, fragment):
        return False
    remove_file(ctx, fragment)
    report.info(f"Removed passwordless sudo rule for '{username}'")
    return True


def render_profile_block(package_manager: str) -> str:
    update, install, search = _PKG_ALIASES.get(package_manager, _PKG_ALIASES["apt"])
    lines = [
        BLOCK_BEGIN,
        "# Managed by devbox-setup; edits inside this block are replaced on re-run.",
        'export PATH="$HOME/bin:$HOME/.local/bin:/usr/local/bin:$PATH"',
        "",
        "# Useful aliases",
        "alias ll='ls -alF'",
        "alias la='ls -A'",
        "alias l='ls -CF'",
        "alias ..='cd ..'",
        "alias ...='cd ../..'",
        "alias grep='grep --color=auto'",
        "alias fgrep='fgrep --color=auto'",
        "alias egrep='egrep --color=auto'",
        "alias h='history'",
        "alias c='clear'",
        "",
        "# Docker aliases",
        "alias dps='docker ps'",
        "alias dpa='docker ps -a'",
        "alias di='docker images'",
        "alias dc='docker-compose'",
        "alias dcu='docker-compose up -d'",
        "alias dcd='docker-compose down'",
        "alias dcl='docker-compose logs -f'",
        "",
        "# Git aliases",
        "alias gs='git status'",
        "alias ga='git add'",
        "alias gc='git commit'",
        "alias gp='git push'",
        "alias gl='git pull'",
        "alias gb='git branch'",
        "alias gco='git checkout'",
        "",
        "# System aliases",
        f"alias update='{update}'",
        f"alias install='{install}'",
        f"alias search='{search}'",
        "",
        "# Claude CLI (older installs ship it as claude-code)",
        "if ! command -v claude >/dev/null 2>&1 && command -v claude-code >/dev/null 2>&1; then",
        "    alias claude='claude-code'",
        "fi",
        "",
        "case $- in",
        "    *i*) echo \"Development environment ready! Type 'claude --help' to get started with AI assistance.\" ;;",
        "esac",
        BLOCK_END,
    ]
    return "\n".join(lines) + "\n"


def apply_managed_block(text: str, block: str) -> str:
    """Replace the managed block in text, or append it if absent.

    Applying the same block twice yields the same text.
    """

    lines = text.splitlines()
    block_lines = block.rstrip("\n").splitlines()

    try:
        begin = lines.index(BLOCK_BEGIN)
    except ValueError:
        begin = -1

    if begin >= 0:
        try:
            end = lines.index(BLOCK_END, begin + 1)
        except ValueError:
            # Unterminated block: everything after the marker is ours.
            end = len(lines) - 1
        new_lines = lines[:begin] + block_lines + lines[end + 1 :]
    else:
        new_lines = list(lines)
        if new_lines and new_lines[-1].strip():
            new_lines.append("")
        new_lines += block_lines

    return "\n".join(new_lines) + "\n"


def write_shell_profile(ctx: SetupCtx, username: str, home: Path) -> Path:
    report.step(f"Setting up environment for user '{username}'...")
    group = primary_group(ctx, username)

    ctx.sudo(["install", "-d", "-o", username, "-g", group, "-m", "700", str(home / ".ssh")])
    ctx.sudo(["install", "-d", "-o", username, "-g", group, *[str(home / d) for d in USER_DIRS]])

    bashrc = home / ".bashrc"
    current = read_file(ctx, bashrc)
    base = current if current is not None else (read_file(ctx, ctx.paths.skel_bashrc) or "")
    updated = apply_managed_block(base, render_profile_block(ctx.profile.package_manager))

    if updated != current:
        write_file(ctx, bashrc, updated, mode=0o644, owner=username, group=group)
    else:
        logger.info("%s already up to date", str(bashrc))

    ctx.sudo(["chown", f"{username}:{group}", str(home)], check=False)
    report.success(f"Environment setup completed for '{username}'")
    return bashrc


def provision(ctx: SetupCtx, spec: UserSpec, *, exists: bool) -> List[str]:
    """Materialize a validated UserSpec. Returns non-fatal failure messages."""

    failures: List[str] = []
    if not exists:
        create_account(ctx, spec)

    grant_groups(ctx, spec.username, grant_sudo=spec.grant_sudo, docker=spec.docker_group)

    if spec.passwordless_sudo:
        try:
            enable_passwordless_sudo(ctx, spec.username)
        except ConfigurationRollback as e:
            report.error(str(e))
            failures.append(str(e))
    else:
        disable_passwordless_sudo(ctx, spec.username)

    write_shell_profile(ctx, spec.username, home_of(ctx, spec.username))
    return failures


def prompt_password(ctx: SetupCtx, username: str) -> str:
    while True:
        password = ctx.prompt.ask_secret(f"Enter password for user '{username}':")
        try:
            validate_password(password)
            confirmation = ctx.prompt.ask_secret("Confirm password:")
            validate_password(password, confirmation)
            return password
        except ValidationError as e:
            report.error(str(e))


def run_user_provisioner(ctx: SetupCtx) -> Optional[ProvisionedUser]:
    """Interactive entry point. Returns the provisioned account, if any."""

    report.step("User Management Setup")
    if not ctx.prompt.confirm("Do you want to create a new user?", False):
        return None

    ctx.prompt.console.print("\n[bold cyan]=== USER CREATION ===[/bold cyan]")
    username = ctx.prompt.ask_valid("Enter username for new user:", validate_username)

    exists = user_exists(ctx, username)
    if exists:
        report.info(f"User '{username}' already exists")
        if not ctx.prompt.confirm("Do you want to configure this existing user?", True):
            return None
        # No password is applied to an existing account.
        password = ""
    else:
        password = prompt_password(ctx, username)

    grant_sudo = ctx.prompt.confirm(f"Grant sudo privileges to '{username}'?", True)
    passwordless = grant_sudo and ctx.prompt.confirm(
        f"Do you want to enable passwordless sudo for user '{username}'?",
        False,
        help_text="Writes a sudoers rule so the user never re-enters a password for sudo.",
    )
    docker = ctx.prompt.confirm(
        f"Add user '{username}' to docker group? (recommended if installing Docker)", True
    )

    spec = UserSpec(
        username=username,
        password=password,
        grant_sudo=grant_sudo,
        passwordless_sudo=passwordless,
        docker_group=docker,
    )
    del password

    try:
        failures = provision(ctx, spec, exists=exists)
    except InstallFailure as e:
        report.error(f"Failed to set up user '{username}': {e}")
        # The account may already exist if a later stage failed.
        created = not exists and user_exists(ctx, username)
        return ProvisionedUser(username=username, created=created, failures=[str(e)])
    finally:
        del spec

    report.success(f"User '{username}' setup completed")
    target = ctx.prompt.confirm(
        f"Do you want to install for user '{username}' for the rest of the installation?", False
    )
    return ProvisionedUser(username=username, created=not exists, install_target=target, failures=failures)


def describe_user(ctx: SetupCtx, username: str) -> Dict[str, Any]:
    entry = _passwd_entry(ctx, username)
    return {
        "username": username,
        "home": entry[5] if len(entry) >= 6 else str(ctx.paths.home_for(username)),
        "shell": entry[6] if len(entry) >= 7 else "",
        "groups": sorted(user_groups(ctx, username)),
        "passwordless_sudo": file_exists(ctx, ctx.paths.sudoers_fragment(username)),
    }
