from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import List, Optional

import httpx

from .. import report
from ..context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from ..errors import InstallFailure
from ..lib.files import write_file
from ..lib.manifests import packages_for
from ..lib.net import download, fetch_text, latest_release_tag
from ..lib.pkg import pkg_install, pkg_remove, pkg_update
from ..users import DOCKER_GROUP, group_exists

logger = logging.getLogger(__name__)

DOCKER_DOWNLOAD = "https://download.docker.com/linux"
COMPOSE_REPO = "docker/compose"
COMPOSE_DOWNLOAD = "https://github.com/docker/compose/releases/download"

# Distributions download.docker.com publishes repositories for.
_APT_FAMILIES = {"ubuntu", "debian", "raspbian"}
_RPM_FAMILIES = {"fedora", "centos", "rhel"}

_DPKG_ARCH = {"x86_64": "amd64", "aarch64": "arm64", "armv7l": "armhf", "armv6l": "armhf"}

# Compose release assets drop the trailing "l" of the 32-bit ARM machine names.
_COMPOSE_ARCH = {"armv7l": "armv7", "armv6l": "armv6"}


def compose_asset_name(arch: str, system: str = "linux") -> str:
    return f"docker-compose-{system}-{_COMPOSE_ARCH.get(arch, arch)}"


def compose_download_url(tag: str, arch: str) -> str:
    return f"{COMPOSE_DOWNLOAD}/{tag}/{compose_asset_name(arch)}"


def render_compose_dispatch(standalone: str) -> str:
    """Single docker-compose entry point: plugin first, standalone binary second."""

    return (
        "#!/bin/sh\n"
        "# docker-compose dispatch installed by devbox-setup.\n"
        "# Prefers the 'docker compose' plugin and falls back to the standalone binary.\n"
        "if docker compose version >/dev/null 2>&1; then\n"
        '    exec docker compose "$@"\n'
        "fi\n"
        f'if [ -x "{standalone}" ]; then\n'
        f'    exec "{standalone}" "$@"\n'
        "fi\n"
        'echo "Neither the docker compose plugin nor a standalone docker-compose was found" >&2\n'
        "exit 1\n"
    )


def _apt_repo_family(ctx: SetupCtx) -> str:
    family = ctx.profile.family
    return family if family in _APT_FAMILIES else "debian"


def _rpm_repo_family(ctx: SetupCtx) -> str:
    family = ctx.profile.family
    return family if family in _RPM_FAMILIES else "centos"


def _dpkg_arch(ctx: SetupCtx) -> str:
    r = ctx.run(["dpkg", "--print-architecture"], check=False)
    if r.ok and r.stdout.strip():
        return r.stdout.strip()
    return _DPKG_ARCH.get(ctx.profile.arch, ctx.profile.arch)


class DockerStep:
    step_id = "docker"
    label = "Docker and Docker Compose"
    priority = 20

    def __init__(self, client: Optional[httpx.Client] = None) -> None:
        self.client = client

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        return ctx.has("docker")

    def _install_apt(self, ctx: SetupCtx) -> None:
        if not ctx.profile.codename:
            raise InstallFailure("Cannot determine the distribution codename for the Docker apt repository")

        pkg_remove(ctx, packages_for("docker_legacy_packages", "apt"))

        family = _apt_repo_family(ctx)
        keyring = Path(ctx.paths.keyrings_dir) / "docker.gpg"
        key = fetch_text(f"{DOCKER_DOWNLOAD}/{family}/gpg", client=self.client)

        ctx.sudo(["install", "-d", "-m", "0755", ctx.paths.keyrings_dir])
        ctx.sudo(["gpg", "--batch", "--yes", "--dearmor", "-o", str(keyring)], input_text=key)
        ctx.sudo(["chmod", "a+r", str(keyring)])

        line = (
            f"deb [arch={_dpkg_arch(ctx)} signed-by={keyring}] "
            f"{DOCKER_DOWNLOAD}/{family} {ctx.profile.codename} stable\n"
        )
        write_file(ctx, Path(ctx.paths.apt_sources_dir) / "docker.list", line, mode=0o644)

        pkg_update(ctx)
        pkg_install(ctx, packages_for("docker_packages", "apt"))

    def _install_rpm(self, ctx: SetupCtx) -> None:
        manager = ctx.profile.package_manager
        repo = f"{DOCKER_DOWNLOAD}/{_rpm_repo_family(ctx)}/docker-ce.repo"
        if manager == "yum":
            pkg_install(ctx, ["yum-utils"])
            ctx.sudo(["yum-config-manager", "--add-repo", repo])
        else:
            pkg_install(ctx, ["dnf-plugins-core"])
            r = ctx.sudo(["dnf", "config-manager", "--add-repo", repo], check=False)
            if not r.ok:
                # dnf5 renamed the subcommand syntax.
                ctx.sudo(["dnf", "config-manager", "addrepo", f"--from-repofile={repo}"])
        pkg_install(ctx, packages_for("docker_packages", manager))

    def install_engine(self, ctx: SetupCtx) -> None:
        manager = ctx.profile.package_manager
        if manager == "apt":
            self._install_apt(ctx)
        elif manager in {"dnf", "yum"}:
            self._install_rpm(ctx)
        else:
            pkg_install(ctx, packages_for("docker_packages", manager))

    def enable_service(self, ctx: SetupCtx) -> List[str]:
        if not ctx.has("systemctl"):
            return ["systemctl not found; start the docker service manually"]
        warnings: List[str] = []
        for action in ("start", "enable"):
            r = ctx.sudo(["systemctl", action, "docker"], check=False)
            if not r.ok:
                warnings.append(f"systemctl {action} docker failed: {r.stderr.strip()}")
        return warnings

    def add_users(self, ctx: SetupCtx, opts: InstallOptions) -> List[str]:
        users = opts.docker_users()
        if not users:
            return []
        if not group_exists(ctx, DOCKER_GROUP):
            ctx.sudo(["groupadd", DOCKER_GROUP])
        for user in users:
            ctx.sudo(["usermod", "-aG", DOCKER_GROUP, user])
            report.success(f"Added {user} to docker group")
        return users

    def install_compose_standalone(self, ctx: SetupCtx) -> str:
        """Install the standalone Compose fallback and the dispatch script. Returns the tag."""

        tag = latest_release_tag(COMPOSE_REPO, client=self.client)
        url = compose_download_url(tag, ctx.profile.arch)
        with tempfile.TemporaryDirectory(prefix="devbox-setup-") as tmp:
            binary = download(url, Path(tmp) / compose_asset_name(ctx.profile.arch), client=self.client)
            ctx.sudo(["install", "-m", "0755", str(binary), ctx.paths.compose_standalone])
        write_file(
            ctx,
            ctx.paths.compose_dispatch,
            render_compose_dispatch(ctx.paths.compose_standalone),
            mode=0o755,
        )
        return tag

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        warnings: List[str] = []
        status = InstallStatus.INSTALLED

        if self.is_installed(ctx, opts) and not ctx.prompt.confirm(
            "Docker is already installed. Reinstall it?", False
        ):
            report.info("Docker is already installed")
            status = InstallStatus.ALREADY_PRESENT
        else:
            self.install_engine(ctx)
            if not self.is_installed(ctx, opts):
                raise InstallFailure("docker command not found after installation")

        warnings += self.enable_service(ctx)
        users = self.add_users(ctx, opts)
        if users and not ctx.profile.is_root:
            report.warning("Please log out and back in for docker group membership to take effect")

        try:
            tag = self.install_compose_standalone(ctx)
            report.success(f"Docker Compose standalone installed: {tag}")
        except InstallFailure as e:
            # The plugin from the engine packages still works without the fallback.
            warnings.append(f"Standalone Compose fallback not installed: {e}")

        return InstallResult(
            component=self.step_id,
            status=status,
            message="Docker engine, service and compose ready",
            warnings=warnings,
        )
