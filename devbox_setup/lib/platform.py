from __future__ import annotations

import logging
import os
import platform as _platform
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from ..errors import PrerequisiteError
from .command import Runner, run_cmd

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = "/etc/os-release"

# Distribution ID -> package manager. ID_LIKE tokens are looked up here too,
# so derivatives that declare their family resolve without being listed.
_DISTRO_MANAGERS = {
    "debian": "apt",
    "ubuntu": "apt",
    "linuxmint": "apt",
    "pop": "apt",
    "elementary": "apt",
    "kali": "apt",
    "raspbian": "apt",
    "zorin": "apt",
    "fedora": "dnf",
    "rhel": "dnf",
    "centos": "dnf",
    "rocky": "dnf",
    "almalinux": "dnf",
    "ol": "dnf",
    "amzn": "dnf",
    "arch": "pacman",
    "manjaro": "pacman",
    "endeavouros": "pacman",
    "garuda": "pacman",
    "opensuse": "zypper",
    "opensuse-leap": "zypper",
    "opensuse-tumbleweed": "zypper",
    "sles": "zypper",
    "suse": "zypper",
}

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "arm64": "aarch64",
}


@dataclass(frozen=True)
class SystemProfile:
    distro: str
    package_manager: str
    is_root: bool
    id_like: Tuple[str, ...] = ()
    codename: Optional[str] = None
    arch: str = "x86_64"
    pretty_name: str = ""

    @property
    def family(self) -> str:
        """The distribution ID a vendor repository is most likely published for."""
        for candidate in (self.distro, *self.id_like):
            if candidate in {"ubuntu", "debian", "fedora", "centos", "rhel"}:
                return candidate
        return self.distro


def parse_os_release(text: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        data[key.strip()] = parts[0] if parts else ""
    return data


def normalize_arch(machine: str) -> str:
    m = machine.lower()
    return _ARCH_ALIASES.get(m, m)


def resolve_package_manager(
    distro: str,
    id_like: Tuple[str, ...] = (),
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Tuple[str, bool]:
    """Map a distribution to its package manager.

    Returns (manager, recognized). Unknown distributions map to apt with
    recognized=False so the caller can warn.
    """

    manager = None
    for candidate in (distro, *id_like):
        manager = _DISTRO_MANAGERS.get(candidate)
        if manager is None and candidate.startswith("opensuse"):
            manager = "zypper"
        if manager:
            break

    if manager is None:
        return "apt", False

    # Older RHEL-family releases only ship yum.
    if manager == "dnf" and not which("dnf") and which("yum"):
        manager = "yum"
    return manager, True


def _read_os_release(path: str) -> Optional[Dict[str, str]]:
    p = Path(path)
    if not p.exists():
        return None
    return parse_os_release(p.read_text(encoding="utf-8", errors="ignore"))


def _lsb(flag: str, runner: Runner, which: Callable[[str], Optional[str]]) -> Optional[str]:
    if not which("lsb_release"):
        return None
    r = runner(["lsb_release", flag], check=False)
    value = r.stdout.strip().lower()
    return value if r.ok and value else None


def detect(
    *,
    os_release_path: str = OS_RELEASE_PATH,
    runner: Runner = run_cmd,
    which: Callable[[str], Optional[str]] = shutil.which,
    euid: Optional[int] = None,
    machine: Optional[str] = None,
) -> SystemProfile:
    """Detect distribution and package manager. Called exactly once per run."""

    info = _read_os_release(os_release_path)
    if info is not None:
        distro = info.get("ID", "").lower()
        id_like = tuple(info.get("ID_LIKE", "").lower().split())
        codename = info.get("UBUNTU_CODENAME") or info.get("VERSION_CODENAME") or None
        pretty = info.get("PRETTY_NAME", "")
    else:
        distro = _lsb("-si", runner, which) or _platform.system().lower()
        id_like = ()
        codename = None
        pretty = distro

    if not codename:
        codename = _lsb("-cs", runner, which)

    manager, recognized = resolve_package_manager(distro, id_like, which=which)
    if not recognized:
        logger.warning("Unknown distribution: %s. Assuming apt...", distro or "<unset>")

    if not which(manager):
        raise PrerequisiteError(f"Package manager '{manager}' not found on PATH (distro={distro or 'unknown'})")

    profile = SystemProfile(
        distro=distro or "unknown",
        package_manager=manager,
        is_root=(os.geteuid() if euid is None else euid) == 0,
        id_like=id_like,
        codename=codename,
        arch=normalize_arch(machine or _platform.machine()),
        pretty_name=pretty or distro,
    )
    logger.info(
        "Platform: distro=%s manager=%s arch=%s codename=%s root=%s",
        profile.distro,
        profile.package_manager,
        profile.arch,
        profile.codename,
        profile.is_root,
    )
    return profile
