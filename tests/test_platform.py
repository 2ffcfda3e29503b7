from __future__ import annotations

import logging

import pytest

from devbox_setup.errors import PrerequisiteError
from devbox_setup.lib.command import CmdResult
from devbox_setup.lib.platform import detect, normalize_arch, parse_os_release, resolve_package_manager


def _which(*present):
    return lambda cmd: f"/usr/bin/{cmd}" if cmd in present else None


def _no_commands(argv, **kw):
    raise AssertionError(f"unexpected command: {argv}")


def _write_os_release(tmp_path, text):
    p = tmp_path / "os-release"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_parse_os_release_handles_quotes_and_comments():
    data = parse_os_release(
        '# comment\nNAME="Ubuntu"\nID=ubuntu\nID_LIKE=debian\nPRETTY_NAME="Ubuntu 24.04 LTS"\n\nVERSION_CODENAME=noble\n'
    )
    assert data["ID"] == "ubuntu"
    assert data["PRETTY_NAME"] == "Ubuntu 24.04 LTS"
    assert data["VERSION_CODENAME"] == "noble"
    assert "# comment" not in data


@pytest.mark.parametrize(
    "distro,manager",
    [
        ("ubuntu", "apt"),
        ("debian", "apt"),
        ("linuxmint", "apt"),
        ("fedora", "dnf"),
        ("rocky", "dnf"),
        ("arch", "pacman"),
        ("manjaro", "pacman"),
        ("opensuse-tumbleweed", "zypper"),
        ("opensuse-leap", "zypper"),
        ("sles", "zypper"),
    ],
)
def test_detect_maps_os_release_id_to_manager(tmp_path, distro, manager):
    path = _write_os_release(tmp_path, f"ID={distro}\n")
    profile = detect(os_release_path=path, runner=_no_commands, which=_which(manager), euid=0, machine="x86_64")
    assert profile.distro == distro
    assert profile.package_manager == manager
    assert profile.is_root is True


def test_id_like_resolves_derivatives(tmp_path):
    path = _write_os_release(tmp_path, 'ID=neon\nID_LIKE="ubuntu debian"\nUBUNTU_CODENAME=jammy\n')
    profile = detect(os_release_path=path, runner=_no_commands, which=_which("apt"), euid=1000, machine="amd64")
    assert profile.package_manager == "apt"
    assert profile.family == "ubuntu"
    assert profile.codename == "jammy"
    assert profile.arch == "x86_64"
    assert profile.is_root is False


def test_unknown_distribution_falls_back_to_apt_with_warning(tmp_path, caplog):
    path = _write_os_release(tmp_path, "ID=plan9\n")
    with caplog.at_level(logging.WARNING):
        profile = detect(os_release_path=path, runner=_no_commands, which=_which("apt"), euid=0, machine="x86_64")
    assert profile.package_manager == "apt"
    assert "Unknown distribution: plan9" in caplog.text


def test_missing_manager_binary_is_fatal(tmp_path):
    path = _write_os_release(tmp_path, "ID=arch\n")
    with pytest.raises(PrerequisiteError, match="pacman"):
        detect(os_release_path=path, runner=_no_commands, which=_which("apt"), euid=0, machine="x86_64")


def test_rhel_family_falls_back_to_yum():
    assert resolve_package_manager("centos", which=_which("yum")) == ("yum", True)
    assert resolve_package_manager("centos", which=_which("dnf", "yum")) == ("dnf", True)


def test_lsb_release_used_when_os_release_is_missing(tmp_path):
    answers = {"-si": "Debian\n", "-cs": "bookworm\n"}

    def runner(argv, **kw):
        assert argv[0] == "lsb_release"
        return CmdResult(argv=list(argv), returncode=0, stdout=answers[argv[1]], stderr="")

    profile = detect(
        os_release_path=str(tmp_path / "missing"),
        runner=runner,
        which=_which("lsb_release", "apt"),
        euid=0,
        machine="aarch64",
    )
    assert profile.distro == "debian"
    assert profile.package_manager == "apt"
    assert profile.codename == "bookworm"
    assert profile.arch == "aarch64"


def test_normalize_arch():
    assert normalize_arch("AMD64") == "x86_64"
    assert normalize_arch("arm64") == "aarch64"
    assert normalize_arch("armv7l") == "armv7l"
