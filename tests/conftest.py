from __future__ import annotations

import io
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import pytest
from rich.console import Console

from devbox_setup.context import InstallOptions, SetupCtx
from devbox_setup.errors import CommandError
from devbox_setup.lib.command import CmdResult
from devbox_setup.lib.env import Paths
from devbox_setup.lib.platform import SystemProfile
from devbox_setup.lib.prompt import Prompter

Hook = Callable[[List[str]], Tuple[int, str, str]]

_ENV_ASSIGN = re.compile(r"^[A-Z_][A-Z0-9_]*=")


def unwrap(argv: Iterable[str]) -> List[str]:
    """Strip sudo, sudo -u <user> -H and VAR=value prefixes."""
    args = list(argv)
    while args and args[0] == "sudo":
        args = args[1:]
        if args[:1] == ["-u"]:
            args = args[2:]
        if args[:1] == ["-H"]:
            args = args[1:]
        while args and _ENV_ASSIGN.match(args[0]):
            args = args[1:]
    return args


def _operands(args: List[str], valued: Iterable[str] = ("-o", "-g", "-m")) -> List[str]:
    out: List[str] = []
    skip = False
    valued = set(valued)
    for a in args:
        if skip:
            skip = False
            continue
        if a in valued:
            skip = True
            continue
        if a.startswith("-"):
            continue
        out.append(a)
    return out


class FakeSystem:
    """A pretend Linux host: users, groups, packages and PATH, driven by argv."""

    def __init__(self, home_root: Path) -> None:
        self.home_root = Path(home_root)
        self.commands: Set[str] = {
            "sudo",
            "curl",
            "git",
            "apt-get",
            "apt-cache",
            "adduser",
            "useradd",
            "usermod",
            "groupadd",
            "visudo",
            "ping",
            "getent",
            "id",
            "chpasswd",
        }
        self.users: Dict[str, Set[str]] = {}
        self.primary: Dict[str, str] = {}
        self.groups: Set[str] = {"sudo"}
        self.installed: List[str] = []
        self.available_packages: Optional[Set[str]] = None
        self.broken_packages: Set[str] = set()
        self.provides: Dict[str, str] = {}
        self.visudo_ok = True
        self.online = True
        self.sudo_cached = True
        self.sudo_password_ok = True
        self.timezones = ["Europe/Berlin", "Europe/London", "UTC"]
        self.bad_urls: Set[str] = set()
        self.hooks: Dict[str, Hook] = {}
        self.calls: List[List[str]] = []
        self.stdin: List[str] = []

    def which(self, cmd: str) -> Optional[str]:
        return f"/usr/bin/{cmd}" if cmd in self.commands else None

    def add_user(self, name: str, *groups: str, primary: Optional[str] = None) -> None:
        self.primary[name] = primary or name
        self.users[name] = {self.primary[name], *groups}
        self.groups.update(self.users[name])
        (self.home_root / name).mkdir(parents=True, exist_ok=True)

    def ran(self, *prefix: str) -> bool:
        n = len(prefix)
        return any(unwrap(c)[:n] == list(prefix) for c in self.calls)

    def count(self, *prefix: str) -> int:
        n = len(prefix)
        return sum(1 for c in self.calls if unwrap(c)[:n] == list(prefix))

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, capture=True) -> CmdResult:
        full = [str(a) for a in argv]
        self.calls.append(full)
        if input_text is not None:
            self.stdin.append(input_text)
        rc, out, err = self._dispatch(full)
        if check and rc != 0:
            raise CommandError(full, rc, err)
        return CmdResult(argv=full, returncode=rc, stdout=out, stderr=err)

    def _dispatch(self, full: List[str]) -> Tuple[int, str, str]:
        if full == ["sudo", "-n", "true"]:
            return (0 if self.sudo_cached else 1), "", "a password is required"
        if full == ["sudo", "-v"]:
            return (0 if self.sudo_password_ok else 1), "", ""

        args = unwrap(full)
        cmd, rest = args[0], args[1:]
        if cmd in self.hooks:
            return self.hooks[cmd](args)

        if cmd == "id":
            user = rest[-1]
            if user not in self.users:
                return 1, "", f"id: '{user}': no such user"
            if rest[0] == "-nG":
                return 0, " ".join(sorted(self.users[user])) + "\n", ""
            if rest[0] == "-gn":
                return 0, self.primary[user] + "\n", ""
            return 0, "1001\n", ""
        if cmd == "getent":
            kind, name = rest[0], rest[1]
            if kind == "group":
                return (0, f"{name}:x:1000:\n", "") if name in self.groups else (2, "", "")
            if name in self.users:
                return 0, f"{name}:x:1001:1001::{self.home_root / name}:/bin/bash\n", ""
            return 2, "", ""
        if cmd in {"adduser", "useradd"}:
            self.add_user(rest[-1])
            return 0, "", ""
        if cmd == "groupadd":
            self.groups.add(rest[-1])
            return 0, "", ""
        if cmd == "usermod":
            group, user = rest[-2], rest[-1]
            if user not in self.users:
                return 6, "", f"usermod: user '{user}' does not exist"
            self.users[user].add(group)
            return 0, "", ""
        if cmd == "visudo":
            return (0, "parsed OK\n", "") if self.visudo_ok else (1, "", ">>> syntax error near line 1 <<<")
        if cmd == "ping":
            return (0, "", "") if self.online else (1, "", "unreachable")
        if cmd == "install" and "-g" in rest and rest[rest.index("-g") + 1] not in self.groups:
            return 1, "", f"install: invalid group '{rest[rest.index('-g') + 1]}'"
        if cmd == "chown" and ":" in rest[0] and rest[0].split(":", 1)[1] not in self.groups:
            return 1, "", f"chown: invalid group: '{rest[0]}'"
        if cmd == "install" and "-d" in rest:
            for d in _operands(rest):
                Path(d).mkdir(parents=True, exist_ok=True)
            return 0, "", ""
        if cmd == "mkdir":
            for d in _operands(rest):
                Path(d).mkdir(parents=True, exist_ok=True)
            return 0, "", ""
        if cmd == "git" and rest[:1] == ["clone"]:
            url, dest = rest[1], rest[2]
            if url in self.bad_urls:
                return 128, "", f"fatal: repository '{url}' not found"
            (Path(dest) / ".git").mkdir(parents=True, exist_ok=True)
            return 0, "", ""
        if cmd == "apt-cache":
            pkg = rest[-1]
            known = self.available_packages is None or pkg in self.available_packages
            return (0, f"Package: {pkg}\n", "") if known else (100, "", f"E: No packages found: {pkg}")
        if cmd == "apt-get" and rest[:1] == ["install"]:
            pkgs = _operands(rest[1:])
            if any(p in self.broken_packages for p in pkgs):
                return 100, "", "E: Unable to locate package"
            for p in pkgs:
                self.installed.append(p)
                if p in self.provides:
                    self.commands.add(self.provides[p])
            return 0, "", ""
        if cmd == "timedatectl" and rest[:1] == ["list-timezones"]:
            return 0, "\n".join(self.timezones) + "\n", ""
        if "--version" in rest or rest[:1] == ["version"]:
            return 0, f"{cmd} version 1.2.3\n", ""
        return 0, "", ""


class Answers:
    """Canned operator input; running out of answers fails the test loudly."""

    def __init__(self, items: Iterable[str]) -> None:
        self.items = list(items)
        self.prompts: List[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.items:
            raise AssertionError(f"unexpected prompt: {prompt}")
        return self.items.pop(0)


def make_prompter(answers: Iterable[str] = (), secrets: Iterable[str] = ()) -> Prompter:
    return Prompter(
        Console(file=io.StringIO(), width=120),
        reader=Answers(answers),
        secret_reader=Answers(secrets),
    )


def console_text(prompter: Prompter) -> str:
    return prompter.console.file.getvalue()


@pytest.fixture
def paths(tmp_path: Path) -> Paths:
    skel = tmp_path / "skel" / ".bashrc"
    skel.parent.mkdir(parents=True)
    skel.write_text("# default skel bashrc\nHISTSIZE=1000\n", encoding="utf-8")
    return Paths(
        log_dir=str(tmp_path / "log"),
        sudoers_dir=str(tmp_path / "sudoers.d"),
        home_root=str(tmp_path / "home"),
        skel_bashrc=str(skel),
        keyrings_dir=str(tmp_path / "keyrings"),
        apt_sources_dir=str(tmp_path / "sources.list.d"),
        compose_standalone=str(tmp_path / "bin" / "docker-compose-standalone"),
        compose_dispatch=str(tmp_path / "bin" / "docker-compose"),
    )


@pytest.fixture
def fake(paths: Paths) -> FakeSystem:
    return FakeSystem(Path(paths.home_root))


@pytest.fixture
def profile() -> SystemProfile:
    return SystemProfile(
        distro="ubuntu",
        package_manager="apt",
        is_root=True,
        id_like=("debian",),
        codename="noble",
        arch="x86_64",
        pretty_name="Ubuntu 24.04 LTS",
    )


@pytest.fixture
def make_ctx(fake: FakeSystem, paths: Paths, profile: SystemProfile):
    def _make(answers: Iterable[str] = (), secrets: Iterable[str] = (), **overrides) -> SetupCtx:
        prof = replace(profile, **overrides)
        return SetupCtx(
            profile=prof,
            prompt=make_prompter(answers, secrets),
            paths=paths,
            runner=fake,
            which=fake.which,
        )

    return _make


@pytest.fixture
def opts(paths: Paths) -> InstallOptions:
    home = Path(paths.home_root) / "dev1"
    home.mkdir(parents=True, exist_ok=True)
    return InstallOptions(target_user="dev1", home=home, tools_dir=home / paths.tools_dirname, invoking_user="alice")


@pytest.fixture
def isolated_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for attr in ("_devbox_configured", "_devbox_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
    root.setLevel(level)
