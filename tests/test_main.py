from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from conftest import console_text, make_prompter
from devbox_setup import __version__
from devbox_setup import main as cli
from devbox_setup.errors import PrerequisiteError


@pytest.mark.parametrize("flag", ["-h", "--help"])
def test_help_exits_zero(flag, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main([flag])
    assert exc.value.code == 0
    assert "usage: devbox-setup" in capsys.readouterr().out


@pytest.mark.parametrize("flag", ["-v", "--version"])
def test_version_exits_zero(flag, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main([flag])
    assert exc.value.code == 0
    assert capsys.readouterr().out.strip() == f"devbox-setup {__version__}"


@pytest.mark.parametrize("argv", [["--force"], ["install"], ["-x"]])
def test_unknown_arguments_exit_one(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    assert exc.value.code == 1


def test_prerequisite_error_exits_one(monkeypatch):
    def boom():
        raise PrerequisiteError("No internet connection detected")

    monkeypatch.setattr(cli, "run", boom)
    assert cli.main([]) == 1


def test_interrupt_exits_one(monkeypatch):
    def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "run", interrupted)
    assert cli.main([]) == 1


@pytest.fixture
def operator_home(tmp_path, monkeypatch):
    home = tmp_path / "operator"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SUDO_USER", raising=False)
    return home


def _offline_client():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_base_only_run_leaves_docker_untouched(fake, paths, profile, operator_home, isolated_logging):
    fake.commands.update({"node", "npm"})
    prompter = make_prompter(["n", "1", "y"])

    code = cli.run(
        prompt=prompter,
        paths=paths,
        runner=fake,
        which=fake.which,
        detect_fn=lambda **kw: profile,
        client=_offline_client(),
    )

    assert code == 0
    assert fake.ran("apt-get", "update")
    assert fake.ran("apt-get", "install", "-y", "sudo")
    assert not any("docker" in " ".join(c) for c in fake.calls)
    assert not any("claude" in " ".join(c) for c in fake.calls)
    assert not (operator_home / paths.tools_dirname).exists()

    out = console_text(prompter)
    assert "INSTALLATION SUMMARY" in out
    docker_rows = [line for line in out.splitlines() if "Docker" in line and "not installed" in line]
    assert docker_rows
    assert list(Path(paths.log_dir).glob("devbox-setup-*.log"))


def test_cancel_before_install_changes_nothing(fake, paths, profile, operator_home, isolated_logging):
    prompter = make_prompter(["n", "", "n"])

    code = cli.run(prompt=prompter, paths=paths, runner=fake, which=fake.which, detect_fn=lambda **kw: profile)

    assert code == 0
    assert not fake.ran("apt-get")


def test_component_failure_sets_exit_code(fake, paths, profile, operator_home, isolated_logging):
    fake.broken_packages.add("jq")
    prompter = make_prompter(["n", "base", "y"])

    code = cli.run(prompt=prompter, paths=paths, runner=fake, which=fake.which, detect_fn=lambda **kw: profile)

    assert code == 1
    assert "failed" in console_text(prompter)
