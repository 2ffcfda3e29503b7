from __future__ import annotations

import pytest

from conftest import console_text, make_prompter
from devbox_setup.errors import ValidationError
from devbox_setup.lib.prompt import Answer, parse_answer, parse_selection


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("y", Answer.YES),
        ("YES", Answer.YES),
        (" n ", Answer.NO),
        ("no", Answer.NO),
        ("?", Answer.HELP),
        ("help", Answer.HELP),
        ("", Answer.NO),
        ("maybe", None),
    ],
)
def test_parse_answer(raw, expected):
    assert parse_answer(raw, Answer.NO) is expected


def test_confirm_uses_default_on_empty_input():
    assert make_prompter([""]).confirm("Continue?", True) is True
    assert make_prompter([""]).confirm("Continue?", False) is False


def test_confirm_help_then_answer():
    p = make_prompter(["?", "y"])
    assert p.confirm("Enable it?", False, help_text="Explains the [option].") is True
    assert "Explains the [option]." in console_text(p)


def test_confirm_gives_up_after_bounded_retries():
    p = make_prompter(["maybe", "perhaps", "dunno"])
    assert p.confirm("Continue?", True) is True
    assert p._reader.items == []


def test_ask_valid_reprompts_until_parse_accepts():
    def parse(raw):
        if raw != "ok":
            raise ValidationError("try again")
        return raw

    p = make_prompter(["bad", "", "ok"])
    assert p.ask_valid("Value:", parse) == "ok"


def test_parse_selection_variants():
    keys = ["base", "docker", "claude"]
    assert parse_selection("", keys, ["base"]) == ["base"]
    assert parse_selection("all", keys, []) == keys
    assert parse_selection("3, 1", keys, []) == ["claude", "base"]
    assert parse_selection("docker 2", keys, []) == ["docker"]
    with pytest.raises(ValidationError):
        parse_selection("7", keys, [])
    with pytest.raises(ValidationError):
        parse_selection("nginx", keys, [])


def test_choose_many_lists_options_and_reprompts():
    p = make_prompter(["9", "2"])
    chosen = p.choose_many("SELECT", [("base", "Base"), ("docker", "Docker [engine]")], ["base"])
    assert chosen == ["docker"]
    assert "Docker [engine]" in console_text(p)
