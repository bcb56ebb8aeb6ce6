from strided import helpers
from strided.helpers import dprint, getenv


def test_getenv(monkeypatch):
    monkeypatch.setenv("STRIDED_TEST_LEVEL", "3")
    assert getenv("STRIDED_TEST_LEVEL", 0) == 3
    assert getenv("STRIDED_TEST_LEVEL", "") == "3"
    monkeypatch.delenv("STRIDED_TEST_LEVEL")
    assert getenv("STRIDED_TEST_LEVEL", 0) == 0


def test_dprint(monkeypatch, capsys):
    monkeypatch.setattr(helpers, "DEBUG", 1)
    dprint("shown")
    dprint("hidden", level=2)
    assert capsys.readouterr().out == "shown\n"
    monkeypatch.setattr(helpers, "DEBUG", 0)
    dprint("hidden")
    assert capsys.readouterr().out == ""
