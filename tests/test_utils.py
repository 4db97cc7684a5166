import io

import pytest

from resource_split.context import RunContext
from resource_split.utils import (
    filename_collisions,
    format_label,
    format_number,
    gnuplot_quote,
    safe_filename,
    write_comment,
    write_row,
)


@pytest.mark.parametrize("value, expected", [
    (4.7, "4.7"),
    (2.0, "2"),
    (3, "3"),
    (1234567.0, "1.23457e+06"),
    (0.0001, "0.0001"),
    (float("nan"), "NaN"),
    (None, "NaN"),
    (float("inf"), "inf"),
])
def test_format_number(value, expected):
    assert format_number(value) == expected


def test_format_number_precision():
    assert format_number(1 / 3, 10) == "0.3333333333"


def test_rows_and_comments():
    out = io.StringIO()
    write_comment(out, ["a", "b"])
    write_row(out, ["1", "2"])
    assert out.getvalue() == "# a b\n1 2\n"


def test_labels_and_quoting():
    assert format_label("host1") == "host1"
    assert format_label("my host") == '"my host"'
    assert format_label("") == '""'
    assert gnuplot_quote('say "hi"') == '"say \\"hi\\""'


@pytest.mark.parametrize("name, expected", [
    ("host1", "host1"),
    ("a/b", "a_b"),
    ("..", "_.._"),
    ("", "__"),
])
def test_safe_filename(name, expected):
    assert safe_filename(name) == expected


def test_warn_once_is_per_context(capsys):
    first = RunContext()
    assert first.warn_once("units:memory", "mixed units")
    assert not first.warn_once("units:memory", "mixed units")
    assert RunContext().warn_once("units:memory", "mixed units")
    assert capsys.readouterr().err.count("Warning: mixed units") == 2


def test_log_only_when_verbose(capsys):
    RunContext().log("quiet")
    RunContext(verbose=True).log("loud")
    out = capsys.readouterr().out
    assert "quiet" not in out
    assert "loud" in out


def test_filename_collisions():
    assert filename_collisions(["a_b", "c", "a/b"]) == [("a/b", "a_b", "a_b")]
    assert filename_collisions(["x", "y"]) == []
