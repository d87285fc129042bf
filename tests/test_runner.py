from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

from lispy.runner import (
    EXIT_ERROR,
    EXIT_OK,
    EXIT_USAGE,
    build_arg_parser,
    main,
    run_highlight,
    run_parse,
    run_tokenize,
)
from lispy.utils import DEBUG_PY_TRACE_ENV
from tests.support.harness import FailingStream


def write_source(tmp_path: Path, text: str) -> str:
    path = tmp_path / "prog.clj"
    path.write_bytes(text.encode("utf-8"))
    return str(path)


def test_tokenize_indents_by_depth(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_source(tmp_path, "(+ 1 (f))")

    assert main(["tokenize", path]) == EXIT_OK

    out = capsys.readouterr().out.splitlines()
    assert out == [
        "Tok(OPEN_PAREN, '(')[line 0 char 0]",
        "\tTok(IDENT, '+')[line 0 char 1]",
        "\tTok(NUMBER, 1.0)[line 0 char 3]",
        "\tTok(OPEN_PAREN, '(')[line 0 char 5]",
        "\t\tTok(IDENT, 'f')[line 0 char 6]",
        "\tTok(CLOSE_PAREN, ')')[line 0 char 7]",
        "Tok(CLOSE_PAREN, ')')[line 0 char 8]",
        "Tok(EOF, None)[line 0 char 9]",
    ]


def test_tokenize_prints_spans(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_source(tmp_path, "(def\n  answer)")

    assert main(["tokenize", path]) == EXIT_OK

    out = capsys.readouterr().out.splitlines()
    assert out[1] == "\tTok(DEF, 'def')[line 0 char 1 -> line 0 char 3]"
    assert out[2] == "\tTok(IDENT, 'answer')[line 1 char 2 -> line 1 char 7]"


def test_tokenize_stops_at_malformed_number(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = write_source(tmp_path, "(f 1.2.3)")

    assert main(["tokenize", path]) == EXIT_ERROR

    captured = capsys.readouterr()
    assert captured.out.splitlines()[-1] == "\tTok(IDENT, 'f')[line 0 char 1]"
    assert captured.err.startswith("error: Unable to parse number '1.2.3'")


@pytest.mark.parametrize("engine", ["rd", "lark"])
def test_parse_prints_each_form(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], engine: str
) -> None:
    path = write_source(tmp_path, "(def x 5)\n(+ x 1)\n")

    assert main(["parse", "--engine", engine, path]) == EXIT_OK

    assert capsys.readouterr().out.splitlines() == [
        "EvaluateExpr(callee='__assign', args=[VariableExpr(name='x'), NumberExpr(value=5.0)])",
        "EvaluateExpr(callee='+', args=[VariableExpr(name='x'), NumberExpr(value=1.0)])",
    ]


def test_parse_tree_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_source(tmp_path, "(fn (a) (a))")

    assert main(["parse", "--tree", path]) == EXIT_OK

    assert capsys.readouterr().out == (
        "function\n"
        "  parameters\ta\n"
        "  statements\n"
        "    evaluate\ta\n"
    )


def test_parse_error_keeps_earlier_output(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = write_source(tmp_path, "(f)\n(1 2)\n(g)")

    assert main(["parse", path]) == EXIT_ERROR

    captured = capsys.readouterr()
    assert captured.out == "EvaluateExpr(callee='f', args=[])\n"
    assert captured.err == (
        "error: Unexpected expression NumberExpr(value=1.0), expected VariableExpr"
        " at line 1, col 0\n"
    )


def test_lark_grammar_error_is_reported(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = write_source(tmp_path, "(f def)")

    assert main(["parse", "--engine", "lark", path]) == EXIT_ERROR
    assert capsys.readouterr().err.startswith("error: ")


def test_debug_trace_env_prints_traceback(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    path = write_source(tmp_path, "(fn () )")
    monkeypatch.setenv(DEBUG_PY_TRACE_ENV, "1")

    assert main(["parse", path]) == EXIT_ERROR

    err = capsys.readouterr().err
    assert err.startswith("error: Function needs a body")
    assert "Traceback" in err
    assert "FunctionNeedsABody" in err


def test_no_traceback_by_default(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    path = write_source(tmp_path, "(fn () )")
    monkeypatch.delenv(DEBUG_PY_TRACE_ENV, raising=False)

    assert main(["parse", path]) == EXIT_ERROR
    assert "Traceback" not in capsys.readouterr().err


def test_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    missing = str(tmp_path / "nope.clj")

    assert main(["parse", missing]) == EXIT_USAGE
    assert capsys.readouterr().err.startswith(f"error: couldn't open {missing}")


def test_reads_stdin(capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"(f 1)")))

    assert main(["parse", "-"]) == EXIT_OK
    assert capsys.readouterr().out == "EvaluateExpr(callee='f', args=[NumberExpr(value=1.0)])\n"


def test_arg_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_arg_parser().parse_args([])


def test_arg_parser_defaults() -> None:
    args = build_arg_parser().parse_args(["parse", "prog.clj"])
    assert (args.command, args.input, args.engine, args.tree) == ("parse", "prog.clj", "rd", False)


def test_tokenize_reports_failing_first_read(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_tokenize(FailingStream(b"")) == EXIT_ERROR

    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "error: I/O error: disk on fire at line 0, col 0\n"


@pytest.mark.parametrize("engine", ["rd", "lark"])
def test_parse_reports_failing_first_read(
    capsys: pytest.CaptureFixture[str], engine: str
) -> None:
    assert run_parse(FailingStream(b""), engine=engine) == EXIT_ERROR
    assert capsys.readouterr().err.startswith("error: I/O error: disk on fire")


def test_highlight_reports_failing_read(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_highlight(FailingStream(b"")) == EXIT_ERROR
    assert capsys.readouterr().err.startswith("error: I/O error: disk on fire")
