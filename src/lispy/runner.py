from __future__ import annotations

import argparse
import sys
import traceback
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional

from lark import UnexpectedInput
from prompt_toolkit import print_formatted_text

from .highlight import highlight_source
from .lexer_rd import LexError, LexIOError, Lexer
from .parse_auto import parse_source as parse_lark
from .parser_rd import ParseError, Parser
from .token_types import TT
from .utils import debug_py_trace_enabled

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


@contextmanager
def _open_source(arg: str) -> Iterator[IO[bytes]]:
    """
    Resolve CLI input into a byte stream.
    - "-" => stdin.
    - Otherwise a path opened read-only.
    """
    if arg == "-":
        yield sys.stdin.buffer
        return

    with open(arg, "rb") as handle:
        yield handle

def _report(exc: BaseException) -> int:
    print(f"error: {exc}", file=sys.stderr)
    if debug_py_trace_enabled():
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
    return EXIT_ERROR

def _read_text(stream: IO) -> str:
    """Whole stream as text, for consumers that need the source up front"""
    try:
        text = stream.read()
    except OSError as exc:
        raise LexIOError(exc) from exc
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text

def run_tokenize(stream: IO) -> int:
    """Print every token, indented by paren depth, ending with EOF"""
    lexer = Lexer(stream)
    tabs = 0

    while True:
        try:
            tok = lexer.get_token()
        except LexError as exc:
            return _report(exc)

        # if we encounter a ), reduce tabs before printing
        if tok.type == TT.CLOSE_PAREN:
            tabs = max(tabs - 1, 0)

        print("\t" * tabs + str(tok))

        if tok.type == TT.OPEN_PAREN:
            tabs += 1
        if tok.type == TT.EOF:
            return EXIT_OK

def run_parse(stream: IO, engine: str = "rd", show_tree: bool = False) -> int:
    """Print each top-level form until input ends or a form fails"""
    try:
        if engine == "lark":
            exprs = iter(parse_lark(_read_text(stream)))
        else:
            exprs = iter(Parser(Lexer(stream)))

        for expr in exprs:
            if show_tree:
                print(expr.pretty(), end="")
            else:
                print(repr(expr))
    except (LexError, ParseError, UnexpectedInput) as exc:
        return _report(exc)

    return EXIT_OK

def run_highlight(stream: IO) -> int:
    try:
        text = _read_text(stream)
    except LexError as exc:
        return _report(exc)
    print_formatted_text(highlight_source(text))
    return EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="lispy", description="Runs a limited subset of clojure")
    sub = ap.add_subparsers(dest="command", required=True)

    tok = sub.add_parser("tokenize", help="Tokenize the file and print out the tokens")
    tok.add_argument("input", help="Path to a source file ('-' for stdin)")

    parse = sub.add_parser("parse", help="Parse the file and print out the ASTs")
    parse.add_argument("input", help="Path to a source file ('-' for stdin)")
    parse.add_argument("--engine", choices=("rd", "lark"), default="rd",
                       help="Recursive descent parser (default) or the lark grammar")
    parse.add_argument("--tree", action="store_true", help="Print indented trees")

    hl = sub.add_parser("highlight", help="Print the file with syntax highlighting")
    hl.add_argument("input", help="Path to a source file ('-' for stdin)")

    return ap

def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        with _open_source(args.input) as stream:
            if args.command == "tokenize":
                return run_tokenize(stream)
            if args.command == "parse":
                return run_parse(stream, engine=args.engine, show_tree=args.tree)
            return run_highlight(stream)
    except OSError as exc:
        print(f"error: couldn't open {args.input}: {exc}", file=sys.stderr)
        return EXIT_USAGE

if __name__ == "__main__":
    sys.exit(main())
