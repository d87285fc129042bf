"""prompt_toolkit lexer for lispy syntax highlighting."""

from __future__ import annotations

from typing import Callable, List

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import FormattedText, StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer_rd import Lexer as LispyTokenizer, LexError
from .token_types import TT, Position, line_starts

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "number": "ansimagenta",
    "identifier": "",
    "function": "bold ansiyellow",
    "operator": "",
    "punctuation": "",
    "error": "bold ansired",
}

_TT_GROUP = {
    TT.DEF: "keyword",
    TT.FN: "keyword",
    TT.NUMBER: "number",
    TT.IDENT: "identifier",
    TT.OPEN_PAREN: "punctuation",
    TT.CLOSE_PAREN: "punctuation",
    TT.UNKNOWN: "error",
}

_OPERATORS = frozenset("+-*/")


def _offset(starts: List[int], position: Position) -> int:
    return starts[position.line] + position.column


def highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    result: StyleAndTextTuples = []
    starts = line_starts(text)
    pos = 0
    prev_type = None
    lexer = LispyTokenizer(text)

    while True:
        try:
            tok = lexer.get_token()
        except LexError as exc:
            # Style from the start of the bad literal to the end of the line.
            start = _offset(starts, exc.start) if exc.start else pos
            if start > pos:
                result.append(("", text[pos:start]))
            result.append((GROUP_STYLE["error"], text[start:]))
            return result

        if tok.type == TT.EOF:
            break

        # a stray '\r' restarts lexer columns, so go through line offsets
        start = _offset(starts, tok.start)
        end = _offset(starts, tok.end) + 1

        # Unstyled gap (whitespace, comments) before token.
        if start > pos:
            result.append(("", text[pos:start]))

        group = _TT_GROUP.get(tok.type, "")
        if tok.type == TT.IDENT and tok.value in _OPERATORS:
            group = "operator"
        elif tok.type == TT.IDENT and prev_type == TT.OPEN_PAREN:
            group = "function"

        result.append((GROUP_STYLE.get(group, ""), text[start:end]))
        pos = end
        prev_type = tok.type

    # Trailing unstyled text.
    if pos < len(text):
        result.append(("", text[pos:]))

    return result


def highlight_source(source: str) -> FormattedText:
    """Highlight every line of `source`, keeping line breaks."""
    fragments: StyleAndTextTuples = []
    # split like prompt_toolkit's Document.lines, on '\n' only
    for lineno, line in enumerate(source.split("\n")):
        if lineno:
            fragments.append(("", "\n"))
        fragments.extend(highlight_line(line))
    return FormattedText(fragments)


class LispyLexer(Lexer):
    """prompt_toolkit Lexer that highlights lispy source using the RD lexer."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = highlight_line(lines[lineno])
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
