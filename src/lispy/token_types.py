"""
Token Types for lispy

Shared between lexer, parsers and highlighter to avoid circular dependencies.
"""

from typing import Any, Dict, List
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types"""

    # Punctuation
    OPEN_PAREN = auto()
    CLOSE_PAREN = auto()

    # Keywords
    DEF = auto()
    FN = auto()

    # Literals
    IDENT = auto()
    NUMBER = auto()

    # Special
    UNKNOWN = auto()
    EOF = auto()


# Reserved words; everything else identifier-shaped is an IDENT
KEYWORDS: Dict[str, TT] = {
    'def': TT.DEF,
    'fn': TT.FN,
}

# Single-character operators, lexed as identifiers of themselves
OPERATOR_CHARS = frozenset('+-*/')


@dataclass(frozen=True)
class Position:
    """Zero-based line/column of one consumed character"""

    line: int = 0
    column: int = 0

    def __str__(self):
        return f"line {self.line} char {self.column}"


@dataclass(frozen=True)
class Tok:
    """Token kind plus payload (identifier text, float, char, ...)"""

    type: TT
    value: Any = None

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r})"


@dataclass(frozen=True)
class TokenAndSpan:
    """Token with the inclusive span of characters that produced it"""

    token: Tok
    start: Position
    end: Position
    text: str = ''

    @property
    def type(self) -> TT:
        return self.token.type

    @property
    def value(self) -> Any:
        return self.token.value

    def __str__(self):
        if self.start == self.end:
            return f"{self.token!r}[{self.start}]"
        return f"{self.token!r}[{self.start} -> {self.end}]"


def line_starts(text: str) -> List[int]:
    """Offsets at which each line of `text` begins; '\\n' and '\\r' both end a line"""
    starts = [0]
    for idx, ch in enumerate(text):
        if ch in ('\n', '\r'):
            starts.append(idx + 1)
    return starts
