"""Grammar-driven reference parser built on lark.

`grammar.lark` only describes the bracket structure; `Lower` walks the lark
tree top-down and applies the same reduction rules as parser_rd, producing the
same AST nodes and raising the same ParseError subclasses for semantic
violations. Grammar violations surface as lark's own `UnexpectedInput`.
"""

from __future__ import annotations

from bisect import bisect_right
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple, Union

from lark import Lark, Token, Tree
from lark.visitors import Interpreter

from .lexer_rd import ReadError
from .parser_rd import (
    DuplicateParameterError,
    FunctionNeedsABody,
    TokenizerParseError,
    UnexpectedExpressionError,
    UnexpectedTokenError,
)
from .token_types import TT, Position, Tok, TokenAndSpan, line_starts
from .tree import AST, ASSIGN_CALLEE, EvaluateExpr, FunctionExpr, NumberExpr, VariableExpr

GRAMMAR_PATH = Path(__file__).resolve().with_name("grammar.lark")

_TOKEN_TYPES = {
    "LPAR": TT.OPEN_PAREN,
    "RPAR": TT.CLOSE_PAREN,
    "DEF": TT.DEF,
    "FN": TT.FN,
    "IDENT": TT.IDENT,
    "NUMBER": TT.NUMBER,
}

LarkNode = Union[Tree, Token]


def _read_grammar(grammar_path: Optional[str]) -> str:
    if grammar_path:
        return Path(grammar_path).read_text(encoding="utf-8")
    return GRAMMAR_PATH.read_text(encoding="utf-8")

@lru_cache(maxsize=None)
def build_parser(parser_kind: str = "lalr", grammar_path: Optional[str] = None) -> Lark:
    return Lark(
        _read_grammar(grammar_path),
        parser=parser_kind,
        lexer="basic",
        start="start",
        maybe_placeholders=False,
        propagate_positions=True,
    )


def _first_token(node: LarkNode) -> Token:
    return node if isinstance(node, Token) else node.children[0]

def _is_token(node: LarkNode, *types: str) -> bool:
    return isinstance(node, Token) and node.type in types


class Lower(Interpreter):
    """Lower a lark parse tree to lispy AST nodes

    Positions are recomputed from `source` so that, like the lexer, both
    '\\n' and '\\r' start a new line (lark only counts '\\n').
    """

    def __init__(self, source: str):
        super().__init__()
        self.starts = line_starts(source)

    def _position(self, offset: int) -> Position:
        line = bisect_right(self.starts, offset) - 1
        return Position(line, offset - self.starts[line])

    def _bounds(self, tok: Token) -> Tuple[Position, Position]:
        """Zero-based inclusive bounds of a lark token"""
        return self._position(tok.start_pos), self._position(tok.end_pos - 1)

    def _number(self, tok: Token) -> float:
        text = str(tok)
        try:
            return float(text)
        except ValueError as exc:
            start, end = self._bounds(tok)
            err = ReadError(f"Unable to parse number '{text}': {exc}", start, end, text)
            raise TokenizerParseError(err) from exc

    def _span(self, tok: Token) -> TokenAndSpan:
        start, end = self._bounds(tok)
        value = self._number(tok) if tok.type == "NUMBER" else str(tok)
        return TokenAndSpan(Tok(_TOKEN_TYPES[tok.type], value), start, end, str(tok))

    def start(self, tree: Tree) -> List[AST]:
        return [self.lower(child) for child in tree.children]

    def lower(self, node: LarkNode) -> AST:
        if isinstance(node, Tree):
            return self.visit(node)

        if node.type == "NUMBER":
            return NumberExpr(self._number(node))
        return VariableExpr(str(node))

    def list(self, tree: Tree) -> AST:
        lpar, *items, rpar = tree.children

        if items and _is_token(items[0], "DEF"):
            return self._define(items[1:], rpar)
        if items and _is_token(items[0], "FN"):
            return self._function(lpar, items[1:], rpar)

        nodes = [self.lower(item) for item in items]
        return self._apply(lpar, nodes)

    def _apply(self, lpar: Token, nodes: List[AST]) -> AST:
        head = nodes[0] if nodes else None
        if isinstance(head, VariableExpr):
            return EvaluateExpr(head.name, nodes[1:])
        if isinstance(head, (EvaluateExpr, FunctionExpr)) and len(nodes) == 1:
            return head
        raise UnexpectedExpressionError(head, self._span(lpar).start, expected="VariableExpr")

    def _define(self, args: List[LarkNode], rpar: Token) -> AST:
        name = args[0] if args else rpar
        if not _is_token(name, "IDENT"):
            raise UnexpectedTokenError(self._span(_first_token(name)), expected=TT.IDENT)

        values = [self.lower(arg) for arg in args[1:]]
        if len(values) > 1:
            raise UnexpectedExpressionError(values[1], self._span(_first_token(args[2])).start)
        if not values:
            raise UnexpectedExpressionError(None, self._span(name).end, expected="a value")

        return EvaluateExpr(ASSIGN_CALLEE, [VariableExpr(str(name)), values[0]])

    def _function(self, lpar: Token, args: List[LarkNode], rpar: Token) -> AST:
        params = args[0] if args else rpar
        if not isinstance(params, Tree):
            raise UnexpectedTokenError(self._span(params), expected=TT.OPEN_PAREN)

        parameters: List[str] = []
        for param in params.children[1:-1]:
            if not _is_token(param, "IDENT"):
                raise UnexpectedTokenError(self._span(_first_token(param)), expected=TT.IDENT)
            if str(param) in parameters:
                raise DuplicateParameterError(self._span(param))
            parameters.append(str(param))

        if len(args) < 2:
            raise FunctionNeedsABody(self._span(params.children[-1]).end)

        body = args[1]
        if not isinstance(body, Tree):
            raise UnexpectedTokenError(self._span(body), expected=TT.OPEN_PAREN)

        body_lpar, *body_items, _ = body.children
        if not body_items:
            raise FunctionNeedsABody(self._span(body_lpar).start)

        if _is_token(body_items[0], "DEF", "FN"):
            statements = [self.visit(body)]
        else:
            statements = [self.lower(item) for item in body_items]
            first = statements[0]
            if isinstance(first, VariableExpr):
                statements = [EvaluateExpr(first.name, statements[1:])]

        function = FunctionExpr(parameters, statements)
        if len(args) > 2:
            # not a call; trailing forms are reduced before the group is rejected
            for arg in args[2:]:
                self.lower(arg)
            raise UnexpectedExpressionError(
                function, self._span(lpar).start, expected="VariableExpr"
            )
        return function


def parse_source(src: str, parser_kind: str = "lalr", grammar_path: Optional[str] = None) -> List[AST]:
    """Parse `src` with the lark grammar and lower every top-level form"""
    tree = build_parser(parser_kind, grammar_path).parse(src)
    return Lower(src).visit(tree)
