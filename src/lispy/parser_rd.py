"""
Recursive Descent Parser for lispy

Structure:
- Lexer: lazy token stream from source (lexer_rd)
- Parser: pulls one balanced top-level form at a time, then reduces the flat
  token list of that form into AST nodes
- AST: dataclasses from tree.py, shared with the lark reference parser

Only the head of a parenthesized form may be a keyword: `(def name value)`
and `(fn (params...) (body...))`. Anywhere else `def`/`fn` are syntax errors.
"""

from typing import Iterable, Iterator, List, NamedTuple, Optional, Union, IO

from .lexer_rd import LexError, Lexer
from .token_types import TT, Position, Tok, TokenAndSpan
from .tree import (
    AST,
    ASSIGN_CALLEE,
    EvaluateExpr,
    FunctionExpr,
    NumberExpr,
    VariableExpr,
)

# ============================================================================
# Errors
# ============================================================================

class ParseError(Exception):
    """Parse error with position info"""
    def __init__(self, message: str, position: Optional[Position] = None):
        self.message = message
        self.position = position
        self.line = position.line if position else None
        self.column = position.column if position else None
        super().__init__(
            f"{message} at line {position.line}, col {position.column}" if position else message
        )

class MismatchedParens(ParseError):
    """Input ended inside a form, or a ')' closed nothing"""
    def __init__(self, position: Position):
        super().__init__("Mismatched parentheses", position)

class UnexpectedTokenError(ParseError):
    def __init__(self, found: TokenAndSpan, expected: Optional[TT] = None):
        self.expected = expected
        self.found: Tok = found.token
        self.start = found.start
        self.end = found.end
        message = f"Unexpected token {found.token!r}"
        if expected is not None:
            message += f", expected {expected.name}"
        super().__init__(message, found.start)

class UnexpectedExpressionError(ParseError):
    def __init__(self, found: Optional[AST], position: Position,
                 expected: Optional[str] = None):
        self.expected = expected
        self.found = found
        message = f"Unexpected expression {found!r}" if found is not None else "Missing expression"
        if expected is not None:
            message += f", expected {expected}"
        super().__init__(message, position)

class FunctionNeedsABody(ParseError):
    def __init__(self, position: Position):
        super().__init__("Function needs a body", position)

class DuplicateParameterError(ParseError):
    def __init__(self, param: TokenAndSpan):
        self.name = param.value
        self.start = param.start
        self.end = param.end
        super().__init__(f"Duplicate parameter '{self.name}'", param.start)

class UnexpectedEof(ParseError):
    """A form ended where another token was required"""
    def __init__(self, position: Position):
        super().__init__("Unexpected end of input", position)

class TokenizerParseError(ParseError):
    """Wraps a LexError raised while pulling tokens"""
    def __init__(self, cause: LexError):
        self.cause = cause
        super().__init__(cause.message, cause.start)

class InternalParserError(ParseError):
    """An invariant of the parser itself was violated"""

# ============================================================================
# Parser
# ============================================================================

class Reduction(NamedTuple):
    """Nodes reduced at one nesting level and where reduction stopped"""
    nodes: List[AST]
    positions: List[Position]
    index: int  # first unconsumed token: the closing ')' or len(tokens)


class Parser:
    """
    Recursive descent parser for lispy.

    Pulls tokens lazily from `tokens` (normally a Lexer). Each call to
    next_expression() consumes exactly one top-level form and leaves the
    token source positioned right after it.
    """

    def __init__(self, tokens: Iterable[TokenAndSpan]):
        self.tokens = iter(tokens)

    def __iter__(self) -> Iterator[AST]:
        while True:
            expr = self.next_expression()
            if expr is None:
                return
            yield expr

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def next_expression(self) -> Optional[AST]:
        """Parse the next top-level form, None once input is exhausted"""
        form = self.extract_form()
        if not form:
            return None

        reduction = self.reduce(form, 0)
        if reduction.index != len(form):
            raise InternalParserError(
                "Reduction stopped early inside a balanced form", form[reduction.index].start
            )
        if len(reduction.nodes) != 1:
            raise InternalParserError(
                f"Balanced form produced {len(reduction.nodes)} expressions", form[0].start
            )

        return reduction.nodes[0]

    def extract_form(self) -> List[TokenAndSpan]:
        """Pull tokens until parens balance (or a single bare token)"""
        depth = 0
        form: List[TokenAndSpan] = []

        while True:
            try:
                tok = next(self.tokens)
            except StopIteration:
                break
            except LexError as exc:
                raise TokenizerParseError(exc) from exc

            if tok.type == TT.EOF:
                break
            if tok.type == TT.OPEN_PAREN:
                depth += 1
            elif tok.type == TT.CLOSE_PAREN:
                depth -= 1

            form.append(tok)

            if depth <= 0:
                break

        if depth != 0:
            raise MismatchedParens(form[-1].start)

        return form

    # ========================================================================
    # Reduction
    # ========================================================================

    def reduce(self, tokens: List[TokenAndSpan], pos: int, head: bool = False) -> Reduction:
        """
        Reduce tokens from `pos` up to the ')' closing the current level.

        `head` marks `pos` as the first token inside a '(' so that a keyword
        found there starts a special form.
        """
        first = pos
        nodes: List[AST] = []
        positions: List[Position] = []

        while pos < len(tokens):
            tok = tokens[pos]
            at_head = head and pos == first

            match tok.type:
                case TT.CLOSE_PAREN:
                    break
                case TT.NUMBER:
                    node: AST = NumberExpr(tok.value)
                    pos += 1
                case TT.IDENT:
                    node = VariableExpr(tok.value)
                    pos += 1
                case TT.DEF if at_head:
                    node, pos = self.reduce_def(tokens, pos)
                case TT.FN if at_head:
                    node, pos = self.reduce_fn(tokens, pos)
                case TT.OPEN_PAREN:
                    node, pos = self.reduce_group(tokens, pos)
                case _:
                    raise UnexpectedTokenError(tok)

            nodes.append(node)
            positions.append(tok.start)

        return Reduction(nodes, positions, pos)

    def reduce_group(self, tokens: List[TokenAndSpan], pos: int) -> tuple[AST, int]:
        """( callee args... ) or a parenthesized single call/function"""
        open_tok = tokens[pos]
        inner = self.reduce(tokens, pos + 1, head=True)
        if inner.index >= len(tokens):
            raise MismatchedParens(open_tok.start)

        nodes = inner.nodes
        head = nodes[0] if nodes else None

        if isinstance(head, VariableExpr):
            node: AST = EvaluateExpr(head.name, nodes[1:])
        elif isinstance(head, (EvaluateExpr, FunctionExpr)) and len(nodes) == 1:
            node = head
        else:
            raise UnexpectedExpressionError(head, open_tok.start, expected="VariableExpr")

        # step over the closing paren
        return node, inner.index + 1

    def reduce_def(self, tokens: List[TokenAndSpan], pos: int) -> tuple[AST, int]:
        """def name value -> __assign(name, value)"""
        name_tok = self.token_at(tokens, pos + 1, tokens[pos])
        if name_tok.type != TT.IDENT:
            raise UnexpectedTokenError(name_tok, expected=TT.IDENT)

        rhs = self.reduce(tokens, pos + 2)
        if len(rhs.nodes) > 1:
            raise UnexpectedExpressionError(rhs.nodes[1], rhs.positions[1])
        if not rhs.nodes:
            raise UnexpectedExpressionError(None, name_tok.end, expected="a value")

        node = EvaluateExpr(ASSIGN_CALLEE, [VariableExpr(name_tok.value), rhs.nodes[0]])
        return node, rhs.index

    def reduce_fn(self, tokens: List[TokenAndSpan], pos: int) -> tuple[AST, int]:
        """fn (params...) (body...)"""
        params_tok = self.token_at(tokens, pos + 1, tokens[pos])
        if params_tok.type != TT.OPEN_PAREN:
            raise UnexpectedTokenError(params_tok, expected=TT.OPEN_PAREN)

        params_close = self.matching_paren(tokens, pos + 1)
        parameters: List[str] = []
        for tok in tokens[pos + 2:params_close]:
            if tok.type != TT.IDENT:
                raise UnexpectedTokenError(tok, expected=TT.IDENT)
            if tok.value in parameters:
                raise DuplicateParameterError(tok)
            parameters.append(tok.value)

        body_pos = params_close + 1
        if body_pos >= len(tokens) or tokens[body_pos].type == TT.CLOSE_PAREN:
            raise FunctionNeedsABody(tokens[params_close].end)

        body_tok = tokens[body_pos]
        if body_tok.type != TT.OPEN_PAREN:
            raise UnexpectedTokenError(body_tok, expected=TT.OPEN_PAREN)

        body_close = self.matching_paren(tokens, body_pos)
        body = self.reduce(tokens, body_pos + 1, head=True)
        statements = body.nodes
        if not statements:
            raise FunctionNeedsABody(body_tok.start)

        # (fn (a) (f a)) has a single application as its body
        first = statements[0]
        if isinstance(first, VariableExpr):
            statements = [EvaluateExpr(first.name, statements[1:])]

        return FunctionExpr(parameters, statements), body_close + 1

    # ========================================================================
    # Token Navigation
    # ========================================================================

    @staticmethod
    def token_at(tokens: List[TokenAndSpan], pos: int, after: TokenAndSpan) -> TokenAndSpan:
        """Token at `pos`, or UnexpectedEof just past `after`"""
        if pos >= len(tokens):
            raise UnexpectedEof(after.end)
        return tokens[pos]

    @staticmethod
    def matching_paren(tokens: List[TokenAndSpan], pos: int) -> int:
        """Index of the ')' matching the '(' at `pos`"""
        depth = 0
        for idx in range(pos, len(tokens)):
            kind = tokens[idx].type
            if kind == TT.OPEN_PAREN:
                depth += 1
            elif kind == TT.CLOSE_PAREN:
                depth -= 1
                if depth == 0:
                    return idx

        raise MismatchedParens(tokens[pos].start)


def parse_source(source: Union[str, IO]) -> List[AST]:
    """Parse every top-level form of `source`"""
    return list(Parser(Lexer(source)))
