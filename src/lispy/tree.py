"""AST node classes produced by both parsers, plus helpers for walking them.

Nodes are plain dataclasses so that structural equality (`==`) compares whole
trees. `to_lark()` renders a node as a `lark.Tree`, which gives us
`pretty()` output consistent with what the reference parser prints.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Union

from lark import Token, Tree
from typing_extensions import TypeAlias


@dataclass
class NumberExpr:
    value: float

    def to_lark(self) -> Tree:
        return Tree('number', [Token('NUMBER', repr(self.value))])

    def pretty(self, indent: str = '  ') -> str:
        return self.to_lark().pretty(indent)


@dataclass
class VariableExpr:
    name: str

    def to_lark(self) -> Tree:
        return Tree('variable', [Token('IDENT', self.name)])

    def pretty(self, indent: str = '  ') -> str:
        return self.to_lark().pretty(indent)


@dataclass
class EvaluateExpr:
    """Apply `callee` to `args`; also carries the `__assign` form."""
    callee: str
    args: List[AST] = field(default_factory=list)

    def to_lark(self) -> Tree:
        children: List[Union[Tree, Token]] = [Token('IDENT', self.callee)]
        children.extend(arg.to_lark() for arg in self.args)
        return Tree('evaluate', children)

    def pretty(self, indent: str = '  ') -> str:
        return self.to_lark().pretty(indent)


@dataclass
class FunctionExpr:
    parameters: List[str] = field(default_factory=list)
    statements: List[AST] = field(default_factory=list)

    def to_lark(self) -> Tree:
        params = Tree('parameters', [Token('IDENT', name) for name in self.parameters])
        body = Tree('statements', [stmt.to_lark() for stmt in self.statements])
        return Tree('function', [params, body])

    def pretty(self, indent: str = '  ') -> str:
        return self.to_lark().pretty(indent)


@dataclass
class ListExpr:
    """Literal list. Reserved for `quote`; no parser builds one yet."""
    items: List[AST] = field(default_factory=list)

    def to_lark(self) -> Tree:
        return Tree('list', [item.to_lark() for item in self.items])

    def pretty(self, indent: str = '  ') -> str:
        return self.to_lark().pretty(indent)


AST: TypeAlias = Union[NumberExpr, VariableExpr, EvaluateExpr, FunctionExpr, ListExpr]

ASSIGN_CALLEE = '__assign'


def children(node: AST) -> List[AST]:
    if isinstance(node, EvaluateExpr):
        return list(node.args)
    if isinstance(node, FunctionExpr):
        return list(node.statements)
    if isinstance(node, ListExpr):
        return list(node.items)
    return []

def walk(node: AST) -> Iterator[AST]:
    """Pre-order traversal."""
    yield node
    for child in children(node):
        yield from walk(child)

def is_assignment(node: AST) -> bool:
    return isinstance(node, EvaluateExpr) and node.callee == ASSIGN_CALLEE
