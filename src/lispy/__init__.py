from .lexer_rd import Lexer, LexError, tokenize
from .parser_rd import ParseError, Parser, parse_source

__all__ = ["Lexer", "LexError", "tokenize", "Parser", "ParseError", "parse_source"]
