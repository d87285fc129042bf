"""
Lexer for lispy - Recursive Descent Parser

Tokenizes lispy source into a lazy stream of spanned tokens.

Features:
- Pulls one character at a time from any readable stream (text or bytes)
- Incremental UTF-8 decoding, one column per decoded character
- Position tracking (zero-based line, column) with inclusive spans
- Usable as an iterator or through the pull-one get_token() API
"""

from collections import deque
from typing import Deque, IO, Iterator, List, Optional, Union
import codecs
import io

from .token_types import KEYWORDS, OPERATOR_CHARS, TT, Position, Tok, TokenAndSpan

# ============================================================================
# Errors
# ============================================================================

class LexError(Exception):
    """Lexical analysis error"""
    def __init__(self, message: str, start: Optional[Position] = None,
                 end: Optional[Position] = None):
        self.message = message
        self.start = start
        self.end = end if end is not None else start
        self.line = start.line if start else None
        self.column = start.column if start else None
        super().__init__(
            f"{message} at line {start.line}, col {start.column}" if start else message
        )

class LexIOError(LexError):
    """The underlying stream failed to read"""
    def __init__(self, error: OSError, position: Optional[Position] = None):
        self.error = error
        super().__init__(f"I/O error: {error}", position)

class ReadError(LexError):
    """A literal was scanned but could not be converted"""
    def __init__(self, message: str, start: Position, end: Position, text: str):
        self.text = text
        super().__init__(message, start, end)

# ============================================================================
# Lexer Implementation
# ============================================================================

class Lexer:
    """
    lispy lexer with a single character of lookahead.

    The lexer owns its stream for its whole lifetime and is not restartable:
    build a new Lexer to scan the same input again. Iterating stops at end of
    input; get_token() instead returns an EOF token (and keeps returning it).
    """

    def __init__(self, source: Union[str, IO], encoding: str = 'utf-8'):
        if isinstance(source, str):
            source = io.StringIO(source)
        self.stream = source
        self.encoding = encoding
        self.decoder: Optional[codecs.IncrementalDecoder] = None
        self.pending: Deque[str] = deque()
        self.exhausted = False

        # position the next consumed character will get
        self.line = 0
        self.column = 0

        self.current: Optional[str] = None
        self.current_pos = Position(0, 0)
        self.last_pos = Position(0, 0)

        # the first character is read on the first get_token(), not here
        self.primed = False

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def __iter__(self) -> Iterator[TokenAndSpan]:
        return self

    def __next__(self) -> TokenAndSpan:
        token = self.get_token()
        if token.type == TT.EOF:
            raise StopIteration
        return token

    def get_token(self) -> TokenAndSpan:
        """Scan next token"""
        if not self.primed:
            self.step()
            self.primed = True

        self.skip_whitespace_and_comments()

        ch = self.current
        start = self.current_pos

        if ch is None:
            return TokenAndSpan(Tok(TT.EOF), start, start)

        if ch == '(':
            self.step()
            return TokenAndSpan(Tok(TT.OPEN_PAREN, ch), start, start, ch)

        if ch == ')':
            self.step()
            return TokenAndSpan(Tok(TT.CLOSE_PAREN, ch), start, start, ch)

        # Identifiers and keywords
        if ch.isalpha():
            return self.scan_identifier()

        # Numbers
        if ch.isdecimal() or ch == '.':
            return self.scan_number()

        # Single-character operators, then anything we don't know
        self.step()
        if ch in OPERATOR_CHARS:
            return TokenAndSpan(Tok(TT.IDENT, ch), start, start, ch)

        return TokenAndSpan(Tok(TT.UNKNOWN, ch), start, start, ch)

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_identifier(self) -> TokenAndSpan:
        """Scan identifier or keyword"""
        start = self.current_pos
        value = ''

        while self.current is not None and (self.current.isalnum() or self.current == '_'):
            value += self.current
            self.step()

        token_type = KEYWORDS.get(value, TT.IDENT)
        return TokenAndSpan(Tok(token_type, value), start, self.last_pos, value)

    def scan_number(self) -> TokenAndSpan:
        """Scan number literal: any run of digits and dots"""
        start = self.current_pos
        text = ''

        while self.current is not None and (self.current.isdecimal() or self.current == '.'):
            text += self.current
            self.step()

        end = self.last_pos
        try:
            value = float(text)
        except ValueError as exc:
            raise ReadError(
                f"Unable to parse number '{text}': {exc}", start, end, text
            ) from exc

        return TokenAndSpan(Tok(TT.NUMBER, value), start, end, text)

    # ========================================================================
    # Utilities
    # ========================================================================

    def step(self) -> None:
        """Consume the lookahead character and read the one after it"""
        self.last_pos = self.current_pos

        ch = self.read_char()
        self.current = ch
        self.current_pos = Position(self.line, self.column)

        if ch is not None:
            self.column += 1
            if ch in ('\n', '\r'):
                self.line += 1
                self.column = 0

    def read_char(self) -> Optional[str]:
        """Next decoded character from the stream, None once it is exhausted"""
        while not self.pending:
            if self.exhausted:
                return None

            try:
                data = self.stream.read(1)
            except OSError as exc:
                raise LexIOError(exc, self.current_pos) from exc

            if not data:
                self.exhausted = True
                if self.decoder is not None:
                    # flush a truncated multi-byte sequence as U+FFFD
                    self.pending.extend(self.decoder.decode(b'', final=True))
                continue

            if isinstance(data, bytes):
                if self.decoder is None:
                    self.decoder = codecs.getincrementaldecoder(self.encoding)(errors='replace')
                data = self.decoder.decode(data)

            self.pending.extend(data)

        return self.pending.popleft()

    def skip_whitespace_and_comments(self) -> None:
        """Skip whitespace and '#' line comments until neither applies"""
        while self.current is not None:
            if self.current.isspace():
                self.step()
            elif self.current == '#':
                while self.current not in (None, '\n', '\r'):
                    self.step()
            else:
                break


def tokenize(source: Union[str, IO]) -> List[TokenAndSpan]:
    """Convenience function to tokenize source (no EOF entry)"""
    return list(Lexer(source))
