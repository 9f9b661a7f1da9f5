"""
R Source Lexer (Tokenizer)

Converts raw R source text into a stream of positioned tokens.
Handles: identifiers, keywords, strings (including raw strings), numbers,
operators, punctuation, comments, whitespace runs and newlines.

The lexer never raises. Unterminated strings and unknown characters become
INVALID tokens and scanning resumes at the next plausible boundary.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Optional


class TokenType(Enum):
    """Types of tokens in R source."""
    IDENTIFIER = auto()      # foo, my_var, .hidden, `non syntactic`
    KEYWORD = auto()         # if, function, TRUE, NULL
    STRING = auto()          # "text", 'text', r"(raw)"
    NUMBER = auto()          # 1, 2.5, 1e-3, 0xFF, 10L, 2i
    OPERATOR = auto()        # <-, =, +, %in%, |>, ::
    PUNCTUATION = auto()     # ( ) { } [ [[ ] , ;
    COMMENT = auto()         # # comment to end of line
    WHITESPACE = auto()      # run of spaces / tabs
    NEWLINE = auto()         # \n or \r\n
    INVALID = auto()         # unterminated literal, unknown character
    EOF = auto()             # End of file


TRIVIA = frozenset({TokenType.WHITESPACE, TokenType.COMMENT})

KEYWORDS = frozenset({
    "if", "else", "repeat", "while", "function", "for", "in", "next", "break",
    "TRUE", "FALSE", "NULL", "Inf", "NaN", "NA", "NA_integer_", "NA_real_",
    "NA_character_", "NA_complex_",
})

# Longest first so that maximal munch works with a simple prefix scan
OPERATORS = (
    "<<-", "->>", ":::",
    "<-", "->", "|>", "<=", ">=", "==", "!=", "&&", "||", "::", ":=", "**",
    "+", "-", "*", "/", "^", "<", ">", "!", "&", "|", "~", "?", ":", "=",
    "$", "@", "\\",
)

ASSIGNMENT_OPERATORS = frozenset({"<-", "<<-", "=", "->", "->>"})

_RAW_DELIMITERS = {"(": ")", "[": "]", "{": "}"}


@dataclass(frozen=True)
class Token:
    """A single token from the lexer. Offsets are character offsets."""
    type: TokenType
    value: str
    line: int
    column: int
    start: int
    end: int

    def __repr__(self):
        if self.type == TokenType.NEWLINE:
            return f"Token({self.type.name}, '\\n', L{self.line}:{self.column})"
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.column})"

    @property
    def is_trivia(self) -> bool:
        return self.type in TRIVIA

    def is_op(self, *values: str) -> bool:
        return self.type == TokenType.OPERATOR and (not values or self.value in values)

    def is_punct(self, *values: str) -> bool:
        return self.type == TokenType.PUNCTUATION and (not values or self.value in values)

    def is_keyword(self, *values: str) -> bool:
        return self.type == TokenType.KEYWORD and (not values or self.value in values)


def describe_invalid(token: Token) -> str:
    """Human-readable reason for an INVALID token."""
    if token.value[:1] in ('"', "'") or token.value[:2].lower() in ('r"', "r'"):
        return "unterminated string literal"
    if token.value[:1] == "`":
        return "unterminated backtick name"
    if token.value[:1] == "%":
        return "unterminated %operator%"
    return f"unexpected character {token.value!r}"


class Lexer:
    """
    Tokenizer for R source files.

    Usage:
        lexer = Lexer(source_text)
        tokens = list(lexer.tokenize())
    """

    def __init__(self, source: str, filename: str = "<unknown>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.length = len(source)

    @staticmethod
    def _is_ident_start(ch: str) -> bool:
        """Check if character can start an identifier."""
        return ch == '_' or ch == '.' or ch.isalpha()

    @staticmethod
    def _is_ident_cont(ch: str) -> bool:
        """Check if character can continue an identifier."""
        return ch == '_' or ch == '.' or ch.isalnum()

    def _current(self) -> Optional[str]:
        """Get current character or None if at end."""
        if self.pos >= self.length:
            return None
        return self.source[self.pos]

    def _peek(self, offset: int = 1) -> Optional[str]:
        """Peek ahead by offset characters."""
        pos = self.pos + offset
        if pos >= self.length:
            return None
        return self.source[pos]

    def _advance(self) -> Optional[str]:
        """Advance one character and return it."""
        ch = self._current()
        if ch is not None:
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return ch

    def _make(self, token_type: TokenType, start: int, line: int, column: int) -> Token:
        return Token(token_type, self.source[start:self.pos], line, column, start, self.pos)

    def _rewind_to_line_end(self, start: int, line: int, column: int) -> None:
        """Reset scanning to the end of the line a broken literal started on."""
        eol = self.source.find('\n', start)
        if eol == -1:
            eol = self.length
        if eol > start and self.source[eol - 1] == '\r':
            eol -= 1
        self.pos = eol
        self.line = line
        self.column = column + (eol - start)

    def _read_quoted(self, quote_char: str) -> bool:
        """
        Read a quoted string or backtick name, handling escapes.

        Returns False when the literal is unterminated.
        """
        self._advance()  # opening quote
        while True:
            ch = self._current()
            if ch is None:
                return False
            if ch == '\\':
                self._advance()
                if self._current() is not None:
                    self._advance()
                continue
            self._advance()
            if ch == quote_char:
                return True

    def _raw_string_opening(self) -> Optional[str]:
        """Return the closing sequence if a raw string starts here (r"(...)")."""
        quote = self._peek()
        if quote not in ('"', "'"):
            return None
        offset = 2
        dashes = 0
        while self._peek(offset) == '-':
            dashes += 1
            offset += 1
        opener = self._peek(offset)
        if opener not in _RAW_DELIMITERS:
            return None
        return _RAW_DELIMITERS[opener] + '-' * dashes + quote

    def _read_raw_string(self, closing: str) -> bool:
        """Read a raw string up to its closing sequence."""
        end = self.source.find(closing, self.pos + 3)
        if end == -1:
            return False
        while self.pos < end + len(closing):
            self._advance()
        return True

    def _read_number(self) -> None:
        """Read a number: decimal, exponent, hex, with optional L / i suffix."""
        if self._current() == '0' and self._peek() in ('x', 'X'):
            self._advance()
            self._advance()
            while self._current() is not None and (self._current() in '0123456789abcdefABCDEF'):
                self._advance()
        else:
            has_dot = False
            while True:
                ch = self._current()
                if ch is None:
                    break
                if ch.isdigit():
                    self._advance()
                elif ch == '.' and not has_dot:
                    has_dot = True
                    self._advance()
                else:
                    break
            if self._current() in ('e', 'E'):
                nxt = self._peek()
                if nxt is not None and (nxt.isdigit() or (nxt in '+-' and (self._peek(2) or '').isdigit())):
                    self._advance()
                    if self._current() in ('+', '-'):
                        self._advance()
                    while self._current() is not None and self._current().isdigit():
                        self._advance()
        if self._current() in ('L', 'i'):
            self._advance()

    def _read_identifier(self) -> None:
        while True:
            ch = self._current()
            if ch is None or not self._is_ident_cont(ch):
                break
            self._advance()

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source, including trivia.

        The final token is always EOF.
        """
        while True:
            ch = self._current()
            start = self.pos
            start_line = self.line
            start_col = self.column

            if ch is None:
                yield Token(TokenType.EOF, '', start_line, start_col, start, start)
                break

            # Newline (\r\n collapses into one token)
            if ch == '\n' or (ch == '\r' and self._peek() == '\n'):
                if ch == '\r':
                    self._advance()
                self._advance()
                yield self._make(TokenType.NEWLINE, start, start_line, start_col)
                continue

            if ch in (' ', '\t', '\r', '\f'):
                while self._current() in (' ', '\t', '\f') or (
                        self._current() == '\r' and self._peek() != '\n'):
                    self._advance()
                yield self._make(TokenType.WHITESPACE, start, start_line, start_col)
                continue

            if ch == '#':
                while self._current() is not None and self._current() != '\n':
                    if self._current() == '\r' and self._peek() == '\n':
                        break
                    self._advance()
                yield self._make(TokenType.COMMENT, start, start_line, start_col)
                continue

            if ch in ('"', "'", '`'):
                if self._read_quoted(ch):
                    kind = TokenType.IDENTIFIER if ch == '`' else TokenType.STRING
                    yield self._make(kind, start, start_line, start_col)
                else:
                    self._rewind_to_line_end(start, start_line, start_col)
                    yield self._make(TokenType.INVALID, start, start_line, start_col)
                continue

            if ch in ('r', 'R'):
                closing = self._raw_string_opening()
                if closing is not None:
                    if self._read_raw_string(closing):
                        yield self._make(TokenType.STRING, start, start_line, start_col)
                    else:
                        self._rewind_to_line_end(start, start_line, start_col)
                        yield self._make(TokenType.INVALID, start, start_line, start_col)
                    continue

            if ch.isdigit() or (ch == '.' and (self._peek() or '').isdigit()):
                self._read_number()
                yield self._make(TokenType.NUMBER, start, start_line, start_col)
                continue

            if self._is_ident_start(ch):
                self._read_identifier()
                value = self.source[start:self.pos]
                kind = TokenType.KEYWORD if value in KEYWORDS else TokenType.IDENTIFIER
                yield Token(kind, value, start_line, start_col, start, self.pos)
                continue

            # Custom infix operators: %in%, %>%, %%
            if ch == '%':
                close = self.source.find('%', self.pos + 1)
                eol = self.source.find('\n', self.pos + 1)
                if close != -1 and (eol == -1 or close < eol):
                    while self.pos <= close:
                        self._advance()
                    yield self._make(TokenType.OPERATOR, start, start_line, start_col)
                else:
                    self._rewind_to_line_end(start, start_line, start_col)
                    yield self._make(TokenType.INVALID, start, start_line, start_col)
                continue

            if ch == '[' and self._peek() == '[':
                self._advance()
                self._advance()
                yield self._make(TokenType.PUNCTUATION, start, start_line, start_col)
                continue

            if ch in '(){}[],;':
                self._advance()
                yield self._make(TokenType.PUNCTUATION, start, start_line, start_col)
                continue

            operator = self._match_operator()
            if operator:
                for _ in operator:
                    self._advance()
                yield self._make(TokenType.OPERATOR, start, start_line, start_col)
                continue

            # Unknown character
            self._advance()
            yield self._make(TokenType.INVALID, start, start_line, start_col)

    def _match_operator(self) -> Optional[str]:
        for op in OPERATORS:
            if self.source.startswith(op, self.pos):
                return op
        return None

    def tokenize_all(self) -> List[Token]:
        """Convenience method to get all tokens as a list."""
        return list(self.tokenize())


class TokenStream:
    """
    Lazy, restartable token sequence over a piece of source text.

    Every iteration rescans the text from the start with a fresh Lexer.
    """

    def __init__(self, source: str, filename: str = "<unknown>"):
        self.source = source
        self.filename = filename

    def __iter__(self) -> Iterator[Token]:
        return Lexer(self.source, self.filename).tokenize()


def tokenize(source: str, filename: str = "<unknown>") -> List[Token]:
    """Tokenize source text and return all tokens (trivia included)."""
    return Lexer(source, filename).tokenize_all()
