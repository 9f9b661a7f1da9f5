"""
Source files and spans.

A SourceFile bundles the text, token tuple, structural tree and parse
diagnostics for one analysis pass over one file. Rules only ever read it.
"""

import bisect
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from rstyle.errors import FileUnreadableError
from rstyle.parser.lexer import Lexer, Token, TokenType
from rstyle.parser.parser import ParseDiagnostic, RootNode, StructuralNode, parse_tokens


@dataclass(frozen=True, order=True)
class Span:
    """Character span plus 1-based start/end positions. Orders by start."""
    start: int
    end: int
    line: int = 1
    column: int = 1
    end_line: int = 1
    end_column: int = 1

    def to_dict(self):
        return {
            "start": self.start,
            "end": self.end,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }


# Findings about a path rather than its contents
FILE_SPAN = Span(0, 0, 1, 1, 1, 1)


# Markdown chunk fences: ```{r}, ```{r setup, echo=FALSE}, ```r
_CHUNK_OPEN = re.compile(r"^\s*```+\s*\{?\s*[rR]\b")
_CHUNK_CLOSE = re.compile(r"^\s*```+\s*$")

NOTEBOOK_SUFFIXES = (".rmd", ".qmd", ".rmarkdown")


def extract_r_chunks(text: str) -> str:
    """
    Keep only the R code chunk lines of an R Markdown / Quarto document.

    Every other line is blanked so line numbers stay the same.
    """
    out = []
    in_chunk = False
    for line in text.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        if not in_chunk and _CHUNK_OPEN.match(body):
            in_chunk = True
            out.append(ending)
        elif in_chunk and _CHUNK_CLOSE.match(body):
            in_chunk = False
            out.append(ending)
        elif in_chunk:
            out.append(line)
        else:
            out.append(ending)
    return "".join(out)


def decode_source(data: bytes) -> str:
    """Decode file bytes as UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def read_source(path) -> str:
    """Read a file from disk, raising FileUnreadableError on failure."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise FileUnreadableError(str(path), e.strerror or str(e))
    return decode_source(data)


@dataclass(frozen=True)
class SourceFile:
    """
    One parsed file.

    Usage:
        source = SourceFile.from_text("R/utils.R", text)
        for node in source.root.walk(): ...
    """
    path: str
    text: str
    tokens: Tuple[Token, ...]
    root: RootNode
    diagnostics: Tuple[ParseDiagnostic, ...] = ()
    _line_starts: Tuple[int, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def from_text(cls, path: str, text: str) -> 'SourceFile':
        """Tokenize and parse text. Notebook formats keep only their R chunks."""
        if Path(path).suffix.lower() in NOTEBOOK_SUFFIXES:
            text = extract_r_chunks(text)
        tokens = tuple(Lexer(text, path).tokenize())
        result = parse_tokens(tokens, path)
        starts = [0] + [m.end() for m in re.finditer("\n", text)]
        return cls(
            path=path,
            text=text,
            tokens=tokens,
            root=result.ast,
            diagnostics=tuple(result.diagnostics),
            _line_starts=tuple(starts),
        )

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    @property
    def line_starts(self) -> Tuple[int, ...]:
        """Character offset of the first character of each line."""
        return self._line_starts

    def position(self, offset: int) -> Tuple[int, int]:
        """1-based (line, column) for a character offset."""
        index = bisect.bisect_right(self._line_starts, offset) - 1
        index = max(index, 0)
        return index + 1, offset - self._line_starts[index] + 1

    def char_span(self, start: int, end: int) -> Span:
        line, column = self.position(start)
        end_line, end_column = self.position(end)
        return Span(start, end, line, column, end_line, end_column)

    def token_span(self, index: int, end_index: Optional[int] = None) -> Span:
        """Span of token index (or of the token range index..end_index exclusive)."""
        first = self.tokens[index]
        if end_index is None or end_index <= index + 1:
            last = first
        else:
            last = self.tokens[min(end_index, len(self.tokens)) - 1]
        return self.char_span(first.start, last.end)

    def node_span(self, node: StructuralNode) -> Span:
        return self.token_span(node.start, node.end)

    # ------------------------------------------------------------------
    # Token navigation
    # ------------------------------------------------------------------

    def prev_significant(self, index: int) -> Optional[int]:
        """Index of the closest non-trivia token before index."""
        i = index - 1
        while i >= 0:
            if not self.tokens[i].is_trivia:
                return i
            i -= 1
        return None

    def starts_line(self, index: int) -> bool:
        """True when only whitespace precedes this token on its line."""
        i = index - 1
        while i >= 0:
            token = self.tokens[i]
            if token.type == TokenType.NEWLINE:
                return True
            if token.type != TokenType.WHITESPACE:
                return False
            i -= 1
        return True

    def line_indent(self, line: int) -> str:
        """Leading whitespace of a 1-based line."""
        if line < 1 or line > len(self._line_starts):
            return ""
        start = self._line_starts[line - 1]
        end = start
        while end < len(self.text) and self.text[end] in " \t":
            end += 1
        return self.text[start:end]

    def comments(self) -> List[Token]:
        return [t for t in self.tokens if t.type == TokenType.COMMENT]

    def invalid_tokens(self) -> List[int]:
        """Indices of the INVALID tokens, in document order."""
        return [i for i, t in enumerate(self.tokens) if t.type == TokenType.INVALID]

