"""
R Structural Parser

Converts a token stream from the lexer into a lightweight structural tree.
Only the landmarks the style rules need are modelled: blocks, calls with
argument lists, assignments, declarations, conditionals and string literals.
Everything else (arithmetic, member access, literals) stays as plain tokens
inside the span of the enclosing node.

The parser recovers at statement boundaries. A region it cannot decompose
becomes an OPAQUE node and a ParseDiagnostic; parsing never aborts.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from rstyle.errors import ParseError
from rstyle.parser.lexer import TRIVIA, Lexer, Token, TokenType


class NodeType(Enum):
    """Types of structural nodes."""
    ROOT = auto()           # Top-level container
    BLOCK = auto()          # { ... }
    CALL = auto()           # f(...), x[...], x[[...]]
    ASSIGNMENT = auto()     # target <- value
    DECLARATION = auto()    # function definition or bound variable name
    CONDITIONAL = auto()    # if / for / while / repeat
    ARGUMENT_LIST = auto()  # (a, b = 1) of a call or function formals
    STRING = auto()         # "literal"
    OPAQUE = auto()         # region that could not be decomposed


@dataclass
class StructuralNode:
    """
    Base class for structural nodes.

    start/end are token indices into SourceFile.tokens (end exclusive).
    depth is the number of enclosing block/conditional nesting levels.
    """
    node_type: NodeType = None  # Set by subclasses in __post_init__
    start: int = 0
    end: int = 0
    depth: int = 0
    children: List['StructuralNode'] = field(default_factory=list)

    def walk(self) -> Iterator['StructuralNode']:
        """Pre-order traversal (document order), self included."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            '_type': self.node_type.name.lower(),
            'start': self.start,
            'end': self.end,
            'depth': self.depth,
            'children': [child.to_dict() for child in self.children],
        }


@dataclass
class RootNode(StructuralNode):
    """Root of the tree; statements holds the top-level statement spans."""
    filename: str = "<unknown>"
    statements: List[Tuple[int, int]] = field(default_factory=list)

    def __post_init__(self):
        self.node_type = NodeType.ROOT

    def __repr__(self):
        return f"Root({self.filename}, {len(self.children)} children)"


@dataclass
class BlockNode(StructuralNode):
    """A braced block: { statements }"""
    statements: List[Tuple[int, int]] = field(default_factory=list)
    closed: bool = True

    def __post_init__(self):
        self.node_type = NodeType.BLOCK

    def __repr__(self):
        return f"Block(depth={self.depth}, {len(self.statements)} statements)"


@dataclass
class Argument:
    """
    One argument of a call or one formal parameter.

    start == end means the value was omitted (f(a, , b) or function(x)).
    """
    name: Optional[str]
    name_index: Optional[int]
    start: int
    end: int
    position: int

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    @property
    def is_named(self) -> bool:
        return self.name is not None


@dataclass
class ArgumentListNode(StructuralNode):
    """Arguments of a call, or formals of a function when is_parameters."""
    arguments: List[Argument] = field(default_factory=list)
    is_parameters: bool = False

    def __post_init__(self):
        self.node_type = NodeType.ARGUMENT_LIST

    def __repr__(self):
        return f"ArgumentList({[a.name for a in self.arguments]})"

    @property
    def names(self) -> List[str]:
        return [a.name for a in self.arguments if a.name is not None]

    def positional_after_named(self) -> List[Argument]:
        """Unnamed, non-empty arguments that follow the first named one."""
        seen_named = False
        result = []
        for arg in self.arguments:
            if arg.is_named:
                seen_named = True
            elif seen_named and not arg.is_empty:
                result.append(arg)
        return result

    @property
    def is_diagnosable(self) -> bool:
        """More than one unnamed argument after the first named one."""
        return len(self.positional_after_named()) > 1


@dataclass
class CallNode(StructuralNode):
    """A call f(...) or an index x[...] / x[[...]]."""
    callee: Optional[str] = None
    callee_index: Optional[int] = None
    kind: str = "call"  # 'call' or 'index'

    def __post_init__(self):
        self.node_type = NodeType.CALL

    def __repr__(self):
        return f"Call({self.callee or '<expr>'}, {self.kind})"

    @property
    def arguments(self) -> Optional[ArgumentListNode]:
        for child in reversed(self.children):
            if isinstance(child, ArgumentListNode):
                return child
        return None


@dataclass
class AssignmentNode(StructuralNode):
    """target <- value (or =, <<-, ->, ->>)."""
    operator: str = "<-"
    operator_index: int = 0
    target: Optional[str] = None
    target_index: Optional[int] = None

    def __post_init__(self):
        self.node_type = NodeType.ASSIGNMENT

    def __repr__(self):
        return f"Assignment({self.target or '<expr>'} {self.operator})"


@dataclass
class DeclarationNode(StructuralNode):
    """
    A declared name.

    kind 'function': function(...) body, name set when bound by assignment.
    kind 'variable': the plain identifier target of an assignment.
    """
    kind: str = "variable"
    name: Optional[str] = None
    name_index: Optional[int] = None

    def __post_init__(self):
        self.node_type = NodeType.DECLARATION

    def __repr__(self):
        return f"Declaration({self.kind}, {self.name})"

    @property
    def parameters(self) -> Optional[ArgumentListNode]:
        for child in self.children:
            if isinstance(child, ArgumentListNode) and child.is_parameters:
                return child
        return None


@dataclass
class ConditionalNode(StructuralNode):
    """if / for / while / repeat."""
    keyword: str = "if"
    header_end: int = 0              # index of ')' (or keyword for repeat)
    body_index: Optional[int] = None  # first token of the body
    braced: bool = False
    else_index: Optional[int] = None

    def __post_init__(self):
        self.node_type = NodeType.CONDITIONAL

    def __repr__(self):
        return f"Conditional({self.keyword}, depth={self.depth})"


@dataclass
class StringNode(StructuralNode):
    """A string literal."""
    quote: str = '"'
    content: str = ""
    raw: bool = False

    def __post_init__(self):
        self.node_type = NodeType.STRING

    def __repr__(self):
        return f"String({self.quote}{self.content}{self.quote})"


@dataclass
class OpaqueNode(StructuralNode):
    """A token region the parser could not decompose."""
    reason: str = ""

    def __post_init__(self):
        self.node_type = NodeType.OPAQUE

    def __repr__(self):
        return f"Opaque({self.start}:{self.end}, {self.reason!r})"


@dataclass
class ParseDiagnostic:
    """A diagnostic message from parsing."""
    line: int
    column: int
    code: str
    message: str
    severity: str = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
        }


@dataclass
class ParseResult:
    """Result of parsing: the (partial) tree plus recovery diagnostics."""
    ast: RootNode
    diagnostics: List[ParseDiagnostic]
    tokens: Sequence[Token] = ()

    @property
    def success(self) -> bool:
        return not self.diagnostics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "ast": self.ast.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


_OPENERS = {"(": ")", "[": "]", "[[": "]]", "{": "}"}
_CLOSERS = frozenset({")", "]", "}"})
_PREFIX_OPERATORS = frozenset({"-", "+", "!", "~", "?"})
_LEFT_ASSIGN = frozenset({"<-", "<<-", "="})
_RIGHT_ASSIGN = frozenset({"->", "->>"})
_CONSTANT_KEYWORDS = frozenset({
    "TRUE", "FALSE", "NULL", "Inf", "NaN", "NA", "NA_integer_", "NA_real_",
    "NA_character_", "NA_complex_", "next", "break",
})


class Parser:
    """
    Error-tolerant recursive-descent parser for R source.

    Usage:
        parser = Parser(tokens)
        root = parser.parse()
        parser.diagnostics  # recovery notes
    """

    MAX_ERRORS = 100     # Prevent runaway recovery on binary garbage
    MAX_NESTING = 64     # Deeper expressions become opaque

    def __init__(self, tokens: Sequence[Token], filename: str = "<unknown>"):
        self.tokens = tokens
        self.filename = filename
        # Significant tokens: everything except whitespace and comments
        self._sig = [i for i, t in enumerate(tokens) if t.type not in TRIVIA]
        if not self._sig or tokens[self._sig[-1]].type != TokenType.EOF:
            raise ValueError("token sequence must end with EOF")
        self.pos = 0
        self.diagnostics: List[ParseDiagnostic] = []
        self.error_count = 0
        self._depth = 0
        self._nesting = 0
        # True while newlines are insignificant (inside parentheses/brackets)
        self._newline_insensitive = [False]

    # ------------------------------------------------------------------
    # Token cursor
    # ------------------------------------------------------------------

    def _current(self) -> Token:
        return self.tokens[self._sig[self.pos]]

    def _index(self) -> int:
        """Token index of the current significant token."""
        return self._sig[self.pos]

    def _peek(self, offset: int = 1) -> Token:
        pos = min(self.pos + offset, len(self._sig) - 1)
        return self.tokens[self._sig[pos]]

    def _peek_past_newlines(self) -> Token:
        """Next significant token after the current one, ignoring newlines."""
        pos = self.pos + 1
        last = len(self._sig) - 1
        while pos < last and self.tokens[self._sig[pos]].type == TokenType.NEWLINE:
            pos += 1
        return self.tokens[self._sig[min(pos, last)]]

    def _advance(self) -> int:
        """Consume the current token and return its index."""
        index = self._sig[self.pos]
        if self.tokens[index].type != TokenType.EOF:
            self.pos += 1
        return index

    def _prev_end(self) -> int:
        """Exclusive end index just after the last consumed token."""
        if self.pos == 0:
            return 0
        return self._sig[self.pos - 1] + 1

    def _at_eof(self) -> bool:
        return self._current().type == TokenType.EOF

    def _skip_newlines(self) -> None:
        while self._current().type == TokenType.NEWLINE:
            self.pos += 1

    def _expect_punct(self, value: str) -> int:
        token = self._current()
        if not token.is_punct(value):
            raise self._error(f"Expected '{value}', got {self._describe(token)}")
        return self._advance()

    def _describe(self, token: Token) -> str:
        if token.type == TokenType.EOF:
            return "end of file"
        if token.type == TokenType.NEWLINE:
            return "end of line"
        return f"{token.type.name} {token.value!r}"

    def _error(self, message: str) -> ParseError:
        token = self._current()
        return ParseError(message, self._index(), token.line, token.column)

    def _add_error(self, message: str, line: int, column: int, code: str = "PARSE_ERROR") -> None:
        """Record an error without raising."""
        self.error_count += 1
        self.diagnostics.append(ParseDiagnostic(line=line, column=column, code=code, message=message))

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def parse(self) -> RootNode:
        """Parse the token stream into a structural tree."""
        root = RootNode(filename=self.filename, start=0, depth=0)
        root.children, root.statements = self._parse_statements(closer=None)
        root.end = len(self.tokens)
        return root

    def _parse_statements(self, closer: Optional[str]) -> Tuple[List[StructuralNode], List[Tuple[int, int]]]:
        nodes: List[StructuralNode] = []
        statements: List[Tuple[int, int]] = []

        while True:
            while self._current().type == TokenType.NEWLINE or self._current().is_punct(";"):
                self.pos += 1
            token = self._current()
            if token.type == TokenType.EOF:
                break
            if closer is not None and token.is_punct(closer):
                break

            start_pos = self.pos
            start = self._index()

            if self.error_count >= self.MAX_ERRORS:
                while not self._at_eof():
                    self._advance()
                self._add_error(f"Too many errors ({self.MAX_ERRORS}+), rest of file skipped",
                                token.line, token.column, "TOO_MANY_ERRORS")
                nodes.append(OpaqueNode(start=start, end=self._prev_end(), depth=self._depth,
                                        reason="too many errors"))
                break

            if token.type == TokenType.PUNCTUATION and token.value in _CLOSERS:
                # Unbalanced closing delimiter
                self._advance()
                self._add_error(f"Unexpected '{token.value}' (unbalanced delimiters?)",
                                token.line, token.column, "UNBALANCED")
                nodes.append(OpaqueNode(start=start, end=start + 1, depth=self._depth,
                                        reason=f"unexpected '{token.value}'"))
                continue

            try:
                found = self._parse_expression()
                end_token = self._current()
                if not (end_token.type in (TokenType.NEWLINE, TokenType.EOF)
                        or end_token.is_punct(";")
                        or (closer is not None and end_token.is_punct(closer))):
                    raise self._error(f"Unexpected {self._describe(end_token)}")
                nodes.extend(found)
                statements.append((start, self._prev_end()))
            except ParseError as e:
                nodes.append(self._skip_statement(e, start, start_pos, closer))
            except RecursionError:
                # Interpreter stack ran out before MAX_NESTING did
                error = self._error("Expression nested too deeply")
                nodes.append(self._skip_statement(error, start, start_pos, closer))

        return nodes, statements

    def _skip_statement(self, error: ParseError, start: int, start_pos: int,
                        closer: Optional[str]) -> OpaqueNode:
        """Record the error and turn the rest of the statement into an opaque node."""
        self._add_error(error.message, error.line, error.column)
        self._recover(closer)
        if self.pos == start_pos:
            self._advance()
        end = max(self._prev_end(), start + 1)
        return OpaqueNode(start=start, end=end, depth=self._depth, reason=error.message)

    def _recover(self, closer: Optional[str]) -> None:
        """Skip to the next newline or closer at the current nesting level."""
        level = 0
        while True:
            token = self._current()
            if token.type == TokenType.EOF:
                break
            if level == 0 and token.type == TokenType.NEWLINE:
                break
            if level == 0 and closer is not None and token.is_punct(closer):
                break
            if token.type == TokenType.PUNCTUATION:
                if token.value in _OPENERS:
                    level += 2 if token.value == "[[" else 1
                elif token.value in _CLOSERS and level > 0:
                    level -= 1
            self._advance()

    def _parse_block(self) -> BlockNode:
        """Parse { statements }. The block takes the current nesting level."""
        open_index = self._expect_punct("{")
        node = BlockNode(start=open_index, depth=self._depth)
        self._depth += 1
        self._newline_insensitive.append(False)
        try:
            node.children, node.statements = self._parse_statements(closer="}")
        finally:
            self._newline_insensitive.pop()
            self._depth -= 1
        if self._current().is_punct("}"):
            self._advance()
        else:
            opener = self.tokens[open_index]
            self._add_error("Unexpected end of file in block (missing closing '}')",
                            opener.line, opener.column, "UNCLOSED_BLOCK")
            node.closed = False
        node.end = self._prev_end()
        return node

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _binary_operator_ahead(self) -> bool:
        if self._newline_insensitive[-1]:
            self._skip_newlines()
        token = self._current()
        return token.type == TokenType.OPERATOR and token.value not in ("!", "\\")

    def _parse_expression(self) -> List[StructuralNode]:
        """
        Parse one expression and return the structural nodes inside it.

        Assignment operators produce AssignmentNodes; every other binary
        operator just joins operands.
        """
        start_pos = self.pos
        start = self._index()
        nodes = self._parse_operand()

        while self._binary_operator_ahead():
            op_token = self._current()
            op_index = self._advance()
            self._skip_newlines()

            if op_token.value in _LEFT_ASSIGN:
                target_end = op_index
                self._nesting += 1
                try:
                    self._check_nesting()
                    value_nodes = self._parse_expression()
                finally:
                    self._nesting -= 1
                return [self._make_assignment(start_pos, start, target_end, op_index,
                                              nodes, value_nodes, right=False)]

            if op_token.value in _RIGHT_ASSIGN:
                target_pos = self.pos
                target_start = self._index()
                target_nodes = self._parse_operand()
                nodes = [self._make_assignment(target_pos, target_start, self._prev_end(), op_index,
                                               target_nodes, nodes, right=True, start=start)]
                continue

            nodes = nodes + self._parse_operand()

        return nodes

    def _make_assignment(self, target_pos: int, target_start: int, target_end: int, op_index: int,
                         target_nodes: List[StructuralNode], value_nodes: List[StructuralNode],
                         right: bool, start: Optional[int] = None) -> AssignmentNode:
        op_token = self.tokens[op_index]
        node = AssignmentNode(
            start=target_start if start is None else start,
            end=self._prev_end(),
            depth=self._depth,
            operator=op_token.value,
            operator_index=op_index,
        )

        # A plain identifier target is a single significant token
        target_token = self.tokens[target_start]
        plain = (
            target_token.type == TokenType.IDENTIFIER
            and self._sig[target_pos + 1] >= target_end
            and not target_nodes
        )
        declared: List[StructuralNode] = []
        if plain:
            node.target = target_token.value
            node.target_index = target_start
            function_values = [n for n in value_nodes
                               if isinstance(n, DeclarationNode) and n.kind == "function"]
            if len(value_nodes) == 1 and function_values:
                function_values[0].name = target_token.value
                function_values[0].name_index = target_start
            else:
                declared.append(DeclarationNode(
                    start=target_start, end=target_start + 1, depth=self._depth,
                    kind="variable", name=target_token.value, name_index=target_start,
                ))

        if right:
            node.children = value_nodes + declared + target_nodes
        else:
            node.children = declared + target_nodes + value_nodes
        return node

    def _check_nesting(self) -> None:
        if self._nesting > self.MAX_NESTING:
            raise self._error("Expression nested too deeply")

    def _parse_operand(self) -> List[StructuralNode]:
        """Parse prefix operators, a primary, then postfix calls/indexing."""
        self._nesting += 1
        try:
            self._check_nesting()
            while self._current().is_op(*_PREFIX_OPERATORS):
                self._advance()
                self._skip_newlines()
            primary_start = self._index()
            primary_token = self._current()
            nodes = self._parse_primary()
            callee = None
            if primary_token.type == TokenType.IDENTIFIER and self._prev_end() == primary_start + 1:
                callee = primary_token.value.strip("`")
            return self._parse_postfix(primary_start, callee, nodes)
        finally:
            self._nesting -= 1

    def _parse_primary(self) -> List[StructuralNode]:
        token = self._current()

        if token.type in (TokenType.IDENTIFIER, TokenType.NUMBER):
            self._advance()
            return []

        if token.type == TokenType.STRING:
            index = self._advance()
            return [self._make_string(index)]

        if token.type == TokenType.KEYWORD:
            if token.value in ("if", "for", "while", "repeat"):
                return [self._parse_conditional()]
            if token.value == "function":
                return [self._parse_function()]
            if token.value in _CONSTANT_KEYWORDS:
                self._advance()
                return []
            raise self._error(f"Unexpected keyword '{token.value}'")

        if token.is_op("\\"):
            return [self._parse_function()]

        if token.is_punct("{"):
            return [self._parse_block()]

        if token.is_punct("("):
            self._advance()
            self._newline_insensitive.append(True)
            try:
                self._skip_newlines()
                nodes = self._parse_expression()
                self._skip_newlines()
                self._expect_punct(")")
            finally:
                self._newline_insensitive.pop()
            return nodes

        if token.type == TokenType.INVALID:
            raise self._error(f"Invalid token {token.value!r}")

        raise self._error(f"Unexpected {self._describe(token)}")

    def _parse_postfix(self, start: int, callee: Optional[str], nodes: List[StructuralNode]) -> List[StructuralNode]:
        """Calls and indexing bind to the operand on the same line."""
        while True:
            token = self._current()
            if token.is_punct("("):
                kind = "call"
            elif token.is_punct("[", "[["):
                kind = "index"
            else:
                return nodes
            args = self._parse_arguments()
            call = CallNode(
                start=start,
                end=self._prev_end(),
                depth=self._depth,
                callee=callee,
                callee_index=start if callee is not None else None,
                kind=kind,
            )
            call.children = nodes + [args]
            nodes = [call]
            callee = None

    def _at_closer(self, closer: str) -> bool:
        if closer == "]]":
            return self._current().is_punct("]") and self._peek().is_punct("]")
        return self._current().is_punct(closer)

    def _consume_closer(self, closer: str) -> None:
        if closer == "]]":
            self._advance()
        self._advance()

    def _parse_arguments(self) -> ArgumentListNode:
        """Parse (args), [args] or [[args]] including omitted arguments."""
        opener = self._current().value
        closer = _OPENERS[opener]
        open_index = self._advance()
        node = ArgumentListNode(start=open_index, depth=self._depth)
        self._newline_insensitive.append(True)
        try:
            self._skip_newlines()
            if self._at_closer(closer):
                self._consume_closer(closer)
                node.end = self._prev_end()
                return node

            position = 0
            while True:
                self._skip_newlines()
                arg_start = self._index()
                name = None
                name_index = None
                value_start = arg_start
                value_nodes: List[StructuralNode] = []

                token = self._current()
                if (token.type in (TokenType.IDENTIFIER, TokenType.STRING)
                        or token.is_keyword("NULL")) and self._peek_past_newlines().is_op("="):
                    name_index = self._advance()
                    if token.type == TokenType.STRING:
                        name_node = self._make_string(name_index)
                        name = name_node.content
                        value_nodes.append(name_node)
                    else:
                        name = token.value.strip("`")
                    self._skip_newlines()
                    self._advance()  # '='
                    self._skip_newlines()
                    value_start = self._index()

                if self._current().is_punct(",") or self._at_closer(closer):
                    value_end = value_start
                else:
                    value_nodes.extend(self._parse_expression())
                    value_end = self._prev_end()

                node.arguments.append(Argument(name, name_index, value_start, value_end, position))
                node.children.extend(value_nodes)

                self._skip_newlines()
                if self._current().is_punct(","):
                    self._advance()
                    position += 1
                    continue
                if self._at_closer(closer):
                    self._consume_closer(closer)
                    break
                raise self._error(f"Expected ',' or '{closer}', got {self._describe(self._current())}")
        finally:
            self._newline_insensitive.pop()
        node.end = self._prev_end()
        return node

    def _parse_parameters(self) -> ArgumentListNode:
        """Parse function formals: (x, y = 1, ...)."""
        open_index = self._expect_punct("(")
        node = ArgumentListNode(start=open_index, depth=self._depth, is_parameters=True)
        self._newline_insensitive.append(True)
        try:
            self._skip_newlines()
            position = 0
            while not self._current().is_punct(")"):
                token = self._current()
                if token.type != TokenType.IDENTIFIER:
                    raise self._error(f"Expected parameter name, got {self._describe(token)}")
                name_index = self._advance()
                value_start = value_end = self._prev_end()
                if self._binary_operator_ahead() and self._current().is_op("="):
                    self._advance()
                    self._skip_newlines()
                    value_start = self._index()
                    node.children.extend(self._parse_expression())
                    value_end = self._prev_end()
                node.arguments.append(Argument(token.value.strip("`"), name_index,
                                               value_start, value_end, position))
                self._skip_newlines()
                if self._current().is_punct(","):
                    self._advance()
                    self._skip_newlines()
                    position += 1
                elif not self._current().is_punct(")"):
                    raise self._error(f"Expected ',' or ')', got {self._describe(self._current())}")
            self._advance()
        finally:
            self._newline_insensitive.pop()
        node.end = self._prev_end()
        return node

    def _parse_function(self) -> DeclarationNode:
        """function(params) body, or the \\(params) lambda shorthand."""
        keyword_index = self._advance()
        node = DeclarationNode(start=keyword_index, depth=self._depth, kind="function")
        params = self._parse_parameters()
        self._skip_newlines()
        if self._current().is_punct("{"):
            body = [self._parse_block()]
        else:
            body = self._parse_expression()
        node.children = [params] + body
        node.end = self._prev_end()
        return node

    def _parse_conditional(self) -> ConditionalNode:
        """
        Parse if/for/while/repeat with its body and any else branch.

        An else-if chain is read in a loop, then linked so each later clause
        is a child of the one before it, all at the same depth.
        """
        chain: List[Tuple[ConditionalNode, List[StructuralNode]]] = []
        while True:
            node, children = self._parse_clause()
            chain.append((node, children))
            if node.keyword != "if":
                break
            resume = self.pos
            self._skip_newlines()
            if not self._current().is_keyword("else"):
                self.pos = resume
                break
            node.else_index = self._advance()
            self._skip_newlines()
            if not self._current().is_keyword("if"):
                children.extend(self._parse_body())
                break

        end = self._prev_end()
        inner: Optional[ConditionalNode] = None
        for node, children in reversed(chain):
            if inner is not None:
                children.append(inner)
            node.children = children
            node.end = end
            inner = node
        return inner

    def _parse_clause(self) -> Tuple[ConditionalNode, List[StructuralNode]]:
        """Keyword, header and body of one conditional clause."""
        keyword_token = self._current()
        keyword_index = self._advance()
        node = ConditionalNode(start=keyword_index, depth=self._depth, keyword=keyword_token.value,
                               header_end=keyword_index)
        children: List[StructuralNode] = []

        if node.keyword != "repeat":
            self._expect_punct("(")
            self._newline_insensitive.append(True)
            try:
                self._skip_newlines()
                if node.keyword == "for":
                    if self._current().type != TokenType.IDENTIFIER:
                        raise self._error("Expected loop variable after 'for ('")
                    self._advance()
                    if not self._current().is_keyword("in"):
                        raise self._error("Expected 'in' in for loop header")
                    self._advance()
                    self._skip_newlines()
                children.extend(self._parse_expression())
                self._skip_newlines()
                node.header_end = self._expect_punct(")")
            finally:
                self._newline_insensitive.pop()

        self._skip_newlines()
        node.body_index = self._index()
        node.braced = self._current().is_punct("{")
        children.extend(self._parse_body())
        return node, children

    def _parse_body(self) -> List[StructuralNode]:
        """A braced body shares the conditional's level; a bare one nests."""
        if self._current().is_punct("{"):
            return [self._parse_block()]
        self._depth += 1
        try:
            return self._parse_expression()
        finally:
            self._depth -= 1

    def _make_string(self, index: int) -> StringNode:
        token = self.tokens[index]
        text = token.value
        raw = text[:1] in ("r", "R")
        if raw:
            quote = text[1]
            # r"---(...)---": the closing sequence mirrors the dashes and bracket
            dashes = len(text) - 2 - len(text[2:].lstrip("-"))
            width = dashes + 1
            opening = 2 + width
            content = text[opening:len(text) - 1 - width] if len(text) >= opening + width + 1 else ""
        else:
            quote = text[0]
            content = text[1:-1]
        return StringNode(start=index, end=index + 1, depth=self._depth,
                          quote=quote, content=content, raw=raw)


def parse_tokens(tokens: Sequence[Token], filename: str = "<unknown>") -> ParseResult:
    """Parse an already tokenized file."""
    parser = Parser(tokens, filename)
    root = parser.parse()
    return ParseResult(ast=root, diagnostics=parser.diagnostics, tokens=tokens)


def parse_source(source: str, filename: str = "<unknown>") -> ParseResult:
    """
    Tokenize and parse source text with error recovery.

    Args:
        source: Source code string
        filename: For diagnostics

    Returns:
        ParseResult with the (partial) tree, diagnostics and tokens
    """
    tokens = tuple(Lexer(source, filename).tokenize())
    return parse_tokens(tokens, filename)
