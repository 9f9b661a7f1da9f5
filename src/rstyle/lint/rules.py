"""
Style rules.

Each rule is a stateless class with a rule_id and a default severity. The
engine calls check() with a parsed SourceFile and the rule's resolved
RuleConfig; the rule yields Findings. Rules never look at each other.

Checks:
- naming_convention: declared names are snake_case, dot-free, not built-ins
- assignment_operator: '=' used where '<-' is preferred
- quote_style: string literals use the preferred quote
- indentation: consistent unit, sibling alignment and block increment
- nesting_depth: blocks nested past a limit
- argument_order: argument specification in calls with known signatures
- conditional_shape: 'else' placement and braceless multi-line bodies
- parse_anomaly: invalid tokens and regions the parser could not decompose
"""

import re
from typing import Dict, Iterator, List, Optional, Type

from rstyle.lint.config import RuleConfig
from rstyle.lint.reporting import Finding, Severity
from rstyle.parser.lexer import TokenType, describe_invalid
from rstyle.parser.parser import (
    AssignmentNode,
    BlockNode,
    CallNode,
    ConditionalNode,
    DeclarationNode,
    OpaqueNode,
    StringNode,
)
from rstyle.parser.source import SourceFile, Span


# ============================================================================
# REGISTRY
# ============================================================================

RULES: Dict[str, Type['LintRule']] = {}


def register_rule(cls):
    """Class decorator adding a rule to the registry under its rule_id."""
    if not cls.rule_id:
        raise ValueError(f"{cls.__name__} has no rule_id")
    if cls.rule_id in RULES:
        raise ValueError(f"duplicate rule id {cls.rule_id!r}")
    RULES[cls.rule_id] = cls
    return cls


def all_rules() -> List['LintRule']:
    """One instance of every registered rule, in rule id order."""
    return [RULES[rule_id]() for rule_id in sorted(RULES)]


class LintRule:
    """Base class for lint rules."""

    rule_id: str = ""
    severity: Severity = Severity.WARNING

    def check(self, source: SourceFile, config: RuleConfig) -> Iterator[Finding]:
        """Yield findings for one file."""
        raise NotImplementedError

    def finding(self, source: SourceFile, span: Span, message: str) -> Finding:
        return Finding(self.rule_id, self.severity, source.path, span, message)


# ============================================================================
# NAMING
# ============================================================================

@register_rule
class NamingConventionRule(LintRule):
    """Declared names: assignment targets, function names and parameters."""

    rule_id = "naming_convention"
    severity = Severity.WARNING

    def check(self, source, config):
        pattern = re.compile(config.get("pattern"))
        reserved = set(config.get("reserved_names", []))

        for node in source.root.walk():
            if not isinstance(node, DeclarationNode):
                continue
            if node.name is not None and node.name_index is not None:
                problem = self.name_problem(node.name, pattern, reserved)
                if problem:
                    yield self.finding(source, source.token_span(node.name_index), problem)
            if node.kind == "function" and config.get("check_parameters", True):
                params = node.parameters
                if params is None:
                    continue
                for arg in params.arguments:
                    if arg.name == "..." or arg.name.startswith(".."):
                        continue
                    problem = self.name_problem(arg.name, pattern, reserved, kind="Parameter")
                    if problem:
                        yield self.finding(source, source.token_span(arg.name_index), problem)

    @staticmethod
    def name_problem(name: str, pattern, reserved, kind: str = "Name") -> Optional[str]:
        """First problem with a name, checked in priority order, or None."""
        name = name.strip("`")
        bare = name.lstrip(".")
        if "." in bare:
            return f"{kind} '{name}' contains '.'; use '_' to separate words"
        if name in reserved:
            return f"{kind} '{name}' shadows a built-in name"
        if not pattern.fullmatch(bare):
            return f"{kind} '{name}' does not match the naming convention ({pattern.pattern})"
        return None


# ============================================================================
# ASSIGNMENT OPERATOR
# ============================================================================

@register_rule
class AssignmentOperatorRule(LintRule):
    """Assignment uses the preferred operator. Named arguments are not assignments."""

    rule_id = "assignment_operator"
    severity = Severity.WARNING

    def check(self, source, config):
        preferred = config.get("operator", "<-")
        other = "=" if preferred == "<-" else "<-"
        for node in source.root.walk():
            if isinstance(node, AssignmentNode) and node.operator == other:
                yield self.finding(
                    source,
                    source.token_span(node.operator_index),
                    f"Use '{preferred}' for assignment, not '{other}'",
                )


# ============================================================================
# QUOTES
# ============================================================================

@register_rule
class QuoteStyleRule(LintRule):
    """String literals use the preferred quote unless that would need escaping."""

    rule_id = "quote_style"
    severity = Severity.INFO

    def check(self, source, config):
        preferred = config.get("preferred_quote", '"')
        alternate = "'" if preferred == '"' else '"'
        for node in source.root.walk():
            if not isinstance(node, StringNode) or node.raw or node.quote == preferred:
                continue
            # Switching would force escapes
            if preferred in node.content and alternate not in node.content:
                continue
            yield self.finding(
                source,
                source.node_span(node),
                f"Use {preferred} quotes for strings, not {alternate}",
            )


# ============================================================================
# INDENTATION
# ============================================================================

@register_rule
class IndentationRule(LintRule):
    """
    Consistent indentation.

    - the first indented line fixes the unit (tabs or spaces)
    - statements that start a line in one block share one indent
    - every block body is indented by the first observed increment
    """

    rule_id = "indentation"
    severity = Severity.INFO

    def check(self, source, config):
        tab_width = config.get("tab_width", 4)
        yield from self._check_unit(source)
        yield from self._check_siblings(source, tab_width)
        yield from self._check_increments(source, tab_width)

    @staticmethod
    def _width(indent: str, tab_width: int) -> int:
        return sum(tab_width if ch == "\t" else 1 for ch in indent)

    def _check_unit(self, source):
        tokens = source.tokens
        unit = None
        for i, token in enumerate(tokens):
            if token.type != TokenType.WHITESPACE:
                continue
            if i > 0 and tokens[i - 1].type != TokenType.NEWLINE:
                continue
            if i + 1 >= len(tokens) or tokens[i + 1].type in (TokenType.NEWLINE, TokenType.EOF):
                continue
            indent = token.value.replace("\f", "").replace("\r", "")
            if not indent:
                continue
            if unit is None:
                unit = "\t" if indent[0] == "\t" else " "
                continue
            wrong = " " if unit == "\t" else "\t"
            if wrong in indent:
                expected = "tabs" if unit == "\t" else "spaces"
                found = "spaces" if unit == "\t" else "tabs"
                yield self.finding(
                    source,
                    source.char_span(token.start, token.end),
                    f"Indentation uses {found}; this file indents with {expected}",
                )

    def _statement_starts(self, source, statements):
        """Token index of each statement that begins its own line."""
        for start, _end in statements:
            if start < len(source.tokens) and source.starts_line(start):
                yield start

    def _check_siblings(self, source, tab_width):
        for node in source.root.walk():
            statements = getattr(node, "statements", None)
            if not statements:
                continue
            expected = None
            for index in self._statement_starts(source, statements):
                token = source.tokens[index]
                width = self._width(source.line_indent(token.line), tab_width)
                if expected is None:
                    expected = width
                elif width != expected:
                    yield self.finding(
                        source,
                        source.token_span(index),
                        f"Statement indented {width} columns; its siblings use {expected}",
                    )

    def _check_increments(self, source, tab_width):
        increment = None
        for node in source.root.walk():
            if not isinstance(node, BlockNode) or not node.statements:
                continue
            open_token = source.tokens[node.start]
            first = next(self._statement_starts(source, node.statements), None)
            if first is None:
                continue

            base_line = open_token.line
            close_index = node.end - 1
            if node.closed and source.tokens[close_index].is_punct("}") and source.starts_line(close_index):
                base_line = source.tokens[close_index].line
            base = self._width(source.line_indent(base_line), tab_width)
            width = self._width(source.line_indent(source.tokens[first].line), tab_width)
            step = width - base

            if increment is None:
                if step > 0:
                    increment = step
                continue
            if step != increment:
                yield self.finding(
                    source,
                    source.token_span(first),
                    f"Block indented by {step} columns; this file uses {increment}",
                )


# ============================================================================
# NESTING
# ============================================================================

@register_rule
class NestingDepthRule(LintRule):
    """Blocks (or braceless conditional bodies) nested deeper than max_depth."""

    rule_id = "nesting_depth"
    severity = Severity.WARNING

    def check(self, source, config):
        max_depth = config.get("max_depth", 3)
        for node in source.root.walk():
            if isinstance(node, BlockNode):
                level = node.depth + 1
                at = node.start
            elif isinstance(node, ConditionalNode) and not node.braced:
                level = node.depth + 1
                at = node.start
            else:
                continue
            if level > max_depth:
                yield self.finding(
                    source,
                    source.token_span(at),
                    f"Nested {level} levels deep (maximum {max_depth})",
                )


# ============================================================================
# ARGUMENTS
# ============================================================================

@register_rule
class ArgumentOrderRule(LintRule):
    """
    Argument specification in calls to functions with a known signature.

    Signatures come from function declarations in the same file, then the
    'signatures' parameter. Calls to unknown functions are skipped.
    """

    rule_id = "argument_order"
    severity = Severity.WARNING

    def check(self, source, config):
        signatures = {name: list(params) for name, params in config.get("signatures", {}).items()}
        signatures.update(self.local_signatures(source))
        check_gaps = config.get("check_gaps", True)

        for node in source.root.walk():
            if not isinstance(node, CallNode) or node.kind != "call" or node.callee not in signatures:
                continue
            args = node.arguments
            if args is None or not args.arguments:
                continue
            yield from self._check_call(source, node.callee, signatures[node.callee], args, check_gaps)

    @staticmethod
    def local_signatures(source) -> Dict[str, List[str]]:
        found = {}
        for node in source.root.walk():
            if isinstance(node, DeclarationNode) and node.kind == "function" and node.name:
                params = node.parameters
                found[node.name.strip("`")] = [a.name for a in params.arguments] if params else []
        return found

    def _check_call(self, source, callee, params, args, check_gaps):
        arguments = args.arguments

        if check_gaps and len(arguments) > 1:
            for arg in arguments:
                if arg.is_empty and not arg.is_named:
                    yield self.finding(
                        source,
                        source.token_span(arg.start),
                        f"Omitted argument at position {arg.position + 1} in call to '{callee}'",
                    )

        for arg in args.positional_after_named():
            yield self.finding(
                source,
                source.token_span(arg.start),
                f"Positional argument follows a named argument in call to '{callee}'",
            )

        fixed = params[:params.index("...")] if "..." in params else params
        positional = 0
        for arg in arguments:
            if arg.is_named:
                break
            if not arg.is_empty:
                positional += 1
        for arg in arguments:
            if not arg.is_named or arg.name not in fixed:
                continue
            index = fixed.index(arg.name)
            if index < positional:
                yield self.finding(
                    source,
                    source.token_span(arg.name_index),
                    f"Argument '{arg.name}' of '{callee}' is named but its position is already "
                    f"filled by a positional argument",
                )


# ============================================================================
# CONDITIONALS
# ============================================================================

@register_rule
class ConditionalShapeRule(LintRule):
    """'else' on the closing-brace line; multi-line conditional bodies braced."""

    rule_id = "conditional_shape"
    severity = Severity.INFO

    def check(self, source, config):
        for node in source.root.walk():
            if not isinstance(node, ConditionalNode):
                continue
            if config.get("else_same_line", True) and node.else_index is not None:
                prev = source.prev_significant(node.else_index)
                if prev is not None and source.tokens[prev].type == TokenType.NEWLINE:
                    yield self.finding(
                        source,
                        source.token_span(node.else_index),
                        "'else' should be on the same line as the preceding '}'",
                    )
            if config.get("require_braces_multiline", True) and not node.braced and node.body_index is not None:
                header_line = source.tokens[node.header_end].line
                if source.tokens[node.body_index].line != header_line:
                    yield self.finding(
                        source,
                        source.token_span(node.start),
                        f"Body of '{node.keyword}' on a new line must be wrapped in braces",
                    )


# ============================================================================
# PARSE ANOMALIES
# ============================================================================

@register_rule
class ParseAnomalyRule(LintRule):
    """Report what the tokenizer and parser had to skip."""

    rule_id = "parse_anomaly"
    severity = Severity.WARNING

    def check(self, source, config):
        invalid = source.invalid_tokens()
        for index in invalid:
            reason = describe_invalid(source.tokens[index])
            yield self.finding(source, source.token_span(index), reason[0].upper() + reason[1:])

        for node in source.root.walk():
            if isinstance(node, OpaqueNode):
                if any(node.start <= i < node.end for i in invalid):
                    continue
                yield self.finding(source, source.node_span(node), f"Could not parse: {node.reason}")
            elif isinstance(node, BlockNode) and not node.closed:
                yield self.finding(source, source.token_span(node.start), "Block opened here is never closed")
