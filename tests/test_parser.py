"""
Tests for the structural parser.
"""

from conftest import nodes_of, parse

from rstyle.parser import (
    ArgumentListNode,
    AssignmentNode,
    BlockNode,
    CallNode,
    ConditionalNode,
    DeclarationNode,
    OpaqueNode,
    Parser,
    StringNode,
    parse_source,
)


class TestBasicParsing:
    """Statements, assignments and declarations."""

    def test_empty_source(self):
        """Parse empty source."""
        result = parse_source("")
        assert result.ast.children == []
        assert result.success

    def test_simple_assignment(self):
        root = parse("x <- 1")
        assert len(root.children) == 1
        node = root.children[0]
        assert isinstance(node, AssignmentNode)
        assert node.operator == "<-"
        assert node.target == "x"
        decl = node.children[0]
        assert isinstance(decl, DeclarationNode)
        assert (decl.kind, decl.name) == ("variable", "x")

    def test_equals_assignment(self):
        node = parse("x = 1").children[0]
        assert isinstance(node, AssignmentNode)
        assert node.operator == "="

    def test_right_assignment(self):
        node = parse("1 -> x").children[0]
        assert isinstance(node, AssignmentNode)
        assert node.operator == "->"
        assert node.target == "x"

    def test_chained_assignment(self):
        root = parse("a <- b <- 2")
        assert [n.target for n in nodes_of(root, AssignmentNode)] == ["a", "b"]

    def test_complex_target_has_no_declaration(self):
        root = parse("x$y <- 1\nnames(x) <- 'a'")
        assert len(nodes_of(root, AssignmentNode)) == 2
        assert nodes_of(root, DeclarationNode) == []

    def test_newlines_end_statements(self):
        root = parse("x <- 1\ny <- 2\n\nz <- 3")
        assert len(root.statements) == 3

    def test_binary_operator_continues_statement(self):
        root = parse("x <- 1 +\n  2\ny <- 3")
        assert len(root.statements) == 2

    def test_semicolons_separate_statements(self):
        root = parse("a <- 1; b <- 2")
        assert len(root.statements) == 2

    def test_to_dict(self):
        data = parse("x <- 1").to_dict()
        assert data["_type"] == "root"
        assert data["children"][0]["_type"] == "assignment"


class TestFunctions:
    """Function declarations and parameters."""

    def test_named_function(self):
        root = parse("add <- function(x, y = 2) {\n  x + y\n}")
        assignment = root.children[0]
        assert isinstance(assignment, AssignmentNode)
        decl = assignment.children[0]
        assert isinstance(decl, DeclarationNode)
        assert decl.kind == "function"
        assert decl.name == "add"
        assert decl.parameters.names == ["x", "y"]
        assert isinstance(decl.children[-1], BlockNode)
        # The function name is not also declared as a variable
        assert len(nodes_of(root, DeclarationNode)) == 1

    def test_parameter_defaults_are_not_assignments(self):
        root = parse("f <- function(a = 1, b = c(x = 2)) a")
        assert len(nodes_of(root, AssignmentNode)) == 1

    def test_lambda_shorthand(self):
        root = parse("sq <- \\(x) x^2")
        decl = nodes_of(root, DeclarationNode)[0]
        assert decl.kind == "function"
        assert decl.name == "sq"

    def test_anonymous_function(self):
        root = parse("lapply(xs, function(x) x + 1)")
        decl = nodes_of(root, DeclarationNode)[0]
        assert decl.name is None
        assert decl.parameters.names == ["x"]


class TestCalls:
    """Calls, indexing and argument lists."""

    def test_named_arguments_are_not_assignments(self):
        root = parse("f(a = 1, b = TRUE)")
        call = root.children[0]
        assert isinstance(call, CallNode)
        assert call.callee == "f"
        assert call.arguments.names == ["a", "b"]
        assert nodes_of(root, AssignmentNode) == []

    def test_multiline_call_is_one_statement(self):
        root = parse("f(a,\n  b = 2\n)\ng()")
        assert len(root.statements) == 2
        assert len(nodes_of(root, CallNode)) == 2

    def test_index_kinds(self):
        root = parse("x[[1]]\ny[1, 2]")
        calls = nodes_of(root, CallNode)
        assert [c.kind for c in calls] == ["index", "index"]

    def test_omitted_arguments(self):
        call = parse("m[1, ]").children[0]
        args = call.arguments.arguments
        assert len(args) == 2
        assert not args[0].is_empty
        assert args[1].is_empty

    def test_string_argument_name(self):
        call = parse('list("a b" = 1)').children[0]
        assert call.arguments.names == ["a b"]

    def test_name_and_equals_on_separate_lines(self):
        root = parse("f(a\n  = 1, b =\n  2)")
        assert root.children[0].arguments.names == ["a", "b"]
        assert nodes_of(root, AssignmentNode) == []

    def test_positional_after_named(self):
        call = parse("f(1, a = 2, 3, 4)").children[0]
        assert len(call.arguments.positional_after_named()) == 2

    def test_diagnosable_argument_list(self):
        """At most one unnamed argument may follow the first named one."""
        assert not parse("f(a = 1, 2)").children[0].arguments.is_diagnosable
        assert not parse("f(1, 2, a = 3)").children[0].arguments.is_diagnosable
        assert parse("f(a = 1, 2, 3)").children[0].arguments.is_diagnosable

    def test_namespaced_callee(self):
        call = nodes_of(parse("dplyr::filter(df, x > 1)"), CallNode)[0]
        assert call.callee == "filter"

    def test_pipe(self):
        calls = nodes_of(parse("x |> f() |> g(y = 1)"), CallNode)
        assert [c.callee for c in calls] == ["f", "g"]

    def test_inner_construct_binds_innermost(self):
        """'=' inside a nested call belongs to that call's argument list."""
        root = parse("f(g(a = 1), b = 2)")
        lists = nodes_of(root, ArgumentListNode)
        assert [al.names for al in lists] == [["b"], ["a"]]

    def test_string_nodes(self):
        strings = nodes_of(parse("x <- c('a', \"b\", r\"(c)\")"), StringNode)
        assert [(s.quote, s.content, s.raw) for s in strings] == [
            ("'", "a", False), ('"', "b", False), ('"', "c", True),
        ]

    def test_raw_string_dashes(self):
        strings = nodes_of(parse('x <- c(r"-(a)-", R\'--[b]--\', r"{}")'), StringNode)
        assert [s.content for s in strings] == ["a", "b", ""]


class TestConditionals:
    """if / else / loops and nesting depth."""

    def test_if_else(self):
        node = parse("if (a) {\n  b\n} else {\n  c\n}").children[0]
        assert isinstance(node, ConditionalNode)
        assert node.keyword == "if"
        assert node.braced
        assert node.else_index is not None

    def test_else_on_next_line(self):
        root = parse("if (a) {\n  b\n}\nelse {\n  c\n}")
        assert len(root.statements) == 1
        assert root.children[0].else_index is not None

    def test_no_else_restores_position(self):
        root = parse("if (a) b\n\nx <- 1")
        assert len(root.statements) == 2
        assert root.children[0].else_index is None

    def test_braceless_body(self):
        node = parse("if (a) b").children[0]
        assert not node.braced

    def test_loops(self):
        root = parse("for (i in 1:10) {\n  x\n}\nwhile (TRUE) break\nrepeat {\n  next\n}")
        assert [c.keyword for c in nodes_of(root, ConditionalNode)] == ["for", "while", "repeat"]

    def test_depth(self):
        """A block shares its conditional's level; contents go one deeper."""
        root = parse("if (a) {\n  if (b) {\n    x <- 1\n  }\n}")
        conditionals = nodes_of(root, ConditionalNode)
        blocks = nodes_of(root, BlockNode)
        assert [c.depth for c in conditionals] == [0, 1]
        assert [b.depth for b in blocks] == [0, 1]
        assert nodes_of(root, AssignmentNode)[0].depth == 2

    def test_else_if_chain_stays_flat(self):
        root = parse("if (a) {\n  x\n} else if (b) {\n  y\n} else {\n  z\n}")
        assert [c.depth for c in nodes_of(root, ConditionalNode)] == [0, 0]
        assert [b.depth for b in nodes_of(root, BlockNode)] == [0, 0, 0]

    def test_function_body_depth(self):
        root = parse("f <- function() {\n  if (a) {\n    b\n  }\n}")
        assert [b.depth for b in nodes_of(root, BlockNode)] == [0, 1]


class TestErrorRecovery:
    """Malformed input becomes opaque regions; parsing continues."""

    def test_bad_statement_is_opaque(self):
        result = parse_source("x <- )\ny <- 2")
        root = result.ast
        assert isinstance(root.children[0], OpaqueNode)
        assert isinstance(root.children[1], AssignmentNode)
        assert root.children[1].target == "y"
        assert len(result.diagnostics) == 1
        assert not result.success

    def test_unterminated_string(self):
        root = parse("x <- \"abc\ny <- 'b'")
        assert isinstance(root.children[0], OpaqueNode)
        assert nodes_of(root, StringNode)[0].content == "b"

    def test_stray_closer(self):
        root = parse("}\nx <- 1")
        assert isinstance(root.children[0], OpaqueNode)
        assert isinstance(root.children[1], AssignmentNode)

    def test_error_inside_block_is_contained(self):
        root = parse("f <- function() {\n  a b\n  c <- 1\n}\nd <- 2")
        block = nodes_of(root, BlockNode)[0]
        assert block.closed
        assert [type(n) for n in block.children] == [OpaqueNode, AssignmentNode]
        assert root.children[-1].target == "d"

    def test_unclosed_block(self):
        result = parse_source("f <- function() {\n  x <- 1\n")
        block = nodes_of(result.ast, BlockNode)[0]
        assert not block.closed
        assert result.diagnostics[0].code == "UNCLOSED_BLOCK"

    def test_deep_nesting_becomes_opaque(self):
        source = "(" * 200 + "1" + ")" * 200 + "\nx <- 1"
        root = parse(source)
        assert isinstance(root.children[0], OpaqueNode)
        assert isinstance(root.children[-1], AssignmentNode)

    def test_long_else_if_chain(self):
        source = "if (a) {\n  1\n} " + "else if (b) {\n  2\n} " * 1200 + "\nx <- 1\n"
        result = parse_source(source)
        assert result.success
        conditionals = nodes_of(result.ast, ConditionalNode)
        assert len(conditionals) == 1201
        assert {c.depth for c in conditionals} == {0}
        assert result.ast.children[-1].target == "x"

    def test_long_assignment_chain_becomes_opaque(self):
        result = parse_source("a <- " * 1500 + "1\nx <- 2\n")
        assert isinstance(result.ast.children[0], OpaqueNode)
        assert result.ast.children[-1].target == "x"
        assert any("too deeply" in d.message for d in result.diagnostics)

    def test_interpreter_recursion_limit_is_contained(self, monkeypatch):
        monkeypatch.setattr(Parser, "MAX_NESTING", 10 ** 6)
        root = parse("(" * 5000 + "1" + ")" * 5000 + "\nx <- 1")
        assert isinstance(root.children[0], OpaqueNode)
        assert root.children[-1].target == "x"

    def test_error_limit(self):
        result = parse_source(")\n" * 150)
        assert len(result.diagnostics) == Parser.MAX_ERRORS + 1
        assert result.diagnostics[-1].code == "TOO_MANY_ERRORS"

    def test_spans_nest(self):
        """Child spans lie inside their parent's span."""
        root = parse("f <- function(x = 1) {\n  if (x) g(a = 'b')\n}\nh(1, , 3)")

        def check(node):
            for child in node.children:
                assert node.start <= child.start <= child.end <= node.end
                check(child)

        check(root)
