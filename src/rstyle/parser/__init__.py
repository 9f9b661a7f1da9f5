"""
rstyle.parser - R Structural Parser

Fault-tolerant tokenizer and structural parser for R source files.
Converts text into a lightweight tree of the constructs style rules need.
"""

from rstyle.parser.lexer import Lexer, Token, TokenType, TokenStream, tokenize
from rstyle.parser.parser import (
    Parser,
    ParseDiagnostic,
    ParseResult,
    parse_source,
    parse_tokens,
    # Structural node types
    NodeType,
    StructuralNode,
    RootNode,
    BlockNode,
    CallNode,
    AssignmentNode,
    DeclarationNode,
    ConditionalNode,
    ArgumentListNode,
    Argument,
    StringNode,
    OpaqueNode,
)
from rstyle.parser.source import FILE_SPAN, SourceFile, Span, read_source

__all__ = [
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "TokenStream",
    "tokenize",
    # Parser
    "Parser",
    "ParseDiagnostic",
    "ParseResult",
    "parse_source",
    "parse_tokens",
    # Nodes
    "NodeType",
    "StructuralNode",
    "RootNode",
    "BlockNode",
    "CallNode",
    "AssignmentNode",
    "DeclarationNode",
    "ConditionalNode",
    "ArgumentListNode",
    "Argument",
    "StringNode",
    "OpaqueNode",
    # Source
    "FILE_SPAN",
    "SourceFile",
    "Span",
    "read_source",
]
