"""
rstyle error taxonomy.

Only ConfigurationError aborts a run. Every other failure is degraded
into a Finding at the engine or runner boundary.
"""

from typing import Optional


class RStyleError(Exception):
    """Base class for all rstyle errors."""


class ConfigurationError(RStyleError):
    """Unknown rule id, malformed parameter or unreadable config file."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        self.rule_id = rule_id
        self.message = message
        if rule_id:
            super().__init__(f"Configuration error in rule '{rule_id}': {message}")
        else:
            super().__init__(f"Configuration error: {message}")


class FileUnreadableError(RStyleError):
    """A source file could not be read or decoded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class ParseError(RStyleError):
    """
    Structural anomaly raised inside the parser.

    Never escapes the parser: the statement loop catches it and turns the
    offending region into an OPAQUE node.
    """

    def __init__(self, message: str, token_index: Optional[int] = None,
                 line: int = 0, column: int = 0):
        self.message = message
        self.token_index = token_index
        self.line = line
        self.column = column
        if line:
            super().__init__(f"Parse error at line {line}, column {column}: {message}")
        else:
            super().__init__(f"Parse error: {message}")
