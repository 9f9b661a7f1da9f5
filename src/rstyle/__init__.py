"""
rstyle - Style-Compliance Checker for R Sources

Parses R files with a fault-tolerant tokenizer and structural parser,
evaluates independent style rules and merges the findings into a
deterministic report.

Usage:
    from rstyle import analyze_file, analyze_project, resolve_config

    summary, findings = analyze_file("R/utils.R", text, resolve_config())
"""

__version__ = "0.1.0"

from rstyle.errors import ConfigurationError, FileUnreadableError, ParseError, RStyleError
from rstyle.lint import (
    CancellationToken,
    DiagnosticsReport,
    Finding,
    LintConfig,
    RuleConfig,
    Severity,
    StructuralSummary,
    analyze_file,
    analyze_project,
    load_config,
    resolve_config,
    validate_file_name,
    validate_file_names,
)

__all__ = [
    "__version__",
    "RStyleError",
    "ConfigurationError",
    "FileUnreadableError",
    "ParseError",
    "CancellationToken",
    "DiagnosticsReport",
    "Finding",
    "LintConfig",
    "RuleConfig",
    "Severity",
    "StructuralSummary",
    "analyze_file",
    "analyze_project",
    "load_config",
    "resolve_config",
    "validate_file_name",
    "validate_file_names",
]
