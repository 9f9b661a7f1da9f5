"""
rstyle.lint - Rule engine, aggregation and project runner.
"""

from rstyle.lint.aggregator import aggregate, build_report
from rstyle.lint.config import (
    DEFAULT_RULES,
    LintConfig,
    RuleConfig,
    load_config,
    resolve_config,
)
from rstyle.lint.engine import FileResult, RuleEngine, analyze_file, summarize
from rstyle.lint.filenames import validate_file_name, validate_file_names
from rstyle.lint.reporting import (
    DiagnosticsReport,
    Finding,
    Severity,
    StructuralSummary,
    exit_code,
    render_human,
    render_json,
)
from rstyle.lint.rules import RULES, LintRule, register_rule
from rstyle.lint.runner import CancellationToken, analyze_project
from rstyle.lint.scanner import ScanConfig, iter_source_files
from rstyle.lint.suppression import SuppressionMarker, extract_markers

__all__ = [
    "aggregate",
    "build_report",
    "DEFAULT_RULES",
    "LintConfig",
    "RuleConfig",
    "load_config",
    "resolve_config",
    "FileResult",
    "RuleEngine",
    "analyze_file",
    "summarize",
    "validate_file_name",
    "validate_file_names",
    "DiagnosticsReport",
    "Finding",
    "Severity",
    "StructuralSummary",
    "exit_code",
    "render_human",
    "render_json",
    "RULES",
    "LintRule",
    "register_rule",
    "CancellationToken",
    "analyze_project",
    "ScanConfig",
    "iter_source_files",
    "SuppressionMarker",
    "extract_markers",
]
