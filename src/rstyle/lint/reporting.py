"""
Findings, reports and output formatting.

Handles:
- Severity and Finding values
- StructuralSummary / DiagnosticsReport
- Human-readable and JSON output
- Exit status policy
"""

import json
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from rstyle.parser.source import Span


class Severity(Enum):
    """Finding severity levels, ordered INFO < WARNING < ERROR."""
    INFO = "info"           # Style suggestion
    WARNING = "warning"     # Convention violation
    ERROR = "error"         # Must fix / analysis failure

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value) -> 'Severity':
        """Accept a Severity, or a case-insensitive name/value string."""
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key == "warn":
                key = "warning"
            for member in cls:
                if member.value == key:
                    return member
        raise ValueError(f"unknown severity {value!r} (expected info, warning or error)")


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}


@dataclass(frozen=True)
class Finding:
    """A single rule violation (or analysis failure) at a span of one file."""
    rule_id: str
    severity: Severity
    path: str
    span: Span
    message: str
    related_paths: Tuple[str, ...] = ()

    def __str__(self) -> str:
        loc = f"{self.path}:{self.span.line}:{self.span.column}"
        msg = f"{loc}: [{self.severity.value}] {self.rule_id}: {self.message}"
        if self.related_paths:
            msg += f" (also: {', '.join(self.related_paths)})"
        return msg

    @property
    def identity(self) -> Tuple[str, str, int]:
        """Deduplication key."""
        return (self.rule_id, self.path, self.span.start)

    @property
    def sort_key(self) -> Tuple[str, int, str, int, str]:
        return (self.path, self.span.start, self.rule_id, self.span.end, self.message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "path": self.path,
            "line": self.span.line,
            "column": self.span.column,
            "end_line": self.span.end_line,
            "end_column": self.span.end_column,
            "message": self.message,
        }
        if self.related_paths:
            result["related_paths"] = list(self.related_paths)
        return result


@dataclass(frozen=True)
class StructuralSummary:
    """Shape of one parsed file."""
    path: str
    token_count: int = 0
    invalid_token_count: int = 0
    node_counts: Dict[str, int] = field(default_factory=dict)
    opaque_count: int = 0
    max_depth: int = 0
    parse_diagnostics: int = 0
    # Argument lists with more than one unnamed argument after a named one
    diagnosable_argument_lists: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "token_count": self.token_count,
            "invalid_token_count": self.invalid_token_count,
            "node_counts": dict(self.node_counts),
            "opaque_count": self.opaque_count,
            "max_depth": self.max_depth,
            "parse_diagnostics": self.parse_diagnostics,
            "diagnosable_argument_lists": self.diagnosable_argument_lists,
        }


@dataclass(frozen=True)
class DiagnosticsReport:
    """Merged, deduplicated and sorted findings for a whole run."""
    findings: Tuple[Finding, ...] = ()
    summaries: Dict[str, StructuralSummary] = field(default_factory=dict)
    files_analyzed: int = 0
    cancelled: bool = False

    @property
    def highest_severity(self) -> Optional[Severity]:
        if not self.findings:
            return None
        return max(f.severity for f in self.findings)

    def by_file(self) -> "OrderedDict[str, List[Finding]]":
        """Findings grouped by path, in report order."""
        grouped: "OrderedDict[str, List[Finding]]" = OrderedDict()
        for finding in self.findings:
            grouped.setdefault(finding.path, []).append(finding)
        return grouped

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    def to_dict(self) -> Dict[str, Any]:
        highest = self.highest_severity
        return {
            "files_analyzed": self.files_analyzed,
            "cancelled": self.cancelled,
            "highest_severity": highest.value if highest else None,
            "findings": [f.to_dict() for f in self.findings],
            "summaries": [self.summaries[p].to_dict() for p in sorted(self.summaries)],
        }


def render_human(report: DiagnosticsReport) -> str:
    """Render a report as human-readable text."""
    if not report.findings:
        status = "cancelled, " if report.cancelled else ""
        return f"rstyle: OK ({status}{report.files_analyzed} files, no findings)"

    lines = []
    for path, findings in report.by_file().items():
        lines.append(path)
        for f in findings:
            loc = f"{f.span.line}:{f.span.column}"
            lines.append(f"  {loc:<8} {f.severity.value:<8} {f.rule_id:<20} {f.message}")
            if f.related_paths:
                lines.append(f"           -> also {', '.join(f.related_paths)}")
        lines.append("")

    lines.append(
        f"{len(report.findings)} findings in {report.files_analyzed} files "
        f"(errors: {report.count(Severity.ERROR)}, "
        f"warnings: {report.count(Severity.WARNING)}, "
        f"info: {report.count(Severity.INFO)})"
    )
    if report.cancelled:
        lines.append("Run cancelled: results are partial")
    return "\n".join(lines)


def render_json(report: DiagnosticsReport) -> str:
    """Render a report as JSON."""
    return json.dumps(report.to_dict(), indent=2, default=str)


def exit_code(report: DiagnosticsReport, fail_on: Severity = Severity.ERROR) -> int:
    """1 when any finding reaches fail_on, else 0."""
    highest = report.highest_severity
    if highest is not None and highest >= fail_on:
        return 1
    return 0
