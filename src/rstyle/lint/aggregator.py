"""
Diagnostics aggregation.

Merges per-file results into one report. The output depends only on the
set of inputs, never on the order they arrived in.
"""

import dataclasses
from typing import Dict, Iterable, List, Optional, Tuple

from rstyle.lint.config import SYNTHETIC_RULES, LintConfig
from rstyle.lint.reporting import DiagnosticsReport, Finding, StructuralSummary
from rstyle.lint.suppression import SuppressionMarker


def aggregate(findings: Iterable[Finding],
              markers: Iterable[SuppressionMarker] = (),
              config: Optional[LintConfig] = None) -> Tuple[Finding, ...]:
    """
    Suppress, override severities, sort and deduplicate findings.

    Synthetic findings (rule_crashed, file_unreadable) are never suppressed.
    Duplicates by (rule_id, path, span start) keep the first in sort order.
    """
    by_path: Dict[str, List[SuppressionMarker]] = {}
    for marker in markers:
        by_path.setdefault(marker.path, []).append(marker)

    kept = []
    for finding in findings:
        synthetic = finding.rule_id in SYNTHETIC_RULES
        if not synthetic and any(m.covers(finding) for m in by_path.get(finding.path, ())):
            continue
        if config is not None:
            if not config.is_enabled(finding.rule_id):
                continue
            severity = config.severity_for(finding.rule_id, finding.severity)
            if severity != finding.severity:
                finding = dataclasses.replace(finding, severity=severity)
        kept.append(finding)

    kept.sort(key=lambda f: f.sort_key)
    seen = set()
    result = []
    for finding in kept:
        if finding.identity in seen:
            continue
        seen.add(finding.identity)
        result.append(finding)
    return tuple(result)


def build_report(results: Iterable, extra_findings: Iterable[Finding] = (),
                 config: Optional[LintConfig] = None, cancelled: bool = False) -> DiagnosticsReport:
    """Merge FileResults (plus path-only findings) into a DiagnosticsReport."""
    findings: List[Finding] = list(extra_findings)
    markers: List[SuppressionMarker] = []
    summaries: Dict[str, StructuralSummary] = {}
    count = 0
    for result in results:
        count += 1
        findings.extend(result.findings)
        markers.extend(result.markers)
        if result.summary is not None:
            summaries[result.path] = result.summary
    return DiagnosticsReport(
        findings=aggregate(findings, markers, config),
        summaries=dict(sorted(summaries.items())),
        files_analyzed=count,
        cancelled=cancelled,
    )
