"""
Rule engine.

Runs every enabled rule over one parsed file. A rule that raises is
isolated: its findings for that file are discarded and a synthetic
rule_crashed finding takes their place; the other rules still run.

Usage:
    engine = RuleEngine(config)
    result = engine.analyze("R/utils.R", text)
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from rstyle.lint.aggregator import aggregate
from rstyle.lint.config import RULE_CRASHED, LintConfig, resolve_config
from rstyle.lint.reporting import Finding, Severity, StructuralSummary
from rstyle.lint.rules import LintRule, all_rules
from rstyle.lint.suppression import SuppressionMarker, extract_markers
from rstyle.parser.parser import ArgumentListNode, BlockNode, ConditionalNode, NodeType
from rstyle.parser.source import FILE_SPAN, SourceFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileResult:
    """Everything one task produces for one file. Immutable once built."""
    path: str
    summary: Optional[StructuralSummary]
    findings: Tuple[Finding, ...] = ()
    markers: Tuple[SuppressionMarker, ...] = ()


def summarize(source: SourceFile) -> StructuralSummary:
    """Count tokens and nodes of a parsed file."""
    counts = Counter()
    max_depth = 0
    diagnosable = 0
    for node in source.root.walk():
        counts[node.node_type.name.lower()] += 1
        if isinstance(node, BlockNode):
            max_depth = max(max_depth, node.depth + 1)
        elif isinstance(node, ConditionalNode) and not node.braced:
            max_depth = max(max_depth, node.depth + 1)
        elif isinstance(node, ArgumentListNode) and node.is_diagnosable:
            diagnosable += 1
    return StructuralSummary(
        path=source.path,
        token_count=len(source.tokens),
        invalid_token_count=len(source.invalid_tokens()),
        node_counts=dict(sorted(counts.items())),
        opaque_count=counts[NodeType.OPAQUE.name.lower()],
        max_depth=max_depth,
        parse_diagnostics=len(source.diagnostics),
        diagnosable_argument_lists=diagnosable,
    )


def crash_finding(path: str, message: str) -> Finding:
    return Finding(RULE_CRASHED, Severity.ERROR, path, FILE_SPAN, message)


class RuleEngine:
    """Evaluates the enabled rules of a configuration over parsed files."""

    def __init__(self, config: Optional[LintConfig] = None, rules: Optional[Sequence[LintRule]] = None):
        self.config = config or resolve_config()
        if rules is None:
            rules = all_rules()
        self.rules = [rule for rule in rules if self.config.is_enabled(rule.rule_id)]

    def run_rules(self, source: SourceFile) -> List[Finding]:
        """Raw findings of every enabled rule, before suppression."""
        findings: List[Finding] = []
        crashed = []
        for rule in self.rules:
            try:
                found = list(rule.check(source, self.config.rule(rule.rule_id)))
            except Exception as e:
                logger.warning(f"Rule {rule.rule_id} crashed on {source.path}: {type(e).__name__}: {e}")
                crashed.append(f"{rule.rule_id} ({type(e).__name__}: {e})")
                continue
            findings.extend(found)
        if crashed:
            # One finding per file: all synthetic findings share the file span
            findings.append(crash_finding(source.path, f"Rule crashed: {'; '.join(crashed)}"))
        return findings

    def analyze_source(self, source: SourceFile) -> FileResult:
        findings = self.run_rules(source)
        logger.debug(f"{source.path}: {len(source.tokens)} tokens, {len(findings)} raw findings")
        return FileResult(
            path=source.path,
            summary=summarize(source),
            findings=tuple(findings),
            markers=tuple(extract_markers(source)),
        )

    def analyze(self, path: str, text: str) -> FileResult:
        return self.analyze_source(SourceFile.from_text(path, text))


def analyze_file(path: str, text: str, config: Optional[LintConfig] = None) -> Tuple[StructuralSummary, Tuple[Finding, ...]]:
    """
    Analyse one file in isolation.

    Returns the structural summary and the final findings (suppressions and
    severity overrides applied, sorted and deduplicated). Pure: the same
    inputs always give the same output.
    """
    config = config or resolve_config()
    result = RuleEngine(config).analyze(path, text)
    return result.summary, aggregate(result.findings, result.markers, config)
