"""
Tests for the rule engine, aggregation and per-file analysis.
"""

import random

from conftest import lint, load

from rstyle.lint.aggregator import aggregate, build_report
from rstyle.lint.config import DEFAULT_RULES, resolve_config
from rstyle.lint.engine import FileResult, RuleEngine, analyze_file, summarize
from rstyle.lint.reporting import Finding, Severity
from rstyle.lint.rules import RULES, AssignmentOperatorRule, LintRule
from rstyle.lint.suppression import SuppressionMarker, extract_markers
from rstyle.parser.source import FILE_SPAN, Span


SAMPLE = """process_data <- function(df, n = 10) {
  result = head(df, n)
  label <- 'done'
  if (nrow(result) > 0) {
    result
  }
  else {
    NULL
  }
}
"""


class ExplodingRule(LintRule):
    rule_id = "exploding"
    severity = Severity.WARNING

    def check(self, source, config):
        raise RuntimeError("boom")


def make_finding(rule_id="quote_style", path="a.R", start=0, message="m", line=1):
    return Finding(rule_id, Severity.INFO, path, Span(start, start + 1, line, start + 1, line, start + 2), message)


class TestRegistry:

    def test_every_rule_is_configurable(self):
        assert set(DEFAULT_RULES) == set(RULES) | {"file_name"}

    def test_rules_have_ids_and_severities(self):
        for rule_id, cls in RULES.items():
            assert cls.rule_id == rule_id
            assert isinstance(cls.severity, Severity)


class TestAnalyzeFile:

    def test_idempotent(self, default_config):
        first = analyze_file("R/sample.R", SAMPLE, default_config)
        second = analyze_file("R/sample.R", SAMPLE, default_config)
        assert first == second

    def test_findings_sorted(self, default_config):
        _summary, findings = analyze_file("R/sample.R", SAMPLE, default_config)
        rules = {f.rule_id for f in findings}
        assert {"assignment_operator", "quote_style", "conditional_shape", "naming_convention"} <= rules
        assert list(findings) == sorted(findings, key=lambda f: f.sort_key)

    def test_summary(self, default_config):
        summary, _findings = analyze_file("R/sample.R", "x <- 1\n", default_config)
        assert summary.node_counts == {"assignment": 1, "declaration": 1, "root": 1}
        assert summary.opaque_count == 0
        assert summary.max_depth == 0

    def test_summary_counts_diagnosable_argument_lists(self):
        summary = summarize(load("f(a = 1, 2, 3)\ng(b = 1, 2)\n"))
        assert summary.diagnosable_argument_lists == 1
        assert summary.to_dict()["diagnosable_argument_lists"] == 1

    def test_deep_input_does_not_raise(self, default_config):
        chain = "if (a) {\n  1\n} " + "else if (b) {\n  2\n} " * 1200 + "\n"
        summary, _findings = analyze_file("R/chain.R", chain, default_config)
        assert summary.node_counts["conditional"] == 1201

        summary, findings = analyze_file("R/assign.R", "a <- " * 1500 + "1\n", default_config)
        assert summary.opaque_count == 1
        assert "parse_anomaly" in {f.rule_id for f in findings}

    def test_summary_counts_anomalies(self):
        summary = summarize(load("x <- )\ny <- \"abc\n"))
        assert summary.opaque_count == 2
        assert summary.invalid_token_count == 1
        assert summary.parse_diagnostics == 2

    def test_rmd_keeps_line_numbers(self):
        text = (
            "---\n"
            "title: a = 1\n"
            "---\n"
            "Prose with x = 2 in it.\n"
            "```{r setup}\n"
            "y = 3\n"
            "```\n"
            "```{python}\n"
            "z = 4\n"
            "```\n"
        )
        findings = lint(text, "assignment_operator", path="report.Rmd")
        assert [f.span.line for f in findings] == [6]


class TestRuleEngine:

    def test_rule_crash_is_isolated(self, default_config):
        engine = RuleEngine(default_config, rules=[ExplodingRule(), AssignmentOperatorRule()])
        result = engine.analyze("a.R", "x = 1\n")
        rule_ids = sorted(f.rule_id for f in result.findings)
        assert rule_ids == ["assignment_operator", "rule_crashed"]
        crash = [f for f in result.findings if f.rule_id == "rule_crashed"][0]
        assert "exploding" in crash.message
        assert crash.severity == Severity.ERROR

    def test_disabled_rules_do_not_run(self):
        config = resolve_config({"assignment_operator": False})
        engine = RuleEngine(config)
        assert "assignment_operator" not in [r.rule_id for r in engine.rules]

    def test_result_carries_markers(self, default_config):
        result = RuleEngine(default_config).analyze("a.R", "x = 1 # nolint\n")
        assert len(result.markers) == 1
        assert result.markers[0].first_line == 1


class TestSuppressionMarkers:

    def test_extract(self):
        source = load("a <- 1 # nolint: quote_style, naming_convention\n# nolint start\nb\n# nolint end\n")
        markers = extract_markers(source)
        assert markers[0].rule_ids == frozenset({"quote_style", "naming_convention"})
        assert (markers[1].first_line, markers[1].last_line) == (2, 4)

    def test_plain_comments_ignored(self):
        assert extract_markers(load("# nolintish\n# a note about nolint\n")) == []


class TestAggregate:

    def test_order_independent(self):
        findings = [make_finding(path=p, start=s, rule_id=r)
                    for p in ("b.R", "a.R") for s in (5, 1) for r in ("quote_style", "indentation")]
        expected = aggregate(findings)
        for seed in range(5):
            shuffled = list(findings)
            random.Random(seed).shuffle(shuffled)
            assert aggregate(shuffled) == expected
        assert [f.path for f in expected[:4]] == ["a.R"] * 4

    def test_dedup_keeps_first_in_order(self):
        findings = [make_finding(message="zzz"), make_finding(message="aaa")]
        result = aggregate(findings)
        assert len(result) == 1
        assert result[0].message == "aaa"

    def test_suppression(self):
        marker = SuppressionMarker("a.R", 1, 1, frozenset({"quote_style"}))
        findings = [make_finding(), make_finding(rule_id="indentation")]
        assert [f.rule_id for f in aggregate(findings, [marker])] == ["indentation"]

    def test_synthetic_never_suppressed(self):
        marker = SuppressionMarker("a.R", 1, 10)
        crash = Finding("rule_crashed", Severity.ERROR, "a.R", FILE_SPAN, "boom")
        assert aggregate([crash, make_finding()], [marker]) == (crash,)

    def test_path_findings_not_suppressed(self):
        marker = SuppressionMarker("a.R", 1, 1)
        name = Finding("file_name", Severity.WARNING, "a.R", FILE_SPAN, "bad name")
        assert aggregate([name, make_finding()], [marker]) == (name,)

    def test_severity_override(self):
        config = resolve_config({"quote_style": {"severity": "warning"}})
        result = aggregate([make_finding()], config=config)
        assert result[0].severity == Severity.WARNING

    def test_build_report(self, default_config):
        result = FileResult("a.R", None, (make_finding(),), ())
        report = build_report([result], [make_finding(path="0.R")], default_config)
        assert report.files_analyzed == 1
        assert [f.path for f in report.findings] == ["0.R", "a.R"]
        assert report.highest_severity == Severity.INFO
        assert list(report.by_file()) == ["0.R", "a.R"]
