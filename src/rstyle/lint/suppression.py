"""
Suppression markers.

Recognized comment forms:

    x = 1  # nolint                       all rules, this line
    x = 1  # nolint: assignment_operator  named rules, this line
    # nolint start: quote_style           named rules (or all) until ...
    # nolint end                          ... closes every open range

A range without a matching end runs to the end of the file. Findings about
a path rather than its contents (file names) are never suppressed by a
marker inside the file.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, List

from rstyle.parser.source import FILE_SPAN, SourceFile

_NOLINT = re.compile(r"^#+\s*nolint(?:\s+(start|end))?\s*(?::\s*(.*?))?\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class SuppressionMarker:
    """Suppresses findings on lines first_line..last_line (inclusive)."""
    path: str
    first_line: int
    last_line: int
    rule_ids: FrozenSet[str] = frozenset()  # empty = every rule

    def covers(self, finding) -> bool:
        # Path-only findings have no source line to carry a marker
        if finding.path != self.path or finding.span == FILE_SPAN:
            return False
        if not self.first_line <= finding.span.line <= self.last_line:
            return False
        return not self.rule_ids or finding.rule_id in self.rule_ids


def _parse_ids(text) -> FrozenSet[str]:
    if not text:
        return frozenset()
    return frozenset(part.strip().rstrip(".") for part in text.split(",") if part.strip().rstrip("."))


def extract_markers(source: SourceFile) -> List[SuppressionMarker]:
    """Collect the suppression markers declared by comments in a file."""
    markers: List[SuppressionMarker] = []
    open_ranges = []
    last_line = max(len(source.line_starts), 1)

    for token in source.comments():
        match = _NOLINT.match(token.value)
        if not match:
            continue
        kind, ids = match.group(1), _parse_ids(match.group(2))
        kind = kind.lower() if kind else None
        if kind == "start":
            open_ranges.append((token.line, ids))
        elif kind == "end":
            for first, range_ids in open_ranges:
                markers.append(SuppressionMarker(source.path, first, token.line, range_ids))
            open_ranges = []
        else:
            markers.append(SuppressionMarker(source.path, token.line, token.line, ids))

    for first, range_ids in open_ranges:
        markers.append(SuppressionMarker(source.path, first, last_line, range_ids))
    return markers
