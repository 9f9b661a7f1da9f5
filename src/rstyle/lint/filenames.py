"""
File-name validation.

Path-only checks, no file content involved:
- characters outside the allowed set
- suffix case differing from the declared form (.r -> .R)
- paths that collide on a case-insensitive file system

Every finding sits on the zero span of its path, so all problems with one
path are reported as a single finding.
"""

import re
from collections import defaultdict
from pathlib import PurePath
from typing import Dict, Iterable, List, Optional, Tuple

from rstyle.lint.config import DEFAULT_RULES, RuleConfig
from rstyle.lint.reporting import Finding, Severity
from rstyle.parser.source import FILE_SPAN

RULE_ID = "file_name"
SEVERITY = Severity.WARNING


def _convention(convention: Optional[RuleConfig]) -> Dict:
    parameters = dict(DEFAULT_RULES[RULE_ID]["parameters"])
    if convention is not None:
        parameters.update(convention.parameters)
    return parameters


def _name_problems(path: str, params: Dict) -> List[str]:
    name = PurePath(path.replace("\\", "/")).name
    problems = []

    allowed = re.compile(params["allowed_characters"])
    bad = sorted({ch for ch in name if not allowed.fullmatch(ch)})
    if bad:
        shown = ", ".join(repr(ch) for ch in bad)
        problems.append(f"File name '{name}' contains disallowed character(s): {shown}")

    suffix = PurePath(name).suffix
    declared = params["extensions"].get(suffix.lower())
    if declared is not None and suffix != declared:
        problems.append(f"File suffix '{suffix}' should be written '{declared}'")

    return problems


def _combine(path: str, problems: List[str], related: Tuple[str, ...] = ()) -> Finding:
    return Finding(RULE_ID, SEVERITY, path, FILE_SPAN, "; ".join(problems), related)


def validate_file_name(path: str, convention: Optional[RuleConfig] = None) -> List[Finding]:
    """Check a single path's base name."""
    problems = _name_problems(path, _convention(convention))
    return [_combine(path, problems)] if problems else []


def find_collisions(paths: Iterable[str]) -> Dict[str, Tuple[str, ...]]:
    """Map the first path of each case-fold collision group to the others."""
    groups = defaultdict(set)
    for path in paths:
        groups[path.replace("\\", "/").casefold()].add(path)

    collisions = {}
    for members in groups.values():
        if len(members) > 1:
            ordered = sorted(members)
            collisions[ordered[0]] = tuple(ordered[1:])
    return collisions


def validate_file_names(paths: Iterable[str], convention: Optional[RuleConfig] = None) -> List[Finding]:
    """Check every path, plus case-fold collisions across all of them."""
    params = _convention(convention)
    paths = sorted(set(paths))
    collisions = find_collisions(paths) if params["check_collisions"] else {}

    findings = []
    for path in paths:
        problems = _name_problems(path, params)
        related = collisions.get(path, ())
        if related:
            problems.append(
                f"File name collides with {', '.join(related)} on case-insensitive file systems"
            )
        if problems:
            findings.append(_combine(path, problems, related))
    return findings
