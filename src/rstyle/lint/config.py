"""
rstyle configuration.

Loads configuration from a YAML file and environment variables and
resolves it against the built-in rule defaults.

Config file layout:

    rules:
      quote_style:
        severity: error
        parameters:
          preferred_quote: "'"
      nesting_depth: false          # shorthand for enabled: false
    exclude_dirs: [renv, packrat]
    workers: 4
"""

import copy
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import yaml

from rstyle.errors import ConfigurationError
from rstyle.lint.reporting import Severity

logger = logging.getLogger(__name__)


# Names that shadow commonly used base R objects
DEFAULT_RESERVED_NAMES = [
    "T", "F", "c", "t", "q", "df", "dt", "data", "file", "list", "vector",
    "matrix", "array", "names", "class", "length", "mean", "median", "sum",
    "max", "min", "range", "var", "sd", "rev", "sort", "order", "sample",
    "seq", "rep", "paste", "print", "plot", "table", "factor", "levels",
    "dim", "nrow", "ncol", "str", "all", "any", "library", "require",
    "return", "source", "get", "exists", "identity", "environment",
]

# Parameters and enablement per rule id. Severity defaults live on the rule.
DEFAULT_RULES: Dict[str, Dict[str, Any]] = {
    "naming_convention": {
        "enabled": True,
        "parameters": {
            "pattern": r"^[a-z][a-z0-9]*(_[a-z0-9]+)*$",
            "reserved_names": DEFAULT_RESERVED_NAMES,
            "check_parameters": True,
        },
    },
    "assignment_operator": {
        "enabled": True,
        "parameters": {"operator": "<-"},
    },
    "quote_style": {
        "enabled": True,
        "parameters": {"preferred_quote": '"'},
    },
    "indentation": {
        "enabled": True,
        "parameters": {"tab_width": 4},
    },
    "nesting_depth": {
        "enabled": True,
        "parameters": {"max_depth": 3},
    },
    "argument_order": {
        "enabled": True,
        "parameters": {"signatures": {}, "check_gaps": True},
    },
    "conditional_shape": {
        "enabled": True,
        "parameters": {"else_same_line": True, "require_braces_multiline": True},
    },
    "parse_anomaly": {
        "enabled": True,
        "parameters": {},
    },
    "file_name": {
        "enabled": True,
        "parameters": {
            "allowed_characters": r"[A-Za-z0-9._-]",
            "extensions": {".r": ".R", ".rmd": ".Rmd", ".qmd": ".qmd", ".rds": ".rds", ".rdata": ".RData"},
            "check_collisions": True,
        },
    },
}

# Synthetic rule ids: always enabled, never suppressible, not configurable
RULE_CRASHED = "rule_crashed"
FILE_UNREADABLE = "file_unreadable"
SYNTHETIC_RULES = frozenset({RULE_CRASHED, FILE_UNREADABLE})


def config_search_paths() -> List[Path]:
    """Config file locations, checked in order."""
    return [
        Path.cwd() / ".rstyle.yaml",
        Path.home() / ".rstyle" / "config.yaml",
    ]


@dataclass(frozen=True)
class RuleConfig:
    """Resolved settings for one rule. severity None means the rule default."""
    rule_id: str
    enabled: bool = True
    severity: Optional[Severity] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.parameters.get(name, default)


@dataclass(frozen=True)
class LintConfig:
    """Resolved run configuration, shared read-only by every worker."""
    rules: Dict[str, RuleConfig] = field(default_factory=dict)
    exclude_dirs: Tuple[str, ...] = ()
    workers: Optional[int] = None
    config_path: Optional[str] = None

    def rule(self, rule_id: str) -> RuleConfig:
        if rule_id in self.rules:
            return self.rules[rule_id]
        defaults = DEFAULT_RULES.get(rule_id, {"enabled": True, "parameters": {}})
        return RuleConfig(rule_id, defaults["enabled"], None, copy.deepcopy(defaults["parameters"]))

    def is_enabled(self, rule_id: str) -> bool:
        if rule_id in SYNTHETIC_RULES:
            return True
        return self.rule(rule_id).enabled

    def severity_for(self, rule_id: str, default: Severity) -> Severity:
        if rule_id in SYNTHETIC_RULES:
            return default
        override = self.rule(rule_id).severity
        return override if override is not None else default

    @property
    def enabled_rules(self) -> List[str]:
        return [rule_id for rule_id in sorted(DEFAULT_RULES) if self.is_enabled(rule_id)]


# =============================================================================
# PARAMETER VALIDATION
# =============================================================================

def _check_pattern(value):
    try:
        re.compile(value)
    except re.error as e:
        return f"invalid regular expression: {e}"
    return None


def _check_non_negative(value):
    return None if value >= 0 else "must be >= 0"


def _check_positive(value):
    return None if value >= 1 else "must be >= 1"


def _check_quote(value):
    return None if value in ('"', "'") else "must be '\"' or \"'\""


def _check_operator(value):
    return None if value in ("<-", "=") else "must be '<-' or '='"


def _check_signatures(value):
    for name, params in value.items():
        if not isinstance(name, str):
            return f"function name {name!r} is not a string"
        if not isinstance(params, list) or not all(isinstance(p, str) for p in params):
            return f"signature of {name!r} must be a list of parameter names"
    return None


def _check_extensions(value):
    for suffix, form in value.items():
        if not isinstance(suffix, str) or not isinstance(form, str):
            return "extension map must be strings"
        if not suffix.startswith(".") or suffix.lower() != form.lower():
            return f"{suffix!r} -> {form!r} must map a suffix to a case variant of itself"
    return None


_PARAMETER_CHECKS: Dict[Tuple[str, str], Callable[[Any], Optional[str]]] = {
    ("naming_convention", "pattern"): _check_pattern,
    ("file_name", "allowed_characters"): _check_pattern,
    ("file_name", "extensions"): _check_extensions,
    ("nesting_depth", "max_depth"): _check_non_negative,
    ("indentation", "tab_width"): _check_positive,
    ("quote_style", "preferred_quote"): _check_quote,
    ("assignment_operator", "operator"): _check_operator,
    ("argument_order", "signatures"): _check_signatures,
}


def _validate_parameter(rule_id: str, name: str, value: Any, default: Any) -> Any:
    """Type-check a parameter against its default and run rule-specific checks."""
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, str):
        ok = isinstance(value, str)
    elif isinstance(default, list):
        ok = isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
        value = list(value) if ok else value
    elif isinstance(default, dict):
        ok = isinstance(value, dict)
    else:
        ok = True
    if not ok:
        raise ConfigurationError(
            f"parameter '{name}' expects {type(default).__name__}, got {type(value).__name__}",
            rule_id,
        )
    check = _PARAMETER_CHECKS.get((rule_id, name))
    if check is not None:
        problem = check(value)
        if problem:
            raise ConfigurationError(f"parameter '{name}' {problem}", rule_id)
    return value


def _resolve_rule(rule_id: str, settings: Any) -> RuleConfig:
    defaults = DEFAULT_RULES[rule_id]
    parameters = copy.deepcopy(defaults["parameters"])

    if isinstance(settings, bool):
        return RuleConfig(rule_id, settings, None, parameters)
    if settings is None:
        settings = {}
    if not isinstance(settings, Mapping):
        raise ConfigurationError(f"settings must be a mapping or a boolean, got {type(settings).__name__}", rule_id)

    unknown = set(settings) - {"enabled", "severity", "parameters"}
    if unknown:
        raise ConfigurationError(f"unknown setting(s): {', '.join(sorted(map(str, unknown)))}", rule_id)

    enabled = settings.get("enabled", defaults["enabled"])
    if not isinstance(enabled, bool):
        raise ConfigurationError("'enabled' must be true or false", rule_id)

    severity = None
    if settings.get("severity") is not None:
        try:
            severity = Severity.parse(settings["severity"])
        except ValueError as e:
            raise ConfigurationError(str(e), rule_id)

    given = settings.get("parameters") or {}
    if not isinstance(given, Mapping):
        raise ConfigurationError("'parameters' must be a mapping", rule_id)
    for name, value in given.items():
        if name not in parameters:
            raise ConfigurationError(f"unknown parameter '{name}'", rule_id)
        parameters[name] = _validate_parameter(rule_id, name, value, defaults["parameters"][name])

    return RuleConfig(rule_id, enabled, severity, parameters)


def resolve_config(mapping: Optional[Mapping[str, Any]] = None, **options) -> LintConfig:
    """
    Resolve a {rule_id: {enabled, severity, parameters}} mapping over the defaults.

    Raises ConfigurationError for unknown rule ids, unknown parameters and
    malformed values, before any file is analysed.
    """
    mapping = mapping or {}
    if not isinstance(mapping, Mapping):
        raise ConfigurationError(f"rules must be a mapping, got {type(mapping).__name__}")

    for rule_id in mapping:
        if rule_id in SYNTHETIC_RULES:
            raise ConfigurationError("synthetic rule cannot be configured", rule_id)
        if rule_id not in DEFAULT_RULES:
            raise ConfigurationError(f"unknown rule id (known: {', '.join(sorted(DEFAULT_RULES))})", rule_id)

    rules = {
        rule_id: _resolve_rule(rule_id, mapping.get(rule_id))
        for rule_id in DEFAULT_RULES
    }
    return LintConfig(rules=rules, **options)


def default_workers() -> Optional[int]:
    """Worker count from RSTYLE_WORKERS, or None for the executor default."""
    value = os.environ.get("RSTYLE_WORKERS")
    if not value:
        return None
    try:
        workers = int(value)
    except ValueError:
        raise ConfigurationError(f"RSTYLE_WORKERS must be an integer, got {value!r}")
    if workers < 1:
        raise ConfigurationError(f"RSTYLE_WORKERS must be >= 1, got {workers}")
    return workers


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"cannot read {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[Path] = None) -> LintConfig:
    """
    Load configuration from YAML and the environment.

    An explicit path (argument or RSTYLE_CONFIG) must exist. Otherwise the
    search paths are tried in order and the defaults used when none exists.
    """
    explicit = path or os.environ.get("RSTYLE_CONFIG")
    data: Dict[str, Any] = {}
    found: Optional[Path] = None

    if explicit:
        found = Path(explicit).expanduser()
        if not found.is_file():
            raise ConfigurationError(f"config file not found: {found}")
        data = _read_yaml(found)
    else:
        for candidate in config_search_paths():
            if candidate.is_file():
                found = candidate
                data = _read_yaml(candidate)
                break

    if found:
        logger.info(f"Loaded config from {found}")
    else:
        logger.debug("No config file found, using defaults")

    unknown = set(data) - {"rules", "exclude_dirs", "workers"}
    if unknown:
        raise ConfigurationError(f"unknown top-level key(s): {', '.join(sorted(map(str, unknown)))}")

    exclude_dirs = data.get("exclude_dirs") or []
    if not isinstance(exclude_dirs, list) or not all(isinstance(d, str) for d in exclude_dirs):
        raise ConfigurationError("'exclude_dirs' must be a list of directory names")

    workers = default_workers()
    if workers is None and data.get("workers") is not None:
        workers = data["workers"]
        if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
            raise ConfigurationError(f"'workers' must be a positive integer, got {workers!r}")

    return resolve_config(
        data.get("rules"),
        exclude_dirs=tuple(exclude_dirs),
        workers=workers,
        config_path=str(found) if found else None,
    )
