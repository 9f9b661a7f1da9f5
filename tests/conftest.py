"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rstyle.lint.config import resolve_config
from rstyle.lint.engine import analyze_file
from rstyle.parser import SourceFile, parse_source


# =============================================================================
# ENVIRONMENT FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep user config files and env overrides out of every test."""
    monkeypatch.delenv("RSTYLE_CONFIG", raising=False)
    monkeypatch.delenv("RSTYLE_WORKERS", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def default_config():
    """Configuration with every rule at its defaults."""
    return resolve_config()


@pytest.fixture
def r_project(tmp_path):
    """A small R package tree on disk."""
    root = tmp_path / "pkg"
    (root / "R").mkdir(parents=True)
    (root / "R" / "utils.R").write_text('add_one <- function(x) {\n  x + 1\n}\n', encoding="utf-8")
    (root / "R" / "bad.R").write_text("total = 1\nlabel <- 'name'\n", encoding="utf-8")
    (root / "renv").mkdir()
    (root / "renv" / "activate.R").write_text("x = 1\n", encoding="utf-8")
    (root / "README.md").write_text("# pkg\n", encoding="utf-8")
    return root


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def parse(text: str):
    """Parse text and return the root node."""
    return parse_source(text, "test.R").ast


def load(text: str, path: str = "test.R") -> SourceFile:
    return SourceFile.from_text(path, text)


def lint(text: str, rule_id: str = None, path: str = "test.R", config=None) -> list:
    """Final findings for text, optionally only those of one rule."""
    _summary, findings = analyze_file(path, text, config or resolve_config())
    if rule_id is None:
        return list(findings)
    return [f for f in findings if f.rule_id == rule_id]


def nodes_of(root, cls) -> list:
    """All nodes of a class in document order."""
    return [node for node in root.walk() if isinstance(node, cls)]
