"""
File scanning.

Handles:
- Directory walking with exclusions
- Suffix filtering (case-insensitive, so misnamed .r files are still seen)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple


@dataclass(frozen=True)
class ScanConfig:
    """Which files under a root are analysed."""

    suffixes: Tuple[str, ...] = (".r", ".rmd", ".qmd")

    exclude_dirs: Tuple[str, ...] = (
        ".git",
        ".Rproj.user",
        "renv",
        "packrat",
        "node_modules",
        "__pycache__",
    )

    def with_excludes(self, extra: Iterable[str]) -> 'ScanConfig':
        return ScanConfig(self.suffixes, tuple(dict.fromkeys(self.exclude_dirs + tuple(extra))))


def should_exclude_path(cfg: ScanConfig, path: Path) -> bool:
    """Check if any directory component is excluded."""
    return any(d in path.parts[:-1] for d in cfg.exclude_dirs)


def iter_source_files(root: Path, cfg: Optional[ScanConfig] = None) -> Iterator[Path]:
    """Yield matching files under root in sorted order. A file root is yielded as is."""
    cfg = cfg or ScanConfig()
    root = Path(root)
    if root.is_file():
        yield root
        return

    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if should_exclude_path(cfg, path.relative_to(root)):
            continue
        if path.suffix.lower() in cfg.suffixes:
            yield path
