"""
rstyle command line.

Usage:
    rstyle                          # Check R files under the current directory
    rstyle R/ tests/ --json         # JSON report
    rstyle R/ --workers 8           # Parallel analysis
    rstyle R/ --fail-on warning     # Non-zero exit on warnings too

Exit status: 0 clean, 1 findings at or above --fail-on, 2 configuration error,
130 interrupted.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from rstyle import __version__
from rstyle.errors import ConfigurationError
from rstyle.lint.config import load_config
from rstyle.lint.reporting import Severity, exit_code, render_human, render_json
from rstyle.lint.runner import CancellationToken, analyze_project
from rstyle.lint.scanner import ScanConfig, iter_source_files

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rstyle",
        description=f"rstyle v{__version__}: style checker for R sources",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        help="Files or directories to check (default: current directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="FILE",
        help="YAML config file (default: ./.rstyle.yaml, ~/.rstyle/config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    parser.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of parallel workers (default: RSTYLE_WORKERS or executor default)",
    )
    parser.add_argument(
        "--fail-on",
        choices=[s.value for s in Severity],
        default=Severity.ERROR.value,
        help="Lowest severity that makes the exit status non-zero (default: error)",
    )
    parser.add_argument(
        "--processes",
        action="store_true",
        help="Use worker processes instead of threads",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="More logging (-v info, -vv debug)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
    )

    if args.workers is not None and args.workers < 1:
        print("rstyle: --workers must be >= 1", file=sys.stderr)
        return 2

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"rstyle: {e}", file=sys.stderr)
        return 2

    scan = ScanConfig().with_excludes(config.exclude_dirs)
    files = []
    for raw in args.paths:
        root = Path(raw)
        if not root.exists():
            print(f"rstyle: no such file or directory: {raw}", file=sys.stderr)
            return 2
        files.extend((str(path), None) for path in iter_source_files(root, scan))

    token = CancellationToken()
    previous = signal.getsignal(signal.SIGINT)

    def _interrupt(signum, frame):
        logger.warning("Interrupted, finishing files in progress")
        token.cancel()

    signal.signal(signal.SIGINT, _interrupt)
    try:
        report = analyze_project(
            files,
            config,
            workers=args.workers,
            cancel_token=token,
            use_processes=args.processes,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.json:
        print(render_json(report))
    else:
        print(render_human(report))

    if report.cancelled:
        return 130
    return exit_code(report, Severity.parse(args.fail_on))


if __name__ == "__main__":
    sys.exit(main())
