"""
Project runner.

Fans out one task per file over a concurrent.futures executor and merges
the immutable per-file results once, in the coordinating thread.

Usage:
    token = CancellationToken()
    report = analyze_project([("R/a.R", text), ("R/b.R", loader)], config,
                             workers=4, cancel_token=token)
"""

import logging
import threading
from concurrent.futures import (
    FIRST_COMPLETED,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from typing import Callable, Iterable, List, Optional, Tuple, Union

from rstyle.errors import FileUnreadableError
from rstyle.lint.aggregator import build_report
from rstyle.lint.config import FILE_UNREADABLE, LintConfig, default_workers, resolve_config
from rstyle.lint.engine import FileResult, RuleEngine, crash_finding
from rstyle.lint.filenames import validate_file_names
from rstyle.lint.reporting import DiagnosticsReport, Finding, Severity
from rstyle.parser.source import FILE_SPAN, decode_source, read_source

logger = logging.getLogger(__name__)

TextSource = Union[None, str, bytes, Callable[[], Union[str, bytes]]]


class CancellationToken:
    """Cooperative cancellation flag shared between the caller and the runner."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def load_text(path: str, text: TextSource) -> str:
    """Resolve a text source: str as is, bytes decoded, callable called, None read from disk."""
    if text is None:
        return read_source(path)
    if callable(text):
        try:
            text = text()
        except OSError as e:
            raise FileUnreadableError(path, e.strerror or str(e))
    if isinstance(text, bytes):
        return decode_source(text)
    if not isinstance(text, str):
        raise FileUnreadableError(path, f"loader returned {type(text).__name__}, expected str or bytes")
    return text


def _unreadable(path: str, reason: str) -> FileResult:
    finding = Finding(FILE_UNREADABLE, Severity.ERROR, path, FILE_SPAN, f"Cannot read file: {reason}")
    return FileResult(path=path, summary=None, findings=(finding,))


def _crashed(path: str, error: BaseException) -> FileResult:
    message = f"Analysis crashed: {type(error).__name__}: {error}"
    return FileResult(path=path, summary=None, findings=(crash_finding(path, message),))


def analyze_task(path: str, text: TextSource, config: LintConfig,
                 cancel_token: Optional[CancellationToken] = None) -> Optional[FileResult]:
    """
    Analyse one file. Runs inside a worker.

    Returns None when cancelled before starting. Never raises for an
    unreadable file or an unexpected analysis failure.
    """
    if cancel_token is not None and cancel_token.is_set():
        return None
    try:
        source_text = load_text(path, text)
    except FileUnreadableError as e:
        logger.warning(f"Cannot read {path}: {e.reason}")
        return _unreadable(path, e.reason)
    try:
        return RuleEngine(config).analyze(path, source_text)
    except Exception as e:
        logger.warning(f"Analysis of {path} crashed: {type(e).__name__}: {e}")
        return _crashed(path, e)


def analyze_project(files: Iterable[Tuple[str, TextSource]],
                    config: Optional[LintConfig] = None, *,
                    workers: Optional[int] = None,
                    cancel_token: Optional[CancellationToken] = None,
                    use_processes: bool = False) -> DiagnosticsReport:
    """
    Analyse many files in parallel and merge the results deterministically.

    The report is identical for any worker count. When cancel_token is set
    mid-run, pending files are skipped, completed ones merged and the
    report marked cancelled.
    """
    config = config or resolve_config()
    files = [(str(path), text) for path, text in files]
    workers = workers or config.workers or default_workers()

    executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor
    # Events do not cross process boundaries; the coordinator cancels instead
    task_token = None if use_processes else cancel_token

    results: List[FileResult] = []
    logger.debug(f"Analysing {len(files)} files with {executor_cls.__name__}(max_workers={workers})")

    with executor_cls(max_workers=workers) as executor:
        pending = {
            executor.submit(analyze_task, path, text, config, task_token): path
            for path, text in files
        }
        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                path = pending.pop(future)
                if future.cancelled():
                    continue
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning(f"Worker for {path} failed: {type(e).__name__}: {e}")
                    result = _crashed(path, e)
                if result is not None:
                    results.append(result)
            if cancel_token is not None and cancel_token.is_set():
                for future in pending:
                    future.cancel()

    cancelled = cancel_token is not None and cancel_token.is_set()
    extra: List[Finding] = []
    if config.is_enabled("file_name"):
        extra = validate_file_names([path for path, _ in files], config.rule("file_name"))

    report = build_report(results, extra, config, cancelled=cancelled)
    logger.info(
        f"Analysed {report.files_analyzed}/{len(files)} files: {len(report.findings)} findings"
        + (" (cancelled)" if cancelled else "")
    )
    return report
