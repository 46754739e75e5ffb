"""
Logging utilities for vibe-groups.

Entrypoints call configure_logging() once at startup; library modules only
use logging.getLogger(__name__).
"""
import logging
import os
import re
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Optional, Union

_logging_configured = False
_run_id: Optional[str] = None
_HANDLER_TAG = "_vg_handler"
_CONSOLE_FMT = '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s'
_CONSOLE_FMT_WITH_RUN_ID = '%(asctime)s | %(levelname)-5s | %(name)s | run_id=%(run_id)s | %(message)s'
_FILE_FMT = '%(asctime)s | %(levelname)-5s | %(name)s | %(funcName)s:%(lineno)d | run_id=%(run_id)s | %(message)s'


class RunIdFilter(logging.Filter):
    """Inject run_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id or "-"
        return True


def set_run_id(run_id: Optional[str]) -> None:
    """Set the run_id attached to log records."""
    global _run_id
    _run_id = run_id


def configure_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    file_level: str = 'DEBUG',
    force: bool = False,
    run_id: Optional[str] = None,
    console: bool = True,
    show_run_id: bool = False,
) -> None:
    """
    Configure logging for the whole application.

    Subsequent calls are ignored unless force=True.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to a log file
        file_level: Log level for file output
        force: Reconfigure even if already configured
        run_id: Optional run identifier injected into log records
        console: Whether to add a console handler
        show_run_id: Include run_id in console lines

    Environment variable overrides:
        LOG_LEVEL: Overrides ``level``
        LOG_FILE: Used when ``log_file`` is not given
    """
    global _logging_configured

    if run_id:
        set_run_id(run_id)

    if _logging_configured and not force:
        return

    level = os.getenv('LOG_LEVEL', level).upper()
    if log_file is None:
        log_file = os.getenv('LOG_FILE')

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Only remove handlers this module installed
    for handler in root.handlers[:]:
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level, logging.INFO))
        fmt = _CONSOLE_FMT_WITH_RUN_ID if (show_run_id or level == 'DEBUG') else _CONSOLE_FMT
        console_handler.setFormatter(logging.Formatter(fmt, datefmt='%H:%M:%S'))
        console_handler.addFilter(RunIdFilter())
        setattr(console_handler, _HANDLER_TAG, True)
        root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(getattr(logging, file_level.upper(), logging.DEBUG))
        file_handler.setFormatter(logging.Formatter(_FILE_FMT, datefmt='%Y-%m-%d %H:%M:%S'))
        file_handler.addFilter(RunIdFilter())
        setattr(file_handler, _HANDLER_TAG, True)
        root.addHandler(file_handler)

    for noisy in ['urllib3', 'requests']:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _logging_configured = True
    logging.getLogger(__name__).debug(
        f"Logging configured: level={level}, file={log_file or 'none'}, run_id={_run_id or '-'}"
    )


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None):
    """
    Time a pipeline stage.

    Logs the start at DEBUG and the completion with elapsed time at INFO.
    The completion line is logged even when the stage raises.

    Usage:
        with stage_timer("Playlist ingestion", logger):
            tracks = ingestor.fetch_tracks(playlist_id)
    """
    logger = logger or logging.getLogger(__name__)
    logger.debug(f"{stage_name} starting...")
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(f"{stage_name} completed in {_human_time(time.perf_counter() - start, precise=True)}")


_REDACTION_PATTERNS = [
    (r'(Bearer\s+)[A-Za-z0-9._\-]+', r'\1***REDACTED***'),
    (r'(["\']?(?:api[_-]?key|access[_-]?token|refresh[_-]?token|token|secret)["\']?\s*[:=]\s*["\']?)([^"\'\s&,}]+)',
     r'\1***REDACTED***'),
]


def redact(value: Any, keys: Optional[List[str]] = None) -> str:
    """
    Scrub credentials from a value before it is logged.

    Args:
        value: Value to redact (string, URL, dict, ...)
        keys: Extra key names whose values should be hidden

    Usage:
        logger.debug(f"GET {redact(url)}")
    """
    if value is None:
        return "None"

    text = str(value)
    for pattern, replacement in _REDACTION_PATTERNS:
        text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)

    for key in keys or []:
        text = re.sub(
            rf'(["\']?{re.escape(key)}["\']?\s*[:=]\s*["\']?)([^"\'\s&,}}]+)',
            r'\1***REDACTED***',
            text,
            flags=re.IGNORECASE,
        )
    return text


def format_count(n: int, singular: str, plural: Optional[str] = None) -> str:
    """Format a count like "1 track" or "5 tracks"."""
    if plural is None:
        plural = singular + 's'
    return f"{n:,} {singular if n == 1 else plural}"


def _human_time(seconds: float, precise: bool = False) -> str:
    """Render a human-friendly duration."""
    seconds = max(0.0, seconds)
    if precise and seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s" if precise else f"{int(seconds)}s"
    minutes, sec = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m{sec:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m"


class ProgressLogger:
    """
    Emit periodic progress lines for a long loop.

    A summary is logged every ``interval_s`` seconds or every ``every_n``
    items, whichever comes first, and once more when the loop finishes.
    Per-item details go to DEBUG.
    """

    def __init__(
        self,
        logger: logging.Logger,
        total: Optional[int],
        label: str,
        unit: str = "items",
        interval_s: float = 15.0,
        every_n: int = 25,
    ) -> None:
        self.logger = logger
        self.total = total if total and total > 0 else None
        self.label = label
        self.unit = unit
        self.interval_s = interval_s
        self.every_n = every_n
        self.start_time = time.perf_counter()
        self.last_log_time = self.start_time
        self.last_count = 0
        self.processed = 0

    def _should_emit(self) -> bool:
        now = time.perf_counter()
        if (now - self.last_log_time) >= self.interval_s:
            return True
        if (self.processed - self.last_count) >= self.every_n:
            return True
        return bool(self.total and self.processed >= self.total)

    @property
    def percent(self) -> Optional[float]:
        if not self.total:
            return None
        return min(100.0, self.processed / self.total * 100)

    def _progress_msg(self) -> str:
        elapsed = time.perf_counter() - self.start_time
        rate = self.processed / elapsed if elapsed > 0 else 0.0
        msg = f"{self.label}: {self.processed:,}"
        if self.total:
            msg += f"/{self.total:,} ({self.percent:.1f}%)"
            if rate > 0:
                msg += f" | ETA {_human_time((self.total - self.processed) / rate)}"
        return msg + f" | {rate:.1f} {self.unit}/s"

    def update(self, n: int = 1, detail: Optional[str] = None) -> None:
        self.processed += n
        if detail:
            self.logger.debug(f"{self.label} item {self.processed}: {detail}")
        if self._should_emit():
            self.logger.info(self._progress_msg())
            self.last_log_time = time.perf_counter()
            self.last_count = self.processed

    def finish(self) -> None:
        elapsed = time.perf_counter() - self.start_time
        self.logger.info(
            f"{self.label} complete: {format_count(self.processed, self.unit.rstrip('s'))} "
            f"in {_human_time(elapsed, precise=True)}"
        )


def add_logging_args(parser) -> None:
    """
    Add the standard logging flags to an argparse parser.

    Usage:
        parser = argparse.ArgumentParser()
        add_logging_args(parser)
        args = parser.parse_args()
        configure_logging(level=resolve_log_level(args), log_file=args.log_file)
    """
    group = parser.add_argument_group('logging')
    group.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Set logging level (default: from config, else INFO)'
    )
    group.add_argument('--debug', action='store_true', help='Shortcut for --log-level DEBUG')
    group.add_argument('--quiet', action='store_true', help='Shortcut for --log-level WARNING')
    group.add_argument('--log-file', type=str, metavar='PATH', help='Write logs to file')


def resolve_log_level(args, default: str = 'INFO') -> str:
    """
    Resolve the log level from parsed arguments.

    Priority: --debug > --quiet > --log-level > default
    """
    if getattr(args, 'debug', False):
        return 'DEBUG'
    if getattr(args, 'quiet', False):
        return 'WARNING'
    return getattr(args, 'log_level', None) or default


class RunSummary:
    """
    Collect metrics during a run and log them at the end.

    Usage:
        summary = RunSummary("Vibe analysis", logger)
        summary.add("tracks", 150)
        summary.increment("untagged_tracks")
        summary.log()
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: dict = {}
        self.start_time = time.perf_counter()

    def add(self, key: str, value: Union[int, float, str]) -> None:
        self.metrics[key] = value

    def increment(self, key: str, amount: int = 1) -> None:
        self.metrics[key] = self.metrics.get(key, 0) + amount

    def log(self, level: int = logging.INFO) -> None:
        elapsed = time.perf_counter() - self.start_time
        self.logger.log(level, "=" * 60)
        self.logger.log(level, f"{self.title.upper()} SUMMARY")
        for key, value in self.metrics.items():
            display_key = key.replace('_', ' ').title()
            if isinstance(value, float):
                self.logger.log(level, f"  {display_key}: {value:.2f}")
            else:
                self.logger.log(level, f"  {display_key}: {value}")
        self.logger.log(level, f"  Total Time: {_human_time(elapsed, precise=True)}")
        self.logger.log(level, "=" * 60)
