"""Bounded log window parser.

The pod log endpoint can start at a point in time or return the last N
lines, but not both together with an end time.  This module applies the
window (start + duration) and then the tail limit to timestamped raw log
text, producing severity-annotated entries.

Lines look like ``<RFC3339 timestamp> <message>``.  Unparseable lines are
logged at debug level and skipped; they never fail the request.
"""

from __future__ import annotations

import re
from datetime import datetime

from workloadlens.logs.options import LogOptions
from workloadlens.models.resources import LogEntry, PodLog
from workloadlens.observability.logging import get_logger
from workloadlens.observability.metrics import log_lines_skipped_total

_logger = get_logger("logs.window")

_SEVERITY_RE = re.compile(r"ERROR|WARN|DEBUG|TRACE", re.IGNORECASE)
_OFFSET_RE = re.compile(r"(?:Z|[+-]\d{2}:\d{2})$")
_RFC3339_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:Z|[+-]\d{2}:\d{2})")


def normalize_timestamp(raw: str) -> str:
    """Reduce an RFC3339(Nano) timestamp to whole seconds with an explicit offset.

    Fractional seconds are dropped and the result is marked UTC, as the
    cluster always emits UTC with a fraction.  A timestamp without any
    offset is marked UTC as well.
    """
    head, dot, _ = raw.partition(".")
    if dot:
        return f"{head}Z"
    if not _OFFSET_RE.search(raw):
        return f"{raw}Z"
    return raw


def parse_timestamp(value: str) -> datetime | None:
    if not _RFC3339_RE.fullmatch(value):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def severity_of(line: str) -> str:
    match = _SEVERITY_RE.search(line)
    return match.group(0).upper() if match else "INFO"


def _skip(reason: str, line: str) -> None:
    log_lines_skipped_total.labels(reason=reason).inc()
    _logger.debug("log_line_skipped", reason=reason, line=line[:200])


def parse_log_window(raw_text: str, options: LogOptions) -> PodLog:
    """Parse ``raw_text`` and apply the window and tail limit of ``options``.

    The window ends at the requested start (or, without one, the first
    parsed line) plus ``options.duration``; the end is inclusive and
    processing stops at the first later line.  Lines before a requested start
    are dropped.  The tail limit applies only to bounded requests, after
    windowing; unbounded requests already had it applied upstream.
    """
    entries: list[LogEntry] = []
    start = options.since_time
    end = start + options.duration if start is not None and options.duration is not None else None

    for line in raw_text.split("\n"):
        if not line.strip():
            continue
        raw_timestamp, sep, rest = line.partition(" ")
        if not sep:
            _skip("malformed", line)
            continue

        message = rest.strip()
        if not message:
            _skip("empty_message", line)
            continue

        timestamp = normalize_timestamp(raw_timestamp)
        parsed = parse_timestamp(timestamp)
        if parsed is None:
            _skip("bad_timestamp", line)
            continue

        if start is not None and parsed < start:
            continue

        if options.duration is not None:
            if end is None:
                end = parsed + options.duration
            if parsed > end:
                break

        entries.append(
            LogEntry(
                message=message,
                timestamp=timestamp,
                timestamp_unix=int(parsed.timestamp()),
                severity=severity_of(line),
            )
        )

    if options.is_bounded and options.tail_lines is not None and len(entries) > options.tail_lines:
        entries = entries[-options.tail_lines :]

    return PodLog(entries=entries)
