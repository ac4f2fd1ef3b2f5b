"""Pod log request options and their validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from workloadlens.errors import InvalidInputError

# Go duration syntax: one or more <number><unit> terms, e.g. "1h30m", "2.5s", "500ms".
_DURATION_RE = re.compile(r"(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+")
_DURATION_TERM_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


@dataclass(frozen=True)
class LogOptions:
    """A validated log request.

    ``duration`` makes the request bounded: the window is emulated
    client-side and ``tail_lines`` is applied after it.
    """

    container: str | None = None
    since_time: datetime | None = None
    duration: timedelta | None = None
    tail_lines: int | None = None

    @property
    def is_bounded(self) -> bool:
        return self.duration is not None


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration string ("0" is accepted, signs are not)."""
    text = text.strip()
    if text == "0":
        return timedelta(0)
    if not _DURATION_RE.fullmatch(text):
        raise InvalidInputError(f"invalid duration {text!r}")
    seconds = sum(float(number) * _UNIT_SECONDS[unit] for number, unit in _DURATION_TERM_RE.findall(text))
    return timedelta(seconds=seconds)


def build_log_options(
    container: str | None = None,
    duration: str | None = None,
    since_time: str | int | None = None,
    tail_lines: str | int | None = None,
) -> LogOptions:
    """Validate raw request values into :class:`LogOptions`.

    Args:
        container: Container name; empty means the pod's default container.
        duration: Go duration string bounding the window.
        since_time: Window start as Unix seconds.
        tail_lines: Keep only the last N lines; values <= 0 are ignored.

    Raises:
        InvalidInputError: on an unparseable duration, start or line count.
    """
    parsed_duration = parse_duration(duration) if duration else None

    parsed_since: datetime | None = None
    if since_time not in (None, ""):
        try:
            parsed_since = datetime.fromtimestamp(int(since_time), tz=UTC)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError, OSError) as err:
            raise InvalidInputError(f"invalid sinceTime {since_time!r}") from err

    parsed_tail: int | None = None
    if tail_lines not in (None, ""):
        try:
            count = int(tail_lines)  # type: ignore[arg-type]
        except (TypeError, ValueError) as err:
            raise InvalidInputError(f"invalid tailLines {tail_lines!r}") from err
        if count > 0:
            parsed_tail = count

    return LogOptions(
        container=container or None,
        since_time=parsed_since,
        duration=parsed_duration,
        tail_lines=parsed_tail,
    )
