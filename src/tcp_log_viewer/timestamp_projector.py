from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Optional

DEFAULT_TIMESTAMP_FORMAT = "HH:mm:ss.SSS"

_TOKEN_RE = re.compile(r"YYYY|SSS|MM|DD|HH|mm|ss")


def parse_local(iso_timestamp: str) -> Optional[datetime]:
    """
    Parse an ISO-8601-like timestamp as local wall-clock time.

    A trailing "Z" is stripped and the remainder read as local time; this
    reinterprets UTC instants as local ones and is kept as-is on purpose.
    """
    text = (iso_timestamp or "").strip()
    if text.endswith("Z"):
        text = text[:-1]
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is not None:
        # Explicit offsets are converted to the local wall clock.
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def format_relative(ms: int) -> str:
    ms = max(0, int(ms))
    millis = ms % 1000
    total_seconds = ms // 1000
    seconds = total_seconds % 60
    total_minutes = total_seconds // 60
    minutes = total_minutes % 60
    hours = total_minutes // 60
    return f"+{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def format_absolute(dt: datetime, fmt: str = DEFAULT_TIMESTAMP_FORMAT) -> str:
    values = {
        "YYYY": f"{dt.year:04d}",
        "MM": f"{dt.month:02d}",
        "DD": f"{dt.day:02d}",
        "HH": f"{dt.hour:02d}",
        "mm": f"{dt.minute:02d}",
        "ss": f"{dt.second:02d}",
        "SSS": f"{dt.microsecond // 1000:03d}",
    }
    return _TOKEN_RE.sub(lambda m: values[m.group(0)], fmt or DEFAULT_TIMESTAMP_FORMAT)


class TimestampProjector:
    def __init__(
        self,
        relative: bool = False,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        reset_epoch: Optional[datetime] = None,
    ) -> None:
        self._relative = bool(relative)
        self._format = timestamp_format or DEFAULT_TIMESTAMP_FORMAT
        self._epoch = reset_epoch or datetime.now()

    @property
    def relative(self) -> bool:
        return self._relative

    @property
    def timestamp_format(self) -> str:
        return self._format

    @property
    def epoch(self) -> datetime:
        return self._epoch

    def update_options(self, relative: bool, timestamp_format: str) -> None:
        self._relative = bool(relative)
        self._format = timestamp_format or DEFAULT_TIMESTAMP_FORMAT

    def reset_epoch(self, now: Optional[datetime] = None) -> None:
        self._epoch = now or datetime.now()

    def render(self, iso_timestamp: str) -> str:
        dt = parse_local(iso_timestamp)
        if dt is None:
            return iso_timestamp
        if self._relative:
            delta = dt - self._epoch
            return format_relative(delta // timedelta(milliseconds=1))
        return format_absolute(dt, self._format)
