from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .errors import DecodeError

# Lowest to highest urgency; used by ">Level" threshold filters.
SEVERITY_ORDER: Tuple[str, ...] = (
    "VeryVerbose",
    "Verbose",
    "Log",
    "Display",
    "Warning",
    "Error",
    "Fatal",
)

INTERNAL_CATEGORY = "LogViewerInternal"

# wire key -> attribute
_REQUIRED_FIELDS = (
    ("date", "timestamp"),
    ("level", "severity"),
    ("category", "category"),
    ("message", "message"),
)


def severity_rank(severity: str) -> Optional[int]:
    """Position of `severity` in SEVERITY_ORDER (case-insensitive), or None if unknown."""
    key = (severity or "").strip().casefold()
    for i, name in enumerate(SEVERITY_ORDER):
        if name.casefold() == key:
            return i
    return None


@dataclass(frozen=True)
class LogRecord:
    timestamp: str
    severity: str
    category: str
    message: str
    source: Optional[str] = None

    @staticmethod
    def from_json(obj: Any) -> "LogRecord":
        """
        Build a record from a decoded JSON object.

        Raises DecodeError when `obj` is not an object, a required field is
        missing or not a string, or `source` has a non-string value.
        """
        if not isinstance(obj, dict):
            raise DecodeError(f"expected a JSON object, got {type(obj).__name__}")

        values: Dict[str, str] = {}
        for key, attr in _REQUIRED_FIELDS:
            if key not in obj:
                raise DecodeError(f"missing required field '{key}'")
            val = obj[key]
            if not isinstance(val, str):
                raise DecodeError(f"field '{key}' must be a string, got {type(val).__name__}")
            values[attr] = val

        source = obj.get("source")
        if source is not None and not isinstance(source, str):
            raise DecodeError(f"field 'source' must be a string, got {type(source).__name__}")

        return LogRecord(source=source or None, **values)

    def to_json(self) -> Dict[str, str]:
        out = {
            "date": self.timestamp,
            "level": self.severity,
            "category": self.category,
            "message": self.message,
        }
        if self.source:
            out["source"] = self.source
        return out

    def to_text(self) -> str:
        return f"{self.timestamp} [{self.severity}] [{self.category}] {self.message}"


@dataclass(frozen=True)
class DisplayRecord:
    """A LogRecord whose timestamp has been projected for display."""

    timestamp: str
    severity: str
    category: str
    message: str
    source: Optional[str] = None

    @staticmethod
    def from_record(record: LogRecord, rendered_timestamp: str) -> "DisplayRecord":
        return DisplayRecord(
            timestamp=rendered_timestamp,
            severity=record.severity,
            category=record.category,
            message=record.message,
            source=record.source,
        )


def make_eviction_notice(evicted_count: int, capacity: int, now: Optional[datetime] = None) -> LogRecord:
    # Local wall-clock ISO string without zone marker, so it renders as local time.
    now = now or datetime.now()
    return LogRecord(
        timestamp=now.isoformat(timespec="milliseconds"),
        severity="Warning",
        category=INTERNAL_CATEGORY,
        message=f"Evicted {evicted_count} oldest log record(s) to stay within the limit of {capacity}.",
    )
