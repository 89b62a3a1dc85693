from __future__ import annotations

from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple, TypeVar

from .log_record import LogRecord, severity_rank

T = TypeVar("T")


def drain_queue(q: Deque[T], max_items: int) -> List[T]:
    out: List[T] = []
    for _ in range(max_items):
        if not q:
            break
        out.append(q.popleft())
    return out


# ---------- Filter spec ----------

@dataclass(frozen=True)
class FilterSpec:
    severity_filter: str = ""
    category_filter: str = ""
    message_filter: str = ""

    def is_empty(self) -> bool:
        return not (
            self.severity_filter.strip() or self.category_filter.strip() or self.message_filter.strip()
        )

    def updated(
        self,
        severity: Optional[str] = None,
        category: Optional[str] = None,
        message: Optional[str] = None,
    ) -> "FilterSpec":
        """Copy with the given fields replaced (trimmed); None keeps the current value."""
        return FilterSpec(
            severity_filter=self.severity_filter if severity is None else severity.strip(),
            category_filter=self.category_filter if category is None else category.strip(),
            message_filter=self.message_filter if message is None else message.strip(),
        )


# ---------- Filter helpers ----------

def _parse_tokens(text: str) -> List[str]:
    return [t.strip() for t in (text or "").split(",") if t.strip()]


def split_terms(text: str) -> Tuple[List[str], List[str]]:
    """
    Split a filter string into (exclusions, inclusions), both case-folded.

    "!" terms are exclusions with the "!" stripped; a bare "!" is dropped.
    """
    excludes: List[str] = []
    includes: List[str] = []
    for t in _parse_tokens(text):
        if t.startswith("!"):
            t = t[1:].strip()
            if t:
                excludes.append(t.casefold())
        else:
            includes.append(t.casefold())
    return excludes, includes


def match_include(value: str, includes: List[str]) -> bool:
    # OR logic; no terms means no constraint
    if not includes:
        return True
    return any(t in value for t in includes)


def match_exclude(value: str, excludes: List[str]) -> bool:
    # OR logic
    return any(t in value for t in excludes)


def _substring_field_passes(value: str, text: str) -> bool:
    if not text.strip():
        return True
    excludes, includes = split_terms(text)
    folded = (value or "").casefold()
    if match_exclude(folded, excludes):
        return False
    return match_include(folded, includes)


def _severity_term_matches(severity: str, term: str) -> bool:
    if term.startswith(">"):
        target = severity_rank(term[1:])
        actual = severity_rank(severity)
        if target is None or actual is None:
            return False
        return actual >= target
    return severity == term


def _severity_field_passes(severity: str, text: str) -> bool:
    if not text.strip():
        return True
    excludes, includes = split_terms(text)
    folded = (severity or "").strip().casefold()
    if folded in excludes:
        return False
    if not includes:
        return True
    return any(_severity_term_matches(folded, t) for t in includes)


def passes(record: LogRecord, spec: FilterSpec) -> bool:
    """True if `record` satisfies all three fields of `spec`."""
    return (
        _severity_field_passes(record.severity, spec.severity_filter)
        and _substring_field_passes(record.category, spec.category_filter)
        and _substring_field_passes(record.message, spec.message_filter)
    )


def filter_records(records: List[LogRecord], spec: FilterSpec) -> List[LogRecord]:
    if spec.is_empty():
        return list(records)
    return [r for r in records if passes(r, spec)]
