from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .log_record import LogRecord

MIN_MAX_RECORDS = 100
DEFAULT_MAX_RECORDS = 10000
EVICT_FRACTION = 0.1


def clamp_max_records(value: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = DEFAULT_MAX_RECORDS
    return max(MIN_MAX_RECORDS, n)


@dataclass(frozen=True)
class EvictionInfo:
    evicted: bool
    evicted_count: int
    capacity: int
    evicted_records: List[LogRecord] = field(default_factory=list)


class BoundedLogStore:
    """
    Canonical, arrival-ordered record list with a hard capacity.

    When an insertion would exceed the capacity, the oldest
    max(1, floor(capacity * 0.1)) records are dropped first. If the
    capacity was lowered below the current count, enough extra records are
    dropped so the bound holds again after the insertion.

    Synthesizing the eviction notice is the caller's job.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._records: List[LogRecord] = []
        self._max_records = clamp_max_records(max_records)

    @property
    def max_records(self) -> int:
        return self._max_records

    def set_max_records(self, value: int) -> None:
        # No retroactive eviction; a shrink applies on the next insertion.
        self._max_records = clamp_max_records(value)

    def eviction_chunk(self) -> int:
        return max(1, int(self._max_records * EVICT_FRACTION))

    def add_record(self, record: LogRecord) -> EvictionInfo:
        evicted: List[LogRecord] = []

        if len(self._records) + 1 > self._max_records:
            n = max(self.eviction_chunk(), len(self._records) + 1 - self._max_records)
            evicted = self._records[:n]
            del self._records[:n]

        self._records.append(record)

        return EvictionInfo(
            evicted=bool(evicted),
            evicted_count=len(evicted),
            capacity=self._max_records,
            evicted_records=evicted,
        )

    def get_all(self) -> List[LogRecord]:
        return list(self._records)

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records = []
