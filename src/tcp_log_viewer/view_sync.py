from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple, Union

from .log_record import DisplayRecord, LogRecord, make_eviction_notice
from .log_store import BoundedLogStore
from .pause_controller import PauseController
from .tcp_log_utils import FilterSpec, filter_records, passes
from .timestamp_projector import TimestampProjector

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_LIMIT = 1000
MIN_EXPORT_LIMIT = 100
MAX_EXPORT_LIMIT = 10000


# ---------------- Sink protocol ----------------

@dataclass(frozen=True)
class SetAllRecords:
    records: Tuple[DisplayRecord, ...]


@dataclass(frozen=True)
class AppendRecord:
    record: DisplayRecord


@dataclass(frozen=True)
class RemoveOldest:
    count: int


@dataclass(frozen=True)
class UpdateCounts:
    shown: int
    total: int


@dataclass(frozen=True)
class UpdateFilterInputs:
    severity_filter: str
    category_filter: str
    message_filter: str


@dataclass(frozen=True)
class UpdatePauseState:
    paused: bool


@dataclass(frozen=True)
class UpdateAppearance:
    font_family: str = ""
    font_size: int = 0
    use_colors: bool = True
    show_grid_lines: bool = False


@dataclass(frozen=True)
class ToggleFilterBar:
    pass


@dataclass(frozen=True)
class ReportRows:
    """Inspection request; the sink answers with the rows it currently shows."""

    request_id: int


SinkInstruction = Union[
    SetAllRecords,
    AppendRecord,
    RemoveOldest,
    UpdateCounts,
    UpdateFilterInputs,
    UpdatePauseState,
    UpdateAppearance,
    ToggleFilterBar,
    ReportRows,
]


class LogSink(Protocol):
    def post(self, instruction: SinkInstruction) -> None:
        ...


class FilterPersistence(Protocol):
    def save_filters(self, spec: FilterSpec) -> None:
        ...


@dataclass
class RecordingSink:
    """Sink that only remembers what it was told. Used headless and in tests."""

    instructions: List[SinkInstruction] = field(default_factory=list)

    def post(self, instruction: SinkInstruction) -> None:
        self.instructions.append(instruction)

    def of_type(self, kind: type) -> List[SinkInstruction]:
        return [i for i in self.instructions if isinstance(i, kind)]

    def clear(self) -> None:
        self.instructions.clear()


# ---------------- Synchronizer ----------------

class ViewSynchronizer:
    """
    Decides what the sink shows after every store mutation or control event.

    Emits the smallest update that keeps the sink in step: a full replace,
    a single append, or a removal of the oldest rows, followed by the
    shown/total counts.
    """

    def __init__(
        self,
        store: BoundedLogStore,
        projector: TimestampProjector,
        *,
        pause: Optional[PauseController] = None,
        filters: Optional[FilterSpec] = None,
        persistence: Optional[FilterPersistence] = None,
        export_limit: int = DEFAULT_EXPORT_LIMIT,
    ) -> None:
        self._store = store
        self._projector = projector
        self._pause = pause or PauseController()
        self._filters = filters or FilterSpec()
        self._persistence = persistence
        self._export_limit = clamp_export_limit(export_limit)
        self._sink: Optional[LogSink] = None
        self._appearance = UpdateAppearance()

    # ---------------- Accessors ----------------

    @property
    def store(self) -> BoundedLogStore:
        return self._store

    @property
    def projector(self) -> TimestampProjector:
        return self._projector

    @property
    def sink(self) -> Optional[LogSink]:
        return self._sink

    def filters(self) -> FilterSpec:
        return self._filters

    def is_paused(self) -> bool:
        return self._pause.is_paused

    def counts(self) -> Tuple[int, int]:
        total = self._store.count()
        frozen = self._pause.shown_count()
        if frozen is not None:
            return frozen, total
        return len(filter_records(self._store.get_all(), self._filters)), total

    # ---------------- Sink wiring ----------------

    def attach_sink(self, sink: LogSink) -> None:
        """Bring a newly created view up to date."""
        self._sink = sink
        f = self._filters
        self._post(UpdateFilterInputs(f.severity_filter, f.category_filter, f.message_filter))
        self._post(self._appearance)
        self._post(UpdatePauseState(self._pause.is_paused))
        if self._pause.is_paused:
            self._post(SetAllRecords(tuple(self._pause.displayed_records())))
        else:
            self._post(SetAllRecords(tuple(self._render_visible())))
        self._post_counts()

    def detach_sink(self) -> None:
        self._sink = None

    def _post(self, instruction: SinkInstruction) -> None:
        if self._sink is not None:
            self._sink.post(instruction)

    def _post_counts(self) -> None:
        shown, total = self.counts()
        self._post(UpdateCounts(shown, total))

    # ---------------- Rendering ----------------

    def _render(self, record: LogRecord) -> DisplayRecord:
        return DisplayRecord.from_record(record, self._projector.render(record.timestamp))

    def _render_visible(self) -> List[DisplayRecord]:
        return [self._render(r) for r in filter_records(self._store.get_all(), self._filters)]

    def _push_full_view(self) -> None:
        self._post(SetAllRecords(tuple(self._render_visible())))

    def get_displayed_records(self) -> List[DisplayRecord]:
        """What the view shows right now: the frozen snapshot while paused."""
        if self._pause.is_paused:
            return self._pause.displayed_records()
        return self._render_visible()

    # ---------------- Events ----------------

    def add_record(self, record: LogRecord) -> None:
        info = self._store.add_record(record)

        notice: Optional[LogRecord] = None
        if info.evicted:
            notice = make_eviction_notice(info.evicted_count, info.capacity)
            self._store.add_record(notice)
            logger.info("Evicted %d record(s), capacity %d", info.evicted_count, info.capacity)

        if self._sink is None:
            return

        if self._pause.is_paused:
            self._post_counts()
            return

        if info.evicted:
            visible_evicted = sum(1 for r in info.evicted_records if passes(r, self._filters))
            if visible_evicted > 0:
                self._post(RemoveOldest(visible_evicted))

        if notice is not None and passes(notice, self._filters):
            self._post(AppendRecord(self._render(notice)))
        if passes(record, self._filters):
            self._post(AppendRecord(self._render(record)))

        self._post_counts()

    def set_filters(
        self,
        severity: Optional[str] = None,
        category: Optional[str] = None,
        message: Optional[str] = None,
    ) -> FilterSpec:
        """Partial update; fields left as None keep their value."""
        self._filters = self._filters.updated(severity, category, message)
        if self._persistence is not None:
            self._persistence.save_filters(self._filters)

        f = self._filters
        self._post(UpdateFilterInputs(f.severity_filter, f.category_filter, f.message_filter))

        # Filter edits are applied over the whole store even while paused.
        view = self._render_visible()
        self._pause.recapture(lambda: view)
        self._post(SetAllRecords(tuple(view)))
        self._post_counts()
        return self._filters

    def clear_view(self) -> None:
        """Display clear: empties the store but keeps the filters."""
        self._store.clear()
        self._projector.reset_epoch()
        self._pause.reset_for_view_clear()
        self._post(SetAllRecords(()))
        self._post_counts()

    def clear_logs(self) -> None:
        """Full clear: store, filters, epoch and pause snapshot."""
        self._store.clear()
        self._filters = FilterSpec()
        if self._persistence is not None:
            self._persistence.save_filters(self._filters)
        self._projector.reset_epoch()
        self._pause.reset_for_view_clear()
        self._post(UpdateFilterInputs("", "", ""))
        self._post(SetAllRecords(()))
        self._post_counts()

    def toggle_pause(self) -> bool:
        paused = self._pause.toggle(self._render_visible)
        self._post(UpdatePauseState(paused))
        if not paused:
            # catch up with everything ingested while paused
            self._push_full_view()
        self._post_counts()
        return paused

    def toggle_filter_bar(self) -> None:
        self._post(ToggleFilterBar())

    def refresh(self) -> None:
        """Re-render the live view, e.g. after timestamp options changed."""
        if self._pause.is_paused:
            return
        self._push_full_view()
        self._post_counts()

    def apply_appearance(self, appearance: UpdateAppearance) -> None:
        self._appearance = appearance
        self._post(appearance)

    def set_timestamp_options(self, relative: bool, timestamp_format: str) -> None:
        if relative == self._projector.relative and timestamp_format == self._projector.timestamp_format:
            return
        self._projector.update_options(relative, timestamp_format)
        self.refresh()

    def set_export_limit(self, limit: int) -> None:
        self._export_limit = clamp_export_limit(limit)

    # ---------------- Export ----------------

    def export_as_text(self, limit: Optional[int] = None) -> str:
        """Most recent `limit` filtered records, one per line, raw timestamps."""
        n = self._export_limit if limit is None else max(0, int(limit))
        visible = filter_records(self._store.get_all(), self._filters)
        tail = visible[-n:] if n else []
        return "\n".join(r.to_text() for r in tail)


def clamp_export_limit(value: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = DEFAULT_EXPORT_LIMIT
    return max(MIN_EXPORT_LIMIT, min(MAX_EXPORT_LIMIT, n))
