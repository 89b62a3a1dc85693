from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Optional

from PyQt5.QtCore import QTimer, pyqtSignal
from PyQt5.QtGui import QColor, QFont
from PyQt5.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from .log_record import DisplayRecord
from .tcp_log_utils import drain_queue
from .view_sync import (
    AppendRecord,
    RemoveOldest,
    ReportRows,
    SetAllRecords,
    SinkInstruction,
    ToggleFilterBar,
    UpdateAppearance,
    UpdateCounts,
    UpdateFilterInputs,
    UpdatePauseState,
)

FLUSH_INTERVAL_MS = 50
INSTRUCTIONS_PER_FLUSH = 300
FILTER_DEBOUNCE_MS = 250
SOURCE_DISPLAY_CHARS = 3

COLUMNS = ("Time", "Src", "Level", "Category", "Message")

# Minimal palette, keyed by case-folded severity
_SEVERITY_COLORS: Dict[str, QColor] = {
    "fatal": QColor("#e74c3c"),
    "error": QColor("#e74c3c"),
    "warning": QColor("#f39c12"),
    "display": QColor("#3498db"),
    "verbose": QColor("#95a5a6"),
    "veryverbose": QColor("#95a5a6"),
}


def _color_for_severity(severity: str) -> Optional[QColor]:
    return _SEVERITY_COLORS.get((severity or "").strip().casefold())


class LogTableWidget(QWidget):
    """
    Rendering sink: filter bar + log table + counts line.

    Instructions posted by the synchronizer are queued and applied in order
    on a short timer, so bursts of appends are batched into one repaint.
    User actions are reported back through signals; nothing here decides
    what is visible.
    """

    filters_edited = pyqtSignal(str, str, str)
    clear_requested = pyqtSignal()
    pause_requested = pyqtSignal()
    counts_changed = pyqtSignal(int, int)
    rows_reported = pyqtSignal(int, object)  # request id, List[DisplayRecord]

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)

        self._rows: List[DisplayRecord] = []
        self._pending: Deque[SinkInstruction] = deque()
        self._use_colors = True
        self._shown = 0
        self._total = 0
        self._paused = False

        self._flush_timer = QTimer(self)
        self._flush_timer.setInterval(FLUSH_INTERVAL_MS)
        self._flush_timer.timeout.connect(self.flush)
        self._flush_timer.start()

        self._filter_timer = QTimer(self)
        self._filter_timer.setSingleShot(True)
        self._filter_timer.setInterval(FILTER_DEBOUNCE_MS)
        self._filter_timer.timeout.connect(self._emit_filters)

        self._build_ui()

    # ---------------- UI ----------------

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        # --- Filter bar ---
        self.filter_bar = QWidget(self)
        fb = QHBoxLayout(self.filter_bar)
        fb.setContentsMargins(0, 0, 0, 0)
        fb.setSpacing(8)

        self.ed_severity = QLineEdit()
        self.ed_severity.setPlaceholderText("Level, e.g. >Warning or !Verbose")
        self.ed_category = QLineEdit()
        self.ed_category.setPlaceholderText("Category, e.g. LogNet, !LogTemp")
        self.ed_message = QLineEdit()
        self.ed_message.setPlaceholderText("Message text")

        for ed in (self.ed_severity, self.ed_category, self.ed_message):
            ed.setClearButtonEnabled(True)
            ed.textEdited.connect(self._on_filter_text_edited)
            ed.returnPressed.connect(self._emit_filters)

        self.btn_pause = QToolButton()
        self.btn_pause.setText("PAUSE")
        self.btn_pause.clicked.connect(self.pause_requested)

        self.btn_clear = QPushButton("CLEAR")
        self.btn_clear.setToolTip("Clear the view (filters are kept)")
        self.btn_clear.clicked.connect(self.clear_requested)

        fb.addWidget(QLabel("Level:"))
        fb.addWidget(self.ed_severity, 1)
        fb.addWidget(QLabel("Category:"))
        fb.addWidget(self.ed_category, 2)
        fb.addWidget(QLabel("Message:"))
        fb.addWidget(self.ed_message, 3)
        fb.addWidget(self.btn_pause)
        fb.addWidget(self.btn_clear)

        layout.addWidget(self.filter_bar)

        # --- Table ---
        self.table = QTableWidget(0, len(COLUMNS), self)
        self.table.setHorizontalHeaderLabels(list(COLUMNS))
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setShowGrid(False)
        self.table.setWordWrap(False)
        self.table.verticalHeader().setVisible(False)
        self.table.verticalHeader().setDefaultSectionSize(20)
        header = self.table.horizontalHeader()
        header.setSectionResizeMode(QHeaderView.Interactive)
        header.setStretchLastSection(True)
        self.table.setColumnWidth(0, 110)
        self.table.setColumnWidth(1, 40)
        self.table.setColumnWidth(2, 80)
        self.table.setColumnWidth(3, 160)

        layout.addWidget(self.table, 1)

        self.lbl_counts = QLabel("Shown: 0 / Total: 0")
        self.lbl_counts.setStyleSheet("color: #777777;")
        layout.addWidget(self.lbl_counts)

    # ---------------- Sink protocol ----------------

    def post(self, instruction: SinkInstruction) -> None:
        self._pending.append(instruction)

    def flush(self) -> None:
        if not self._pending:
            return
        batch = drain_queue(self._pending, INSTRUCTIONS_PER_FLUSH)
        if not batch:
            return

        sb = self.table.verticalScrollBar()
        at_bottom = sb.value() >= sb.maximum()

        for ins in batch:
            self._apply(ins)

        if at_bottom:
            self.table.scrollToBottom()

    def flush_all(self) -> None:
        while self._pending:
            self.flush()

    def _apply(self, ins: SinkInstruction) -> None:
        if isinstance(ins, AppendRecord):
            self._append_row(ins.record)
        elif isinstance(ins, SetAllRecords):
            self._set_rows(list(ins.records))
        elif isinstance(ins, RemoveOldest):
            self._remove_oldest(ins.count)
        elif isinstance(ins, UpdateCounts):
            self._shown, self._total = ins.shown, ins.total
            self.lbl_counts.setText(f"Shown: {ins.shown} / Total: {ins.total}")
            self.counts_changed.emit(ins.shown, ins.total)
        elif isinstance(ins, UpdateFilterInputs):
            self._set_filter_inputs(ins)
        elif isinstance(ins, UpdatePauseState):
            self._set_paused(ins.paused)
        elif isinstance(ins, UpdateAppearance):
            self._set_appearance(ins)
        elif isinstance(ins, ToggleFilterBar):
            self.filter_bar.setVisible(self.filter_bar.isHidden())
        elif isinstance(ins, ReportRows):
            self.rows_reported.emit(ins.request_id, list(self._rows))

    # ---------------- Rows ----------------

    def rows(self) -> List[DisplayRecord]:
        return list(self._rows)

    def counts(self):
        return self._shown, self._total

    def _make_items(self, rec: DisplayRecord) -> List[QTableWidgetItem]:
        source = (rec.source or "")[:SOURCE_DISPLAY_CHARS]
        items = [
            QTableWidgetItem(rec.timestamp),
            QTableWidgetItem(source),
            QTableWidgetItem(rec.severity),
            QTableWidgetItem(rec.category),
            QTableWidgetItem(rec.message),
        ]
        items[1].setToolTip(rec.source or "")
        items[4].setToolTip(rec.message)
        if self._use_colors:
            col = _color_for_severity(rec.severity)
            if col is not None:
                for it in items:
                    it.setForeground(col)
        return items

    def _append_row(self, rec: DisplayRecord) -> None:
        row = self.table.rowCount()
        self.table.insertRow(row)
        for c, it in enumerate(self._make_items(rec)):
            self.table.setItem(row, c, it)
        self._rows.append(rec)

    def _set_rows(self, records: List[DisplayRecord]) -> None:
        self.table.setUpdatesEnabled(False)
        try:
            self.table.setRowCount(0)
            self.table.setRowCount(len(records))
            for r, rec in enumerate(records):
                for c, it in enumerate(self._make_items(rec)):
                    self.table.setItem(r, c, it)
        finally:
            self.table.setUpdatesEnabled(True)
        self._rows = records

    def _remove_oldest(self, count: int) -> None:
        n = min(max(0, count), len(self._rows))
        if n <= 0:
            return
        self.table.setUpdatesEnabled(False)
        try:
            for _ in range(n):
                self.table.removeRow(0)
        finally:
            self.table.setUpdatesEnabled(True)
        del self._rows[:n]

    # ---------------- Passthrough ----------------

    def _set_filter_inputs(self, ins: UpdateFilterInputs) -> None:
        for ed, text in (
            (self.ed_severity, ins.severity_filter),
            (self.ed_category, ins.category_filter),
            (self.ed_message, ins.message_filter),
        ):
            if ed.text() != text:
                ed.blockSignals(True)
                ed.setText(text)
                ed.blockSignals(False)

    def _set_paused(self, paused: bool) -> None:
        self._paused = paused
        if paused:
            self.btn_pause.setText("RESUME")
            self.btn_pause.setStyleSheet("QToolButton { background-color: #e74c3c; font-weight: bold; }")
        else:
            self.btn_pause.setText("PAUSE")
            self.btn_pause.setStyleSheet("QToolButton { background-color: #2ecc71; font-weight: bold; }")

    def _set_appearance(self, ins: UpdateAppearance) -> None:
        font = QFont(self.table.font())
        if ins.font_family:
            font.setFamily(ins.font_family)
        if ins.font_size > 0:
            font.setPointSize(ins.font_size)
        self.table.setFont(font)
        self.table.setShowGrid(bool(ins.show_grid_lines))

        if bool(ins.use_colors) != self._use_colors:
            self._use_colors = bool(ins.use_colors)
            self._set_rows(list(self._rows))

    # ---------------- Filter inputs ----------------

    def _on_filter_text_edited(self, _text: str) -> None:
        self._filter_timer.start()

    def _emit_filters(self) -> None:
        self._filter_timer.stop()
        self.filters_edited.emit(
            self.ed_severity.text(),
            self.ed_category.text(),
            self.ed_message.text(),
        )

    def set_filter_bar_visible(self, visible: bool) -> None:
        self.filter_bar.setVisible(visible)
