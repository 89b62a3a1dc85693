from __future__ import annotations

import itertools
from typing import List, Optional

from PyQt5.QtCore import QEventLoop, QTimer

from .errors import SinkTimeoutError
from .log_record import DisplayRecord
from .view_sync import ReportRows

DEFAULT_TIMEOUT_MS = 2000

_request_ids = itertools.count(1)


class SinkProbe:
    """
    Round-trip inspection of a rendering sink.

    Posts a ReportRows request behind every instruction already queued and
    waits (running a local event loop) for the sink's `rows_reported`
    answer. Raises SinkTimeoutError instead of hanging when none arrives.
    Ingestion and store state are not touched.
    """

    def __init__(self, sink) -> None:
        self._sink = sink

    def fetch_rows(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> List[DisplayRecord]:
        request_id = next(_request_ids)
        result: List[Optional[List[DisplayRecord]]] = [None]

        loop = QEventLoop()
        timer = QTimer()
        timer.setSingleShot(True)
        timer.timeout.connect(loop.quit)

        def on_reported(rid: int, rows) -> None:
            if rid != request_id:
                return
            result[0] = list(rows)
            loop.quit()

        self._sink.rows_reported.connect(on_reported)
        try:
            self._sink.post(ReportRows(request_id))
            timer.start(max(1, int(timeout_ms)))
            if result[0] is None:
                loop.exec_()
        finally:
            timer.stop()
            self._sink.rows_reported.disconnect(on_reported)

        if result[0] is None:
            raise SinkTimeoutError(timeout_ms)
        return result[0]
