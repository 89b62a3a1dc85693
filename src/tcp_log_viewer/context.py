from __future__ import annotations

import logging
from typing import List, Optional

from PyQt5.QtCore import QObject, pyqtSignal

from .errors import ListenError
from .log_record import DisplayRecord, LogRecord
from .log_store import BoundedLogStore
from .pause_controller import PauseController
from .settings import SettingsStore, ViewerSettings, settings_key
from .tcp_listener import LogServer
from .tcp_log_utils import FilterSpec
from .timestamp_projector import TimestampProjector
from .view_sync import LogSink, ViewSynchronizer

logger = logging.getLogger(__name__)


class ViewerContext(QObject):
    """
    Everything the viewer needs, built once at startup and passed around.

    Wires the listener's record stream into the synchronizer and the
    settings change notifications into the store and projector.
    """

    listen_failed = pyqtSignal(str)

    def __init__(self, settings_store: SettingsStore, *, bind_ip: str = "0.0.0.0", parent=None) -> None:
        super().__init__(parent)
        self.settings_store = settings_store
        self.settings: ViewerSettings = settings_store.load()

        self.store = BoundedLogStore(self.settings.max_records)
        self.projector = TimestampProjector(self.settings.relative_timestamps, self.settings.timestamp_format)
        self.pause = PauseController()
        self.sync = ViewSynchronizer(
            self.store,
            self.projector,
            pause=self.pause,
            filters=settings_store.load_filters(),
            persistence=settings_store,
            export_limit=self.settings.export_limit,
        )
        self.sync.apply_appearance(self.settings.appearance())

        self.server = LogServer(bind_ip, parent=self)
        self.server.record_received.connect(self._on_record_received)

        settings_store.changed.connect(self._on_setting_changed)

    # ---------------- Ingestion ----------------

    def _on_record_received(self, record: LogRecord) -> None:
        self.sync.add_record(record)

    def start_listening(self, port: Optional[int] = None) -> bool:
        port = self.settings.port if port is None else port
        try:
            self.server.start(port)
        except ListenError as e:
            logger.error("%s", e)
            self.listen_failed.emit(str(e))
            return False
        return True

    def apply_listen_port(self, port: int) -> bool:
        """Persist `port`, drop every connection and listen again."""
        self.settings.port = int(port)
        self.settings_store.set_value(settings_key("port"), int(port))
        self.server.stop()
        return self.start_listening(port)

    def shutdown(self) -> None:
        self.server.stop()
        self.settings_store.save(self.settings)
        self.settings_store.sync()

    # ---------------- Settings ----------------

    def update_settings(self, new: ViewerSettings) -> None:
        """Store `new`; change notifications apply it to the running core."""
        self.settings = new
        self.settings_store.save(new)

    def _on_setting_changed(self, key: str) -> None:
        st = self.settings
        if key == settings_key("max_records"):
            self.store.set_max_records(st.max_records)
        elif key in (settings_key("relative_timestamps"), settings_key("timestamp_format")):
            self.sync.set_timestamp_options(st.relative_timestamps, st.timestamp_format)
        elif key == settings_key("export_limit"):
            self.sync.set_export_limit(st.export_limit)
        elif key in (
            settings_key("font_family"),
            settings_key("font_size"),
            settings_key("use_colors"),
            settings_key("show_grid_lines"),
        ):
            self.sync.apply_appearance(st.appearance())

    # ---------------- Control surface ----------------

    def attach_view(self, sink: LogSink) -> None:
        self.sync.attach_sink(sink)

    def clear_logs(self) -> None:
        self.sync.clear_logs()

    def clear_view(self) -> None:
        self.sync.clear_view()

    def toggle_pause(self) -> bool:
        return self.sync.toggle_pause()

    def toggle_filter_bar(self) -> None:
        self.settings.filter_bar_visible = not self.settings.filter_bar_visible
        self.settings_store.set_value(settings_key("filter_bar_visible"), self.settings.filter_bar_visible)
        self.sync.toggle_filter_bar()

    def set_filters(
        self,
        severity: Optional[str] = None,
        category: Optional[str] = None,
        message: Optional[str] = None,
    ) -> FilterSpec:
        return self.sync.set_filters(severity, category, message)

    def get_displayed_records(self) -> List[DisplayRecord]:
        return self.sync.get_displayed_records()

    def is_paused(self) -> bool:
        return self.sync.is_paused()

    def export_as_text(self, limit: Optional[int] = None) -> str:
        return self.sync.export_as_text(limit)
