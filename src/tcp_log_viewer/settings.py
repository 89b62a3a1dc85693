from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from PyQt5.QtCore import QObject, QSettings, pyqtSignal

from .log_store import DEFAULT_MAX_RECORDS, clamp_max_records
from .tcp_log_utils import FilterSpec
from .timestamp_projector import DEFAULT_TIMESTAMP_FORMAT
from .view_sync import DEFAULT_EXPORT_LIMIT, UpdateAppearance, clamp_export_limit

APP_ORG = "LocalTools"
APP_NAME = "TcpLogViewer"

DEFAULT_PORT = 9876


@dataclass
class ViewerSettings:
    port: int = DEFAULT_PORT
    max_records: int = DEFAULT_MAX_RECORDS
    relative_timestamps: bool = False
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    export_limit: int = DEFAULT_EXPORT_LIMIT

    font_family: str = ""
    font_size: int = 0
    use_colors: bool = True
    show_grid_lines: bool = False
    filter_bar_visible: bool = True

    def appearance(self) -> UpdateAppearance:
        return UpdateAppearance(
            font_family=self.font_family,
            font_size=int(self.font_size),
            use_colors=bool(self.use_colors),
            show_grid_lines=bool(self.show_grid_lines),
        )


# attribute -> QSettings key
_KEYS: Dict[str, str] = {
    "port": "net/port",
    "max_records": "log/max_records",
    "relative_timestamps": "view/relative_timestamps",
    "timestamp_format": "view/timestamp_format",
    "export_limit": "export/limit",
    "font_family": "view/font_family",
    "font_size": "view/font_size",
    "use_colors": "view/use_colors",
    "show_grid_lines": "view/show_grid_lines",
    "filter_bar_visible": "view/filter_bar_visible",
}

FILTER_SEVERITY_KEY = "filter/severity"
FILTER_CATEGORY_KEY = "filter/category"
FILTER_MESSAGE_KEY = "filter/message"


class SettingsStore(QObject):
    """
    Key-value settings backend on top of QSettings.

    `changed` carries the QSettings key of every value that actually changed,
    so listeners (e.g. the log store capacity) can react to their own key.
    """

    changed = pyqtSignal(str)

    def __init__(self, qsettings: Optional[QSettings] = None, *, parent=None) -> None:
        super().__init__(parent)
        self._settings = qsettings if qsettings is not None else QSettings(APP_ORG, APP_NAME)

    @property
    def qsettings(self) -> QSettings:
        return self._settings

    def load(self) -> ViewerSettings:
        s = self._settings
        st = ViewerSettings()
        for f in fields(ViewerSettings):
            default = getattr(st, f.name)
            setattr(st, f.name, s.value(_KEYS[f.name], default, type=type(default)))

        st.max_records = clamp_max_records(st.max_records)
        st.export_limit = clamp_export_limit(st.export_limit)
        if not (1 <= st.port <= 65535):
            st.port = DEFAULT_PORT
        st.timestamp_format = st.timestamp_format or DEFAULT_TIMESTAMP_FORMAT
        return st

    def save(self, st: ViewerSettings) -> None:
        for f in fields(ViewerSettings):
            self.set_value(_KEYS[f.name], getattr(st, f.name))

    def set_value(self, key: str, value: Any) -> None:
        s = self._settings
        if s.contains(key) and s.value(key, value, type=type(value)) == value:
            return
        s.setValue(key, value)
        self.changed.emit(key)

    # ---------------- Filters ----------------

    def load_filters(self) -> FilterSpec:
        s = self._settings
        return FilterSpec(
            severity_filter=s.value(FILTER_SEVERITY_KEY, "", type=str),
            category_filter=s.value(FILTER_CATEGORY_KEY, "", type=str),
            message_filter=s.value(FILTER_MESSAGE_KEY, "", type=str),
        )

    def save_filters(self, spec: FilterSpec) -> None:
        s = self._settings
        if spec.is_empty():
            s.remove(FILTER_SEVERITY_KEY)
            s.remove(FILTER_CATEGORY_KEY)
            s.remove(FILTER_MESSAGE_KEY)
            return
        s.setValue(FILTER_SEVERITY_KEY, spec.severity_filter)
        s.setValue(FILTER_CATEGORY_KEY, spec.category_filter)
        s.setValue(FILTER_MESSAGE_KEY, spec.message_filter)

    def sync(self) -> None:
        self._settings.sync()


def settings_key(attr: str) -> str:
    return _KEYS[attr]
