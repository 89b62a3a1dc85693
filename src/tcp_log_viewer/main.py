from __future__ import annotations

import datetime as _dt
import logging
import sys
from dataclasses import replace
from typing import Optional

from PyQt5.QtCore import Qt, QTimer
from PyQt5.QtGui import QIntValidator
from PyQt5.QtWidgets import (
    QAction,
    QApplication,
    QCheckBox,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from .app_paths import AppPathsConfig, load_or_create_config
from .context import ViewerContext
from .log_sender import RecordGenerator
from .log_store import MIN_MAX_RECORDS
from .log_table import LogTableWidget
from .settings import APP_NAME, APP_ORG, SettingsStore, ViewerSettings
from .view_sync import MAX_EXPORT_LIMIT, MIN_EXPORT_LIMIT

APP_VERSION = "1.0.0"

SIM_INTERVAL_MS = 120

logger = logging.getLogger(__name__)


class SettingsDialog(QDialog):
    """Editor for the stored viewer settings (everything except the port)."""

    def __init__(self, parent: QWidget, st: ViewerSettings) -> None:
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setModal(True)
        self._st = st

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(10)

        grid = QGridLayout()
        grid.setHorizontalSpacing(10)
        grid.setVerticalSpacing(8)

        grid.addWidget(QLabel("Max records:"), 0, 0)
        self.sb_max = QSpinBox()
        self.sb_max.setRange(MIN_MAX_RECORDS, 1_000_000)
        self.sb_max.setSingleStep(1000)
        self.sb_max.setValue(st.max_records)
        grid.addWidget(self.sb_max, 0, 1)

        grid.addWidget(QLabel("Timestamp format:"), 1, 0)
        self.ed_format = QLineEdit(st.timestamp_format)
        self.ed_format.setPlaceholderText("HH:mm:ss.SSS")
        grid.addWidget(self.ed_format, 1, 1)

        self.chk_relative = QCheckBox("Relative timestamps (since last clear)")
        self.chk_relative.setChecked(st.relative_timestamps)
        grid.addWidget(self.chk_relative, 2, 0, 1, 2)

        grid.addWidget(QLabel("Export limit:"), 3, 0)
        self.sb_export = QSpinBox()
        self.sb_export.setRange(MIN_EXPORT_LIMIT, MAX_EXPORT_LIMIT)
        self.sb_export.setValue(st.export_limit)
        grid.addWidget(self.sb_export, 3, 1)

        grid.addWidget(QLabel("Font family:"), 4, 0)
        self.ed_font = QLineEdit(st.font_family)
        self.ed_font.setPlaceholderText("default")
        grid.addWidget(self.ed_font, 4, 1)

        grid.addWidget(QLabel("Font size:"), 5, 0)
        self.sb_font_size = QSpinBox()
        self.sb_font_size.setRange(0, 48)
        self.sb_font_size.setSpecialValueText("default")
        self.sb_font_size.setValue(st.font_size)
        grid.addWidget(self.sb_font_size, 5, 1)

        self.chk_colors = QCheckBox("Color rows by level")
        self.chk_colors.setChecked(st.use_colors)
        grid.addWidget(self.chk_colors, 6, 0, 1, 2)

        self.chk_grid = QCheckBox("Show grid lines")
        self.chk_grid.setChecked(st.show_grid_lines)
        grid.addWidget(self.chk_grid, 7, 0, 1, 2)

        layout.addLayout(grid)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel, parent=self)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)
        layout.addWidget(btns)

    def result_settings(self) -> ViewerSettings:
        return replace(
            self._st,
            max_records=int(self.sb_max.value()),
            timestamp_format=self.ed_format.text().strip() or "HH:mm:ss.SSS",
            relative_timestamps=self.chk_relative.isChecked(),
            export_limit=int(self.sb_export.value()),
            font_family=self.ed_font.text().strip(),
            font_size=int(self.sb_font_size.value()),
            use_colors=self.chk_colors.isChecked(),
            show_grid_lines=self.chk_grid.isChecked(),
        )


class MainWindow(QMainWindow):
    def __init__(self, ctx: ViewerContext) -> None:
        super().__init__()
        self._ctx = ctx
        self._connections = 0
        self._records_rx = 0

        # Simulation (Tools -> Simulate Traffic)
        self._sim = RecordGenerator(source="Sim")
        self._sim_timer = QTimer(self)
        self._sim_timer.setInterval(SIM_INTERVAL_MS)
        self._sim_timer.timeout.connect(self._on_sim_tick)

        self.setWindowTitle(f"TCP Log Viewer — {APP_VERSION}")
        self.resize(1100, 760)

        self._build_actions()
        self._build_ui()

        server = ctx.server
        server.status_changed.connect(self._on_listener_status)
        server.error.connect(self._on_listener_error)
        server.decode_failed.connect(self._on_decode_failed)
        server.connections_changed.connect(self._on_connections_changed)
        server.rx_stats.connect(self._on_rx_stats)
        ctx.listen_failed.connect(self._on_listen_failed)

        self.show_view()

    @property
    def view(self) -> LogTableWidget:
        return self.log_view

    # ---------------- UI ----------------

    def _build_actions(self) -> None:
        file_menu = self.menuBar().addMenu("File")

        self.act_copy = QAction("Copy Logs as Text", self)
        self.act_copy.setShortcut("Ctrl+Shift+C")
        self.act_copy.triggered.connect(self.on_copy_clicked)

        self.act_save = QAction("Save Logs as Text…", self)
        self.act_save.setShortcut("Ctrl+S")
        self.act_save.triggered.connect(self.on_save_clicked)

        self.act_quit = QAction("Quit", self)
        self.act_quit.setShortcut("Ctrl+Q")
        self.act_quit.triggered.connect(self.close)

        file_menu.addAction(self.act_copy)
        file_menu.addAction(self.act_save)
        file_menu.addSeparator()
        file_menu.addAction(self.act_quit)

        view_menu = self.menuBar().addMenu("View")

        self.act_clear_logs = QAction("Clear Logs", self)
        self.act_clear_logs.setToolTip("Clear all logs and reset the filters")
        self.act_clear_logs.triggered.connect(self.on_clear_logs_clicked)

        self.act_pause = QAction("Pause / Resume", self)
        self.act_pause.setShortcut("Ctrl+P")
        self.act_pause.triggered.connect(self.on_pause_toggled)

        self.act_filter_bar = QAction("Toggle Filter Bar", self)
        self.act_filter_bar.setShortcut("Ctrl+F")
        self.act_filter_bar.triggered.connect(self.on_toggle_filter_bar)

        view_menu.addAction(self.act_clear_logs)
        view_menu.addAction(self.act_pause)
        view_menu.addAction(self.act_filter_bar)

        tools_menu = self.menuBar().addMenu("Tools")

        self.act_simulate = QAction("Simulate Traffic", self)
        self.act_simulate.setCheckable(True)
        self.act_simulate.setToolTip("Generate sample log records locally (for filter/pause testing)")
        self.act_simulate.toggled.connect(self.on_simulate_toggled)

        self.act_settings = QAction("Settings…", self)
        self.act_settings.triggered.connect(self.on_settings_clicked)

        tools_menu.addAction(self.act_simulate)
        tools_menu.addSeparator()
        tools_menu.addAction(self.act_settings)

    def _build_ui(self) -> None:
        root = QWidget(self)
        self.setCentralWidget(root)

        root_layout = QVBoxLayout(root)
        root_layout.setContentsMargins(10, 10, 10, 10)
        root_layout.setSpacing(10)

        # --- Listener row ---
        net_frame = QFrame()
        net_frame.setFrameShape(QFrame.StyledPanel)
        net_row = QHBoxLayout(net_frame)
        net_row.setContentsMargins(10, 6, 10, 6)
        net_row.setSpacing(8)

        net_row.addWidget(QLabel("Port:"))
        self.ed_port = QLineEdit(str(self._ctx.settings.port))
        self.ed_port.setValidator(QIntValidator(1, 65535, self))
        self.ed_port.setMaximumWidth(90)
        self.ed_port.returnPressed.connect(self.on_apply_port_clicked)
        net_row.addWidget(self.ed_port)

        self.btn_apply_port = QPushButton("APPLY PORT")
        self.btn_apply_port.clicked.connect(self.on_apply_port_clicked)
        net_row.addWidget(self.btn_apply_port)

        net_row.addSpacing(12)

        self.btn_clear_logs = QPushButton("CLEAR LOGS")
        self.btn_clear_logs.setToolTip("Clear all logs and reset the filters")
        self.btn_clear_logs.clicked.connect(self.on_clear_logs_clicked)
        net_row.addWidget(self.btn_clear_logs)

        self.btn_copy = QPushButton("COPY")
        self.btn_copy.clicked.connect(self.on_copy_clicked)
        net_row.addWidget(self.btn_copy)

        self.lbl_listener = QLabel("Listener: OFF")
        self.lbl_listener.setStyleSheet("color: #777777;")
        net_row.addStretch(1)
        net_row.addWidget(self.lbl_listener)

        root_layout.addWidget(net_frame)

        # --- Log view (sink) ---
        self.log_view = LogTableWidget(root)
        self.log_view.set_filter_bar_visible(self._ctx.settings.filter_bar_visible)
        self.log_view.filters_edited.connect(self.on_filters_edited)
        self.log_view.clear_requested.connect(self.on_clear_view_clicked)
        self.log_view.pause_requested.connect(self.on_pause_toggled)
        self.log_view.counts_changed.connect(self._on_counts_changed)
        root_layout.addWidget(self.log_view, 1)

        self.statusBar().showMessage("Ready")

    def show_view(self) -> None:
        self._ctx.attach_view(self.log_view)
        self.show()
        self.raise_()

    # ---------------- Listener ----------------

    def _update_listener_label(self) -> None:
        port = self._ctx.server.port
        if port is None:
            self.lbl_listener.setText("Listener: OFF")
            return
        self.lbl_listener.setText(
            f"Listener: ON — port {port} — clients={self._connections} records={self._records_rx}"
        )

    def _on_listener_status(self, msg: str) -> None:
        self.statusBar().showMessage(msg, 1500)
        self._update_listener_label()

    def _on_listener_error(self, msg: str) -> None:
        logger.error("%s", msg)
        self.statusBar().showMessage(msg, 5000)
        self._update_listener_label()

    def _on_decode_failed(self, msg: str) -> None:
        self.statusBar().showMessage(f"Dropped malformed frame from {msg}", 3000)

    def _on_listen_failed(self, msg: str) -> None:
        self._update_listener_label()
        QMessageBox.warning(
            self,
            "Cannot Listen",
            f"{msg}\n\nChoose a different port and press APPLY PORT.",
        )

    def _on_connections_changed(self, count: int) -> None:
        self._connections = count
        self._update_listener_label()

    def _on_rx_stats(self, _accepted: int, records: int) -> None:
        self._records_rx = records
        self._update_listener_label()

    def _on_counts_changed(self, shown: int, total: int) -> None:
        paused_txt = " — PAUSED" if self._ctx.is_paused() else ""
        self.statusBar().showMessage(f"Logs: {shown} / {total}{paused_txt}")

    def on_apply_port_clicked(self) -> None:
        port_text = self.ed_port.text().strip()
        try:
            port = int(port_text)
            if not (1 <= port <= 65535):
                raise ValueError("Port out of range")
        except ValueError:
            QMessageBox.warning(self, "Invalid Port", "Port must be a number between 1 and 65535.")
            return

        self._connections = 0
        self._records_rx = 0
        if self._ctx.apply_listen_port(port):
            self.statusBar().showMessage(f"Listening on port {port}", 3000)
        self._update_listener_label()

    # ---------------- Control surface ----------------

    def on_filters_edited(self, severity: str, category: str, message: str) -> None:
        self._ctx.set_filters(severity, category, message)

    def on_clear_view_clicked(self) -> None:
        self._ctx.clear_view()
        self.statusBar().showMessage("View cleared", 2000)

    def on_clear_logs_clicked(self) -> None:
        self._ctx.clear_logs()
        logger.info("Logs cleared")
        self.statusBar().showMessage("Logs cleared", 2000)

    def on_pause_toggled(self) -> None:
        paused = self._ctx.toggle_pause()
        if paused:
            self.statusBar().showMessage("View paused (logging continues)", 2000)
        else:
            self.statusBar().showMessage("View resumed", 1500)

    def on_toggle_filter_bar(self) -> None:
        self._ctx.toggle_filter_bar()

    def on_copy_clicked(self) -> None:
        text = self._ctx.export_as_text()
        QApplication.clipboard().setText(text)
        lines = text.count("\n") + 1 if text else 0
        self.statusBar().showMessage(f"Copied {lines} log line(s)", 2000)

    def on_save_clicked(self) -> None:
        stamp = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
        path, _ = QFileDialog.getSaveFileName(
            self,
            "Save Logs",
            f"tcp_log_{stamp}.txt",
            "Text Files (*.txt);;All Files (*)",
        )
        if not path:
            return
        content = self._ctx.export_as_text()
        try:
            with open(path, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
                if content and not content.endswith("\n"):
                    f.write("\n")
        except OSError as e:
            QMessageBox.critical(self, "Save Failed", f"Could not save file:\n{e}")
            return
        self.statusBar().showMessage(f"Saved: {path}", 4000)

    def on_settings_clicked(self) -> None:
        dlg = SettingsDialog(self, self._ctx.settings)
        if dlg.exec_() != QDialog.Accepted:
            return
        self._ctx.update_settings(dlg.result_settings())
        self.statusBar().showMessage("Settings saved", 2000)

    # ---------------- Simulation (Tools menu) ----------------

    def on_simulate_toggled(self, checked: bool) -> None:
        # Simulated records take the same path as records from the socket.
        if checked:
            self._sim_timer.start()
            self.statusBar().showMessage("Simulation: ON", 2500)
        else:
            self._stop_simulation()

    def _stop_simulation(self) -> None:
        if self._sim_timer.isActive():
            self._sim_timer.stop()
            self.statusBar().showMessage("Simulation: OFF", 1500)

    def _on_sim_tick(self) -> None:
        self._ctx.sync.add_record(self._sim.next_record())

    # ---------------- Qt overrides ----------------

    def closeEvent(self, event) -> None:
        self._stop_simulation()
        self._ctx.sync.detach_sink()
        self._ctx.shutdown()
        super().closeEvent(event)


def configure_logging(paths: Optional[AppPathsConfig], level: int = logging.INFO) -> None:
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    root = logging.getLogger()
    root.setLevel(level)

    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)

    if paths is None:
        return
    try:
        paths.logs_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(paths.diagnostics_log, encoding="utf-8")
    except OSError as e:
        logger.warning("Diagnostics log disabled: %s", e)
        return
    fh.setFormatter(fmt)
    root.addHandler(fh)


def main() -> int:
    QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)

    app = QApplication(sys.argv)
    app.setOrganizationName(APP_ORG)
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)

    paths = load_or_create_config(APP_ORG, APP_NAME, APP_VERSION)
    configure_logging(paths)
    logger.info("TCP Log Viewer %s starting (config: %s)", APP_VERSION, paths.config_path)

    ctx = ViewerContext(SettingsStore(), bind_ip=paths.bind_ip)
    w = MainWindow(ctx)
    ctx.start_listening()
    w._update_listener_label()
    return app.exec_()


if __name__ == "__main__":
    raise SystemExit(main())
