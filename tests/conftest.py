"""
Shared fixtures: an offscreen QApplication and an event-loop wait helper.
"""

import os
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt5.QtWidgets import QApplication

from tcp_log_viewer.log_record import LogRecord


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


def wait_until(predicate, timeout_s=3.0, step_ms=10):
    """Pump the Qt event loop until `predicate()` is true or the timeout passes."""
    app = QApplication.instance()
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        app.processEvents()
        if predicate():
            return True
        time.sleep(step_ms / 1000.0)
    app.processEvents()
    return bool(predicate())


def make_record(message="hello", severity="Log", category="LogTemp", timestamp="2024-05-01T10:00:00.000", source=None):
    return LogRecord(timestamp=timestamp, severity=severity, category=category, message=message, source=source)
