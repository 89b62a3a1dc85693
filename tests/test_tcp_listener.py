"""
End-to-end tests for the TCP listener and the viewer context.
"""

import json
import socket

import pytest
from PyQt5.QtCore import QSettings

from conftest import wait_until

from tcp_log_viewer.context import ViewerContext
from tcp_log_viewer.errors import ListenError
from tcp_log_viewer.settings import SettingsStore, ViewerSettings
from tcp_log_viewer.tcp_listener import LogServer


def frame(message, level="Log"):
    obj = {"date": "2024-05-01T10:00:00.000Z", "level": level, "category": "LogTest", "message": message}
    return json.dumps(obj).encode("utf-8")


@pytest.fixture
def server(qapp):
    srv = LogServer("127.0.0.1")
    yield srv
    srv.stop()


@pytest.fixture
def ctx(qapp, tmp_path):
    store = SettingsStore(QSettings(str(tmp_path / "viewer.ini"), QSettings.IniFormat))
    c = ViewerContext(store, bind_ip="127.0.0.1")
    yield c
    c.shutdown()


class TestLogServer:
    def test_receives_fragmented_frames(self, server):
        received = []
        server.record_received.connect(received.append)
        server.start(0)
        assert server.is_running

        with socket.create_connection(("127.0.0.1", server.port), timeout=2) as client:
            data = frame("one") + frame("two {braced}")
            client.sendall(data[:7])
            assert wait_until(lambda: server.active_connections() == 1)
            client.sendall(data[7:])
            assert wait_until(lambda: len(received) == 2)

        assert [r.message for r in received] == ["one", "two {braced}"]

    def test_connections_are_independent(self, server):
        received = []
        server.record_received.connect(received.append)
        server.start(0)

        a = socket.create_connection(("127.0.0.1", server.port), timeout=2)
        b = socket.create_connection(("127.0.0.1", server.port), timeout=2)
        try:
            a.sendall(frame("from a")[:10])
            b.sendall(frame("from b"))
            assert wait_until(lambda: len(received) == 1)
            assert received[0].message == "from b"
        finally:
            a.close()
            b.close()

    def test_malformed_frame_is_reported(self, server):
        failures = []
        received = []
        server.decode_failed.connect(failures.append)
        server.record_received.connect(received.append)
        server.start(0)

        with socket.create_connection(("127.0.0.1", server.port), timeout=2) as client:
            client.sendall(b"{broken}" + frame("good"))
            assert wait_until(lambda: len(received) == 1 and len(failures) == 1)

    def test_busy_port_raises(self, server):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]
            with pytest.raises(ListenError) as info:
                server.start(port)
            assert info.value.port == port
            assert not server.is_running
        finally:
            blocker.close()

    def test_stop_closes_client_connections(self, server):
        server.start(0)
        client = socket.create_connection(("127.0.0.1", server.port), timeout=2)
        try:
            assert wait_until(lambda: server.active_connections() == 1)
            server.stop()
            try:
                data = client.recv(16)
            except ConnectionResetError:
                data = b""
            assert data == b""
            assert server.port is None
        finally:
            client.close()


class TestViewerContext:
    def test_records_flow_into_store(self, ctx):
        assert ctx.start_listening(0)
        with socket.create_connection(("127.0.0.1", ctx.server.port), timeout=2) as client:
            client.sendall(frame("hello") + frame("boom", level="Error"))
            assert wait_until(lambda: ctx.store.count() == 2)

        ctx.set_filters(severity=">Warning")
        assert [r.message for r in ctx.get_displayed_records()] == ["boom"]
        assert ctx.export_as_text() == "2024-05-01T10:00:00.000Z [Error] [LogTest] boom"

    def test_listen_failure_is_signalled(self, ctx):
        failures = []
        ctx.listen_failed.connect(failures.append)
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            assert ctx.start_listening(blocker.getsockname()[1]) is False
        finally:
            blocker.close()
        assert len(failures) == 1
        assert "Cannot listen" in failures[0]

    def test_settings_changes_reach_the_core(self, ctx):
        new = ViewerSettings(max_records=250, relative_timestamps=True, export_limit=300)
        ctx.update_settings(new)
        assert ctx.store.max_records == 250
        assert ctx.projector.relative is True
        assert ctx.sync._export_limit == 300

    def test_filters_are_persisted(self, ctx):
        ctx.set_filters(category="LogNet")
        assert ctx.settings_store.load_filters().category_filter == "LogNet"
        ctx.clear_logs()
        assert ctx.settings_store.load_filters().is_empty()

    def test_pause_state(self, ctx):
        assert ctx.is_paused() is False
        assert ctx.toggle_pause() is True
        assert ctx.is_paused() is True
