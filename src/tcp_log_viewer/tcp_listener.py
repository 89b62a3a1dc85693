from __future__ import annotations

import errno
import logging
import select
import socket
import threading
from typing import Dict, Optional, Tuple

from PyQt5.QtCore import QObject, QThread, pyqtSignal

from .errors import DecodeError, ListenError
from .frame_decoder import FrameDecoder

logger = logging.getLogger(__name__)

RECV_BYTES = 65536
SELECT_TIMEOUT_S = 0.10


class _Connection:
    def __init__(self, sock: socket.socket, peer: Tuple[str, int], decoder: FrameDecoder) -> None:
        self.sock = sock
        self.peer = peer
        self.decoder = decoder

    @property
    def label(self) -> str:
        return f"{self.peer[0]}:{self.peer[1]}"


class TcpListenerThread(QThread):
    """
    Background TCP listener (select-based, one thread for all connections).

    Important:
    - open() binds synchronously and raises ListenError, so the caller can
      report a busy port before the thread starts.
    - stop() closes the listening socket and every client socket to unblock
      select()/recv(). Those calls may then raise EBADF (Errno 9) during
      shutdown; this must NOT be treated as an error.
    - Each connection has its own FrameDecoder; records are emitted as
      signals and handled on the thread that owns the receivers.
    """

    record_received = pyqtSignal(object)  # LogRecord
    decode_failed = pyqtSignal(str)
    status_changed = pyqtSignal(str)
    error = pyqtSignal(str)
    connections_changed = pyqtSignal(int)
    rx_stats = pyqtSignal(int, int)  # connections accepted, records

    def __init__(self, bind_ip: str, port: int, *, parent=None) -> None:
        super().__init__(parent)
        self._bind_ip = bind_ip
        self._port = port

        self._stop_evt = threading.Event()
        self._server: Optional[socket.socket] = None
        self._conns: Dict[socket.socket, _Connection] = {}
        self._lock = threading.Lock()

        self._accepted = 0
        self._records = 0

    @property
    def port(self) -> int:
        return self._port

    def bound_port(self) -> int:
        """Actual port (differs from the requested one when 0 was requested)."""
        if self._server is None:
            return self._port
        try:
            return int(self._server.getsockname()[1])
        except OSError:
            return self._port

    def active_connections(self) -> int:
        with self._lock:
            return len(self._conns)

    def open(self) -> None:
        if self._server is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._bind_ip, self._port))
            sock.listen(16)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            reason = e.strerror or str(e)
            if e.errno == errno.EADDRINUSE:
                reason = "port already in use"
            raise ListenError(self._port, reason) from e
        self._server = sock

    def stop(self) -> None:
        self._stop_evt.set()
        # Closing the sockets will unblock select()/recv().
        self._close_all_connections()
        if self._server is not None:
            try:
                self._server.close()
            except OSError:
                pass

    @staticmethod
    def _is_ebadf(e: BaseException) -> bool:
        if isinstance(e, OSError):
            return getattr(e, "errno", None) == errno.EBADF
        return False

    def _close_all_connections(self) -> None:
        with self._lock:
            conns = list(self._conns.values())
            self._conns.clear()
        for c in conns:
            try:
                c.sock.close()
            except OSError:
                pass
        if conns:
            logger.info("Closed %d active connection(s)", len(conns))
            self.connections_changed.emit(0)

    def _drop_connection(self, sock: socket.socket, reason: str) -> None:
        with self._lock:
            conn = self._conns.pop(sock, None)
            remaining = len(self._conns)
        if conn is None:
            return
        try:
            sock.close()
        except OSError:
            pass
        logger.info("Client %s disconnected (%s)", conn.label, reason)
        self.status_changed.emit(f"Client disconnected: {conn.label}")
        self.connections_changed.emit(remaining)

    def _accept(self, server: socket.socket) -> None:
        try:
            client, peer = server.accept()
        except BlockingIOError:
            return
        client.setblocking(False)

        def on_error(err: DecodeError, _peer=peer) -> None:
            self.decode_failed.emit(f"{_peer[0]}:{_peer[1]}: {err}")

        conn = _Connection(client, peer, FrameDecoder(on_error=on_error))
        with self._lock:
            self._conns[client] = conn
            count = len(self._conns)
        self._accepted += 1

        logger.info("Client connected: %s", conn.label)
        self.status_changed.emit(f"Client connected: {conn.label}")
        self.connections_changed.emit(count)

    def _receive(self, sock: socket.socket) -> None:
        with self._lock:
            conn = self._conns.get(sock)
        if conn is None:
            return

        try:
            data = sock.recv(RECV_BYTES)
        except BlockingIOError:
            return
        except OSError as e:
            if self._stop_evt.is_set() or self._is_ebadf(e):
                return
            # Socket errors are ordinary disconnects.
            self._drop_connection(sock, f"socket error: {e}")
            return

        if not data:
            self._drop_connection(sock, "closed by peer")
            return

        records = conn.decoder.feed(data)
        if not records:
            return

        self._records += len(records)
        for rec in records:
            self.record_received.emit(rec)
        self.rx_stats.emit(self._accepted, self._records)

    def run(self) -> None:
        server = self._server
        try:
            if server is None:
                self.open()
                server = self._server

            logger.info("Listening on TCP %s:%d", self._bind_ip, self.bound_port())
            self.status_changed.emit(f"Listening TCP {self._bind_ip}:{self.bound_port()}")

            while not self._stop_evt.is_set():
                with self._lock:
                    watched = [server] + list(self._conns.keys())
                try:
                    rlist, _, _ = select.select(watched, [], [], SELECT_TIMEOUT_S)
                except (OSError, ValueError) as e:
                    # During shutdown a socket may be closed -> EBADF/ValueError.
                    if self._stop_evt.is_set():
                        break
                    if self._is_ebadf(e) or isinstance(e, ValueError):
                        self._prune_closed()
                        continue
                    self.error.emit(f"select failed: {e}")
                    break

                for sock in rlist:
                    if self._stop_evt.is_set():
                        break
                    if sock is server:
                        try:
                            self._accept(server)
                        except OSError as e:
                            if self._stop_evt.is_set() or self._is_ebadf(e):
                                break
                            self.error.emit(f"accept failed: {e}")
                    else:
                        self._receive(sock)

        except ListenError as e:
            self.error.emit(str(e))
        except Exception as e:
            # If stop was requested, do not report shutdown noise as error
            if not self._stop_evt.is_set():
                logger.exception("TCP listener crashed")
                self.error.emit(f"TCP listener error: {e}")
        finally:
            self._close_all_connections()
            if server is not None:
                try:
                    server.close()
                except OSError:
                    pass
            self._server = None
            self.status_changed.emit("Listener stopped")

    def _prune_closed(self) -> None:
        with self._lock:
            dead = [s for s in self._conns if s.fileno() < 0]
        for s in dead:
            self._drop_connection(s, "socket closed")


class LogServer(QObject):
    """
    Owns the listener thread for one port at a time.

    start() raises ListenError when the port cannot be bound; ingestion
    then simply stays off until another port is applied.
    """

    record_received = pyqtSignal(object)
    decode_failed = pyqtSignal(str)
    status_changed = pyqtSignal(str)
    error = pyqtSignal(str)
    connections_changed = pyqtSignal(int)
    rx_stats = pyqtSignal(int, int)

    def __init__(self, bind_ip: str = "0.0.0.0", *, parent=None) -> None:
        super().__init__(parent)
        self._bind_ip = bind_ip
        self._listener: Optional[TcpListenerThread] = None

    @property
    def is_running(self) -> bool:
        return self._listener is not None

    @property
    def port(self) -> Optional[int]:
        return self._listener.bound_port() if self._listener is not None else None

    def active_connections(self) -> int:
        return self._listener.active_connections() if self._listener is not None else 0

    def start(self, port: int) -> None:
        if self._listener is not None and self._listener.port == port:
            logger.info("Server already running on port %d", port)
            return
        self.stop()

        t = TcpListenerThread(self._bind_ip, port, parent=self)
        t.open()

        t.record_received.connect(self.record_received)
        t.decode_failed.connect(self.decode_failed)
        t.status_changed.connect(self.status_changed)
        t.error.connect(self.error)
        t.connections_changed.connect(self.connections_changed)
        t.rx_stats.connect(self.rx_stats)

        self._listener = t
        t.start()

    def stop(self, wait_ms: int = 800) -> None:
        if self._listener is None:
            return
        t = self._listener
        self._listener = None

        logger.info("Shutting down server on port %d", t.bound_port())
        t.stop()
        t.wait(wait_ms)

    def restart(self, port: int) -> None:
        """Tear down every connection and listen on `port`."""
        logger.info("Switching listener to port %d", port)
        self.stop()
        self.start(port)
