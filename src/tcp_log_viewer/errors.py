from __future__ import annotations


class LogViewerError(Exception):
    """Base class for errors raised by the log viewer core."""


class DecodeError(LogViewerError):
    """
    A frame could not be turned into a LogRecord.

    Raised for invalid JSON, invalid UTF-8, or a JSON object that lacks
    one of the required string fields. Never fatal: the frame is dropped
    and decoding continues with the next one.
    """

    def __init__(self, message: str, frame: bytes = b"") -> None:
        super().__init__(message)
        self.frame = frame


class ListenError(LogViewerError):
    """The listening socket could not be bound (e.g. port already in use)."""

    def __init__(self, port: int, reason: str) -> None:
        super().__init__(f"Cannot listen on TCP port {port}: {reason}")
        self.port = port
        self.reason = reason


class SinkTimeoutError(LogViewerError):
    """The rendering sink did not acknowledge an inspection request in time."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Sink did not acknowledge within {timeout_ms} ms")
        self.timeout_ms = timeout_ms
