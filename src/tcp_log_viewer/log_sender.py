#!/usr/bin/env python3
"""
Test traffic for the TCP log viewer.

Generates random log records and either sends them as JSON frames to a
listening viewer (`tcp-log-sender`) or hands them straight to the
viewer's own pipeline ("Tools -> Simulate Traffic").

Usage:
    tcp-log-sender --host 127.0.0.1 --port 9876 --delay 500 --random --source Srv
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import socket
import sys
import time
from datetime import datetime
from typing import List, Optional

from .log_record import SEVERITY_ORDER, LogRecord

logger = logging.getLogger(__name__)

CATEGORIES = ["Application", "Network", "Database", "Security", "UserAction", "SystemEvent", "Gameplay"]
ACTIONS = ["Initializing", "Processing", "Completing", "Failing", "Verifying", "Updating", "Querying", "Connecting to"]
SUBJECTS = [
    "user login",
    "data record",
    "network packet",
    "configuration file",
    "shader compilation",
    "AI behavior tree",
    "physics simulation",
]
OUTCOMES = ["successfully", "with errors", "after timeout", "as expected", "with warnings", "due to external input"]

RECONNECT_DELAY_S = 5.0


class RecordGenerator:
    """Lightweight stream of plausible records for filter/pause testing."""

    def __init__(self, source: Optional[str] = None, seed: Optional[int] = None) -> None:
        self._source = source or None
        self._rng = random.Random(seed)
        self.seq = 0

    def _sentence(self) -> str:
        r = self._rng
        return f"{r.choice(ACTIONS)} {r.choice(SUBJECTS)} {r.choice(OUTCOMES)}."

    def next_record(self) -> LogRecord:
        self.seq += 1
        r = self._rng

        msg = self._sentence()
        # 30% longer messages, a few of them longer still
        if r.random() < 0.30:
            msg += f" Furthermore, {self._sentence()}"
            if r.random() < 0.10:
                msg += f" This often leads to {self._sentence()}"

        return LogRecord(
            timestamp=datetime.now().isoformat(timespec="milliseconds"),
            severity=r.choice(SEVERITY_ORDER),
            category=r.choice(CATEGORIES),
            message=msg,
            source=self._source,
        )

    def next_frame(self) -> bytes:
        return (json.dumps(self.next_record().to_json(), ensure_ascii=False) + "\n").encode("utf-8")


def _next_delay_ms(delay_ms: int, randomize: bool, rng: random.Random) -> int:
    if randomize and delay_ms > 10:
        return rng.randint(10, delay_ms)
    return delay_ms


def send_records(
    host: str,
    port: int,
    *,
    count: int = 0,
    delay_ms: int = 1000,
    randomize: bool = False,
    source: Optional[str] = None,
    seed: Optional[int] = None,
) -> int:
    """
    Connect and send records until `count` were sent (0 = forever).

    Reconnects after connection failures. Returns the number of records sent.
    """
    gen = RecordGenerator(source=source, seed=seed)
    rng = random.Random(seed)
    sent = 0

    while count <= 0 or sent < count:
        try:
            sock = socket.create_connection((host, port), timeout=5.0)
        except OSError as e:
            logger.warning("Connection to %s:%d failed (%s); retrying in %.0fs", host, port, e, RECONNECT_DELAY_S)
            time.sleep(RECONNECT_DELAY_S)
            continue

        logger.info("Connected to %s:%d", host, port)
        with sock:
            try:
                while count <= 0 or sent < count:
                    sock.sendall(gen.next_frame())
                    sent += 1
                    pause_ms = _next_delay_ms(delay_ms, randomize, rng)
                    if pause_ms > 0 and (count <= 0 or sent < count):
                        time.sleep(pause_ms / 1000.0)
            except OSError as e:
                logger.warning("Connection lost (%s); reconnecting", e)
                time.sleep(1.0)

    return sent


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="tcp-log-sender", description="Send random log records to a TCP log viewer.")
    p.add_argument("--host", default="localhost", help="host to connect to (default: localhost)")
    p.add_argument("--port", type=int, default=9876, help="TCP port (default: 9876)")
    p.add_argument("--delay", type=int, default=1000, help="delay between records in ms (default: 1000)")
    p.add_argument("--random", action="store_true", help="random delay between 10ms and --delay")
    p.add_argument("--source", default=None, help="source tag included in every record")
    p.add_argument("--count", type=int, default=0, help="stop after N records (default: run forever)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        sent = send_records(
            args.host,
            args.port,
            count=args.count,
            delay_ms=args.delay,
            randomize=args.random,
            source=args.source,
        )
    except KeyboardInterrupt:
        return 130
    logger.info("Sent %d record(s)", sent)
    return 0


if __name__ == "__main__":
    sys.exit(main())
