#!/usr/bin/env python3
"""Start the viewer from a source checkout (src/ on PYTHONPATH or installed with -e)."""

from tcp_log_viewer.main import main

if __name__ == "__main__":
    raise SystemExit(main())
