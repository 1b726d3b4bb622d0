"""Application entry point for the logsink command line tool."""
from __future__ import annotations

from logsink.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
