"""Command line interface: pipe text lines into a rotating log file."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, TextIO

from .core.file_writer import FileLogWriter, new_xml_log_writer
from .core.recovery import find_candidates
from .errors import SinkError
from .utils.types import Record, RotationConfig

# argparse destination -> RotationConfig field
_OVERRIDES = {
    "format": "format",
    "max_lines": "max_lines",
    "max_bytes": "max_bytes",
    "daily": "daily",
    "max_backup": "max_backup",
    "rotate": "rotate",
    "buffering": "buffering",
    "capacity": "buffer_capacity",
    "timeout": "flush_timeout",
    "header": "header",
    "trailer": "trailer",
}


def build_config(args: argparse.Namespace) -> RotationConfig:
    config = RotationConfig.from_json_file(Path(args.config)) if args.config else RotationConfig()
    changes: Dict[str, object] = {}
    for dest, field_name in _OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            changes[field_name] = value
    return replace(config, **changes).validate()


def build_writer(log_path: Path, config: RotationConfig, xml: bool = False) -> FileLogWriter:
    if xml:
        writer = new_xml_log_writer(log_path, config.rotate, config=config)
        if config.header or config.trailer:
            writer.set_head_foot(config.header, config.trailer)
        return writer
    return FileLogWriter(log_path, config=config)


def _iter_lines(inputs: Iterable[str], stdin: TextIO) -> Iterator[str]:
    for name in inputs:
        if name == "-":
            for line in stdin:
                yield line.rstrip("\n")
            continue
        with open(name, "r", encoding="utf-8") as handle:
            for line in handle:
                yield line.rstrip("\n")


def main(argv: List[str] | None = None, stdin: Optional[TextIO] = None) -> int:
    parser = argparse.ArgumentParser(description="Write text lines to a buffered, rotating log file")
    parser.add_argument("inputs", nargs="*", default=["-"], help="Input files ('-' for stdin)")
    parser.add_argument("--log", required=True, help="Log file to append to")
    parser.add_argument("--level", default="INFO", help="Level stamped on every record")
    parser.add_argument("--source", default="logsink", help="Source stamped on every record")
    parser.add_argument("--config", help="JSON file with RotationConfig settings")
    parser.add_argument("--format", help="str.format template for each record")
    parser.add_argument("--header", help="Header template written to each new file")
    parser.add_argument("--trailer", help="Trailer template written before closing a file")
    parser.add_argument("--max-lines", type=int, help="Rotate after this many records")
    parser.add_argument("--max-bytes", type=int, help="Rotate once the file reaches this size")
    parser.add_argument("--daily", action="store_true", default=None, help="Rotate when the day changes")
    parser.add_argument("--max-backup", type=int, help="Number of numbered backups to keep")
    parser.add_argument(
        "--no-rotate",
        dest="rotate",
        action="store_false",
        default=None,
        help="Reopen the same file instead of keeping backups",
    )
    parser.add_argument(
        "--no-buffer",
        dest="buffering",
        action="store_false",
        default=None,
        help="Write every record straight to the file",
    )
    parser.add_argument("--capacity", type=int, help="Buffer capacity in bytes")
    parser.add_argument("--timeout", type=float, help="Flush timeout in seconds")
    parser.add_argument("--xml", action="store_true", help="Write XML <record> elements")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    log_path = Path(args.log)
    try:
        config = build_config(args)
        writer = build_writer(log_path, config, xml=args.xml)
    except (OSError, SinkError) as exc:
        print(f"logsink: {exc}", file=sys.stderr)
        return 2

    written = 0
    try:
        with writer:
            for line in _iter_lines(args.inputs, stdin or sys.stdin):
                writer.enqueue(Record.now(args.level, args.source, line))
                written += 1
    except SinkError as exc:
        print(f"logsink: {exc}", file=sys.stderr)
        return 1

    if writer.failed:
        print(f"logsink: writer stopped: {writer.error}", file=sys.stderr)
        return 1

    summary = {
        "log": str(log_path),
        "records": written,
        "files": sorted(path.name for path in find_candidates(log_path)),
    }
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
