"""Renderers turning :class:`Record` values into text.

A renderer is any callable ``(record, template) -> str``. Templates use
:meth:`str.format` fields:

``{date}``      ``YYYY/MM/DD`` of the record timestamp
``{time}``      ``HH:MM:SS`` of the record timestamp
``{timestamp}`` the :class:`~datetime.datetime` itself (``{timestamp:%j}``)
``{level}``, ``{source}``, ``{message}``

Every non-empty rendering ends with a newline; an empty template renders
to the empty string, which is how a missing header or trailer is expressed.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Optional
from xml.sax.saxutils import escape

from .types import Record

Renderer = Callable[[Record, str], str]

XML_FORMAT = """\t<record level="{level}">
\t\t<timestamp>{date} {time}</timestamp>
\t\t<source>{source}</source>
\t\t<message>{message}</message>
\t</record>"""
XML_HEADER = '<log created="{date} {time}">'
XML_TRAILER = "</log>"


def _fields(record: Record) -> Dict[str, object]:
    return {
        "timestamp": record.timestamp,
        "date": record.timestamp.strftime("%Y/%m/%d"),
        "time": record.timestamp.strftime("%H:%M:%S"),
        "level": record.level,
        "source": record.source,
        "message": record.message,
    }


def _finish(text: str) -> str:
    if text and not text.endswith("\n"):
        return text + "\n"
    return text


def render_record(record: Record, template: str) -> str:
    """Render ``record`` with ``template``."""

    if not template:
        return ""
    return _finish(template.format(**_fields(record)))


def render_xml_record(record: Record, template: str) -> str:
    """Like :func:`render_record` but escapes the free-text fields for XML."""

    if not template:
        return ""
    values = _fields(record)
    for key in ("level", "source", "message"):
        values[key] = escape(str(values[key]), {'"': "&quot;"})
    return _finish(template.format(**values))


def render_marker(template: str, renderer: Renderer = render_record, when: Optional[datetime] = None) -> str:
    """Render a header or trailer, which only carries a timestamp."""

    if not template:
        return ""
    marker = Record(timestamp=when or datetime.now(), level="", source="", message="")
    return renderer(marker, template)


__all__ = [
    "Renderer",
    "XML_FORMAT",
    "XML_HEADER",
    "XML_TRAILER",
    "render_marker",
    "render_record",
    "render_xml_record",
]
