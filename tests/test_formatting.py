"""Unit tests for record renderers."""

from __future__ import annotations

from datetime import datetime

import pytest

from logsink.utils.formatting import XML_HEADER, render_marker, render_record, render_xml_record
from logsink.utils.types import DEFAULT_FORMAT, Record

RECORD = Record(
    timestamp=datetime(2025, 3, 4, 5, 6, 7),
    level="ERROR",
    source="db.pool",
    message='lost "primary" & <replica>',
)


def test_default_template() -> None:
    assert render_record(RECORD, DEFAULT_FORMAT) == (
        '[2025/03/04 05:06:07] [ERROR] (db.pool) lost "primary" & <replica>\n'
    )


def test_timestamp_format_spec_and_existing_newline() -> None:
    assert render_record(RECORD, "{timestamp:%Y-%m-%dT%H:%M}|{level}\n") == "2025-03-04T05:06|ERROR\n"


def test_empty_template_renders_nothing() -> None:
    assert render_record(RECORD, "") == ""
    assert render_marker("") == ""


def test_unknown_field_raises() -> None:
    with pytest.raises(KeyError):
        render_record(RECORD, "{thread}")


def test_xml_renderer_escapes_text() -> None:
    text = render_xml_record(RECORD, "<m>{message}</m>")
    assert text == "<m>lost &quot;primary&quot; &amp; &lt;replica&gt;</m>\n"


def test_marker_only_carries_time() -> None:
    when = datetime(2025, 3, 4, 5, 6, 7)
    assert render_marker(XML_HEADER, render_xml_record, when) == '<log created="2025/03/04 05:06:07">\n'
    assert render_marker("[{level}]", when=when) == "[]\n"
