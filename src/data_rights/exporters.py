"""Render collected user data as JSON, CSV or XML for download.

The collector already produces JSON-safe values (ISO timestamps, string
UUIDs), so every renderer works on plain dicts, lists and scalars.
"""

from __future__ import annotations

import csv
import io
import json
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"
    XML = "xml"


MEDIA_TYPES: dict[ExportFormat, str] = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.XML: "application/xml",
}

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def export_filename(user_id: Any, fmt: ExportFormat, *, now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return f"data_export_{user_id}_{int(now.timestamp() * 1000)}.{ExportFormat(fmt).value}"


def to_json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def to_csv(data: dict[str, Any]) -> str:
    """One section per category: a ``# <category>`` line, a header row, rows.

    Categories whose value is a single object (profile) become a one-row
    section. Empty categories are skipped.
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    for category, value in data.items():
        rows = [value] if isinstance(value, dict) else value
        if not isinstance(rows, list) or not rows:
            continue

        header: list[str] = []
        for row in rows:
            for key in row:
                if key not in header:
                    header.append(key)

        output.write(f"# {category}\n")
        writer.writerow(header)
        for row in rows:
            writer.writerow([_csv_cell(row.get(key)) for key in header])
        output.write("\n")

    return output.getvalue()


def _append_xml(parent: ET.Element, value: Any) -> None:
    if isinstance(value, dict):
        for key, child_value in value.items():
            child = ET.SubElement(parent, str(key))
            _append_xml(child, child_value)
    elif isinstance(value, list):
        for item in value:
            child = ET.SubElement(parent, "item")
            _append_xml(child, item)
    elif value is not None:
        parent.text = str(value).lower() if isinstance(value, bool) else str(value)


def to_xml(data: dict[str, Any]) -> str:
    root = ET.Element("data_export")
    body = ET.SubElement(root, "data")
    _append_xml(body, data)
    return _XML_DECLARATION + ET.tostring(root, encoding="unicode")


_RENDERERS = {
    ExportFormat.JSON: to_json,
    ExportFormat.CSV: to_csv,
    ExportFormat.XML: to_xml,
}


def render_export(data: dict[str, Any], fmt: ExportFormat | str) -> str:
    """Render data in the requested format (ValueError on unknown format)."""
    return _RENDERERS[ExportFormat(fmt)](data)
