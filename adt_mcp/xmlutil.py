"""Namespace-agnostic XML decoding for ADT responses."""

from __future__ import annotations

from typing import Any
from xml.etree.ElementTree import Element

from defusedxml import EntitiesForbidden
import defusedxml.ElementTree as ET


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from a tag or attribute name."""
    return tag.rsplit("}", 1)[-1]


def element_to_dict(element: Element) -> Any:
    """
    Convert an element to plain Python data.

    Attributes become keys, repeated children become lists and text-only
    leaves collapse to their string value.
    """
    node: dict[str, Any] = {local_name(k): v for k, v in element.attrib.items()}

    children: dict[str, list[Any]] = {}
    for child in element:
        children.setdefault(local_name(child.tag), []).append(element_to_dict(child))
    for key, values in children.items():
        node[key] = values[0] if len(values) == 1 else values

    text = (element.text or "").strip()
    if text:
        if not node:
            return text
        node["text"] = text
    return node


def parse_xml(body: str | bytes) -> dict[str, Any]:
    """
    Parse an XML document into ``{root_name: data}``. Empty bodies give ``{}``.

    Entity declarations raise ``EntitiesForbidden``.
    """
    if not body or not body.strip():
        return {}
    root = ET.fromstring(body)
    return {local_name(root.tag): element_to_dict(root)}


def find_text(body: str | bytes, *names: str) -> str | None:
    """Return the text of the first element whose local name is in ``names``."""
    try:
        root = ET.fromstring(body)
    except (ET.ParseError, EntitiesForbidden):
        return None
    for name in names:
        for element in root.iter():
            if local_name(element.tag) == name and (element.text or "").strip():
                return element.text.strip()
    return None


def decode_table(body: str | bytes) -> dict[str, Any]:
    """
    Decode a data preview result into columns and row dicts.

    The preview format is column-major: each ``columns`` entry holds a
    ``metadata`` element and a ``dataSet`` of ``data`` values.
    """
    root = ET.fromstring(body)
    columns: list[dict[str, Any]] = []
    values: list[list[str]] = []
    total_rows: int | None = None

    for element in root:
        name = local_name(element.tag)
        if name == "totalRows" and element.text:
            total_rows = int(element.text)
        elif name == "columns":
            meta: dict[str, Any] = {}
            data: list[str] = []
            for part in element:
                part_name = local_name(part.tag)
                if part_name == "metadata":
                    meta = {local_name(k): v for k, v in part.attrib.items()}
                elif part_name == "dataSet":
                    data = [(d.text or "") for d in part]
            columns.append(meta)
            values.append(data)

    names = [c.get("name", f"COL{i}") for i, c in enumerate(columns)]
    row_count = max((len(v) for v in values), default=0)
    rows = [
        {
            names[col]: values[col][row] if row < len(values[col]) else None
            for col in range(len(names))
        }
        for row in range(row_count)
    ]
    return {"columns": columns, "values": rows, "totalRows": total_rows}


def find_attribute(body: str | bytes, name: str, attribute: str) -> str | None:
    """Return ``attribute`` of the first element whose local name is ``name``."""
    try:
        root = ET.fromstring(body)
    except (ET.ParseError, EntitiesForbidden):
        return None
    for element in root.iter():
        if local_name(element.tag) == name and attribute in element.attrib:
            return element.attrib[attribute]
    return None
