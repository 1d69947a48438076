"""helpers shared by the xml and zip based codecs."""

from __future__ import annotations

import xml.etree.ElementTree as ET
import zipfile
from io import BytesIO
from typing import Optional

from ..errors import DecodeError


def parse_xml(data: bytes, format_name: str, member: Optional[str] = None) -> ET.Element:
    """parse xml bytes, turning parser errors into DecodeError."""
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        line, column = e.position
        location = f"{member + ' ' if member else ''}line {line}, column {column}"
        raise DecodeError(f"malformed {format_name} xml: {e}", location=location) from e


def to_xml_bytes(root: ET.Element, doctype: Optional[str] = None) -> bytes:
    """serialize with an xml declaration and two-space indentation."""
    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    lines = ['<?xml version="1.0" encoding="UTF-8"?>']
    if doctype:
        lines.append(doctype)
    lines.append(body)
    return ("\n".join(lines) + "\n").encode("utf-8")


def local_name(tag: str) -> str:
    """strip a `{namespace}` prefix."""
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def read_zip_member(data: bytes, names: tuple[str, ...], format_name: str) -> tuple[str, bytes]:
    """return (name, bytes) of the first archive member found among names."""
    try:
        with zipfile.ZipFile(BytesIO(data), "r") as zf:
            available = set(zf.namelist())
            for name in names:
                if name in available:
                    return name, zf.read(name)
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise DecodeError(f"corrupt {format_name} archive: {e}") from e
    raise DecodeError(
        f"{format_name} archive has none of: {', '.join(names)}",
        location="archive",
    )


def write_zip(members: dict[str, bytes]) -> bytes:
    """pack members into an in-memory deflated zip."""
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buf.getvalue()


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
