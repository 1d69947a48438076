"""file format dispatch.

the format is chosen from the lowercase file extension alone. anything that
is not a known extension, including `.mm` and no extension at all, is read
and written as FreeMind.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Union

from ..core.models import MindMap
from ..errors import DecodeError, EncodeError, IoFailure
from . import freemind, mindmanager, mindnode, opml, simplemind, xmind

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

# xml 1.0 cannot carry these; XMind writes json and MindNode a binary plist
_XML_INVALID_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


class FileFormat(Enum):
    FREEMIND = "mm"
    XMIND = "xmind"
    OPML = "opml"
    MINDMANAGER = "mmap"
    MINDNODE = "mindnode"
    SIMPLEMIND = "smmx"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def codec(self) -> ModuleType:
        return _CODECS[self]

    @property
    def label(self) -> str:
        return self.codec.NAME


_CODECS: dict[FileFormat, ModuleType] = {
    FileFormat.FREEMIND: freemind,
    FileFormat.XMIND: xmind,
    FileFormat.OPML: opml,
    FileFormat.MINDMANAGER: mindmanager,
    FileFormat.MINDNODE: mindnode,
    FileFormat.SIMPLEMIND: simplemind,
}

DEFAULT_FORMAT = FileFormat.FREEMIND
_NON_XML_FORMATS = {FileFormat.XMIND, FileFormat.MINDNODE}


def classify(path: PathLike) -> FileFormat:
    """pick the format for a path from its extension."""
    ext = Path(path).suffix.lower().lstrip(".")
    for fmt in FileFormat:
        if fmt.extension == ext:
            return fmt
    return DEFAULT_FORMAT


def supported_formats() -> list[dict]:
    """name, extension and default flag for each format."""
    return [
        {"name": fmt.label, "extension": fmt.extension, "default": fmt is DEFAULT_FORMAT}
        for fmt in FileFormat
    ]


def decode_bytes(fmt: FileFormat, data: bytes) -> MindMap:
    log.debug("decoding %d bytes as %s", len(data), fmt.label)
    try:
        return fmt.codec.decode(data)
    except RecursionError:
        raise DecodeError(f"{fmt.label} document is nested too deeply") from None


def encode_map(fmt: FileFormat, mindmap: MindMap) -> bytes:
    if fmt not in _NON_XML_FORMATS:
        for node in mindmap.walk():
            if _XML_INVALID_CHARS.search(node.content):
                raise EncodeError(f"node {node.id} contains characters {fmt.label} cannot store")
    log.debug("encoding %d nodes as %s", len(mindmap), fmt.label)
    try:
        return fmt.codec.encode(mindmap)
    except RecursionError:
        raise EncodeError(f"map is nested too deeply to write as {fmt.label}") from None


def read_map(path: PathLike) -> MindMap:
    """read and decode a file, choosing the codec from its extension."""
    fmt = classify(path)
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise IoFailure(f"cannot read {path}: {e.strerror or e}") from e
    try:
        return decode_bytes(fmt, data)
    except DecodeError as e:
        e.path = str(path)
        raise


def write_map(path: PathLike, mindmap: MindMap) -> None:
    """encode a map and write it, choosing the codec from the extension."""
    data = encode_map(classify(path), mindmap)
    try:
        Path(path).write_bytes(data)
    except OSError as e:
        raise IoFailure(f"cannot write {path}: {e.strerror or e}") from e
    log.debug("wrote %d bytes to %s", len(data), path)


__all__ = [
    "FileFormat",
    "DEFAULT_FORMAT",
    "classify",
    "supported_formats",
    "decode_bytes",
    "encode_map",
    "read_map",
    "write_map",
]
