"""magic-byte rules for picking a physical sub-variant before decoding.

each codec declares an ordered tuple of (prefix, variant) rules and a fallback
variant. the first prefix that matches wins.
"""

from __future__ import annotations

from enum import Enum


ZIP_MAGIC = b"PK\x03\x04"
BINARY_PLIST_MAGIC = b"bplist00"


class Variant(Enum):
    ZIP = "zip"
    BINARY_PLIST = "binary-plist"
    TEXT = "text"


SniffRules = tuple[tuple[bytes, Variant], ...]

ZIP_OR_TEXT: SniffRules = ((ZIP_MAGIC, Variant.ZIP),)
ZIP_OR_PLIST: SniffRules = (
    (ZIP_MAGIC, Variant.ZIP),
    (BINARY_PLIST_MAGIC, Variant.BINARY_PLIST),
)


def sniff(data: bytes, rules: SniffRules, default: Variant = Variant.TEXT) -> Variant:
    """return the variant of the first rule whose prefix starts data."""
    for prefix, variant in rules:
        if data.startswith(prefix):
            return variant
    return default
