"""typed failures raised by the document model, codecs and session.

every command either succeeds or raises one of these. the api layer maps
`kind` to an http status.
"""

from __future__ import annotations

from typing import Optional


class BrainmapError(Exception):
    """base class for all expected failures."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(BrainmapError):
    """an identifier did not resolve to a node."""

    kind = "not_found"

    def __init__(self, node_id: str) -> None:
        super().__init__(f"node not found: {node_id}")
        self.node_id = node_id


class InvalidOperation(BrainmapError):
    """a structurally disallowed mutation, e.g. deleting the root."""

    kind = "invalid_operation"


class DecodeError(BrainmapError):
    """malformed or unrecognized on-disk content.

    `location` names the offending element or key (e.g. `map/node[2]/font`),
    `path` the file being read when known.
    """

    kind = "decode_error"

    def __init__(
        self,
        message: str,
        location: Optional[str] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.location = location
        self.path = path

    def __str__(self) -> str:
        parts = []
        if self.path:
            parts.append(self.path)
        if self.location:
            parts.append(f"at {self.location}")
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class EncodeError(BrainmapError):
    """document state cannot be represented in the target format."""

    kind = "encode_error"


class UnsupportedVariant(BrainmapError):
    """recognized format family, unimplemented physical sub-variant."""

    kind = "unsupported_variant"

    def __init__(self, format_name: str, variant: str) -> None:
        super().__init__(f"{format_name} {variant} variant is not supported")
        self.format_name = format_name
        self.variant = variant


class IoFailure(BrainmapError):
    """underlying read/write/filesystem failure."""

    kind = "io_failure"


class NoActivePath(BrainmapError):
    """save requested without a path and none was recorded before."""

    kind = "no_active_path"

    def __init__(self) -> None:
        super().__init__("document has never been saved or loaded; a path is required")


class LockPoisoned(BrainmapError):
    """a shared-state guard was left inconsistent by an earlier failure."""

    kind = "lock_poisoned"

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} lock was poisoned by an earlier failure")
        self.name = name
