"""Remote path building and local name sanitization."""

import hashlib
import re
from collections.abc import Iterable
from urllib.parse import quote, unquote

# Characters that are illegal in file names on the host filesystems we target
_ILLEGAL_CHARS = re.compile(r'[\\/*?:"<>|]')

# Length of the id-derived suffix appended to sanitized names
ID_SUFFIX_LENGTH = 8


class GraphPath:
    """A remote path made of independently percent-encoded segments.

    Segments are kept decoded; ``encoded`` quotes each one on its own so
    reserved characters such as ``:``, ``#``, ``%`` or spaces inside a
    folder name never change the structure of the URL.

    Examples:
        >>> GraphPath.parse("Shared Documents/Q1: plans").encoded
        'Shared%20Documents/Q1%3A%20plans'
    """

    def __init__(self, segments: Iterable[str] = ()):
        self.segments: tuple[str, ...] = tuple(s for s in segments if s)

    @classmethod
    def parse(cls, path: str) -> "GraphPath":
        """Split a human-readable path on ``/`` (or ``\\``)."""
        return cls(path.replace("\\", "/").split("/"))

    @classmethod
    def from_encoded(cls, encoded: str) -> "GraphPath":
        """Rebuild a path from its encoded form."""
        return cls(unquote(segment) for segment in encoded.split("/"))

    @property
    def encoded(self) -> str:
        return "/".join(quote(segment, safe="") for segment in self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    def __truediv__(self, segment: str) -> "GraphPath":
        return GraphPath((*self.segments, segment))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GraphPath) and self.segments == other.segments

    def __hash__(self) -> int:
        return hash(self.segments)

    def __str__(self) -> str:
        return "/".join(self.segments)

    def __repr__(self) -> str:
        return f"GraphPath({str(self)!r})"


def id_suffix(item_id: str) -> str:
    """Derive a short, stable suffix from a remote item id."""
    return hashlib.sha1(item_id.encode("utf-8")).hexdigest()[:ID_SUFFIX_LENGTH]


def sanitize_name(name: str, item_id: str) -> str:
    """Return a filesystem-safe local name for a remote item.

    Illegal characters are replaced with ``_``. When anything was replaced,
    ``_`` plus an id-derived suffix is appended so that two different remote
    names that sanitize to the same string stay distinct locally.

    Args:
        name: Remote item name
        item_id: Remote item id

    Returns:
        The unchanged name, or the sanitized name with its suffix

    Examples:
        >>> sanitize_name("report.docx", "ID1")
        'report.docx'
        >>> sanitize_name("Report:Q1?.docx", "ID1")  # doctest: +ELLIPSIS
        'Report_Q1_.docx_...'
    """
    safe = _ILLEGAL_CHARS.sub("_", name)
    if safe == name:
        return name
    return f"{safe}_{id_suffix(item_id)}"
