"""Data models for Graph drive items."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .utils import STRONG_HASH_ALGORITHMS, parse_iso_timestamp

# Graph hash field name for each algorithm, strongest first
_HASH_FIELDS: tuple[tuple[str, str], ...] = (
    ("sha256", "sha256Hash"),
    ("sha1", "sha1Hash"),
    ("quickxor", "quickXorHash"),
    ("crc32", "crc32Hash"),
)


@dataclass(frozen=True)
class ContentHash:
    """A content hash tagged with the algorithm that produced it."""

    algorithm: str
    """Algorithm name ("sha256", "sha1", "quickxor" or "crc32")"""

    value: str
    """Digest as sent by the API"""

    @property
    def is_strong(self) -> bool:
        """Whether the same hash can be computed over a local file."""
        return self.algorithm in STRONG_HASH_ALGORITHMS

    def matches(self, digest: str) -> bool:
        """Compare against a local hex digest, ignoring case."""
        return self.value.lower() == digest.lower()


@dataclass(frozen=True)
class RemoteItem:
    """One entry returned by a folder listing."""

    id: str
    """Stable item id, unique within its drive"""

    name: str
    """Item name as shown remotely"""

    is_folder: bool = False
    """Whether the item is a folder"""

    is_package: bool = False
    """Whether the item is a package (e.g. a OneNote notebook)"""

    size: Optional[int] = None
    """Size in bytes"""

    last_modified: Optional[datetime] = None
    """Last modification time (UTC)"""

    hash: Optional[ContentHash] = None
    """Strongest hash the API reported, if any"""

    @property
    def strong_hash(self) -> Optional[ContentHash]:
        """The hash if it can be reproduced locally, else None."""
        if self.hash is not None and self.hash.is_strong:
            return self.hash
        return None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteItem":
        """Create a RemoteItem from a Graph ``driveItem`` object.

        Args:
            data: driveItem JSON object

        Returns:
            RemoteItem instance
        """
        hashes = (data.get("file") or {}).get("hashes") or {}
        content_hash = None
        for algorithm, key in _HASH_FIELDS:
            if hashes.get(key):
                content_hash = ContentHash(algorithm=algorithm, value=hashes[key])
                break

        size = data.get("size")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            is_folder="folder" in data,
            is_package="package" in data,
            size=int(size) if size is not None else None,
            last_modified=parse_iso_timestamp(data.get("lastModifiedDateTime")),
            hash=content_hash,
        )


@dataclass
class ChildrenPage:
    """One page of a folder listing."""

    items: list[RemoteItem] = field(default_factory=list)
    """Items on this page"""

    next_cursor: Optional[str] = None
    """Opaque cursor for the next page, None on the last page"""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ChildrenPage":
        """Create a ChildrenPage from a Graph collection response.

        Args:
            data: Response with ``value`` and optional ``@odata.nextLink``

        Returns:
            ChildrenPage instance
        """
        return cls(
            items=[
                RemoteItem.from_api_response(item) for item in data.get("value", [])
            ],
            next_cursor=data.get("@odata.nextLink") or None,
        )
