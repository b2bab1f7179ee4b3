"""Append-only record of sanitized and preserved local file names."""

import csv
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MANIFEST_HEADER = ["Timestamp", "OriginalName", "LocalName", "ItemId", "DriveId"]


@dataclass(frozen=True)
class RenameManifestEntry:
    """One name mapping between a remote item and its local file."""

    timestamp: str
    """ISO timestamp (UTC) of the event"""

    original_name: str
    """Name before sanitizing or preserving"""

    local_name: str
    """Name the file has locally"""

    item_id: str
    """Remote item id"""

    drive_id: str
    """Drive that owns the item"""

    def to_row(self) -> list[str]:
        return [
            self.timestamp,
            self.original_name,
            self.local_name,
            self.item_id,
            self.drive_id,
        ]

    @classmethod
    def from_row(cls, row: list[str]) -> "RenameManifestEntry":
        return cls(*row[: len(MANIFEST_HEADER)])


class RenameManifest:
    """CSV file of name mappings, only ever appended to.

    Each record is written by opening the file in append mode, writing one
    complete line and closing the file again, so readers never see a
    partial row.
    """

    def __init__(self, path: Path):
        """Initialize the manifest.

        Args:
            path: CSV file location (created on first record)
        """
        self.path = path

    def append(
        self,
        original_name: str,
        local_name: str,
        item_id: str,
        drive_id: str,
        timestamp: Optional[datetime] = None,
    ) -> RenameManifestEntry:
        """Append one record.

        Args:
            original_name: Name before sanitizing or preserving
            local_name: Resulting local name
            item_id: Remote item id
            drive_id: Remote drive id
            timestamp: Event time (defaults to now, UTC)

        Returns:
            The written entry
        """
        when = timestamp or datetime.now(timezone.utc)
        entry = RenameManifestEntry(
            timestamp=when.isoformat(timespec="seconds"),
            original_name=original_name,
            local_name=local_name,
            item_id=item_id,
            drive_id=drive_id,
        )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if write_header:
                writer.writerow(MANIFEST_HEADER)
            writer.writerow(entry.to_row())

        logger.debug("Manifest: %s -> %s (%s)", original_name, local_name, item_id)
        return entry

    def read(self) -> list[RenameManifestEntry]:
        """Read every record, oldest first."""
        if not self.path.exists():
            return []
        with open(self.path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        return [
            RenameManifestEntry.from_row(row)
            for row in rows
            if row and row != MANIFEST_HEADER
        ]
