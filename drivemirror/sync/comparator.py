"""Change detection between remote items and local files."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ..models import ContentHash, RemoteItem
from .local import LocalFileRecord

logger = logging.getLogger(__name__)

# Allowed difference between local and remote modification times, in seconds.
# Absorbs timestamp rounding of local filesystems.
MTIME_TOLERANCE = 2.0


class Decision(str, Enum):
    """What to do with one remote file."""

    SKIP = "skip"
    """Local copy is up to date"""

    DOWNLOAD_NEW = "download_new"
    """No local file yet"""

    DOWNLOAD_REPLACE = "download_replace"
    """Local file exists but its content changed remotely"""


@dataclass
class ChangeDecision:
    """Represents a decision about one remote file."""

    action: Decision
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    remote_item: RemoteItem
    """Remote item the decision is about"""

    local_file: Optional[LocalFileRecord]
    """Local file state the decision was based on"""

    @property
    def needs_download(self) -> bool:
        return self.action is not Decision.SKIP


class ChangeDetector:
    """Decides whether a remote file must be downloaded.

    The comparison uses the strongest signal the remote metadata offers and
    never mixes tiers:

    1. no local file: download
    2. strong content hash (SHA-256, else SHA-1): compare hashes
    3. size and modification time: both must match
    4. size only: must match

    A weaker tier is used only when the remote field needed by the
    stronger one is missing, never because the stronger one disagreed.
    """

    def __init__(self, mtime_tolerance: float = MTIME_TOLERANCE):
        """Initialize change detector.

        Args:
            mtime_tolerance: Allowed timestamp difference in seconds
        """
        self.mtime_tolerance = mtime_tolerance

    def decide(self, remote: RemoteItem, local_path: Path) -> ChangeDecision:
        """Compare a remote file with the local file at ``local_path``.

        Args:
            remote: Remote file item (never a folder)
            local_path: Where the file lives locally

        Returns:
            ChangeDecision for this file
        """
        if remote.is_folder:
            raise ValueError(f"Folders are not compared: {remote.name}")

        local_file = LocalFileRecord.from_path(local_path)
        if not local_file.exists:
            return ChangeDecision(
                action=Decision.DOWNLOAD_NEW,
                reason="New remote file",
                remote_item=remote,
                local_file=local_file,
            )

        strong_hash = remote.strong_hash
        if strong_hash is not None:
            return self._compare_hash(remote, strong_hash, local_file)
        if remote.size is not None and remote.last_modified is not None:
            return self._compare_size_and_date(
                remote, remote.last_modified, local_file
            )
        if remote.last_modified is None:
            return self._compare_size(remote, local_file)

        # Timestamp without size: nothing to confirm the content with
        return ChangeDecision(
            action=Decision.DOWNLOAD_REPLACE,
            reason="Remote size unavailable",
            remote_item=remote,
            local_file=local_file,
        )

    def _compare_hash(
        self,
        remote: RemoteItem,
        remote_hash: ContentHash,
        local_file: LocalFileRecord,
    ) -> ChangeDecision:
        """Compare using the remote's strong content hash."""
        local_hash = local_file.content_hash(remote_hash.algorithm)
        algorithm = remote_hash.algorithm.upper()

        if local_hash is not None and remote_hash.matches(local_hash):
            return ChangeDecision(
                action=Decision.SKIP,
                reason=f"{algorithm} hash matches",
                remote_item=remote,
                local_file=local_file,
            )
        return ChangeDecision(
            action=Decision.DOWNLOAD_REPLACE,
            reason=f"{algorithm} hash differs",
            remote_item=remote,
            local_file=local_file,
        )

    def _compare_size_and_date(
        self,
        remote: RemoteItem,
        modified: datetime,
        local_file: LocalFileRecord,
    ) -> ChangeDecision:
        """Compare size and modification time (no strong hash available)."""
        size_matches = local_file.size == remote.size
        time_diff = abs(local_file.mtime - modified.timestamp())
        date_matches = time_diff < self.mtime_tolerance

        if size_matches and date_matches:
            return ChangeDecision(
                action=Decision.SKIP,
                reason="Size and date match",
                remote_item=remote,
                local_file=local_file,
            )

        mismatches = []
        if not size_matches:
            mismatches.append(f"size {local_file.size} vs {remote.size}")
        if not date_matches:
            mismatches.append(f"date differs by {time_diff:.0f}s")
        return ChangeDecision(
            action=Decision.DOWNLOAD_REPLACE,
            reason="Changed: " + ", ".join(mismatches),
            remote_item=remote,
            local_file=local_file,
        )

    def _compare_size(
        self, remote: RemoteItem, local_file: LocalFileRecord
    ) -> ChangeDecision:
        """Compare size alone, the weakest signal."""
        if remote.size is not None and local_file.size == remote.size:
            return ChangeDecision(
                action=Decision.SKIP,
                reason="Size matches (no hash or date available)",
                remote_item=remote,
                local_file=local_file,
            )
        return ChangeDecision(
            action=Decision.DOWNLOAD_REPLACE,
            reason=f"Changed: size {local_file.size} vs {remote.size}",
            remote_item=remote,
            local_file=local_file,
        )
