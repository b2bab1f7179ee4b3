"""Utility functions for drivemirror."""

import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 10
DEFAULT_RETRY_DELAY: float = 10.0  # seconds, multiplied by the attempt number

# Children returned per listing page
DEFAULT_PAGE_SIZE: int = 200

# Read size used when hashing local files (1 MB)
HASH_CHUNK_SIZE: int = 1024 * 1024

# Algorithms that can be reproduced locally, strongest first
STRONG_HASH_ALGORITHMS: tuple[str, ...] = ("sha256", "sha1")


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp from the Graph API.

    Args:
        timestamp_str: Timestamp string (e.g., "2025-01-15T10:30:00Z" or
            "2025-01-15T10:30:00.1234567Z")

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        # Graph may send 7 fractional digits, fromisoformat accepts at most 6
        if "." in timestamp_str:
            head, _, tail = timestamp_str.partition(".")
            digits = ""
            for char in tail:
                if not char.isdigit():
                    break
                digits += char
            offset = tail[len(digits) :]
            timestamp_str = f"{head}.{digits[:6].ljust(6, '0')}{offset}"

        dt = datetime.fromisoformat(timestamp_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError):
        return None


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Local file utilities
# =============================================================================


def compute_file_hash(path: Path, algorithm: str) -> str:
    """Hash a local file with the given algorithm.

    Args:
        path: File to hash
        algorithm: hashlib algorithm name ("sha256" or "sha1")

    Returns:
        Lower-case hex digest
    """
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def set_file_mtime(path: Path, modified: datetime) -> None:
    """Set a file's access and modification time to ``modified``."""
    timestamp = modified.timestamp()
    os.utime(path, (timestamp, timestamp))
