"""Local file state used for change detection."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..utils import compute_file_hash


@dataclass
class LocalFileRecord:
    """The on-disk counterpart of a remote file."""

    path: Path
    """Absolute path of the local file"""

    exists: bool
    """Whether a regular file exists at the path"""

    size: int = 0
    """File size in bytes"""

    mtime: float = 0.0
    """Last modification time (Unix timestamp, i.e. UTC)"""

    _hashes: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_path(cls, path: Path) -> "LocalFileRecord":
        """Read the current state of ``path``.

        Args:
            path: Local path, which may not exist

        Returns:
            LocalFileRecord instance
        """
        try:
            stat = path.stat()
        except FileNotFoundError:
            return cls(path=path, exists=False)
        if not path.is_file():
            return cls(path=path, exists=False)
        return cls(path=path, exists=True, size=stat.st_size, mtime=stat.st_mtime)

    def content_hash(self, algorithm: str) -> Optional[str]:
        """Hash the file with ``algorithm``, computing it at most once."""
        if not self.exists:
            return None
        if algorithm not in self._hashes:
            self._hashes[algorithm] = compute_file_hash(self.path, algorithm)
        return self._hashes[algorithm]
