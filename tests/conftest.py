"""Shared fixtures for drivemirror tests."""

import hashlib
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

from drivemirror.exceptions import GraphNotFoundError
from drivemirror.models import ChildrenPage, ContentHash, RemoteItem

DRIVE_ID = "b!drive"
ROOT_ID = "ROOT"
MODIFIED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeDrive:
    """In-memory stand-in for GraphClient's listing and download calls."""

    def __init__(self, page_size: int = 2):
        self.page_size = page_size
        self.children: dict[str, list[RemoteItem]] = {ROOT_ID: []}
        self.contents: dict[str, bytes] = {}
        self.list_calls: list[tuple[str, Optional[str]]] = []
        self.download_calls: list[tuple[str, Path]] = []
        self.failing_folders: set[str] = set()

    def add_folder(self, parent_id: str, item_id: str, name: str) -> RemoteItem:
        item = RemoteItem(id=item_id, name=name, is_folder=True)
        self.children[parent_id].append(item)
        self.children[item_id] = []
        return item

    def add_file(
        self,
        parent_id: str,
        item_id: str,
        name: str,
        content: bytes,
        modified: Optional[datetime] = MODIFIED,
        with_hash: bool = True,
        with_size: bool = True,
        is_package: bool = False,
    ) -> RemoteItem:
        content_hash = None
        if with_hash:
            content_hash = ContentHash(
                "sha256", hashlib.sha256(content).hexdigest().upper()
            )
        item = RemoteItem(
            id=item_id,
            name=name,
            is_package=is_package,
            size=len(content) if with_size else None,
            last_modified=modified,
            hash=content_hash,
        )
        self.children[parent_id].append(item)
        self.contents[item_id] = content
        return item

    def list_children(
        self,
        drive_id: str,
        item_id: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> ChildrenPage:
        self.list_calls.append((item_id or "", cursor))
        if cursor:
            item_id, offset_str = cursor.rsplit("@", 1)
            offset = int(offset_str)
        else:
            offset = 0
        assert item_id is not None
        if item_id in self.failing_folders:
            raise GraphNotFoundError("Resource not found", status_code=404)

        items = self.children[item_id]
        page = items[offset : offset + self.page_size]
        next_offset = offset + self.page_size
        next_cursor = f"{item_id}@{next_offset}" if next_offset < len(items) else None
        return ChildrenPage(items=page, next_cursor=next_cursor)

    def download_item(
        self, drive_id: str, item_id: str, destination: Path, **kwargs
    ) -> Path:
        self.download_calls.append((item_id, destination))
        destination.write_bytes(self.contents[item_id])
        return destination


def snapshot(directory: Path) -> dict[str, tuple[int, float]]:
    """Every path below ``directory`` with its size and mtime."""
    return {
        path.relative_to(directory).as_posix(): (
            path.stat().st_size if path.is_file() else -1,
            path.stat().st_mtime,
        )
        for path in sorted(directory.rglob("*"))
    }


@pytest.fixture
def fake_drive():
    """Provide an empty fake drive."""
    return FakeDrive()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
