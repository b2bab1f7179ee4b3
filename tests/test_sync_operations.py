"""Tests for the LocalUpdateApplier class."""

import logging
import os
import re
from itertools import count
from pathlib import Path
from unittest.mock import Mock

import pytest
from conftest import DRIVE_ID, MODIFIED

from drivemirror.api import GraphClient
from drivemirror.exceptions import GraphNotFoundError
from drivemirror.models import RemoteItem
from drivemirror.retry import RetryPolicy
from drivemirror.sync import (
    ChangeDecision,
    Decision,
    LocalFileRecord,
    LocalUpdateApplier,
    RenameManifest,
    UpdateAction,
)
from drivemirror.sync.operations import MAX_PRESERVE_ATTEMPTS, preserved_name

REMOTE = RemoteItem(id="ITEM1", name="report.docx", size=6, last_modified=MODIFIED)


def _decision(action, path):
    return ChangeDecision(
        action=action,
        reason="test",
        remote_item=REMOTE,
        local_file=LocalFileRecord.from_path(path),
    )


def _writing_client(content=b"remote"):
    """Mock client whose download writes ``content`` to the destination."""
    client = Mock(spec=GraphClient)

    def download(drive_id, item_id, destination, **kwargs):
        Path(destination).write_bytes(content)
        return destination

    client.download_item.side_effect = download
    return client


@pytest.fixture
def manifest(temp_dir):
    return RenameManifest(temp_dir / "logs" / "manifest.csv")


def _applier(client, manifest=None, tokens=None):
    token_source = None
    if tokens is not None:
        token_iter = iter(tokens)
        token_source = lambda: next(token_iter)  # noqa: E731
    return LocalUpdateApplier(
        client,
        RetryPolicy(sleep=Mock()),
        manifest=manifest,
        random_token=token_source,
    )


class TestPreservedName:
    """Tests for preserved_name."""

    def test_keeps_extension(self):
        path = preserved_name(Path("/data/report.docx"), "01234")
        assert path == Path("/data/report_prev_01234.docx")

    def test_without_extension(self):
        assert preserved_name(Path("README"), "00001").name == "README_prev_00001"


class TestApplySkipAndNew:
    """Skip and new-file decisions."""

    def test_skip_touches_nothing(self, temp_dir):
        target = temp_dir / "report.docx"
        target.write_bytes(b"local!")
        client = Mock(spec=GraphClient)

        result = _applier(client).apply(
            _decision(Decision.SKIP, target), target, DRIVE_ID, UpdateAction.OVERWRITE
        )

        assert (result.downloaded, result.skipped, result.errors) == (0, 1, 0)
        client.download_item.assert_not_called()

    def test_new_file_is_downloaded(self, temp_dir):
        """New files are fetched into missing parent folders."""
        target = temp_dir / "a" / "b" / "report.docx"
        client = _writing_client()

        result = _applier(client).apply(
            _decision(Decision.DOWNLOAD_NEW, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
        )

        assert result.downloaded == 1
        assert target.read_bytes() == b"remote"
        assert os.path.getmtime(target) == pytest.approx(MODIFIED.timestamp())
        client.download_item.assert_called_once_with(DRIVE_ID, "ITEM1", target)

    def test_new_file_dry_run(self, temp_dir):
        target = temp_dir / "sub" / "report.docx"
        client = Mock(spec=GraphClient)

        result = _applier(client).apply(
            _decision(Decision.DOWNLOAD_NEW, target),
            target,
            DRIVE_ID,
            UpdateAction.OVERWRITE,
            dry_run=True,
        )

        assert result.downloaded == 1
        client.download_item.assert_not_called()
        assert not (temp_dir / "sub").exists()

    def test_failed_download_counts_error(self, temp_dir):
        target = temp_dir / "report.docx"
        client = Mock(spec=GraphClient)
        client.download_item.side_effect = GraphNotFoundError("gone", 404)

        result = _applier(client).apply(
            _decision(Decision.DOWNLOAD_NEW, target),
            target,
            DRIVE_ID,
            UpdateAction.OVERWRITE,
        )

        assert (result.downloaded, result.errors) == (0, 1)
        assert not target.exists()


class TestApplyOverwrite:
    """Replacing files with the Overwrite action."""

    def test_overwrite_replaces_in_place(self, temp_dir, manifest):
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")

        result = _applier(_writing_client(), manifest).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.OVERWRITE,
        )

        assert result.downloaded == 1
        assert target.read_bytes() == b"remote"
        assert list(temp_dir.glob("*_prev_*")) == []
        assert not manifest.path.exists()


class TestApplyRenameNew:
    """Replacing files with the RenameNew action."""

    def test_previous_version_is_preserved(self, temp_dir, manifest):
        """Old content moves to a _prev_ sibling recorded in the manifest."""
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")

        result = _applier(_writing_client(), manifest, tokens=["04711"]).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
        )

        assert result.downloaded == 1
        preserved = temp_dir / "report_prev_04711.docx"
        assert preserved.read_bytes() == b"old"
        assert target.read_bytes() == b"remote"

        entries = manifest.read()
        assert len(entries) == 1
        assert entries[0].original_name == "report.docx"
        assert entries[0].local_name == "report_prev_04711.docx"
        assert entries[0].item_id == "ITEM1"
        assert entries[0].drive_id == DRIVE_ID

    def test_random_token_is_five_digits(self, temp_dir):
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")

        _applier(_writing_client()).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
        )

        names = sorted(p.name for p in temp_dir.iterdir())
        assert len(names) == 2
        assert re.fullmatch(r"report_prev_\d{5}\.docx", names[1])

    def test_taken_name_draws_new_token(self, temp_dir):
        """An existing preserved file is never overwritten."""
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")
        taken = temp_dir / "report_prev_00001.docx"
        taken.write_bytes(b"older")

        _applier(_writing_client(), tokens=["00001", "00002"]).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
        )

        assert taken.read_bytes() == b"older"
        assert (temp_dir / "report_prev_00002.docx").read_bytes() == b"old"

    def test_no_free_name_counts_error(self, temp_dir):
        """If every drawn name is taken the file is left alone."""
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")
        (temp_dir / "report_prev_00001.docx").write_bytes(b"older")
        client = _writing_client()

        result = _applier(client, tokens=["00001"] * MAX_PRESERVE_ATTEMPTS).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
        )

        assert (result.downloaded, result.errors) == (0, 1)
        assert target.read_bytes() == b"old"
        client.download_item.assert_not_called()

    def test_failed_download_restores_previous(self, temp_dir, manifest):
        """The canonical path keeps the old content if the fetch fails."""
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")
        client = Mock(spec=GraphClient)
        client.download_item.side_effect = OSError("disk full")

        result = _applier(client, manifest, tokens=["00042"]).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
        )

        assert (result.downloaded, result.errors) == (0, 1)
        assert target.read_bytes() == b"old"
        assert not (temp_dir / "report_prev_00042.docx").exists()
        assert manifest.read() == []

    def test_dry_run_preserves_nothing(self, temp_dir, manifest):
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")
        client = Mock(spec=GraphClient)
        tokens = count()

        result = LocalUpdateApplier(
            client,
            RetryPolicy(sleep=Mock()),
            manifest=manifest,
            random_token=lambda: f"{next(tokens):05d}",
        ).apply(
            _decision(Decision.DOWNLOAD_REPLACE, target),
            target,
            DRIVE_ID,
            UpdateAction.RENAME_NEW,
            dry_run=True,
        )

        assert result.downloaded == 1
        assert [p.name for p in temp_dir.iterdir()] == ["report.docx"]
        assert next(tokens) == 0
        client.download_item.assert_not_called()

    def test_manifest_failure_keeps_new_content(self, temp_dir, caplog):
        """An unwritable manifest is one error; the file is still replaced."""
        target = temp_dir / "report.docx"
        target.write_bytes(b"old")
        broken = temp_dir / "manifest.csv"
        broken.mkdir()

        applier = _applier(_writing_client(), RenameManifest(broken), tokens=["00007"])

        with caplog.at_level(logging.ERROR, logger="drivemirror"):
            result = applier.apply(
                _decision(Decision.DOWNLOAD_REPLACE, target),
                target,
                DRIVE_ID,
                UpdateAction.RENAME_NEW,
                task_label="task #3",
            )

        assert (result.downloaded, result.errors) == (1, 1)
        assert target.read_bytes() == b"remote"
        assert (temp_dir / "report_prev_00007.docx").read_bytes() == b"old"
        assert any(
            m.startswith("ERROR [task #3] could not record report.docx")
            for m in caplog.messages
        )
