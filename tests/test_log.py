"""Tests for run log setup and the rename manifest."""

import logging
import re
from datetime import datetime, timezone

import pytest

from drivemirror.log import setup_logging
from drivemirror.sync import RenameManifest
from drivemirror.sync.manifest import MANIFEST_HEADER


@pytest.fixture
def app_logger():
    """Restore the drivemirror logger after a test reconfigures it."""
    logger = logging.getLogger("drivemirror")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_complete_lines(self, temp_dir, app_logger):
        log_file = temp_dir / "logs" / "run.log"
        setup_logging(log_file, console=False)

        logging.getLogger("drivemirror.sync.engine").info("DOWNLOAD /a/b.txt")
        logging.getLogger("drivemirror.retry").warning("Throttled")

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert re.fullmatch(
            r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \[INFO\] DOWNLOAD /a/b.txt",
            lines[0],
        )
        assert lines[1].endswith("[WARN] Throttled")

    def test_appends_across_runs(self, temp_dir, app_logger):
        log_file = temp_dir / "run.log"
        setup_logging(log_file, console=False)
        app_logger.info("first")
        setup_logging(log_file, console=False)
        app_logger.info("second")

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert [line.split("] ", 1)[1] for line in lines] == ["first", "second"]

    def test_debug_only_when_verbose(self, temp_dir, app_logger):
        log_file = temp_dir / "run.log"
        setup_logging(log_file, console=False)
        app_logger.debug("hidden")
        setup_logging(log_file, verbose=True, console=False)
        app_logger.debug("shown")

        content = log_file.read_text(encoding="utf-8")
        assert "hidden" not in content
        assert "[DEBUG] shown" in content

    def test_multiline_messages_stay_on_one_line(self, temp_dir, app_logger):
        log_file = temp_dir / "run.log"
        setup_logging(log_file, console=False)
        app_logger.error("ERROR first\nsecond")

        assert len(log_file.read_text(encoding="utf-8").splitlines()) == 1

    def test_no_duplicate_handlers(self, temp_dir, app_logger):
        setup_logging(temp_dir / "run.log")
        setup_logging(temp_dir / "run.log")

        assert len(app_logger.handlers) == 2


class TestRenameManifest:
    """Tests for RenameManifest."""

    def test_header_written_once(self, temp_dir):
        manifest = RenameManifest(temp_dir / "logs" / "manifest.csv")
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        manifest.append("a:b.txt", "a_b.txt_1234abcd", "ID1", "D1", timestamp=when)
        manifest.append("c.txt", "c_prev_00001.txt", "ID2", "D1", timestamp=when)

        lines = manifest.path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == ",".join(MANIFEST_HEADER)
        assert lines[1] == "2024-05-01T12:00:00+00:00,a:b.txt,a_b.txt_1234abcd,ID1,D1"
        assert len(lines) == 3

    def test_read_round_trip(self, temp_dir):
        manifest = RenameManifest(temp_dir / "manifest.csv")
        entry = manifest.append('odd, "name".txt', "odd_name.txt", "ID1", "D1")

        entries = manifest.read()

        assert entries == [entry]
        assert entries[0].original_name == 'odd, "name".txt'

    def test_read_missing_file(self, temp_dir):
        assert RenameManifest(temp_dir / "none.csv").read() == []
