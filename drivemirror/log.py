"""Run log setup.

The run log is a plain text file that a viewer can tail while a run is in
progress. Every record is one complete line:

    2025-01-15 10:30:00 [INFO] DOWNLOAD /data/Docs/report.docx
"""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Shorter level names the log viewer recognizes
_LEVEL_NAMES = {"WARNING": "WARN", "CRITICAL": "ERROR"}


class RunLogFormatter(logging.Formatter):
    """Formatter writing ``WARN`` instead of ``WARNING``."""

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = _LEVEL_NAMES.get(original, original)
        try:
            return super().format(record)
        finally:
            record.levelname = original


class AppendingFileHandler(logging.Handler):
    """Writes each record by opening the file for append and closing it.

    Nothing is held open between records, so readers tailing the file only
    ever see whole lines, and the file can be rotated or removed between
    runs.
    """

    def __init__(self, filename: Path, encoding: str = "utf-8"):
        super().__init__()
        self.filename = filename
        self.encoding = encoding

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record).replace("\n", " | ")
            with open(self.filename, "a", encoding=self.encoding) as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)


def setup_logging(
    log_file: Optional[Path] = None,
    verbose: bool = False,
    console: bool = True,
) -> None:
    """Configure the ``drivemirror`` logger.

    Args:
        log_file: Run log to append to (None for console only)
        verbose: Include DEBUG records
        console: Also log to stderr
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger("drivemirror")
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates across repeated runs
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = RunLogFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = AppendingFileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    logger.propagate = False
