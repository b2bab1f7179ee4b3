"""Filesystem updates for downloaded files."""

import logging
import random
from pathlib import Path
from typing import Callable, Optional

from ..api import GraphClient
from ..exceptions import GraphAPIError
from ..retry import RetryPolicy
from ..utils import format_size, set_file_mtime
from .comparator import ChangeDecision, Decision
from .manifest import RenameManifest
from .modes import UpdateAction
from .stats import SyncResult

logger = logging.getLogger(__name__)

# Attempts at finding a free name for a preserved file
MAX_PRESERVE_ATTEMPTS = 20

# Shown instead of the random digits in dry-run messages
DRY_RUN_PLACEHOLDER = "XXXXX"


def preserved_name(path: Path, token: str) -> Path:
    """Sibling path that keeps a previous version of ``path``.

    Examples:
        >>> preserved_name(Path("/data/report.docx"), "01234")
        PosixPath('/data/report_prev_01234.docx')
    """
    return path.with_name(f"{path.stem}_prev_{token}{path.suffix}")


class LocalUpdateApplier:
    """Applies change decisions to the local filesystem."""

    def __init__(
        self,
        client: GraphClient,
        retry: RetryPolicy,
        manifest: Optional[RenameManifest] = None,
        random_token: Optional[Callable[[], str]] = None,
    ):
        """Initialize the applier.

        Args:
            client: Graph API client used to fetch content
            retry: Retry policy wrapped around every fetch
            manifest: Rename manifest for preserved files
            random_token: Source of the 5-digit preserve token (for tests)
        """
        self.client = client
        self.retry = retry
        self.manifest = manifest
        self._random_token = random_token or (lambda: f"{random.randint(0, 99999):05d}")

    def apply(
        self,
        decision: ChangeDecision,
        target_path: Path,
        drive_id: str,
        action: UpdateAction,
        dry_run: bool = False,
        task_label: str = "task",
    ) -> SyncResult:
        """Carry out one decision.

        Args:
            decision: Decision from the change detector
            target_path: Canonical local path of the file
            drive_id: Drive that owns the remote item
            action: Update action for replaced files
            dry_run: If True, only log what would be done
            task_label: Prefix of error and warning lines (e.g. "task #2")

        Returns:
            Counters for this one file
        """
        result = SyncResult()

        if decision.action is Decision.SKIP:
            logger.info("SKIP %s (%s)", target_path, decision.reason)
            result.skipped += 1
            return result

        if decision.action is Decision.DOWNLOAD_REPLACE:
            logger.info("CHANGED %s (%s)", target_path, decision.reason)
            if action.preserves_previous:
                if dry_run:
                    placeholder = preserved_name(target_path, DRY_RUN_PLACEHOLDER)
                    logger.info(
                        "WOULD PRESERVE %s as %s", target_path, placeholder.name
                    )
                else:
                    return self._replace_preserving(
                        decision, target_path, drive_id, task_label
                    )

        if dry_run:
            logger.info("WOULD DOWNLOAD %s", target_path)
            result.downloaded += 1
            return result

        if self._download(decision, target_path, drive_id, task_label):
            result.downloaded += 1
        else:
            result.errors += 1
        return result

    def _replace_preserving(
        self,
        decision: ChangeDecision,
        target_path: Path,
        drive_id: str,
        task_label: str,
    ) -> SyncResult:
        """Move the old file aside, download, and record the preserved name.

        The manifest row is only written once the new content is in place;
        a failed download puts the old file back and records nothing.
        """
        result = SyncResult()
        preserved = self._preserve_previous(target_path, task_label)
        if preserved is None:
            result.errors += 1
            return result

        if not self._download(decision, target_path, drive_id, task_label):
            self._restore_previous(preserved, target_path, task_label)
            result.errors += 1
            return result

        result.downloaded += 1
        if self.manifest is not None:
            try:
                self.manifest.append(
                    original_name=target_path.name,
                    local_name=preserved.name,
                    item_id=decision.remote_item.id,
                    drive_id=drive_id,
                )
            except OSError as e:
                logger.error(
                    "ERROR [%s] could not record %s as %s in the manifest: %s",
                    task_label,
                    target_path.name,
                    preserved.name,
                    e,
                )
                result.errors += 1
        return result

    def _download(
        self,
        decision: ChangeDecision,
        target_path: Path,
        drive_id: str,
        task_label: str,
    ) -> bool:
        """Fetch the remote content to ``target_path``.

        Returns:
            True on success, False if the download failed (already logged)
        """
        remote = decision.remote_item
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            self.retry.execute(
                lambda: self.client.download_item(drive_id, remote.id, target_path),
                description=f"download of {remote.name}",
            )
            if remote.last_modified is not None:
                set_file_mtime(target_path, remote.last_modified)
        except (GraphAPIError, OSError) as e:
            logger.warning(
                "[%s] download failed for %s: %s", task_label, target_path, e
            )
            return False

        logger.info("DOWNLOAD %s", target_path)
        if remote.size is not None:
            logger.debug("Fetched %s of %s", format_size(remote.size), remote.name)
        return True

    def _preserve_previous(self, target_path: Path, task_label: str) -> Optional[Path]:
        """Move the current local file out of the way.

        Returns:
            The preserved path, or None if the file could not be moved
        """
        for _ in range(MAX_PRESERVE_ATTEMPTS):
            candidate = preserved_name(target_path, self._random_token())
            if not candidate.exists():
                break
        else:
            logger.error(
                "ERROR [%s] no free name to preserve %s, not downloading",
                task_label,
                target_path,
            )
            return None

        try:
            target_path.rename(candidate)
        except OSError as e:
            logger.error(
                "ERROR [%s] could not preserve %s: %s", task_label, target_path, e
            )
            return None

        logger.info("PRESERVE %s as %s", target_path, candidate.name)
        return candidate

    def _restore_previous(
        self, preserved: Path, target_path: Path, task_label: str
    ) -> None:
        """Put a preserved file back after its replacement failed."""
        if target_path.exists():
            return
        try:
            preserved.rename(target_path)
            logger.info("RESTORED %s from %s", target_path, preserved.name)
        except OSError as e:
            logger.error(
                "ERROR [%s] could not restore %s from %s: %s",
                task_label,
                target_path,
                preserved.name,
                e,
            )
