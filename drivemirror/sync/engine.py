"""Recursive mirroring of a remote folder tree."""

import logging
import time
from pathlib import Path
from typing import Optional

from ..api import GraphClient
from ..exceptions import GraphAPIError
from ..models import ChildrenPage, RemoteItem
from ..paths import sanitize_name
from ..retry import RetryPolicy
from .comparator import ChangeDetector
from .manifest import RenameManifest
from .modes import UpdateAction
from .operations import LocalUpdateApplier
from .stats import SyncResult

logger = logging.getLogger(__name__)


class TreeWalker:
    """Walks a remote folder depth-first and mirrors it locally.

    Each folder is listed page by page. Files go through the change
    detector and the update applier, subfolders are walked recursively.
    Every call returns its own :class:`SyncResult`, so a failing subtree
    only loses its own remaining items.
    """

    def __init__(
        self,
        client: GraphClient,
        retry: Optional[RetryPolicy] = None,
        manifest: Optional[RenameManifest] = None,
        detector: Optional[ChangeDetector] = None,
        applier: Optional[LocalUpdateApplier] = None,
    ):
        """Initialize tree walker.

        Args:
            client: Graph API client
            retry: Retry policy for listings and downloads
            manifest: Rename manifest for sanitized and preserved names
            detector: Change detector (default: ChangeDetector())
            applier: Update applier (default: built from client and retry)
        """
        self.client = client
        self.retry = retry or RetryPolicy()
        self.manifest = manifest
        self.detector = detector or ChangeDetector()
        self.applier = applier or LocalUpdateApplier(
            client, self.retry, manifest=manifest
        )

    def walk(
        self,
        drive_id: str,
        root_item_id: str,
        local_base: Path,
        action: UpdateAction,
        dry_run: bool = False,
        task_label: str = "task",
    ) -> SyncResult:
        """Mirror the children of ``root_item_id`` into ``local_base``.

        Args:
            drive_id: Drive that owns the tree
            root_item_id: Folder whose contents are mirrored
            local_base: Local directory matching the folder
            action: Update action for changed files
            dry_run: If True, list and compare but write nothing
            task_label: Prefix of error and warning lines (e.g. "task #2")

        Returns:
            Counters for this folder and everything below it
        """
        start_time = time.time()
        result = SyncResult()
        cursor: Optional[str] = None
        first_page = True

        while first_page or cursor:
            try:
                page = self._fetch_page(drive_id, root_item_id, cursor)
            except GraphAPIError as e:
                logger.error(
                    "ERROR [%s] listing %s failed, skipping this folder: %s",
                    task_label,
                    local_base,
                    e,
                )
                result.errors += 1
                return result

            first_page = False
            cursor = page.next_cursor
            for item in page.items:
                result.merge(
                    self._process_item(
                        drive_id, item, local_base, action, dry_run, task_label
                    )
                )

        logger.debug(
            "Walked %s in %.2fs (%s)", local_base, time.time() - start_time, result
        )
        return result

    def _fetch_page(
        self, drive_id: str, item_id: str, cursor: Optional[str]
    ) -> ChildrenPage:
        return self.retry.execute(
            lambda: self.client.list_children(drive_id, item_id, cursor=cursor),
            description=f"listing of {item_id}",
        )

    def _process_item(
        self,
        drive_id: str,
        item: RemoteItem,
        local_base: Path,
        action: UpdateAction,
        dry_run: bool,
        task_label: str,
    ) -> SyncResult:
        """Handle one child of a listing page."""
        if item.is_package:
            logger.warning(
                "[%s] SKIP %s (package item, cannot be downloaded)",
                task_label,
                local_base / item.name,
            )
            return SyncResult(skipped=1)

        result = SyncResult()
        local_name = sanitize_name(item.name, item.id)
        if local_name != item.name:
            logger.info("RENAMED '%s' -> '%s'", item.name, local_name)
            if not dry_run and not self._record_rename(
                drive_id, item, local_name, task_label
            ):
                result.errors += 1
        local_path = local_base / local_name

        if item.is_folder:
            if not dry_run:
                try:
                    local_path.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    logger.error(
                        "ERROR [%s] cannot create folder %s: %s",
                        task_label,
                        local_path,
                        e,
                    )
                    result.errors += 1
                    return result
            result.merge(
                self.walk(drive_id, item.id, local_path, action, dry_run, task_label)
            )
            return result

        try:
            decision = self.detector.decide(item, local_path)
        except OSError as e:
            logger.error(
                "ERROR [%s] cannot read local file %s: %s", task_label, local_path, e
            )
            result.errors += 1
            return result
        result.merge(
            self.applier.apply(
                decision, local_path, drive_id, action, dry_run, task_label
            )
        )
        return result

    def _record_rename(
        self, drive_id: str, item: RemoteItem, local_name: str, task_label: str
    ) -> bool:
        """Write the manifest row for a sanitized name.

        Returns:
            False if the row could not be written (already logged)
        """
        if self.manifest is None:
            return True
        try:
            self.manifest.append(
                original_name=item.name,
                local_name=local_name,
                item_id=item.id,
                drive_id=drive_id,
            )
        except OSError as e:
            logger.error(
                "ERROR [%s] could not record %s as %s in the manifest: %s",
                task_label,
                item.name,
                local_name,
                e,
            )
            return False
        return True
