"""Resolution of a task's remote root folder."""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from .api import GraphClient
from .exceptions import GraphNotFoundError, TaskConfigError
from .paths import GraphPath
from .retry import RetryPolicy
from .sync.tasks import MirrorTask, TaskType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRoot:
    """The remote folder a task mirrors."""

    drive_id: str
    item_id: str
    display: str


class RootResolver:
    """Turns a task's site/library/user and folder path into ids."""

    def __init__(self, client: GraphClient, retry: Optional[RetryPolicy] = None):
        self.client = client
        self.retry = retry or RetryPolicy()

    def resolve(self, task: MirrorTask) -> ResolvedRoot:
        """Resolve the drive and folder item of a task.

        Args:
            task: Validated mirror task

        Returns:
            ResolvedRoot with drive id and folder item id

        Raises:
            GraphNotFoundError: If the site, library, drive or folder
                does not exist
            GraphPermissionError: If access is denied
        """
        if task.task_type is TaskType.SHAREPOINT:
            drive_id = self._resolve_library(task)
        else:
            drive_id = self._resolve_user_drive(task)

        folder = GraphPath.parse(task.folder_path)
        item = self.retry.execute(
            lambda: self.client.get_item_by_path(drive_id, folder),
            description=f"lookup of '{folder or '/'}'",
        )
        if not item.is_folder:
            raise GraphNotFoundError(f"'{folder}' is not a folder")

        logger.debug("Resolved %s to drive %s item %s", task.label, drive_id, item.id)
        return ResolvedRoot(drive_id=drive_id, item_id=item.id, display=task.label)

    def _resolve_library(self, task: MirrorTask) -> str:
        hostname, site_path = split_site_url(task.site_url or "")
        site = self.retry.execute(
            lambda: self.client.get_site(hostname, site_path),
            description=f"lookup of site {task.site_url}",
        )
        drives = self.retry.execute(
            lambda: self.client.get_site_drives(site["id"]),
            description=f"listing of libraries of {task.site_url}",
        )
        drive = find_library(drives, task.library or "")
        if drive is None:
            names = ", ".join(sorted(d.get("name", "?") for d in drives))
            raise GraphNotFoundError(
                f"Library '{task.library}' not found in {task.site_url} "
                f"(available: {names or 'none'})"
            )
        return drive["id"]

    def _resolve_user_drive(self, task: MirrorTask) -> str:
        drive = self.retry.execute(
            lambda: self.client.get_user_drive(task.user or ""),
            description=f"lookup of OneDrive of {task.user}",
        )
        return drive["id"]


def split_site_url(site_url: str) -> tuple[str, GraphPath]:
    """Split a SharePoint site URL into hostname and site path.

    Examples:
        >>> split_site_url("https://contoso.sharepoint.com/sites/Team")
        ('contoso.sharepoint.com', GraphPath('sites/Team'))
    """
    parsed = urlparse(site_url)
    if not parsed.hostname:
        raise TaskConfigError(f"Invalid SiteUrl '{site_url}'")
    return parsed.hostname, GraphPath.parse(unquote(parsed.path))


def find_library(
    drives: list[dict[str, Any]], library: str
) -> Optional[dict[str, Any]]:
    """Find a document library by display name or URL name, ignoring case.

    The default library is named "Documents" but lives at "Shared Documents",
    so both the ``name`` and the last segment of ``webUrl`` are checked.
    """
    wanted = library.strip().lower()
    for drive in drives:
        if (drive.get("name") or "").lower() == wanted:
            return drive
    for drive in drives:
        web_path = unquote(urlparse(drive.get("webUrl") or "").path).rstrip("/")
        if web_path.rsplit("/", 1)[-1].lower() == wanted:
            return drive
    return None
