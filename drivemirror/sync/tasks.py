"""Mirror task definitions loaded from the configuration file."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..exceptions import TaskConfigError
from .modes import UpdateAction


class TaskType(str, Enum):
    """Kind of remote container a task mirrors."""

    SHAREPOINT = "SharePoint"
    """A document library of a SharePoint site"""

    ONEDRIVE = "OneDrive"
    """A user's personal OneDrive"""

    @classmethod
    def from_string(cls, value: str) -> "TaskType":
        normalized = value.strip().lower()
        for task_type in cls:
            if task_type.value.lower() == normalized:
                return task_type
        valid = ", ".join(t.value for t in cls)
        raise ValueError(f"Unknown task type '{value}'. Valid types: {valid}")


# Config keys each task type cannot do without
REQUIRED_FIELDS: dict[TaskType, tuple[str, ...]] = {
    TaskType.SHAREPOINT: ("SiteUrl", "LibraryName", "LocalPath"),
    TaskType.ONEDRIVE: ("UserPrincipalName", "LocalPath"),
}


@dataclass
class MirrorTask:
    """One remote folder to mirror into one local directory."""

    type: str
    """Task type as written in the config ("SharePoint" or "OneDrive")"""

    local_path: Optional[Path] = None
    """Local directory the remote folder is mirrored into"""

    site_url: Optional[str] = None
    """SharePoint site URL (SharePoint tasks)"""

    library: Optional[str] = None
    """Document library name (SharePoint tasks)"""

    user: Optional[str] = None
    """User principal name (OneDrive tasks)"""

    folder_path: str = ""
    """Folder below the library or drive root ("" for the root)"""

    update_action: Optional[str] = None
    """Per-task update action, overrides the global default"""

    name: Optional[str] = None
    """Optional display name"""

    @property
    def label(self) -> str:
        """Short description used in log lines."""
        if self.name:
            return self.name
        if self.site_url or self.library:
            base = f"{self.site_url or '?'} / {self.library or '?'}"
        else:
            base = self.user or "?"
        return f"{base}/{self.folder_path}" if self.folder_path else base

    @property
    def task_type(self) -> TaskType:
        try:
            return TaskType.from_string(self.type or "")
        except ValueError as e:
            raise TaskConfigError(str(e)) from e

    def _field_values(self) -> dict[str, Any]:
        return {
            "SiteUrl": self.site_url,
            "LibraryName": self.library,
            "UserPrincipalName": self.user,
            "LocalPath": self.local_path,
        }

    def validate(self) -> None:
        """Check that the task can run, without any remote call.

        Raises:
            TaskConfigError: If the type is unknown, a required field is
                missing, or the update action is invalid
        """
        task_type = self.task_type
        values = self._field_values()
        missing = [key for key in REQUIRED_FIELDS[task_type] if not values.get(key)]
        if missing:
            raise TaskConfigError(
                f"{task_type.value} task is missing: {', '.join(missing)}"
            )
        self.resolve_update_action(None)

    def resolve_update_action(
        self, default: Optional[UpdateAction]
    ) -> Optional[UpdateAction]:
        """The task's own update action, else ``default``."""
        if not self.update_action:
            return default
        try:
            return UpdateAction.from_string(self.update_action)
        except ValueError as e:
            raise TaskConfigError(str(e)) from e

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], base_dir: Optional[Path] = None
    ) -> "MirrorTask":
        """Create a MirrorTask from a config entry.

        Args:
            data: Task object from the config file
            base_dir: Directory relative local paths are resolved against

        Returns:
            MirrorTask instance (not yet validated)
        """
        if not isinstance(data, dict):
            raise TaskConfigError("Task entry must be an object")

        local_path = None
        if data.get("LocalPath"):
            local_path = Path(data["LocalPath"]).expanduser()
            if base_dir is not None and not local_path.is_absolute():
                local_path = base_dir / local_path

        return cls(
            type=str(data.get("Type", "")),
            local_path=local_path,
            site_url=data.get("SiteUrl"),
            library=data.get("LibraryName"),
            user=data.get("UserPrincipalName"),
            folder_path=(data.get("FolderPath") or "").strip("/"),
            update_action=data.get("UpdateAction"),
            name=data.get("Name"),
        )


def load_tasks(
    entries: Any, base_dir: Optional[Path] = None
) -> list[MirrorTask]:
    """Parse the ``Tasks`` array of the configuration file.

    Entries are not validated here; the task runner validates each task
    right before running it so one bad entry does not stop the others.

    Args:
        entries: Value of the ``Tasks`` key
        base_dir: Directory relative local paths are resolved against

    Returns:
        List of MirrorTask objects

    Raises:
        TaskConfigError: If ``entries`` is not a list
    """
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise TaskConfigError("'Tasks' must be a list")
    tasks = []
    for entry in entries:
        if isinstance(entry, dict):
            tasks.append(MirrorTask.from_dict(entry, base_dir))
        else:
            # Keep the slot so task numbers match the config file
            tasks.append(MirrorTask(type=""))
    return tasks
