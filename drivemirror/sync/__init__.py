"""Incremental mirroring engine for drivemirror."""

from .comparator import ChangeDecision, ChangeDetector, Decision
from .engine import TreeWalker
from .local import LocalFileRecord
from .manifest import RenameManifest, RenameManifestEntry
from .modes import DEFAULT_UPDATE_ACTION, UpdateAction
from .operations import LocalUpdateApplier
from .stats import RunResult, SyncResult
from .tasks import MirrorTask, TaskType, load_tasks
from .runner import TaskRunner

__all__ = [
    "ChangeDecision",
    "ChangeDetector",
    "Decision",
    "TreeWalker",
    "LocalFileRecord",
    "RenameManifest",
    "RenameManifestEntry",
    "DEFAULT_UPDATE_ACTION",
    "UpdateAction",
    "LocalUpdateApplier",
    "RunResult",
    "SyncResult",
    "MirrorTask",
    "TaskType",
    "load_tasks",
    "TaskRunner",
]
