"""Download counters for tasks and runs."""

from dataclasses import dataclass, field


@dataclass
class SyncResult:
    """Counters for one walk, task or run."""

    downloaded: int = 0
    skipped: int = 0
    errors: int = 0

    def merge(self, other: "SyncResult") -> "SyncResult":
        """Add another result's counters to this one and return self."""
        self.downloaded += other.downloaded
        self.skipped += other.skipped
        self.errors += other.errors
        return self

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def to_dict(self) -> dict:
        return {
            "downloaded": self.downloaded,
            "skipped": self.skipped,
            "errors": self.errors,
        }

    def __str__(self) -> str:
        return (
            f"downloaded={self.downloaded} skipped={self.skipped} "
            f"errors={self.errors}"
        )


@dataclass
class RunResult(SyncResult):
    """Totals of a whole run, keeping each task's own result."""

    tasks: list[SyncResult] = field(default_factory=list)

    def add_task(self, result: SyncResult) -> None:
        self.tasks.append(result)
        self.merge(result)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["tasks"] = [task.to_dict() for task in self.tasks]
        return data
