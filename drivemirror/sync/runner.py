"""Sequential execution of mirror tasks."""

import logging
import time
from collections.abc import Sequence
from typing import Optional

from ..api import GraphClient
from ..exceptions import GraphAuthenticationError, TaskConfigError
from ..resolver import RootResolver
from ..retry import RetryPolicy
from .engine import TreeWalker
from .manifest import RenameManifest
from .modes import UpdateAction
from .stats import RunResult, SyncResult
from .tasks import MirrorTask

logger = logging.getLogger(__name__)


class TaskRunner:
    """Runs mirror tasks one after another.

    A task that fails (bad configuration, unresolvable root, unexpected
    error while walking) is logged and counted as one error; the next task
    runs regardless. Only an authentication failure stops the batch, since
    no later task could succeed either.
    """

    def __init__(
        self,
        client: GraphClient,
        retry: Optional[RetryPolicy] = None,
        manifest: Optional[RenameManifest] = None,
        resolver: Optional[RootResolver] = None,
        walker: Optional[TreeWalker] = None,
    ):
        """Initialize task runner.

        Args:
            client: Graph API client
            retry: Retry policy shared by every remote call
            manifest: Rename manifest shared by every task
            resolver: Root resolver (default: built from client and retry)
            walker: Tree walker (default: built from client, retry, manifest)
        """
        self.client = client
        self.retry = retry or RetryPolicy()
        self.resolver = resolver or RootResolver(client, self.retry)
        self.walker = walker or TreeWalker(client, self.retry, manifest=manifest)

    def run_task(
        self,
        task: MirrorTask,
        index: int,
        default_action: UpdateAction,
        dry_run: bool = False,
    ) -> SyncResult:
        """Run one task.

        Args:
            task: Task to run
            index: 1-based task number, used in log lines
            default_action: Update action when the task sets none
            dry_run: If True, write nothing

        Returns:
            Counters of this task

        Raises:
            GraphAuthenticationError: If the credentials were rejected
        """
        start_time = time.time()
        result = SyncResult()

        try:
            task.validate()
        except TaskConfigError as e:
            logger.error("ERROR task #%d skipped, invalid configuration: %s", index, e)
            result.errors += 1
            self._log_summary(index, task, result)
            return result

        action = task.resolve_update_action(default_action) or default_action
        logger.info(
            "Task #%d: %s -> %s (update action %s%s)",
            index,
            task.label,
            task.local_path,
            action.value,
            ", dry run" if dry_run else "",
        )

        try:
            root = self.resolver.resolve(task)
            logger.debug(
                "Task #%d root: %s (drive %s, item %s)",
                index,
                root.display,
                root.drive_id,
                root.item_id,
            )
            if not dry_run:
                task.local_path.mkdir(parents=True, exist_ok=True)
            result.merge(
                self.walker.walk(
                    root.drive_id,
                    root.item_id,
                    task.local_path,
                    action,
                    dry_run,
                    f"task #{index}",
                )
            )
        except GraphAuthenticationError:
            raise
        except Exception as e:
            logger.error("ERROR task #%d (%s) failed: %s", index, task.label, e)
            logger.debug("Task #%d failure details", index, exc_info=True)
            result.errors += 1

        logger.debug("Task #%d took %.2fs", index, time.time() - start_time)
        self._log_summary(index, task, result)
        return result

    def run(
        self,
        tasks: Sequence[MirrorTask],
        default_action: UpdateAction,
        dry_run: bool = False,
        selected: Optional[Sequence[int]] = None,
    ) -> RunResult:
        """Run every task (or the selected ones) in order.

        Args:
            tasks: Tasks from the configuration
            default_action: Global update action
            dry_run: If True, write nothing
            selected: 1-based task numbers to run (default: all)

        Returns:
            RunResult with totals and each task's counters
        """
        run_result = RunResult()
        for index, task in enumerate(tasks, start=1):
            if selected and index not in selected:
                continue
            run_result.add_task(self.run_task(task, index, default_action, dry_run))

        logger.info(
            "RUN SUMMARY: tasks=%d %s%s",
            len(run_result.tasks),
            run_result,
            " (dry run)" if dry_run else "",
        )
        return run_result

    @staticmethod
    def _log_summary(index: int, task: MirrorTask, result: SyncResult) -> None:
        logger.info("TASK SUMMARY #%d %s: %s", index, task.label, result)
