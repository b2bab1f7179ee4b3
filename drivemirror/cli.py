"""CLI interface for drivemirror."""

import logging
from typing import Any, Optional

import click

from .api import GraphClient
from .auth import TokenProvider
from .config import MirrorConfig, get_config_path
from .exceptions import (
    GraphAuthenticationError,
    MirrorConfigError,
    TaskConfigError,
)
from .log import setup_logging
from .output import OutputFormatter
from .retry import RetryPolicy
from .sync import RenameManifest, RunResult, TaskRunner, UpdateAction

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_FATAL = 2

UPDATE_ACTION_CHOICES = [action.value for action in UpdateAction]


def _load_config(ctx: Any) -> MirrorConfig:
    """Load the configuration or exit with a fatal error."""
    out: OutputFormatter = ctx.obj["out"]
    path = get_config_path(ctx.obj["config_path"])
    try:
        return MirrorConfig.load(path)
    except MirrorConfigError as e:
        out.error(str(e))
        ctx.exit(EXIT_FATAL)
        raise  # Unreachable, but helps type checker


def _build_client(ctx: Any, config: MirrorConfig) -> GraphClient:
    """Authenticate and create the Graph client, or exit."""
    out: OutputFormatter = ctx.obj["out"]
    access_token: Optional[str] = ctx.obj["access_token"]

    try:
        if access_token:
            return GraphClient(access_token=access_token, page_size=config.page_size)

        provider = TokenProvider(
            tenant_id=config.tenant_id or "",
            client_id=config.client_id or "",
            client_secret=config.client_secret or "",
        )
        # Fail before any task starts if the credentials are wrong
        provider.get_token()
        return GraphClient(token_provider=provider, page_size=config.page_size)
    except (MirrorConfigError, GraphAuthenticationError) as e:
        logger.error("ERROR authentication failed: %s", e)
        out.error(f"Authentication failed: {e}")
        ctx.exit(EXIT_FATAL)
        raise  # Unreachable, but helps type checker


def _display_result(out: OutputFormatter, result: RunResult, dry_run: bool) -> None:
    if out.json_output:
        data = result.to_dict()
        data["dry_run"] = dry_run
        out.output_json(data)
        return

    rows = [
        [index, task.downloaded, task.skipped, task.errors]
        for index, task in enumerate(result.tasks, start=1)
    ]
    rows.append(["total", result.downloaded, result.skipped, result.errors])
    title = "Dry run summary" if dry_run else "Run summary"
    out.output_table(title, ["Task", "Downloaded", "Skipped", "Errors"], rows)

    if result.errors:
        out.warning(f"{result.errors} error(s), see the log for details")
    else:
        out.success("Dry run complete!" if dry_run else "Mirror complete!")


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    envvar="DRIVEMIRROR_CONFIG",
    type=click.Path(dir_okay=False),
    help="Configuration file (default: ./drivemirror.json)",
)
@click.option(
    "--access-token",
    envvar="DRIVEMIRROR_ACCESS_TOKEN",
    help="Use this Graph access token instead of the client credentials",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="drivemirror")
@click.pass_context
def main(
    ctx: Any,
    config_path: Optional[str],
    access_token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """drivemirror - Mirror SharePoint libraries and OneDrive folders locally."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["access_token"] = access_token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose


@main.command()
@click.option(
    "--dry-run", is_flag=True, help="Show what would be downloaded without writing"
)
@click.option(
    "--update-action",
    type=click.Choice(UPDATE_ACTION_CHOICES, case_sensitive=False),
    default=None,
    help="How changed files replace local copies "
    "(default: config UpdateAction, else RenameNew)",
)
@click.option(
    "--task",
    "-t",
    "task_numbers",
    type=int,
    multiple=True,
    help="Run only this task number (repeatable, 1-based)",
)
@click.pass_context
def run(
    ctx: Any,
    dry_run: bool,
    update_action: Optional[str],
    task_numbers: tuple[int, ...],
) -> None:
    """Mirror every configured task.

    Files already present locally are compared with the remote metadata
    (content hash, else size and date, else size) and only changed files
    are downloaded.

    Examples:
        drivemirror run                          # Run all tasks
        drivemirror run --dry-run                # Show what would change
        drivemirror run --update-action Overwrite
        drivemirror -c /etc/drivemirror.json run -t 2
    """
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx)

    setup_logging(
        config.log_file,
        verbose=ctx.obj["verbose"],
        console=not (out.quiet or out.json_output),
    )

    action = (
        UpdateAction.from_string(update_action)
        if update_action
        else config.update_action
    )
    for number in task_numbers:
        if not 1 <= number <= len(config.tasks):
            out.error(f"No task #{number} (configuration has {len(config.tasks)})")
            ctx.exit(EXIT_FATAL)

    logger.info(
        "Run started: %d task(s), update action %s%s",
        len(task_numbers) or len(config.tasks),
        action.value,
        ", dry run" if dry_run else "",
    )

    client = _build_client(ctx, config)
    manifest = RenameManifest(config.manifest_file) if config.manifest_file else None
    runner = TaskRunner(
        client,
        retry=RetryPolicy(max_attempts=config.max_retries),
        manifest=manifest,
    )

    try:
        with client:
            result = runner.run(
                config.tasks, action, dry_run=dry_run, selected=task_numbers
            )
    except KeyboardInterrupt:
        logger.error("ERROR run cancelled by user")
        out.warning("Run cancelled by user")
        ctx.exit(130)
        return
    except GraphAuthenticationError as e:
        logger.error("ERROR authentication failed: %s", e)
        out.error(f"Authentication failed: {e}")
        ctx.exit(EXIT_FATAL)
        return

    _display_result(out, result, dry_run)
    ctx.exit(EXIT_OK if result.ok else EXIT_ERRORS)


@main.command()
@click.pass_context
def validate(ctx: Any) -> None:
    """Check every task in the configuration without contacting the server."""
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx)

    rows = []
    invalid = 0
    for index, task in enumerate(config.tasks, start=1):
        try:
            task.validate()
            status = "ok"
        except TaskConfigError as e:
            status = f"invalid: {e}"
            invalid += 1
        rows.append([index, task.type or "?", task.label, status])

    out.output_table(
        f"Tasks in {config.path}", ["#", "Type", "Source", "Status"], rows
    )
    if invalid:
        out.error(f"{invalid} invalid task(s)")
        ctx.exit(EXIT_ERRORS)
    out.success(f"All {len(config.tasks)} task(s) are valid")


@main.command()
@click.pass_context
def tasks(ctx: Any) -> None:
    """List the configured tasks."""
    out: OutputFormatter = ctx.obj["out"]
    config = _load_config(ctx)

    if not config.tasks:
        out.info(f"No tasks configured in {config.path}")
        return

    rows = [
        [
            index,
            task.type or "?",
            task.label,
            str(task.local_path or ""),
            task.update_action or f"{config.update_action.value} (default)",
        ]
        for index, task in enumerate(config.tasks, start=1)
    ]
    out.output_table(
        f"Tasks in {config.path}",
        ["#", "Type", "Source", "Local path", "Update action"],
        rows,
    )


if __name__ == "__main__":
    main()
