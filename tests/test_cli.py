"""Unit tests for CLI commands."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from drivemirror.cli import main
from drivemirror.exceptions import GraphAuthenticationError
from drivemirror.sync import RunResult, SyncResult, UpdateAction

CONFIG = {
    "TenantId": "contoso.onmicrosoft.com",
    "ClientId": "client-id",
    "ClientSecret": "secret",
    "Tasks": [
        {
            "Type": "SharePoint",
            "SiteUrl": "https://contoso.sharepoint.com/sites/Team",
            "LibraryName": "Documents",
            "LocalPath": "mirror/team",
        },
        {
            "Type": "OneDrive",
            "UserPrincipalName": "jo@contoso.com",
            "LocalPath": "mirror/jo",
            "UpdateAction": "Overwrite",
        },
    ],
}


@pytest.fixture
def runner():
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "drivemirror.json"
    path.write_text(json.dumps(CONFIG), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep CLI runs from reconfiguring the drivemirror logger."""
    with patch("drivemirror.cli.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def mock_token_provider():
    with patch("drivemirror.cli.TokenProvider") as mock_cls:
        mock_cls.return_value.get_token.return_value = "token"
        yield mock_cls


@pytest.fixture
def mock_task_runner():
    with patch("drivemirror.cli.TaskRunner") as mock_cls:
        result = RunResult()
        result.add_task(SyncResult(downloaded=3, skipped=1))
        result.add_task(SyncResult(skipped=2))
        mock_cls.return_value.run.return_value = result
        yield mock_cls


class TestRunCommand:
    """Tests for the run command."""

    def test_successful_run(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        result = runner.invoke(main, ["-c", str(config_file), "run"])

        assert result.exit_code == 0
        assert "Mirror complete" in result.output
        mock_token_provider.assert_called_once_with(
            tenant_id="contoso.onmicrosoft.com",
            client_id="client-id",
            client_secret="secret",
        )
        run = mock_task_runner.return_value.run
        tasks, action = run.call_args.args
        assert len(tasks) == 2
        assert action is UpdateAction.RENAME_NEW
        assert run.call_args.kwargs == {"dry_run": False, "selected": ()}

    def test_errors_give_exit_code_one(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        failed = RunResult()
        failed.add_task(SyncResult(downloaded=1, errors=2))
        mock_task_runner.return_value.run.return_value = failed

        result = runner.invoke(main, ["-c", str(config_file), "run"])

        assert result.exit_code == 1

    def test_options_are_passed_on(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        result = runner.invoke(
            main,
            [
                "-c",
                str(config_file),
                "run",
                "--dry-run",
                "--update-action",
                "overwrite",
                "-t",
                "2",
            ],
        )

        assert result.exit_code == 0
        run = mock_task_runner.return_value.run
        assert run.call_args.args[1] is UpdateAction.OVERWRITE
        assert run.call_args.kwargs == {"dry_run": True, "selected": (2,)}
        assert "Dry run complete" in result.output

    def test_unknown_task_number(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        result = runner.invoke(main, ["-c", str(config_file), "run", "-t", "7"])

        assert result.exit_code == 2
        mock_task_runner.return_value.run.assert_not_called()

    def test_json_output(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        result = runner.invoke(main, ["-c", str(config_file), "--json", "run"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["downloaded"] == 3
        assert data["skipped"] == 3
        assert data["errors"] == 0
        assert len(data["tasks"]) == 2
        assert data["dry_run"] is False

    def test_missing_config(self, runner, temp_dir):
        result = runner.invoke(
            main, ["-c", str(temp_dir / "missing.json"), "run"]
        )

        assert result.exit_code == 2

    def test_rejected_credentials_are_fatal(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        mock_token_provider.return_value.get_token.side_effect = (
            GraphAuthenticationError("Authentication failed (HTTP 401)", 401)
        )

        result = runner.invoke(main, ["-c", str(config_file), "run"])

        assert result.exit_code == 2
        mock_task_runner.assert_not_called()

    def test_auth_failure_during_run_is_fatal(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        mock_task_runner.return_value.run.side_effect = GraphAuthenticationError(
            "expired", 401
        )

        result = runner.invoke(main, ["-c", str(config_file), "run"])

        assert result.exit_code == 2

    def test_access_token_skips_token_provider(
        self, runner, config_file, mock_token_provider, mock_task_runner
    ):
        with patch("drivemirror.cli.GraphClient") as mock_client_cls:
            mock_client_cls.return_value = MagicMock()
            result = runner.invoke(
                main,
                ["-c", str(config_file), "--access-token", "abc", "run"],
            )

        assert result.exit_code == 0
        mock_token_provider.assert_not_called()
        assert mock_client_cls.call_args.kwargs["access_token"] == "abc"

    def test_logging_uses_config_log_file(
        self,
        runner,
        config_file,
        mock_token_provider,
        mock_task_runner,
        no_logging_setup,
    ):
        runner.invoke(main, ["-c", str(config_file), "-q", "run"])

        args, kwargs = no_logging_setup.call_args
        assert args[0] == config_file.parent / "logs" / "drivemirror.log"
        assert kwargs["console"] is False


class TestValidateCommand:
    """Tests for the validate command."""

    def test_all_valid(self, runner, config_file):
        result = runner.invoke(main, ["-c", str(config_file), "validate"])

        assert result.exit_code == 0
        assert "All 2 task(s) are valid" in result.output

    def test_invalid_task(self, runner, temp_dir):
        path = temp_dir / "drivemirror.json"
        path.write_text(
            json.dumps({"Tasks": [{"Type": "SharePoint", "LocalPath": "x"}]}),
            encoding="utf-8",
        )

        result = runner.invoke(main, ["-c", str(path), "validate"])

        assert result.exit_code == 1
        assert "1 invalid task(s)" in result.output


class TestTasksCommand:
    """Tests for the tasks command."""

    def test_lists_tasks(self, runner, config_file):
        result = runner.invoke(main, ["-c", str(config_file), "--json", "tasks"])

        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert [row["Type"] for row in rows] == ["SharePoint", "OneDrive"]
        assert rows[0]["Update action"] == "RenameNew (default)"
        assert rows[1]["Update action"] == "Overwrite"

    def test_no_tasks(self, runner, temp_dir):
        path = temp_dir / "drivemirror.json"
        path.write_text(json.dumps({"Tasks": []}), encoding="utf-8")

        result = runner.invoke(main, ["-c", str(path), "tasks"])

        assert result.exit_code == 0
        assert "No tasks configured" in result.output
