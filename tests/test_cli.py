"""Tests for the omnivore-sync command-line interface."""

import json
from unittest.mock import MagicMock, patch

import pytest

from omnivore_sync.cli import build_parser, main
from omnivore_sync.errors import ConfigurationError
from omnivore_sync.sync.models import RunResult, RunStatus, SyncAction, SyncResult

STARTED = "2024-03-15T12:00:00+00:00"


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with (
        patch("omnivore_sync.cli.setup_logging"),
        patch("omnivore_sync.cli.apply_logging_config"),
    ):
        yield


@pytest.fixture
def service():
    mock = MagicMock()
    with patch("omnivore_sync.cli.SyncService") as cls:
        cls.from_environment.return_value = mock
        yield mock


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_global_options(self):
        args = build_parser().parse_args(
            ["--api-key", "k", "--log-level", "debug", "sync", "--json"]
        )
        assert args.api_key == "k"
        assert args.log_level == "debug"
        assert args.command == "sync"
        assert args.json is True


class TestSync:
    def test_prints_report(self, service, capsys):
        service.run_now.return_value = RunResult(
            status=RunStatus.SUCCEEDED,
            started_at=STARTED,
            results=[
                SyncResult(
                    title="An Article",
                    action=SyncAction.CREATE_NOTE,
                    success=True,
                    item_ids=["a1"],
                )
            ],
        )

        assert main(["sync"]) == 0
        out = capsys.readouterr().out
        assert "Omnivore sync succeeded" in out
        assert "An Article" in out

    def test_json_output(self, service, capsys):
        service.run_now.return_value = RunResult(
            status=RunStatus.SUCCEEDED, started_at=STARTED
        )

        assert main(["sync", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["status"] == "succeeded"

    def test_failed_run_exit_code(self, service):
        service.run_now.return_value = RunResult(
            status=RunStatus.FAILED, started_at=STARTED, message="no key"
        )
        assert main(["sync"]) == 1

    def test_overrides_passed_to_service(self):
        with patch("omnivore_sync.cli.SyncService") as cls:
            cls.from_environment.return_value.run_now.return_value = RunResult(
                status=RunStatus.SUCCEEDED, started_at=STARTED
            )
            main(["--api-key", "k", "--endpoint", "https://x.example/api", "sync"])

        cls.from_environment.assert_called_once_with(
            {"api_key": "k", "endpoint": "https://x.example/api"}
        )

    def test_configuration_error(self, capsys):
        with patch("omnivore_sync.cli.SyncService") as cls:
            cls.from_environment.side_effect = ConfigurationError("Invalid configuration: x")
            assert main(["sync"]) == 2
        assert "Invalid configuration" in capsys.readouterr().err


class TestReset:
    def test_yes_skips_prompt(self, service, capsys):
        service.reset.return_value = RunResult(
            status=RunStatus.SUCCEEDED, started_at=STARTED, message="reset done"
        )

        with patch("builtins.input") as mock_input:
            assert main(["reset", "--yes"]) == 0

        mock_input.assert_not_called()
        service.reset.assert_called_once_with(confirm=True)
        assert "reset done" in capsys.readouterr().out

    def test_prompt_declined(self, service):
        service.reset.return_value = RunResult(
            status=RunStatus.SKIPPED, started_at=STARTED, message="cancelled"
        )

        with patch("builtins.input", return_value="no"):
            assert main(["reset"]) == 1

        service.reset.assert_called_once_with(confirm=False)

    def test_prompt_accepted(self, service):
        service.reset.return_value = RunResult(
            status=RunStatus.SUCCEEDED, started_at=STARTED
        )

        with patch("builtins.input", return_value="YES"):
            assert main(["reset"]) == 0

        service.reset.assert_called_once_with(confirm=True)

    def test_eof_is_no(self, service):
        service.reset.return_value = RunResult(
            status=RunStatus.SKIPPED, started_at=STARTED
        )
        with patch("builtins.input", side_effect=EOFError):
            main(["reset"])
        service.reset.assert_called_once_with(confirm=False)


class TestStatus:
    STATUS = {
        "state_file": ".omnivore_sync/sync_state.json",
        "notes_dir": "/notes",
        "sync_type": "all",
        "api_key_configured": True,
        "running": False,
        "phase": "idle",
        "schedule": {"interval_minutes": 30},
        "state_ok": True,
        "last_sync_date": None,
        "synced_items": 3,
        "synced_highlights": 7,
    }

    def test_text(self, service, capsys):
        service.status.return_value = dict(self.STATUS)

        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "Last sync:          never" in out
        assert "Synced highlights:  7" in out
        assert "every 30 min" in out

    def test_corrupt_state_reported(self, service, capsys):
        service.status.return_value = dict(
            self.STATUS, state_ok=False, state_error="bad json"
        )

        main(["status"])
        assert "State file is corrupt: bad json" in capsys.readouterr().out

    def test_json(self, service, capsys):
        service.status.return_value = dict(self.STATUS)

        main(["status", "--json"])
        assert json.loads(capsys.readouterr().out)["synced_items"] == 3


class TestInit:
    def test_init_does_not_load_service(self, capsys):
        with (
            patch("omnivore_sync.cli.ensure_config", return_value="/x/config.yml"),
            patch("omnivore_sync.cli.SyncService") as cls,
        ):
            assert main(["init"]) == 0

        cls.from_environment.assert_not_called()
        assert "/x/config.yml" in capsys.readouterr().out


class TestDaemon:
    @pytest.fixture(autouse=True)
    def _no_signal(self):
        with patch("omnivore_sync.cli.signal.signal"):
            yield

    def test_runs_until_interrupted(self, service):
        service.settings.sync_interval = 15
        with patch("omnivore_sync.cli.threading.Event") as event_cls:
            event_cls.return_value.wait.side_effect = KeyboardInterrupt
            assert main(["daemon"]) == 0

        service.start.assert_called_once()
        service.stop.assert_called_once()
        service.run_now.assert_not_called()

    def test_run_now(self, service):
        service.settings.sync_interval = 0
        service.run_now.return_value = RunResult(
            status=RunStatus.SUCCEEDED, started_at=STARTED
        )
        with patch("omnivore_sync.cli.threading.Event") as event_cls:
            event_cls.return_value.wait.return_value = True
            assert main(["daemon", "--run-now"]) == 0

        service.run_now.assert_called_once()
        service.stop.assert_called_once()
