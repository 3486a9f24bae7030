"""
Tests for the CLI interface.
"""
import json
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from claudette import __version__
from claudette.cli.main import app, _repository_for, EXIT_CODE_ERROR, EXIT_CODE_OK
from claudette.config.loader import AppConfig
from claudette.storage.repository import get_repository

runner = CliRunner()


def _line(ts: datetime, msg_id: str, model: str = "claude-sonnet-4-5") -> str:
    return json.dumps({
        "timestamp": ts.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "message": {
            "id": msg_id,
            "model": model,
            "usage": {
                "input_tokens": 100,
                "output_tokens": 20,
                "cache_creation_input_tokens": 3,
                "cache_read_input_tokens": 7,
            },
        },
    }) + "\n"


@pytest.fixture
def workspace():
    """Create project roots and a config file pointing at them."""
    temp_dir = Path(tempfile.mkdtemp())
    root = temp_dir / "projects"
    root.mkdir()
    config_path = temp_dir / "config.yaml"
    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump({"project_roots": [str(root)]}, f)
    yield root, str(config_path)
    shutil.rmtree(temp_dir, ignore_errors=True)


def _write_log(root: Path, project_dir: str, lines) -> None:
    path = root / project_dir / "session.jsonl"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.writelines(lines)


class TestCLI:
    """Test CLI commands."""

    def test_version(self):
        """Test --version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == EXIT_CODE_OK
        assert __version__ in result.output

    def test_usage_json_structure(self, workspace):
        """Test JSON output carries per-project grouped usage."""
        root, config_path = workspace
        _write_log(root, "-src-web", [
            _line(datetime(2024, 1, 1, 10, tzinfo=timezone.utc), "m1"),
            _line(datetime(2024, 1, 1, 11, tzinfo=timezone.utc), "m2", model="claude-opus-4"),
        ])

        result = runner.invoke(app, ["--config", config_path, "usage", "--json"])

        assert result.exit_code == EXIT_CODE_OK
        data = json.loads(result.stdout)
        assert [p["name"] for p in data["projects"]] == ["web"]

        project = data["projects"][0]
        assert project["path"] == str(root / "-src-web")
        assert len(project["usage"]) == 1

        day = project["usage"][0]
        assert day["period"] == "Jan 01"
        assert [m["model"] for m in day["models"]] == ["opus-4-5", "sonnet-4-5"]
        assert day["models"][0]["tokens"] == {
            "input": 100, "output": 20, "cache_write": 3, "cache_read": 7, "total": 130,
        }
        assert day["totals"]["total"] == 260

    def test_usage_json_grouped_by_project(self, workspace):
        """Test --group is honoured in JSON output."""
        root, config_path = workspace
        _write_log(root, "-src-api", [_line(datetime(2024, 1, 1, tzinfo=timezone.utc), "m1")])

        result = runner.invoke(
            app, ["--config", config_path, "usage", "--json", "--group", "project"]
        )

        assert result.exit_code == EXIT_CODE_OK
        data = json.loads(result.stdout)
        assert data["projects"][0]["usage"][0]["period"] == "api"

    def test_usage_unknown_project_fails(self, workspace):
        """Test an unknown project name exits with an error."""
        _, config_path = workspace
        result = runner.invoke(app, ["--config", config_path, "usage", "--project", "nope"])
        assert result.exit_code == EXIT_CODE_ERROR
        assert "project not found: nope" in result.output

    def test_usage_json_unknown_project_fails(self, workspace):
        """Test JSON mode reports unknown projects the same way."""
        _, config_path = workspace
        result = runner.invoke(app, ["--config", config_path, "usage", "-j", "-p", "nope"])
        assert result.exit_code == EXIT_CODE_ERROR

    def test_default_command_without_projects(self, workspace):
        """Test running with no subcommand reports missing projects."""
        _, config_path = workspace
        result = runner.invoke(app, ["--config", config_path])
        assert result.exit_code == EXIT_CODE_OK
        assert "No projects found" in result.output

    def test_usage_table(self, workspace):
        """Test the table view renders for a project."""
        root, config_path = workspace
        _write_log(root, "-src-web", [_line(datetime(2024, 1, 1, tzinfo=timezone.utc), "m1")])

        result = runner.invoke(app, ["--config", config_path, "usage", "-p", "web"])

        assert result.exit_code == EXIT_CODE_OK
        assert "web" in result.output
        assert "Total" in result.output

    def test_projects_list(self, workspace):
        """Test project names are listed one per line."""
        root, config_path = workspace
        (root / "-home-me-zeta").mkdir()
        (root / "-home-me-alpha").mkdir()

        result = runner.invoke(app, ["--config", config_path, "projects", "list"])

        assert result.exit_code == EXIT_CODE_OK
        assert result.output.split() == ["alpha", "zeta"]

    def test_status_without_active_session(self, workspace):
        """Test status reports when nothing is active."""
        root, config_path = workspace
        _write_log(root, "-src-web", [_line(datetime(2024, 1, 1, tzinfo=timezone.utc), "m1")])

        result = runner.invoke(app, ["--config", config_path, "status"])

        assert result.exit_code == EXIT_CODE_OK
        assert "No active session found" in result.output

    def test_status_with_active_session(self, workspace):
        """Test status shows totals and burn rate for a recent session."""
        root, config_path = workspace
        now = datetime.now(timezone.utc).replace(microsecond=0)
        _write_log(root, "-src-web", [
            _line(now - timedelta(minutes=20), "m1"),
            _line(now - timedelta(minutes=10), "m2"),
        ])

        result = runner.invoke(app, ["--config", config_path, "status"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Status:     Active" in result.output
        assert "Total:      260" in result.output
        assert "Burn Rate:" in result.output

    def test_sessions(self, workspace):
        """Test the session history table renders."""
        root, config_path = workspace
        _write_log(root, "-src-web", [
            _line(datetime(2024, 1, 1, 10, tzinfo=timezone.utc), "m1"),
            _line(datetime(2024, 1, 2, 10, tzinfo=timezone.utc), "m2"),
        ])

        result = runner.invoke(app, ["--config", config_path, "sessions"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Session History" in result.output
        assert "Gap" in result.output

    def test_session_hourly_detail(self, workspace):
        """Test --id renders the hourly per-model table of one block."""
        root, config_path = workspace
        _write_log(root, "-src-web", [
            _line(datetime(2024, 1, 1, 10, tzinfo=timezone.utc), "m1"),
            _line(datetime(2024, 1, 1, 11, 30, tzinfo=timezone.utc), "m2", model="claude-opus-4"),
        ])

        with patch('claudette.cli.main._display_usage_table') as mock_display:
            result = runner.invoke(
                app, ["--config", config_path, "sessions", "--id", "2024-01-01T10:00:00Z"]
            )

        assert result.exit_code == EXIT_CODE_OK
        title, grouped = mock_display.call_args[0]
        assert title == "Session 2024-01-01T10:00:00Z"
        assert [u.period for u in grouped] == ["2024-01-01 10:00", "2024-01-01 11:00"]
        assert grouped[1].models == ["opus-4-5"]

    def test_session_detail_renders_table(self, workspace):
        """Test the hourly detail prints a table with a total row."""
        root, config_path = workspace
        _write_log(root, "-src-web", [_line(datetime(2024, 1, 1, 10, tzinfo=timezone.utc), "m1")])

        result = runner.invoke(
            app, ["--config", config_path, "sessions", "--id", "2024-01-01T10:00:00Z"]
        )

        assert result.exit_code == EXIT_CODE_OK
        assert "Total" in result.output

    def test_session_detail_unknown_id_fails(self, workspace):
        """Test an id that names no block exits with an error."""
        root, config_path = workspace
        _write_log(root, "-src-web", [_line(datetime(2024, 1, 1, 10, tzinfo=timezone.utc), "m1")])

        result = runner.invoke(app, ["--config", config_path, "sessions", "--id", "nope"])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "session not found" in result.output

    def test_session_detail_gap_id_fails(self, workspace):
        """Test a gap block id exits with an error."""
        root, config_path = workspace
        _write_log(root, "-src-web", [
            _line(datetime(2024, 1, 1, 10, tzinfo=timezone.utc), "m1"),
            _line(datetime(2024, 1, 2, 10, tzinfo=timezone.utc), "m2"),
        ])

        result = runner.invoke(
            app, ["--config", config_path, "sessions", "--id", "gap-2024-01-01T15:00:00Z"]
        )

        assert result.exit_code == EXIT_CODE_ERROR
        assert "idle gap" in result.output

    def test_default_roots_share_repository(self):
        """Test the default configuration reuses the process-wide repository."""
        assert _repository_for(AppConfig()) is get_repository()
        custom = AppConfig(project_roots=(Path("/tmp/claudette-roots"),))
        assert _repository_for(custom) is not get_repository()
        assert _repository_for(custom).roots == (Path("/tmp/claudette-roots"),)

    def test_sessions_empty(self, workspace):
        """Test the session history with no logs."""
        _, config_path = workspace
        result = runner.invoke(app, ["--config", config_path, "sessions"])
        assert result.exit_code == EXIT_CODE_OK
        assert "No sessions found" in result.output

    def test_invalid_config_fails(self, tmp_path):
        """Test a config file that fails validation exits with an error."""
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("session_duration_hours: 0\n", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(config_path), "usage"])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "invalid configuration" in result.output

    def test_missing_config_fails(self, tmp_path):
        """Test an explicit config path that does not exist exits with an error."""
        result = runner.invoke(app, ["--config", str(tmp_path / "missing.yaml"), "usage"])
        assert result.exit_code == EXIT_CODE_ERROR

    def test_repository_errors_reported(self, workspace):
        """Test repository failures surface as CLI errors."""
        from claudette.storage.models import SourceUnavailableError

        _, config_path = workspace
        with patch('claudette.cli.main.get_repository') as mock_repo:
            mock_repo.return_value.find_project.side_effect = SourceUnavailableError("/x", "gone")
            result = runner.invoke(app, ["--config", config_path, "usage", "-p", "web"])

        assert result.exit_code == EXIT_CODE_ERROR
        assert "Log source unavailable" in result.output
