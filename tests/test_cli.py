"""
Tests for the command line interface.
"""

from pathlib import Path

from typer.testing import CliRunner

from therapyscheduler.cli.app import app

EXAMPLE_CONFIG = str(Path(__file__).resolve().parent.parent / "config.example.yaml")

runner = CliRunner()


class TestCli:
    """Smoke tests against the example roster."""

    def test_list_therapists(self):
        result = runner.invoke(app, ["list-therapists", "-c", EXAMPLE_CONFIG])

        assert result.exit_code == 0
        assert "Anna" in result.output
        assert "Ben" in result.output

    def test_check_reports_conflict(self):
        """Test that a slot over a booked session is refused with alternatives."""
        result = runner.invoke(app, [
            "check", "anna", "--start", "10:30", "--duration", "60",
            "--date", "2024-11-25", "-c", EXAMPLE_CONFIG,
        ])

        assert result.exit_code == 0
        assert "Conflicts prevent scheduling" in result.output

    def test_resolve_finds_slot(self):
        result = runner.invoke(app, [
            "resolve", "t-anna", "--start", "10:30", "--duration", "45",
            "--max-shift", "120", "--date", "2024-11-25", "-c", EXAMPLE_CONFIG,
        ])

        assert result.exit_code == 0
        assert "Found available slot" in result.output

    def test_default_duration_follows_weekday(self, tmp_path):
        """Test that the session length defaults to the row of the requested day."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "therapists:\n"
            "  - id: t1\n"
            "    name: Anna\n"
            "    schedules:\n"
            "      - day: monday\n"
            "        session_duration: 60\n"
            "      - day: wednesday\n"
            "        session_duration: 45\n",
            encoding="utf-8",
        )

        result = runner.invoke(app, [
            "check", "t1", "--start", "10:00", "--date", "2024-11-27", "-c", str(config_path),
        ])

        assert result.exit_code == 0
        assert "for 45 minutes" in result.output

    def test_unknown_therapist_exits_with_error(self):
        result = runner.invoke(app, [
            "check", "nobody", "--start", "10:00", "-c", EXAMPLE_CONFIG,
        ])

        assert result.exit_code == 1

    def test_missing_config_exits_with_error(self, tmp_path):
        result = runner.invoke(app, ["list-therapists", "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "therapyscheduler" in result.output
