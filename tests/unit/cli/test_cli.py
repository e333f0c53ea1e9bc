"""Unit tests for cli.py — click commands."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from friendly_uploader.auth.tokens import TokenPair
from friendly_uploader.cli import cli
from friendly_uploader.errors import GraphApiError, TokenRefreshError
from friendly_uploader.graph.models import DriveItem, User

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    return {"FU_CONFIG_DIR": str(tmp_path)}


def _collection(items: list[DriveItem], delta_token: str | None = None) -> MagicMock:
    collection = MagicMock()
    collection.__iter__.return_value = iter(items)
    collection.delta_token = delta_token
    return collection


# ---------------------------------------------------------------------------
# Usage tests
# ---------------------------------------------------------------------------


class TestUsage:
    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "ls", "upload", "me", "changes"):
            assert command in result.output

    def test_init_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["init", "--help"])
        assert result.exit_code == 0
        assert "Initialize and authenticate the app" in result.output

    def test_missing_command_fails(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["bogus"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# init tests
# ---------------------------------------------------------------------------


class TestInit:
    def test_manual_paste_saves_credentials(
        self, runner: CliRunner, env: dict[str, str], tmp_path: Path
    ) -> None:
        flow = MagicMock()
        flow.authorization_url.return_value = "https://login.live.com/auth?x=1"
        flow.exchange_code.return_value = TokenPair("access-1", "refresh-1")

        with patch("friendly_uploader.cli.auth_flow_from_config", return_value=flow):
            result = runner.invoke(
                cli, ["init"], input="http://127.0.0.1:8080/?code=abc\n", env=env
            )

        assert result.exit_code == 0, result.output
        assert "https://login.live.com/auth?x=1" in result.output
        flow.exchange_code.assert_called_once_with("abc")
        saved = json.loads((tmp_path / "credentials.json").read_text())
        assert saved == {"auth_token": "access-1", "refresh_token": "refresh-1"}

    def test_browser_mode_captures_redirect(self, runner: CliRunner, env: dict[str, str]) -> None:
        flow = MagicMock()
        flow.authorization_url.return_value = "https://login.live.com/auth"
        flow.exchange_code.return_value = TokenPair("a", "r")

        with (
            patch("friendly_uploader.cli.auth_flow_from_config", return_value=flow),
            patch("friendly_uploader.cli.webbrowser.open") as mock_open,
            patch(
                "friendly_uploader.cli.capture_redirect",
                return_value="http://127.0.0.1:8080/?code=xyz",
            ) as mock_capture,
        ):
            result = runner.invoke(cli, ["init", "--browser"], env=env)

        assert result.exit_code == 0, result.output
        mock_open.assert_called_once_with("https://login.live.com/auth")
        assert mock_capture.call_args[0][0] == "http://127.0.0.1:8080/"
        flow.exchange_code.assert_called_once_with("xyz")

    def test_missing_code_reports_error(self, runner: CliRunner, env: dict[str, str]) -> None:
        flow = MagicMock()
        flow.authorization_url.return_value = "https://login.live.com/auth"

        with patch("friendly_uploader.cli.auth_flow_from_config", return_value=flow):
            result = runner.invoke(cli, ["init"], input="http://127.0.0.1:8080/?state=1\n", env=env)

        assert result.exit_code == 1
        assert "authorization code" in result.output
        flow.exchange_code.assert_not_called()

    def test_unwritable_config_dir_reports_error(self, runner: CliRunner, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        flow = MagicMock()
        flow.authorization_url.return_value = "https://login.live.com/auth"
        flow.exchange_code.return_value = TokenPair("a", "r")

        with patch("friendly_uploader.cli.auth_flow_from_config", return_value=flow):
            result = runner.invoke(
                cli,
                ["init"],
                input="http://127.0.0.1:8080/?code=abc\n",
                env={"FU_CONFIG_DIR": str(blocker)},
            )

        assert result.exit_code == 1
        assert "Unable to save credentials" in result.output


# ---------------------------------------------------------------------------
# Session command tests
# ---------------------------------------------------------------------------


class TestMe:
    def test_prints_profile(self, runner: CliRunner, env: dict[str, str]) -> None:
        session = MagicMock()
        session.me.return_value = User(
            id="u-1", display_name="Ada", user_principal_name="ada@example.com"
        )

        with patch("friendly_uploader.cli.onedrive_from_config", return_value=session):
            result = runner.invoke(cli, ["me"], env=env)

        assert result.exit_code == 0, result.output
        assert "Display name: Ada" in result.output
        assert "ada@example.com" in result.output

    def test_missing_credentials_reports_init(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["me"], env=env)

        assert result.exit_code == 1
        assert "Run init" in result.output

    def test_refresh_failure_suggests_init(self, runner: CliRunner, env: dict[str, str]) -> None:
        session = MagicMock()
        session.me.side_effect = TokenRefreshError(400, "invalid_grant")

        with patch("friendly_uploader.cli.onedrive_from_config", return_value=session):
            result = runner.invoke(cli, ["me"], env=env)

        assert result.exit_code == 1
        assert "run init to sign in again" in result.output


class TestLs:
    def test_prints_root_children(self, runner: CliRunner, env: dict[str, str]) -> None:
        session = MagicMock()
        root = session.me.return_value.root.return_value
        root.children.return_value = _collection(
            [DriveItem("Documents", {"folder": {}}), DriveItem("notes.txt", {"file": {}})]
        )

        with patch("friendly_uploader.cli.onedrive_from_config", return_value=session):
            result = runner.invoke(cli, ["ls"], env=env)

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["Documents/", "notes.txt"]

    def test_page_failure_reports_error(self, runner: CliRunner, env: dict[str, str]) -> None:
        session = MagicMock()
        session.me.return_value.root.side_effect = GraphApiError(503, "Service Unavailable")

        with patch("friendly_uploader.cli.onedrive_from_config", return_value=session):
            result = runner.invoke(cli, ["ls"], env=env)

        assert result.exit_code == 1
        assert "503" in result.output


class TestUpload:
    def test_uploads_to_root(self, runner: CliRunner, env: dict[str, str], tmp_path: Path) -> None:
        source = tmp_path / "photo.jpg"
        source.write_bytes(b"jpeg")
        session = MagicMock()
        root = session.me.return_value.root.return_value
        root.upload.return_value = DriveItem("photo.jpg")

        with patch("friendly_uploader.cli.onedrive_from_config", return_value=session):
            result = runner.invoke(cli, ["upload", "--sourcefile", str(source)], env=env)

        assert result.exit_code == 0, result.output
        root.upload.assert_called_once_with(source)
        assert "Successfully uploaded photo.jpg" in result.output

    def test_rejects_missing_file(self, runner: CliRunner, env: dict[str, str]) -> None:
        result = runner.invoke(cli, ["upload", "-s", "/nonexistent/file.bin"], env=env)
        assert result.exit_code == 2


class TestChanges:
    def test_prints_changes_and_next_token(self, runner: CliRunner, env: dict[str, str]) -> None:
        session = MagicMock()
        session.drive.return_value.delta.return_value = _collection(
            [DriveItem("a.txt", {"id": "1"}), DriveItem("", {"id": "2", "deleted": {}})],
            delta_token="tok-2",
        )

        with patch("friendly_uploader.cli.onedrive_from_config", return_value=session):
            result = runner.invoke(cli, ["changes", "--token", "tok-1"], env=env)

        assert result.exit_code == 0, result.output
        session.drive.return_value.delta.assert_called_once_with("tok-1")
        assert result.output.splitlines() == ["changed\ta.txt", "deleted\t2", "Next token: tok-2"]
