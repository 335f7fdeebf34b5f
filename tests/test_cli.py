"""Tests for the packhub command line."""

import os

import pytest
import yaml
from click.testing import CliRunner

import packhub.config as config_mod
from packhub.auth.api_key import read_api_token
from packhub.cli import cli
from packhub.config import clear_settings_cache


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "app.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "db": {"url": f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"},
                "storage": {"base_path": str(tmp_path / "uploads")},
                "auth": {"token_path": str(tmp_path / "apiToken.json")},
            }
        )
    )
    yield path
    config_mod._config_path_override = None
    clear_settings_cache()


class TestCli:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "token", "sweep-staging", "collect"):
            assert command in result.output

    def test_token_creates_and_reuses(self, config_file, tmp_path):
        runner = CliRunner()

        first = runner.invoke(cli, ["-f", str(config_file), "token"])
        second = runner.invoke(cli, ["-f", str(config_file), "token"])

        assert first.exit_code == 0
        token = first.output.strip()
        assert second.output.strip() == token
        assert read_api_token(tmp_path / "apiToken.json") == token

    def test_sweep_staging(self, config_file, tmp_path):
        stale = tmp_path / "uploads" / "temp" / "old.zip"
        stale.mkdir(parents=True)
        (stale / "0").write_bytes(b"x")
        for path in (stale / "0", stale):
            os.utime(path, (0, 0))

        result = CliRunner().invoke(cli, ["-f", str(config_file), "sweep-staging", "--max-age", "60"])

        assert result.exit_code == 0
        assert "removed old.zip" in result.output
        assert not stale.exists()

    def test_collect_deletes_unreferenced(self, config_file, tmp_path):
        thumbnails = tmp_path / "uploads" / "thumbnails"
        thumbnails.mkdir(parents=True)
        (thumbnails / "orphan.png").write_bytes(b"x")

        result = CliRunner().invoke(
            cli, ["-f", str(config_file), "collect", "orphan.png", "ghost.png"]
        )

        assert result.exit_code == 0, result.output
        assert "orphan.png: deleted" in result.output
        assert "ghost.png: retained (not_found)" in result.output
        assert not (thumbnails / "orphan.png").exists()
