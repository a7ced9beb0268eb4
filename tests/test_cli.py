"""Tests for the chatsync command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from chatsync.cli import main
from chatsync.store import LocalStore


def _invoke(*args: str):
    return CliRunner().invoke(main, list(args))


def _configure_local(home: Path, remote: Path):
    return _invoke(
        "sync", "config", "--home", str(home),
        "--provider", "local", "--path", str(remote), "--username", "alice",
    )


class TestSessionCommands:
    """session new / add / list."""

    def test_new_add_list(self, sync_home):
        result = _invoke("session", "new", "--home", str(sync_home), "--topic", "Trip")
        assert result.exit_code == 0
        session_id = LocalStore(sync_home).read().sessions[0].id

        result = _invoke("session", "add", session_id, "hello there", "--home", str(sync_home))
        assert result.exit_code == 0
        assert LocalStore(sync_home).read().message_count() == 1

        result = _invoke("session", "list", "--home", str(sync_home))
        assert result.exit_code == 0
        assert "Trip" in result.output

    def test_add_to_unknown_session(self, sync_home):
        result = _invoke("session", "add", "nope", "hi", "--home", str(sync_home))
        assert result.exit_code == 1


class TestSyncCommands:
    """sync config / run / status / check."""

    def test_config_persists(self, sync_home, tmp_path):
        result = _configure_local(sync_home, tmp_path / "remote")
        assert result.exit_code == 0

        data = yaml.safe_load((sync_home / "config.yaml").read_text())
        assert data["provider"] == "local"
        assert data["local"]["username"] == "alice"

    def test_secret_not_echoed(self, sync_home):
        result = _invoke(
            "sync", "config", "--home", str(sync_home),
            "--provider", "webdav", "--username", "bob", "--secret", "hunter2",
        )
        assert result.exit_code == 0
        assert "hunter2" not in result.output

    def test_run_requires_complete_config(self, sync_home):
        result = _invoke("sync", "run", "--home", str(sync_home))
        assert result.exit_code == 1
        assert "not fully configured" in result.output

    def test_run_uploads_and_status_reports(self, sync_home, tmp_path):
        remote = tmp_path / "remote"
        _configure_local(sync_home, remote)
        _invoke("session", "new", "--home", str(sync_home), "--topic", "Synced")

        result = _invoke("sync", "run", "--home", str(sync_home))
        assert result.exit_code == 0, result.output
        assert "Sync Complete" in result.output

        payload = json.loads((remote / "alice.json").read_text())
        assert payload["sessions"][0]["topic"] == "Synced"

        result = _invoke("sync", "status", "--home", str(sync_home))
        assert result.exit_code == 0
        assert "never" not in result.output

    def test_run_reports_bad_remote(self, sync_home, tmp_path):
        remote = tmp_path / "remote"
        remote.mkdir()
        (remote / "alice.json").write_text("corrupt")
        _configure_local(sync_home, remote)

        result = _invoke("sync", "run", "--home", str(sync_home))
        assert result.exit_code == 1
        assert "Sync failed" in result.output

    def test_check(self, sync_home, tmp_path):
        remote = tmp_path / "remote"
        _configure_local(sync_home, remote)
        assert _invoke("sync", "check", "--home", str(sync_home)).exit_code == 1
        remote.mkdir()
        assert _invoke("sync", "check", "--home", str(sync_home)).exit_code == 0

    def test_broken_config(self, sync_home):
        (sync_home / "config.yaml").write_text("provider: [oops")
        result = _invoke("sync", "status", "--home", str(sync_home))
        assert result.exit_code == 1
        assert "migration failed" in result.output


class TestBackupCommands:
    """backup export / import / list."""

    def test_export_import_list(self, sync_home, tmp_path):
        _invoke("session", "new", "--home", str(sync_home), "--topic", "Keep")

        result = _invoke("backup", "export", "--home", str(sync_home))
        assert result.exit_code == 0
        backups = list((sync_home / "backups").glob("Backup-*.json"))
        assert len(backups) == 1

        other = tmp_path / "other"
        result = _invoke("backup", "import", str(backups[0]), "--home", str(other))
        assert result.exit_code == 0
        assert LocalStore(other).read().sessions[0].topic == "Keep"

        result = _invoke("backup", "list", "--home", str(sync_home))
        assert result.exit_code == 0
        assert "Backup-" in result.output

    def test_import_invalid(self, sync_home, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text('{"sessions": 1}')
        result = _invoke("backup", "import", str(bad), "--home", str(sync_home))
        assert result.exit_code == 1
        assert "Import failed" in result.output


class TestCorruptLocalState:
    """A damaged state.json is reported, not raised."""

    @pytest.fixture()
    def corrupt_home(self, sync_home):
        (sync_home / "state.json").write_text('{"sessions": "oops"')
        return sync_home

    @pytest.mark.parametrize(
        "args",
        [
            ("session", "new"),
            ("session", "add", "S1", "hi"),
            ("session", "list"),
        ],
    )
    def test_session_commands(self, corrupt_home, args):
        result = _invoke(*args, "--home", str(corrupt_home))
        assert result.exit_code == 1
        assert "Local state is unreadable" in result.output

    def test_backup_export(self, corrupt_home):
        result = _invoke("backup", "export", "--home", str(corrupt_home))
        assert result.exit_code == 1
        assert "Export failed" in result.output
        assert not (corrupt_home / "backups").exists()

    def test_backup_import(self, corrupt_home, tmp_path):
        snapshot = tmp_path / "snap.json"
        snapshot.write_text('{"sessions": []}')
        result = _invoke("backup", "import", str(snapshot), "--home", str(corrupt_home))
        assert result.exit_code == 1
        assert "Import failed" in result.output
