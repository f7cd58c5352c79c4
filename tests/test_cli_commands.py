"""Test CLI commands."""

import os
from unittest.mock import MagicMock, patch

import yaml
from click.testing import CliRunner

from personal_server.backup.collector import SUCCEEDED, WorkloadBackupResult
from personal_server.backup.manager import BackupReport
from personal_server.cli import cli
from personal_server.utils.errors import NetworkError, TotalFailure


def make_report():
    return BackupReport(
        archive_name="global_backup_20240101_030000.tar.gz.gpg",
        remote_url="https://dav.example.org/backups/global_backup_20240101_030000.tar.gz.gpg",
        included_files=["module:postgres", "module:gitea"],
        files_size=2 * 1024 * 1024,
        success_count=2,
        fail_count=0,
        timestamp="20240101_030000",
        results=[WorkloadBackupResult("postgres", SUCCEEDED), WorkloadBackupResult("gitea", SUCCEEDED)],
    )


class TestCLICommands:
    """Test CLI command functionality."""

    def setup_method(self):
        """Setup test environment."""
        self.runner = CliRunner()

    def test_cli_version(self):
        """Test CLI version display."""
        result = self.runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "version" in result.output.lower()

    def test_cli_help(self):
        """Test CLI help display."""
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "personal-server" in result.output
        assert "Commands:" in result.output

    def test_backup_help(self):
        result = self.runner.invoke(cli, ["backup", "--help"])

        assert result.exit_code == 0
        assert "--decrypt" in result.output
        assert "schedule" in result.output

    def test_backup_success(self, config_file):
        """Test a successful backup run."""
        with patch("personal_server.backup.BackupManager") as mock_manager:
            mock_manager.return_value.run.return_value = make_report()

            result = self.runner.invoke(cli, ["--config", config_file, "backup"])

        assert result.exit_code == 0
        assert "✓ Backup completed: global_backup_20240101_030000.tar.gz.gpg" in result.output
        assert "2 successful, 0 failed" in result.output
        config = mock_manager.call_args[0][0]
        assert config.path == os.path.abspath(config_file)

    def test_backup_total_failure_exits_nonzero(self, config_file):
        error = TotalFailure("No workload was backed up", details="0 successful, 3 failed")
        error.stage = "collect"

        with patch("personal_server.backup.BackupManager") as mock_manager:
            mock_manager.return_value.run.side_effect = error

            result = self.runner.invoke(cli, ["--config", config_file, "backup"])

        assert result.exit_code == 1
        assert "No workload was backed up" in result.output
        assert "Stage: collect" in result.output

    def test_backup_upload_failure_exits_nonzero(self, config_file):
        with patch("personal_server.backup.BackupManager") as mock_manager:
            mock_manager.return_value.run.side_effect = NetworkError("Upload failed")

            result = self.runner.invoke(cli, ["--config", config_file, "backup"])

        assert result.exit_code == 1

    def test_backup_flushes_reporter(self, config_file):
        reporter = MagicMock()

        with patch("personal_server.backup.create_reporter", return_value=reporter):
            with patch("personal_server.backup.BackupManager") as mock_manager:
                mock_manager.return_value.run.return_value = make_report()

                self.runner.invoke(cli, ["--config", config_file, "backup"])

        reporter.flush.assert_called_once()

    def test_backup_missing_config(self):
        result = self.runner.invoke(cli, ["--config", "missing.yaml", "backup"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_decrypt_empty_passphrase(self, monkeypatch):
        """Test an empty passphrase fails before anything is spawned."""
        monkeypatch.delenv("PERSONAL_SERVER_PASSPHRASE", raising=False)
        with open("archive.tar.gz.gpg", "wb") as f:
            f.write(b"x")

        with patch("subprocess.Popen") as mock_popen:
            result = self.runner.invoke(cli, ["backup", "--decrypt", "archive.tar.gz.gpg", "--passphrase", ""])

        assert result.exit_code == 1
        assert "passphrase" in result.output.lower()
        mock_popen.assert_not_called()

    def test_decrypt_does_not_need_config(self):
        with patch("personal_server.backup.RecoveryManager") as mock_recovery:
            mock_recovery.return_value.decrypt_and_extract.return_value = "/restore"

            result = self.runner.invoke(
                cli,
                ["--config", "missing.yaml", "backup", "--decrypt", "a.gpg", "--passphrase", "secret", "--dest", "out"],
            )

        assert result.exit_code == 0
        assert "✓ Archive decrypted and extracted into /restore" in result.output
        args = mock_recovery.return_value.decrypt_and_extract.call_args[0]
        assert args[:3] == ("a.gpg", "secret", "out")

    def test_decrypt_passphrase_from_environment(self, monkeypatch):
        monkeypatch.setenv("PERSONAL_SERVER_PASSPHRASE", "from-env")

        with patch("personal_server.backup.RecoveryManager") as mock_recovery:
            mock_recovery.return_value.decrypt_and_extract.return_value = "/restore"

            result = self.runner.invoke(cli, ["backup", "--decrypt", "a.gpg"])

        assert result.exit_code == 0
        assert mock_recovery.return_value.decrypt_and_extract.call_args[0][1] == "from-env"

    def test_download(self, config_file):
        with patch("personal_server.backup.RemoteArchiveStore") as mock_store:
            mock_store.return_value.download.return_value = "./archive.gpg"

            result = self.runner.invoke(cli, ["--config", config_file, "backup", "download", "archive.gpg"])

        assert result.exit_code == 0
        assert "✓ Downloaded to ./archive.gpg" in result.output
        mock_store.assert_called_once_with("https://dav.example.org/backups", "backup-user", "dav-secret")

    def test_download_requires_webdav_settings(self, temp_directory, sample_config_data):
        del sample_config_data["backup"]["webdav_password"]
        path = os.path.join(temp_directory, "partial.yaml")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(sample_config_data, f)

        result = self.runner.invoke(cli, ["--config", path, "backup", "download", "archive.gpg"])

        assert result.exit_code == 1
        assert "backup.webdav_password" in result.output

    def test_restore_uses_configured_passphrase(self, config_file, monkeypatch):
        monkeypatch.delenv("PERSONAL_SERVER_PASSPHRASE", raising=False)

        with patch("personal_server.backup.RemoteArchiveStore"):
            with patch("personal_server.backup.RecoveryManager") as mock_recovery:
                mock_recovery.return_value.restore.return_value = "/restore"

                result = self.runner.invoke(cli, ["--config", config_file, "backup", "restore", "archive.gpg"])

        assert result.exit_code == 0
        assert mock_recovery.return_value.restore.call_args[0][1] == "correct horse battery staple"

    def test_schedule_add(self, config_file):
        with patch("personal_server.backup.ScheduleManager") as mock_schedule:
            mock_schedule.return_value.add.return_value = "0 3 * * * /bin/ps --config c backup # tag"

            result = self.runner.invoke(cli, ["--config", config_file, "backup", "schedule"])

        assert result.exit_code == 0
        assert "✓ Backup scheduled" in result.output
        mock_schedule.return_value.add.assert_called_once_with("0 3 * * *", os.path.abspath(config_file))

    def test_schedule_clear_without_entries(self):
        with patch("personal_server.backup.ScheduleManager") as mock_schedule:
            mock_schedule.return_value.clear.return_value = 0

            result = self.runner.invoke(cli, ["backup", "schedule", "clear"])

        assert result.exit_code == 0
        assert "No backup schedule found" in result.output

    def test_schedule_clear(self):
        with patch("personal_server.backup.ScheduleManager") as mock_schedule:
            mock_schedule.return_value.clear.return_value = 2

            result = self.runner.invoke(cli, ["backup", "schedule", "clear"])

        assert result.exit_code == 0
        assert "✓ Removed 2 scheduled backup(s)" in result.output

    def test_schedule_show(self):
        with patch("personal_server.backup.ScheduleManager") as mock_schedule:
            mock_schedule.return_value.show.return_value = ["0 3 * * * x # personal-server-backup-job"]

            result = self.runner.invoke(cli, ["backup", "schedule", "show"])

        assert result.exit_code == 0
        assert "Scheduled backups (1):" in result.output

    def test_config_masks_secrets(self, config_file):
        result = self.runner.invoke(cli, ["--config", config_file, "config"])

        assert result.exit_code == 0
        assert "backup-user" in result.output
        assert "dav-secret" not in result.output
        assert "correct horse battery staple" not in result.output
        assert "redis-secret" not in result.output

    def test_workloads(self, config_file):
        result = self.runner.invoke(cli, ["--config", config_file, "workloads"])

        assert result.exit_code == 0
        assert "✓ postgres: backup" in result.output
        assert "✓ cloudflare: no backup" in result.output
        assert "✗ bitwarden: backup" in result.output
        assert "✓ namespace: no backup" in result.output
