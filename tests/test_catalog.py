"""Test catalog — ZuppaClaude."""
from __future__ import annotations

from datetime import datetime

import pytest

from zuppaclaude.catalog import BackupCatalog
from zuppaclaude.errors import BackupNotFoundError, ManifestError
from zuppaclaude.sessions import SessionArchiver


# ===================================================================
# BackupCatalog
# ===================================================================

class TestBackupCatalog:
    """Listing local backups newest first, degrading on bad manifests."""

    @pytest.mark.unit
    def test_empty(self, config):
        catalog = BackupCatalog(config)
        assert catalog.list_backups() == []
        assert catalog.latest() is None
        assert catalog.get("2026-01-05-13.56") is None

    @pytest.mark.unit
    def test_newest_first(self, populated_store, config):
        archiver = SessionArchiver(config)
        for stamp in (datetime(2026, 1, 1, 9, 0), datetime(2026, 2, 1, 9, 0), datetime(2026, 1, 2, 9, 0)):
            archiver.backup(now=stamp)

        ids = [b.backup_id for b in BackupCatalog(config).list_backups()]
        assert ids == ["2026-02-01-09.00", "2026-01-02-09.00", "2026-01-01-09.00"]

    @pytest.mark.unit
    def test_summary_counts(self, populated_store, config):
        result = SessionArchiver(config).backup()
        summary = BackupCatalog(config).get(result.backup_id)
        assert summary.valid is True
        assert summary.projects == 2
        assert summary.sessions == 3
        assert summary.created_at
        assert summary.has_settings is False

    @pytest.mark.unit
    def test_directory_without_manifest_is_degraded(self, populated_store, config):
        SessionArchiver(config).backup(now=datetime(2026, 1, 1, 9, 0))
        partial = config.sessions_backup_dir / "2026-03-01-10.00"
        (partial / "some-project").mkdir(parents=True)

        backups = BackupCatalog(config).list_backups()
        assert [b.backup_id for b in backups] == ["2026-03-01-10.00", "2026-01-01-09.00"]
        degraded = backups[0]
        assert degraded.valid is False
        assert degraded.projects == 0
        assert degraded.sessions == 0

    @pytest.mark.unit
    def test_corrupt_manifest_never_raises(self, config):
        broken = config.sessions_backup_dir / "2026-01-01-09.00"
        broken.mkdir(parents=True)
        (broken / "manifest.json").write_text("{{{", encoding="utf-8")
        backups = BackupCatalog(config).list_backups()
        assert len(backups) == 1
        assert backups[0].valid is False

    @pytest.mark.unit
    def test_latest_skips_invalid(self, populated_store, config):
        SessionArchiver(config).backup(now=datetime(2026, 1, 1, 9, 0))
        (config.sessions_backup_dir / "2026-05-01-10.00").mkdir()
        assert BackupCatalog(config).latest().backup_id == "2026-01-01-09.00"

    @pytest.mark.unit
    def test_ignores_dot_directories_and_files(self, populated_store, config):
        SessionArchiver(config).backup(now=datetime(2026, 1, 1, 9, 0))
        (config.sessions_backup_dir / ".temp").mkdir()
        (config.sessions_backup_dir / "stray.txt").write_text("x")
        assert [b.backup_id for b in BackupCatalog(config).list_backups()] == ["2026-01-01-09.00"]

    @pytest.mark.unit
    def test_has_settings_from_snapshot(self, populated_store, config):
        result = SessionArchiver(config).backup()
        snap = config.settings_backup_dir / result.backup_id / "zc-settings.json"
        snap.parent.mkdir(parents=True)
        snap.write_text("{}", encoding="utf-8")
        assert BackupCatalog(config).get(result.backup_id).has_settings is True

    @pytest.mark.unit
    def test_load_manifest_errors(self, config):
        catalog = BackupCatalog(config)
        with pytest.raises(BackupNotFoundError) as exc_info:
            catalog.load_manifest("2020-01-01-00.00")
        assert exc_info.value.backup_id == "2020-01-01-00.00"

        (config.sessions_backup_dir / "2026-03-01-10.00").mkdir(parents=True)
        with pytest.raises(ManifestError):
            catalog.load_manifest("2026-03-01-10.00")
