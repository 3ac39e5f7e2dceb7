"""
Unified Backup Orchestrator — sessions + settings + optional cloud
===================================================================

A "full" backup is one archiver run, a settings snapshot stored under
``settings/<backup-id>/zc-settings.json`` and, when a remote is named, an
upload of both.  The local backup is complete before the cloud step starts,
so a cloud failure is reported but never undoes or fails it.

A full restore runs:

    start -> (cloud-fetch?) -> validate-local -> restore-sessions? -> restore-settings? -> done

Nothing is retried; every failure is logged once and surfaces as ``False``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from zuppaclaude.catalog import BackupCatalog, BackupSummary
from zuppaclaude.cloud import CloudArchiveBridge
from zuppaclaude.config import SETTINGS_FILE_NAME, ZuppaConfig
from zuppaclaude.console import human_size, log_success
from zuppaclaude.environment import run_sync
from zuppaclaude.errors import ManifestError, SettingsError
from zuppaclaude.manifest import load_json, read_manifest, save_json, write_manifest
from zuppaclaude.restore import RestoreEngine, RestoreReport
from zuppaclaude.sessions import BackupResult, SessionArchiver
from zuppaclaude.settings import SETTINGS_FILE_MODE, SettingsStore

logger = logging.getLogger("backup_orchestrator")

_MISSING = object()


@dataclass
class RestoreSummary:
    """Per-category outcome of a full restore."""

    backup_id: str
    ok: bool = False
    sessions_restored: Optional[bool] = None    # None = not requested
    settings_restored: Optional[bool] = None
    sessions_report: Optional[RestoreReport] = None


class BackupOrchestrator:
    """Full backup and restore across the session store, settings and cloud."""

    def __init__(
        self,
        config: ZuppaConfig,
        archiver: Optional[SessionArchiver] = None,
        restore_engine: Optional[RestoreEngine] = None,
        cloud: Optional[CloudArchiveBridge] = None,
        settings_store: Optional[SettingsStore] = None,
        catalog: Optional[BackupCatalog] = None,
    ) -> None:
        self.config = config
        self.catalog = catalog or BackupCatalog(config)
        self.archiver = archiver or SessionArchiver(config)
        self.restore_engine = restore_engine or RestoreEngine(config, self.catalog)
        self.cloud = cloud or CloudArchiveBridge(config)
        self.settings_store = settings_store or SettingsStore(config)

    # -----------------------------------------------------------------------
    # Backup
    # -----------------------------------------------------------------------

    def _snapshot_settings(self, backup_id: str) -> bool:
        settings = self.settings_store.load()
        if settings is None:
            logger.info("No settings to back up")
            return False
        target = self.catalog.settings_dir(backup_id) / SETTINGS_FILE_NAME
        try:
            save_json(target, settings, mode=SETTINGS_FILE_MODE)
        except OSError as exc:
            logger.warning("Failed to back up settings: %s", exc)
            return False
        log_success(logger, "Settings backed up")
        return True

    def _mark_full(self, result: BackupResult) -> None:
        try:
            manifest = read_manifest(result.path)
        except ManifestError as exc:
            logger.warning("Could not update manifest: %s", exc.message)
            return
        manifest.settings = result.settings
        manifest.backup_type = "full"
        write_manifest(result.path, manifest)

    async def backup(self, cloud: Optional[str] = None) -> Optional[BackupResult]:
        """Archive sessions, snapshot settings and optionally upload.

        Returns None when there was nothing to back up.
        """
        result = self.archiver.backup()
        if result is None:
            return None

        result.settings = self._snapshot_settings(result.backup_id)
        self._mark_full(result)

        if cloud:
            logger.info("Uploading to cloud: %s", cloud)
            if not await self.cloud.ensure_ready(cloud):
                logger.warning("Cloud upload skipped, local backup kept")
                result.cloud_uploaded = False
            else:
                result.cloud_uploaded = await self.cloud.upload(
                    cloud, result.backup_id, check=False)
                if not result.cloud_uploaded:
                    logger.warning("Cloud upload failed, local backup kept")

        log_success(logger, "Full backup %s: %d sessions, %s%s",
                    result.backup_id, result.sessions, human_size(result.size),
                    ", settings" if result.settings else "")
        return result

    def backup_sync(self, cloud: Optional[str] = None) -> Optional[BackupResult]:
        """Synchronous wrapper for :meth:`backup`."""
        return run_sync(self.backup(cloud))

    # -----------------------------------------------------------------------
    # Restore
    # -----------------------------------------------------------------------

    def _read_settings_snapshot(self, backup_id: str) -> Optional[dict]:
        candidates = [
            self.catalog.settings_dir(backup_id) / SETTINGS_FILE_NAME,
            self.catalog.backup_dir(backup_id) / SETTINGS_FILE_NAME,  # older layout
        ]
        for path in candidates:
            if not path.is_file():
                continue
            data = load_json(path, default=_MISSING)
            if isinstance(data, dict):
                return data
            logger.warning("Could not parse settings snapshot: %s", path)
        return None

    def _restore_settings(self, backup_id: str) -> bool:
        snapshot = self._read_settings_snapshot(backup_id)
        if snapshot is None:
            logger.warning("No settings in backup %s", backup_id)
            return False
        try:
            self.settings_store.save(snapshot)
        except SettingsError as exc:
            logger.error("Failed to restore settings: %s", exc.message)
            if exc.detail:
                logger.debug("%s", exc.detail)
            return False
        log_success(logger, "Settings restored")
        return True

    async def restore_with_summary(
        self,
        backup_id: str,
        cloud: Optional[str] = None,
        settings_only: bool = False,
        sessions_only: bool = False,
    ) -> RestoreSummary:
        summary = RestoreSummary(backup_id=backup_id)
        if settings_only and sessions_only:
            logger.error("--settings-only and --sessions-only cannot be combined")
            return summary

        if cloud:
            if not await self.cloud.ensure_ready(cloud):
                return summary
            logger.info("Downloading %s from %s...", backup_id, cloud)
            if not await self.cloud.download(cloud, backup_id, check=False):
                logger.warning("Cloud download failed, trying local copy")

        has_sessions = self.catalog.exists(backup_id)
        has_settings = self.catalog.settings_dir(backup_id).is_dir()
        if not has_sessions and not has_settings:
            logger.error("Backup not found: %s", backup_id)
            logger.info("Run 'zuppaclaude backup list' to see available backups")
            return summary

        if not settings_only:
            if has_sessions:
                report = self.restore_engine.run(backup_id)
                summary.sessions_report = report
                summary.sessions_restored = report is not None
            else:
                logger.warning("Backup %s has no sessions", backup_id)
                summary.sessions_restored = False

        if not sessions_only:
            summary.settings_restored = self._restore_settings(backup_id)

        requested = [r for r in (summary.sessions_restored, summary.settings_restored)
                     if r is not None]
        if settings_only or sessions_only:
            summary.ok = all(requested)
        else:
            summary.ok = any(requested)
        return summary

    async def restore(
        self,
        backup_id: str,
        cloud: Optional[str] = None,
        settings_only: bool = False,
        sessions_only: bool = False,
    ) -> bool:
        summary = await self.restore_with_summary(
            backup_id, cloud=cloud, settings_only=settings_only, sessions_only=sessions_only
        )
        return summary.ok

    def restore_with_summary_sync(
        self,
        backup_id: str,
        cloud: Optional[str] = None,
        settings_only: bool = False,
        sessions_only: bool = False,
    ) -> RestoreSummary:
        """Synchronous wrapper for :meth:`restore_with_summary`."""
        return run_sync(self.restore_with_summary(
            backup_id, cloud=cloud, settings_only=settings_only, sessions_only=sessions_only
        ))

    def restore_sync(
        self,
        backup_id: str,
        cloud: Optional[str] = None,
        settings_only: bool = False,
        sessions_only: bool = False,
    ) -> bool:
        """Synchronous wrapper for :meth:`restore`."""
        return run_sync(self.restore(
            backup_id, cloud=cloud, settings_only=settings_only, sessions_only=sessions_only
        ))

    # -----------------------------------------------------------------------
    # List
    # -----------------------------------------------------------------------

    async def list(self, cloud: Optional[str] = None) -> Tuple[List[BackupSummary], List[str]]:
        """Local summaries and, when *cloud* is given, the remote ids."""
        local = self.catalog.list_backups()
        remote: List[str] = []
        if cloud:
            remote = await self.cloud.list_cloud_backups(cloud)
        return local, remote

    def list_sync(self, cloud: Optional[str] = None) -> Tuple[List[BackupSummary], List[str]]:
        """Synchronous wrapper for :meth:`list`."""
        return run_sync(self.list(cloud))
