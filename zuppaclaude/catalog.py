"""
Backup Catalog — list and look up local backups.

Reads ``<backup-root>/sessions/*/manifest.json``.  A directory whose
manifest is missing or unreadable is still listed (id = directory name,
zero counts, ``valid=False``) so the operator can see and clean it up;
listing never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from zuppaclaude.config import SETTINGS_FILE_NAME, ZuppaConfig
from zuppaclaude.errors import BackupNotFoundError, ManifestError
from zuppaclaude.manifest import BackupManifest, backup_sort_key, read_manifest

logger = logging.getLogger("backup_catalog")


@dataclass
class BackupSummary:
    backup_id: str
    path: Path
    projects: int = 0
    sessions: int = 0
    created_at: str = ""
    valid: bool = False
    has_settings: bool = False


class BackupCatalog:
    """Newest-first view over the local backups of this host/user."""

    def __init__(self, config: ZuppaConfig) -> None:
        self.config = config
        self.sessions_root = config.sessions_backup_dir
        self.settings_root = config.settings_backup_dir

    def backup_dir(self, backup_id: str) -> Path:
        return self.sessions_root / backup_id

    def settings_dir(self, backup_id: str) -> Path:
        return self.settings_root / backup_id

    def exists(self, backup_id: str) -> bool:
        return self.backup_dir(backup_id).is_dir()

    def load_manifest(self, backup_id: str) -> BackupManifest:
        """Manifest of *backup_id*.

        Raises:
            BackupNotFoundError: if the backup directory does not exist.
            ManifestError: if the backup is partial or the manifest is unreadable.
        """
        backup_dir = self.backup_dir(backup_id)
        if not backup_dir.is_dir():
            raise BackupNotFoundError(backup_id)
        return read_manifest(backup_dir)

    def _summarize(self, backup_dir: Path) -> BackupSummary:
        summary = BackupSummary(backup_id=backup_dir.name, path=backup_dir)
        summary.has_settings = (self.settings_dir(backup_dir.name) / SETTINGS_FILE_NAME).is_file()
        try:
            manifest = read_manifest(backup_dir)
        except ManifestError as exc:
            logger.debug("Listing %s without manifest: %s", backup_dir.name, exc)
            return summary
        summary.projects = len(manifest.projects)
        summary.sessions = manifest.session_count
        summary.created_at = manifest.created_at
        summary.valid = True
        summary.has_settings = summary.has_settings or manifest.settings
        return summary

    def list_backups(self) -> List[BackupSummary]:
        if not self.sessions_root.is_dir():
            return []
        try:
            entries = [
                p for p in self.sessions_root.iterdir()
                if p.is_dir() and not p.name.startswith(".")
            ]
        except OSError as exc:
            logger.warning("Cannot read backup directory %s: %s", self.sessions_root, exc)
            return []
        summaries = [self._summarize(p) for p in entries]
        summaries.sort(key=lambda s: backup_sort_key(s.backup_id), reverse=True)
        return summaries

    def get(self, backup_id: str) -> Optional[BackupSummary]:
        if not self.exists(backup_id):
            return None
        return self._summarize(self.backup_dir(backup_id))

    def latest(self) -> Optional[BackupSummary]:
        for summary in self.list_backups():
            if summary.valid:
                return summary
        return None
