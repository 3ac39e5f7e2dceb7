"""
Restore Engine — replay a backup into the live session store.

Never destroys live data: when a session (or ``history.jsonl``) already
exists at the destination, the backup copy is written next to it as
``<id>.restored.jsonl`` (then ``<id>.restored-2.jsonl``, ...).  Manifest
entries whose file is missing from the backup are skipped with a warning;
the pass still completes and counts as a success.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from zuppaclaude.catalog import BackupCatalog
from zuppaclaude.config import HISTORY_FILE_NAME, ZuppaConfig
from zuppaclaude.console import log_success
from zuppaclaude.errors import BackupNotFoundError, ManifestError

logger = logging.getLogger("restore_engine")

RESTORED_TAG = ".restored"


@dataclass
class RestoreReport:
    backup_id: str
    restored: int = 0           # written under the original name
    renamed: int = 0            # written beside an existing live file
    skipped: int = 0            # missing in the backup or failed to copy
    history_restored: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.restored + self.renamed


def _safe_name(name: str) -> bool:
    """True for a plain file or directory name with no path components."""
    return bool(name) and name not in (".", "..") and Path(name).name == name and "\\" not in name


def _sibling_session_path(dest: Path) -> Path:
    """First free ``<stem>.restored[-N].jsonl`` beside *dest*."""
    stem, suffix = dest.stem, dest.suffix
    candidate = dest.with_name(f"{stem}{RESTORED_TAG}{suffix}")
    n = 2
    while candidate.exists():
        candidate = dest.with_name(f"{stem}{RESTORED_TAG}-{n}{suffix}")
        n += 1
    return candidate


def _sibling_history_path(dest: Path) -> Path:
    """First free ``history.jsonl.restored[-N]`` beside *dest*."""
    candidate = dest.with_name(f"{dest.name}{RESTORED_TAG}")
    n = 2
    while candidate.exists():
        candidate = dest.with_name(f"{dest.name}{RESTORED_TAG}-{n}")
        n += 1
    return candidate


class RestoreEngine:
    """Copies a backup's sessions back without overwriting anything."""

    def __init__(self, config: ZuppaConfig, catalog: Optional[BackupCatalog] = None) -> None:
        self.config = config
        self.catalog = catalog or BackupCatalog(config)

    def _warn(self, report: RestoreReport, msg: str, *args) -> None:
        text = msg % args if args else msg
        logger.warning(text)
        report.warnings.append(text)

    def run(self, backup_id: str) -> Optional[RestoreReport]:
        """Restore *backup_id*; None when the backup is missing or invalid."""
        backup_dir = self.catalog.backup_dir(backup_id)
        try:
            manifest = self.catalog.load_manifest(backup_id)
        except (BackupNotFoundError, ManifestError) as exc:
            logger.error("%s", exc.message)
            if exc.detail:
                logger.debug("%s", exc.detail)
            return None

        logger.info("Restoring from backup: %s", backup_id)
        report = RestoreReport(backup_id=backup_id)

        for project in manifest.projects:
            if not _safe_name(project.id):
                self._warn(report, "Unsafe project id in manifest, skipped: %s", project.id)
                report.skipped += len(project.sessions)
                continue
            src_dir = backup_dir / project.id
            dest_dir = self.config.projects_dir / project.id
            try:
                dest_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._warn(report, "Cannot create project %s, skipped: %s", project.id, exc)
                report.skipped += len(project.sessions)
                continue

            for session in project.sessions:
                if not _safe_name(session.file):
                    self._warn(report, "Unsafe file name in manifest, skipped: %s", session.file)
                    report.skipped += 1
                    continue
                src = src_dir / session.file
                if not src.is_file():
                    self._warn(report, "Missing from backup, skipped: %s/%s", project.id, session.file)
                    report.skipped += 1
                    continue

                dest = dest_dir / session.file
                renamed = dest.exists()
                if renamed:
                    dest = _sibling_session_path(dest)
                try:
                    shutil.copy2(src, dest)
                except OSError as exc:
                    self._warn(report, "Failed to restore %s: %s", session.id, exc)
                    report.skipped += 1
                    continue

                if renamed:
                    report.renamed += 1
                    logger.debug("Kept live %s, restored as %s", session.file, dest.name)
                else:
                    report.restored += 1

        self._restore_history(backup_dir, manifest.history is not None, report)

        log_success(logger, "Restored %d sessions", report.total)
        if report.renamed:
            logger.info("%d sessions already existed and were restored with a %s suffix",
                        report.renamed, RESTORED_TAG)
        if report.skipped:
            logger.warning("%d sessions skipped", report.skipped)
        logger.info("Restart Claude Code to see restored sessions")
        return report

    def _restore_history(self, backup_dir: Path, recorded: bool, report: RestoreReport) -> None:
        src = backup_dir / HISTORY_FILE_NAME
        if not src.is_file():
            if recorded:
                self._warn(report, "Missing from backup, skipped: %s", HISTORY_FILE_NAME)
            return
        dest = self.config.history_file
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if dest.exists():
                target = _sibling_history_path(dest)
                shutil.copy2(src, target)
                logger.info("History restored as %s", target.name)
            else:
                shutil.copy2(src, dest)
                log_success(logger, "Command history restored")
            report.history_restored = True
        except OSError as exc:
            self._warn(report, "Failed to restore history: %s", exc)

    def restore(self, backup_id: str) -> bool:
        return self.run(backup_id) is not None
