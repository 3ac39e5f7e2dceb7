"""
Sessions — Claude Code session discovery and the Session Archiver
==================================================================

Claude Code keeps one directory per project under ``~/.claude/projects``;
each holds append-only ``<session-id>.jsonl`` logs (sub-agent logs are
prefixed ``agent-``).  A process-wide ``~/.claude/history.jsonl`` records
the command history.

The archiver copies every session byte-for-byte into
``<backup-root>/sessions/<backup-id>/<project-id>/`` and writes
``manifest.json`` last.  A single file that fails to copy is logged and
skipped; the backup still completes with the reduced count.

Usage:
    store = SessionStore(config)
    for project in store.list_projects():
        print(project.project_id, len(project.sessions))

    archiver = SessionArchiver(config, store)
    result = archiver.backup()          # None when there is nothing to back up
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from zuppaclaude import __version__
from zuppaclaude.config import ZuppaConfig
from zuppaclaude.console import human_size, log_success
from zuppaclaude.manifest import (
    BackupManifest,
    HistoryEntry,
    ProjectEntry,
    SessionEntry,
    iso_timestamp,
    mint_backup_id,
    write_manifest,
)

logger = logging.getLogger("session_archiver")

SESSION_SUFFIX = ".jsonl"
AGENT_PREFIX = "agent-"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class Session:
    """One conversation log. Read-only to this tool."""

    session_id: str
    file_name: str
    path: Path
    size: int
    modified: datetime

    @property
    def kind(self) -> str:
        return "agent" if self.file_name.startswith(AGENT_PREFIX) else "main"

    @property
    def is_agent(self) -> bool:
        return self.kind == "agent"


@dataclass
class Project:
    """A project directory and its sessions, newest first."""

    project_id: str
    sessions_dir: Path
    sessions: List[Session] = field(default_factory=list)

    @property
    def original_path(self) -> str:
        """Best-effort reversal of Claude Code's path sanitizing."""
        real = self.project_id.replace("-", "/")
        return real[1:] if real.startswith("/") else real

    @property
    def total_size(self) -> int:
        return sum(s.size for s in self.sessions)


@dataclass
class BackupResult:
    """What one archiver run produced."""

    backup_id: str
    path: Path
    sessions: int
    projects: int
    size: int
    history: bool = False
    settings: bool = False
    cloud_uploaded: Optional[bool] = None


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------

class SessionStore:
    """Read-only view of the live Claude Code session store."""

    def __init__(self, config: ZuppaConfig) -> None:
        self.config = config
        self.projects_dir = config.projects_dir

    def project_sessions(self, project_dir: Path) -> List[Session]:
        """Return the sessions of one project directory, newest first."""
        if not project_dir.is_dir():
            return []

        sessions: List[Session] = []
        for fp in project_dir.iterdir():
            if not fp.name.endswith(SESSION_SUFFIX) or not fp.is_file():
                continue
            try:
                stat = fp.stat()
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", fp, exc)
                continue
            sessions.append(Session(
                session_id=fp.name[: -len(SESSION_SUFFIX)],
                file_name=fp.name,
                path=fp,
                size=stat.st_size,
                modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
        sessions.sort(key=lambda s: s.modified, reverse=True)
        return sessions

    def list_projects(self) -> List[Project]:
        """Return every project that has at least one session."""
        if not self.projects_dir.is_dir():
            return []

        projects: List[Project] = []
        for entry in sorted(self.projects_dir.iterdir()):
            if not entry.is_dir():
                continue
            sessions = self.project_sessions(entry)
            if sessions:
                projects.append(Project(project_id=entry.name, sessions_dir=entry, sessions=sessions))
        return projects

    def find(self, session_id: str) -> Optional[Tuple[Project, Session]]:
        """Look up a session by exact id, then by id prefix."""
        projects = self.list_projects()
        for project in projects:
            for session in project.sessions:
                if session.session_id == session_id:
                    return project, session
        for project in projects:
            for session in project.sessions:
                if session.session_id.startswith(session_id):
                    return project, session
        return None

    def export(self, session_id: str, output: Optional[str] = None) -> Optional[Path]:
        """Copy one session log to *output* (default ``./<session-id>.jsonl``)."""
        found = self.find(session_id)
        if found is None:
            logger.error("Session not found: %s", session_id)
            return None

        _, session = found
        dest = Path(output) if output else Path.cwd() / f"{session.session_id}{SESSION_SUFFIX}"
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(session.path, dest)
        except OSError as exc:
            logger.error("Failed to export: %s", exc)
            return None

        log_success(logger, "Session exported to: %s", dest)
        logger.info("Size: %s", human_size(session.size))
        return dest


# ---------------------------------------------------------------------------
# SessionArchiver
# ---------------------------------------------------------------------------

class SessionArchiver:
    """Copies the live session store into a new timestamped backup."""

    def __init__(self, config: ZuppaConfig, store: Optional[SessionStore] = None) -> None:
        self.config = config
        self.store = store or SessionStore(config)
        self.sessions_root = config.sessions_backup_dir

    def _id_taken(self, backup_id: str) -> bool:
        return (
            (self.sessions_root / backup_id).exists()
            or (self.config.settings_backup_dir / backup_id).exists()
        )

    def backup(self, now: Optional[datetime] = None) -> Optional[BackupResult]:
        """Back up all sessions. Returns None when no session exists."""
        projects = self.store.list_projects()
        if not projects:
            logger.warning("No sessions to backup")
            return None

        backup_id = mint_backup_id(self._id_taken, now=now)
        backup_dir = self.sessions_root / backup_id
        backup_dir.mkdir(parents=True, exist_ok=False)

        logger.info("Backing up Claude Code sessions to %s", backup_id)

        manifest = BackupManifest(
            backup_id=backup_id,
            created_at=iso_timestamp(),
            version=__version__,
            hostname=self.config.hostname,
            username=self.config.username,
        )

        backed_up = 0
        total_size = 0

        for project in projects:
            project_dir = backup_dir / project.project_id
            project_dir.mkdir(parents=True, exist_ok=True)
            entry = ProjectEntry(id=project.project_id, path=project.original_path)

            for session in project.sessions:
                try:
                    shutil.copy2(session.path, project_dir / session.file_name)
                except OSError as exc:
                    logger.warning("Failed to backup %s: %s", session.session_id, exc)
                    continue
                entry.sessions.append(SessionEntry(
                    id=session.session_id,
                    file=session.file_name,
                    size=session.size,
                    modified=session.modified.isoformat(),
                    type=session.kind,
                ))
                backed_up += 1
                total_size += session.size

            manifest.projects.append(entry)

        history = self.config.history_file
        if history.is_file():
            try:
                shutil.copy2(history, backup_dir / history.name)
                stat = history.stat()
                manifest.history = HistoryEntry(
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                )
                total_size += stat.st_size
                log_success(logger, "Command history backed up")
            except OSError as exc:
                logger.warning("Failed to backup history: %s", exc)

        # Completion marker: nothing is written after the manifest
        write_manifest(backup_dir, manifest)

        log_success(
            logger, "Backup complete: %d sessions, %s", backed_up, human_size(total_size)
        )
        logger.info("Location: %s", backup_dir)

        return BackupResult(
            backup_id=backup_id,
            path=backup_dir,
            sessions=backed_up,
            projects=len(manifest.projects),
            size=total_size,
            history=manifest.history is not None,
        )
