"""
Backup manifests and backup ids
================================

``manifest.json`` is the authoritative description of a backup and its
completion marker: the archiver writes it as the very last step, so a backup
directory without a readable manifest is partial and must not be trusted.

Backup ids are local timestamps, ``YYYY-MM-DD-HH.MM``, so that lexical
order equals chronological order.  A second backup in the same minute gets
a ``-2``, ``-3``, ... suffix.  Older ids in the ``Jan-05-2026-13.56`` and
``2026-01-05T12-00-00`` styles are still recognised when sorting.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from zuppaclaude.errors import ManifestError

logger = logging.getLogger("manifest")

MANIFEST_FILE_NAME = "manifest.json"
BACKUP_ID_FORMAT = "%Y-%m-%d-%H.%M"

_ID_FORMATS = (
    BACKUP_ID_FORMAT,
    "%b-%d-%Y-%H.%M",
    "%Y-%m-%dT%H-%M-%S",
)
_SEQ_RE = re.compile(r"^(?P<base>.+?)(?:-(?P<seq>\d{1,3}))?$")


# ---------------------------------------------------------------------------
# Helpers — Time
# ---------------------------------------------------------------------------

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(dt: Optional[datetime] = None) -> str:
    """Return *dt* (default: now) as an ISO-8601 UTC string."""
    dt = dt or _now_utc()
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Helpers — Atomic JSON
# ---------------------------------------------------------------------------

def load_json(path: Path, default: Any = None) -> Any:
    """Load JSON from *path*, returning *default* when the file is missing or corrupt."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (FileNotFoundError, json.JSONDecodeError, UnicodeDecodeError):
        return default


def save_json(path: Path, data: Any, mode: Optional[int] = None) -> None:
    """Atomically write *data* as pretty-printed JSON to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
            fh.write("\n")
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(str(tmp), str(path))
    except Exception:
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        raise


# ---------------------------------------------------------------------------
# Backup ids
# ---------------------------------------------------------------------------

def parse_backup_id(backup_id: str) -> Optional[Tuple[datetime, int]]:
    """Return ``(timestamp, sequence)`` for a recognised id, else None."""
    for candidate, seq in _id_candidates(backup_id):
        for fmt in _ID_FORMATS:
            try:
                return datetime.strptime(candidate, fmt), seq
            except ValueError:
                continue
    return None


def _id_candidates(backup_id: str) -> List[Tuple[str, int]]:
    candidates = [(backup_id, 1)]
    match = _SEQ_RE.match(backup_id)
    if match and match.group("seq"):
        candidates.append((match.group("base"), int(match.group("seq"))))
    return candidates


def backup_sort_key(backup_id: str) -> Tuple[int, datetime, int, str]:
    """Sort key putting recognised ids in time order ahead of unknown ones.

    Use with ``reverse=True`` for newest first.
    """
    parsed = parse_backup_id(backup_id)
    if parsed is None:
        return (0, datetime.min, 0, backup_id)
    stamp, seq = parsed
    return (1, stamp, seq, backup_id)


def mint_backup_id(
    taken: Callable[[str], bool],
    now: Optional[datetime] = None,
) -> str:
    """Create a new backup id for *now* that *taken* reports as free."""
    base = (now or datetime.now()).strftime(BACKUP_ID_FORMAT)
    if not taken(base):
        return base
    seq = 2
    while taken(f"{base}-{seq}"):
        seq += 1
    return f"{base}-{seq}"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class SessionEntry:
    """One copied session file."""

    id: str
    file: str
    size: int
    modified: str               # ISO-8601
    type: str = "main"          # main | agent

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SessionEntry":
        file_name = d["file"]
        return cls(
            id=d.get("id") or file_name.rsplit(".jsonl", 1)[0],
            file=file_name,
            size=int(d.get("size", 0)),
            modified=d.get("modified", ""),
            type=d.get("type", "main"),
        )


@dataclass
class ProjectEntry:
    """A project directory and the sessions captured from it."""

    id: str
    path: str
    sessions: List[SessionEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProjectEntry":
        return cls(
            id=d["id"],
            path=d.get("path", ""),
            sessions=[SessionEntry.from_dict(s) for s in d.get("sessions", [])],
        )


@dataclass
class HistoryEntry:
    size: int
    modified: str


@dataclass
class BackupManifest:
    """Describes a single backup: what was captured, from where, when."""

    backup_id: str
    created_at: str
    version: str
    hostname: str
    username: str
    projects: List[ProjectEntry] = field(default_factory=list)
    history: Optional[HistoryEntry] = None
    settings: bool = False
    backup_type: str = "sessions"           # sessions | full

    @property
    def session_count(self) -> int:
        return sum(len(p.sessions) for p in self.projects)

    @property
    def total_size(self) -> int:
        size = sum(s.size for p in self.projects for s in p.sessions)
        if self.history:
            size += self.history.size
        return size

    # -- Serialization --

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BackupManifest":
        history = d.get("history")
        return cls(
            backup_id=d.get("backup_id") or d["timestamp"],
            created_at=d.get("created_at") or d.get("timestampISO", ""),
            version=d.get("version", ""),
            hostname=d.get("hostname", ""),
            username=d.get("username", ""),
            projects=[ProjectEntry.from_dict(p) for p in d.get("projects", [])],
            history=HistoryEntry(
                size=int(history.get("size", 0)),
                modified=history.get("modified", ""),
            ) if isinstance(history, dict) else None,
            settings=bool(d.get("settings", False)),
            backup_type=d.get("backup_type") or d.get("backupType", "sessions"),
        )


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------

def manifest_path(backup_dir: Path) -> Path:
    return backup_dir / MANIFEST_FILE_NAME


def read_manifest(backup_dir: Path) -> BackupManifest:
    """Load the manifest of *backup_dir*.

    Raises:
        ManifestError: if the file is missing, not JSON, or malformed.
    """
    path = manifest_path(backup_dir)
    if not path.is_file():
        raise ManifestError(f"Invalid backup: {MANIFEST_FILE_NAME} not found in {backup_dir.name}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, dict):
            raise TypeError("manifest root is not an object")
        return BackupManifest.from_dict(raw)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError,
            KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ManifestError(
            f"Invalid backup: cannot read {MANIFEST_FILE_NAME} in {backup_dir.name}",
            detail=str(exc),
        ) from exc


def write_manifest(backup_dir: Path, manifest: BackupManifest) -> Path:
    """Atomically write *manifest* into *backup_dir*."""
    path = manifest_path(backup_dir)
    save_json(path, manifest.to_dict())
    logger.debug("Wrote manifest for %s (%d sessions)", manifest.backup_id, manifest.session_count)
    return path
