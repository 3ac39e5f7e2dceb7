"""
Configuration — immutable paths and identity for one CLI invocation
====================================================================

Everything that used to be derived ad hoc from the environment (home
directory, Claude Code directory, host and user names, backup root, cloud
namespace) is resolved once by :meth:`ZuppaConfig.from_env` and handed to
every component at construction time.

Environment overrides:
    ZUPPACLAUDE_HOME          home directory (default: ~)
    CLAUDE_CONFIG_DIR         Claude Code directory (default: ~/.claude)
    ZUPPACLAUDE_CONFIG_DIR    ZuppaClaude config root (default: ~/.config/zuppaclaude)
    ZUPPACLAUDE_HOSTNAME      host segment of the backup namespace
    ZUPPACLAUDE_USERNAME      user segment of the backup namespace
    ZUPPACLAUDE_CLOUD_PREFIX  remote namespace prefix (default: zuppaclaude-backups)
    ZUPPACLAUDE_RCLONE        rclone binary (default: rclone)
    ZUPPACLAUDE_SYNC_TIMEOUT  seconds allowed per rclone call (default: 600)

Layout:
    <config_dir>/zc-settings.json
    <config_dir>/backups/<host>/<user>/sessions/<backup-id>/...
    <config_dir>/backups/<host>/<user>/settings/<backup-id>/zc-settings.json
    <config_dir>/backups/<host>/<user>/.temp/            scratch for zips
"""

from __future__ import annotations

import getpass
import os
import re
import socket
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_CLOUD_PREFIX = "zuppaclaude-backups"
DEFAULT_SYNC_TIMEOUT = 600.0

SETTINGS_FILE_NAME = "zc-settings.json"
HISTORY_FILE_NAME = "history.jsonl"
SESSIONS_CATEGORY = "sessions"
SETTINGS_CATEGORY = "settings"
SCRATCH_DIR_NAME = ".temp"


def sanitize_identity(name: str, fallback: str) -> str:
    """Reduce a host or user name to ``[a-z0-9-]`` for use in paths."""
    name = re.sub(r"\.local$", "", name or "")
    name = name.lower()
    name = re.sub(r"[^a-z0-9-]", "-", name)
    name = re.sub(r"-+", "-", name)
    name = name.strip("-")
    return name or fallback


def _default_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


# ---------------------------------------------------------------------------
# ZuppaConfig
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ZuppaConfig:
    """Resolved paths and identity. Never mutated after construction."""

    home: Path
    claude_dir: Path
    config_dir: Path
    hostname: str
    username: str
    cloud_prefix: str = DEFAULT_CLOUD_PREFIX
    rclone_binary: str = "rclone"
    sync_timeout: float = DEFAULT_SYNC_TIMEOUT

    # -- Claude Code live store --

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    @property
    def history_file(self) -> Path:
        return self.claude_dir / HISTORY_FILE_NAME

    # -- ZuppaClaude store --

    @property
    def settings_file(self) -> Path:
        return self.config_dir / SETTINGS_FILE_NAME

    @property
    def backup_root(self) -> Path:
        """Per host/user backup namespace: ``backups/<host>/<user>``."""
        return self.config_dir / "backups" / self.hostname / self.username

    @property
    def sessions_backup_dir(self) -> Path:
        return self.backup_root / SESSIONS_CATEGORY

    @property
    def settings_backup_dir(self) -> Path:
        return self.backup_root / SETTINGS_CATEGORY

    @property
    def scratch_dir(self) -> Path:
        return self.backup_root / SCRATCH_DIR_NAME

    # -- Cloud namespace --

    @property
    def cloud_path(self) -> str:
        """Remote namespace: ``zuppaclaude-backups/<host>/<user>``."""
        return f"{self.cloud_prefix}/{self.hostname}/{self.username}"

    def cloud_category_path(self, category: str) -> str:
        return f"{self.cloud_path}/{category}"

    def cloud_archive_path(self, category: str, backup_id: str) -> str:
        return f"{self.cloud_path}/{category}/{backup_id}.zip"

    # -- Construction --

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ZuppaConfig":
        """Build the configuration from the process environment."""
        env = os.environ if environ is None else environ

        home = Path(env.get("ZUPPACLAUDE_HOME") or Path.home()).expanduser()
        claude_dir = Path(env.get("CLAUDE_CONFIG_DIR") or home / ".claude").expanduser()
        config_dir = Path(
            env.get("ZUPPACLAUDE_CONFIG_DIR") or home / ".config" / "zuppaclaude"
        ).expanduser()

        hostname = sanitize_identity(
            env.get("ZUPPACLAUDE_HOSTNAME") or socket.gethostname(), "unknown-host"
        )
        username = sanitize_identity(
            env.get("ZUPPACLAUDE_USERNAME") or _default_username(), "unknown-user"
        )

        try:
            timeout = float(env.get("ZUPPACLAUDE_SYNC_TIMEOUT", DEFAULT_SYNC_TIMEOUT))
        except ValueError:
            timeout = DEFAULT_SYNC_TIMEOUT

        return cls(
            home=home,
            claude_dir=claude_dir,
            config_dir=config_dir,
            hostname=hostname,
            username=username,
            cloud_prefix=(env.get("ZUPPACLAUDE_CLOUD_PREFIX") or DEFAULT_CLOUD_PREFIX).strip("/"),
            rclone_binary=env.get("ZUPPACLAUDE_RCLONE") or "rclone",
            sync_timeout=timeout,
        )

    def with_overrides(self, **changes) -> "ZuppaConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)
