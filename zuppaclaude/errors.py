"""
Exception hierarchy for ZuppaClaude.

Components raise these internally and convert them to boolean / empty
results at their public boundary, so the CLI only sees a failure flag and
the logged message.
"""

from __future__ import annotations

from typing import Optional


class ZuppaError(Exception):
    """Base exception for all ZuppaClaude errors."""

    def __init__(self, message: str, detail: str = ""):
        self.message = message
        self.detail = detail
        super().__init__(message)


class BackupNotFoundError(ZuppaError):
    """Raised when a backup id has no local directory."""

    def __init__(self, backup_id: str):
        self.backup_id = backup_id
        super().__init__(f"Backup not found: {backup_id}")


class ManifestError(ZuppaError):
    """Raised when manifest.json is missing or cannot be parsed."""
    pass


class SettingsError(ZuppaError):
    """Raised on settings file read/write failures."""
    pass


class ToolError(ZuppaError):
    """Base class for failures of an external tool invocation."""
    pass


class SyncToolError(ToolError):
    """Raised when a sync tool command exits non-zero or cannot start."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message, detail=stderr)


class ArchiveToolError(ToolError):
    """Raised when compressing or extracting an archive fails."""
    pass
