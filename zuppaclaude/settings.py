"""
Settings store for ZuppaClaude (``zc-settings.json``).

Holds installed-component flags, an encoded API key and user preferences.
The backup subsystem treats the document as opaque: it only snapshots
``load()`` into a backup and hands a snapshot back to ``save()``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from zuppaclaude.config import ZuppaConfig
from zuppaclaude.console import log_success
from zuppaclaude.errors import SettingsError
from zuppaclaude.manifest import iso_timestamp, load_json, save_json

logger = logging.getLogger("settings")

SETTINGS_VERSION = "1.0"
SETTINGS_FILE_MODE = 0o600

DEFAULT_PREFERENCES = {
    "auto_update_check": True,
    "backup_configs": True,
}

_MISSING = object()


class SettingsStore:
    """Load, save, export and import the ZuppaClaude settings file."""

    def __init__(self, config: ZuppaConfig) -> None:
        self.config = config
        self.path = config.settings_file

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the settings document, or None if absent or unreadable."""
        if not self.exists():
            return None
        data = load_json(self.path, default=_MISSING)
        if data is _MISSING or not isinstance(data, dict):
            logger.warning("Could not parse settings file: %s", self.path)
            return None
        return data

    def save(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        """Write *settings*, keeping the original ``created`` stamp.

        Raises:
            SettingsError: if the file cannot be written.
        """
        timestamp = iso_timestamp()
        existing = self.load() or {}
        data = {
            "version": SETTINGS_VERSION,
            "created": existing.get("created") or settings.get("created") or timestamp,
            "updated": timestamp,
            "components": settings.get("components") or {},
            "preferences": settings.get("preferences") or dict(DEFAULT_PREFERENCES),
        }
        try:
            save_json(self.path, data, mode=SETTINGS_FILE_MODE)
        except OSError as exc:
            raise SettingsError(f"Could not write settings: {self.path}", detail=str(exc)) from exc
        logger.debug("Settings saved to %s", self.path)
        return data

    # -- Components --

    def components(self) -> Dict[str, Any]:
        return (self.load() or {}).get("components") or {}

    def update_components(self, components: Dict[str, Any]) -> Dict[str, Any]:
        settings = self.load() or {"components": {}, "preferences": {}}
        merged = dict(settings.get("components") or {})
        merged.update(components)
        settings["components"] = merged
        return self.save(settings)

    @staticmethod
    def encode_api_key(key: str) -> str:
        return base64.b64encode(key.encode("utf-8")).decode("ascii")

    @staticmethod
    def decode_api_key(encoded: str) -> str:
        try:
            return base64.b64decode(encoded.encode("ascii"), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError):
            return ""

    # -- Display --

    def describe(self) -> List[str]:
        """Human-readable lines for ``settings show``."""
        settings = self.load()
        if settings is None:
            return []

        c = settings.get("components") or {}
        p = settings.get("preferences") or {}

        def yes(flag: Any) -> str:
            return "Yes" if flag else "No"

        lines = [
            f"Settings file: {self.path}",
            "",
            f"Version: {settings.get('version', '')}",
            f"Created: {settings.get('created', '')}",
            f"Updated: {settings.get('updated', '')}",
            "",
            "Components:",
            f"  SuperClaude: {yes((c.get('superclaude') or {}).get('installed'))}",
            f"  Spec Kit: {yes((c.get('speckit') or {}).get('installed'))}",
            f"  Claude-Z: {yes((c.get('claude_z') or {}).get('installed'))}",
        ]
        if (c.get("claude_z") or {}).get("api_key_encoded"):
            lines.append("    API Key: [configured]")
        lines.append(f"  Claude HUD: {yes((c.get('claude_hud') or {}).get('installed'))}")
        rclone = c.get("rclone") or {}
        lines.append(f"  rclone: {yes(rclone.get('installed'))}")
        if rclone.get("remote"):
            lines.append(f"    Remote: {rclone['remote']}")
        lines += [
            "",
            "Preferences:",
            f"  Auto-update check: {yes(p.get('auto_update_check'))}",
            f"  Backup configs: {yes(p.get('backup_configs'))}",
        ]
        return lines

    # -- Export / import --

    def _resolve(self, raw: str) -> Path:
        if raw.startswith("~"):
            raw = str(self.config.home) + raw[1:]
        return Path(raw).resolve()

    def export(self, export_path: str) -> Optional[Path]:
        """Copy the settings to *export_path* with export metadata."""
        settings = self.load()
        if settings is None:
            logger.error("No settings file found at: %s", self.path)
            return None

        settings["_export"] = {
            "exported_at": iso_timestamp(),
            "hostname": self.config.hostname,
            "source_path": str(self.path),
        }
        target = self._resolve(export_path)
        save_json(target, settings)
        log_success(logger, "Settings exported to: %s", target)
        return target

    def import_file(self, import_path: str) -> bool:
        """Replace the settings with the document at *import_path*."""
        source = self._resolve(import_path)
        if not source.is_file():
            logger.error("Import file not found: %s", source)
            return False

        settings = load_json(source, default=_MISSING)
        if settings is _MISSING or not isinstance(settings, dict):
            logger.error("Invalid JSON file: %s", source)
            return False

        if self.exists():
            stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
            backup_path = self.path.with_name(f"{self.path.name}.backup.{stamp}")
            shutil.copy2(self.path, backup_path)
            logger.info("Existing settings backed up to: %s", backup_path)

        settings.pop("_export", None)
        settings["updated"] = iso_timestamp()
        save_json(self.path, settings, mode=SETTINGS_FILE_MODE)
        log_success(logger, "Settings imported from: %s", source)
        return True

    # -- Removal --

    def delete(self) -> bool:
        if not self.exists():
            return True
        try:
            self.path.unlink()
            return True
        except OSError as exc:
            logger.warning("Could not delete settings: %s", exc)
            return False

    def reset(self, prompts) -> bool:
        """Delete the settings after an explicit confirmation."""
        if not self.exists():
            logger.warning("No settings file found")
            return True
        if not prompts.confirm("Are you sure you want to reset all settings?", default=False):
            logger.info("Reset cancelled")
            return False
        return self.delete()
