"""
Cloud Archive Bridge — move local backups to and from an rclone remote
=======================================================================

Each backup travels as up to two independent zips:

    <prefix>/<host>/<user>/sessions/<backup-id>.zip
    <prefix>/<host>/<user>/settings/<backup-id>.zip

The zip's top-level folder is the backup id, so extracting it reproduces
the local layout.  The presence of the sessions zip is the only record of
"this backup is in the cloud"; there is no remote manifest.

Every public operation first checks that the sync tool is installed and the
remote is registered, unless the caller already did and passes
``check=False``.  Tool failures are caught here and turned into
``False`` / ``[]`` with a logged message; scratch zips and extraction
directories are removed on both the success and the failure path.

Usage:
    bridge = CloudArchiveBridge(config)
    ok = bridge.upload_sync("gdrive", "2026-01-05-13.56")
    ids = bridge.list_cloud_backups_sync("gdrive")
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from zuppaclaude.config import SESSIONS_CATEGORY, SETTINGS_CATEGORY, ZuppaConfig
from zuppaclaude.console import color, log_success
from zuppaclaude.environment import Environment, run_sync
from zuppaclaude.errors import ManifestError, SyncToolError, ToolError
from zuppaclaude.manifest import backup_sort_key, read_manifest
from zuppaclaude.prompts import Prompts
from zuppaclaude.tools import ArchiveTool, RcloneSyncTool, SyncTool, ZipArchiveTool

logger = logging.getLogger("cloud_bridge")

ZIP_SUFFIX = ".zip"

POPULAR_PROVIDERS = [
    ("Google Drive", "drive"),
    ("Dropbox", "dropbox"),
    ("OneDrive", "onedrive"),
    ("S3/Minio", "s3"),
    ("SFTP", "sftp"),
    ("FTP", "ftp"),
]


def _has_files(directory: Path) -> bool:
    if not directory.is_dir():
        return False
    return any(p.is_file() for p in directory.rglob("*"))


def _remove_tree(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    else:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("Could not remove %s: %s", path, exc)


# ---------------------------------------------------------------------------
# CloudArchiveBridge
# ---------------------------------------------------------------------------

class CloudArchiveBridge:
    """Upload, download, list and delete backup zips on a named remote."""

    def __init__(
        self,
        config: ZuppaConfig,
        sync_tool: Optional[SyncTool] = None,
        archive_tool: Optional[ArchiveTool] = None,
        prompts: Optional[Prompts] = None,
        environment: Optional[Environment] = None,
    ) -> None:
        self.config = config
        self.env = environment or Environment()
        self.sync = sync_tool or RcloneSyncTool(
            binary=config.rclone_binary,
            timeout=config.sync_timeout,
            environment=self.env,
        )
        self.archive = archive_tool or ZipArchiveTool()
        self.prompts = prompts or Prompts()

    # -----------------------------------------------------------------------
    # Preconditions
    # -----------------------------------------------------------------------

    def is_installed(self) -> bool:
        return self.sync.is_installed()

    async def list_remotes(self) -> List[str]:
        if not self.sync.is_installed():
            return []
        try:
            return await self.sync.list_remotes()
        except SyncToolError as exc:
            logger.warning("Could not list remotes: %s", exc.message)
            return []

    async def remote_types(self) -> List[Tuple[str, str]]:
        """``(name, type)`` for every remote; type is ``unknown`` if not reported."""
        if not self.sync.is_installed():
            return []
        long_listing = getattr(self.sync, "list_remotes_long", None)
        try:
            if long_listing is not None:
                return await long_listing()
            return [(name, "unknown") for name in await self.sync.list_remotes()]
        except SyncToolError as exc:
            logger.warning("Could not list remotes: %s", exc.message)
            return []

    async def ensure_ready(self, remote: str) -> bool:
        """True when the sync tool is installed and *remote* is registered."""
        if not self.sync.is_installed():
            logger.error("rclone is not installed")
            logger.info("Run: zuppaclaude cloud setup")
            return False
        try:
            exists = await self.sync.remote_exists(remote)
        except SyncToolError as exc:
            logger.error("Could not list remotes: %s", exc.message)
            return False
        if not exists:
            logger.error("Remote not found: %s", remote)
            remotes = await self.list_remotes()
            if remotes:
                logger.info("Available remotes: %s", ", ".join(remotes))
            else:
                logger.info("No remotes configured (run: rclone config)")
            return False
        return True

    # -----------------------------------------------------------------------
    # Scratch space
    # -----------------------------------------------------------------------

    def _scratch_zip(self, category: str, backup_id: str) -> Path:
        return self.config.scratch_dir / f"{category}-{backup_id}{ZIP_SUFFIX}"

    def _tidy_scratch(self) -> None:
        try:
            self.config.scratch_dir.rmdir()
        except OSError:
            pass  # not empty or already gone

    def _local_ids(self) -> List[str]:
        """Ids of local backups that carry a readable manifest, newest first."""
        root = self.config.sessions_backup_dir
        if not root.is_dir():
            return []
        ids = []
        for path in root.iterdir():
            if not path.is_dir() or path.name.startswith("."):
                continue
            try:
                read_manifest(path)
            except ManifestError as exc:
                logger.warning("Skipping %s: %s", path.name, exc.message)
                continue
            ids.append(path.name)
        ids.sort(key=backup_sort_key, reverse=True)
        return ids

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    async def _upload_category(self, remote: str, category: str,
                               backup_id: str, source: Path) -> bool:
        zip_path = self._scratch_zip(category, backup_id)
        remote_path = self.config.cloud_archive_path(category, backup_id)
        try:
            zip_path.parent.mkdir(parents=True, exist_ok=True)
            files = await self.archive.compress(source, zip_path, root_name=backup_id)
            logger.debug("Compressed %d %s files into %s", files, category, zip_path.name)
            await self.sync.copy_to(zip_path, remote, remote_path)
        except ToolError as exc:
            logger.error("Failed to upload %s for %s: %s", category, backup_id, exc.message)
            if exc.detail:
                logger.debug("%s", exc.detail)
            return False
        finally:
            _remove_tree(zip_path)
        logger.debug("Uploaded %s -> %s:%s", zip_path.name, remote, remote_path)
        return True

    async def _upload_one(self, remote: str, backup_id: str) -> bool:
        sessions_dir = self.config.sessions_backup_dir / backup_id
        if not sessions_dir.is_dir():
            logger.error("Backup not found: %s", backup_id)
            return False
        try:
            read_manifest(sessions_dir)
        except ManifestError as exc:
            logger.error("%s", exc.message)
            return False

        sources = [(SESSIONS_CATEGORY, sessions_dir)]
        settings_dir = self.config.settings_backup_dir / backup_id
        if _has_files(settings_dir):
            sources.append((SETTINGS_CATEGORY, settings_dir))

        uploaded = 0
        for category, source in sources:
            if await self._upload_category(remote, category, backup_id, source):
                uploaded += 1

        if uploaded:
            log_success(logger, "Uploaded %s to %s:%s", backup_id, remote, self.config.cloud_path)
        return uploaded > 0

    async def upload(self, remote: str, backup_id: Optional[str] = None,
                     check: bool = True) -> bool:
        """Upload one backup, or every local backup when *backup_id* is None.

        Pass ``check=False`` when :meth:`ensure_ready` has already passed.
        """
        if check and not await self.ensure_ready(remote):
            return False
        try:
            if backup_id:
                return await self._upload_one(remote, backup_id)

            ids = self._local_ids()
            if not ids:
                logger.warning("No local backups to upload")
                return False
            logger.info("Uploading %d backups to %s...", len(ids), remote)
            uploaded = 0
            for bid in ids:
                if await self._upload_one(remote, bid):
                    uploaded += 1
            log_success(logger, "Uploaded %d/%d backups", uploaded, len(ids))
            return uploaded > 0
        finally:
            self._tidy_scratch()

    def upload_sync(self, remote: str, backup_id: Optional[str] = None) -> bool:
        """Synchronous wrapper for :meth:`upload`."""
        return run_sync(self.upload(remote, backup_id))

    # -----------------------------------------------------------------------
    # Download
    # -----------------------------------------------------------------------

    @staticmethod
    def _hoist(extract_dir: Path, backup_id: str) -> Path:
        """Return the folder holding the backup contents inside *extract_dir*."""
        nested = extract_dir / backup_id
        children = list(extract_dir.iterdir())
        if nested.is_dir() and len(children) == 1:
            return nested
        return extract_dir

    @staticmethod
    def _install(content: Path, dest: Path) -> None:
        """Move *content* to *dest*, replacing it; the old copy survives a failed move."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        previous: Optional[Path] = None
        if dest.exists():
            previous = dest.with_name(f".{dest.name}.old")
            _remove_tree(previous)
            dest.rename(previous)
        try:
            shutil.move(str(content), str(dest))
        except OSError:
            if previous is not None:
                _remove_tree(dest)
                previous.rename(dest)
            raise
        if previous is not None:
            _remove_tree(previous)

    async def _download_category(self, remote: str, category: str, backup_id: str) -> bool:
        remote_path = self.config.cloud_archive_path(category, backup_id)
        dest = self.config.backup_root / category / backup_id
        zip_path = self._scratch_zip(category, backup_id)
        extract_dir: Optional[Path] = None
        try:
            self.config.scratch_dir.mkdir(parents=True, exist_ok=True)
            try:
                await self.sync.copy_from(remote, remote_path, zip_path)
            except SyncToolError as exc:
                if category == SESSIONS_CATEGORY:
                    logger.warning("Sessions archive not found for %s: %s", backup_id, exc.message)
                else:
                    logger.debug("No settings archive for %s: %s", backup_id, exc.message)
                return False
            if not zip_path.is_file():
                logger.warning("Download of %s produced no file", remote_path)
                return False

            extract_dir = Path(tempfile.mkdtemp(prefix=f"extract-{category}-",
                                                dir=self.config.scratch_dir))
            files = await self.archive.extract(zip_path, extract_dir)
            content = self._hoist(extract_dir, backup_id)

            self._install(content, dest)
            logger.debug("Extracted %d %s files to %s", files, category, dest)
            return True
        except ToolError as exc:
            logger.error("Failed to extract %s for %s: %s", category, backup_id, exc.message)
            if exc.detail:
                logger.debug("%s", exc.detail)
            return False
        except OSError as exc:
            logger.error("Failed to install %s for %s: %s", category, backup_id, exc)
            return False
        finally:
            _remove_tree(zip_path)
            if extract_dir is not None:
                _remove_tree(extract_dir)

    async def _download_one(self, remote: str, backup_id: str) -> bool:
        sessions_ok = await self._download_category(remote, SESSIONS_CATEGORY, backup_id)
        settings_ok = await self._download_category(remote, SETTINGS_CATEGORY, backup_id)
        if sessions_ok or settings_ok:
            log_success(logger, "Downloaded %s", backup_id)
            return True
        logger.error("Failed to download %s from %s", backup_id, remote)
        return False

    async def download(self, remote: str, backup_id: Optional[str] = None,
                       check: bool = True) -> bool:
        """Download one backup, or every remote backup when *backup_id* is None."""
        if check and not await self.ensure_ready(remote):
            return False
        try:
            if backup_id:
                return await self._download_one(remote, backup_id)

            ids = await self._list_ids(remote)
            if not ids:
                logger.warning("No backups found on %s", remote)
                return False
            logger.info("Downloading %d backups from %s...", len(ids), remote)
            downloaded = 0
            for bid in ids:
                if await self._download_one(remote, bid):
                    downloaded += 1
            log_success(logger, "Downloaded %d/%d backups", downloaded, len(ids))
            return downloaded > 0
        finally:
            self._tidy_scratch()

    def download_sync(self, remote: str, backup_id: Optional[str] = None) -> bool:
        """Synchronous wrapper for :meth:`download`."""
        return run_sync(self.download(remote, backup_id))

    # -----------------------------------------------------------------------
    # List
    # -----------------------------------------------------------------------

    async def _list_ids(self, remote: str) -> List[str]:
        path = self.config.cloud_category_path(SESSIONS_CATEGORY)
        try:
            names = await self.sync.list_files(remote, path)
        except SyncToolError as exc:
            logger.warning("Could not list %s:%s: %s", remote, path, exc.message)
            return []
        ids = [n[: -len(ZIP_SUFFIX)] for n in names if n.endswith(ZIP_SUFFIX)]
        ids.sort(key=backup_sort_key, reverse=True)
        return ids

    async def list_cloud_backups(self, remote: str, check: bool = True) -> List[str]:
        """Backup ids on *remote*, newest first."""
        if check and not await self.ensure_ready(remote):
            return []
        return await self._list_ids(remote)

    def list_cloud_backups_sync(self, remote: str, check: bool = True) -> List[str]:
        """Synchronous wrapper for :meth:`list_cloud_backups`."""
        return run_sync(self.list_cloud_backups(remote, check))

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def _delete(self, remote: str, backup_id: str) -> bool:
        removed = 0
        for category in (SESSIONS_CATEGORY, SETTINGS_CATEGORY):
            path = self.config.cloud_archive_path(category, backup_id)
            try:
                await self.sync.delete_file(remote, path)
            except SyncToolError as exc:
                logger.debug("Could not delete %s:%s: %s", remote, path, exc.message)
                continue
            removed += 1
        if removed:
            log_success(logger, "Deleted %s from %s", backup_id, remote)
            return True
        logger.error("Failed to delete %s from %s", backup_id, remote)
        return False

    async def delete_cloud_backup(self, remote: str, backup_id: str) -> bool:
        if not await self.ensure_ready(remote):
            return False
        return await self._delete(remote, backup_id)

    def delete_cloud_backup_sync(self, remote: str, backup_id: str) -> bool:
        """Synchronous wrapper for :meth:`delete_cloud_backup`."""
        return run_sync(self.delete_cloud_backup(remote, backup_id))

    async def delete_cloud_backup_interactive(self, remote: str) -> bool:
        """Pick a backup from a menu, confirm, then delete it."""
        if not await self.ensure_ready(remote):
            return False
        ids = await self._list_ids(remote)
        if not ids:
            logger.warning("No backups found on %s", remote)
            return False

        print()
        print(f"Cloud backups on {color(remote, 'cyan')}:")
        choice = self.prompts.select(f"Select backup to delete (1-{len(ids) + 1}):",
                                     ids + ["Cancel"])
        if choice is None or choice >= len(ids):
            logger.info("Delete cancelled")
            return False

        backup_id = ids[choice]
        if not self.prompts.confirm(f"Delete {backup_id} from {remote}?", default=False):
            logger.info("Delete cancelled")
            return False
        return await self._delete(remote, backup_id)

    def delete_cloud_backup_interactive_sync(self, remote: str) -> bool:
        """Synchronous wrapper for :meth:`delete_cloud_backup_interactive`."""
        return run_sync(self.delete_cloud_backup_interactive(remote))

    # -----------------------------------------------------------------------
    # Setup
    # -----------------------------------------------------------------------

    def install_hint(self) -> str:
        if self.env.is_mac:
            return "brew install rclone"
        if self.env.is_linux:
            return "curl https://rclone.org/install.sh | sudo bash"
        return "winget install Rclone.Rclone"

    async def setup_instructions(self) -> str:
        """Text for ``cloud setup``: install steps, remote config or usage."""
        lines: List[str] = []
        if not self.sync.is_installed():
            lines += [
                color("[!]", "yellow") + " rclone is not installed.",
                "",
                "Install rclone:",
                "",
                "  " + color(self.install_hint(), "cyan"),
                "",
                "Or visit: https://rclone.org/install/",
            ]
            return "\n".join(lines)

        version = None
        try:
            version = await self.sync.version()
        except SyncToolError as exc:
            logger.debug("rclone version failed: %s", exc.message)
        installed = f"rclone v{version} is installed" if version else "rclone is installed"
        lines += [color("[✓]", "green") + " " + installed, ""]

        remotes = await self.list_remotes()
        if not remotes:
            lines += [
                color("[!]", "yellow") + " No cloud remotes configured.",
                "",
                "Configure a remote:",
                "",
                "  " + color("rclone config", "cyan"),
                "",
                "Popular options:",
            ]
            lines += [f"  • {label}: Choose \"{kind}\"" for label, kind in POPULAR_PROVIDERS]
            return "\n".join(lines)

        lines += ["Available remotes:", ""]
        lines += ["  " + color(r, "cyan") for r in remotes]
        lines += [
            "",
            "Usage:",
            "",
            "  " + color(f"zuppaclaude backup --cloud {remotes[0]}", "cyan"),
            "  " + color(f"zuppaclaude restore <backup-id> --cloud {remotes[0]}", "cyan"),
        ]
        return "\n".join(lines)
