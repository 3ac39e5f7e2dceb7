"""
External tool capabilities — archive tool and sync tool
========================================================

Core logic never builds shell strings.  It talks to two narrow interfaces:

    ArchiveTool   compress a directory to a zip / extract a zip
    SyncTool      rclone-style remote storage (list remotes, copy to/from,
                  list files, delete)

``ZipArchiveTool`` and ``RcloneSyncTool`` are the production
implementations; tests substitute fakes that satisfy the same protocols.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import zipfile
from pathlib import Path
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from zuppaclaude.environment import Environment
from zuppaclaude.errors import ArchiveToolError, SyncToolError

logger = logging.getLogger("tools")

# rclone exit codes (https://rclone.org/docs/#exit-code)
RCLONE_DIR_NOT_FOUND = 3


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class ArchiveTool(Protocol):
    """Compress directories to zip archives and back."""

    async def compress(self, source_dir: Path, zip_path: Path,
                       root_name: Optional[str] = None) -> int:
        """Zip *source_dir* into *zip_path*; returns the number of files."""
        ...

    async def extract(self, zip_path: Path, dest_dir: Path) -> int:
        """Unpack *zip_path* into *dest_dir*; returns the number of files."""
        ...


@runtime_checkable
class SyncTool(Protocol):
    """Remote storage reached through pre-registered named remotes."""

    def is_installed(self) -> bool:
        ...

    async def version(self) -> Optional[str]:
        ...

    async def list_remotes(self) -> List[str]:
        ...

    async def remote_exists(self, remote: str) -> bool:
        ...

    async def copy_to(self, local_file: Path, remote: str, path: str) -> None:
        ...

    async def copy_from(self, remote: str, path: str, local_file: Path) -> None:
        ...

    async def list_files(self, remote: str, path: str) -> List[str]:
        ...

    async def delete_file(self, remote: str, path: str) -> None:
        ...


# ---------------------------------------------------------------------------
# ZipArchiveTool
# ---------------------------------------------------------------------------

class ZipArchiveTool:
    """Deflate zip archives via :mod:`zipfile`, run off the event loop."""

    def __init__(self, compresslevel: int = 6) -> None:
        self._compresslevel = compresslevel

    def _compress_blocking(self, source_dir: Path, zip_path: Path,
                           root_name: Optional[str]) -> int:
        file_count = 0
        zip_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(
            zip_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self._compresslevel
        ) as zf:
            for root, _, filenames in os.walk(source_dir):
                for fn in sorted(filenames):
                    fp = Path(root) / fn
                    if not fp.is_file():
                        continue
                    rel = fp.relative_to(source_dir).as_posix()
                    arcname = f"{root_name}/{rel}" if root_name else rel
                    zf.write(fp, arcname)
                    file_count += 1
        return file_count

    def _extract_blocking(self, zip_path: Path, dest_dir: Path) -> int:
        dest_dir.mkdir(parents=True, exist_ok=True)
        count = 0
        with zipfile.ZipFile(zip_path, "r") as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                zf.extract(info, dest_dir)
                count += 1
        return count

    async def compress(self, source_dir: Path, zip_path: Path,
                       root_name: Optional[str] = None) -> int:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: self._compress_blocking(source_dir, zip_path, root_name)
            )
        except (OSError, zipfile.BadZipFile, ValueError) as exc:
            zip_path.unlink(missing_ok=True)
            raise ArchiveToolError(f"Failed to create zip {zip_path.name}", detail=str(exc)) from exc

    async def extract(self, zip_path: Path, dest_dir: Path) -> int:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: self._extract_blocking(zip_path, dest_dir)
            )
        except (OSError, zipfile.BadZipFile, ValueError) as exc:
            raise ArchiveToolError(f"Failed to extract {zip_path.name}", detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# RcloneSyncTool
# ---------------------------------------------------------------------------

class RcloneSyncTool:
    """:class:`SyncTool` backed by the ``rclone`` command line."""

    def __init__(
        self,
        binary: str = "rclone",
        timeout: float = 600.0,
        environment: Optional[Environment] = None,
    ) -> None:
        self.binary = binary
        self.timeout = timeout
        self.env = environment or Environment()

    @staticmethod
    def target(remote: str, path: str = "") -> str:
        """Format an rclone ``remote:path`` argument."""
        return f"{remote}:{path}"

    async def _rclone(self, *args: str, allow_codes: Tuple[int, ...] = ()) -> str:
        """Run one rclone command; non-zero exit raises :class:`SyncToolError`."""
        try:
            result = await self.env.run(self.binary, *args, timeout=self.timeout)
        except FileNotFoundError as exc:
            raise SyncToolError(f"{self.binary} not found") from exc
        except asyncio.TimeoutError as exc:
            raise SyncToolError(
                f"rclone {args[0]} timed out after {self.timeout:.0f}s"
            ) from exc

        if result.ok or result.returncode in allow_codes:
            return result.stdout
        raise SyncToolError(
            f"rclone {args[0]} failed with code {result.returncode}",
            returncode=result.returncode,
            stderr=result.stderr.strip(),
        )

    def is_installed(self) -> bool:
        return self.env.command_exists(self.binary)

    async def version(self) -> Optional[str]:
        output = await self._rclone("version")
        match = re.search(r"rclone v([\d.]+)", output)
        return match.group(1) if match else None

    async def list_remotes(self) -> List[str]:
        output = await self._rclone("listremotes")
        return [
            line.strip().rstrip(":")
            for line in output.splitlines()
            if line.strip()
        ]

    async def list_remotes_long(self) -> List[Tuple[str, str]]:
        """Return ``(name, type)`` pairs from ``rclone listremotes --long``."""
        output = await self._rclone("listremotes", "--long")
        remotes = []
        for line in output.splitlines():
            parts = line.split()
            if not parts:
                continue
            name = parts[0].rstrip(":")
            kind = parts[1] if len(parts) > 1 else "unknown"
            remotes.append((name, kind))
        return remotes

    async def remote_exists(self, remote: str) -> bool:
        return remote in await self.list_remotes()

    async def copy_to(self, local_file: Path, remote: str, path: str) -> None:
        await self._rclone("copyto", str(local_file), self.target(remote, path))

    async def copy_from(self, remote: str, path: str, local_file: Path) -> None:
        local_file.parent.mkdir(parents=True, exist_ok=True)
        await self._rclone("copyto", self.target(remote, path), str(local_file))

    async def list_files(self, remote: str, path: str) -> List[str]:
        # A missing directory is an empty listing, not an error
        output = await self._rclone(
            "lsf", self.target(remote, path), "--files-only",
            allow_codes=(RCLONE_DIR_NOT_FOUND,),
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    async def delete_file(self, remote: str, path: str) -> None:
        await self._rclone("deletefile", self.target(remote, path))
