"""Test tools — ZuppaClaude."""
from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from zuppaclaude.environment import CommandResult
from zuppaclaude.errors import ArchiveToolError, SyncToolError
from zuppaclaude.tools import ArchiveTool, RcloneSyncTool, SyncTool, ZipArchiveTool


def _result(stdout: str = "", returncode: int = 0, stderr: str = "") -> CommandResult:
    return CommandResult(argv=("rclone",), returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def env():
    mock = MagicMock()
    mock.run = AsyncMock(return_value=_result())
    mock.command_exists = MagicMock(return_value=True)
    return mock


@pytest.fixture
def rclone(env):
    return RcloneSyncTool(binary="rclone", timeout=42, environment=env)


# ===================================================================
# Protocols
# ===================================================================

class TestProtocols:

    @pytest.mark.unit
    def test_implementations_satisfy_protocols(self, rclone, fake_sync):
        assert isinstance(rclone, SyncTool)
        assert isinstance(fake_sync, SyncTool)
        assert isinstance(ZipArchiveTool(), ArchiveTool)


# ===================================================================
# RcloneSyncTool
# ===================================================================

class TestRcloneSyncTool:
    """Argument vectors and error mapping for the rclone CLI."""

    @pytest.mark.unit
    def test_is_installed_uses_command_lookup(self, rclone, env):
        assert rclone.is_installed() is True
        env.command_exists.assert_called_once_with("rclone")

    @pytest.mark.asyncio
    async def test_list_remotes_strips_colons(self, rclone, env):
        env.run.return_value = _result("gdrive:\ns3-backup:\n\n")
        assert await rclone.list_remotes() == ["gdrive", "s3-backup"]
        env.run.assert_awaited_once_with("rclone", "listremotes", timeout=42)

    @pytest.mark.asyncio
    async def test_list_remotes_long(self, rclone, env):
        env.run.return_value = _result("gdrive:     drive\nbox:   dropbox\n")
        assert await rclone.list_remotes_long() == [("gdrive", "drive"), ("box", "dropbox")]

    @pytest.mark.asyncio
    async def test_remote_exists(self, rclone, env):
        env.run.return_value = _result("gdrive:\n")
        assert await rclone.remote_exists("gdrive") is True
        assert await rclone.remote_exists("dropbox") is False

    @pytest.mark.asyncio
    async def test_copy_to_argv(self, rclone, env, tmp_path):
        local = tmp_path / "a.zip"
        await rclone.copy_to(local, "gdrive", "zuppaclaude-backups/h/u/sessions/a.zip")
        env.run.assert_awaited_once_with(
            "rclone", "copyto", str(local), "gdrive:zuppaclaude-backups/h/u/sessions/a.zip",
            timeout=42,
        )

    @pytest.mark.asyncio
    async def test_copy_from_argv_creates_parent(self, rclone, env, tmp_path):
        local = tmp_path / "scratch" / "a.zip"
        await rclone.copy_from("gdrive", "p/a.zip", local)
        assert local.parent.is_dir()
        env.run.assert_awaited_once_with("rclone", "copyto", "gdrive:p/a.zip", str(local), timeout=42)

    @pytest.mark.asyncio
    async def test_list_files_tolerates_missing_directory(self, rclone, env):
        env.run.return_value = _result(returncode=3, stderr="directory not found")
        assert await rclone.list_files("gdrive", "nothing/here") == []
        env.run.assert_awaited_once_with(
            "rclone", "lsf", "gdrive:nothing/here", "--files-only", timeout=42
        )

    @pytest.mark.asyncio
    async def test_list_files(self, rclone, env):
        env.run.return_value = _result("b.zip\na.zip\n")
        assert await rclone.list_files("gdrive", "p") == ["b.zip", "a.zip"]

    @pytest.mark.asyncio
    async def test_delete_file_argv(self, rclone, env):
        await rclone.delete_file("gdrive", "p/a.zip")
        env.run.assert_awaited_once_with("rclone", "deletefile", "gdrive:p/a.zip", timeout=42)

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self, rclone, env):
        env.run.return_value = _result(returncode=1, stderr=" permission denied \n")
        with pytest.raises(SyncToolError) as exc_info:
            await rclone.delete_file("gdrive", "p/a.zip")
        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "permission denied"

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, rclone, env):
        env.run.side_effect = FileNotFoundError("rclone")
        with pytest.raises(SyncToolError):
            await rclone.list_remotes()

    @pytest.mark.asyncio
    async def test_timeout_raises(self, rclone, env):
        env.run.side_effect = asyncio.TimeoutError()
        with pytest.raises(SyncToolError) as exc_info:
            await rclone.copy_to(Path("x.zip"), "gdrive", "p/x.zip")
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_version(self, rclone, env):
        env.run.return_value = _result("rclone v1.66.0\n- os/version: linux\n")
        assert await rclone.version() == "1.66.0"


# ===================================================================
# ZipArchiveTool
# ===================================================================

class TestZipArchiveTool:
    """Zip creation with a root folder and extraction."""

    @pytest.mark.asyncio
    async def test_compress_with_root_and_extract(self, tmp_path):
        src = tmp_path / "src"
        (src / "proj").mkdir(parents=True)
        (src / "proj" / "s.jsonl").write_bytes(b"abc\n")
        (src / "manifest.json").write_text("{}")

        zip_path = tmp_path / "out" / "b.zip"
        tool = ZipArchiveTool()
        assert await tool.compress(src, zip_path, root_name="2026-01-05-13.56") == 2

        with zipfile.ZipFile(zip_path) as zf:
            assert sorted(zf.namelist()) == [
                "2026-01-05-13.56/manifest.json",
                "2026-01-05-13.56/proj/s.jsonl",
            ]

        dest = tmp_path / "dest"
        assert await tool.extract(zip_path, dest) == 2
        assert (dest / "2026-01-05-13.56" / "proj" / "s.jsonl").read_bytes() == b"abc\n"

    @pytest.mark.asyncio
    async def test_compress_without_root(self, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "a.txt").write_text("a")
        zip_path = tmp_path / "a.zip"
        await ZipArchiveTool().compress(src, zip_path)
        with zipfile.ZipFile(zip_path) as zf:
            assert zf.namelist() == ["a.txt"]

    @pytest.mark.asyncio
    async def test_extract_bad_zip_raises(self, tmp_path):
        bogus = tmp_path / "bogus.zip"
        bogus.write_bytes(b"not a zip")
        with pytest.raises(ArchiveToolError):
            await ZipArchiveTool().extract(bogus, tmp_path / "dest")
