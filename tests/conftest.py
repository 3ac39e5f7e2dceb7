"""
Shared fixtures for the ZuppaClaude test suite.

Every test runs against a throwaway home directory under ``tmp_path`` and a
local-directory stand-in for rclone, so nothing touches the real
``~/.claude`` or any cloud remote.
"""

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import pytest

from zuppaclaude.config import ZuppaConfig
from zuppaclaude.errors import SyncToolError
from zuppaclaude.prompts import Prompts


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path):
    """ZuppaConfig rooted in a temp home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return ZuppaConfig(
        home=home,
        claude_dir=home / ".claude",
        config_dir=home / ".config" / "zuppaclaude",
        hostname="test-host",
        username="tester",
    )


# ---------------------------------------------------------------------------
# Live session store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def make_session(config):
    """Write a session log into the live store and return its path."""

    def _make(project_id: str, session_id: str, content: str = '{"type":"user"}\n',
              mtime: Optional[float] = None) -> Path:
        project_dir = config.projects_dir / project_id
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / f"{session_id}.jsonl"
        path.write_text(content, encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make


@pytest.fixture
def populated_store(config, make_session):
    """Two projects, three sessions (one sub-agent) and a history log."""
    make_session("-Users-dev-alpha", "aaaa-1111", '{"n":1}\n{"n":2}\n')
    make_session("-Users-dev-alpha", "agent-bbbb-2222", '{"agent":true}\n')
    make_session("-Users-dev-beta", "cccc-3333", '{"beta":1}\n')
    config.history_file.parent.mkdir(parents=True, exist_ok=True)
    config.history_file.write_text('{"display":"ls"}\n', encoding="utf-8")
    return config


@pytest.fixture
def settings_doc():
    """A representative zc-settings.json document."""
    return {
        "version": "1.0",
        "created": "2026-01-01T00:00:00+00:00",
        "updated": "2026-01-02T00:00:00+00:00",
        "components": {
            "superclaude": {"installed": True},
            "rclone": {"installed": True, "remote": "gdrive"},
        },
        "preferences": {"auto_update_check": False, "backup_configs": True},
    }


# ---------------------------------------------------------------------------
# Fake sync tool
# ---------------------------------------------------------------------------

class FakeSyncTool:
    """SyncTool backed by ``<root>/<remote>/<path>`` on the local disk."""

    def __init__(self, root: Path, remotes: Optional[List[str]] = None,
                 installed: bool = True) -> None:
        self.root = root
        self.remotes = list(remotes if remotes is not None else ["gdrive"])
        self.installed = installed
        self.fail_ops: set = set()
        self.calls: List[tuple] = []

    def _path(self, remote: str, path: str) -> Path:
        return self.root / remote / path

    def _maybe_fail(self, op: str) -> None:
        self.calls.append((op,))
        if op in self.fail_ops:
            raise SyncToolError(f"rclone {op} failed with code 1", returncode=1, stderr="boom")

    def is_installed(self) -> bool:
        return self.installed

    async def version(self) -> Optional[str]:
        return "1.66.0"

    async def list_remotes(self) -> List[str]:
        self._maybe_fail("listremotes")
        return list(self.remotes)

    async def remote_exists(self, remote: str) -> bool:
        return remote in await self.list_remotes()

    async def copy_to(self, local_file: Path, remote: str, path: str) -> None:
        self._maybe_fail("copy_to")
        dest = self._path(remote, path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_file, dest)

    async def copy_from(self, remote: str, path: str, local_file: Path) -> None:
        self._maybe_fail("copy_from")
        src = self._path(remote, path)
        if not src.is_file():
            raise SyncToolError("rclone copyto failed with code 3", returncode=3,
                                stderr="directory not found")
        local_file.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, local_file)

    async def list_files(self, remote: str, path: str) -> List[str]:
        self._maybe_fail("list_files")
        directory = self._path(remote, path)
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_file())

    async def delete_file(self, remote: str, path: str) -> None:
        self._maybe_fail("delete_file")
        target = self._path(remote, path)
        if not target.is_file():
            raise SyncToolError("rclone deletefile failed with code 4", returncode=4,
                                stderr="object not found")
        target.unlink()

    def remote_file(self, remote: str, path: str) -> Path:
        return self._path(remote, path)


@pytest.fixture
def fake_sync(tmp_path):
    return FakeSyncTool(tmp_path / "remote-storage")


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

@pytest.fixture
def scripted_prompts():
    """Build a Prompts whose answers come from a list (EOF when exhausted)."""

    def _make(*answers: str) -> Prompts:
        queue = list(answers)

        def _input(_prompt: str) -> str:
            if not queue:
                raise EOFError
            return queue.pop(0)

        return Prompts(input_fn=_input)

    return _make


@pytest.fixture
def fixed_now():
    return datetime(2026, 1, 5, 13, 56, tzinfo=timezone.utc)
