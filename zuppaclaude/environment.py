"""
Environment — host detection, external commands and downloads.

Thin collaborator around the operating system: which OS we are on,
whether a command is on PATH, running a command as an argument vector
(never through a shell), and fetching a file over HTTP.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import platform
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("environment")

DEFAULT_COMMAND_TIMEOUT = 120.0
DOWNLOAD_TIMEOUT = 300


# ---------------------------------------------------------------------------
# Async/sync bridge
# ---------------------------------------------------------------------------

def run_sync(coro):
    """Run an async coroutine from synchronous code, handling nested loops."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop and loop.is_running():
        with concurrent.futures.ThreadPoolExecutor(1) as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Command results
# ---------------------------------------------------------------------------

@dataclass
class CommandResult:
    """Outcome of one external command."""

    argv: tuple
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

class Environment:
    """Operating-system facts and process/network helpers."""

    def __init__(self, system: Optional[str] = None) -> None:
        self.system = system or platform.system()

    @property
    def is_windows(self) -> bool:
        return self.system == "Windows"

    @property
    def is_mac(self) -> bool:
        return self.system == "Darwin"

    @property
    def is_linux(self) -> bool:
        return self.system == "Linux"

    def command_exists(self, command: str) -> bool:
        return shutil.which(command) is not None

    async def run(self, *argv: str, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> CommandResult:
        """Run *argv* and capture its output.

        Raises FileNotFoundError when the binary is missing and
        asyncio.TimeoutError when it outlives *timeout* (the process is
        killed first).
        """
        logger.debug("exec: %s", " ".join(argv))
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return CommandResult(
            argv=tuple(argv),
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def download(self, url: str, dest: Path) -> Path:
        """Stream *url* into *dest*; a partial file is removed on failure."""
        import aiohttp

        dest.parent.mkdir(parents=True, exist_ok=True)
        timeout = aiohttp.ClientTimeout(total=DOWNLOAD_TIMEOUT)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, allow_redirects=True) as resp:
                    if resp.status != 200:
                        raise RuntimeError(f"Failed to download {url}: HTTP {resp.status}")
                    with open(dest, "wb") as fh:
                        async for chunk in resp.content.iter_chunked(65536):
                            fh.write(chunk)
        except BaseException:
            dest.unlink(missing_ok=True)
            raise
        logger.debug("Downloaded %s -> %s", url, dest)
        return dest
