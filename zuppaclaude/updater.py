"""Update check against the package index."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from zuppaclaude import __version__
from zuppaclaude.environment import run_sync

logger = logging.getLogger("updater")

PACKAGE_NAME = "zuppaclaude"
INDEX_URL = "https://pypi.org/pypi/{package}/json"
CHECK_TIMEOUT = 10


def _parts(version: str) -> List[int]:
    parts = []
    for piece in version.strip().lstrip("v").split("."):
        match = re.match(r"\d+", piece)
        parts.append(int(match.group()) if match else 0)
    return parts


def is_newer(latest: str, current: str) -> bool:
    """True when dotted version *latest* is greater than *current*."""
    a, b = _parts(latest), _parts(current)
    width = max(len(a), len(b))
    a += [0] * (width - len(a))
    b += [0] * (width - len(b))
    return a > b


@dataclass
class UpdateStatus:
    current: str
    latest: Optional[str] = None
    has_update: bool = False
    error: Optional[str] = None


class UpdateChecker:
    """Compare the running version with the newest published release."""

    def __init__(self, package: str = PACKAGE_NAME, current: str = __version__) -> None:
        self.package = package
        self.current = current
        self.url = INDEX_URL.format(package=package)

    async def latest_version(self) -> str:
        """Fetch the newest version string; raises on network or format errors."""
        import aiohttp

        timeout = aiohttp.ClientTimeout(total=CHECK_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.url) as resp:
                if resp.status != 200:
                    raise RuntimeError(f"HTTP {resp.status} from {self.url}")
                body = await resp.json(content_type=None)
        version = (body.get("info") or {}).get("version") if isinstance(body, dict) else None
        if not version:
            raise ValueError("No version in package index response")
        return str(version)

    async def check(self) -> UpdateStatus:
        """Never raises; failures land in ``UpdateStatus.error``."""
        import aiohttp

        status = UpdateStatus(current=self.current)
        try:
            status.latest = await self.latest_version()
        except asyncio.TimeoutError:
            status.error = "timed out"
        except (aiohttp.ClientError, RuntimeError, ValueError) as exc:
            status.error = str(exc) or exc.__class__.__name__
        if status.error:
            logger.debug("Update check failed: %s", status.error)
            return status
        status.has_update = is_newer(status.latest, self.current)
        return status

    def check_sync(self) -> UpdateStatus:
        """Synchronous wrapper for :meth:`check`."""
        return run_sync(self.check())
