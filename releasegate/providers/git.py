"""
Git Client: source-control history provider.

Runs the git binary as an asyncio subprocess so a slow repository never
blocks the event loop. Returns raw tag names and commit subjects; turning
tags into versions is the caller's job.
"""

import asyncio
import contextlib
from typing import Optional

import structlog

from releasegate.exceptions import ProviderError, ProviderTimeoutError

logger = structlog.get_logger(__name__)

PROVIDER_NAME = "git"


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()


class GitClient:
    """Async wrapper over a handful of read-only git commands."""

    def __init__(self, git_binary: str = "git", timeout: float = 10.0):
        self.git_binary = git_binary
        self.timeout = timeout

    async def _run(self, args: list[str], path: Optional[str]) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.git_binary,
                *args,
                cwd=path or None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
            raise ProviderError(PROVIDER_NAME, f"cannot run git: {e}", cause=e) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await _kill(proc)
            raise ProviderTimeoutError(PROVIDER_NAME, self.timeout, cause=e) from e
        except BaseException:
            # Cancelled by the caller: the child must not outlive the call
            await _kill(proc)
            raise

        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            raise ProviderError(
                PROVIDER_NAME,
                f"git {args[0]} failed: {message}",
                details={"returncode": proc.returncode, "path": path},
            )
        return stdout.decode(errors="replace")

    async def list_version_tags(self, path: Optional[str] = None) -> list[str]:
        """All tag names in the repository at ``path`` (cwd if None)."""
        output = await self._run(["tag", "--list"], path)
        tags = [line.strip() for line in output.splitlines() if line.strip()]
        logger.debug("git_tags_listed", path=path, count=len(tags))
        return tags

    async def recent_commits(self, path: Optional[str] = None, limit: int = 10) -> list[str]:
        """Subjects of the last ``limit`` commits, newest first."""
        output = await self._run(["log", f"-n{limit}", "--pretty=format:%s"], path)
        return [line.strip() for line in output.splitlines() if line.strip()]
