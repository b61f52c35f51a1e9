"""
Git Client Tests.

Failure paths only; they need no repository. Hanging git runs use a stand-in
script that records its pid and sleeps.
"""

import os
import stat

import pytest

from releasegate.exceptions import ErrorCode, ProviderError, ProviderTimeoutError
from releasegate.oracles.source_control import SourceControlHistoryOracle
from releasegate.providers.git import GitClient


def _hanging_git(tmp_path):
    pid_file = tmp_path / "git.pid"
    script = tmp_path / "git"
    script.write_text(f'#!/bin/sh\necho $$ > "{pid_file}"\nexec sleep 30\n')
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script), pid_file


def _is_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


class TestGitClient:
    @pytest.mark.asyncio
    async def test_missing_binary(self):
        client = GitClient(git_binary="definitely-not-a-git-binary")
        with pytest.raises(ProviderError) as exc_info:
            await client.list_version_tags()
        assert exc_info.value.error_code == ErrorCode.PROVIDER_UNAVAILABLE
        assert exc_info.value.provider == "git"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        # `false` ignores its arguments and exits 1
        client = GitClient(git_binary="false")
        with pytest.raises(ProviderError) as exc_info:
            await client.recent_commits()
        assert exc_info.value.details["returncode"] == 1

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        client = GitClient()
        with pytest.raises(ProviderError):
            await client.list_version_tags(str(tmp_path / "missing"))


class TestChildProcessCleanup:
    @pytest.mark.asyncio
    async def test_provider_timeout_kills_child(self, tmp_path):
        binary, pid_file = _hanging_git(tmp_path)
        client = GitClient(git_binary=binary, timeout=0.5)

        with pytest.raises(ProviderTimeoutError):
            await client.list_version_tags()
        assert not _is_running(int(pid_file.read_text()))

    @pytest.mark.asyncio
    async def test_oracle_timeout_kills_child(self, tmp_path):
        binary, pid_file = _hanging_git(tmp_path)
        oracle = SourceControlHistoryOracle(
            GitClient(git_binary=binary, timeout=10.0),
            timeout_seconds=0.5,
        )

        result = await oracle.analyze("lib-a", "1.0.0")
        assert result.succeeded is False
        assert not _is_running(int(pid_file.read_text()))
