"""Tests for hcloud_config.shell."""

from __future__ import annotations

import sys

import pytest

from hcloud_config.errors import ExternalToolError
from hcloud_config.shell import (
    RC_NOT_FOUND,
    RC_TIMEOUT,
    ShellResult,
    check_result,
    format_command,
    mask_secrets,
    run_command,
)


def _py(code: str):
    return [sys.executable, "-c", code]


# ── TestHelpers ──────────────────────────────────────────────────────────


class TestHelpers:
    def test_mask_secrets(self):
        assert mask_secrets("token=abc abc", ["abc", None, ""]) == "token=*** ***"

    def test_format_command_quotes(self):
        assert format_command(["ssh", "host", "echo hi"]) == "ssh host 'echo hi'"

    def test_check_result_passes_through(self):
        r = ShellResult(command="true", returncode=0)
        assert check_result(r, "noop") is r

    def test_check_result_raises(self):
        r = ShellResult(command="false", returncode=3, stderr="boom")
        with pytest.raises(ExternalToolError, match=r"noop failed \(rc=3\): boom") as exc:
            check_result(r, "noop")
        assert exc.value.returncode == 3
        assert exc.value.command == "false"


# ── TestRunCommand ───────────────────────────────────────────────────────


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_captures_output(self):
        r = await run_command(_py("print('hello')"))
        assert r.ok
        assert r.stdout == "hello"

    @pytest.mark.asyncio
    async def test_nonzero_exit_does_not_raise(self):
        r = await run_command(_py("import sys; sys.stderr.write('bad'); sys.exit(4)"))
        assert r.returncode == 4
        assert r.stderr == "bad"

    @pytest.mark.asyncio
    async def test_stdin_and_env(self):
        r = await run_command(
            _py("import os, sys; print(sys.stdin.read() + os.environ['EXTRA'])"),
            stdin="abc",
            extra_env={"EXTRA": "def"},
        )
        assert r.stdout == "abcdef"

    @pytest.mark.asyncio
    async def test_secrets_masked(self):
        r = await run_command(_py("print('token-123')"), secrets=["token-123"])
        assert r.stdout == "***"
        assert "token-123" not in r.command

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        r = await run_command(["hcloud-config-no-such-binary"])
        assert r.returncode == RC_NOT_FOUND

    @pytest.mark.asyncio
    async def test_timeout(self):
        r = await run_command(_py("import time; time.sleep(10)"), timeout=0.2)
        assert r.returncode == RC_TIMEOUT
        assert "timed out" in r.stderr
