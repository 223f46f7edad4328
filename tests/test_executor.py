# tests/test_executor.py
import asyncio
import time

from portflow.core.executor import CommandExecutor


def test_timeout_kills_the_child():
    started = time.monotonic()
    result = asyncio.run(CommandExecutor().run(["sleep", "5"], timeout=0.2))

    assert time.monotonic() - started < 2
    assert result.timed_out is True
    assert result.exit_ok is False
    assert "timed out" in result.stderr


def test_missing_binary_is_reported():
    result = asyncio.run(CommandExecutor().run(["portflow-no-such-binary", "--version"]))

    assert result.exit_ok is False
    assert result.returncode == 127
    assert result.error_text == "portflow-no-such-binary: command not found"


def test_non_zero_exit_keeps_stderr():
    result = asyncio.run(CommandExecutor().run(["sh", "-c", "echo nope >&2; exit 3"]))

    assert result.exit_ok is False
    assert result.returncode == 3
    assert result.stderr == "nope\n"
    assert result.timed_out is False


def test_success_captures_stdout():
    result = asyncio.run(CommandExecutor().run(["sh", "-c", "echo 0.0.0.0:22"]))

    assert result.exit_ok is True
    assert result.stdout == "0.0.0.0:22\n"
    assert result.output == "0.0.0.0:22\n"
