# portflow/core/executor.py
"""
Async command runner used by every probe and parser.
A command that is missing, fails or times out is reported in the result,
never raised.
"""
import asyncio
import contextlib
from dataclasses import dataclass
from typing import Optional, Sequence

from portflow.utils.logger import Logger


@dataclass(frozen=True)
class CommandResult:
    stdout: str = ""
    stderr: str = ""
    exit_ok: bool = False
    returncode: Optional[int] = None
    timed_out: bool = False

    @property
    def output(self) -> str:
        """stdout and stderr joined, for phrase inspection."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    @property
    def error_text(self) -> str:
        """The stream most likely to explain a failure."""
        return (self.stderr or self.stdout).strip()


class CommandExecutor:
    """Runs argv lists through asyncio subprocesses with a hard timeout."""

    def __init__(self, default_timeout: float = 5.0):
        self.default_timeout = default_timeout
        self.logger = Logger()

    async def run(self, argv: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
        timeout = timeout or self.default_timeout
        command = " ".join(argv)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return CommandResult(stderr=f"{argv[0]}: command not found", returncode=127)
        except PermissionError:
            return CommandResult(stderr=f"{argv[0]}: Permission denied", returncode=126)

        try:
            stdout_data, stderr_data = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            with contextlib.suppress(Exception):
                await process.wait()
            self.logger.warning(f"Command timed out after {timeout}s: {command}")
            return CommandResult(stderr=f"{command}: timed out after {timeout}s", timed_out=True)

        return CommandResult(
            stdout=(stdout_data or b"").decode("utf-8", errors="replace"),
            stderr=(stderr_data or b"").decode("utf-8", errors="replace"),
            exit_ok=process.returncode == 0,
            returncode=process.returncode,
        )
