# tests/conftest.py
import asyncio
import os
import sys
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
os.environ.setdefault("PORTFLOW_LOG_FILE", "")

from portflow.core.config import Config
from portflow.core.executor import CommandResult


class FakeExecutor:
    """
    Scripted stand-in for CommandExecutor.
    Responses are keyed by argv prefix (longest prefix wins); every call is recorded.
    Unscripted commands behave like a missing binary.
    """

    def __init__(self):
        self.responses: Dict[Tuple[str, ...], Tuple[CommandResult, float]] = {}
        self.calls: List[List[str]] = []

    def on(self, *prefix: str, stdout: str = "", stderr: str = "", ok: bool = True,
           returncode: Optional[int] = None, delay: float = 0.0) -> "FakeExecutor":
        if returncode is None:
            returncode = 0 if ok else 1
        self.responses[tuple(prefix)] = (
            CommandResult(stdout=stdout, stderr=stderr, exit_ok=ok, returncode=returncode),
            delay,
        )
        return self

    def _lookup(self, argv: Sequence[str]) -> Tuple[CommandResult, float]:
        matches = [k for k in self.responses if tuple(argv[:len(k)]) == k]
        if not matches:
            return CommandResult(stderr=f"{argv[0]}: command not found", returncode=127), 0.0
        return self.responses[max(matches, key=len)]

    async def run(self, argv: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
        self.calls.append(list(argv))
        result, delay = self._lookup(argv)
        if delay:
            if timeout is not None and delay > timeout:
                await asyncio.sleep(timeout)
                return CommandResult(stderr=f"{' '.join(argv)}: timed out after {timeout}s", timed_out=True)
            await asyncio.sleep(delay)
        return result

    def ran(self, *prefix: str) -> bool:
        return any(tuple(call[:len(prefix)]) == prefix for call in self.calls)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def config(tmp_path):
    """Config with no YAML file behind it: built-in defaults only."""
    return Config(config_path=str(tmp_path / "missing.yaml"))
