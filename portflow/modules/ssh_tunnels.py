# portflow/modules/ssh_tunnels.py
import re
from typing import List
from portflow.core.executor import CommandExecutor
from portflow.core.schemas import SshTunnel, TunnelDirection
from portflow.utils.logger import Logger

PS_COMMAND = ["ps", "aux"]

SSH_FORWARD_LINE = re.compile(r"ssh.*-[LR]")
FORWARD_PATTERNS = (
    (TunnelDirection.LOCAL, re.compile(r"-L\s*(\d+):([^:\s]+):(\d+)")),
    (TunnelDirection.REMOTE, re.compile(r"-R\s*(\d+):([^:\s]+):(\d+)")),
)


def filter_ssh_lines(output: str) -> List[str]:
    """Keeps process-list lines of ssh invocations carrying -L or -R."""
    return [line for line in output.splitlines() if SSH_FORWARD_LINE.search(line)]


def extract_ssh_tunnels(output: str) -> List[SshTunnel]:
    """
    Extracts tunnel descriptors from ssh process lines.
    Each line is checked for a local and a remote forward independently,
    so one line can yield up to two tunnels.
    """
    tunnels = []
    for line in output.strip().splitlines():
        for direction, pattern in FORWARD_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            tunnels.append(SshTunnel(
                direction=direction,
                local_port=int(match.group(1)),
                remote_host=match.group(2),
                remote_port=int(match.group(3)),
                raw=line.strip(),
            ))
    return tunnels


class SshTunnelMonitor:
    def __init__(self, executor: CommandExecutor, timeout: float = 5.0):
        self.executor = executor
        self.timeout = timeout
        self.logger = Logger()

    async def list_tunnels(self) -> List[SshTunnel]:
        """Active ssh forwards; an unreadable process list yields none."""
        result = await self.executor.run(PS_COMMAND, self.timeout)
        if not result.exit_ok:
            self.logger.warning(f"SshTunnelMonitor: process listing failed: {result.error_text}")
            return []
        return extract_ssh_tunnels("\n".join(filter_ssh_lines(result.stdout)))
