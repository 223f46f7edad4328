# portflow/modules/port_monitor.py
import re
from typing import List, Optional, Tuple
from portflow.core.executor import CommandExecutor
from portflow.core.schemas import ListeningSocket, Protocol, SocketListResult
from portflow.utils.logger import Logger

SS_COMMANDS = {
    Protocol.TCP: ["ss", "-tlnp"],
    Protocol.UDP: ["ss", "-ulnp"],
}

IPV6_ENDPOINT = re.compile(r"\[([^\]]+)\]:(\d+)")
PROCESS_OWNER = re.compile(r'users:\(\("([^"]+)",pid=(\d+)')


def split_endpoint(endpoint: str) -> Tuple[str, Optional[int]]:
    """
    Splits 'addr:port' into (address, port).
    Bracketed IPv6 ('[::1]:8080') keeps the brackets out of the address.
    The port is None when it cannot be resolved ('*:*', bare addresses).
    """
    address, port = "*", ""

    if "]:" in endpoint:
        match = IPV6_ENDPOINT.search(endpoint)
        if match:
            address, port = match.group(1), match.group(2)
    elif ":" in endpoint:
        head, _, port = endpoint.rpartition(":")
        address = head or "*"

    if not port.isdigit() or int(port) > 65535:
        return address, None
    return address, int(port)


def parse_ss_output(output: str, protocol: Protocol) -> List[ListeningSocket]:
    """
    Converts 'ss -tlnp' / 'ss -ulnp' output into ListeningSocket records.

    Columns: State Recv-Q Send-Q Local-Address:Port Peer-Address:Port Process.
    The header line is skipped, lines with fewer than five fields or without a
    resolvable port are dropped. Input order is preserved.
    """
    sockets = []
    lines = output.strip().splitlines()[1:]

    for line in lines:
        line = line.strip()
        if not line:
            continue

        parts = line.split()
        if len(parts) < 5:
            continue

        address, port = split_endpoint(parts[3])
        if port is None:
            continue

        process_name, pid = None, None
        owner = PROCESS_OWNER.search(line)
        if owner:
            process_name, pid = owner.group(1), int(owner.group(2))

        sockets.append(ListeningSocket(
            protocol=protocol,
            port=port,
            address=address,
            state=parts[0],
            pid=pid,
            process_name=process_name,
        ))

    return sockets


class PortMonitor:
    """
    Listening socket inventory.
    Runs 'ss' for one protocol at a time and parses its table.
    """
    def __init__(self, executor: CommandExecutor, timeout: float = 5.0):
        self.executor = executor
        self.timeout = timeout
        self.logger = Logger()

    async def list_sockets(self, protocol: Protocol) -> SocketListResult:
        result = await self.executor.run(SS_COMMANDS[protocol], self.timeout)
        if not result.exit_ok:
            error = result.error_text or f"ss exited with status {result.returncode}"
            self.logger.error(f"PortMonitor: {protocol.value} listing failed: {error}")
            return SocketListResult(ok=False, error=error)

        sockets = parse_ss_output(result.stdout, protocol)
        return SocketListResult(ok=True, sockets=sockets)

    async def list_tcp(self) -> SocketListResult:
        return await self.list_sockets(Protocol.TCP)

    async def list_udp(self) -> SocketListResult:
        return await self.list_sockets(Protocol.UDP)
