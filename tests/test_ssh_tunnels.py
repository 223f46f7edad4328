# tests/test_ssh_tunnels.py
import asyncio

from portflow.core.schemas import TunnelDirection
from portflow.modules.ssh_tunnels import SshTunnelMonitor, extract_ssh_tunnels, filter_ssh_lines

PS_AUX = """USER         PID %CPU %MEM    VSZ   RSS TTY      STAT START   TIME COMMAND
root           1  0.0  0.1 167744 11400 ?        Ss   09:12   0:02 /sbin/init
alice       4242  0.0  0.0  15176  6512 ?        Ss   09:30   0:00 ssh -N -L 8080:localhost:80 alice@bastion
alice       4300  0.0  0.0  15176  6512 ?        Ss   09:31   0:00 ssh -N -R9090:remotehost:22 alice@edge
alice       4400  0.0  0.0  12000  2000 pts/0    S+   09:40   0:00 vim notes.txt
"""


def test_filter_keeps_only_forwarding_ssh():
    lines = filter_ssh_lines(PS_AUX)
    assert len(lines) == 2
    assert all("ssh" in line for line in lines)


def test_local_and_remote_forwards():
    tunnels = extract_ssh_tunnels("\n".join(filter_ssh_lines(PS_AUX)))

    assert [(t.direction, t.local_port, t.remote_host, t.remote_port) for t in tunnels] == [
        (TunnelDirection.LOCAL, 8080, "localhost", 80),
        (TunnelDirection.REMOTE, 9090, "remotehost", 22),
    ]


def test_line_with_both_flags_yields_two_tunnels():
    line = "bob 77 0.0 0.0 1 1 ? S 10:00 0:00 ssh -L 8080:localhost:80 -R 9090:remotehost:22 bob@host"
    tunnels = extract_ssh_tunnels(line)

    assert len(tunnels) == 2
    assert {t.direction for t in tunnels} == {TunnelDirection.LOCAL, TunnelDirection.REMOTE}
    assert all(t.raw == line for t in tunnels)


def test_line_without_forward_spec():
    assert extract_ssh_tunnels("ssh -L somewhere user@host") == []
    assert extract_ssh_tunnels("") == []


def test_monitor_scans_process_list(executor):
    executor.on("ps", stdout=PS_AUX)
    tunnels = asyncio.run(SshTunnelMonitor(executor).list_tunnels())
    assert len(tunnels) == 2


def test_monitor_process_list_failure(executor):
    executor.on("ps", ok=False, stderr="ps: error")
    assert asyncio.run(SshTunnelMonitor(executor).list_tunnels()) == []
