# tests/test_scheduler.py
import asyncio
from unittest.mock import MagicMock

from portflow.agent.scheduler import RefreshScheduler
from portflow.core.schemas import AggregatedSnapshot, ListeningSocket, Protocol, WorkloadListResult


class StubAgent:
    def __init__(self, config, fail: bool = False):
        self.config = config
        self.fail = fail
        self.calls = 0

    async def refresh(self) -> AggregatedSnapshot:
        self.calls += 1
        if self.fail:
            raise RuntimeError("executor exploded")
        return AggregatedSnapshot(
            tcp_sockets=[ListeningSocket(protocol=Protocol.TCP, port=22, address="0.0.0.0")],
            workloads=WorkloadListResult(ok=False, no_runtime=True),
        )


def test_interval_defaults_to_config(config):
    scheduler = RefreshScheduler(StubAgent(config))
    assert scheduler.interval == 3.0


def test_refresh_now_publishes_copies(config):
    received = []

    async def scenario():
        scheduler = RefreshScheduler(StubAgent(config))
        scheduler.subscribe(received.append)
        snapshot = await scheduler.refresh_now()
        return scheduler, snapshot

    scheduler, snapshot = asyncio.run(scenario())

    assert scheduler.latest is snapshot
    assert scheduler.cycles == 1
    assert len(received) == 1
    assert received[0] is not snapshot
    assert received[0].tcp_sockets == snapshot.tcp_sockets
    assert scheduler.snapshot() is not snapshot


def test_failed_cycle_keeps_previous_snapshot(config):
    agent = StubAgent(config)

    async def scenario():
        scheduler = RefreshScheduler(agent)
        first = await scheduler.refresh_now()
        agent.fail = True
        second = await scheduler.refresh_now()
        return scheduler, first, second

    scheduler, first, second = asyncio.run(scenario())

    assert second is first
    assert scheduler.latest is first
    assert scheduler.cycles == 1


def test_hidden_view_suspends_refresh(config):
    async def scenario():
        scheduler = RefreshScheduler(StubAgent(config), interval_ms=50)
        scheduler.start()
        await asyncio.sleep(0.18)
        assert scheduler.cycles >= 2

        scheduler.set_visible(False)
        await asyncio.sleep(0.01)
        paused_at = scheduler.cycles
        await asyncio.sleep(0.2)
        assert scheduler.cycles == paused_at

        scheduler.set_visible(True)
        await asyncio.sleep(0.01)
        assert scheduler.cycles == paused_at + 1

        await scheduler.stop()
        assert scheduler.running is False

    asyncio.run(scenario())


def test_broken_listener_does_not_stop_the_others(config):
    broken = MagicMock(side_effect=ValueError("render failed"))
    healthy = MagicMock()

    async def scenario():
        scheduler = RefreshScheduler(StubAgent(config))
        scheduler.subscribe(broken)
        scheduler.subscribe(healthy)
        await scheduler.refresh_now()
        return scheduler

    scheduler = asyncio.run(scenario())

    assert broken.call_count == 1
    assert healthy.call_count == 1
    assert healthy.call_args[0][0].tcp_sockets[0].port == 22
    assert scheduler.cycles == 1
