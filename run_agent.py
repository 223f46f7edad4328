"""
Portflow Agent Entry Point
Runs the refresh loop in the console and logs a summary of every snapshot.
"""
import asyncio
import sys
import os

sys.path.insert(0, os.getcwd())

from portflow.agent.engine import PortflowAgent
from portflow.agent.scheduler import RefreshScheduler
from portflow.core.schemas import AggregatedSnapshot
from portflow.modules.workloads import is_running, status_label
from portflow.utils.logger import Logger

logger = Logger()


def log_snapshot(snapshot: AggregatedSnapshot) -> None:
    workloads = snapshot.workloads
    running = sum(1 for record in workloads.records if is_running(record.status))
    logger.info(
        f"TCP {len(snapshot.tcp_sockets)} | UDP {len(snapshot.udp_sockets)} | "
        f"Forwards {snapshot.forwards_count} | Workloads {running}/{len(workloads.records)} running "
        f"(primary: {workloads.primary_runtime.value if workloads.primary_runtime else 'none'})"
    )
    if snapshot.needs_elevation:
        logger.warning("NAT rules need elevated privileges (use the elevated listing).")
    if workloads.no_runtime:
        logger.warning(workloads.error)
    for family, availability in workloads.runtimes.items():
        if availability.available and not availability.running:
            logger.warning(f"{family.value}: {availability.error or 'Not running'}")
    for record in workloads.records:
        logger.debug(f"{record.runtime.value:<10} {status_label(record.status):<10} {record.name} ({record.id})")


async def main() -> None:
    scheduler = RefreshScheduler(PortflowAgent())
    scheduler.subscribe(log_snapshot)
    await scheduler.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n🛑 Agent stopped by user.")
