# portflow/agent/engine.py
"""
Portflow Agent - host exposure and workload aggregation engine.

Single entry point for the presentation layer. Every operation is a
coroutine that returns a result model and never raises:

- Sockets: list_tcp_sockets / list_udp_sockets
- Forwards: list_forwards (NAT + SSH), list_forwards_elevated
- Processes: terminate_process, terminate_process_elevated
- Workloads: list_workloads, stop_workload, start_workload, remove_workload
- refresh(): all listings at once, merged into one AggregatedSnapshot

Concurrency model:
Each source is an independent coroutine and the only suspension points are
external commands, each bounded by its own timeout. Per runtime family the
probe runs before the listing; families never wait on each other. Results are
merged only after every branch has finished.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from portflow.core.active_response import ActiveResponse, PrivilegeCoordinator
from portflow.core.config import Config
from portflow.core.executor import CommandExecutor
from portflow.core.schemas import (
    ActionResult,
    AggregatedSnapshot,
    ElevatedForwardResult,
    FailureReason,
    ForwardListResult,
    Outcome,
    RuntimeAvailability,
    RuntimeFamily,
    SocketListResult,
    WorkloadListResult,
    WorkloadRecord,
)
from portflow.modules.nat_rules import NatRuleMonitor
from portflow.modules.port_monitor import PortMonitor
from portflow.modules.runtime_probe import RuntimeProbe
from portflow.modules.runtimes import RUNTIMES, RuntimeDescriptor, WorkloadController
from portflow.modules.ssh_tunnels import SshTunnelMonitor
from portflow.utils.logger import Logger

NO_RUNTIME_ERROR = "No container runtime found (Docker, Podman, or kubectl)"

logger = Logger()

RuntimeOutcome = Tuple[RuntimeAvailability, bool, List[WorkloadRecord], str]


class PortflowAgent:
    """Aggregation engine with one module per data source.

    Lifecycle:
    1. __init__: Load config, build the command executor and the modules
    2. Callers await the listing/action coroutines, or refresh() for everything

    Resilience:
    - A failing branch is logged and replaced by its empty result
    - A runtime that is installed but down only shows up in the runtime map
    """

    def __init__(self, config: Optional[Config] = None, executor: Optional[CommandExecutor] = None):
        """Initialize agent: config, executor, modules.

        Args:
            config: Config instance; loaded from config.yaml/.env when omitted
            executor: Command runner; the asyncio subprocess executor when omitted
        """
        self.config = config or Config()
        self.executor = executor or CommandExecutor(self.config.command_timeout)
        self.coordinator = PrivilegeCoordinator(self.executor, self.config)
        self.runtimes = RUNTIMES

        self.modules = {
            'ports': PortMonitor(self.executor, self.config.command_timeout),
            'nat': NatRuleMonitor(self.coordinator),
            'ssh': SshTunnelMonitor(self.executor, self.config.command_timeout),
            'probe': RuntimeProbe(self.executor, self.config),
            'workloads': WorkloadController(self.executor, self.config),
            'response': ActiveResponse(self.coordinator),
        }

    async def _guarded(self, label: str, operation: Callable[[], Awaitable[Any]], fallback: Callable[[str], Any]) -> Any:
        """Run one branch; an unexpected exception becomes that branch's fallback result."""
        try:
            return await operation()
        except Exception as e:
            logger.error(f"{label} failed unexpectedly: {e}")
            return fallback(str(e)[:self.config.message_length])

    # --- SOCKETS ---

    async def list_tcp_sockets(self) -> SocketListResult:
        return await self._guarded(
            "TCP listing",
            self.modules['ports'].list_tcp,
            lambda error: SocketListResult(ok=False, error=error),
        )

    async def list_udp_sockets(self) -> SocketListResult:
        return await self._guarded(
            "UDP listing",
            self.modules['ports'].list_udp,
            lambda error: SocketListResult(ok=False, error=error),
        )

    # --- FORWARDS ---

    async def list_forwards(self) -> ForwardListResult:
        """NAT rules (unprivileged) and SSH tunnels, fetched concurrently."""
        nat, tunnels = await asyncio.gather(
            self._guarded(
                "NAT listing",
                self.modules['nat'].list_rules,
                lambda error: ElevatedForwardResult(ok=False, outcome=Outcome.FAILED, error=error),
            ),
            self._guarded("SSH tunnel scan", self.modules['ssh'].list_tunnels, lambda _: []),
        )
        needs_elevation = nat.outcome == Outcome.NEEDS_ELEVATION
        return ForwardListResult(
            ok=True,
            nat_rules=nat.nat_rules,
            ssh_tunnels=tunnels,
            needs_elevation=needs_elevation,
            nat_error=None if nat.ok or needs_elevation else nat.error,
        )

    async def list_forwards_elevated(self) -> ElevatedForwardResult:
        return await self._guarded(
            "Elevated NAT listing",
            self.modules['nat'].list_rules_elevated,
            lambda error: ElevatedForwardResult(ok=False, outcome=Outcome.FAILED, error=error),
        )

    # --- PROCESSES ---

    async def terminate_process(self, pid: Union[str, int]) -> ActionResult:
        return await self._guarded(
            f"Terminate PID {pid}",
            lambda: self.modules['response'].terminate_process(pid),
            lambda error: ActionResult(ok=False, outcome=Outcome.FAILED, error=error),
        )

    async def terminate_process_elevated(self, pid: Union[str, int]) -> ActionResult:
        return await self._guarded(
            f"Elevated terminate PID {pid}",
            lambda: self.modules['response'].terminate_process_elevated(pid),
            lambda error: ActionResult(ok=False, outcome=Outcome.FAILED, error=error),
        )

    # --- WORKLOADS ---

    async def _collect_runtime(self, runtime: RuntimeDescriptor) -> RuntimeOutcome:
        """Probe one family, then list its workloads if the service answered."""
        availability = await self.modules['probe'].probe(runtime)
        if not availability.running:
            return availability, False, [], ""

        ok, records, error = await self._guarded(
            f"{runtime.label} listing",
            lambda: self.modules['probe'].list_workloads(runtime),
            lambda error: (False, [], error),
        )
        return availability, ok, records, error

    def _runtime_failure(self, runtime: RuntimeDescriptor) -> Callable[[str], RuntimeOutcome]:
        def fallback(error: str) -> RuntimeOutcome:
            availability = RuntimeAvailability(
                family=runtime.family,
                failure_reason=FailureReason.UNKNOWN,
                error=error[:self.config.error_length],
            )
            return availability, False, [], ""
        return fallback

    async def list_workloads(self) -> WorkloadListResult:
        """Containers and pods from every runtime family that is up.

        The primary runtime is the first family, in declared order, whose
        service is running. ok is true when any record was found or any
        runtime runs; no installed runtime at all is reported as no_runtime.
        """
        outcomes = await asyncio.gather(*(
            self._guarded(
                f"{runtime.label} probe",
                lambda runtime=runtime: self._collect_runtime(runtime),
                self._runtime_failure(runtime),
            )
            for runtime in self.runtimes
        ))

        availability_map = {}
        records: List[WorkloadRecord] = []
        listing_errors = {}
        primary: Optional[RuntimeFamily] = None

        for runtime, (availability, ok, runtime_records, error) in zip(self.runtimes, outcomes):
            availability_map[runtime.family] = availability
            if not availability.running:
                continue
            primary = primary or runtime.family
            if ok:
                records.extend(runtime_records)
            else:
                listing_errors[runtime.family] = error

        if not any(a.available for a in availability_map.values()):
            return WorkloadListResult(
                ok=False,
                runtimes=availability_map,
                no_runtime=True,
                error=NO_RUNTIME_ERROR,
            )

        return WorkloadListResult(
            ok=bool(records) or primary is not None,
            records=records,
            runtimes=availability_map,
            primary_runtime=primary,
            listing_errors=listing_errors,
        )

    async def stop_workload(self, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self._workload_action("stop", workload_id, family)

    async def start_workload(self, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self._workload_action("start", workload_id, family)

    async def remove_workload(self, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self._workload_action("remove", workload_id, family)

    async def _workload_action(self, action: str, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self._guarded(
            f"Workload {action} {workload_id}",
            lambda: self.modules['workloads'].run_action(action, workload_id, family),
            lambda error: ActionResult(ok=False, outcome=Outcome.FAILED, error=error),
        )

    # --- SNAPSHOT ---

    async def refresh(self) -> AggregatedSnapshot:
        """One full refresh cycle: every listing concurrently, merged at the end."""
        tcp, udp, forwards, workloads = await asyncio.gather(
            self.list_tcp_sockets(),
            self.list_udp_sockets(),
            self.list_forwards(),
            self.list_workloads(),
        )

        errors = {}
        if not tcp.ok:
            errors["tcp"] = tcp.error or "TCP listing failed"
        if not udp.ok:
            errors["udp"] = udp.error or "UDP listing failed"
        if forwards.nat_error:
            errors["nat"] = forwards.nat_error

        return AggregatedSnapshot(
            tcp_sockets=tcp.sockets,
            udp_sockets=udp.sockets,
            nat_rules=forwards.nat_rules,
            ssh_tunnels=forwards.ssh_tunnels,
            needs_elevation=forwards.needs_elevation,
            workloads=workloads,
            errors=errors,
        )
