# portflow/modules/runtime_probe.py
from typing import List, Tuple
from portflow.core.config import Config
from portflow.core.executor import CommandExecutor
from portflow.core.schemas import FailureReason, RuntimeAvailability, WorkloadRecord
from portflow.modules.runtimes import RuntimeDescriptor
from portflow.utils.logger import Logger


class RuntimeProbe:
    """
    Two-phase availability check for one runtime family:
    binary on PATH first, then the backing service (daemon / cluster API).
    Every failure is classified, none is raised.
    """
    def __init__(self, executor: CommandExecutor, config: Config):
        self.executor = executor
        self.config = config
        self.logger = Logger()

    def _matches(self, text: str, kind: str) -> bool:
        return any(phrase in text for phrase in self.config.phrases(kind))

    def classify_failure(self, runtime: RuntimeDescriptor, output: str) -> Tuple[FailureReason, str]:
        """
        Checks the combined status output in priority order:
        permission, daemon down, connection refused, anything else.
        """
        text = output.lower()
        if self._matches(text, "permission_denied"):
            return FailureReason.PERMISSION_DENIED, "Permission denied"
        if self._matches(text, "daemon_not_running"):
            return FailureReason.DAEMON_NOT_RUNNING, f"{runtime.binary} daemon is not running"
        if self._matches(text, "connection_refused"):
            return FailureReason.CONNECTION_REFUSED, f"Cannot connect to {runtime.binary}"
        return FailureReason.UNKNOWN, output.strip()[:self.config.error_length]

    async def is_installed(self, runtime: RuntimeDescriptor) -> bool:
        result = await self.executor.run(runtime.locate_argv(), self.config.probe_timeout)
        return result.exit_ok

    async def probe(self, runtime: RuntimeDescriptor) -> RuntimeAvailability:
        if not await self.is_installed(runtime):
            return RuntimeAvailability(
                family=runtime.family,
                failure_reason=FailureReason.NOT_INSTALLED,
            )

        result = await self.executor.run(runtime.status_argv(), self.config.probe_timeout)
        if result.exit_ok:
            return RuntimeAvailability(family=runtime.family, available=True, running=True)

        reason, error = self.classify_failure(runtime, result.output)
        self.logger.warning(f"RuntimeProbe: {runtime.label} unavailable ({reason.value}): {error}")
        return RuntimeAvailability(
            family=runtime.family,
            available=True,
            running=False,
            failure_reason=reason,
            error=error,
            needs_permission=reason == FailureReason.PERMISSION_DENIED,
        )

    async def list_workloads(self, runtime: RuntimeDescriptor) -> Tuple[bool, List[WorkloadRecord], str]:
        """Runs the family's listing command. Returns (ok, records, error)."""
        result = await self.executor.run(runtime.list_argv(), self.config.command_timeout)
        if not result.exit_ok:
            error = (result.error_text or f"{runtime.binary} listing failed")[:self.config.message_length]
            self.logger.error(f"RuntimeProbe: {runtime.label} listing failed: {error}")
            return False, [], error
        return True, runtime.parse(result.stdout), ""
