# portflow/modules/runtimes.py
"""
Runtime families Portflow knows about, in priority order, and the workload
actions each one supports.
"""
from typing import List, Optional, Union

from portflow.core.active_response import is_valid_workload_id
from portflow.core.config import Config
from portflow.core.executor import CommandExecutor
from portflow.core.schemas import ActionResult, Outcome, RuntimeFamily, WorkloadRecord
from portflow.modules.workloads import parse_engine_output, parse_orchestrator_output, split_composite_id
from portflow.utils.logger import Logger

ENGINE_FORMAT = "\t".join([
    "{{.ID}}", "{{.Image}}", "{{.Command}}", "{{.CreatedAt}}",
    "{{.Status}}", "{{.Ports}}", "{{.Names}}",
])

POD_COLUMNS = ",".join([
    "NAMESPACE:.metadata.namespace",
    "NAME:.metadata.name",
    "READY:.status.containerStatuses[0].ready",
    "STATUS:.status.phase",
    "RESTARTS:.status.containerStatuses[0].restartCount",
    "AGE:.metadata.creationTimestamp",
    "IP:.status.podIP",
    "NODE:.spec.nodeName",
])


class RuntimeDescriptor:
    """How to find, probe, list and drive one runtime family."""

    composite_ids = False

    def __init__(self, family: RuntimeFamily, label: str, binary: str):
        self.family = family
        self.label = label
        self.binary = binary

    def locate_argv(self) -> List[str]:
        return ["which", self.binary]

    def status_argv(self) -> List[str]:
        return [self.binary, "info"]

    def list_argv(self) -> List[str]:
        raise NotImplementedError

    def parse(self, output: str) -> List[WorkloadRecord]:
        raise NotImplementedError

    def stop_argv(self, workload_id: str) -> List[str]:
        raise NotImplementedError

    def start_argv(self, workload_id: str) -> Optional[List[str]]:
        """None when the family cannot start a workload directly."""
        raise NotImplementedError

    def remove_argv(self, workload_id: str) -> List[str]:
        raise NotImplementedError


class EngineRuntime(RuntimeDescriptor):
    """Docker and Podman share the same CLI surface."""

    def list_argv(self) -> List[str]:
        return [self.binary, "ps", "-a", "--format", ENGINE_FORMAT]

    def parse(self, output: str) -> List[WorkloadRecord]:
        return parse_engine_output(output, self.family)

    def stop_argv(self, workload_id: str) -> List[str]:
        return [self.binary, "stop", workload_id]

    def start_argv(self, workload_id: str) -> Optional[List[str]]:
        return [self.binary, "start", workload_id]

    def remove_argv(self, workload_id: str) -> List[str]:
        return [self.binary, "rm", "-f", workload_id]


class OrchestratorRuntime(RuntimeDescriptor):
    """Kubernetes through kubectl. Workload ids are 'namespace/pod'."""

    composite_ids = True

    def __init__(self):
        super().__init__(RuntimeFamily.KUBERNETES, "Kubernetes", "kubectl")

    def status_argv(self) -> List[str]:
        return [self.binary, "cluster-info"]

    def list_argv(self) -> List[str]:
        return [
            self.binary, "get", "pods", "--all-namespaces",
            "-o", f"custom-columns={POD_COLUMNS}", "--no-headers",
        ]

    def parse(self, output: str) -> List[WorkloadRecord]:
        return parse_orchestrator_output(output)

    def stop_argv(self, workload_id: str) -> List[str]:
        # Deleting the pod; its controller recreates it when managed.
        namespace, pod = split_composite_id(workload_id)
        return [self.binary, "delete", "pod", pod, "-n", namespace]

    def start_argv(self, workload_id: str) -> Optional[List[str]]:
        return None

    def remove_argv(self, workload_id: str) -> List[str]:
        namespace, pod = split_composite_id(workload_id)
        return [self.binary, "delete", "pod", pod, "-n", namespace, "--grace-period=0", "--force"]


RUNTIMES = (
    EngineRuntime(RuntimeFamily.DOCKER, "Docker", "docker"),
    EngineRuntime(RuntimeFamily.PODMAN, "Podman", "podman"),
    OrchestratorRuntime(),
)


def get_runtime(family: Union[RuntimeFamily, str]) -> Optional[RuntimeDescriptor]:
    try:
        family = RuntimeFamily(family)
    except ValueError:
        return None
    return next((r for r in RUNTIMES if r.family == family), None)


class WorkloadController:
    """stop / start / remove for containers and pods."""

    ACTIONS = ("stop", "start", "remove")
    PAST_TENSE = {"stop": "stopped", "start": "started", "remove": "removed"}

    def __init__(self, executor: CommandExecutor, config: Config):
        self.executor = executor
        self.config = config
        self.logger = Logger()

    async def run_action(self, action: str, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        runtime = get_runtime(family)
        if runtime is None:
            return ActionResult(ok=False, outcome=Outcome.INVALID, error="Unknown runtime")
        if action not in self.ACTIONS:
            return ActionResult(ok=False, outcome=Outcome.INVALID, error=f"Unknown action: {action}")

        if not is_valid_workload_id(workload_id, composite=runtime.composite_ids):
            return ActionResult(ok=False, outcome=Outcome.INVALID, error="Invalid container ID format")

        argv = getattr(runtime, f"{action}_argv")(workload_id)
        if argv is None:
            return ActionResult(
                ok=False,
                outcome=Outcome.INVALID,
                error=f"Cannot {action} {runtime.label} pods directly. Use deployments or restart the workload.",
            )

        result = await self.executor.run(argv, self.config.command_timeout)
        if result.exit_ok:
            self.logger.success(f"{runtime.label}: workload {workload_id} {self.PAST_TENSE[action]}.")
            return ActionResult(
                ok=True,
                outcome=Outcome.SUCCESS,
                message=f"Container {workload_id} {self.PAST_TENSE[action]}",
            )

        error = (result.error_text or f"{runtime.binary} {action} failed")[:self.config.message_length]
        self.logger.error(f"{runtime.label}: {action} {workload_id} failed: {error}")
        return ActionResult(ok=False, outcome=Outcome.FAILED, error=error)

    async def stop(self, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self.run_action("stop", workload_id, family)

    async def start(self, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self.run_action("start", workload_id, family)

    async def remove(self, workload_id: str, family: Union[RuntimeFamily, str]) -> ActionResult:
        return await self.run_action("remove", workload_id, family)
