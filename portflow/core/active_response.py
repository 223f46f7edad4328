# portflow/core/active_response.py
"""
Privileged-retry protocol for commands the OS may refuse.

An operation first runs unprivileged. A permission refusal stops at
NEEDS_CONFIRMATION and is handed back to the caller, who decides whether to
re-run it through the elevation helper (pkexec by default). Elevation is never
attempted without that explicit second call.

    UNPRIVILEGED_ATTEMPT -> TERMINAL             (success, not found, failure)
    UNPRIVILEGED_ATTEMPT -> NEEDS_CONFIRMATION   (permission denied)
    ESCALATED_ATTEMPT    -> TERMINAL             (success, cancelled, not found, failure)
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

from portflow.core.config import Config
from portflow.core.executor import CommandExecutor, CommandResult
from portflow.core.schemas import ActionResult, Outcome
from portflow.utils.logger import Logger

PID_PATTERN = re.compile(r"[0-9]+")
WORKLOAD_ID_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")
COMPOSITE_ID_PATTERN = re.compile(r"[a-zA-Z0-9_-]+/[a-zA-Z0-9_-]+")

# pkexec exit status when the authentication dialog is dismissed
PKEXEC_DISMISSED = 126


def is_valid_pid(pid: Union[str, int]) -> bool:
    return bool(PID_PATTERN.fullmatch(str(pid)))


def is_valid_workload_id(workload_id: str, composite: bool = False) -> bool:
    """Alphanumerics, '_' and '-'; composite ids may carry one 'namespace/' prefix."""
    if not isinstance(workload_id, str):
        return False
    if WORKLOAD_ID_PATTERN.fullmatch(workload_id):
        return True
    return composite and bool(COMPOSITE_ID_PATTERN.fullmatch(workload_id))


class ElevationState(str, Enum):
    UNPRIVILEGED_ATTEMPT = "unprivileged_attempt"
    NEEDS_CONFIRMATION = "needs_confirmation"
    ESCALATED_ATTEMPT = "escalated_attempt"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class PrivilegedAttempt:
    state: ElevationState
    outcome: Outcome
    result: CommandResult

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS


class PrivilegeCoordinator:
    """Runs commands under the two-step elevation protocol and classifies the outcome."""

    def __init__(self, executor: CommandExecutor, config: Config):
        self.executor = executor
        self.config = config
        self.logger = Logger()

    def matches(self, output: str, kind: str) -> bool:
        text = output.lower()
        return any(phrase in text for phrase in self.config.phrases(kind))

    def elevated_argv(self, argv: Sequence[str]) -> List[str]:
        return [self.config.elevation_command, *argv]

    def classify(self, result: CommandResult, escalated: bool) -> Outcome:
        if result.exit_ok:
            return Outcome.SUCCESS

        output = result.output
        if escalated:
            if result.returncode == PKEXEC_DISMISSED or self.matches(output, "cancelled"):
                return Outcome.CANCELLED
        elif self.matches(output, "permission_denied"):
            return Outcome.NEEDS_ELEVATION

        if self.matches(output, "not_found"):
            return Outcome.NOT_FOUND
        return Outcome.FAILED

    async def attempt(self, argv: Sequence[str], timeout: Optional[float] = None) -> PrivilegedAttempt:
        """Unprivileged step. Ends in TERMINAL or NEEDS_CONFIRMATION."""
        result = await self.executor.run(argv, timeout or self.config.command_timeout)
        outcome = self.classify(result, escalated=False)

        if outcome == Outcome.NEEDS_ELEVATION:
            self.logger.warning(f"Permission denied running '{' '.join(argv)}', elevation required.")
            return PrivilegedAttempt(ElevationState.NEEDS_CONFIRMATION, outcome, result)
        return PrivilegedAttempt(ElevationState.TERMINAL, outcome, result)

    async def escalate(self, argv: Sequence[str], timeout: Optional[float] = None) -> PrivilegedAttempt:
        """Escalated step, only after the caller confirmed. Always ends in TERMINAL."""
        command = self.elevated_argv(argv)
        self.logger.info(f"Requesting elevated privileges: {' '.join(command)}")
        result = await self.executor.run(command, timeout or self.config.elevation_timeout)
        outcome = self.classify(result, escalated=True)

        if outcome == Outcome.CANCELLED:
            self.logger.warning("Elevation cancelled by user.")
        elif outcome != Outcome.SUCCESS:
            self.logger.error(f"Elevated command failed ({outcome.value}): {' '.join(command)}")
        return PrivilegedAttempt(ElevationState.TERMINAL, outcome, result)


class ActiveResponse:
    """Process termination through the privileged-retry protocol."""

    def __init__(self, coordinator: PrivilegeCoordinator):
        self.coordinator = coordinator
        self.logger = Logger()

    def _failure(self, attempt: PrivilegedAttempt) -> ActionResult:
        limit = self.coordinator.config.message_length
        if attempt.outcome == Outcome.NOT_FOUND:
            return ActionResult(ok=False, outcome=Outcome.NOT_FOUND, error="Process no longer exists")
        if attempt.outcome == Outcome.CANCELLED:
            return ActionResult(ok=False, outcome=Outcome.CANCELLED, error="Authentication cancelled by user")
        if attempt.outcome == Outcome.NEEDS_ELEVATION:
            return ActionResult(
                ok=False,
                outcome=Outcome.NEEDS_ELEVATION,
                needs_elevation=True,
                error="Permission denied. Elevated privileges required.",
            )
        error = attempt.result.error_text or "Command failed"
        return ActionResult(ok=False, outcome=Outcome.FAILED, error=error[:limit])

    async def terminate_process(self, pid: Union[str, int]) -> ActionResult:
        """Sends SIGTERM to a process without elevation."""
        if not is_valid_pid(pid):
            return ActionResult(ok=False, outcome=Outcome.INVALID, error="Invalid PID format")

        attempt = await self.coordinator.attempt(["kill", str(pid)])
        if attempt.ok:
            self.logger.success(f"Process {pid} terminated.")
            return ActionResult(ok=True, outcome=Outcome.SUCCESS, message=f"Process {pid} terminated")
        return self._failure(attempt)

    async def terminate_process_elevated(self, pid: Union[str, int]) -> ActionResult:
        """Same as terminate_process, run through the elevation helper."""
        if not is_valid_pid(pid):
            return ActionResult(ok=False, outcome=Outcome.INVALID, error="Invalid PID format")

        attempt = await self.coordinator.escalate(["kill", str(pid)])
        if attempt.ok:
            self.logger.success(f"Process {pid} terminated with elevated privileges.")
            return ActionResult(
                ok=True,
                outcome=Outcome.SUCCESS,
                message=f"Process {pid} terminated with elevated privileges",
            )
        return self._failure(attempt)
