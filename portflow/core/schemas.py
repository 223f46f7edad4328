"""
Portflow Data Contracts
Defines the structure of every record and result shared across modules.
Records are rebuilt on every refresh and never mutated afterwards.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Protocol(str, Enum):
    TCP = "TCP"
    UDP = "UDP"


class TunnelDirection(str, Enum):
    LOCAL = "Local"
    REMOTE = "Remote"


class RuntimeFamily(str, Enum):
    """Container/orchestration backends, declared in priority order."""
    DOCKER = "docker"
    PODMAN = "podman"
    KUBERNETES = "kubernetes"


class FailureReason(str, Enum):
    NONE = "none"
    NOT_INSTALLED = "not_installed"
    PERMISSION_DENIED = "permission_denied"
    DAEMON_NOT_RUNNING = "daemon_not_running"
    CONNECTION_REFUSED = "connection_refused"
    UNKNOWN = "unknown"


class StatusCategory(str, Enum):
    RUNNING = "running"
    EXITED = "exited"
    PAUSED = "paused"
    CREATED = "created"
    DEAD = "dead"
    PENDING = "pending"
    FAILED = "failed"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class Outcome(str, Enum):
    SUCCESS = "success"
    NEEDS_ELEVATION = "needs_elevation"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILED = "failed"


class ListeningSocket(BaseModel):
    """One listening endpoint from the socket table."""
    model_config = ConfigDict(frozen=True)

    protocol: Protocol
    port: int = Field(ge=0, le=65535)
    address: str = "*"
    state: str = ""
    pid: Optional[int] = None
    process_name: Optional[str] = None


class ForwardRule(BaseModel):
    """NAT rule rewriting or redirecting traffic."""
    model_config = ConfigDict(frozen=True)

    chain: str = ""
    target: str
    protocol: str
    source: str
    destination: str = ""
    dport: Optional[int] = None
    to_destination: str = ""
    raw: str = ""


class SshTunnel(BaseModel):
    model_config = ConfigDict(frozen=True)

    direction: TunnelDirection
    local_port: int
    remote_host: str
    remote_port: int
    raw: str = ""


class RuntimeAvailability(BaseModel):
    family: RuntimeFamily
    available: bool = False
    running: bool = False
    failure_reason: FailureReason = FailureReason.NONE
    error: Optional[str] = None
    needs_permission: bool = False


class WorkloadRecord(BaseModel):
    """A container (engine runtimes) or a pod (orchestrator)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    image: str = ""  # namespace for pods
    command: str = ""
    status: str = ""
    status_category: StatusCategory = StatusCategory.UNKNOWN
    ready: Optional[str] = None
    restarts: Optional[str] = None
    created: str = ""
    ports: str = ""  # pod IP for pods
    namespace: Optional[str] = None
    node: Optional[str] = None
    runtime: RuntimeFamily


# --- RESULTS ---

class SocketListResult(BaseModel):
    ok: bool
    sockets: List[ListeningSocket] = []
    error: Optional[str] = None


class ForwardListResult(BaseModel):
    ok: bool
    nat_rules: List[ForwardRule] = []
    ssh_tunnels: List[SshTunnel] = []
    needs_elevation: bool = False
    nat_error: Optional[str] = None


class ElevatedForwardResult(BaseModel):
    ok: bool
    nat_rules: List[ForwardRule] = []
    outcome: Outcome = Outcome.SUCCESS
    error: Optional[str] = None


class ActionResult(BaseModel):
    ok: bool
    outcome: Outcome
    message: Optional[str] = None
    error: Optional[str] = None
    needs_elevation: bool = False


class WorkloadListResult(BaseModel):
    ok: bool
    records: List[WorkloadRecord] = []
    runtimes: Dict[RuntimeFamily, RuntimeAvailability] = {}
    primary_runtime: Optional[RuntimeFamily] = None
    listing_errors: Dict[RuntimeFamily, str] = {}
    no_runtime: bool = False
    error: Optional[str] = None


class AggregatedSnapshot(BaseModel):
    """Everything one refresh cycle produced."""
    tcp_sockets: List[ListeningSocket] = []
    udp_sockets: List[ListeningSocket] = []
    nat_rules: List[ForwardRule] = []
    ssh_tunnels: List[SshTunnel] = []
    needs_elevation: bool = False
    workloads: WorkloadListResult
    errors: Dict[str, str] = {}
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def runtimes(self) -> Dict[RuntimeFamily, RuntimeAvailability]:
        return self.workloads.runtimes

    @property
    def primary_runtime(self) -> Optional[RuntimeFamily]:
        return self.workloads.primary_runtime

    @property
    def total_ports(self) -> int:
        return len(self.tcp_sockets) + len(self.udp_sockets)

    @property
    def forwards_count(self) -> int:
        return len(self.nat_rules) + len(self.ssh_tunnels)
