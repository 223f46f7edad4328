# portflow/modules/workloads.py
"""
Portflow - Workload Parsers
Turns 'docker/podman ps' and 'kubectl get pods' listings into WorkloadRecords.
"""
from typing import List, Tuple
from portflow.core.schemas import RuntimeFamily, StatusCategory, WorkloadRecord

ENGINE_COLUMNS = ("id", "image", "command", "created", "status", "ports", "name")
ORCHESTRATOR_COLUMNS = ("namespace", "name", "ready", "status", "restarts", "age", "ip", "node")

ENGINE_HEADERS = {"CONTAINER ID", "CONTAINER", "ID"}
ORCHESTRATOR_HEADERS = {"NAMESPACE"}

# First match wins.
STATUS_RULES = (
    (("up", "running"), StatusCategory.RUNNING),
    (("exited",), StatusCategory.EXITED),
    (("paused",), StatusCategory.PAUSED),
    (("created",), StatusCategory.CREATED),
    (("dead",), StatusCategory.DEAD),
    (("pending",), StatusCategory.PENDING),
    (("failed",), StatusCategory.FAILED),
    (("succeeded", "completed"), StatusCategory.COMPLETED),
)


def classify_status(status: str) -> StatusCategory:
    """Maps a free-text container/pod status to its category, case-insensitively."""
    text = (status or "").lower()
    for needles, category in STATUS_RULES:
        if any(needle in text for needle in needles):
            return category
    return StatusCategory.UNKNOWN


def status_label(status: str) -> str:
    category = classify_status(status)
    if category == StatusCategory.UNKNOWN:
        return (status or "").upper()[:10]
    return category.value.upper()


def is_running(status: str) -> bool:
    return classify_status(status) == StatusCategory.RUNNING


def _is_header(first_column: str, headers: set) -> bool:
    column = first_column.strip()
    return column == column.upper() and column in headers


def _split_columns(line: str) -> List[str]:
    if "\t" in line:
        return [part.strip() for part in line.split("\t")]
    return line.split()


def parse_engine_output(output: str, runtime: RuntimeFamily) -> List[WorkloadRecord]:
    """
    Parses 'ps -a --format' output of the Docker/Podman engines.
    Tab-separated: id, image, command, created, status, ports, name.
    A header line is skipped; lines with fewer than 7 columns are dropped.
    """
    records = []
    lines = output.strip().splitlines()

    for index, line in enumerate(lines):
        line = line.strip()
        if not line:
            continue

        parts = line.split("\t")
        if index == 0 and _is_header(parts[0], ENGINE_HEADERS):
            continue
        if len(parts) < len(ENGINE_COLUMNS):
            continue

        row = dict(zip(ENGINE_COLUMNS, (p.strip() for p in parts)))
        records.append(WorkloadRecord(
            id=row["id"],
            name=row["name"],
            image=row["image"],
            command=row["command"],
            created=row["created"],
            status=row["status"],
            status_category=classify_status(row["status"]),
            ports=row["ports"],
            runtime=runtime,
        ))

    return records


def parse_orchestrator_output(output: str) -> List[WorkloadRecord]:
    """
    Parses 'kubectl get pods' custom-columns output.
    Columns: namespace, name, ready, status, restarts, age, ip, node; tab or
    whitespace separated. At least 6 columns are required. The id is
    'namespace/name'.
    """
    records = []
    lines = output.strip().splitlines()

    for index, line in enumerate(lines):
        line = line.strip()
        if not line:
            continue

        parts = _split_columns(line)
        if index == 0 and _is_header(parts[0], ORCHESTRATOR_HEADERS):
            continue
        if len(parts) < 6:
            continue

        row = dict(zip(ORCHESTRATOR_COLUMNS, parts))
        records.append(WorkloadRecord(
            id=f"{row['namespace']}/{row['name']}",
            name=row["name"],
            image=row["namespace"],
            created=row["age"],
            status=row["status"],
            status_category=classify_status(row["status"]),
            ready=row["ready"],
            restarts=row["restarts"],
            ports=row.get("ip") or "-",
            namespace=row["namespace"],
            node=row.get("node", ""),
            runtime=RuntimeFamily.KUBERNETES,
        ))

    return records


def split_composite_id(workload_id: str, default_namespace: str = "default") -> Tuple[str, str]:
    """'namespace/name' -> (namespace, name); a bare name lands in the default namespace."""
    if "/" in workload_id:
        namespace, _, name = workload_id.partition("/")
        return namespace, name
    return default_namespace, workload_id

