# tests/test_workloads.py
import asyncio

import pytest

from portflow.core.schemas import Outcome, RuntimeFamily, StatusCategory
from portflow.modules.runtimes import RUNTIMES, WorkloadController, get_runtime
from portflow.modules.workloads import (
    classify_status,
    is_running,
    parse_engine_output,
    parse_orchestrator_output,
    split_composite_id,
    status_label,
)

DOCKER_PS = "\n".join([
    "CONTAINER ID\tIMAGE\tCOMMAND\tCREATED\tSTATUS\tPORTS\tNAMES",
    "3f2a9c1d\tnginx:latest\t\"/docker-entrypoint…\"\t2024-05-01 10:00:00 +0000 UTC\tUp 2 hours\t0.0.0.0:8080->80/tcp\tweb",
    "a1b2c3d4\tpostgres:16\t\"docker-entrypoint.s…\"\t2024-05-01 09:00:00 +0000 UTC\tExited (0) 5 minutes ago\t\tdb",
    "broken\tline",
])

KUBECTL_PODS = "\n".join([
    "kube-system   coredns-5d78c9869d-abcde   true    Running     0     2024-05-01T08:00:00Z   10.244.0.3   node-1",
    "default       job-runner-xyz              false   Succeeded   1     2024-05-01T09:00:00Z   <none>       node-2",
    "default       short",
])


def test_engine_parser_skips_header_and_short_lines():
    records = parse_engine_output(DOCKER_PS, RuntimeFamily.DOCKER)

    assert [r.id for r in records] == ["3f2a9c1d", "a1b2c3d4"]
    web = records[0]
    assert web.name == "web"
    assert web.image == "nginx:latest"
    assert web.ports == "0.0.0.0:8080->80/tcp"
    assert web.status_category == StatusCategory.RUNNING
    assert web.runtime == RuntimeFamily.DOCKER
    assert web.ready is None and web.restarts is None
    assert records[1].ports == ""
    assert records[1].status_category == StatusCategory.EXITED


def test_engine_parser_without_header_keeps_first_row():
    body = "\n".join(DOCKER_PS.splitlines()[1:3])
    records = parse_engine_output(body, RuntimeFamily.PODMAN)
    assert [r.name for r in records] == ["web", "db"]
    assert all(r.runtime == RuntimeFamily.PODMAN for r in records)


def test_orchestrator_parser_whitespace_columns():
    records = parse_orchestrator_output(KUBECTL_PODS)

    assert [r.id for r in records] == ["kube-system/coredns-5d78c9869d-abcde", "default/job-runner-xyz"]
    coredns = records[0]
    assert coredns.name == "coredns-5d78c9869d-abcde"
    assert coredns.image == "kube-system"
    assert coredns.namespace == "kube-system"
    assert coredns.ready == "true"
    assert coredns.restarts == "0"
    assert coredns.created == "2024-05-01T08:00:00Z"
    assert coredns.ports == "10.244.0.3"
    assert coredns.node == "node-1"
    assert coredns.runtime == RuntimeFamily.KUBERNETES
    assert records[1].status_category == StatusCategory.COMPLETED


def test_orchestrator_parser_tab_columns_with_header():
    text = "NAMESPACE\tNAME\tREADY\tSTATUS\tRESTARTS\tAGE\tIP\tNODE\nprod\tapi-0\ttrue\tPending\t0\t3m\t\t\n"
    records = parse_orchestrator_output(text)

    assert len(records) == 1
    assert records[0].id == "prod/api-0"
    assert records[0].ports == "-"
    assert records[0].status_category == StatusCategory.PENDING


@pytest.mark.parametrize("status, category", [
    ("Up 3 hours", StatusCategory.RUNNING),
    ("Running", StatusCategory.RUNNING),
    ("Exited (137) 2 days ago", StatusCategory.EXITED),
    ("Paused", StatusCategory.PAUSED),
    ("Created", StatusCategory.CREATED),
    ("Dead", StatusCategory.DEAD),
    ("Pending", StatusCategory.PENDING),
    ("Failed", StatusCategory.FAILED),
    ("Succeeded", StatusCategory.COMPLETED),
    ("Removal In Progress", StatusCategory.UNKNOWN),
    ("", StatusCategory.UNKNOWN),
])
def test_classify_status(status, category):
    assert classify_status(status) == category


def test_first_matching_category_wins():
    assert classify_status("Up 2 hours (Paused)") == StatusCategory.RUNNING


def test_status_label_and_running():
    assert status_label("Up 5 minutes") == "RUNNING"
    assert status_label("Removal In Progress") == "REMOVAL IN"
    assert is_running("running")
    assert not is_running("Exited (1)")


def test_split_composite_id():
    assert split_composite_id("kube-system/coredns") == ("kube-system", "coredns")
    assert split_composite_id("coredns") == ("default", "coredns")


def test_runtime_order_and_lookup():
    assert [r.family for r in RUNTIMES] == [RuntimeFamily.DOCKER, RuntimeFamily.PODMAN, RuntimeFamily.KUBERNETES]
    assert get_runtime("podman").binary == "podman"
    assert get_runtime("containerd") is None


def test_stop_engine_container(executor, config):
    executor.on("docker", "stop", stdout="web")
    result = asyncio.run(WorkloadController(executor, config).stop("web", RuntimeFamily.DOCKER))

    assert result.ok
    assert result.message == "Container web stopped"
    assert executor.calls == [["docker", "stop", "web"]]


def test_stop_pod_deletes_it(executor, config):
    executor.on("kubectl", "delete", "pod")
    result = asyncio.run(WorkloadController(executor, config).stop("kube-system/coredns", "kubernetes"))

    assert result.ok
    assert executor.calls == [["kubectl", "delete", "pod", "coredns", "-n", "kube-system"]]


def test_remove_pod_is_forced(executor, config):
    executor.on("kubectl", "delete", "pod")
    asyncio.run(WorkloadController(executor, config).remove("api-0", "kubernetes"))

    assert executor.calls == [["kubectl", "delete", "pod", "api-0", "-n", "default", "--grace-period=0", "--force"]]


def test_remove_podman_container(executor, config):
    executor.on("podman", "rm")
    result = asyncio.run(WorkloadController(executor, config).remove("db", "podman"))

    assert result.ok
    assert executor.calls == [["podman", "rm", "-f", "db"]]


def test_start_pod_is_rejected(executor, config):
    result = asyncio.run(WorkloadController(executor, config).start("default/api-0", "kubernetes"))

    assert result.ok is False
    assert "Cannot start Kubernetes pods directly" in result.error
    assert executor.calls == []


@pytest.mark.parametrize("workload_id, family", [
    ("web; rm -rf /", "docker"),
    ("ns/name", "docker"),
    ("a/b/c", "kubernetes"),
    ("", "podman"),
    ("web\n", "docker"),
    ("default/api-0\n", "kubernetes"),
])
def test_invalid_ids_never_reach_a_command(executor, config, workload_id, family):
    result = asyncio.run(WorkloadController(executor, config).stop(workload_id, family))

    assert result.ok is False
    assert result.outcome == Outcome.INVALID
    assert result.error == "Invalid container ID format"
    assert executor.calls == []


def test_unknown_runtime(executor, config):
    result = asyncio.run(WorkloadController(executor, config).stop("web", "lxc"))
    assert result.error == "Unknown runtime"


def test_action_failure_is_truncated(executor, config):
    executor.on("docker", "start", ok=False, stderr="Error response from daemon: " + "x" * 500)
    result = asyncio.run(WorkloadController(executor, config).start("web", "docker"))

    assert result.ok is False
    assert result.outcome == Outcome.FAILED
    assert len(result.error) == 200
