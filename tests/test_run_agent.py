# tests/test_run_agent.py
from unittest.mock import patch

import run_agent
from portflow.core.schemas import AggregatedSnapshot, RuntimeFamily, WorkloadListResult, WorkloadRecord


def test_log_snapshot_summarizes_workloads():
    records = [
        WorkloadRecord(id="3f2a9c1d", name="web", status="Up 2 hours", runtime=RuntimeFamily.DOCKER),
        WorkloadRecord(id="77aa88bb", name="cache", status="Exited (0) 1 hour ago", runtime=RuntimeFamily.DOCKER),
        WorkloadRecord(id="default/job-1", name="job-1", status="Evicted", runtime=RuntimeFamily.KUBERNETES),
    ]
    snapshot = AggregatedSnapshot(
        workloads=WorkloadListResult(ok=True, records=records, primary_runtime=RuntimeFamily.DOCKER),
    )

    with patch.object(run_agent, "logger") as logger:
        run_agent.log_snapshot(snapshot)

    summary = logger.info.call_args[0][0]
    assert "Workloads 1/3 running" in summary
    assert "primary: docker" in summary

    lines = [call[0][0] for call in logger.debug.call_args_list]
    assert len(lines) == 3
    assert "RUNNING" in lines[0] and "web (3f2a9c1d)" in lines[0]
    assert "EXITED" in lines[1]
    assert "EVICTED" in lines[2]
    logger.warning.assert_not_called()
