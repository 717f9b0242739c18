import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from conftest import AUTH_KEY, PZ_ADDR, FakePlatform
from pzsvc_exec.errors import IngestTimeoutError, RemoteJobError, TransferError, UnknownStatusError
from pzsvc_exec.execution.ingest import (
    GEOJSON,
    MAX_POLL_ATTEMPTS,
    RASTER,
    TEXT,
    OutputIngestor,
    completion_timestamp,
    wait_for_data_id,
)
from pzsvc_exec.execution.result import ExecutionResult
from pzsvc_exec.execution.workspace import Workspace
from pzsvc_exec.platform.client import JobStatus
from pzsvc_exec.session import Session


class ScriptedJobs:
    def __init__(self, statuses: list[JobStatus]) -> None:
        self.statuses = list(statuses)
        self.calls = 0

    def job_status(self, job_id: str) -> JobStatus:
        self.calls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


def test_wait_polls_until_success() -> None:
    sleeps: list[float] = []
    jobs = ScriptedJobs([JobStatus("Submitted"), JobStatus("Running"), JobStatus("Success", data_id="X")])

    assert wait_for_data_id(jobs, "job-1", sleep=sleeps.append) == "X"
    assert sleeps == [1.0, 0.2, 0.2]
    assert jobs.calls == 3


def test_wait_gives_up_after_max_attempts() -> None:
    sleeps: list[float] = []
    jobs = ScriptedJobs([JobStatus("Pending")])

    with pytest.raises(IngestTimeoutError, match="Never completed."):
        wait_for_data_id(jobs, "job-1", sleep=sleeps.append)

    assert jobs.calls == MAX_POLL_ATTEMPTS
    assert sleeps[0] == 1.0
    assert len(sleeps) == MAX_POLL_ATTEMPTS + 1


def test_wait_reports_remote_failure() -> None:
    jobs = ScriptedJobs([JobStatus("Fail", message="disk full")])

    with pytest.raises(RemoteJobError, match="Fail: disk full"):
        wait_for_data_id(jobs, "job-1", sleep=lambda _s: None)


def test_wait_rejects_unknown_status() -> None:
    jobs = ScriptedJobs([JobStatus("Weird")])

    with pytest.raises(UnknownStatusError, match="Unknown status: Weird"):
        wait_for_data_id(jobs, "job-1", sleep=lambda _s: None)


def test_job_not_found_is_transient() -> None:
    jobs = ScriptedJobs([JobStatus("Error", message="Job Not Found"), JobStatus("Success", data_id="Y")])

    assert wait_for_data_id(jobs, "job-1", sleep=lambda _s: None) == "Y"


def test_completion_timestamp_trims_fraction() -> None:
    assert completion_timestamp(datetime(2024, 3, 5, 7, 8, 9, 120000, tzinfo=UTC)) == "20240305.070809.12"
    assert completion_timestamp(datetime(2024, 3, 5, 7, 8, 9, 0, tzinfo=UTC)) == "20240305.070809"
    assert completion_timestamp(datetime(2024, 3, 5, 7, 8, 9, 123456, tzinfo=UTC)) == "20240305.070809.12345"


def _ingestor(platform: FakePlatform, workspace: Workspace | None = None) -> OutputIngestor:
    return OutputIngestor(
        platform.client(PZ_ADDR, AUTH_KEY),
        Session(session_id="S1"),
        service_name="algo",
        version="2.0",
        command_line="algo -v",
        workspace=workspace,
        sleep=lambda _s: None,
        processed_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC),
    )


def test_build_job_carries_provenance(platform: FakePlatform) -> None:
    job = _ingestor(platform).build_job("out.tif", RASTER)

    assert job["type"] == "ingest"
    assert job["host"] is True
    assert job["data"]["dataType"] == {"type": "raster", "mimeType": "image/tiff"}
    metadata = job["data"]["metadata"]
    assert metadata["name"] == "out.tif"
    assert metadata["version"] == "2.0"
    assert metadata["metadata"] == {
        "algoName": "algo",
        "algoVersion": "2.0",
        "algoCmd": "algo -v",
        "algoProcTime": "20240102.030405",
    }


def test_text_output_is_embedded(tmp_path: Path, platform: FakePlatform) -> None:
    with Workspace(tmp_path, "ws") as workspace:
        (workspace.path / "report.txt").write_text("all good")
        data_id = _ingestor(platform, workspace).ingest_file("report.txt", TEXT)

    assert data_id == "data-job-1"
    submission = platform.submissions[0]
    assert b'filename="report.txt"' not in submission
    body = submission.split(b"\r\n\r\n", 1)[1].split(b"\r\n--", 1)[0]
    job = json.loads(body)
    assert job["data"]["dataType"] == {"type": "text", "mimeType": "text/plain", "content": "all good"}


def test_raster_output_is_uploaded(tmp_path: Path, platform: FakePlatform) -> None:
    with Workspace(tmp_path, "ws") as workspace:
        (workspace.path / "out.tif").write_bytes(b"II*\x00raster")
        _ingestor(platform, workspace).ingest_file("out.tif", RASTER)

    submission = platform.submissions[0]
    assert b'name="file"; filename="out.tif"' in submission
    assert b"Content-Type: image/tiff" in submission
    assert b"II*\x00raster" in submission


def test_missing_output_is_a_transfer_error(tmp_path: Path, platform: FakePlatform) -> None:
    with Workspace(tmp_path, "ws") as workspace:
        with pytest.raises(TransferError):
            _ingestor(platform, workspace).ingest_file("never-written.geojson", GEOJSON)

    assert platform.submissions == []


def test_publish_records_each_output_independently(tmp_path: Path, platform: FakePlatform) -> None:
    result = ExecutionResult()
    with Workspace(tmp_path, "ws") as workspace:
        (workspace.path / "a.tif").write_bytes(b"tif")
        (workspace.path / "b.geojson").write_text('{"type": "FeatureCollection", "features": []}')
        _ingestor(platform, workspace).publish(
            result,
            tiffs=["a.tif"],
            texts=["missing.txt"],
            geojsons=["b.geojson"],
        )

    assert result.out_files == {"a.tif": "data-job-1", "b.geojson": "data-job-2"}
    assert len(result.errors) == 1
    assert result.errors[0].startswith("text upload of 'missing.txt' failed")
    assert result.http_status == 400
