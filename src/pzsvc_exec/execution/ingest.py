"""Publish output files to the platform and wait for their content ids.

Submission returns a job id, not the content id. The job is then polled:
after an initial delay the status is queried up to MAX_POLL_ATTEMPTS times,
POLL_INTERVAL_SECONDS apart. Submitted/Running/Pending (or a "Job Not Found"
message, while the platform catches up with its own submission) keep
polling; Success yields the content id; Error/Fail and any other status end
the item with an error. Worst case is roughly 21 seconds per output.
"""

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pzsvc_exec.errors import IngestTimeoutError, RemoteJobError, TransferError, UnknownStatusError
from pzsvc_exec.execution.result import ExecutionResult, transfer_each
from pzsvc_exec.execution.workspace import Workspace
from pzsvc_exec.platform.client import PlatformClient
from pzsvc_exec.session import Session


INITIAL_DELAY_SECONDS = 1.0
POLL_INTERVAL_SECONDS = 0.2
MAX_POLL_ATTEMPTS = 100

TRANSIENT_STATUSES = frozenset({"Submitted", "Running", "Pending"})
FAILED_STATUSES = frozenset({"Error", "Fail"})
JOB_NOT_FOUND_MESSAGE = "Job Not Found"
SUCCESS_STATUS = "Success"

CLASSIFICATION_PLACEHOLDER = "UNCLASSIFIED"

Sleep = Callable[[float], None]


@dataclass(frozen=True)
class OutputCategory:
    data_type: str
    mime_type: str


RASTER = OutputCategory("raster", "image/tiff")
TEXT = OutputCategory("text", "text/plain")
GEOJSON = OutputCategory("geojson", "application/geo+json")


def completion_timestamp(moment: datetime | None = None) -> str:
    """Compact UTC stamp `YYYYMMDD.HHMMSS[.fffff]`, trailing zeros trimmed."""
    current = (moment or datetime.now(UTC)).astimezone(UTC)
    stamp = current.strftime("%Y%m%d.%H%M%S")
    fraction = f"{current.microsecond:06d}"[:5].rstrip("0")
    return f"{stamp}.{fraction}" if fraction else stamp


def wait_for_data_id(
    client: PlatformClient,
    job_id: str,
    *,
    sleep: Sleep = time.sleep,
    initial_delay: float = INITIAL_DELAY_SECONDS,
    interval: float = POLL_INTERVAL_SECONDS,
    attempts: int = MAX_POLL_ATTEMPTS,
) -> str:
    """Poll an ingest job until it reaches a terminal state and return its data id."""
    sleep(initial_delay)

    for _ in range(attempts):
        job = client.job_status(job_id)
        if job.status in TRANSIENT_STATUSES or job.message == JOB_NOT_FOUND_MESSAGE:
            sleep(interval)
            continue
        if job.status == SUCCESS_STATUS:
            return job.data_id
        if job.status in FAILED_STATUSES:
            raise RemoteJobError(f"{job.status}: {job.message}")
        raise UnknownStatusError(f"Unknown status: {job.status}")

    raise IngestTimeoutError("Never completed.")


class OutputIngestor:
    """Builds ingest jobs for one execution and drives them to completion."""

    def __init__(
        self,
        client: PlatformClient,
        session: Session,
        *,
        service_name: str,
        version: str,
        command_line: str,
        workspace: Workspace | None = None,
        sleep: Sleep = time.sleep,
        processed_at: datetime | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.service_name = service_name
        self.version = version
        self.command_line = command_line
        self.workspace = workspace
        self.sleep = sleep
        self.attributes = {
            "algoName": service_name,
            "algoVersion": version,
            "algoCmd": command_line,
            "algoProcTime": completion_timestamp(processed_at),
        }

    def build_job(self, name: str, category: OutputCategory, content: str | None = None) -> dict[str, Any]:
        data_type: dict[str, Any] = {"type": category.data_type, "mimeType": category.mime_type}
        if content is not None:
            data_type["content"] = content
        return {
            "type": "ingest",
            "host": True,
            "data": {
                "dataType": data_type,
                "metadata": {
                    "name": name,
                    "description": f"{category.data_type} output from {self.service_name} for `{self.command_line}`.",
                    "classType": {"classification": CLASSIFICATION_PLACEHOLDER},
                    "version": self.version,
                    "metadata": dict(self.attributes),
                },
            },
        }

    def _complete(self, job_id: str) -> str:
        return wait_for_data_id(self.client, job_id, sleep=self.sleep)

    def ingest_file(self, filename: str, category: OutputCategory) -> str:
        """Upload one workspace file and return its platform content id."""
        if self.workspace is None:
            raise TransferError("No workspace to read outputs from")
        self.session.audit(self.session.user_id, "Pz File Ingest", filename)

        path = self.workspace.file(filename)
        if not path.is_file():
            raise TransferError(f"Output file '{filename}' was not produced")

        if category is TEXT:
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                raise TransferError(f"Could not read output '{filename}': {exc}") from exc
            job_id = self.client.submit_job(self.build_job(filename, category, content=content))
        else:
            job_id = self.client.submit_job(self.build_job(filename, category), upload=path)

        self.session.log.info("Ingest of %s submitted as job %s", filename, job_id)
        return self._complete(job_id)

    def ingest_text(self, name: str, content: str) -> str:
        """Publish an in-memory text payload and return its content id."""
        job_id = self.client.submit_job(self.build_job(name, TEXT, content=content))
        return self._complete(job_id)

    def publish(
        self,
        result: ExecutionResult,
        tiffs: Sequence[str] = (),
        texts: Sequence[str] = (),
        geojsons: Sequence[str] = (),
    ) -> None:
        """Ingest every declared output, recording content ids in `result.out_files`."""
        for files, category in ((tiffs, RASTER), (texts, TEXT), (geojsons, GEOJSON)):
            transfer_each(
                files,
                (),
                lambda filename, _name, category=category: self.ingest_file(filename, category),
                f"{category.data_type} upload",
                result,
                result.out_files,
            )
