"""HTTP client for the platform: files, ingest jobs, service catalog and task queue."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from email.message import Message
from pathlib import Path, PurePosixPath
from types import TracebackType
from typing import Any
from urllib.parse import urlparse

import httpx

from pzsvc_exec.errors import AuthorizationError, TransferError

LOGGER = logging.getLogger(__name__)

DEFAULT_FILENAME = "dummy.txt"
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("PZSVC_HTTP_TIMEOUT_SECONDS", "60"))


@dataclass(frozen=True)
class JobStatus:
    """One observation of an asynchronous platform job."""

    status: str
    message: str = ""
    data_id: str = ""


@dataclass(frozen=True)
class Task:
    """A unit of work handed out by the platform task queue."""

    job_id: str
    content: str


def filename_from_disposition(header: str | None) -> str:
    """Extract the `filename` parameter from a Content-Disposition header."""
    if not header:
        return ""
    message = Message()
    message["content-disposition"] = header
    filename = message.get_param("filename", header="content-disposition")
    if isinstance(filename, tuple):
        filename = filename[2]
    return PurePosixPath(str(filename or "")).name


def _unwrap(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


class PlatformClient:
    """Thin wrapper over `httpx.Client` bound to one platform address and credential.

    The credential is attached per request to platform URLs only, so external
    downloads through the same connection pool never see it.
    """

    def __init__(
        self,
        base_url: str,
        auth: str = "",
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self._http = httpx.Client(transport=transport, timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> PlatformClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth:
            headers["Authorization"] = self.auth
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(method, url, headers=self._headers(), **kwargs)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransferError(f"{method} {url} failed: {exc}") from exc
        except ValueError as exc:
            raise TransferError(f"{method} {url} is not a valid request: {exc}") from exc
        return response

    def _request_json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = self._request(method, path, **kwargs)
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransferError(f"{method} {path} returned a non-JSON response") from exc
        return payload if isinstance(payload, dict) else {}

    # -- capability check ---------------------------------------------------

    def check_auth(self) -> None:
        """Confirm the credential works for platform operations."""
        try:
            self._request("GET", "/service", params={"perPage": 1})
        except TransferError as exc:
            raise AuthorizationError("Could not confirm auth.") from exc

    # -- downloads ------------------------------------------------------------

    def download_file(self, data_id: str, dest_dir: Path, name: str = "") -> str:
        """Fetch a platform-hosted file by id into `dest_dir` and return its local name."""
        return self._download(f"{self.base_url}/file/{data_id}", dest_dir, name, self._headers())

    def download_url(self, url: str, dest_dir: Path, name: str = "", auth: str = "") -> str:
        """Fetch an external URL into `dest_dir`, optionally presenting `auth`."""
        headers = {"Authorization": auth} if auth else {}
        return self._download(url, dest_dir, name, headers, name_from_url=True)

    def _download(
        self,
        url: str,
        dest_dir: Path,
        name: str,
        headers: dict[str, str],
        name_from_url: bool = False,
    ) -> str:
        try:
            fallback = PurePosixPath(urlparse(url).path).name if name_from_url else ""
            with self._http.stream("GET", url, headers=headers) as response:
                response.raise_for_status()
                filename = (
                    PurePosixPath(name).name
                    or filename_from_disposition(response.headers.get("Content-Disposition"))
                    or fallback
                    or DEFAULT_FILENAME
                )
                with open(Path(dest_dir) / filename, "wb") as file_handle:
                    for chunk in response.iter_bytes():
                        file_handle.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransferError(f"Download of {url} failed: {exc}") from exc
        except ValueError as exc:
            raise TransferError(f"Invalid download of {url}: {exc}") from exc
        except OSError as exc:
            raise TransferError(f"Could not save download of {url}: {exc}") from exc
        return filename

    # -- ingest jobs ------------------------------------------------------------

    def submit_job(self, job: dict[str, Any], upload: Path | None = None) -> str:
        """Submit an ingest job as multipart and return the platform job id."""
        files: dict[str, Any] = {"body": (None, json.dumps(job))}
        handle = None
        try:
            if upload is not None:
                mime_type = job.get("data", {}).get("dataType", {}).get("mimeType", "application/octet-stream")
                handle = open(upload, "rb")
                files["file"] = (upload.name, handle, mime_type)
            payload = self._request_json("POST", "/job", files=files)
        except OSError as exc:
            raise TransferError(f"Could not read upload {upload}: {exc}") from exc
        finally:
            if handle is not None:
                handle.close()

        job_id = str(_unwrap(payload).get("jobId") or payload.get("jobId") or "")
        if not job_id:
            raise TransferError("Ingest submission returned no job id")
        return job_id

    def job_status(self, job_id: str) -> JobStatus:
        payload = _unwrap(self._request_json("GET", f"/job/{job_id}"))
        result = payload.get("result")
        data_id = result.get("dataId", "") if isinstance(result, dict) else ""
        return JobStatus(
            status=str(payload.get("status") or ""),
            message=str(payload.get("message") or ""),
            data_id=str(data_id or ""),
        )

    # -- service catalog --------------------------------------------------------

    def find_service(self, name: str) -> str:
        """Return the id of this caller's service named `name`, or an empty string."""
        payload = self._request_json("GET", "/service/me", params={"perPage": 1000, "keyword": name})
        services = payload.get("data", [])
        if not isinstance(services, list):
            return ""
        for service in services:
            if not isinstance(service, dict):
                continue
            metadata = service.get("resourceMetadata") or {}
            if metadata.get("name") == name:
                return str(service.get("serviceId", ""))
        return ""

    def register_service(self, descriptor: dict[str, Any]) -> dict[str, Any]:
        return self._request_json("POST", "/service", json=descriptor)

    def update_service(self, service_id: str, descriptor: dict[str, Any]) -> dict[str, Any]:
        return self._request_json("PUT", f"/service/{service_id}", json={**descriptor, "serviceId": service_id})

    # -- task queue -------------------------------------------------------------

    def next_task(self, service_id: str) -> Task | None:
        """Ask the task queue for work; None when the queue is empty."""
        payload = _unwrap(self._request_json("POST", f"/service/{service_id}/task"))
        service_data = payload.get("serviceData")
        if not isinstance(service_data, dict):
            return None
        content = (
            (((service_data.get("data") or {}).get("dataInputs") or {}).get("body") or {}).get("content") or ""
        )
        if not content:
            return None
        return Task(job_id=str(service_data.get("jobId", "")), content=str(content))

    def send_task_result(self, service_id: str, job_id: str, status: str, data_id: str = "") -> None:
        body: dict[str, Any] = {"status": status}
        if data_id:
            body["result"] = {"type": "data", "dataId": data_id}
        self._request("POST", f"/service/{service_id}/task/{job_id}", json=body)
