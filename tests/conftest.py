import json
import re
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from pzsvc_exec.config import RuntimeContext, ServiceConfig
from pzsvc_exec.execution.gate import ConcurrencyGate
from pzsvc_exec.main import create_app
from pzsvc_exec.platform.client import PlatformClient

PZ_ADDR = "http://pz.test"
AUTH_KEY = "Basic dGVzdDo="


class FakePlatform:
    """Scripted platform served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, str | None]] = {}
        self.external: dict[str, bytes] = {}
        self.auth_ok = True
        self.job_script: list[dict[str, Any]] = [{"status": "Success"}]
        self.jobs: dict[str, list[dict[str, Any]]] = {}
        self.submissions: list[bytes] = []
        self.services: list[dict[str, Any]] = []
        self.registered: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.tasks: list[dict[str, Any]] = []
        self.task_results: list[tuple[str, str, dict[str, Any]]] = []
        self.requests: list[httpx.Request] = []

    def client(self, base_url: str, auth: str = "") -> PlatformClient:
        return PlatformClient(base_url, auth, transport=httpx.MockTransport(self.handle))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host != "pz.test":
            return self._external(request)

        path = request.url.path
        method = request.method
        if method == "GET" and path == "/service":
            if self.auth_ok and request.headers.get("Authorization"):
                return httpx.Response(200, json={"data": []})
            return httpx.Response(401, json={"message": "unauthorized"})
        if method == "GET" and path.startswith("/file/"):
            return self._file(path.removeprefix("/file/"))
        if method == "POST" and path == "/job":
            return self._submit(request)
        if method == "GET" and path.startswith("/job/"):
            return self._status(path.removeprefix("/job/"))
        if method == "GET" and path == "/service/me":
            return httpx.Response(200, json={"data": self.services})
        if method == "POST" and path == "/service":
            self.registered.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"serviceId": "svc-new"}})
        if method == "PUT" and path.startswith("/service/"):
            self.updated.append((path.removeprefix("/service/"), json.loads(request.content)))
            return httpx.Response(200, json={})

        match = re.fullmatch(r"/service/([^/]+)/task(?:/([^/]+))?", path)
        if method == "POST" and match and match.group(2) is None:
            service_data = self.tasks.pop(0) if self.tasks else None
            return httpx.Response(200, json={"data": {"serviceData": service_data}})
        if method == "POST" and match:
            self.task_results.append((match.group(1), match.group(2), json.loads(request.content)))
            return httpx.Response(200, json={})
        return httpx.Response(404, json={"message": f"no route for {method} {path}"})

    def _external(self, request: httpx.Request) -> httpx.Response:
        body = self.external.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)

    def _file(self, data_id: str) -> httpx.Response:
        if data_id not in self.files:
            return httpx.Response(404, json={"message": "Data Not Found"})
        content, filename = self.files[data_id]
        headers = {"Content-Disposition": f'attachment; filename="{filename}"'} if filename else {}
        return httpx.Response(200, content=content, headers=headers)

    def _submit(self, request: httpx.Request) -> httpx.Response:
        self.submissions.append(request.content)
        job_id = f"job-{len(self.submissions)}"
        self.jobs[job_id] = [dict(entry) for entry in self.job_script]
        return httpx.Response(200, json={"type": "job", "data": {"jobId": job_id}})

    def _status(self, job_id: str) -> httpx.Response:
        script = self.jobs.get(job_id)
        if script is None:
            return httpx.Response(404, json={"message": "Job Not Found"})
        entry = script.pop(0) if len(script) > 1 else dict(script[0])
        if entry.get("status") == "Success":
            entry.setdefault("result", {"dataId": f"data-{job_id}"})
        return httpx.Response(200, json={"type": "status", "data": entry})


def make_context(install_dir: Path, platform: FakePlatform, **values: Any) -> RuntimeContext:
    """RuntimeContext with every transfer enabled, wired to a fake platform."""
    settings = {"SvcName": "test-svc", "CanUpload": True, "CanDownlPz": True, "CanDownlExt": True}
    settings.update(values)
    config = ServiceConfig.model_validate(settings)
    return RuntimeContext(
        config=config,
        pz_addr=PZ_ADDR,
        auth_key=AUTH_KEY,
        version="1.2.3",
        install_dir=install_dir,
        gate=ConcurrencyGate(config.num_procs),
        client_factory=platform.client,
        sleep=lambda _seconds: None,
    )


def workspace_dirs(install_dir: Path) -> list[Path]:
    return [path for path in install_dir.iterdir() if path.is_dir()]


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def context(tmp_path: Path, platform: FakePlatform) -> RuntimeContext:
    return make_context(tmp_path, platform)


@pytest.fixture
def client(context: RuntimeContext) -> TestClient:
    return TestClient(create_app(context))
