"""Task dispatcher: pulls work from the platform task queue into the pipeline."""

import json
import logging
from threading import Event, Thread

from pzsvc_exec.config import RuntimeContext
from pzsvc_exec.errors import ExecServiceError, TransferError
from pzsvc_exec.execution.ingest import OutputIngestor
from pzsvc_exec.execution.pipeline import ExecutionPipeline
from pzsvc_exec.execution.schemas import MASK
from pzsvc_exec.platform.client import PlatformClient, Task
from pzsvc_exec.session import Session

logger = logging.getLogger(__name__)

IDLE_SECONDS = 60.0
ERROR_SECONDS = 10.0
BUSY_SECONDS = 1.0
LOOKUP_ATTEMPTS = 10
LOOKUP_SECONDS = 15.0

_THREAD: Thread | None = None
_STOP_EVENT = Event()


def _masked_content(content: str) -> str:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        return "<unparseable task content>"
    if not isinstance(payload, dict):
        return content
    for key in ("pzAuthKey", "inExtAuthKey"):
        if payload.get(key):
            payload[key] = MASK
    return json.dumps(payload)


def find_service_id(context: RuntimeContext, stop_event: Event | None = None) -> str:
    """Look up this service's catalog id, waiting for registration to land."""
    stop = stop_event or _STOP_EVENT
    name = context.config.svc_name
    with context.platform_client(context.pz_addr, context.auth_key) as client:
        for attempt in range(LOOKUP_ATTEMPTS):
            service_id = client.find_service(name)
            if service_id:
                return service_id
            if attempt + 1 < LOOKUP_ATTEMPTS:
                logger.info("Could not find service %s.  Will sleep and wait.", name)
                if stop.wait(timeout=LOOKUP_SECONDS):
                    break
    return ""


def report_result(
    context: RuntimeContext,
    client: PlatformClient,
    service_id: str,
    task: Task,
    result_json: str,
    ok: bool,
) -> None:
    """Publish a task's result JSON and report the task outcome."""
    session = Session(app_name=context.app_name, session_id=task.job_id, log_audit=context.config.log_audit)
    ingestor = OutputIngestor(
        client,
        session,
        service_name="Dispatcher",
        version=context.version,
        command_line=context.config.cli_cmd,
        sleep=context.sleep,
    )
    status = "Success" if ok else "Fail"
    try:
        data_id = ingestor.ingest_text("Output", result_json)
    except ExecServiceError as exc:
        logger.error("Send Exec Results: ingest failed: %s", exc)
        client.send_task_result(service_id, task.job_id, "Fail")
        return
    logger.info("Sending Exec Results.  Status: %s.", status)
    client.send_task_result(service_id, task.job_id, status, data_id)


def poll_once(context: RuntimeContext, pipeline: ExecutionPipeline, service_id: str) -> float:
    """Work at most one task; return how long to wait before the next poll."""
    with context.platform_client(context.pz_addr, context.auth_key) as client:
        try:
            task = client.next_task(service_id)
        except TransferError as exc:
            logger.error("Dispatcher: error getting new task: %s", exc)
            return ERROR_SECONDS

        if task is None:
            logger.info("No Task.  Sleeping now.")
            return IDLE_SECONDS

        logger.info("New Task Grabbed.  JobID: %s", task.job_id)
        Session(app_name=context.app_name, session_id=task.job_id, log_audit=context.config.log_audit).audit(
            "Dispatcher", "running task", _masked_content(task.content)
        )
        result, _session = pipeline.execute("POST", task.content)
        try:
            report_result(context, client, service_id, task, json.dumps(result.to_payload()), result.ok)
        except TransferError as exc:
            logger.error("Dispatcher: could not report task %s: %s", task.job_id, exc)
            return ERROR_SECONDS
    return BUSY_SECONDS


def run_dispatcher(context: RuntimeContext, stop_event: Event | None = None) -> None:
    """Poll the task queue until `stop_event` is set."""
    stop = stop_event or _STOP_EVENT
    if not context.pz_addr or not context.auth_key or not context.config.svc_name:
        logger.error("Config: Cannot work tasks without PzAddr, API key and SvcName.")
        return

    try:
        service_id = find_service_id(context, stop)
    except TransferError as exc:
        logger.error("Dispatcher could not find the service id: %s", exc)
        return
    if not service_id:
        logger.error("Dispatcher could not find the service id.  Ensure the service is registered, and try again.")
        return

    logger.info("Found target service.  ServiceID: %s.  Beginning polling.", service_id)
    pipeline = ExecutionPipeline(context)
    while not stop.is_set():
        stop.wait(timeout=poll_once(context, pipeline, service_id))


def start_dispatcher(context: RuntimeContext) -> None:
    global _THREAD
    if _THREAD is not None and _THREAD.is_alive():
        return

    _STOP_EVENT.clear()
    _THREAD = Thread(target=run_dispatcher, args=(context,), daemon=True, name="pzsvc-exec-dispatcher")
    _THREAD.start()


def stop_dispatcher() -> None:
    _STOP_EVENT.set()
