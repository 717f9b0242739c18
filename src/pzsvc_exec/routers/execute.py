"""The `/execute` endpoint."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from pzsvc_exec.execution.pipeline import ExecutionPipeline

router = APIRouter(tags=["Execution"])


@router.api_route("/execute", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def execute(request: Request) -> JSONResponse:
    """Run the configured command for the posted request.

    Every method is routed here so non-POST callers get the usual result
    document with a 405 status. The pipeline blocks, so it runs on a worker
    thread.
    """
    pipeline: ExecutionPipeline = request.app.state.pipeline
    body = await request.body()
    result, _session = await run_in_threadpool(pipeline.execute, request.method, body)
    return JSONResponse(status_code=result.http_status, content=result.to_payload())
