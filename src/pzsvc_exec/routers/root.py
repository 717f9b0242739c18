"""Informational endpoints."""

import sys

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from pzsvc_exec import __version__
from pzsvc_exec.config import RuntimeContext
from pzsvc_exec.schemas import AppInfo, HealthStatus, Status

router = APIRouter(tags=["System"])

HELP_TEXT = """pzsvc-exec endpoints as follows:
- '/': entry point.  Names the service and suggests other endpoints.
- '/execute': Downloads files, executes on them, and uploads the results.  POST only.
- '/description': Description of this particular pzsvc-exec instance.
- '/attributes': Key/value attributes of this pzsvc-exec instance.
- '/version': Version of the application served by this pzsvc-exec instance.
- '/health': Health check.
- '/help': This screen.
"""


def _context(request: Request) -> RuntimeContext:
    return request.app.state.context


@router.get("/", response_class=PlainTextResponse)
def read_index(request: Request) -> str:
    """Greet the caller and point at the useful endpoints."""
    config = _context(request).config
    message = "Hello.  This is pzsvc-exec"
    if config.svc_name:
        message += f", serving {config.svc_name}"
    return message + ".\nWere you possibly looking for the /help or /execute endpoints?"


@router.get("/help", response_class=PlainTextResponse)
def read_help() -> str:
    return HELP_TEXT


@router.get("/description", response_class=PlainTextResponse)
def read_description(request: Request) -> str:
    return _context(request).config.description or "No description defined"


@router.get("/attributes")
def read_attributes(request: Request) -> dict[str, str]:
    return dict(_context(request).config.attributes)


@router.get("/version", response_class=PlainTextResponse)
def read_version(request: Request) -> str:
    return _context(request).version


@router.get("/health")
def health() -> HealthStatus:
    """Return health status for container health checks."""
    return HealthStatus(status=Status.HEALTHY)


@router.get("/info")
def info(request: Request) -> AppInfo:
    """Return application version and environment info."""
    context = _context(request)
    return AppInfo(
        app_version=__version__,
        python_version=sys.version,
        cli_version=context.version,
        service_name=context.app_name,
    )
