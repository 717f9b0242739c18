"""pzsvc-exec - run a configured command behind an HTTP endpoint.

`startup` is imported first so dotenv and logging are configured before the
service config is read.
"""

import pzsvc_exec.startup  # noqa: F401  # isort: skip

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pzsvc_exec.config import CONFIG_PATH_ENV, RuntimeContext, ServiceConfig, build_context, load_config
from pzsvc_exec.execution.pipeline import ExecutionPipeline
from pzsvc_exec.platform.registration import manage_registration
from pzsvc_exec.routers import execute, root

logger = logging.getLogger(__name__)


def context_from_env() -> RuntimeContext:
    """Build the runtime context from the config file named by PZSVC_EXEC_CONFIG."""
    path = os.getenv(CONFIG_PATH_ENV, "").strip()
    if not path:
        logger.warning("%s not set; running with an empty configuration.", CONFIG_PATH_ENV)
        return build_context(ServiceConfig())
    return build_context(load_config(path))


def _install(app: FastAPI, context: RuntimeContext) -> None:
    app.state.context = context
    app.state.pipeline = ExecutionPipeline(context)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Resolve configuration and manage catalog registration."""
    if getattr(app.state, "context", None) is None:
        _install(app, context_from_env())
    manage_registration(app.state.context)
    yield


def create_app(context: RuntimeContext | None = None) -> FastAPI:
    app = FastAPI(title="pzsvc-exec", lifespan=lifespan)
    if context is not None:
        _install(app, context)
    app.include_router(root.router)
    app.include_router(execute.router)
    return app


app = create_app()
