"""Command-line entry: `serve` the HTTP API or `dispatch` platform tasks."""

import pzsvc_exec.startup  # noqa: F401  # isort: skip

import argparse
import logging
import signal
import sys

import uvicorn

from pzsvc_exec.config import build_context, load_config
from pzsvc_exec.dispatcher import run_dispatcher, stop_dispatcher
from pzsvc_exec.main import create_app

logger = logging.getLogger("pzsvc_exec")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line options."""
    parser = argparse.ArgumentParser(prog="pzsvc-exec", description="Run a configured command as a service.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Serve the HTTP API")
    serve.add_argument("config", help="Path to the JSON or YAML service config")

    dispatch = subparsers.add_parser("dispatch", help="Work tasks from the platform task queue")
    dispatch.add_argument("config", help="Path to the JSON or YAML service config")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except (OSError, RuntimeError, ValueError) as exc:
        logger.error("pzsvc-exec error in reading config: %s", exc)
        return 1

    context = build_context(config)
    if args.command == "serve":
        uvicorn.run(create_app(context), host=context.host, port=context.port)
        return 0

    signal.signal(signal.SIGTERM, lambda *_: stop_dispatcher())
    try:
        run_dispatcher(context)
    except KeyboardInterrupt:
        stop_dispatcher()
    return 0


if __name__ == "__main__":
    sys.exit(main())
