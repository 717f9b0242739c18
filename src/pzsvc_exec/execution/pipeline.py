"""The execution pipeline: gate, workspace, inputs, command, outputs, result."""

from pydantic import ValidationError

from pzsvc_exec.config import RuntimeContext
from pzsvc_exec.errors import (
    AuthorizationError,
    ConfigDisabledError,
    ExecServiceError,
    ExecutionError,
    InvalidRequestError,
    MethodNotAllowedError,
)
from pzsvc_exec.execution.ingest import OutputIngestor
from pzsvc_exec.execution.inputs import InputResolver
from pzsvc_exec.execution.result import ExecutionResult
from pzsvc_exec.execution.runner import CommandRunner, build_argv
from pzsvc_exec.execution.schemas import ExecutionRequest
from pzsvc_exec.execution.workspace import Workspace
from pzsvc_exec.ids import pseudo_uuid
from pzsvc_exec.platform.client import PlatformClient
from pzsvc_exec.session import ANONYMOUS_USER, Session


class ExecutionPipeline:
    """Runs execution requests against one RuntimeContext.

    Thread-safe: the only state shared between concurrent runs is the
    context's gate. A gate slot is held for the whole run, ingest polling
    included.
    """

    def __init__(self, context: RuntimeContext) -> None:
        self.context = context
        self.runner = CommandRunner(context.install_dir, context.config.max_run_time)

    def execute(self, method: str, body: bytes | str) -> tuple[ExecutionResult, Session]:
        """Run one raw request and return its result and session."""
        result = ExecutionResult()
        session = Session(app_name=self.context.app_name, log_audit=self.context.config.log_audit)

        with self.context.gate.slot():
            try:
                request = self._parse(method, body)
                session = self._open_session(request)
                session.log.info("pzsvc-exec call initiated.  Input: %s", request.masked_json())
                self._run(request, session, result)
            except ExecServiceError as exc:
                session.log.error("Execution aborted: %s", exc)
                result.record(exc)

        return result, session

    def _parse(self, method: str, body: bytes | str) -> ExecutionRequest:
        if method.upper() != "POST":
            raise MethodNotAllowedError(f"{method} not supported.  Please use POST.")
        try:
            return ExecutionRequest.model_validate_json(body)
        except ValidationError as exc:
            raise InvalidRequestError("Could not read request body.  Please use JSON format.") from exc

    def _open_session(self, request: ExecutionRequest) -> Session:
        return Session(
            app_name=self.context.app_name,
            session_id=pseudo_uuid(),
            user_id=request.user_id or ANONYMOUS_USER,
            pz_addr=(request.pz_addr or self.context.pz_addr).rstrip("/"),
            pz_auth=request.pz_auth or self.context.auth_key,
            log_audit=self.context.config.log_audit,
        )

    def _authorize(self, request: ExecutionRequest, session: Session, client: PlatformClient) -> None:
        """Reject requests whose file transfers are impossible or disabled, before any side effect."""
        config = self.context.config

        if request.needs_platform:
            if not session.pz_addr:
                raise AuthorizationError("Cannot complete.  No Piazza address provided for file upload/download.")
            if not session.pz_auth:
                raise AuthorizationError("Cannot complete.  Auth Key not available.")
            client.check_auth()

        if request.in_ext_files and not config.can_download_ext:
            raise ConfigDisabledError("Cannot complete.  Configuration does not allow external file download.")
        if request.in_pz_files and not config.can_download_pz:
            raise ConfigDisabledError("Cannot complete.  Configuration does not allow Piazza file download.")
        if request.outputs and not config.can_upload:
            raise ConfigDisabledError("Cannot complete.  Configuration does not allow file upload.")

    def _run(self, request: ExecutionRequest, session: Session, result: ExecutionResult) -> None:
        config = self.context.config
        argv = build_argv(config.cli_cmd, request.cmd)
        command_line = f"{config.cli_cmd} {request.cmd}".strip()

        with self.context.platform_client(session.pz_addr, session.pz_auth) as client:
            self._authorize(request, session, client)

            with Workspace(self.context.install_dir, session.session_id, session) as workspace:
                InputResolver(client, workspace, session, request.ext_auth).resolve(
                    result,
                    pz_files=request.in_pz_files,
                    pz_names=request.in_pz_names,
                    ext_files=request.in_ext_files,
                    ext_names=request.in_ext_names,
                )

                session.log.info("Executing `%s`.", command_line)
                session.audit(session.user_id, f"Executing `{command_line}`.", "cmdLine")
                try:
                    outcome = self.runner.run(argv, workspace.path)
                    result.prog_stdout, result.prog_stderr = outcome.stdout, outcome.stderr
                except ExecutionError as exc:
                    session.log.error("Command failed: %s", exc)
                    result.add_error(
                        f"pzsvc-exec failed on cmd `{request.cmd}`.  "
                        "If that was correct, check logs for further details.",
                        exc.status_code,
                    )
                    result.prog_stdout, result.prog_stderr = exc.stdout, exc.stderr
                session.log.info("Program stdout: %s", result.prog_stdout)
                session.log.info("Program stderr: %s", result.prog_stderr)

                if request.outputs:
                    ingestor = OutputIngestor(
                        client,
                        session,
                        service_name=self.context.app_name,
                        version=self.context.version,
                        command_line=command_line,
                        workspace=workspace,
                        sleep=self.context.sleep,
                    )
                    ingestor.publish(
                        result,
                        tiffs=request.out_tiffs,
                        texts=request.out_txts,
                        geojsons=request.out_geojson,
                    )
