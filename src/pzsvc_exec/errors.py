"""Error taxonomy for the execution pipeline.

Every error carries the HTTP status it maps to. Request-level errors
(invalid request, authorization, disabled feature, internal) abort the
pipeline; item-level errors (transfer, execution, ingest) are folded into
the result and processing continues.
"""

from http import HTTPStatus


class ExecServiceError(Exception):
    """Base class for errors reported back to the caller."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR


class InvalidRequestError(ExecServiceError):
    """Malformed body or a request that resolves to no command."""

    status_code = HTTPStatus.BAD_REQUEST


class MethodNotAllowedError(InvalidRequestError):
    status_code = HTTPStatus.METHOD_NOT_ALLOWED


class AuthorizationError(ExecServiceError):
    """Missing platform address/credential, or the capability check failed."""

    status_code = HTTPStatus.FORBIDDEN


class ConfigDisabledError(ExecServiceError):
    """The requested file operation is disabled by configuration."""

    status_code = HTTPStatus.FORBIDDEN


class TransferError(ExecServiceError):
    """A single input or output item failed to move."""

    status_code = HTTPStatus.BAD_REQUEST


class ExecutionError(ExecServiceError):
    """The external command failed to spawn, timed out or exited non-zero."""

    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class IngestTimeoutError(TransferError):
    """The ingest completion protocol ran out of attempts."""


class RemoteJobError(TransferError):
    """The platform reported the ingest job as Error or Fail."""


class UnknownStatusError(TransferError):
    """The platform returned a job status outside the known set."""


class InternalError(ExecServiceError):
    """Workspace or identifier failures on this host."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
