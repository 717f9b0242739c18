"""Ephemeral per-request working directories."""

import logging
import os
import shutil
from pathlib import Path
from types import TracebackType

from pzsvc_exec.errors import InternalError, TransferError
from pzsvc_exec.session import Session

logger = logging.getLogger(__name__)

WORKSPACE_MODE = 0o777


class Workspace:
    """A uniquely named directory owned by exactly one pipeline run.

    Use as a context manager: the directory is created on entry and removed
    recursively on exit, whatever happened inside the block.
    """

    def __init__(self, root: Path, name: str, session: Session | None = None) -> None:
        self.root = Path(root)
        self.name = name
        self.path = self.root / name
        self._session = session or Session(session_id=name)
        self._created = False

    def open(self) -> Path:
        self._session.audit(self._session.app_name, "creating temp dir", self.name)
        try:
            self.path.mkdir()
            self._created = True
            # mkdir honours the umask, so widen the mode explicitly
            os.chmod(self.path, WORKSPACE_MODE)
        except OSError as exc:
            self._session.log.error("Could not create workspace %s: %s", self.path, exc)
            raise InternalError("pzsvc-exec internal error.  Check logs for further information.") from exc
        return self.path

    def close(self) -> None:
        """Remove the directory, but only if this instance created it."""
        if not self._created:
            return
        self._created = False
        self._session.audit(self._session.app_name, "deleting temp dir", self.name)
        shutil.rmtree(self.path, ignore_errors=True)
        if self.path.exists():
            logger.warning("Workspace %s could not be fully removed", self.path)

    def file(self, filename: str) -> Path:
        """Resolve a workspace-relative filename, refusing paths that leave it."""
        if "\x00" in filename:
            raise TransferError(f"File '{filename}' is not a valid workspace path")
        candidate = (self.path / filename).resolve()
        if not candidate.is_relative_to(self.path.resolve()):
            raise TransferError(f"File '{filename}' is outside the workspace")
        return candidate

    def __enter__(self) -> "Workspace":
        try:
            self.open()
        except InternalError:
            self.close()
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
