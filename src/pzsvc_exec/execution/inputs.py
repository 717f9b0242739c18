"""Stage request inputs into the workspace."""

from collections.abc import Sequence

from pzsvc_exec.execution.result import ExecutionResult, transfer_each
from pzsvc_exec.execution.workspace import Workspace
from pzsvc_exec.platform.client import PlatformClient
from pzsvc_exec.session import Session


class InputResolver:
    """Fetches platform-hosted and external inputs into one workspace."""

    def __init__(self, client: PlatformClient, workspace: Workspace, session: Session, ext_auth: str = "") -> None:
        self.client = client
        self.workspace = workspace
        self.session = session
        self.ext_auth = ext_auth

    def fetch_platform(self, data_id: str, name: str = "") -> str:
        self.session.audit(self.session.user_id, "pz File Download", data_id)
        return self.client.download_file(data_id, self.workspace.path, name)

    def fetch_external(self, url: str, name: str = "") -> str:
        self.session.audit(self.session.user_id, "external File Download", url)
        return self.client.download_url(url, self.workspace.path, name, self.ext_auth)

    def resolve(
        self,
        result: ExecutionResult,
        pz_files: Sequence[str] = (),
        pz_names: Sequence[str] = (),
        ext_files: Sequence[str] = (),
        ext_names: Sequence[str] = (),
    ) -> None:
        """Fetch every input, recording successes in `result.in_files`."""
        transfer_each(pz_files, pz_names, self.fetch_platform, "Pz download", result, result.in_files)
        transfer_each(ext_files, ext_names, self.fetch_external, "URL download", result, result.in_files)
